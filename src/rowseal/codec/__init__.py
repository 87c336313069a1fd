"""Value, row and document codecs."""

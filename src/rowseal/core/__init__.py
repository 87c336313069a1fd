"""Core package of rowseal: models, policy, errors and the engine."""

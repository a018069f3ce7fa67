"""Core models, rule engine and model validators."""

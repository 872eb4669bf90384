"""Sample planning domains."""

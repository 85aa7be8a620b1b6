"""Shared models, configuration and input validation."""

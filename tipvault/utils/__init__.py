"""Shared utilities: logging and input validation."""

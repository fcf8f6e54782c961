"""Shared utilities: logging and the error taxonomy."""

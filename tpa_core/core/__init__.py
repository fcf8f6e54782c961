"""Core configuration, enumerations and permission tables."""

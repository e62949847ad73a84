"""Shared helpers: time, configuration and task store HTTP access."""

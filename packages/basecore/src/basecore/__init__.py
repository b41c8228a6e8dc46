"""Shared infrastructure: settings, logging and Redis access."""

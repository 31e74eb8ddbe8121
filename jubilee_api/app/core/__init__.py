"""Shared infrastructure: settings, database, security, logging and errors."""

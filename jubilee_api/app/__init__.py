"""
Application package initializer.

This package contains the main entrypoint for the API and all of its
submodules.  Each domain (attendee registrations, admin sessions,
site images, identity) keeps its request handling in
``api/v1/endpoints``, its business rules in ``services`` and its wire
models in ``schemas``.  Shared infrastructure (settings, database,
security, logging, error types) lives in ``core``.
"""

from .main import app  # noqa: F401

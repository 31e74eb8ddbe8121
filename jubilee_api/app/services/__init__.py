"""
Service layer abstraction.

Each service encapsulates business logic for a domain and talks to the
SQLite store through ``core.db``.  Endpoints stay thin: they parse the
request, call a service and let ``core.exceptions`` errors propagate
to the application's exception handler.
"""

"""
HTTP layer for the Book Club API.

Routers stay thin: request models validate payloads, repositories do the
work and the handlers in ``errors`` turn exceptions into status codes.
"""

from . import auth, books, health, users
from .errors import register_exception_handlers

routers = [health.router, auth.router, books.router, users.router]

__all__ = ["register_exception_handlers", "routers"]

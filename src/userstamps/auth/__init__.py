"""
Request integration for userstamps.

This module provides:
- ASGI middleware binding the authenticated user for each request (middleware.py)
- A FastAPI dependency wrapper doing the same per route (dependencies.py)

Usage:
    from userstamps.auth import (
        UserstampMiddleware,
        current_user_dependency,
        find_request_user,
    )
"""

from userstamps.auth.middleware import (
    UserstampMiddleware,
    find_request_user,
)
from userstamps.auth.dependencies import current_user_dependency

__all__ = [
    "UserstampMiddleware",
    "find_request_user",
    "current_user_dependency",
]

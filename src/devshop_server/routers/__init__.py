"""FastAPI routers for API endpoints.

This package contains all route handlers organized by resource type.
Each router module defines endpoints for a specific domain (health, communications, tools).
"""

from devshop_server.routers import communications, health, tools

__all__ = [
    "communications",
    "health",
    "tools",
]

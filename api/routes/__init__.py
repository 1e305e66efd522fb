"""
API Routes Package

This package contains route handlers organized by feature:
- enrollment.py: Registration, email verification and face enrollment
- authentication.py: The challenge-response login steps
- management.py: Current user and logout
"""

from api.routes.enrollment import router as enrollment_router
from api.routes.enrollment import link_router as verification_link_router
from api.routes.authentication import router as authentication_router
from api.routes.management import router as management_router

__all__ = [
    "enrollment_router",
    "verification_link_router",
    "authentication_router",
    "management_router",
]

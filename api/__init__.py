"""
API Layer for the SecureFace Authentication Service

This package provides the FastAPI-based API layer that exposes:
- Registration, email verification and face enrollment
- The challenge-response login steps
- Session endpoints and a health check

The API layer connects the browser client to the authentication core.
"""

"""Authentication module.

This module provides:
- Password hashing (argon2id via PyNaCl)
- Cookie sessions backed by the sessions table
- Login / registration
- Auth middleware for FastAPI and the get_viewer dependency
"""

from euroassist.auth.accounts import authenticate, register
from euroassist.auth.middleware import AuthMiddleware, Viewer, get_viewer
from euroassist.auth.passwords import hash_password, verify_password
from euroassist.auth.sessions import create_session, destroy_session, resolve_session

__all__ = [
    "AuthMiddleware",
    "Viewer",
    "authenticate",
    "create_session",
    "destroy_session",
    "get_viewer",
    "hash_password",
    "register",
    "resolve_session",
    "verify_password",
]

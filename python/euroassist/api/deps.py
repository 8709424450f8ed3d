"""FastAPI dependencies for route handlers.

Common dependencies like database sessions and the assistant client.
"""

from collections.abc import Callable

from fastapi import Request
from sqlalchemy.orm import Session

from euroassist.db.session import get_db, get_session_factory
from euroassist.services.llm import AssistantClient

__all__ = ["get_assistant", "get_db", "get_db_factory"]


def get_assistant(request: Request) -> AssistantClient:
    """Get the shared AssistantClient from app state.

    The client wraps the httpx.AsyncClient created in the app lifespan, so
    every request reuses one connection pool.
    """
    return request.app.state.assistant


def get_db_factory(request: Request) -> Callable[[], Session]:
    """Session factory for work that outlives the request (SSE bodies).

    Apps built with an explicit session factory (tests) expose it on app.state.
    """
    return getattr(request.app.state, "session_factory", None) or get_session_factory()

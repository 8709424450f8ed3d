"""Database module for EuroAssist.

Provides engine creation, session management, transaction helpers, and ORM models.
"""

from euroassist.db.engine import create_db_engine, get_engine
from euroassist.db.models import (
    Base,
    Chat,
    Message,
    MessageRole,
    User,
    UserSession,
)
from euroassist.db.session import get_db, session_scope, transaction

__all__ = [
    # Engine and session
    "create_db_engine",
    "get_engine",
    "get_db",
    "session_scope",
    "transaction",
    # Base
    "Base",
    # Enums
    "MessageRole",
    # Models
    "User",
    "Chat",
    "Message",
    "UserSession",
]

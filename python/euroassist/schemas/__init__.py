"""Pydantic schemas for request/response models.

All schemas are re-exported here for convenient imports.
"""

from euroassist.schemas.base import CamelModel
from euroassist.schemas.chat import (
    ChatOut,
    ChatWithMessagesOut,
    CreateChatRequest,
    MessageOut,
    SendMessageNewChatResponse,
    SendMessageRequest,
    SendMessageResponse,
)
from euroassist.schemas.user import (
    AuthResponse,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    UserOut,
)

__all__ = [
    "CamelModel",
    # Chats
    "ChatOut",
    "ChatWithMessagesOut",
    "CreateChatRequest",
    "MessageOut",
    "SendMessageNewChatResponse",
    "SendMessageRequest",
    "SendMessageResponse",
    # Users / auth
    "AuthResponse",
    "LoginRequest",
    "MessageResponse",
    "RegisterRequest",
    "UserOut",
]

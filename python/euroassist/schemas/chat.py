"""Chat and Message Pydantic schemas.

Contains request and response models for chat and message endpoints.
"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import Field, field_validator

from euroassist.schemas.base import CamelModel

# Valid message roles - must match DB constraint
MESSAGE_ROLES = Literal["user", "assistant"]

# Max content length
MAX_MESSAGE_CONTENT_LENGTH = 20000
MAX_TITLE_LENGTH = 200


# =============================================================================
# Response Schemas
# =============================================================================


class ChatOut(CamelModel):
    """Response schema for a chat.

    Chats are owned by exactly one user and only visible to them.
    """

    id: UUID
    user_id: UUID
    title: str
    created_at: datetime
    updated_at: datetime


class MessageOut(CamelModel):
    """Response schema for a message.

    Messages are immutable and ordered by created_at within a chat.
    """

    id: UUID
    chat_id: UUID
    role: MESSAGE_ROLES
    content: str
    created_at: datetime


class ChatWithMessagesOut(CamelModel):
    """Response for GET /api/chats/{chatId}."""

    chat: ChatOut
    messages: list[MessageOut]


class SendMessageResponse(CamelModel):
    """Response for a buffered exchange.

    assistant_message is present on success; error carries the user-safe
    failure text when generation failed. The user message is always present.
    """

    user_message: MessageOut
    assistant_message: MessageOut | None = None
    error: str | None = None


class SendMessageNewChatResponse(SendMessageResponse):
    """Response for an exchange that created its own chat."""

    chat: ChatOut


# =============================================================================
# Request Schemas
# =============================================================================


class CreateChatRequest(CamelModel):
    title: str = Field(min_length=1, max_length=MAX_TITLE_LENGTH)

    @field_validator("title")
    @classmethod
    def strip_title(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Title is required")
        return value


class SendMessageRequest(CamelModel):
    """Request schema for sending a message.

    Whitespace handling and the length limit are applied by the orchestrator,
    so validation errors look the same for every entry point.
    """

    content: str

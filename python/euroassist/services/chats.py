"""Chat and Message storage layer.

All operations:
- Take the SQLAlchemy session as their first argument
- Scope every chat lookup by owner; a chat owned by someone else looks missing
- Return None for "not found" rather than raising
- Commit writes individually through transaction()

Authorization (404 vs. success) is decided by callers; these functions never
raise NotFoundError themselves.
"""

from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from euroassist.db.models import Chat, Message, MessageRole, utcnow
from euroassist.db.session import transaction
from euroassist.logging import get_logger
from euroassist.schemas.chat import ChatOut, MessageOut

logger = get_logger(__name__)


# =============================================================================
# Helper Functions
# =============================================================================


def chat_to_out(chat: Chat) -> ChatOut:
    """Convert Chat ORM model to ChatOut schema."""
    return ChatOut(
        id=chat.id,
        user_id=chat.user_id,
        title=chat.title,
        created_at=chat.created_at,
        updated_at=chat.updated_at,
    )


def message_to_out(message: Message) -> MessageOut:
    """Convert Message ORM model to MessageOut schema."""
    return MessageOut(
        id=message.id,
        chat_id=message.chat_id,
        role=message.role,
        content=message.content,
        created_at=message.created_at,
    )


# =============================================================================
# Chats
# =============================================================================


def list_chats_for_user(db: Session, user_id: UUID) -> list[Chat]:
    """List a user's chats, most recently updated first.

    Ties on updated_at are broken by id descending so the order is stable.
    """
    result = db.scalars(
        select(Chat)
        .where(Chat.user_id == user_id)
        .order_by(Chat.updated_at.desc(), Chat.id.desc())
    )
    return list(result)


def get_chat(db: Session, chat_id: UUID, user_id: UUID) -> Chat | None:
    """Load a chat if it exists and belongs to user_id."""
    return db.scalar(select(Chat).where(Chat.id == chat_id, Chat.user_id == user_id))


def create_chat(db: Session, user_id: UUID, title: str) -> Chat:
    """Create a chat owned by user_id.

    created_at and updated_at start out identical.
    """
    now = utcnow()
    chat = Chat(user_id=user_id, title=title, created_at=now, updated_at=now)

    with transaction(db):
        db.add(chat)

    logger.info("chat.created", chat_id=str(chat.id))
    return chat


def rename_chat(db: Session, chat_id: UUID, user_id: UUID, title: str) -> Chat | None:
    """Set a chat's title and bump updated_at.

    Returns:
        The updated chat, or None (and no write) if the chat is missing or not owned.
    """
    with transaction(db):
        result = db.execute(
            update(Chat)
            .where(Chat.id == chat_id, Chat.user_id == user_id)
            .values(title=title, updated_at=utcnow())
        )

    if result.rowcount == 0:
        return None
    chat = get_chat(db, chat_id, user_id)
    if chat is not None:
        db.refresh(chat)
    return chat


def delete_chat(db: Session, chat_id: UUID, user_id: UUID) -> bool:
    """Delete a chat and (via FK cascade) its messages.

    Returns:
        True if a chat was deleted; False if it was missing or not owned.
    """
    with transaction(db):
        result = db.execute(delete(Chat).where(Chat.id == chat_id, Chat.user_id == user_id))

    deleted = result.rowcount > 0
    if deleted:
        logger.info("chat.deleted", chat_id=str(chat_id))
    return deleted


# =============================================================================
# Messages
# =============================================================================


def list_messages(db: Session, chat_id: UUID) -> list[Message]:
    """List messages in a chat in chronological order."""
    result = db.scalars(
        select(Message)
        .where(Message.chat_id == chat_id)
        .order_by(Message.created_at.asc(), Message.id.asc())
    )
    return list(result)


def count_messages(db: Session, chat_id: UUID) -> int:
    """Count the messages in a chat."""
    result = db.scalar(
        select(func.count()).select_from(Message).where(Message.chat_id == chat_id)
    )
    return result or 0


def create_message(db: Session, chat_id: UUID, role: MessageRole | str, content: str) -> Message:
    """Append a message to a chat.

    The owning chat's updated_at is moved to the message's timestamp in the
    same transaction so recently active chats sort first.
    """
    role_value = role.value if isinstance(role, MessageRole) else MessageRole(role).value
    now = utcnow()
    message = Message(chat_id=chat_id, role=role_value, content=content, created_at=now)

    with transaction(db):
        db.add(message)
        db.execute(update(Chat).where(Chat.id == chat_id).values(updated_at=now))

    return message

"""Send message service - the buffered message exchange.

One exchange runs these steps in order:

1. Validate   - content is stripped; empty or over-long content is rejected
                before anything is written
2. Authorize  - the chat must exist and belong to the viewer (404 otherwise,
                missing and foreign chats look the same)
3. Persist the user turn. Never skipped once 1-2 pass.
4. Generate   - one AssistantClient call, no DB transaction held
5. Persist the assistant turn on success. On GenerationError nothing is
                written and the result carries the user-safe error text.
6. Title      - after a successful exchange, iff the chat now holds exactly
                two messages, a title is generated and the chat renamed

Invariants:
- The user message is queryable even when generation fails
- At most one assistant message per exchange, equal to the generated text
- No per-chat lock: concurrent sends may interleave

Sync DB access uses run_in_threadpool (starlette) to avoid blocking the event loop.
"""

from dataclasses import dataclass
from uuid import UUID, uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from euroassist.db.models import Chat, Message, MessageRole
from euroassist.errors import ApiError, ApiErrorCode, InvalidRequestError, NotFoundError
from euroassist.logging import get_logger, set_exchange_id
from euroassist.schemas.chat import (
    MAX_MESSAGE_CONTENT_LENGTH,
    SendMessageNewChatResponse,
    SendMessageResponse,
)
from euroassist.services import chats
from euroassist.services.llm import AssistantClient, GenerationError
from euroassist.services.redact import hash_text, safe_kv

logger = get_logger(__name__)

NEW_CHAT_TITLE = "New Chat"
TITLE_TRIGGER_MESSAGE_COUNT = 2


@dataclass
class ExchangeResult:
    """Outcome of one exchange.

    assistant_message is None exactly when error is set.
    """

    chat: Chat
    user_message: Message
    assistant_message: Message | None = None
    error: str | None = None
    title_updated: bool = False

    def to_response(self) -> SendMessageResponse:
        return SendMessageResponse(
            user_message=chats.message_to_out(self.user_message),
            assistant_message=(
                chats.message_to_out(self.assistant_message) if self.assistant_message else None
            ),
            error=self.error,
        )

    def to_new_chat_response(self) -> SendMessageNewChatResponse:
        base = self.to_response()
        return SendMessageNewChatResponse(
            chat=chats.chat_to_out(self.chat),
            user_message=base.user_message,
            assistant_message=base.assistant_message,
            error=base.error,
        )


# =============================================================================
# Steps
# =============================================================================


def validate_message_content(content: str | None) -> str:
    """Strip and check message content.

    Returns:
        The stripped content.

    Raises:
        InvalidRequestError: If the content is empty after stripping or too long.
    """
    text = (content or "").strip()
    if not text:
        raise InvalidRequestError(
            ApiErrorCode.E_MESSAGE_EMPTY,
            "Message content is required",
            errors=[{"path": ["content"], "message": "Message content is required"}],
        )
    if len(text) > MAX_MESSAGE_CONTENT_LENGTH:
        message = f"Message content must be at most {MAX_MESSAGE_CONTENT_LENGTH} characters"
        raise InvalidRequestError(
            ApiErrorCode.E_MESSAGE_TOO_LONG,
            message,
            errors=[{"path": ["content"], "message": message}],
        )
    return text


def get_chat_for_viewer_or_404(db: Session, viewer_id: UUID, chat_id: UUID) -> Chat:
    """Load a chat and verify ownership.

    Raises:
        NotFoundError(E_CHAT_NOT_FOUND): If the chat doesn't exist OR viewer is not the owner.
    """
    chat = chats.get_chat(db, chat_id, viewer_id)
    if chat is None:
        raise NotFoundError(ApiErrorCode.E_CHAT_NOT_FOUND, "Chat not found")
    return chat


def persist_user_turn(db: Session, chat_id: UUID, content: str) -> Message:
    message = chats.create_message(db, chat_id, MessageRole.user, content)
    logger.info(
        "exchange.user_persisted",
        **safe_kv(
            chat_id=str(chat_id),
            message_id=str(message.id),
            content_chars=len(content),
            content_sha256=hash_text(content),
        ),
    )
    return message


def persist_assistant_turn(db: Session, chat_id: UUID, text: str) -> Message:
    return chats.create_message(db, chat_id, MessageRole.assistant, text)


async def apply_title_policy(
    db: Session,
    viewer_id: UUID,
    chat_id: UUID,
    first_user_message: str,
    assistant: AssistantClient,
) -> bool:
    """Rename the chat after its first exchange.

    Fires iff the chat holds exactly two messages. Storage failures while
    counting or renaming are logged and do not fail the exchange.

    Returns:
        True if the chat was renamed.
    """
    try:
        count = await run_in_threadpool(chats.count_messages, db, chat_id)
        if count != TITLE_TRIGGER_MESSAGE_COUNT:
            return False

        title = await assistant.generate_title(first_user_message)
        renamed = await run_in_threadpool(chats.rename_chat, db, chat_id, viewer_id, title)
    except (ApiError, SQLAlchemyError) as e:
        logger.warning("exchange.title_update_failed", error_type=type(e).__name__)
        return False

    if renamed is None:
        return False
    logger.info("exchange.title_updated", **safe_kv(chat_id=str(chat_id), title_chars=len(title)))
    return True


async def run_exchange(
    db: Session,
    viewer_id: UUID,
    chat: Chat,
    content: str,
    assistant: AssistantClient,
) -> ExchangeResult:
    """Steps 3-6 for a chat that has already been validated and authorized."""
    user_message = await run_in_threadpool(persist_user_turn, db, chat.id, content)

    try:
        answer = await assistant.generate(content)
    except GenerationError as e:
        logger.warning(
            "exchange.generation_failed",
            chat_id=str(chat.id),
            error_class=e.error_class.value,
        )
        return ExchangeResult(chat=chat, user_message=user_message, error=e.message)

    assistant_message = await run_in_threadpool(persist_assistant_turn, db, chat.id, answer)
    logger.info(
        "exchange.completed",
        **safe_kv(chat_id=str(chat.id), streaming=False, answer_chars=len(answer)),
    )

    title_updated = await apply_title_policy(db, viewer_id, chat.id, content, assistant)
    if title_updated:
        chat = await run_in_threadpool(get_chat_for_viewer_or_404, db, viewer_id, chat.id)

    return ExchangeResult(
        chat=chat,
        user_message=user_message,
        assistant_message=assistant_message,
        title_updated=title_updated,
    )


# =============================================================================
# Entry points
# =============================================================================


async def send_message(
    db: Session,
    viewer_id: UUID,
    chat_id: UUID,
    content: str,
    assistant: AssistantClient,
) -> ExchangeResult:
    """Send a message to an existing chat and wait for the full answer.

    Raises:
        InvalidRequestError: Empty or over-long content (no side effects).
        NotFoundError(E_CHAT_NOT_FOUND): Chat missing or not owned (no side effects).
    """
    set_exchange_id(str(uuid4()))
    try:
        text = validate_message_content(content)
        chat = await run_in_threadpool(get_chat_for_viewer_or_404, db, viewer_id, chat_id)
        return await run_exchange(db, viewer_id, chat, text, assistant)
    finally:
        set_exchange_id(None)


async def send_message_new_chat(
    db: Session,
    viewer_id: UUID,
    content: str,
    assistant: AssistantClient,
) -> ExchangeResult:
    """Create a chat titled "New Chat" and run the first exchange in it.

    Validation happens before the chat is created, so invalid content leaves
    no empty chat behind.
    """
    set_exchange_id(str(uuid4()))
    try:
        text = validate_message_content(content)
        chat = await run_in_threadpool(chats.create_chat, db, viewer_id, NEW_CHAT_TITLE)
        return await run_exchange(db, viewer_id, chat, text, assistant)
    finally:
        set_exchange_id(None)

"""Chats and Messages API routes.

Route handlers for chat CRUD and the message exchange.
Routes are transport-only: each calls one service function and serializes the result.

- GET    /api/chats                              list, most recently updated first
- POST   /api/chats                              create
- GET    /api/chats/{chat_id}                    chat + messages
- DELETE /api/chats/{chat_id}                    delete (no-op if not owned)
- POST   /api/chats/{chat_id}/messages           buffered exchange, or SSE when
                                                 ?stream=true / Accept: text/event-stream
- POST   /api/chats/messages                     buffered exchange in a new chat
- GET    /api/chats/{chat_id}/messages/stream?q= SSE exchange, question in the query

All routes require authentication. A chat id that is malformed, missing, or
owned by someone else is always a 404 with E_CHAT_NOT_FOUND.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from euroassist.api.deps import get_assistant, get_db, get_db_factory
from euroassist.auth.middleware import Viewer, get_viewer
from euroassist.config import get_settings
from euroassist.errors import ApiError, ApiErrorCode, InvalidRequestError, NotFoundError
from euroassist.schemas.chat import (
    ChatWithMessagesOut,
    CreateChatRequest,
    SendMessageRequest,
)
from euroassist.schemas.user import MessageResponse
from euroassist.services import chats as chats_service
from euroassist.services import send_message as send_message_service
from euroassist.services.llm import AssistantClient
from euroassist.services.send_message_stream import stream_send_message

router = APIRouter(prefix="/api/chats", tags=["chats"])

SSE_MEDIA_TYPE = "text/event-stream"
SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def parse_chat_id(chat_id: str) -> UUID:
    """Parse a path chat id; malformed ids look exactly like missing chats."""
    try:
        return UUID(chat_id)
    except ValueError:
        raise NotFoundError(ApiErrorCode.E_CHAT_NOT_FOUND, "Chat not found") from None


def wants_event_stream(request: Request, stream: bool) -> bool:
    return stream or SSE_MEDIA_TYPE in request.headers.get("accept", "")


def _prepare_stream(db: Session, viewer_id: UUID, chat_id: UUID, content: str | None) -> str:
    """Validation and authorization for SSE routes, run before the response starts."""
    text = send_message_service.validate_message_content(content)
    send_message_service.get_chat_for_viewer_or_404(db, viewer_id, chat_id)
    return text


def _streaming_response(
    request: Request,
    viewer_id: UUID,
    chat_id: UUID,
    content: str,
    assistant: AssistantClient,
) -> StreamingResponse:
    return StreamingResponse(
        stream_send_message(
            db_factory=get_db_factory(request),
            viewer_id=viewer_id,
            chat_id=chat_id,
            content=content,
            assistant=assistant,
        ),
        media_type=SSE_MEDIA_TYPE,
        headers=SSE_HEADERS,
    )


def _require_streaming_enabled() -> None:
    if not get_settings().enable_streaming:
        raise ApiError(ApiErrorCode.E_FORBIDDEN, "Streaming is disabled")


# =============================================================================
# Chat Endpoints
# =============================================================================


@router.get("")
def list_chats(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> list[dict]:
    """List the viewer's chats ordered by updated_at DESC, id DESC."""
    return [
        chats_service.chat_to_out(chat).to_json()
        for chat in chats_service.list_chats_for_user(db, viewer.user_id)
    ]


@router.post("")
def create_chat(
    body: CreateChatRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Create an empty chat with the given title."""
    chat = chats_service.create_chat(db, viewer.user_id, body.title)
    return chats_service.chat_to_out(chat).to_json()


@router.post("/messages")
async def send_message_new_chat(
    body: SendMessageRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    assistant: Annotated[AssistantClient, Depends(get_assistant)],
) -> dict:
    """Start a chat titled "New Chat" with a first message.

    Returns {chat, userMessage, assistantMessage} or {chat, userMessage, error}
    (HTTP 200 both); the chat reflects the generated title when one was set.

    Errors:
        E_MESSAGE_EMPTY / E_MESSAGE_TOO_LONG (400): No chat is created.
    """
    result = await send_message_service.send_message_new_chat(
        db, viewer.user_id, body.content, assistant
    )
    return result.to_new_chat_response().to_json(exclude_none=True)


@router.get("/{chat_id}")
def get_chat(
    chat_id: str,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Get a chat and its messages in chronological order.

    Errors:
        E_CHAT_NOT_FOUND (404): Chat doesn't exist or viewer is not the owner.
    """
    chat = send_message_service.get_chat_for_viewer_or_404(
        db, viewer.user_id, parse_chat_id(chat_id)
    )
    messages = chats_service.list_messages(db, chat.id)
    return ChatWithMessagesOut(
        chat=chats_service.chat_to_out(chat),
        messages=[chats_service.message_to_out(m) for m in messages],
    ).to_json()


@router.delete("/{chat_id}")
def delete_chat(
    chat_id: str,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Delete a chat and its messages.

    Always answers the same way, whether or not anything was deleted, so
    other users' chat ids cannot be probed.
    """
    try:
        parsed = UUID(chat_id)
    except ValueError:
        parsed = None
    if parsed is not None:
        chats_service.delete_chat(db, parsed, viewer.user_id)
    return MessageResponse(message="Chat deleted successfully").to_json()


# =============================================================================
# Message Endpoints
# =============================================================================


@router.post("/{chat_id}/messages", response_model=None)
async def send_message(
    chat_id: str,
    body: SendMessageRequest,
    request: Request,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    assistant: Annotated[AssistantClient, Depends(get_assistant)],
    stream: bool = Query(default=False, description="Respond with Server-Sent Events"),
) -> dict | StreamingResponse:
    """Send a message in an existing chat.

    Buffered: {userMessage, assistantMessage} or {userMessage, error} (HTTP 200 both).
    Streaming: data: {"text"} events, then data: {"done": true} or data: {"error"}.
    When streaming is disabled a streaming request gets the buffered body instead.

    Errors:
        E_MESSAGE_EMPTY / E_MESSAGE_TOO_LONG (400): Nothing is written.
        E_CHAT_NOT_FOUND (404): Chat doesn't exist or viewer is not the owner.
    """
    parsed_id = parse_chat_id(chat_id)

    if wants_event_stream(request, stream) and get_settings().enable_streaming:
        text = await run_in_threadpool(
            _prepare_stream, db, viewer.user_id, parsed_id, body.content
        )
        return _streaming_response(request, viewer.user_id, parsed_id, text, assistant)

    result = await send_message_service.send_message(
        db, viewer.user_id, parsed_id, body.content, assistant
    )
    return result.to_response().to_json(exclude_none=True)


@router.get("/{chat_id}/messages/stream", response_model=None)
async def stream_message(
    chat_id: str,
    request: Request,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    assistant: Annotated[AssistantClient, Depends(get_assistant)],
    q: str | None = Query(default=None, description="The user's question"),
) -> StreamingResponse:
    """SSE exchange for clients that can only issue GET (EventSource).

    Errors:
        E_INVALID_REQUEST (400): q is missing.
        E_CHAT_NOT_FOUND (404): Chat doesn't exist or viewer is not the owner.
    """
    if q is None:
        raise InvalidRequestError(
            message="Missing query parameter q",
            errors=[{"path": ["q"], "message": "Missing query parameter q"}],
        )
    _require_streaming_enabled()

    parsed_id = parse_chat_id(chat_id)
    text = await run_in_threadpool(_prepare_stream, db, viewer.user_id, parsed_id, q)
    return _streaming_response(request, viewer.user_id, parsed_id, text, assistant)

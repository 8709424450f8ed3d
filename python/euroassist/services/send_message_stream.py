"""Streaming send message service - async generator implementation.

The route validates the content and authorizes the chat before the response
starts, so those failures still map to 400/404. This generator covers the
rest of the exchange and yields SSE frames:

- data: {"text": "..."}                           one per delta, relayed immediately
- data: {"done": true}                            after the assistant turn is stored
- data: {"error": "Failed to stream AI response"} on generation or storage failure

Disconnects (ASGI stops iterating, or the task is cancelled) land in the
except branch: text accumulated so far is stored synchronously as the
assistant turn, and the title step is skipped.

Sync DB access uses run_in_threadpool (starlette) to avoid blocking the event loop.
The generator opens its own session; the request-scoped one is closed by the
time the body is sent.
"""

import asyncio
import json
from collections.abc import AsyncIterator, Callable
from uuid import UUID, uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from euroassist.errors import ApiError
from euroassist.logging import get_logger, set_exchange_id
from euroassist.services.llm import EMPTY_ANSWER_FALLBACK, AssistantClient, GenerationError
from euroassist.services.redact import safe_kv
from euroassist.services.send_message import (
    apply_title_policy,
    persist_assistant_turn,
    persist_user_turn,
)

logger = get_logger(__name__)

STREAM_FAILED_MESSAGE = "Failed to stream AI response"


def format_sse_event(data: dict) -> str:
    """Format data as an unnamed SSE event."""
    return f"data: {json.dumps(data)}\n\n"


async def stream_send_message(
    db_factory: Callable[[], Session],
    viewer_id: UUID,
    chat_id: UUID,
    content: str,
    assistant: AssistantClient,
) -> AsyncIterator[str]:
    """Run a streamed exchange for an already validated and authorized chat.

    Args:
        db_factory: Session factory; the generator owns the session it opens.
        viewer_id: Owner of the chat.
        chat_id: Target chat.
        content: Stripped, validated user message.
        assistant: Configured AssistantClient.

    Yields:
        SSE-formatted strings.
    """
    set_exchange_id(str(uuid4()))
    db = db_factory()
    deltas: list[str] = []
    # persist_user -> generating -> finalizing -> done
    phase = "persist_user"

    try:
        await run_in_threadpool(persist_user_turn, db, chat_id, content)

        phase = "generating"
        try:
            async for delta in assistant.generate_stream(content):
                deltas.append(delta)
                yield format_sse_event({"text": delta})
        except GenerationError as e:
            phase = "done"
            logger.warning(
                "exchange.generation_failed",
                chat_id=str(chat_id),
                error_class=e.error_class.value,
                streamed_chars=sum(len(d) for d in deltas),
            )
            yield format_sse_event({"error": STREAM_FAILED_MESSAGE})
            return

        if not deltas:
            deltas.append(EMPTY_ANSWER_FALLBACK)
            yield format_sse_event({"text": EMPTY_ANSWER_FALLBACK})

        phase = "finalizing"
        answer = "".join(deltas)
        await run_in_threadpool(persist_assistant_turn, db, chat_id, answer)
        phase = "done"
        logger.info(
            "exchange.completed",
            **safe_kv(chat_id=str(chat_id), streaming=True, answer_chars=len(answer)),
        )

        await apply_title_policy(db, viewer_id, chat_id, content, assistant)
        yield format_sse_event({"done": True})

    except (GeneratorExit, asyncio.CancelledError):
        # Awaiting is not possible here; a cancelled scope would cancel it again.
        partial = "".join(deltas)
        logger.info(
            "stream.client_disconnect",
            chat_id=str(chat_id),
            phase=phase,
            partial_chars=len(partial),
        )
        if phase == "generating" and partial:
            try:
                persist_assistant_turn(db, chat_id, partial)
            except (ApiError, SQLAlchemyError):
                logger.exception("stream.partial_persist_failed", chat_id=str(chat_id))
        raise

    except (ApiError, SQLAlchemyError) as e:
        logger.error(
            "stream.storage_failed",
            chat_id=str(chat_id),
            phase=phase,
            error_type=type(e).__name__,
        )
        # Once the assistant turn is stored the exchange counts as successful
        if phase == "done":
            yield format_sse_event({"done": True})
        else:
            yield format_sse_event({"error": STREAM_FAILED_MESSAGE})

    finally:
        db.close()
        set_exchange_id(None)

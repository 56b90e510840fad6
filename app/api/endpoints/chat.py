from typing import AsyncIterator

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from langchain_core.language_models.chat_models import BaseChatModel
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.api.deps import get_async_db, get_chat_model, get_current_identity, get_session_factory
from app.core.exceptions import UpstreamProviderError
from app.schemas.auth import Identity
from app.schemas.chat import ChatRequest, MessageRole
from app.services.authorization import AccessKind, authorize
from app.services.message_service import MessageService
from app.services.relay import ChatRelay, RelayCompleted, RelayEvent, RelayFailed, RelayFragment
from app.utils.logger import api_logger
from app.utils.sse import EVENT_DONE, EVENT_ERROR, EVENT_FRAGMENT, SSE_MEDIA_TYPE, encode_event

router = APIRouter()


def encode_relay_event(event: RelayEvent) -> str:
    if isinstance(event, RelayFragment):
        return encode_event(EVENT_FRAGMENT, {"text": event.text})
    if isinstance(event, RelayCompleted):
        return encode_event(EVENT_DONE, {"content": event.content, "message_id": event.message_id})
    return encode_event(EVENT_ERROR, {"error": event.error, "code": event.code})


async def _event_stream(first: RelayEvent, events: AsyncIterator[RelayEvent]) -> AsyncIterator[str]:
    try:
        yield encode_relay_event(first)
        async for event in events:
            yield encode_relay_event(event)
    finally:
        # Client gone or stream done: either way the relay and provider request end here
        await events.aclose()


@router.post("", response_class=StreamingResponse)
async def stream_chat(
    chat_request: ChatRequest,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_async_db),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    llm: BaseChatModel = Depends(get_chat_model),
):
    """
    Stream the assistant's reply to the given history as Server-Sent Events.

    Events: `fragment` ({"text"}) for each piece of generated text, then
    either `done` ({"content", "message_id"}) or `error` ({"error", "code"}).
    With a conversation_id the finished reply is appended to that
    conversation; the caller must own it.
    """
    conversation_id = chat_request.conversation_id
    api_logger.info("Chat stream requested", "CHAT",
                    user_id=identity.id, conversation_id=conversation_id,
                    history_length=len(chat_request.messages))

    on_complete = None
    if conversation_id:
        await authorize(db, identity, conversation_id, AccessKind.WRITE)
        # The stream can outlive the request session; release its connection now
        await db.close()

        async def on_complete(content: str):
            # Runs after the request session is closed
            async with session_factory() as session:
                return await MessageService.append_message(
                    session, conversation_id, MessageRole.ASSISTANT, content
                )

    relay = ChatRelay(llm, on_complete=on_complete)
    events = relay.stream(chat_request.messages)

    # Wait for the provider to accept the request so an immediate rejection
    # becomes a plain HTTP error instead of a one-event stream.
    first = await events.__anext__()
    if isinstance(first, RelayFailed):
        await events.aclose()
        raise UpstreamProviderError(first.error, code=first.code)

    return StreamingResponse(
        _event_stream(first, events),
        media_type=SSE_MEDIA_TYPE,
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )

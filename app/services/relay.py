"""
Streaming chat relay.

A relay takes the full conversation history, opens one streaming request to
the chat model, and yields each text fragment as soon as the model produces
it. When the model finishes, the concatenated reply is handed to the
on_complete hook exactly once, after the last fragment has been yielded, and
a terminal RelayCompleted event follows. A provider failure ends the stream
with RelayFailed and nothing is persisted.

Each relay object serves one request and is streamed once:

    idle -> streaming -> completed
                      -> failed

Closing the event iterator early (client disconnect) counts as failed.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Sequence, Union

from langchain_core.language_models.chat_models import BaseChatModel

from app.core.config import settings
from app.core.exceptions import UpstreamProviderError
from app.schemas.chat import MessageBase, MessageResponse
from app.services.llm import classify_provider_error, to_provider_messages
from app.utils.logger import relay_logger

CompletionHook = Callable[[str], Awaitable[Optional[MessageResponse]]]


class RelayState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class RelayFragment:
    text: str


@dataclass(frozen=True)
class RelayCompleted:
    content: str
    message_id: Optional[str] = None


@dataclass(frozen=True)
class RelayFailed:
    error: str
    code: str


RelayEvent = Union[RelayFragment, RelayCompleted, RelayFailed]


def _fragment_text(chunk) -> str:
    content = getattr(chunk, "content", chunk)
    if isinstance(content, str):
        return content
    # Content-block lists: keep the text blocks only
    if isinstance(content, list):
        return "".join(
            block.get("text", "") if isinstance(block, dict) else str(block)
            for block in content
        )
    return ""


class ChatRelay:
    """Relays one model response stream to one caller."""

    def __init__(
        self,
        llm: BaseChatModel,
        on_complete: Optional[CompletionHook] = None,
        system_prompt: Optional[str] = None,
        max_duration: Optional[float] = None,
    ):
        self.llm = llm
        self.on_complete = on_complete
        self.system_prompt = system_prompt or settings.CHAT_SYSTEM_PROMPT
        self.max_duration = max_duration if max_duration is not None else settings.CHAT_MAX_DURATION_SECONDS
        self.state = RelayState.IDLE

    async def stream(self, history: Sequence[MessageBase]) -> AsyncIterator[RelayEvent]:
        """Yield RelayFragment events in arrival order, then one terminal event."""
        if self.state is not RelayState.IDLE:
            raise RuntimeError(f"Relay already used (state={self.state.value})")

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.max_duration
        fragments: List[str] = []
        failure: Optional[UpstreamProviderError] = None
        exhausted = False

        relay_logger.info("Opening model stream", "STREAM", history_length=len(history))
        provider_stream = self.llm.astream(to_provider_messages(self.system_prompt, history))
        self.state = RelayState.STREAMING

        try:
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    raise asyncio.TimeoutError()
                try:
                    chunk = await asyncio.wait_for(provider_stream.__anext__(), timeout=remaining)
                except StopAsyncIteration:
                    exhausted = True
                    break

                text = _fragment_text(chunk)
                if text:
                    fragments.append(text)
                    yield RelayFragment(text)
        except asyncio.TimeoutError as e:
            failure = UpstreamProviderError("Model response exceeded the time limit", code="timeout", original_error=e)
        except Exception as e:
            failure = classify_provider_error(e)
        finally:
            await self._close_provider_stream(provider_stream)
            if not exhausted and failure is None:
                # Closed from outside before the provider finished
                self.state = RelayState.FAILED
                relay_logger.warning("Stream cancelled before completion; reply not persisted", "STREAM",
                                     fragments=len(fragments))

        if failure is not None:
            self.state = RelayState.FAILED
            relay_logger.error(f"Model stream failed: {failure.message}", "STREAM",
                               code=failure.code, fragments=len(fragments))
            yield RelayFailed(error=failure.message, code=failure.code)
            return

        content = "".join(fragments)
        self.state = RelayState.COMPLETED
        message = await self._run_completion_hook(content)
        relay_logger.success("Model stream completed", "STREAM",
                             fragments=len(fragments), length=len(content))
        yield RelayCompleted(content=content, message_id=message.id if message else None)

    async def _run_completion_hook(self, content: str) -> Optional[MessageResponse]:
        """Persist the finished reply. Everything has already been sent, so a
        failure here is logged and not reported to the caller."""
        if self.on_complete is None:
            return None
        try:
            return await self.on_complete(content)
        except Exception as e:
            relay_logger.error(f"Failed to persist assistant reply: {e}", "PERSIST", length=len(content))
            return None

    @staticmethod
    async def _close_provider_stream(provider_stream) -> None:
        aclose = getattr(provider_stream, "aclose", None)
        if aclose is None:
            return
        try:
            await aclose()
        except Exception as e:
            relay_logger.warning(f"Error closing provider stream: {e}", "STREAM")

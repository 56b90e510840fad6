"""
Integration tests for the streaming chat endpoint.
"""

import httpx
import openai
import pytest
import pytest_asyncio
from httpx import AsyncClient
from langchain_core.messages import HumanMessage, SystemMessage

from app.api.deps import get_chat_model
from app.api.endpoints.chat import stream_chat
from app.core.config import settings
from app.main import app
from app.models.message import Message
from app.schemas.chat import ChatRequest
from app.services.conversation_service import ConversationService
from tests.async_test_utils import ALICE, AsyncDatabaseTestUtils, FakeChatModel, read_events

HISTORY = [{"role": "user", "content": "Say hello"}]


def rate_limit_error() -> openai.RateLimitError:
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    return openai.RateLimitError("Rate limit reached", response=httpx.Response(429, request=request), body=None)


async def create_conversation(client: AsyncClient, headers) -> str:
    response = await client.post("/api/conversations", json={"messages": HISTORY}, headers=headers)
    return response.json()["id"]


async def list_messages(client: AsyncClient, headers, conversation_id: str):
    response = await client.get(f"/api/conversations/{conversation_id}/messages", headers=headers)
    return response.json()


class TestChatStream:

    @pytest.mark.asyncio
    async def test_streams_fragments_then_done(self, async_client: AsyncClient, alice_headers, chat_model):
        chat_model.chunks = ["Hel", "lo", " world"]

        response = await async_client.post("/api/chat", json={"messages": HISTORY}, headers=alice_headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert await read_events(response) == [
            ("fragment", {"text": "Hel"}),
            ("fragment", {"text": "lo"}),
            ("fragment", {"text": " world"}),
            ("done", {"content": "Hello world", "message_id": None}),
        ]

    @pytest.mark.asyncio
    async def test_sends_system_prompt_and_full_history(self, async_client: AsyncClient, alice_headers, chat_model):
        history = [
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Hello"},
            {"role": "user", "content": "What's 2+2?"},
        ]

        await async_client.post("/api/chat", json={"messages": history}, headers=alice_headers)

        sent = chat_model.calls[0]
        assert isinstance(sent[0], SystemMessage)
        assert sent[0].content == settings.CHAT_SYSTEM_PROMPT
        assert [m.content for m in sent[1:]] == ["Hi", "Hello", "What's 2+2?"]
        assert isinstance(sent[-1], HumanMessage)

    @pytest.mark.asyncio
    async def test_reply_is_persisted_to_conversation(self, async_client: AsyncClient, alice_headers, chat_model):
        chat_model.chunks = ["Hel", "lo"]
        conversation_id = await create_conversation(async_client, alice_headers)

        response = await async_client.post(
            "/api/chat", json={"conversation_id": conversation_id, "messages": HISTORY}, headers=alice_headers
        )
        events = await read_events(response)

        event, done = events[-1]
        assert event == "done"
        assert done["content"] == "Hello"
        assert done["message_id"]

        messages = await list_messages(async_client, alice_headers, conversation_id)
        assert [(m["role"], m["content"]) for m in messages] == [("user", "Say hello"), ("assistant", "Hello")]
        assert messages[-1]["id"] == done["message_id"]

    @pytest.mark.asyncio
    async def test_mid_stream_failure_sends_error_and_persists_nothing(
        self, async_client: AsyncClient, alice_headers, chat_model
    ):
        chat_model.chunks = ["Hel"]
        chat_model.error = rate_limit_error()
        conversation_id = await create_conversation(async_client, alice_headers)

        response = await async_client.post(
            "/api/chat", json={"conversation_id": conversation_id, "messages": HISTORY}, headers=alice_headers
        )

        assert response.status_code == 200
        assert await read_events(response) == [
            ("fragment", {"text": "Hel"}),
            ("error", {"error": "Rate limited by model provider", "code": "rate_limited"}),
        ]
        messages = await list_messages(async_client, alice_headers, conversation_id)
        assert [m["role"] for m in messages] == ["user"]

    @pytest.mark.asyncio
    async def test_failure_before_first_fragment_is_http_error(
        self, async_client: AsyncClient, alice_headers, chat_model
    ):
        chat_model.chunks = []
        chat_model.error = rate_limit_error()
        conversation_id = await create_conversation(async_client, alice_headers)

        response = await async_client.post(
            "/api/chat", json={"conversation_id": conversation_id, "messages": HISTORY}, headers=alice_headers
        )

        assert response.status_code == 500
        assert response.json() == {"error": "Rate limited by model provider", "code": "rate_limited"}
        assert len(await list_messages(async_client, alice_headers, conversation_id)) == 1


class TestChatRequestErrors:

    @pytest.mark.asyncio
    async def test_requires_authentication(self, async_client: AsyncClient, chat_model):
        response = await async_client.post("/api/chat", json={"messages": HISTORY})

        assert response.status_code == 401
        assert chat_model.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"messages": []},
            {},
            {"messages": [{"role": "user"}]},
            {"messages": [{"role": "robot", "content": "beep"}]},
        ],
    )
    async def test_invalid_body(self, async_client: AsyncClient, alice_headers, chat_model, payload):
        response = await async_client.post("/api/chat", json=payload, headers=alice_headers)

        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"
        assert chat_model.calls == []

    @pytest.mark.asyncio
    async def test_missing_api_key(self, async_client: AsyncClient, alice_headers, monkeypatch):
        app.dependency_overrides.pop(get_chat_model)
        monkeypatch.setattr(settings, "OPENAI_API_KEY", "")

        response = await async_client.post("/api/chat", json={"messages": HISTORY}, headers=alice_headers)

        assert response.status_code == 500
        assert response.json() == {"error": "Model provider API key is not configured", "code": "missing_api_key"}

    @pytest.mark.asyncio
    async def test_other_users_conversation_is_forbidden(
        self, async_client: AsyncClient, alice_headers, bob_headers, chat_model
    ):
        conversation_id = await create_conversation(async_client, alice_headers)

        response = await async_client.post(
            "/api/chat", json={"conversation_id": conversation_id, "messages": HISTORY}, headers=bob_headers
        )

        assert response.status_code == 403
        assert chat_model.calls == []
        assert len(await list_messages(async_client, alice_headers, conversation_id)) == 1

    @pytest.mark.asyncio
    async def test_unknown_conversation_is_not_found(self, async_client: AsyncClient, alice_headers, chat_model):
        response = await async_client.post(
            "/api/chat",
            json={"conversation_id": "00000000-0000-0000-0000-000000000000", "messages": HISTORY},
            headers=alice_headers,
        )

        assert response.status_code == 404
        assert chat_model.calls == []


class TestChatStreamLifecycle:
    """Calls the route function directly to observe the response before it is sent."""

    @pytest_asyncio.fixture
    async def conversation_id(self, async_db_session):
        conversation = await ConversationService.create_conversation(async_db_session, ALICE)
        return conversation.id

    async def open_stream(self, session, session_factory, llm, conversation_id):
        request = ChatRequest(conversation_id=conversation_id, messages=HISTORY)
        return await stream_chat(request, identity=ALICE, db=session, session_factory=session_factory, llm=llm)

    @pytest.mark.asyncio
    async def test_request_session_is_released_before_streaming(self, session_factory, conversation_id):
        llm = FakeChatModel(chunks=["Hel", "lo"])

        async with session_factory() as session:
            response = await self.open_stream(session, session_factory, llm, conversation_id)

            assert not session.in_transaction()
            frames = [frame async for frame in response.body_iterator]

        assert frames[-1].startswith("event: done")
        async with session_factory() as fresh:
            assert await AsyncDatabaseTestUtils(fresh).count_records(Message, role="assistant") == 1

    @pytest.mark.asyncio
    async def test_disconnect_mid_stream_persists_nothing(self, session_factory, conversation_id):
        llm = FakeChatModel(chunks=["one", "two", "three"])

        async with session_factory() as session:
            response = await self.open_stream(session, session_factory, llm, conversation_id)
            first = await response.body_iterator.__anext__()
            await response.body_iterator.aclose()

        assert first == 'event: fragment\ndata: {"text":"one"}\n\n'
        assert llm.closed is True
        async with session_factory() as fresh:
            assert await AsyncDatabaseTestUtils(fresh).count_records(Message, role="assistant") == 0

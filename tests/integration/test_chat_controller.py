"""
Integration tests for ChatController driving the real API in-process.
"""

import httpx
import openai
import pytest
from httpx import AsyncClient

from app.client.controller import ChatController
from tests.async_test_utils import ALICE


def rate_limit_error() -> openai.RateLimitError:
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    return openai.RateLimitError("Rate limit reached", response=httpx.Response(429, request=request), body=None)


@pytest.fixture
def controller(async_client: AsyncClient, alice_headers) -> ChatController:
    async_client.headers.update(alice_headers)
    return ChatController(async_client)


async def server_messages(client: AsyncClient, conversation_id: str):
    response = await client.get(f"/api/conversations/{conversation_id}/messages")
    return [(m["role"], m["content"]) for m in response.json()]


class TestChatController:

    @pytest.mark.asyncio
    async def test_sign_in_loads_identity_and_conversations(self, controller: ChatController):
        await controller.http.post("/api/conversations", json={})

        identity = await controller.sign_in()

        assert identity["id"] == ALICE.id
        assert controller.state.identity == identity
        assert len(controller.state.conversations) == 1

    @pytest.mark.asyncio
    async def test_sign_in_without_session(self, async_client: AsyncClient):
        controller = ChatController(async_client)

        assert await controller.sign_in() is None
        assert controller.state.identity is None

    @pytest.mark.asyncio
    async def test_send_creates_conversation_and_streams_reply(self, controller: ChatController, chat_model):
        chat_model.chunks = ["Hello", " there"]
        await controller.sign_in()

        reply = await controller.send("Hi")

        assert reply.content == "Hello there"
        assert reply.id
        state = controller.state
        assert state.current_conversation_id is not None
        assert [c.id for c in state.conversations] == [state.current_conversation_id]
        assert [(m.role, m.content) for m in state.messages] == [("user", "Hi"), ("assistant", "Hello there")]
        assert state.messages[0].id is not None
        assert state.is_streaming is False
        assert await server_messages(controller.http, state.current_conversation_id) == [
            ("user", "Hi"),
            ("assistant", "Hello there"),
        ]

    @pytest.mark.asyncio
    async def test_send_passes_full_history(self, controller: ChatController, chat_model):
        await controller.send("first")
        await controller.send("second")

        sent = [m.content for m in chat_model.calls[-1][1:]]
        assert sent == ["first", "Hello there", "second"]

    @pytest.mark.asyncio
    async def test_blank_message_is_ignored(self, controller: ChatController, chat_model):
        assert await controller.send("   ") is None
        assert controller.state.messages == []
        assert chat_model.calls == []

    @pytest.mark.asyncio
    async def test_mid_stream_failure_keeps_transcript(self, controller: ChatController, chat_model):
        chat_model.chunks = ["Hel"]
        chat_model.error = rate_limit_error()

        assert await controller.send("Hi") is None

        state = controller.state
        assert [(m.role, m.content) for m in state.messages] == [("user", "Hi"), ("assistant", "Hel")]
        assert state.notifications == ["Rate limited by model provider"]
        assert state.is_streaming is False
        assert await server_messages(controller.http, state.current_conversation_id) == [("user", "Hi")]

    @pytest.mark.asyncio
    async def test_rejected_request_notifies_without_rollback(self, controller: ChatController, chat_model):
        chat_model.chunks = []
        chat_model.error = rate_limit_error()

        assert await controller.send("Hi") is None

        assert [(m.role, m.content) for m in controller.state.messages] == [("user", "Hi")]
        assert controller.state.notifications == ["Rate limited by model provider"]

    @pytest.mark.asyncio
    async def test_select_conversation_loads_messages(self, controller: ChatController):
        response = await controller.http.post(
            "/api/conversations",
            json={"messages": [{"role": "user", "content": "Hi"}, {"role": "assistant", "content": "Hey"}]},
        )
        conversation_id = response.json()["id"]

        messages = await controller.select_conversation(conversation_id)

        assert controller.state.current_conversation_id == conversation_id
        assert [m.content for m in messages] == ["Hi", "Hey"]

    @pytest.mark.asyncio
    async def test_select_foreign_conversation_notifies(self, controller: ChatController, async_client, bob_headers):
        response = await async_client.post("/api/conversations", json={}, headers=bob_headers)

        await controller.select_conversation(response.json()["id"])

        assert controller.state.current_conversation_id is None
        assert controller.state.notifications == ["Failed to load conversation."]

    @pytest.mark.asyncio
    async def test_delete_current_conversation(self, controller: ChatController):
        await controller.send("Hi")
        conversation_id = controller.state.current_conversation_id

        assert await controller.delete_conversation(conversation_id) is True

        assert controller.state.current_conversation_id is None
        assert controller.state.messages == []
        assert controller.state.conversations == []
        assert await controller.load_conversations() == []

    @pytest.mark.asyncio
    async def test_sign_out_clears_state(self, controller: ChatController):
        await controller.sign_in()
        await controller.send("Hi")

        controller.sign_out()

        assert controller.state.identity is None
        assert controller.state.messages == []
        assert controller.state.conversations == []


def malformed_chat_server(chat_body: str) -> httpx.MockTransport:
    """A minimal API whose /chat stream carries the given body."""

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/api/conversations":
            return httpx.Response(201, json={"id": "c1", "owner_id": ALICE.id, "created_at": "2026-01-01T00:00:00"})
        if path == "/api/conversations/c1/messages":
            return httpx.Response(
                201,
                json={"id": "m1", "conversation_id": "c1", "role": "user", "content": "Hi",
                      "created_at": "2026-01-01T00:00:01"},
            )
        if path == "/api/chat":
            return httpx.Response(200, text=chat_body, headers={"Content-Type": "text/event-stream"})
        return httpx.Response(404, json={"error": "Not found"})

    return httpx.MockTransport(handler)


class TestChatControllerMalformedStream:

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "chat_body",
        [
            'event: fragment\ndata: {"text":"Hel"}\n\nevent: fragment\ndata: {not json\n\n',
            'event: fragment\ndata: {"text":"Hel"}\n\nevent: fragment\ndata: {"content":"lo"}\n\n',
        ],
    )
    async def test_unreadable_event_ends_stream_with_notification(self, chat_body):
        async with httpx.AsyncClient(transport=malformed_chat_server(chat_body), base_url="http://test") as http:
            controller = ChatController(http)

            assert await controller.send("Hi") is None

        state = controller.state
        assert state.is_streaming is False
        assert state.notifications == ["The assistant sent an unreadable reply."]
        assert [(m.role, m.content) for m in state.messages] == [("user", "Hi"), ("assistant", "Hel")]

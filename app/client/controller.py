"""
Conversation controller for API clients.

Drives the HTTP API the way the chat page does: conversations are listed,
created, selected and deleted through the conversation endpoints, and sending
a message persists the user turn and then streams the assistant reply from
/chat into the local transcript.

    async with httpx.AsyncClient(base_url="http://localhost:8000", cookies=session_cookies) as http:
        controller = ChatController(http)
        await controller.sign_in()
        await controller.send("Hello!")
        print(controller.state.messages[-1].content)
"""

from typing import Any, Dict, List, Optional

import httpx

from app.client.state import ChatMessage, ClientState, ConversationStore, ConversationSummary
from app.core.config import settings
from app.utils.logger import get_logger
from app.utils.sse import EVENT_DONE, EVENT_ERROR, EVENT_FRAGMENT, iter_events

client_logger = get_logger("CLIENT")


def _error_message(response: httpx.Response, fallback: str) -> str:
    try:
        return response.json().get("error", fallback)
    except ValueError:
        return fallback


class ChatController:
    def __init__(
        self,
        http: httpx.AsyncClient,
        store: Optional[ConversationStore] = None,
        api_prefix: str = settings.API_PREFIX,
    ):
        self.http = http
        self.store = store or ConversationStore()
        self.api_prefix = api_prefix.rstrip("/")

    @property
    def state(self) -> ClientState:
        return self.store.state

    def _url(self, path: str) -> str:
        return f"{self.api_prefix}{path}"

    async def sign_in(self) -> Optional[Dict[str, Any]]:
        """Resolve the session the HTTP client carries and load its conversations."""
        response = await self.http.get(self._url("/auth/me"))
        if response.status_code != 200:
            self.store.on_auth_change(None)
            return None

        identity = response.json()
        self.store.on_auth_change(identity)
        await self.load_conversations()
        return identity

    def sign_out(self):
        self.store.on_auth_change(None)

    async def load_conversations(self) -> List[ConversationSummary]:
        try:
            response = await self.http.get(self._url("/conversations"))
            response.raise_for_status()
        except httpx.HTTPError as e:
            client_logger.error(f"Error fetching conversations: {e}", "CONVERSATIONS")
            self.store.notify("Failed to load conversations. Please try again.")
            return self.state.conversations

        conversations = [ConversationSummary.from_api(item) for item in response.json()]
        self.store.on_conversations_loaded(conversations)
        return conversations

    async def new_conversation(self) -> Optional[ConversationSummary]:
        try:
            response = await self.http.post(self._url("/conversations"), json={})
            response.raise_for_status()
        except httpx.HTTPError as e:
            client_logger.error(f"Error creating conversation: {e}", "CONVERSATIONS")
            self.store.notify("Failed to create conversation.")
            return None

        conversation = ConversationSummary.from_api(response.json())
        self.store.on_conversation_created(conversation)
        return conversation

    async def select_conversation(self, conversation_id: str) -> List[ChatMessage]:
        try:
            response = await self.http.get(self._url(f"/conversations/{conversation_id}/messages"))
            response.raise_for_status()
        except httpx.HTTPError as e:
            client_logger.error(f"Error loading conversation: {e}", "CONVERSATIONS", conversation_id=conversation_id)
            self.store.notify("Failed to load conversation.")
            return self.state.messages

        messages = [ChatMessage.from_api(item) for item in response.json()]
        self.store.on_conversation_selected(conversation_id, messages)
        return messages

    async def delete_conversation(self, conversation_id: str) -> bool:
        try:
            response = await self.http.delete(self._url(f"/conversations/{conversation_id}"))
            response.raise_for_status()
        except httpx.HTTPError as e:
            client_logger.error(f"Error deleting conversation: {e}", "CONVERSATIONS", conversation_id=conversation_id)
            self.store.notify("Failed to delete conversation.")
            return False

        self.store.on_conversation_deleted(conversation_id)
        return True

    async def send(self, content: str) -> Optional[ChatMessage]:
        """Send a user turn and stream the assistant's reply into the transcript.

        Returns the finished assistant message, or None if the reply failed
        (a notification is recorded and the user's turn stays in place).
        """
        if not content.strip():
            return None

        if self.state.current_conversation_id is None:
            if await self.new_conversation() is None:
                return None
        conversation_id = self.state.current_conversation_id

        user_message = self.store.on_user_message(content)
        await self._persist_user_message(conversation_id, user_message)

        history = [message.to_history() for message in self.state.messages]
        self.store.on_stream_started()
        return await self._stream_reply(conversation_id, history)

    async def _persist_user_message(self, conversation_id: str, message: ChatMessage):
        try:
            response = await self.http.post(
                self._url(f"/conversations/{conversation_id}/messages"),
                json=message.to_history(),
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            client_logger.error(f"Error saving message: {e}", "MESSAGE", conversation_id=conversation_id)
            self.store.notify("Failed to save your message.")
            return

        saved = response.json()
        message.id = saved["id"]
        message.created_at = saved["created_at"]

    async def _stream_reply(self, conversation_id: str, history: List[Dict[str, str]]) -> Optional[ChatMessage]:
        payload = {"conversation_id": conversation_id, "messages": history}
        try:
            async with self.http.stream("POST", self._url("/chat"), json=payload) as response:
                if response.status_code != 200:
                    await response.aread()
                    self.store.on_stream_failed(_error_message(response, "The assistant could not respond."))
                    return None

                async for event, data in iter_events(response.aiter_lines()):
                    if event == EVENT_FRAGMENT:
                        self.store.on_message_stream_fragment(data["text"])
                    elif event == EVENT_DONE:
                        return self.store.on_stream_completed(data.get("message_id"))
                    elif event == EVENT_ERROR:
                        self.store.on_stream_failed(data.get("error", "The assistant could not respond."))
                        return None
        except httpx.HTTPError as e:
            client_logger.error(f"Chat stream failed: {e}", "STREAM", conversation_id=conversation_id)
            self.store.on_stream_failed("Connection to the assistant was lost.")
            return None
        except (ValueError, KeyError) as e:
            client_logger.error(f"Malformed chat stream event: {e}", "STREAM", conversation_id=conversation_id)
            self.store.on_stream_failed("The assistant sent an unreadable reply.")
            return None

        self.store.on_stream_failed("The reply ended unexpectedly.")
        return None

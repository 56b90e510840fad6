"""
Client-side conversation state.

All client state lives in one ClientState owned by a ConversationStore and
changes only through the store's on_* transitions.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

ASSISTANT = "assistant"
USER = "user"


@dataclass
class ChatMessage:
    role: str
    content: str
    id: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "ChatMessage":
        return cls(role=data["role"], content=data["content"], id=data.get("id"), created_at=data.get("created_at"))

    def to_history(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class ConversationSummary:
    id: str
    owner_id: str
    created_at: str

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "ConversationSummary":
        return cls(id=data["id"], owner_id=data["owner_id"], created_at=data["created_at"])


@dataclass
class ClientState:
    identity: Optional[Dict[str, Any]] = None
    conversations: List[ConversationSummary] = field(default_factory=list)
    current_conversation_id: Optional[str] = None
    messages: List[ChatMessage] = field(default_factory=list)
    is_streaming: bool = False
    notifications: List[str] = field(default_factory=list)


class ConversationStore:
    """Owns ClientState and the transitions between its values."""

    def __init__(self):
        self.state = ClientState()

    def on_auth_change(self, identity: Optional[Dict[str, Any]]):
        if identity is None:
            # Signed out: nothing of the previous user survives
            self.state = ClientState()
            return
        self.state.identity = identity

    def on_conversations_loaded(self, conversations: List[ConversationSummary]):
        self.state.conversations = list(conversations)

    def on_conversation_created(self, conversation: ConversationSummary):
        self.state.conversations.insert(0, conversation)
        self.state.current_conversation_id = conversation.id
        self.state.messages = []

    def on_conversation_selected(self, conversation_id: str, messages: List[ChatMessage]):
        self.state.current_conversation_id = conversation_id
        self.state.messages = list(messages)

    def on_conversation_deleted(self, conversation_id: str):
        self.state.conversations = [c for c in self.state.conversations if c.id != conversation_id]
        if self.state.current_conversation_id == conversation_id:
            self.state.current_conversation_id = None
            self.state.messages = []

    def on_user_message(self, content: str) -> ChatMessage:
        message = ChatMessage(role=USER, content=content)
        self.state.messages.append(message)
        return message

    def on_stream_started(self) -> ChatMessage:
        placeholder = ChatMessage(role=ASSISTANT, content="")
        self.state.messages.append(placeholder)
        self.state.is_streaming = True
        return placeholder

    def on_message_stream_fragment(self, text: str):
        if not self.state.is_streaming:
            return
        self.state.messages[-1].content += text

    def on_stream_completed(self, message_id: Optional[str]) -> ChatMessage:
        message = self.state.messages[-1]
        message.id = message_id
        self.state.is_streaming = False
        return message

    def on_stream_failed(self, error: str):
        """Stop streaming and tell the user; whatever was already shown stays."""
        if self.state.is_streaming and not self.state.messages[-1].content:
            self.state.messages.pop()
        self.state.is_streaming = False
        self.notify(error)

    def notify(self, message: str):
        self.state.notifications.append(message)

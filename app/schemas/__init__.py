"""Pydantic schemas for request and response validation."""

from .auth import Identity
from .chat import (
    ChatRequest,
    ConversationCreate,
    ConversationResponse,
    ConversationWithMessages,
    DeleteResponse,
    MessageBase,
    MessageCreate,
    MessageResponse,
    MessageRole,
)

__all__ = [
    "Identity",
    "ChatRequest",
    "ConversationCreate",
    "ConversationResponse",
    "ConversationWithMessages",
    "DeleteResponse",
    "MessageBase",
    "MessageCreate",
    "MessageResponse",
    "MessageRole",
]

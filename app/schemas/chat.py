from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class MessageRole(str, Enum):
    """Who authored a message."""
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


# Message Schemas
class MessageBase(BaseModel):
    """A single chat turn as sent by clients."""
    role: MessageRole = Field(..., description="Author of the message")
    content: str = Field(..., description="Message text, stored verbatim")


class MessageCreate(MessageBase):
    """Schema for appending a message to a conversation."""
    pass


class MessageResponse(MessageBase):
    """Schema for a persisted message."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    conversation_id: str
    created_at: datetime


# Conversation Schemas
class ConversationCreate(BaseModel):
    """Schema for creating a conversation, optionally seeded with messages."""
    messages: Optional[List[MessageCreate]] = Field(default=None, description="Initial messages, stored in order")


class ConversationResponse(BaseModel):
    """Schema for a conversation without its messages."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    owner_id: str
    created_at: datetime


class ConversationWithMessages(ConversationResponse):
    """Schema for a conversation together with its transcript."""
    messages: List[MessageResponse] = Field(default_factory=list)


class DeleteResponse(BaseModel):
    success: bool = True


# Streaming chat
class ChatRequest(BaseModel):
    """Schema for a streaming chat request.

    The provider keeps no state between calls, so the full history is sent on
    every turn. When conversation_id is given the finished assistant reply is
    appended to that conversation.
    """
    messages: List[MessageBase] = Field(..., min_length=1, description="Full ordered conversation history")
    conversation_id: Optional[str] = Field(default=None, description="Conversation that receives the assistant reply")

"""Database models."""

# Import all models here to ensure they're recognized by SQLAlchemy
from app.models.conversation import Conversation
from app.models.message import Message

__all__ = [
    "Conversation",
    "Message",
]

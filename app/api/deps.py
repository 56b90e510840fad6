"""
API dependency injection module.

Every endpoint imports its dependencies from here, so dependency overrides
(tests, alternate deployments) key on the objects exported below.
"""

from app.db.async_session import get_async_db, get_session_factory
from app.services.authorization import readable_conversation, writable_conversation
from app.services.identity import get_current_identity, get_identity_provider
from app.services.llm import get_chat_model

__all__ = [
    "get_async_db",
    "get_session_factory",
    "get_current_identity",
    "get_identity_provider",
    "get_chat_model",
    "readable_conversation",
    "writable_conversation",
]

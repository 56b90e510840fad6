"""
Conversation-level authorization.

Ownership of the parent conversation is the only thing that grants access to
its messages. Every route that touches a conversation goes through
ConversationGuard; there is no ungated path.
"""

from enum import Enum
from typing import Optional

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import Forbidden, NotFound, Unauthenticated
from app.db.async_session import get_async_db
from app.models.conversation import Conversation
from app.schemas.auth import Identity
from app.services.base import execute_or_raise
from app.services.identity import get_current_identity
from app.utils.logger import auth_logger


class AccessKind(str, Enum):
    """Kind of access requested on a conversation.

    Both kinds currently resolve through ownership; they are kept apart so a
    read-only sharing rule can be added without touching call sites.
    """
    READ = "read"
    WRITE = "write"


async def authorize(
    db: AsyncSession,
    identity: Optional[Identity],
    conversation_id: str,
    access: AccessKind,
) -> Conversation:
    """Return the conversation if identity may access it, else raise.

    Raises:
        Unauthenticated: no identity
        NotFound: no conversation with that id
        Forbidden: the conversation belongs to someone else
    """
    if identity is None:
        raise Unauthenticated()

    result = await execute_or_raise(
        db, select(Conversation).where(Conversation.id == conversation_id), "load conversation"
    )
    conversation = result.scalar_one_or_none()

    if conversation is None:
        raise NotFound()

    if conversation.owner_id != identity.id:
        auth_logger.warning("Conversation access denied", "GUARD",
                            conversation_id=conversation_id, user_id=identity.id, access=access.value)
        raise Forbidden("You do not have access to this conversation")

    return conversation


class ConversationGuard:
    """FastAPI dependency resolving the {conversation_id} path parameter to an
    authorized Conversation.

    Usage:
        @router.get("/{conversation_id}/messages")
        async def list_messages(conversation: Conversation = Depends(ConversationGuard(AccessKind.READ))):
            ...
    """

    def __init__(self, access: AccessKind):
        self.access = access

    async def __call__(
        self,
        conversation_id: str,
        identity: Identity = Depends(get_current_identity),
        db: AsyncSession = Depends(get_async_db),
    ) -> Conversation:
        return await authorize(db, identity, conversation_id, self.access)


readable_conversation = ConversationGuard(AccessKind.READ)
writable_conversation = ConversationGuard(AccessKind.WRITE)

from typing import List, Optional, Sequence

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.conversation import Conversation
from app.models.message import Message
from app.schemas.auth import Identity
from app.schemas.chat import ConversationResponse, ConversationWithMessages, MessageBase
from app.services.base import commit_or_raise, execute_or_raise, flush_or_raise, refresh_or_raise
from app.services.message_service import MessageService
from app.utils.logger import db_logger


class ConversationService:
    """Create, list, read and delete conversations.

    Methods taking a Conversation expect it to come from the conversation
    guard, i.e. ownership has already been checked.
    """

    @staticmethod
    async def list_conversations(db: AsyncSession, identity: Identity) -> List[ConversationWithMessages]:
        """Owned conversations, newest first, each with its messages oldest first."""
        result = await execute_or_raise(
            db,
            select(Conversation)
            .options(selectinload(Conversation.messages))
            .where(Conversation.owner_id == identity.id)
            .order_by(Conversation.created_at.desc()),
            "list conversations",
        )
        return [ConversationWithMessages.model_validate(conv) for conv in result.scalars().all()]

    @staticmethod
    async def create_conversation(
        db: AsyncSession,
        identity: Identity,
        seed_messages: Optional[Sequence[MessageBase]] = None,
    ) -> ConversationResponse:
        """Create a conversation and its seed messages in a single transaction."""
        db_conversation = Conversation(owner_id=identity.id)
        db.add(db_conversation)

        seed_count = 0
        if seed_messages:
            await flush_or_raise(db, "create conversation")
            seeded = MessageService.build_messages(db_conversation.id, seed_messages)
            db.add_all(seeded)
            seed_count = len(seeded)

        await commit_or_raise(db, "create conversation")
        await refresh_or_raise(db, db_conversation, "load created conversation")

        db_logger.info("Conversation created", "CONVERSATION",
                       conversation_id=db_conversation.id, user_id=identity.id, seed_messages=seed_count)
        return ConversationResponse.model_validate(db_conversation)

    @staticmethod
    async def get_conversation(db: AsyncSession, conversation: Conversation) -> ConversationWithMessages:
        messages = await MessageService.list_messages(db, conversation.id)
        return ConversationWithMessages(
            id=conversation.id,
            owner_id=conversation.owner_id,
            created_at=conversation.created_at,
            messages=messages,
        )

    @staticmethod
    async def delete_conversation(db: AsyncSession, conversation: Conversation) -> None:
        """Remove a conversation and every message in it."""
        conversation_id = conversation.id
        await execute_or_raise(
            db, delete(Message).where(Message.conversation_id == conversation_id), "delete messages"
        )
        await execute_or_raise(
            db, delete(Conversation).where(Conversation.id == conversation_id), "delete conversation"
        )
        await commit_or_raise(db, "delete conversation")

        db_logger.info("Conversation deleted", "CONVERSATION", conversation_id=conversation_id)

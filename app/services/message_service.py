from typing import List, Sequence, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.message import Message
from app.schemas.chat import MessageBase, MessageResponse, MessageRole
from app.services.base import commit_or_raise, execute_or_raise, refresh_or_raise
from app.utils.clock import utcnow
from app.utils.logger import db_logger


class MessageService:
    """Appends and reads messages.

    Callers must already have passed the conversation guard for the access
    they need; nothing here re-checks ownership.
    """

    @staticmethod
    def build_messages(conversation_id: str, messages: Sequence[MessageBase]) -> List[Message]:
        """Create unsaved rows for messages, in order.

        Timestamps come from the strictly increasing clock, so list order is
        replay order.
        """
        return [
            Message(
                conversation_id=conversation_id,
                role=MessageRole(message.role).value,
                content=message.content,
                created_at=utcnow(),
            )
            for message in messages
        ]

    @staticmethod
    async def append_message(
        db: AsyncSession,
        conversation_id: str,
        role: Union[MessageRole, str],
        content: str,
    ) -> MessageResponse:
        """Append a single message to a conversation."""
        db_message = Message(
            conversation_id=conversation_id,
            role=MessageRole(role).value,
            content=content,
            created_at=utcnow(),
        )
        db.add(db_message)
        await commit_or_raise(db, "append message")
        await refresh_or_raise(db, db_message, "load appended message")

        db_logger.debug("Message appended", "MESSAGE",
                        conversation_id=conversation_id, message_id=db_message.id, role=db_message.role)
        return MessageResponse.model_validate(db_message)

    @staticmethod
    async def append_messages(
        db: AsyncSession,
        conversation_id: str,
        messages: Sequence[MessageBase],
    ) -> List[MessageResponse]:
        """Append several messages in one transaction: all are stored or none are."""
        db_messages = MessageService.build_messages(conversation_id, messages)
        if not db_messages:
            return []

        db.add_all(db_messages)
        await commit_or_raise(db, "append messages")

        db_logger.debug(f"{len(db_messages)} messages appended", "MESSAGE", conversation_id=conversation_id)
        return [MessageResponse.model_validate(message) for message in db_messages]

    @staticmethod
    async def list_messages(db: AsyncSession, conversation_id: str) -> List[MessageResponse]:
        """Return a conversation's messages, oldest first."""
        result = await execute_or_raise(
            db,
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.asc()),
            "list messages",
        )
        return [MessageResponse.model_validate(message) for message in result.scalars().all()]

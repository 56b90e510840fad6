from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_async_db, readable_conversation, writable_conversation
from app.models.conversation import Conversation
from app.schemas.chat import MessageCreate, MessageResponse
from app.services.message_service import MessageService

router = APIRouter()


@router.get("/{conversation_id}/messages", response_model=List[MessageResponse])
async def list_messages(
    conversation: Conversation = Depends(readable_conversation),
    db: AsyncSession = Depends(get_async_db),
):
    """Get a conversation's messages, oldest first."""
    return await MessageService.list_messages(db, conversation.id)


@router.post("/{conversation_id}/messages", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def create_message(
    message_data: MessageCreate,
    conversation: Conversation = Depends(writable_conversation),
    db: AsyncSession = Depends(get_async_db),
):
    """Append a message to a conversation."""
    return await MessageService.append_message(db, conversation.id, message_data.role, message_data.content)

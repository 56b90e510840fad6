from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_async_db, get_current_identity, readable_conversation, writable_conversation
from app.models.conversation import Conversation
from app.schemas.auth import Identity
from app.schemas.chat import (
    ConversationCreate,
    ConversationResponse,
    ConversationWithMessages,
    DeleteResponse,
)
from app.services.conversation_service import ConversationService

router = APIRouter()


@router.get("", response_model=List[ConversationWithMessages])
async def list_conversations(
    db: AsyncSession = Depends(get_async_db),
    identity: Identity = Depends(get_current_identity),
):
    """List the caller's conversations, newest first, with their messages."""
    return await ConversationService.list_conversations(db, identity)


@router.post("", response_model=ConversationResponse, status_code=status.HTTP_201_CREATED)
async def create_conversation(
    conversation_data: Optional[ConversationCreate] = None,
    db: AsyncSession = Depends(get_async_db),
    identity: Identity = Depends(get_current_identity),
):
    """Create a conversation, optionally seeded with initial messages."""
    seed_messages = conversation_data.messages if conversation_data else None
    return await ConversationService.create_conversation(db, identity, seed_messages)


@router.get("/{conversation_id}", response_model=ConversationWithMessages)
async def get_conversation(
    conversation: Conversation = Depends(readable_conversation),
    db: AsyncSession = Depends(get_async_db),
):
    return await ConversationService.get_conversation(db, conversation)


@router.delete("/{conversation_id}", response_model=DeleteResponse)
async def delete_conversation(
    conversation: Conversation = Depends(writable_conversation),
    db: AsyncSession = Depends(get_async_db),
):
    """Delete a conversation and all of its messages."""
    await ConversationService.delete_conversation(db, conversation)
    return DeleteResponse(success=True)

"""Top-level API router.

Mounted under settings.API_PREFIX. Message routes share the /conversations
prefix with the conversation routes.
"""

from fastapi import APIRouter

from app.api.endpoints import auth, chat, conversations, health, messages

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(chat.router, prefix="/chat", tags=["chat"])
api_router.include_router(conversations.router, prefix="/conversations", tags=["conversations"])
api_router.include_router(messages.router, prefix="/conversations", tags=["messages"])

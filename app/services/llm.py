"""
Model inference client.

Builds the streaming chat model and translates between chat history and the
provider's message types. Provider SDK exceptions are classified here so the
relay can report a stable error code.
"""

from typing import List, Sequence

import openai
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from app.core.config import settings
from app.core.exceptions import MissingProviderCredential, UpstreamProviderError
from app.schemas.chat import MessageBase, MessageRole

MESSAGE_TYPES = {
    MessageRole.USER: HumanMessage,
    MessageRole.ASSISTANT: AIMessage,
    MessageRole.SYSTEM: SystemMessage,
}

# (exception type, relay error code, client-facing message), most specific first
PROVIDER_ERRORS = [
    (openai.AuthenticationError, "provider_auth_failed", "Model provider rejected the API key"),
    (openai.PermissionDeniedError, "provider_auth_failed", "Model provider denied access"),
    (openai.RateLimitError, "rate_limited", "Rate limited by model provider"),
    (openai.BadRequestError, "bad_request", "Model provider rejected the request"),
    (openai.APITimeoutError, "provider_unavailable", "Model provider timed out"),
    (openai.APIConnectionError, "provider_unavailable", "Could not reach model provider"),
    (openai.InternalServerError, "provider_error", "Model provider server error"),
]


def build_chat_model() -> BaseChatModel:
    """Create the streaming chat model from configuration.

    Raises:
        MissingProviderCredential: if OPENAI_API_KEY is not set
    """
    if not settings.OPENAI_API_KEY:
        raise MissingProviderCredential()

    return ChatOpenAI(
        model=settings.CHAT_MODEL,
        api_key=settings.OPENAI_API_KEY,
        temperature=settings.CHAT_TEMPERATURE,
        max_tokens=settings.CHAT_MAX_TOKENS,
        streaming=True,
        max_retries=0,
    )


def get_chat_model() -> BaseChatModel:
    """FastAPI dependency for the chat model."""
    return build_chat_model()


def to_provider_messages(system_prompt: str, history: Sequence[MessageBase]) -> List[BaseMessage]:
    """Prefix the fixed system instruction to the caller's history."""
    messages: List[BaseMessage] = [SystemMessage(content=system_prompt)]
    for message in history:
        message_type = MESSAGE_TYPES[MessageRole(message.role)]
        messages.append(message_type(content=message.content))
    return messages


def classify_provider_error(error: Exception) -> UpstreamProviderError:
    """Map a provider exception to an UpstreamProviderError with a stable code."""
    if isinstance(error, UpstreamProviderError):
        return error

    for error_type, code, message in PROVIDER_ERRORS:
        if isinstance(error, error_type):
            return UpstreamProviderError(message, code=code, original_error=error)

    return UpstreamProviderError("Model provider error", code="provider_error", original_error=error)

"""
Domain error taxonomy.

Every failure surfaced by the API is one of the classes below. The HTTP layer
maps them to a status code and a short JSON body; internal details stay in
the logs.
"""

from typing import Optional

from fastapi import status


class ChatAppError(Exception):
    """Base exception for all application errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        code: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        self.message = message or self.default_message
        self.code = code
        self.original_error = original_error
        super().__init__(self.message)


class Unauthenticated(ChatAppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"


class Forbidden(ChatAppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class NotFound(ChatAppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Conversation not found"


class ValidationError(ChatAppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class UpstreamProviderError(ChatAppError):
    """The model provider rejected or failed the request."""

    default_message = "Model provider error"

    def __init__(self, message: Optional[str] = None, code: str = "provider_error", original_error: Optional[Exception] = None):
        super().__init__(message, code, original_error)


class MissingProviderCredential(UpstreamProviderError):
    default_message = "Model provider API key is not configured"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, code="missing_api_key")


class StorageError(ChatAppError):
    """The conversation store failed a read or write."""

    default_message = "Storage error"

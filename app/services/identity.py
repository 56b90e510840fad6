"""
Identity provider adapter.

Exchanges the session credential attached to a request for an Identity.
Supabase Auth is the provider: the browser carries the Supabase session cookie
(or a client sends the access token as a bearer token) and the token is
validated with auth.get_user.
"""

from abc import ABC, abstractmethod
import base64
import binascii
import json
import re
from typing import Mapping, Optional
from urllib.parse import unquote

from fastapi import Depends, Request
from fastapi.security.utils import get_authorization_scheme_param
from supabase import AsyncClient, AuthError, acreate_client

from app.core.config import settings
from app.core.exceptions import ChatAppError, Unauthenticated
from app.schemas.auth import Identity
from app.utils.logger import auth_logger

# sb-<project-ref>-auth-token, optionally split into .0, .1, ... chunks
SESSION_COOKIE_PATTERN = re.compile(r"^(sb-.+-auth-token)(?:\.\d+)?$")
BASE64_PREFIX = "base64-"


def _join_cookie_chunks(cookies: Mapping[str, str], name: str) -> Optional[str]:
    if name in cookies:
        return cookies[name]

    chunks = []
    index = 0
    while f"{name}.{index}" in cookies:
        chunks.append(cookies[f"{name}.{index}"])
        index += 1
    return "".join(chunks) or None


def _find_session_cookie(cookies: Mapping[str, str]) -> Optional[str]:
    if settings.SESSION_COOKIE_NAME:
        return _join_cookie_chunks(cookies, settings.SESSION_COOKIE_NAME)

    for key in sorted(cookies):
        match = SESSION_COOKIE_PATTERN.match(key)
        if match:
            return _join_cookie_chunks(cookies, match.group(1))
    return None


def parse_session_cookie(value: str) -> Optional[str]:
    """Pull the access token out of a session cookie value.

    Accepts a bare JWT, a JSON session object, the legacy JSON array
    ([access_token, refresh_token, ...]), and the "base64-" prefixed form.
    """
    value = unquote(value)

    if value.startswith(BASE64_PREFIX):
        encoded = value[len(BASE64_PREFIX):]
        encoded += "=" * (-len(encoded) % 4)
        try:
            value = base64.urlsafe_b64decode(encoded).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError, ValueError):
            return None

    try:
        payload = json.loads(value)
    except json.JSONDecodeError:
        return value or None

    if isinstance(payload, dict):
        return payload.get("access_token")
    if isinstance(payload, list) and payload and isinstance(payload[0], str):
        return payload[0]
    return None


def extract_access_token(request: Request) -> Optional[str]:
    """Bearer token first, then the Supabase session cookie."""
    scheme, param = get_authorization_scheme_param(request.headers.get("Authorization"))
    if scheme.lower() == "bearer" and param:
        return param

    cookie_value = _find_session_cookie(request.cookies)
    if cookie_value:
        return parse_session_cookie(cookie_value)
    return None


class IdentityProvider(ABC):
    """Resolves an access token to an Identity, or None if the token is not valid."""

    @abstractmethod
    async def resolve(self, access_token: str) -> Optional[Identity]:
        ...



class SupabaseIdentityProvider(IdentityProvider):
    """Validates access tokens against Supabase Auth."""

    def __init__(self):
        self._client: Optional[AsyncClient] = None

    async def get_client(self) -> AsyncClient:
        """Get Supabase client."""
        if self._client is None:
            if not settings.SUPABASE_URL or not settings.SUPABASE_KEY:
                auth_logger.error("Supabase URL and key must be configured", "INIT")
                raise ChatAppError("Identity provider is not configured", code="identity_provider_unconfigured")

            self._client = await acreate_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)

        return self._client

    async def resolve(self, access_token: str) -> Optional[Identity]:
        client = await self.get_client()
        try:
            response = await client.auth.get_user(access_token)
        except AuthError as e:
            auth_logger.warning(f"Session rejected by identity provider: {e}", "SESSION")
            return None
        except Exception as e:
            auth_logger.error(f"Identity provider request failed: {e}", "SESSION")
            raise Unauthenticated("Could not validate credentials", original_error=e) from e

        if response is None or response.user is None:
            return None

        return Identity(id=str(response.user.id), email=response.user.email)


_identity_provider: Optional[IdentityProvider] = None


def get_identity_provider() -> IdentityProvider:
    """FastAPI dependency returning the process-wide identity provider."""
    global _identity_provider

    if _identity_provider is None:
        _identity_provider = SupabaseIdentityProvider()
    return _identity_provider


async def get_current_identity(
    request: Request,
    provider: IdentityProvider = Depends(get_identity_provider),
) -> Identity:
    """
    Get the authenticated identity for the current request.

    Raises:
        Unauthenticated: if no credential is present or the provider rejects it
    """
    access_token = extract_access_token(request)
    if not access_token:
        raise Unauthenticated()

    identity = await provider.resolve(access_token)
    if identity is None:
        raise Unauthenticated()

    return identity

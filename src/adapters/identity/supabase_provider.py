"""
Supabase identity adapter - Implements IdentityProvider protocol.

Wraps the supabase-py auth (GoTrue) client. Each adapter instance should be
built per request: the GoTrue client keeps the last session in memory, and
sharing one across requests would leak sessions between users.

Every provider failure is raised as the domain ProviderError:

- AuthError from the client   -> ProviderError(message, error.code)
- httpx transport errors      -> ProviderError(..., "provider_unavailable")
- a call that returns no session where one is required
                              -> ProviderError(..., "session_missing")
"""

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

import httpx
from supabase import AuthError, Client

from src.domain.exceptions import ProviderError
from src.domain.ports import Session, User, VerificationPurpose

logger = logging.getLogger(__name__)

PROVIDER_UNAVAILABLE = "provider_unavailable"
SESSION_MISSING = "session_missing"


def _to_user(provider_user: Any) -> User:
    return User(
        id=str(provider_user.id),
        email=provider_user.email or "",
        metadata=dict(provider_user.user_metadata or {}),
    )


def _to_session(response: Any) -> Session:
    session = getattr(response, "session", None)
    provider_user = getattr(response, "user", None) or getattr(session, "user", None)
    if session is None or provider_user is None:
        raise ProviderError("Identity provider returned no session", SESSION_MISSING)
    return Session(
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        expires_at=session.expires_at,
        user=_to_user(provider_user),
    )


@contextmanager
def _provider_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except AuthError as e:
        logger.info("Provider rejected %s: %s", operation, getattr(e, "code", None))
        raise ProviderError(e.message, getattr(e, "code", None)) from e
    except httpx.HTTPError as e:
        logger.warning("Provider unreachable during %s: %s", operation, e)
        raise ProviderError("Identity provider unavailable", PROVIDER_UNAVAILABLE) from e


class SupabaseIdentityProvider:
    """
    Implements IdentityProvider protocol via supabase-py.

    Uses structural subtyping - no explicit inheritance from Protocol.

    Args:
        client: Supabase client built with the anon key
        admin_client_factory: Returns a service-role client; only used for
            password updates, which need to act on a user other than the
            client's own session
    """

    def __init__(self, client: Client, admin_client_factory: Callable[[], Client]) -> None:
        self._client = client
        self._admin_client_factory = admin_client_factory

    def exchange_code(self, code: str) -> Session:
        with _provider_errors("code exchange"):
            response = self._client.auth.exchange_code_for_session({"auth_code": code})
        return _to_session(response)

    def verify_one_time_token(self, token_hash: str, purpose: VerificationPurpose) -> Session:
        with _provider_errors("one-time token verification"):
            response = self._client.auth.verify_otp(
                {"token_hash": token_hash, "type": purpose.value}
            )
        return _to_session(response)

    def get_current_user(self, access_token: str) -> User:
        with _provider_errors("user lookup"):
            response = self._client.auth.get_user(access_token)
        if response is None or response.user is None:
            raise ProviderError("Session is invalid or expired", SESSION_MISSING)
        return _to_user(response.user)

    def sign_in_with_password(self, email: str, password: str) -> Session:
        with _provider_errors("password sign-in"):
            response = self._client.auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        return _to_session(response)

    def sign_up(self, email: str, password: str, metadata: dict[str, Any]) -> User:
        with _provider_errors("sign-up"):
            response = self._client.auth.sign_up(
                {"email": email, "password": password, "options": {"data": metadata}}
            )
        if response.user is None:
            raise ProviderError("Identity provider did not create a user", "user_missing")
        return _to_user(response.user)

    def resend_verification(self, email: str, purpose: VerificationPurpose) -> None:
        with _provider_errors("verification resend"):
            self._client.auth.resend({"type": purpose.value, "email": email})

    def send_password_reset(self, email: str, redirect_to: str) -> None:
        with _provider_errors("password reset request"):
            self._client.auth.reset_password_for_email(email, {"redirect_to": redirect_to})

    def update_password(self, access_token: str, password: str) -> None:
        user = self.get_current_user(access_token)
        with _provider_errors("password update"):
            self._admin_client_factory().auth.admin.update_user_by_id(
                user.id, {"password": password}
            )

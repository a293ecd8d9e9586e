"""
Login gate - Verification-aware credential login.

Users log in with a username; the gate resolves it to the profile's email
and verification flag before anything reaches the identity provider.

Security Design - Username Enumeration:
--------------------------------------
Unknown usernames and wrong passwords produce the same InvalidCredentials
result with the same message and code. Because the unknown-username path
skips the provider round trip, every InvalidCredentials result is padded to
a minimum duration so the two cases are not distinguishable by timing.
The minimum is the larger of the configured floor and a running estimate of
how long password sign-in at the provider takes, so a slow provider does not
reopen the gap.

Unverified profiles short-circuit with NeedsVerification and never reach
password sign-in.
"""

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Union

from .exceptions import InvalidInput, ProfileNotFound, ProfileStoreError, ProviderError
from .ports import IdentityProvider, Profile, ProfileStore, Session, User, VerificationPurpose

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS_MESSAGE = "Invalid username or password"
INVALID_CREDENTIALS_CODE = "invalid_credentials"


@dataclass(frozen=True)
class LoginSuccess:
    session: Session
    user: User
    profile: Profile


@dataclass(frozen=True)
class NeedsVerification:
    email: str
    message: str = "Please verify your email before logging in"


@dataclass(frozen=True)
class InvalidCredentials:
    message: str = INVALID_CREDENTIALS_MESSAGE
    error_code: str = INVALID_CREDENTIALS_CODE


LoginResult = Union[LoginSuccess, NeedsVerification, InvalidCredentials]


@dataclass(frozen=True)
class ResendResult:
    ok: bool
    message: str


class SignInLatency:
    """
    Exponentially weighted estimate of provider sign-in duration.

    Shared across requests; observations come from every password sign-in,
    successful or not.
    """

    def __init__(self, weight: float = 0.2) -> None:
        self._weight = weight
        self._estimate = 0.0
        self._lock = threading.Lock()

    @property
    def seconds(self) -> float:
        return self._estimate

    def observe(self, seconds: float) -> None:
        with self._lock:
            if self._estimate == 0.0:
                self._estimate = seconds
            else:
                self._estimate += self._weight * (seconds - self._estimate)


@dataclass
class LoginGate:
    """Domain service for username/password login."""

    profiles: ProfileStore
    provider: IdentityProvider
    failure_floor_seconds: float = 0.0
    latency: SignInLatency | None = None
    clock: Callable[[], float] = field(default=time.monotonic)
    sleep: Callable[[float], None] = field(default=time.sleep)

    def attempt_login(self, username: str, password: str) -> LoginResult:
        """
        Attempt a credential login.

        Args:
            username: Profile username
            password: Plaintext password, only ever forwarded to the provider

        Returns:
            LoginSuccess, NeedsVerification or InvalidCredentials

        Raises:
            InvalidInput: Blank username or password
        """
        if not username or not username.strip() or not password:
            raise InvalidInput("Username and password are required")

        started = self.clock()
        try:
            profile = self.profiles.get_by_username(username.strip())
        except ProfileNotFound:
            return self._invalid(started)
        except ProfileStoreError as e:
            logger.error("Profile lookup failed during login (%s): %s", e.code, e.message)
            return self._invalid(started)

        if not profile.email_verified:
            logger.info("Login blocked for unverified profile %s", profile.id)
            return NeedsVerification(email=profile.email)

        sign_in_started = self.clock()
        try:
            session = self.provider.sign_in_with_password(profile.email, password)
        except ProviderError as e:
            self._observe_sign_in(sign_in_started)
            logger.info("Password sign-in rejected for profile %s: %s", profile.id, e.code)
            return self._invalid(started)
        self._observe_sign_in(sign_in_started)

        return LoginSuccess(session=session, user=session.user, profile=profile)

    def resend(self, email: str) -> ResendResult:
        """
        Re-send the signup confirmation message.

        Failures (including provider rate limiting) are reported, never raised.
        """
        if not email or not email.strip():
            return ResendResult(ok=False, message="Email is required")
        try:
            self.provider.resend_verification(email.strip(), VerificationPurpose.SIGNUP)
        except ProviderError as e:
            logger.warning("Verification resend failed: %s", e.code or e.message)
            return ResendResult(ok=False, message=e.message)
        return ResendResult(ok=True, message="Verification email sent! Check your inbox.")

    def _observe_sign_in(self, started: float) -> None:
        if self.latency is not None:
            self.latency.observe(self.clock() - started)

    def _invalid(self, started: float) -> InvalidCredentials:
        floor = self.failure_floor_seconds
        if self.latency is not None:
            floor = max(floor, self.latency.seconds)
        remaining = floor - (self.clock() - started)
        if remaining > 0:
            self.sleep(remaining)
        return InvalidCredentials()

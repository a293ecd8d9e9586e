"""
Signup domain service - Authoritative account creation.

The advisory availability check shown while typing is racy against other
signups, so uniqueness is checked again here, synchronously, before the
provider account is created. The profile store's unique constraints still
back this check up: a pre-created profile row that loses a race is logged
and left for the verification step to reconcile.
"""

import logging
from dataclasses import dataclass

from .exceptions import (
    EmailTaken,
    InvalidInput,
    ProfileConflict,
    ProfileNotFound,
    ProfileStoreError,
    UsernameTaken,
)
from .ports import IdentityProvider, Profile, ProfileStore

logger = logging.getLogger(__name__)

DEFAULT_MIN_PASSWORD_LENGTH = 6


@dataclass(frozen=True)
class SignupResult:
    user_id: str
    message: str


@dataclass
class SignupService:
    """
    Domain service for account creation.

    Orchestrates input validation, the authoritative uniqueness check,
    provider signup and profile pre-creation.
    """

    profiles: ProfileStore
    provider: IdentityProvider
    min_password_length: int = DEFAULT_MIN_PASSWORD_LENGTH

    def signup(self, username: str, email: str, password: str) -> SignupResult:
        """
        Create a provider account and an unverified profile.

        Args:
            username: Requested username (stripped)
            email: Email address (will be normalized)
            password: Plaintext password, only forwarded to the provider

        Returns:
            SignupResult with the new user id and a user-facing message

        Raises:
            InvalidInput: Missing field or password too short
            UsernameTaken: Username already belongs to a profile
            EmailTaken: Email already belongs to a profile
            ProfileStoreError: Uniqueness lookup failed
            ProviderError: Provider refused the signup
        """
        username = (username or "").strip()
        email = self._normalize_email(email or "")
        if not username or not email or not (password or "").strip():
            raise InvalidInput("All fields are required")
        if len(password) < self.min_password_length:
            raise InvalidInput(f"Password must be at least {self.min_password_length} characters")

        if self._exists(self.profiles.get_by_username, username):
            raise UsernameTaken("Username is already taken")
        if self._exists(self.profiles.get_by_email, email):
            raise EmailTaken("Email is already registered")

        user = self.provider.sign_up(email, password, {"username": username})

        try:
            self.profiles.insert(Profile(id=user.id, username=username, email=email))
        except ProfileConflict as e:
            logger.warning("Profile pre-create for %s lost a race on %s", user.id, e.field)
        except ProfileStoreError as e:
            logger.error("Profile pre-create for %s failed (%s): %s", user.id, e.code, e.message)

        logger.info("Signup created provider user %s", user.id)
        return SignupResult(
            user_id=user.id,
            message="Account created! Check your email to confirm your account.",
        )

    def _exists(self, lookup, value: str) -> bool:
        try:
            lookup(value)
        except ProfileNotFound:
            return False
        return True

    def _normalize_email(self, email: str) -> str:
        """
        Normalize email address for consistent storage and lookup.

        Applies: strip whitespace + lowercase
        """
        return email.strip().lower()

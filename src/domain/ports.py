"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the interfaces (ports) that the domain requires
from infrastructure, plus the value types that cross them. Adapters
implement these protocols.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol


class VerificationPurpose(str, Enum):
    """
    Purpose attached to a one-time token.

    Values are the provider's OTP type strings, so the ``type`` query
    parameter maps onto them directly.
    """

    EMAIL = "email"
    RECOVERY = "recovery"
    SIGNUP = "signup"

    @property
    def proves_email_ownership(self) -> bool:
        """Whether a successful proof for this purpose confirms the email."""
        return self in (VerificationPurpose.EMAIL, VerificationPurpose.SIGNUP)


class Availability(str, Enum):
    """Advisory uniqueness result for a signup field."""

    AVAILABLE = "available"
    TAKEN = "taken"
    INDETERMINATE = "indeterminate"


@dataclass(frozen=True)
class User:
    """Identity-provider account. Never mutated by the core."""

    id: str
    email: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Session:
    """Opaque credential issued by the identity provider for one request."""

    access_token: str
    user: User
    refresh_token: str | None = None
    expires_at: int | None = None


@dataclass(frozen=True)
class Profile:
    """Local mirror of a User carrying the verification flag."""

    id: str
    username: str
    email: str
    email_verified: bool = False


class IdentityProvider(Protocol):
    """
    Port interface for the external identity provider.

    Every method raises ProviderError on failure; timeouts are reported the
    same way.
    """

    def exchange_code(self, code: str) -> Session:
        """Redeem a one-time authorization code for a session."""
        ...

    def verify_one_time_token(self, token_hash: str, purpose: VerificationPurpose) -> Session:
        """Verify a hashed one-time token issued for ``purpose``."""
        ...

    def get_current_user(self, access_token: str) -> User:
        """Resolve the user holding ``access_token``."""
        ...

    def sign_in_with_password(self, email: str, password: str) -> Session:
        """Password sign-in."""
        ...

    def sign_up(self, email: str, password: str, metadata: dict[str, Any]) -> User:
        """Create a provider account; the provider sends the confirmation mail."""
        ...

    def resend_verification(self, email: str, purpose: VerificationPurpose) -> None:
        """Re-trigger delivery of a verification message."""
        ...

    def send_password_reset(self, email: str, redirect_to: str) -> None:
        """Send a password recovery link that lands on ``redirect_to``."""
        ...

    def update_password(self, access_token: str, password: str) -> None:
        """Set a new password for the user holding ``access_token``."""
        ...


class ProfileStore(Protocol):
    """
    Port interface for profile persistence.

    Lookups and updates that match no row raise ProfileNotFound. Inserts
    rejected by a uniqueness constraint raise ProfileConflict. Any other
    failure raises ProfileStoreError.
    """

    def get_by_id(self, profile_id: str) -> Profile:
        ...

    def get_by_username(self, username: str) -> Profile:
        ...

    def get_by_email(self, email: str) -> Profile:
        ...

    def update(self, profile_id: str, fields: dict[str, Any]) -> Profile:
        """Update columns of an existing row and return the new state."""
        ...

    def insert(self, profile: Profile) -> Profile:
        """Insert a new row; uniqueness is enforced atomically by the store."""
        ...

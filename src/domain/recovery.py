"""Password recovery - reset-link request and password update."""

import logging
from dataclasses import dataclass

from .exceptions import InvalidInput
from .ports import IdentityProvider
from .signup import DEFAULT_MIN_PASSWORD_LENGTH

logger = logging.getLogger(__name__)


@dataclass
class PasswordRecoveryService:
    provider: IdentityProvider
    min_password_length: int = DEFAULT_MIN_PASSWORD_LENGTH

    def request_reset(self, email: str, redirect_to: str) -> str:
        """
        Ask the provider to mail a recovery link landing on ``redirect_to``.

        Raises:
            InvalidInput: Blank email
            ProviderError: Provider refused (rate limit, unknown address policy)
        """
        email = (email or "").strip().lower()
        if not email:
            raise InvalidInput("Email is required")
        self.provider.send_password_reset(email, redirect_to)
        return "Password reset email sent! Check your inbox."

    def reset_password(self, access_token: str, password: str, confirm_password: str) -> str:
        """
        Set a new password using the recovery session's access token.

        Raises:
            InvalidInput: Missing, mismatched or too-short password
            ProviderError: Session invalid or provider refused the update
        """
        if not (password or "").strip() or not (confirm_password or "").strip():
            raise InvalidInput("Both password fields are required")
        if password != confirm_password:
            raise InvalidInput("Passwords do not match")
        if len(password) < self.min_password_length:
            raise InvalidInput(
                f"Password must be at least {self.min_password_length} characters long"
            )
        if not access_token:
            raise InvalidInput("Invalid or expired reset link")

        self.provider.update_password(access_token, password)
        logger.info("Password updated via recovery session")
        return "Password updated successfully!"

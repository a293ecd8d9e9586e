"""
Domain exceptions - Semantic error types for verification, login and signup.

This module defines domain-specific exceptions that communicate
business rule violations without leaking infrastructure details.
Adapters translate library errors (supabase, psycopg) into these types.
"""

# Error code reported by the profile store when a point lookup or update
# matches no row. Mirrors the PostgREST "0 rows" code so every store adapter
# reports the same value.
NOT_FOUND_CODE = "PGRST116"

# SQLSTATE for unique_violation.
UNIQUE_VIOLATION_CODE = "23505"


class AccountError(Exception):
    """Base class for account domain errors."""

    pass


class InvalidInput(AccountError):
    """Missing or malformed field, rejected before any network call."""

    pass


class UsernameTaken(AccountError):
    """Username already belongs to a profile."""

    pass


class EmailTaken(AccountError):
    """Email already belongs to a profile."""

    pass


class ProviderError(AccountError):
    """
    Identity provider rejected the call.

    Covers rejected proofs, expired or reused tokens, rate limiting and
    transport timeouts. Always terminal, never retried by the core.
    """

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class ProfileStoreError(Exception):
    """Profile store failure carrying a store error code."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class ProfileNotFound(ProfileStoreError):
    """Lookup or update matched no profile row."""

    def __init__(self, message: str = "Profile not found") -> None:
        super().__init__(message, NOT_FOUND_CODE)


class ProfileConflict(ProfileStoreError):
    """
    Insert rejected by a uniqueness constraint.

    ``field`` names the unique column that was violated ("id", "username"
    or "email"), or None when the adapter could not tell.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message, UNIQUE_VIOLATION_CODE)
        self.field = field

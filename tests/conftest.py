"""
Shared test fixtures and configuration.

This module provides in-memory stand-ins for the two external
collaborators so domain and route tests run without Supabase or
PostgreSQL:

- FakeProfileStore enforces the same uniqueness rules as the profiles table
  (id, username, email) and reports misses as ProfileNotFound
- FakeIdentityProvider treats codes and token hashes as single-use and
  counts every call
"""

import uuid
from collections import Counter
from dataclasses import replace
from typing import Any

import pytest

from src.domain.exceptions import ProfileConflict, ProfileNotFound, ProviderError
from src.domain.ports import Profile, Session, User, VerificationPurpose


class FakeProfileStore:
    """Implements ProfileStore with dict storage and unique constraints."""

    def __init__(self) -> None:
        self.rows: dict[str, Profile] = {}
        self.calls: Counter = Counter()

    def get_by_id(self, profile_id: str) -> Profile:
        self.calls["get_by_id"] += 1
        if profile_id not in self.rows:
            raise ProfileNotFound()
        return self.rows[profile_id]

    def get_by_username(self, username: str) -> Profile:
        self.calls["get_by_username"] += 1
        return self._find("username", username)

    def get_by_email(self, email: str) -> Profile:
        self.calls["get_by_email"] += 1
        return self._find("email", email)

    def update(self, profile_id: str, fields: dict[str, Any]) -> Profile:
        self.calls["update"] += 1
        if profile_id not in self.rows:
            raise ProfileNotFound()
        current = self.rows[profile_id]
        updated = replace(current, **fields)
        self.rows[profile_id] = updated
        return updated

    def insert(self, profile: Profile) -> Profile:
        self.calls["insert"] += 1
        if profile.id in self.rows:
            raise ProfileConflict("duplicate id", field="id")
        for row in self.rows.values():
            if row.username == profile.username:
                raise ProfileConflict("duplicate username", field="username")
            if row.email == profile.email:
                raise ProfileConflict("duplicate email", field="email")
        self.rows[profile.id] = profile
        return profile

    def _find(self, column: str, value: str) -> Profile:
        for row in self.rows.values():
            if getattr(row, column) == value:
                return row
        raise ProfileNotFound()


class FakeIdentityProvider:
    """Implements IdentityProvider with single-use codes and token hashes."""

    def __init__(self) -> None:
        self.users: dict[str, User] = {}
        self.passwords: dict[str, str] = {}
        self.codes: dict[str, User] = {}
        self.token_hashes: dict[str, tuple[User, VerificationPurpose]] = {}
        self.access_tokens: dict[str, User] = {}
        self.calls: Counter = Counter()
        self.resend_error: ProviderError | None = None

    def add_user(self, email: str, password: str, username: str | None = None) -> User:
        metadata = {"username": username} if username else {}
        user = User(id=str(uuid.uuid4()), email=email, metadata=metadata)
        self.users[email] = user
        self.passwords[email] = password
        return user

    def issue_code(self, user: User) -> str:
        code = uuid.uuid4().hex
        self.codes[code] = user
        return code

    def issue_token_hash(self, user: User, purpose: VerificationPurpose, token_hash: str | None = None) -> str:
        token_hash = token_hash or uuid.uuid4().hex
        self.token_hashes[token_hash] = (user, purpose)
        return token_hash

    def _session(self, user: User) -> Session:
        token = f"access-{uuid.uuid4().hex}"
        self.access_tokens[token] = user
        return Session(access_token=token, user=user, refresh_token="refresh", expires_at=0)

    def exchange_code(self, code: str) -> Session:
        self.calls["exchange_code"] += 1
        user = self.codes.pop(code, None)
        if user is None:
            raise ProviderError("invalid flow state, no valid flow state found", "flow_state_not_found")
        return self._session(user)

    def verify_one_time_token(self, token_hash: str, purpose: VerificationPurpose) -> Session:
        self.calls["verify_one_time_token"] += 1
        entry = self.token_hashes.get(token_hash)
        if entry is None or entry[1] is not purpose:
            raise ProviderError("Email link is invalid or has expired", "otp_expired")
        del self.token_hashes[token_hash]
        return self._session(entry[0])

    def get_current_user(self, access_token: str) -> User:
        self.calls["get_current_user"] += 1
        if access_token not in self.access_tokens:
            raise ProviderError("invalid JWT", "bad_jwt")
        return self.access_tokens[access_token]

    def sign_in_with_password(self, email: str, password: str) -> Session:
        self.calls["sign_in_with_password"] += 1
        if self.passwords.get(email) != password:
            raise ProviderError("Invalid login credentials", "invalid_credentials")
        return self._session(self.users[email])

    def sign_up(self, email: str, password: str, metadata: dict[str, Any]) -> User:
        self.calls["sign_up"] += 1
        if email in self.users:
            raise ProviderError("User already registered", "user_already_exists")
        user = User(id=str(uuid.uuid4()), email=email, metadata=dict(metadata))
        self.users[email] = user
        self.passwords[email] = password
        return user

    def resend_verification(self, email: str, purpose: VerificationPurpose) -> None:
        self.calls["resend_verification"] += 1
        if self.resend_error is not None:
            raise self.resend_error

    def send_password_reset(self, email: str, redirect_to: str) -> None:
        self.calls["send_password_reset"] += 1

    def update_password(self, access_token: str, password: str) -> None:
        self.calls["update_password"] += 1
        user = self.get_current_user(access_token)
        self.passwords[user.email] = password


@pytest.fixture
def store() -> FakeProfileStore:
    """Empty in-memory profile store."""
    return FakeProfileStore()


@pytest.fixture
def provider() -> FakeIdentityProvider:
    """In-memory identity provider with no users."""
    return FakeIdentityProvider()

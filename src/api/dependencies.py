"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes.
HTTPConnection is used instead of Request so the same factories serve
WebSocket routes.
"""

from functools import lru_cache

from fastapi import Depends, HTTPException, status
from fastapi.requests import HTTPConnection
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from psycopg_pool import ConnectionPool
from supabase import Client, create_client

from src.adapters.identity.supabase_provider import SupabaseIdentityProvider
from src.adapters.repository.postgres import PostgresProfileStore
from src.config.settings import Settings, get_settings
from src.domain.availability import AvailabilityChecker
from src.domain.login import LoginGate, SignInLatency
from src.domain.reconciler import ProfileReconciler
from src.domain.recovery import PasswordRecoveryService
from src.domain.signup import SignupService
from src.domain.verification import VerificationService


def get_pool(connection: HTTPConnection) -> ConnectionPool:
    """
    Get connection pool from app state.

    The pool is created during app lifespan startup and stored in app.state.
    """
    return connection.app.state.pool


def get_profile_store(connection: HTTPConnection) -> PostgresProfileStore:
    """Create profile store with connection pool from app state."""
    return PostgresProfileStore(get_pool(connection))


@lru_cache(maxsize=1)
def get_supabase_admin_client() -> Client:
    """
    Service-role Supabase client (singleton).

    Bypasses row-level security; only used for password updates.
    """
    settings = get_settings()
    return create_client(settings.supabase_url, settings.supabase_service_role_key)


def get_identity_provider(settings: Settings = Depends(get_settings)) -> SupabaseIdentityProvider:
    """
    Create a per-request identity provider.

    A fresh anon client per request keeps GoTrue session state from leaking
    between users.
    """
    client = create_client(settings.supabase_url, settings.supabase_anon_key)
    return SupabaseIdentityProvider(client, get_supabase_admin_client)


def get_verification_service(
    provider: SupabaseIdentityProvider = Depends(get_identity_provider),
    store: PostgresProfileStore = Depends(get_profile_store),
) -> VerificationService:
    """Wire the dispatcher with the provider and a reconciler over the store."""
    return VerificationService(provider=provider, reconciler=ProfileReconciler(store))


@lru_cache(maxsize=1)
def get_sign_in_latency() -> SignInLatency:
    """Process-wide provider sign-in latency estimate (singleton)."""
    return SignInLatency()


def get_login_gate(
    provider: SupabaseIdentityProvider = Depends(get_identity_provider),
    store: PostgresProfileStore = Depends(get_profile_store),
    settings: Settings = Depends(get_settings),
) -> LoginGate:
    return LoginGate(
        profiles=store,
        provider=provider,
        failure_floor_seconds=settings.login_failure_floor_ms / 1000,
        latency=get_sign_in_latency(),
    )


def get_signup_service(
    provider: SupabaseIdentityProvider = Depends(get_identity_provider),
    store: PostgresProfileStore = Depends(get_profile_store),
    settings: Settings = Depends(get_settings),
) -> SignupService:
    return SignupService(
        profiles=store, provider=provider, min_password_length=settings.min_password_length
    )


def get_recovery_service(
    provider: SupabaseIdentityProvider = Depends(get_identity_provider),
    settings: Settings = Depends(get_settings),
) -> PasswordRecoveryService:
    return PasswordRecoveryService(
        provider=provider, min_password_length=settings.min_password_length
    )


def get_availability_checker(
    store: PostgresProfileStore = Depends(get_profile_store),
) -> AvailabilityChecker:
    return AvailabilityChecker(store)


# Bearer token security scheme for OpenAPI documentation
http_bearer = HTTPBearer(auto_error=False)


def get_bearer_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(http_bearer),
) -> str:
    """
    Extract the session access token from the Authorization header.

    Raises:
        HTTPException: 401 when the header is missing or not a Bearer token
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return credentials.credentials

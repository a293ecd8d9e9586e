"""
API v1 routes.

Defines REST and WebSocket endpoints for account verification, login,
signup, availability checks and password recovery.

Routes that reach the identity provider or the database are plain ``def``
functions so FastAPI runs them in its threadpool instead of blocking the
event loop.
"""

import asyncio
import json
import logging
from functools import partial

from fastapi import APIRouter, Depends, Request, WebSocket, WebSocketDisconnect, status
from fastapi.responses import JSONResponse

from src.adapters.identity.supabase_provider import SupabaseIdentityProvider
from src.adapters.repository.postgres import PostgresProfileStore
from src.api.dependencies import (
    get_availability_checker,
    get_bearer_token,
    get_identity_provider,
    get_login_gate,
    get_profile_store,
    get_recovery_service,
    get_signup_service,
    get_verification_service,
)
from src.api.models import (
    AvailabilityResponse,
    ConfirmRequest,
    ConfirmResponse,
    ErrorResponse,
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    MeResponse,
    MessageResponse,
    ResendRequest,
    ResetPasswordRequest,
    SignupRequest,
    UserModel,
)
from src.config.settings import Settings, get_settings
from src.domain.availability import CHECKABLE_FIELDS, AvailabilityChecker, AvailabilityWatcher
from src.domain.exceptions import (
    EmailTaken,
    InvalidInput,
    ProfileNotFound,
    ProfileStoreError,
    ProviderError,
    UsernameTaken,
)
from src.domain.login import LoginGate, LoginSuccess, NeedsVerification
from src.domain.ports import Availability, VerificationPurpose
from src.domain.recovery import PasswordRecoveryService
from src.domain.signup import SignupService
from src.domain.verification import VerificationService, VerificationSuccess

logger = logging.getLogger(__name__)

router = APIRouter(tags=["v1"])


def error_response(status_code: int, message: str, **extra) -> JSONResponse:
    """Build the ``{success: false, error, ...}`` body the web client expects."""
    body = ErrorResponse(error=message, **extra)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(by_alias=True, exclude_none=True),
    )


def _confirm(service: VerificationService, params: dict) -> ConfirmResponse | JSONResponse:
    outcome = service.verify(params)
    if isinstance(outcome, VerificationSuccess):
        access_token = None
        if outcome.purpose is VerificationPurpose.RECOVERY:
            access_token = outcome.session.access_token
        return ConfirmResponse(
            type=outcome.purpose.value,
            next=outcome.next,
            access_token=access_token,
            warning=outcome.warning,
        )
    return error_response(status.HTTP_400_BAD_REQUEST, outcome.reason, error_code=outcome.error_code)


@router.get(
    "/auth/confirm",
    response_model=ConfirmResponse,
    response_model_exclude_none=True,
    responses={400: {"model": ErrorResponse, "description": "Verification failed"}},
    summary="Verify an email link",
    description="Redeem an authorization code or one-time token from an email link. "
    "Provider error parameters short-circuit to a failure without contacting the provider.",
)
def confirm_from_query(
    request: Request,
    service: VerificationService = Depends(get_verification_service),
):
    return _confirm(service, dict(request.query_params))


@router.post(
    "/auth/confirm",
    response_model=ConfirmResponse,
    response_model_exclude_none=True,
    responses={400: {"model": ErrorResponse, "description": "Verification failed"}},
    summary="Verify with query and fragment parameters",
    description="Same as GET, for clients that forward redirect-fragment parameters "
    "(which never reach the server in a URL) in a JSON body.",
)
def confirm_from_body(
    request_data: ConfirmRequest,
    service: VerificationService = Depends(get_verification_service),
):
    return _confirm(service, request_data.model_dump())


@router.post(
    "/login",
    response_model=LoginResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Missing credentials"},
        401: {"model": ErrorResponse, "description": "Invalid username or password"},
        403: {"model": ErrorResponse, "description": "Email not verified"},
    },
    summary="Log in with username and password",
)
def login(
    request_data: LoginRequest,
    gate: LoginGate = Depends(get_login_gate),
):
    """
    Log in with username and password.

    Unknown usernames and wrong passwords return the same 401 body.
    Unverified accounts get 403 with ``needsVerification`` and the email to
    resend the confirmation to.
    """
    try:
        result = gate.attempt_login(request_data.username, request_data.password)
    except InvalidInput as e:
        return error_response(status.HTTP_400_BAD_REQUEST, str(e))

    if isinstance(result, LoginSuccess):
        return LoginResponse(
            token=result.session.access_token,
            user=UserModel(
                id=result.user.id,
                email=result.user.email,
                username=result.profile.username,
                email_verified=result.profile.email_verified,
            ),
        )
    if isinstance(result, NeedsVerification):
        return error_response(
            status.HTTP_403_FORBIDDEN,
            result.message,
            needs_verification=True,
            email=result.email,
        )
    return error_response(
        status.HTTP_401_UNAUTHORIZED, result.message, error_code=result.error_code
    )


@router.post(
    "/login/resend",
    response_model=MessageResponse,
    responses={400: {"model": ErrorResponse, "description": "Resend failed"}},
    summary="Resend the signup confirmation email",
)
def resend_verification(
    request_data: ResendRequest,
    gate: LoginGate = Depends(get_login_gate),
):
    result = gate.resend(request_data.email)
    if not result.ok:
        return error_response(status.HTTP_400_BAD_REQUEST, result.message)
    return MessageResponse(message=result.message)


@router.post(
    "/signup",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid input or provider refusal"},
        409: {"model": ErrorResponse, "description": "Username or email already taken"},
        503: {"model": ErrorResponse, "description": "Profile store unavailable"},
    },
    summary="Create an account",
    description="Creates the provider account and an unverified profile. "
    "Uniqueness is checked again here regardless of earlier availability checks.",
)
def signup(
    request_data: SignupRequest,
    service: SignupService = Depends(get_signup_service),
):
    try:
        result = service.signup(request_data.username, request_data.email, request_data.password)
    except InvalidInput as e:
        return error_response(status.HTTP_400_BAD_REQUEST, str(e))
    except (UsernameTaken, EmailTaken) as e:
        return error_response(status.HTTP_409_CONFLICT, str(e))
    except ProviderError as e:
        return error_response(status.HTTP_400_BAD_REQUEST, e.message, error_code=e.code)
    except ProfileStoreError:
        return error_response(status.HTTP_503_SERVICE_UNAVAILABLE, "Failed to create account")
    return MessageResponse(message=result.message)


@router.get(
    "/availability/{field}",
    response_model=AvailabilityResponse,
    responses={404: {"description": "Unknown field"}},
    summary="Advisory availability check",
    description="Non-binding check of whether a username or email is free. "
    "Signup repeats the check authoritatively.",
)
def check_availability(
    field: str,
    candidate: str = "",
    checker: AvailabilityChecker = Depends(get_availability_checker),
):
    if field not in CHECKABLE_FIELDS:
        return error_response(status.HTTP_404_NOT_FOUND, f"Unknown field: {field}")
    return AvailabilityResponse(candidate=candidate, status=checker.check(field, candidate))


@router.websocket("/availability/ws")
async def availability_stream(
    websocket: WebSocket,
    checker: AvailabilityChecker = Depends(get_availability_checker),
    settings: Settings = Depends(get_settings),
) -> None:
    """
    Debounced availability checks for a stream of keystrokes.

    Client frames: ``{"field": "username"|"email", "value": "..."}``.
    Server frames: ``{"field", "candidate", "status"}``, only for the latest
    value of each field.
    """
    await websocket.accept()

    async def send_result(field: str, candidate: str, result: Availability) -> None:
        await websocket.send_json({"field": field, "candidate": candidate, "status": result.value})

    watchers = {
        field: AvailabilityWatcher(
            check=partial(asyncio.to_thread, checker.check, field),
            on_result=partial(send_result, field),
            delay=settings.availability_debounce_ms / 1000,
        )
        for field in CHECKABLE_FIELDS
    }

    try:
        while True:
            frame = await websocket.receive_text()
            try:
                message = json.loads(frame)
            except ValueError:
                message = None
            field = message.get("field") if isinstance(message, dict) else None
            value = message.get("value") if isinstance(message, dict) else None
            watcher = watchers.get(field) if isinstance(field, str) else None
            if watcher is None or not isinstance(value, str):
                await websocket.send_json({"error": "Expected {field, value}"})
                continue
            watcher.submit(value)
    except WebSocketDisconnect:
        logger.debug("Availability stream closed")
    finally:
        for watcher in watchers.values():
            watcher.close()


@router.post(
    "/password/forgot",
    response_model=MessageResponse,
    responses={400: {"model": ErrorResponse, "description": "Invalid email or provider refusal"}},
    summary="Request a password reset email",
)
def forgot_password(
    request_data: ForgotPasswordRequest,
    service: PasswordRecoveryService = Depends(get_recovery_service),
    settings: Settings = Depends(get_settings),
):
    redirect_to = f"{settings.site_url.rstrip('/')}/v1/auth/confirm?next=/reset-password"
    try:
        message = service.request_reset(request_data.email, redirect_to)
    except InvalidInput as e:
        return error_response(status.HTTP_400_BAD_REQUEST, str(e))
    except ProviderError as e:
        return error_response(status.HTTP_400_BAD_REQUEST, e.message, error_code=e.code)
    return MessageResponse(message=message)


@router.post(
    "/password/reset",
    response_model=MessageResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid password or session"},
        401: {"description": "Missing recovery session token"},
    },
    summary="Set a new password with a recovery session",
)
def reset_password(
    request_data: ResetPasswordRequest,
    access_token: str = Depends(get_bearer_token),
    service: PasswordRecoveryService = Depends(get_recovery_service),
):
    try:
        message = service.reset_password(
            access_token, request_data.password, request_data.confirm_password
        )
    except InvalidInput as e:
        return error_response(status.HTTP_400_BAD_REQUEST, str(e))
    except ProviderError as e:
        return error_response(status.HTTP_400_BAD_REQUEST, e.message, error_code=e.code)
    return MessageResponse(message=message)


@router.get(
    "/me",
    response_model=MeResponse,
    response_model_exclude_none=True,
    responses={401: {"model": ErrorResponse, "description": "Invalid or expired session"}},
    summary="Current user",
)
def me(
    access_token: str = Depends(get_bearer_token),
    provider: SupabaseIdentityProvider = Depends(get_identity_provider),
    store: PostgresProfileStore = Depends(get_profile_store),
):
    try:
        user = provider.get_current_user(access_token)
    except ProviderError as e:
        return error_response(status.HTTP_401_UNAUTHORIZED, e.message, error_code=e.code)

    profile = None
    try:
        found = store.get_by_id(user.id)
        profile = UserModel(
            id=found.id,
            email=found.email,
            username=found.username,
            email_verified=found.email_verified,
        )
    except ProfileNotFound:
        pass
    except ProfileStoreError as e:
        logger.warning("Profile lookup for %s failed (%s)", user.id, e.code)

    return MeResponse(
        user=UserModel(id=user.id, email=user.email, username=user.metadata.get("username")),
        profile=profile,
    )

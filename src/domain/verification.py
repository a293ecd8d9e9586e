"""
Verification dispatcher - Three-way identity proof state machine.

An inbound verification request (email link click, redirect back from the
provider) carries at most one of three kinds of material:

    ErrorReport  fragment error/error_code/error_description, no proof
    CodeFlow     authorization code, exchanged once for a session
    OtpFlow      token_hash + type, verified once as a one-time token

Classification Priority
=======================
1. ErrorReport dominates: a provider-issued error is authoritative, and an
   exchange attempt after it would be doomed. No provider call is made.
2. CodeFlow
3. OtpFlow (both token_hash and type required)
4. NoMaterial when nothing matches

Each request produces exactly one terminal VerificationOutcome. Codes and
token hashes are single-use at the provider; a replay surfaces as the
provider's failure and is never masked as success.

After a successful proof for a purpose that proves email ownership, the
profile reconciler runs. Its failures never downgrade the outcome: the
email is verified at the provider even if the local mirror lags.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Union

from .exceptions import InvalidInput, ProviderError
from .ports import IdentityProvider, Session, VerificationPurpose
from .reconciler import ProfileReconciler

logger = logging.getLogger(__name__)

DEFAULT_NEXT = "/"


@dataclass(frozen=True)
class ErrorReport:
    code: str
    description: str | None = None


@dataclass(frozen=True)
class CodeFlow:
    code: str
    purpose: VerificationPurpose = VerificationPurpose.SIGNUP


@dataclass(frozen=True)
class OtpFlow:
    token_hash: str
    purpose: VerificationPurpose


@dataclass(frozen=True)
class NoMaterial:
    pass


VerificationRequest = Union[ErrorReport, CodeFlow, OtpFlow, NoMaterial]


@dataclass(frozen=True)
class VerificationSuccess:
    purpose: VerificationPurpose
    next: str
    session: Session
    warning: str | None = None

    success = True


@dataclass(frozen=True)
class VerificationFailure:
    reason: str
    error_code: str | None = None

    success = False


VerificationOutcome = Union[VerificationSuccess, VerificationFailure]


def _param(params: Mapping[str, str | None], key: str) -> str | None:
    value = params.get(key)
    if value is None:
        return None
    value = value.strip()
    return value or None


def parse_purpose(value: str) -> VerificationPurpose:
    """Map a ``type`` parameter onto a purpose; raises InvalidInput if unknown."""
    try:
        return VerificationPurpose(value)
    except ValueError:
        raise InvalidInput(f"Unknown verification type: {value}") from None


def classify(params: Mapping[str, str | None]) -> VerificationRequest:
    """
    Classify merged query + fragment parameters into a verification request.

    Raises:
        InvalidInput: token_hash present with an unknown type
    """
    error = _param(params, "error")
    if error:
        return ErrorReport(
            code=_param(params, "error_code") or error,
            description=_param(params, "error_description") or error,
        )

    code = _param(params, "code")
    if code:
        purpose_value = _param(params, "type")
        try:
            purpose = parse_purpose(purpose_value) if purpose_value else VerificationPurpose.SIGNUP
        except InvalidInput:
            purpose = VerificationPurpose.SIGNUP
        return CodeFlow(code=code, purpose=purpose)

    token_hash = _param(params, "token_hash")
    purpose_value = _param(params, "type")
    if token_hash and purpose_value:
        return OtpFlow(token_hash=token_hash, purpose=parse_purpose(purpose_value))

    return NoMaterial()


def safe_next(value: str | None) -> str:
    """Only same-site absolute paths are honoured as continuations."""
    if not value or not value.startswith("/") or value.startswith("//") or "\\" in value:
        return DEFAULT_NEXT
    return value


@dataclass
class VerificationService:
    """Drives a classified verification request to a single outcome."""

    provider: IdentityProvider
    reconciler: ProfileReconciler

    def verify(self, params: Mapping[str, str | None]) -> VerificationOutcome:
        """
        Verify an inbound request.

        Args:
            params: Query parameters merged with redirect-fragment parameters

        Returns:
            VerificationSuccess or VerificationFailure
        """
        try:
            request = classify(params)
        except InvalidInput as e:
            logger.info("Rejected verification request: %s", e)
            return VerificationFailure("verification failed", "invalid_purpose")

        next_path = safe_next(_param(params, "next"))

        if isinstance(request, ErrorReport):
            return self._handle_error_report(request)
        if isinstance(request, CodeFlow):
            return self._handle_code_flow(request, next_path)
        if isinstance(request, OtpFlow):
            return self._handle_otp_flow(request, next_path)
        return VerificationFailure("no verification material")

    def _handle_error_report(self, request: ErrorReport) -> VerificationFailure:
        logger.info("Verification error reported by provider: %s", request.code)
        return VerificationFailure(request.description or request.code, request.code)

    def _handle_code_flow(self, request: CodeFlow, next_path: str) -> VerificationOutcome:
        try:
            session = self.provider.exchange_code(request.code)
        except ProviderError as e:
            logger.warning("Code exchange failed: %s", e.code or e.message)
            return VerificationFailure("exchange failed", e.code)
        return self._complete(request.purpose, session, next_path)

    def _handle_otp_flow(self, request: OtpFlow, next_path: str) -> VerificationOutcome:
        try:
            session = self.provider.verify_one_time_token(request.token_hash, request.purpose)
        except ProviderError as e:
            logger.warning("One-time token verification failed: %s", e.code or e.message)
            return VerificationFailure("verification failed", e.code)
        return self._complete(request.purpose, session, next_path)

    def _complete(
        self, purpose: VerificationPurpose, session: Session, next_path: str
    ) -> VerificationSuccess:
        warning = None
        if purpose.proves_email_ownership:
            user = session.user
            result = self.reconciler.reconcile(user.id, user.email, user.metadata.get("username"))
            if not result.ok:
                warning = "Email verified, but your profile could not be updated yet"
        logger.info("Verification succeeded for user %s (%s)", session.user.id, purpose.value)
        return VerificationSuccess(purpose=purpose, next=next_path, session=session, warning=warning)

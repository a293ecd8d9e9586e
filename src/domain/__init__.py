"""
Domain layer - Pure business logic with zero framework imports.

This package contains the account verification and session bootstrap core:
the verification dispatcher, profile reconciler, login gate, availability
checker and signup/recovery services. It defines its own port interfaces
for infrastructure abstraction, ensuring true hexagonal architecture
decoupling.
"""

from .availability import AvailabilityChecker, AvailabilityWatcher
from .exceptions import (
    AccountError,
    EmailTaken,
    InvalidInput,
    ProfileConflict,
    ProfileNotFound,
    ProfileStoreError,
    ProviderError,
    UsernameTaken,
)
from .login import InvalidCredentials, LoginGate, LoginSuccess, NeedsVerification, SignInLatency
from .ports import (
    Availability,
    IdentityProvider,
    Profile,
    ProfileStore,
    Session,
    User,
    VerificationPurpose,
)
from .reconciler import ProfileReconciler, ReconcileResult, ReconcileStatus
from .recovery import PasswordRecoveryService
from .signup import SignupService
from .verification import VerificationFailure, VerificationService, VerificationSuccess

__all__ = [
    "AccountError",
    "Availability",
    "AvailabilityChecker",
    "AvailabilityWatcher",
    "EmailTaken",
    "IdentityProvider",
    "InvalidCredentials",
    "InvalidInput",
    "LoginGate",
    "LoginSuccess",
    "NeedsVerification",
    "PasswordRecoveryService",
    "Profile",
    "ProfileConflict",
    "ProfileNotFound",
    "ProfileReconciler",
    "ProfileStore",
    "ProfileStoreError",
    "ProviderError",
    "ReconcileResult",
    "ReconcileStatus",
    "Session",
    "SignInLatency",
    "SignupService",
    "User",
    "UsernameTaken",
    "VerificationFailure",
    "VerificationPurpose",
    "VerificationService",
    "VerificationSuccess",
]

"""
Profile reconciler - Idempotent "mark verified" upsert.

The profile store has no native upsert, so reconciliation is an explicit
two-step: update the existing row, and only when the update reports
not-found, insert a fresh verified row.

Concurrent writers for the same new user can both observe not-found and
both insert. The store's primary-key constraint rejects the second insert,
which means the row now exists. The winner may be another verification or
signup's unverified pre-create, so the update is applied once more against
that row.

Reconciliation runs after identity has already been proven, so failures are
returned as warnings rather than raised.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from .exceptions import ProfileConflict, ProfileNotFound, ProfileStoreError
from .ports import Profile, ProfileStore

logger = logging.getLogger(__name__)


class ReconcileStatus(Enum):
    OK = "ok"
    WARNING = "warning"


@dataclass(frozen=True)
class ReconcileResult:
    status: ReconcileStatus
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is ReconcileStatus.OK


@dataclass
class ProfileReconciler:
    """Ensures a verified Profile row exists for a proven user."""

    store: ProfileStore

    def reconcile(self, user_id: str, email: str, proposed_username: str | None) -> ReconcileResult:
        """
        Mark the profile for ``user_id`` verified, creating it if missing.

        Args:
            user_id: Provider-assigned user id
            email: Email whose ownership was just proven
            proposed_username: Username from signup metadata; the email
                local part is used when absent

        Returns:
            ReconcileResult, OK or WARNING with a message
        """
        try:
            self.store.update(user_id, {"email_verified": True})
            return ReconcileResult(ReconcileStatus.OK)
        except ProfileNotFound:
            pass
        except ProfileStoreError as e:
            return self._warn(user_id, f"profile update failed ({e.code}): {e.message}")

        profile = Profile(
            id=user_id,
            username=proposed_username or email.split("@", 1)[0],
            email=email,
            email_verified=True,
        )
        try:
            self.store.insert(profile)
        except ProfileConflict as e:
            if e.field == "id":
                # Another writer created the row first; it may be signup's
                # unverified pre-create, so the flag is set again.
                return self._mark_existing(user_id)
            return self._warn(user_id, f"profile insert conflicts on {e.field or 'unknown field'}")
        except ProfileStoreError as e:
            return self._warn(user_id, f"profile insert failed ({e.code}): {e.message}")

        logger.info("[RECONCILE] Created verified profile %s", user_id)
        return ReconcileResult(ReconcileStatus.OK)

    def _mark_existing(self, user_id: str) -> ReconcileResult:
        logger.info("[RECONCILE] Profile %s created concurrently, re-applying verification", user_id)
        try:
            self.store.update(user_id, {"email_verified": True})
        except ProfileStoreError as e:
            return self._warn(user_id, f"profile re-update failed ({e.code}): {e.message}")
        return ReconcileResult(ReconcileStatus.OK)

    def _warn(self, user_id: str, message: str) -> ReconcileResult:
        # Tagged so an out-of-band reconciliation job can pick these up.
        logger.warning("[RECONCILE] user_id=%s %s", user_id, message)
        return ReconcileResult(ReconcileStatus.WARNING, message)

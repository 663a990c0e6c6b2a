"""Typed failures raised by the scheduling core."""

from __future__ import annotations

from enum import Enum


class SchedulerError(Exception):
    """Base class for every error the core raises on purpose."""


class InvalidInputError(SchedulerError):
    """User input rejected locally, before reaching the store."""


class AuthorizationError(SchedulerError):
    """The actor's known role does not allow the operation."""


class ConflictKind(str, Enum):
    CODE_COLLISION = "code_collision"
    INVITE_NOT_FOUND = "invite_not_found"
    INVITE_REVOKED = "invite_revoked"
    INVITE_DISABLED = "invite_disabled"
    INVITE_ALREADY_REDEEMED = "invite_already_redeemed"
    NOT_A_MEMBER = "not_a_member"
    CAMPAIGN_NOT_FOUND = "campaign_not_found"


CONFLICT_MESSAGES = {
    ConflictKind.CODE_COLLISION: "Invite code already exists",
    ConflictKind.INVITE_NOT_FOUND: "Invite code not found",
    ConflictKind.INVITE_REVOKED: "Invite code has been revoked",
    ConflictKind.INVITE_DISABLED: "Invite code is disabled",
    ConflictKind.INVITE_ALREADY_REDEEMED: "Invite code was already redeemed by another user",
    ConflictKind.NOT_A_MEMBER: "User is not a member of this campaign",
    ConflictKind.CAMPAIGN_NOT_FOUND: "Campaign not found",
}


class ConflictError(SchedulerError):
    """Raised from inside transactional callbacks; ``kind`` tells callers what happened."""

    def __init__(self, kind: ConflictKind, detail: str | None = None):
        self.kind = kind
        self.detail = detail or CONFLICT_MESSAGES[kind]
        super().__init__(self.detail)


class InviteAllocationError(SchedulerError):
    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Unable to allocate a unique invite code after {attempts} attempts")


class DeletionIncompleteError(SchedulerError):
    """A deletion batch failed; batches before it stay deleted and a retry is safe."""

    def __init__(self, campaign_id: str, completed_batches: int, total_batches: int, cause: Exception):
        self.campaign_id = campaign_id
        self.completed_batches = completed_batches
        self.total_batches = total_batches
        self.cause = cause
        super().__init__(
            f"Deletion of campaign {campaign_id} incomplete: "
            f"{completed_batches} of {total_batches} batches applied ({cause})"
        )


class StoreError(SchedulerError):
    """Generic, retryable failure reported by the document store."""


class StoreUnavailableError(StoreError):
    pass


class TransactionContentionError(StoreError):
    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Transaction aborted after {attempts} conflicting attempts")

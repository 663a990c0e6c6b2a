from .availability import AvailabilityRecord, DateScoreSummary, HostMatrixRow, HostSummary
from .campaign import (
    Campaign,
    DeletionReport,
    HostSettings,
    Invite,
    Membership,
    Redemption,
)
from .state import (
    Actor,
    Identity,
    OperationKind,
    OperationStatus,
    PaintMode,
    PaintState,
    PersistedState,
    SchedulerState,
)
from .status import AvailabilityStatus, UserRole

__all__ = [
    "Actor",
    "AvailabilityRecord",
    "AvailabilityStatus",
    "Campaign",
    "DateScoreSummary",
    "DeletionReport",
    "HostMatrixRow",
    "HostSettings",
    "HostSummary",
    "Identity",
    "Invite",
    "Membership",
    "OperationKind",
    "OperationStatus",
    "PaintMode",
    "PaintState",
    "PersistedState",
    "Redemption",
    "SchedulerState",
    "UserRole",
]

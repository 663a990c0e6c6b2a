from __future__ import annotations

from enum import Enum
from typing import Any, List, Tuple


class AvailabilityStatus(str, Enum):
    """A single-day availability state selected by a user."""

    UNSPECIFIED = "unspecified"
    AVAILABLE = "available"
    MAYBE = "maybe"
    UNAVAILABLE = "unavailable"


class UserRole(str, Enum):
    MEMBER = "member"
    ADMIN = "admin"


STATUS_LABELS = {
    AvailabilityStatus.AVAILABLE: "Available",
    AvailabilityStatus.MAYBE: "Maybe",
    AvailabilityStatus.UNAVAILABLE: "Unavailable",
    AvailabilityStatus.UNSPECIFIED: "Unspecified",
}

# Higher values represent better scheduling outcomes
STATUS_SCORES = {
    AvailabilityStatus.AVAILABLE: 2,
    AvailabilityStatus.MAYBE: 1,
    AvailabilityStatus.UNSPECIFIED: 0,
    AvailabilityStatus.UNAVAILABLE: -2,
}

# Brushes offered by the availability toolbar, in display order
PAINT_OPTIONS: List[Tuple[AvailabilityStatus, str]] = [
    (AvailabilityStatus.AVAILABLE, "Available"),
    (AvailabilityStatus.MAYBE, "Maybe"),
    (AvailabilityStatus.UNAVAILABLE, "Unavailable"),
    (AvailabilityStatus.UNSPECIFIED, "Clear"),
]

ROLE_RANK = {UserRole.MEMBER: 1, UserRole.ADMIN: 2}


def status_label(status: AvailabilityStatus) -> str:
    return STATUS_LABELS[status]


def status_score(status: AvailabilityStatus) -> int:
    return STATUS_SCORES[status]


def is_availability_status(value: Any) -> bool:
    if isinstance(value, AvailabilityStatus):
        return True
    return isinstance(value, str) and value in AvailabilityStatus._value2member_map_


def coerce_status(value: Any) -> AvailabilityStatus:
    """Map an untrusted stored value to a status; anything unknown is unspecified."""
    if is_availability_status(value):
        return AvailabilityStatus(value)
    return AvailabilityStatus.UNSPECIFIED


def coerce_role(value: Any) -> UserRole:
    if isinstance(value, str) and value in UserRole._value2member_map_:
        return UserRole(value)
    return UserRole.MEMBER


def stronger_role(left: UserRole, right: UserRole) -> UserRole:
    return left if ROLE_RANK[left] >= ROLE_RANK[right] else right

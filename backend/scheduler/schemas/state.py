from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from scheduler.schemas.campaign import Campaign, Membership
from scheduler.schemas.status import AvailabilityStatus, UserRole

DayMap = Dict[str, AvailabilityStatus]
AvailabilityByUser = Dict[str, DayMap]


class Identity(BaseModel):
    """The signed-in user."""

    model_config = ConfigDict(frozen=True)

    uid: str
    name: str = ""
    email: str = ""


class Actor(Identity):
    """A user together with the role known for the campaign being acted on."""

    role: UserRole = UserRole.MEMBER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class PersistedState(BaseModel):
    """Last known server state of the selected campaign."""

    model_config = ConfigDict(frozen=True)

    campaign: Optional[Campaign] = None
    members: List[Membership] = Field(default_factory=list)
    host_user_id: str = ""
    availability: AvailabilityByUser = Field(default_factory=dict)


class PaintMode(str, Enum):
    IDLE = "idle"
    PAINTING = "painting"


class PaintState(BaseModel):
    model_config = ConfigDict(frozen=True)

    mode: PaintMode = PaintMode.IDLE
    brush: AvailabilityStatus = AvailabilityStatus.AVAILABLE


class OperationKind(str, Enum):
    SAVE_AVAILABILITY = "save_availability"
    CREATE_CAMPAIGN = "create_campaign"
    UPDATE_INVITE = "update_invite"
    DELETE_CAMPAIGN = "delete_campaign"
    KICK_MEMBER = "kick_member"
    ASSIGN_HOST = "assign_host"
    REDEEM_INVITE = "redeem_invite"


class OperationStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    in_flight: bool = False
    error: str = ""
    # e.g. the user being removed while a kick is in flight
    target: str = ""


class SchedulerState(BaseModel):
    """Everything a session knows; replaced wholesale by transition functions."""

    model_config = ConfigDict(frozen=True)

    identity: Optional[Identity] = None
    campaign_id: str = ""
    persisted: PersistedState = Field(default_factory=PersistedState)
    pending: AvailabilityByUser = Field(default_factory=dict)
    paint: PaintState = Field(default_factory=PaintState)
    month_value: str = ""
    operations: Dict[OperationKind, OperationStatus] = Field(default_factory=dict)

    def operation(self, kind: OperationKind) -> OperationStatus:
        return self.operations.get(kind, OperationStatus())

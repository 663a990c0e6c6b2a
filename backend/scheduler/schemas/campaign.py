from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from scheduler.schemas.status import UserRole, coerce_role


class StoredModel(BaseModel):
    """Base for records kept in the document store (camelCase field names)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_document(cls, data: Dict[str, Any], **overrides: Any):
        return cls.model_validate({**data, **overrides})


class Campaign(StoredModel):
    id: str
    name: str
    invite_code: str = ""
    invite_enabled: bool = False
    created_by_uid: str = ""
    created_at: Optional[datetime] = None


class Membership(StoredModel):
    """Existence of this record is what makes a user part of a campaign."""

    uid: str
    name: str = ""
    email: str = ""
    role: UserRole = UserRole.MEMBER
    joined_at: Optional[datetime] = None

    @field_validator("role", mode="before")
    @classmethod
    def tolerate_unknown_role(cls, value: Any) -> UserRole:
        return coerce_role(value)


class Invite(StoredModel):
    code: str
    campaign_id: str
    # None for the campaign's durable invite; a role for single-use role-scoped invites
    role: Optional[UserRole] = None
    enabled: bool = True
    revoked: bool = False
    created_by_uid: str = ""
    redeemed_by_uid: str = ""
    created_at: Optional[datetime] = None
    redeemed_at: Optional[datetime] = None

    @property
    def single_use(self) -> bool:
        return self.role is not None


class HostSettings(StoredModel):
    host_user_id: str = ""


class Redemption(BaseModel):
    campaign_id: str
    role: UserRole
    already_member: bool = False
    became_host: bool = False


class DeletionReport(BaseModel):
    campaign_id: str
    batch_sizes: List[int] = Field(default_factory=list)

    @property
    def deleted_count(self) -> int:
        return sum(self.batch_sizes)

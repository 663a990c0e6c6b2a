from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from scheduler.schemas.status import AvailabilityStatus, coerce_status
from scheduler.services.dates import is_valid_date_key


class AvailabilityRecord(BaseModel):
    """One user's day map inside one campaign."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    uid: str
    days: Dict[str, AvailabilityStatus] = Field(default_factory=dict)
    updated_at: Optional[datetime] = None

    @field_validator("days", mode="before")
    @classmethod
    def drop_malformed_days(cls, value: Any) -> Dict[str, AvailabilityStatus]:
        if not isinstance(value, dict):
            return {}
        return {
            key: coerce_status(status)
            for key, status in value.items()
            if isinstance(key, str) and is_valid_date_key(key)
        }


class DateScoreSummary(BaseModel):
    """Aggregated per-date scoring details for host ranking and matrix output."""

    model_config = ConfigDict(frozen=True)

    date_key: str
    available_count: int = 0
    maybe_count: int = 0
    unavailable_count: int = 0
    unspecified_count: int = 0
    score: int = 0

    @property
    def responded_count(self) -> int:
        return self.available_count + self.maybe_count + self.unavailable_count


class HostMatrixRow(BaseModel):
    summary: DateScoreSummary
    statuses: Dict[str, AvailabilityStatus]


class HostSummary(BaseModel):
    today_key: str
    top_candidates: List[DateScoreSummary]
    all_green_dates: List[str]
    any_red_dates: List[str]
    rows: List[HostMatrixRow]

"""
Unsaved, session-local availability edits.

Pending entries only ever hold values that differ from the last known server
value.  All functions are pure: they return new mappings and leave their
inputs untouched, so the session can swap state values atomically.
"""

from __future__ import annotations

import logging
from typing import Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict

from scheduler.schemas.state import AvailabilityByUser, DayMap
from scheduler.schemas.status import AvailabilityStatus

logger = logging.getLogger(__name__)


class CommitBatch(BaseModel):
    """What one save dispatched: the full day map to write and the edits it carries."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    campaign_id: str = ""
    payload: Dict[str, AvailabilityStatus]
    entries: Dict[str, AvailabilityStatus]


def server_status(server: Mapping[str, DayMap], user_id: str, date_key: str) -> AvailabilityStatus:
    return server.get(user_id, {}).get(date_key, AvailabilityStatus.UNSPECIFIED)


def effective_status(
    server: Mapping[str, DayMap],
    pending: Mapping[str, DayMap],
    user_id: str,
    date_key: str,
) -> AvailabilityStatus:
    """Pending value if present, else the server value, else unspecified."""
    user_pending = pending.get(user_id)
    if user_pending and date_key in user_pending:
        return user_pending[date_key]
    return server_status(server, user_id, date_key)


def _with_user(pending: Mapping[str, DayMap], user_id: str, days: DayMap) -> AvailabilityByUser:
    result = {uid: dict(user_days) for uid, user_days in pending.items() if uid != user_id}
    if days:
        result[user_id] = days
    return result


def set_paint(
    server: Mapping[str, DayMap],
    pending: Mapping[str, DayMap],
    user_id: str,
    date_key: str,
    desired: AvailabilityStatus,
) -> AvailabilityByUser:
    """
    Stage ``desired`` for one day.

    The comparison is against the server value, not the previous pending
    value, so painting a day back to what the server has always cancels the
    pending entry.
    """
    user_days = dict(pending.get(user_id, {}))
    if server_status(server, user_id, date_key) == desired:
        if date_key not in user_days:
            return _with_user(pending, user_id, user_days)
        del user_days[date_key]
    else:
        user_days[date_key] = desired
    return _with_user(pending, user_id, user_days)


def reconcile(pending: Mapping[str, DayMap], server: Mapping[str, DayMap]) -> AvailabilityByUser:
    """Drop pending entries the server has caught up with. Never adds entries."""
    result: AvailabilityByUser = {}
    dropped = 0
    for user_id, user_days in pending.items():
        kept = {
            date_key: status
            for date_key, status in user_days.items()
            if server_status(server, user_id, date_key) != status
        }
        dropped += len(user_days) - len(kept)
        if kept:
            result[user_id] = kept
    if dropped:
        logger.debug(f"Reconciled {dropped} pending edit(s) against server snapshot")
    return result


def has_pending(pending: Mapping[str, DayMap], user_id: str) -> bool:
    return bool(pending.get(user_id))


def prepare_commit(
    server: Mapping[str, DayMap],
    pending: Mapping[str, DayMap],
    user_id: str,
    campaign_id: str = "",
) -> Optional[CommitBatch]:
    """Snapshot the user's pending edits and build the merged day map to write."""
    entries = dict(pending.get(user_id, {}))
    if not entries:
        return None

    payload = dict(server.get(user_id, {}))
    payload.update(entries)
    # Absent means unspecified, so cleared days are simply left out
    payload = {
        date_key: status
        for date_key, status in sorted(payload.items())
        if status != AvailabilityStatus.UNSPECIFIED
    }
    return CommitBatch(user_id=user_id, campaign_id=campaign_id, payload=payload, entries=entries)


def commit_succeeded(pending: Mapping[str, DayMap], batch: CommitBatch) -> AvailabilityByUser:
    """
    Clear the entries this batch wrote.

    Days painted after the batch was dispatched are kept, including days in
    the batch that were re-painted to a different value since.
    """
    user_days = {
        date_key: status
        for date_key, status in pending.get(batch.user_id, {}).items()
        if batch.entries.get(date_key) != status
    }
    return _with_user(pending, batch.user_id, user_days)


def commit_failed(pending: Mapping[str, DayMap], batch: CommitBatch) -> AvailabilityByUser:
    logger.info(f"Keeping {len(batch.entries)} pending edit(s) for retry after failed save")
    return {uid: dict(user_days) for uid, user_days in pending.items()}


def discard(pending: Mapping[str, DayMap], user_id: Optional[str] = None) -> AvailabilityByUser:
    if user_id is None:
        return {}
    return _with_user(pending, user_id, {})

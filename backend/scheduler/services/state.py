"""
Pure transitions of ``SchedulerState``.

Each function takes the current state value and returns the next one; the
session is the only place that holds and replaces the value.
"""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Iterable, Optional

from scheduler.schemas.availability import AvailabilityRecord
from scheduler.schemas.campaign import Campaign, HostSettings, Membership
from scheduler.schemas.state import (
    Actor,
    Identity,
    OperationKind,
    OperationStatus,
    PaintState,
    PersistedState,
    SchedulerState,
)
from scheduler.schemas.status import AvailabilityStatus
from scheduler.services import paint
from scheduler.services.channel import SnapshotEvent, SnapshotKind
from scheduler.services.dates import parse_month_value
from scheduler.services.pending_edits import (
    CommitBatch,
    commit_failed,
    commit_succeeded,
    effective_status,
    reconcile,
)
from scheduler.services.permissions import build_actor


class PaintGesture(str, Enum):
    DOWN = "down"
    ENTER = "enter"
    CLICK = "click"


def signed_in(state: SchedulerState, identity: Identity) -> SchedulerState:
    if state.identity and state.identity.uid == identity.uid:
        return state.model_copy(update={"identity": identity})
    return state.model_copy(update={"identity": identity, "pending": {}})


def signed_out(state: SchedulerState) -> SchedulerState:
    """Forget the user, the campaign and every unsaved edit."""
    return SchedulerState(month_value=state.month_value, paint=PaintState(brush=state.paint.brush))


def campaign_selected(state: SchedulerState, campaign_id: str) -> SchedulerState:
    if campaign_id == state.campaign_id:
        return state
    return state.model_copy(
        update={
            "campaign_id": campaign_id,
            "persisted": PersistedState(),
            "pending": {},
            "paint": PaintState(brush=state.paint.brush),
        }
    )


def snapshot_received(state: SchedulerState, event: SnapshotEvent) -> SchedulerState:
    # Late events from a campaign that is no longer selected
    if not state.campaign_id or event.campaign_id != state.campaign_id:
        return state

    persisted = state.persisted
    if event.kind == SnapshotKind.CAMPAIGN:
        campaign = Campaign.from_document(event.data, id=event.campaign_id) if event.data else None
        return state.model_copy(update={"persisted": persisted.model_copy(update={"campaign": campaign})})

    if event.kind == SnapshotKind.MEMBERS:
        members = sorted(
            (Membership.from_document(data, uid=uid) for uid, data in (event.data or {}).items()),
            key=lambda member: (member.name.lower(), member.uid),
        )
        return state.model_copy(update={"persisted": persisted.model_copy(update={"members": members})})

    if event.kind == SnapshotKind.SETTINGS:
        host = HostSettings.from_document(event.data or {})
        return state.model_copy(
            update={"persisted": persisted.model_copy(update={"host_user_id": host.host_user_id})}
        )

    availability = {
        uid: AvailabilityRecord.model_validate({**data, "uid": uid}).days
        for uid, data in (event.data or {}).items()
    }
    return state.model_copy(
        update={
            "persisted": persisted.model_copy(update={"availability": availability}),
            "pending": reconcile(state.pending, availability),
        }
    )


def brush_selected(state: SchedulerState, brush: AvailabilityStatus) -> SchedulerState:
    return state.model_copy(update={"paint": paint.select_brush(state.paint, brush)})


def month_selected(state: SchedulerState, month_value: str, today: Optional[date] = None) -> SchedulerState:
    year, month = parse_month_value(month_value, today)
    return state.model_copy(update={"month_value": f"{year:04d}-{month:02d}"})


def painted(
    state: SchedulerState, gesture: PaintGesture, date_key: str, today_date_key: str
) -> SchedulerState:
    if state.identity is None or not state.campaign_id:
        return state

    handler = {
        PaintGesture.DOWN: paint.pointer_down,
        PaintGesture.ENTER: paint.pointer_enter,
        PaintGesture.CLICK: paint.click,
    }[gesture]
    paint_state, pending = handler(
        state.paint,
        state.persisted.availability,
        state.pending,
        state.identity.uid,
        date_key,
        today_date_key,
    )
    return state.model_copy(update={"paint": paint_state, "pending": pending})


def pointer_released(state: SchedulerState) -> SchedulerState:
    return state.model_copy(update={"paint": paint.pointer_up(state.paint)})


def _with_operation(state: SchedulerState, kind: OperationKind, status: OperationStatus) -> SchedulerState:
    operations = dict(state.operations)
    operations[kind] = status
    return state.model_copy(update={"operations": operations})


def operation_started(state: SchedulerState, kind: OperationKind, target: str = "") -> SchedulerState:
    """Mark in flight; the previous error of this operation class is cleared."""
    return _with_operation(state, kind, OperationStatus(in_flight=True, target=target))


def operation_failed(state: SchedulerState, kind: OperationKind, message: str) -> SchedulerState:
    return _with_operation(state, kind, OperationStatus(error=message))


def operation_finished(state: SchedulerState, kind: OperationKind) -> SchedulerState:
    return _with_operation(state, kind, OperationStatus())


def _owns_batch(state: SchedulerState, batch: CommitBatch) -> bool:
    return (
        batch.campaign_id == state.campaign_id
        and state.identity is not None
        and batch.user_id == state.identity.uid
    )


def save_succeeded(state: SchedulerState, batch: CommitBatch) -> SchedulerState:
    # Pending edits now belong to another campaign or user; leave them alone
    if _owns_batch(state, batch):
        state = state.model_copy(update={"pending": commit_succeeded(state.pending, batch)})
    return operation_finished(state, OperationKind.SAVE_AVAILABILITY)


def save_failed(state: SchedulerState, batch: CommitBatch, message: str) -> SchedulerState:
    if _owns_batch(state, batch):
        state = state.model_copy(update={"pending": commit_failed(state.pending, batch)})
    return operation_failed(state, OperationKind.SAVE_AVAILABILITY, message)


def current_membership(state: SchedulerState) -> Optional[Membership]:
    if state.identity is None:
        return None
    return next((m for m in state.persisted.members if m.uid == state.identity.uid), None)


def actor_for(state: SchedulerState, admin_emails: Optional[Iterable[str]] = None) -> Optional[Actor]:
    if state.identity is None:
        return None
    return build_actor(state.identity, current_membership(state), admin_emails)


def status_of(state: SchedulerState, user_id: str, date_key: str) -> AvailabilityStatus:
    """Computed on every call from the latest snapshot and pending edits."""
    return effective_status(state.persisted.availability, state.pending, user_id, date_key)

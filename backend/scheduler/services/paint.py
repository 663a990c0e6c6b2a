"""
Drag-paint interaction: pointer events in, pending-edit mutations out.

States are ``idle`` and ``painting``.  Pointer-down on an editable cell starts
painting and paints the origin; entering further cells while painting paints
them; pointer-up anywhere ends painting.  Days before today are never painted.
"""

from __future__ import annotations

from typing import Mapping, Tuple

from scheduler.schemas.state import AvailabilityByUser, DayMap, PaintMode, PaintState
from scheduler.schemas.status import AvailabilityStatus
from scheduler.services.dates import is_past_date_key
from scheduler.services.pending_edits import set_paint

PaintResult = Tuple[PaintState, AvailabilityByUser]


def is_editable(date_key: str, today_date_key: str) -> bool:
    return not is_past_date_key(date_key, today_date_key)


def _paint(
    paint: PaintState,
    server: Mapping[str, DayMap],
    pending: Mapping[str, DayMap],
    user_id: str,
    date_key: str,
) -> AvailabilityByUser:
    return set_paint(server, pending, user_id, date_key, paint.brush)


def select_brush(paint: PaintState, brush: AvailabilityStatus) -> PaintState:
    return paint.model_copy(update={"brush": AvailabilityStatus(brush)})


def pointer_down(
    paint: PaintState,
    server: Mapping[str, DayMap],
    pending: Mapping[str, DayMap],
    user_id: str,
    date_key: str,
    today_date_key: str,
) -> PaintResult:
    if not is_editable(date_key, today_date_key):
        return paint, dict(pending)
    painting = paint.model_copy(update={"mode": PaintMode.PAINTING})
    return painting, _paint(painting, server, pending, user_id, date_key)


def pointer_enter(
    paint: PaintState,
    server: Mapping[str, DayMap],
    pending: Mapping[str, DayMap],
    user_id: str,
    date_key: str,
    today_date_key: str,
) -> PaintResult:
    if paint.mode != PaintMode.PAINTING or not is_editable(date_key, today_date_key):
        return paint, dict(pending)
    return paint, _paint(paint, server, pending, user_id, date_key)


def pointer_up(paint: PaintState) -> PaintState:
    """Global release; ends painting wherever the pointer is."""
    if paint.mode == PaintMode.IDLE:
        return paint
    return paint.model_copy(update={"mode": PaintMode.IDLE})


def click(
    paint: PaintState,
    server: Mapping[str, DayMap],
    pending: Mapping[str, DayMap],
    user_id: str,
    date_key: str,
    today_date_key: str,
) -> PaintResult:
    """One-cell paint without entering the painting state."""
    if not is_editable(date_key, today_date_key):
        return paint, dict(pending)
    return paint, _paint(paint, server, pending, user_id, date_key)

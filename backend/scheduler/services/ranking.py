"""Host ranking: score candidate dates from every member's effective status."""

from __future__ import annotations

from typing import Callable, Iterable, List, Optional, Sequence

from scheduler.core.config import settings
from scheduler.schemas.availability import DateScoreSummary, HostMatrixRow, HostSummary
from scheduler.schemas.state import Actor
from scheduler.schemas.status import AvailabilityStatus, status_score

StatusResolver = Callable[[str, str], AvailabilityStatus]


def summarize_date(
    member_ids: Sequence[str], date_key: str, resolve: StatusResolver
) -> DateScoreSummary:
    counts = {status: 0 for status in AvailabilityStatus}
    score = 0
    for member_id in member_ids:
        status = resolve(member_id, date_key)
        score += status_score(status)
        counts[status] += 1

    return DateScoreSummary(
        date_key=date_key,
        available_count=counts[AvailabilityStatus.AVAILABLE],
        maybe_count=counts[AvailabilityStatus.MAYBE],
        unavailable_count=counts[AvailabilityStatus.UNAVAILABLE],
        unspecified_count=counts[AvailabilityStatus.UNSPECIFIED],
        score=score,
    )


def ranking_key(summary: DateScoreSummary):
    # Highest score, then fewer hard conflicts, then more strong votes, then earliest date
    return (-summary.score, summary.unavailable_count, -summary.available_count, summary.date_key)


def rank_dates(
    member_ids: Sequence[str], date_keys: Iterable[str], resolve: StatusResolver
) -> List[DateScoreSummary]:
    summaries = [summarize_date(member_ids, date_key, resolve) for date_key in dict.fromkeys(date_keys)]
    return sorted(summaries, key=ranking_key)


def future_date_keys(date_keys: Iterable[str], today_date_key: str) -> List[str]:
    return [date_key for date_key in date_keys if date_key >= today_date_key]


def top_candidates(
    ranked: Sequence[DateScoreSummary],
    limit: Optional[int] = None,
    exclude_unanswered: Optional[bool] = None,
) -> List[DateScoreSummary]:
    limit = settings.TOP_CANDIDATE_LIMIT if limit is None else limit
    if exclude_unanswered is None:
        exclude_unanswered = settings.TOP_CANDIDATES_EXCLUDE_UNANSWERED

    candidates = [s for s in ranked if s.responded_count > 0] if exclude_unanswered else list(ranked)
    return candidates[:limit]


def all_green_dates(
    member_ids: Sequence[str], date_keys: Iterable[str], resolve: StatusResolver
) -> List[str]:
    if not member_ids:
        return []
    return [
        date_key
        for date_key in date_keys
        if all(resolve(member_id, date_key) == AvailabilityStatus.AVAILABLE for member_id in member_ids)
    ]


def any_red_dates(
    member_ids: Sequence[str], date_keys: Iterable[str], resolve: StatusResolver
) -> List[str]:
    return [
        date_key
        for date_key in date_keys
        if any(resolve(member_id, date_key) == AvailabilityStatus.UNAVAILABLE for member_id in member_ids)
    ]


def can_view_summary(actor: Actor, host_user_id: str) -> bool:
    return actor.is_admin or (bool(host_user_id) and actor.uid == host_user_id)


def build_host_summary(
    member_ids: Sequence[str],
    date_keys: Sequence[str],
    resolve: StatusResolver,
    today_date_key: str,
    limit: Optional[int] = None,
    exclude_unanswered: Optional[bool] = None,
) -> HostSummary:
    """Everything the host view shows for one month, restricted to today-or-later."""
    upcoming = future_date_keys(date_keys, today_date_key)
    ranked = rank_dates(member_ids, upcoming, resolve)
    rows = [
        HostMatrixRow(
            summary=summary,
            statuses={member_id: resolve(member_id, summary.date_key) for member_id in member_ids},
        )
        for summary in ranked
    ]
    return HostSummary(
        today_key=today_date_key,
        top_candidates=top_candidates(ranked, limit=limit, exclude_unanswered=exclude_unanswered),
        all_green_dates=all_green_dates(member_ids, upcoming, resolve),
        any_red_dates=any_red_dates(member_ids, upcoming, resolve),
        rows=rows,
    )

import unittest

from scheduler.schemas.state import Actor
from scheduler.schemas.status import AvailabilityStatus, UserRole
from scheduler.services.ranking import (
    all_green_dates,
    any_red_dates,
    build_host_summary,
    can_view_summary,
    rank_dates,
    summarize_date,
    top_candidates,
)

A = AvailabilityStatus.AVAILABLE
M = AvailabilityStatus.MAYBE
U = AvailabilityStatus.UNAVAILABLE
X = AvailabilityStatus.UNSPECIFIED


def resolver(table):
    def resolve(member_id, date_key):
        return table.get(date_key, {}).get(member_id, X)

    return resolve


class TestScoring(unittest.TestCase):
    def test_summary_counts_and_score(self) -> None:
        resolve = resolver({"2024-02-10": {"a": A, "b": A, "c": U}})
        summary = summarize_date(["a", "b", "c"], "2024-02-10", resolve)

        self.assertEqual(summary.score, 2)
        self.assertEqual(summary.available_count, 2)
        self.assertEqual(summary.unavailable_count, 1)
        self.assertEqual(summary.responded_count, 3)

    def test_fewer_conflicts_win_a_tie(self) -> None:
        resolve = resolver(
            {
                "2024-02-10": {"a": A, "b": A, "c": U},
                "2024-02-11": {"a": A, "b": X, "c": X},
            }
        )
        ranked = rank_dates(["a", "b", "c"], ["2024-02-10", "2024-02-11"], resolve)

        self.assertEqual([s.score for s in ranked], [2, 2])
        self.assertEqual(ranked[0].date_key, "2024-02-11")

    def test_more_available_then_earlier_date(self) -> None:
        resolve = resolver(
            {
                "2024-02-12": {"a": M, "b": M},
                "2024-02-13": {"a": A},
                "2024-02-11": {"a": A},
            }
        )
        ranked = rank_dates(["a", "b"], ["2024-02-12", "2024-02-13", "2024-02-11"], resolve)
        self.assertEqual([s.date_key for s in ranked], ["2024-02-11", "2024-02-13", "2024-02-12"])

    def test_ranking_is_deterministic(self) -> None:
        resolve = resolver({})
        keys = ["2024-02-12", "2024-02-10", "2024-02-11", "2024-02-10"]
        first = rank_dates(["a"], keys, resolve)
        second = rank_dates(["a"], list(reversed(keys)), resolve)
        self.assertEqual(first, second)
        self.assertEqual(len(first), 3)


class TestCandidates(unittest.TestCase):
    def test_unanswered_dates_are_excluded_and_limited(self) -> None:
        table = {f"2024-02-{day:02d}": {"a": A} for day in range(10, 17)}
        table["2024-02-20"] = {}
        ranked = rank_dates(["a"], sorted(table), resolver(table))

        top = top_candidates(ranked, limit=5, exclude_unanswered=True)
        self.assertEqual(len(top), 5)
        self.assertNotIn("2024-02-20", [s.date_key for s in top])

        everything = top_candidates(ranked, limit=10, exclude_unanswered=False)
        self.assertIn("2024-02-20", [s.date_key for s in everything])

    def test_all_green_and_any_red(self) -> None:
        resolve = resolver(
            {
                "2024-02-10": {"a": A, "b": A},
                "2024-02-11": {"a": A, "b": U},
                "2024-02-12": {"a": A},
            }
        )
        keys = ["2024-02-10", "2024-02-11", "2024-02-12"]
        self.assertEqual(all_green_dates(["a", "b"], keys, resolve), ["2024-02-10"])
        self.assertEqual(any_red_dates(["a", "b"], keys, resolve), ["2024-02-11"])

    def test_no_members_means_no_green_dates(self) -> None:
        self.assertEqual(all_green_dates([], ["2024-02-10"], resolver({})), [])


class TestHostSummary(unittest.TestCase):
    def test_only_today_and_later(self) -> None:
        resolve = resolver({"2024-02-09": {"a": A}, "2024-02-10": {"a": A}, "2024-02-11": {"a": U}})
        summary = build_host_summary(
            ["a"], ["2024-02-09", "2024-02-10", "2024-02-11"], resolve, "2024-02-10", limit=5
        )

        self.assertEqual([row.summary.date_key for row in summary.rows], ["2024-02-10", "2024-02-11"])
        self.assertEqual(summary.all_green_dates, ["2024-02-10"])
        self.assertEqual(summary.any_red_dates, ["2024-02-11"])
        self.assertEqual(summary.rows[1].statuses, {"a": U})

    def test_visibility(self) -> None:
        admin = Actor(uid="a", role=UserRole.ADMIN)
        host = Actor(uid="h")
        member = Actor(uid="m")
        self.assertTrue(can_view_summary(admin, ""))
        self.assertTrue(can_view_summary(host, "h"))
        self.assertFalse(can_view_summary(member, "h"))
        self.assertFalse(can_view_summary(member, ""))


if __name__ == "__main__":
    unittest.main(verbosity=2)

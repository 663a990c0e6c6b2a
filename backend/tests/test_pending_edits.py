import unittest

from scheduler.schemas.status import AvailabilityStatus
from scheduler.services.pending_edits import (
    commit_failed,
    commit_succeeded,
    discard,
    effective_status,
    has_pending,
    prepare_commit,
    reconcile,
    set_paint,
)

A = AvailabilityStatus.AVAILABLE
M = AvailabilityStatus.MAYBE
U = AvailabilityStatus.UNAVAILABLE
X = AvailabilityStatus.UNSPECIFIED


class TestSetPaint(unittest.TestCase):
    def test_painting_back_to_server_value_cancels(self) -> None:
        server = {}
        pending = set_paint(server, {}, "u1", "2024-02-10", A)
        self.assertEqual(pending, {"u1": {"2024-02-10": A}})

        pending = set_paint(server, pending, "u1", "2024-02-10", X)
        self.assertEqual(pending, {})

    def test_painting_server_value_adds_nothing(self) -> None:
        server = {"u1": {"2024-02-10": M}}
        self.assertEqual(set_paint(server, {}, "u1", "2024-02-10", M), {})

    def test_inputs_are_not_mutated(self) -> None:
        pending = {"u1": {"2024-02-10": A}}
        set_paint({}, pending, "u1", "2024-02-11", U)
        self.assertEqual(pending, {"u1": {"2024-02-10": A}})

    def test_effective_status_prefers_pending(self) -> None:
        server = {"u1": {"2024-02-10": U}}
        pending = {"u1": {"2024-02-10": A}}
        self.assertEqual(effective_status(server, pending, "u1", "2024-02-10"), A)
        self.assertEqual(effective_status(server, {}, "u1", "2024-02-10"), U)
        self.assertEqual(effective_status(server, pending, "u2", "2024-02-10"), X)


class TestReconcile(unittest.TestCase):
    def test_drops_matching_entries_and_is_idempotent(self) -> None:
        pending = {"u1": {"2024-02-10": A, "2024-02-11": M}}
        server = {"u1": {"2024-02-10": A}}

        once = reconcile(pending, server)
        self.assertEqual(once, {"u1": {"2024-02-11": M}})
        self.assertEqual(reconcile(once, server), once)

    def test_never_adds_entries(self) -> None:
        server = {"u1": {"2024-02-10": A}, "u2": {"2024-02-10": U}}
        self.assertEqual(reconcile({}, server), {})

    def test_cleared_day_matches_absent_server_value(self) -> None:
        pending = {"u1": {"2024-02-10": X}}
        self.assertEqual(reconcile(pending, {"u1": {}}), {})


class TestCommit(unittest.TestCase):
    def test_nothing_pending(self) -> None:
        self.assertIsNone(prepare_commit({}, {}, "u1"))
        self.assertFalse(has_pending({}, "u1"))

    def test_payload_merges_server_and_omits_cleared_days(self) -> None:
        server = {"u1": {"2024-02-10": A, "2024-02-12": U}}
        pending = {"u1": {"2024-02-12": X, "2024-02-11": M}}

        batch = prepare_commit(server, pending, "u1")
        self.assertEqual(batch.payload, {"2024-02-10": A, "2024-02-11": M})
        self.assertEqual(batch.entries, pending["u1"])

    def test_success_keeps_edits_made_during_the_write(self) -> None:
        pending = {"u1": {"2024-02-10": A}}
        batch = prepare_commit({}, pending, "u1")

        # Painted while the save was in flight
        pending = set_paint({}, pending, "u1", "2024-02-10", M)
        pending = set_paint({}, pending, "u1", "2024-02-11", A)

        after = commit_succeeded(pending, batch)
        self.assertEqual(after, {"u1": {"2024-02-10": M, "2024-02-11": A}})

    def test_success_clears_batch_entries(self) -> None:
        pending = {"u1": {"2024-02-10": A}, "u2": {"2024-02-10": U}}
        batch = prepare_commit({}, pending, "u1")
        self.assertEqual(commit_succeeded(pending, batch), {"u2": {"2024-02-10": U}})

    def test_failure_keeps_everything(self) -> None:
        pending = {"u1": {"2024-02-10": A}}
        batch = prepare_commit({}, pending, "u1")
        self.assertEqual(commit_failed(pending, batch), pending)

    def test_discard(self) -> None:
        pending = {"u1": {"2024-02-10": A}, "u2": {"2024-02-10": U}}
        self.assertEqual(discard(pending, "u1"), {"u2": {"2024-02-10": U}})
        self.assertEqual(discard(pending), {})


if __name__ == "__main__":
    unittest.main(verbosity=2)

import unittest

from scheduler.schemas.state import Identity, OperationKind, SchedulerState
from scheduler.schemas.status import AvailabilityStatus, UserRole
from scheduler.services import state as transitions
from scheduler.services.channel import SnapshotEvent, SnapshotKind
from scheduler.services.pending_edits import prepare_commit

ADA = Identity(uid="admin", name="Ada", email="ada@example.com")


def selected(campaign_id="c1"):
    state = transitions.signed_in(SchedulerState(month_value="2024-02"), ADA)
    return transitions.campaign_selected(state, campaign_id)


def event(kind, data, campaign_id="c1"):
    return SnapshotEvent(kind=kind, campaign_id=campaign_id, data=data)


class TestSnapshotTransitions(unittest.TestCase):
    def test_members_and_host(self) -> None:
        state = transitions.snapshot_received(
            selected(),
            event(
                SnapshotKind.MEMBERS,
                {"u2": {"name": "zed"}, "admin": {"name": "Ada", "role": "admin"}, "u3": {"name": "Bob"}},
            ),
        )
        state = transitions.snapshot_received(state, event(SnapshotKind.SETTINGS, {"hostUserId": "u3"}))

        self.assertEqual([m.uid for m in state.persisted.members], ["admin", "u3", "u2"])
        self.assertEqual(state.persisted.host_user_id, "u3")
        self.assertEqual(transitions.actor_for(state, admin_emails=[]).role, UserRole.ADMIN)

    def test_availability_snapshot_reconciles_pending(self) -> None:
        state = transitions.painted(selected(), transitions.PaintGesture.CLICK, "2024-02-10", "2024-02-01")
        state = transitions.painted(state, transitions.PaintGesture.CLICK, "2024-02-11", "2024-02-01")

        state = transitions.snapshot_received(
            state,
            event(SnapshotKind.AVAILABILITY, {"admin": {"days": {"2024-02-10": "available", "bad": "available"}}}),
        )

        self.assertEqual(state.persisted.availability, {"admin": {"2024-02-10": AvailabilityStatus.AVAILABLE}})
        self.assertEqual(state.pending, {"admin": {"2024-02-11": AvailabilityStatus.AVAILABLE}})

    def test_unknown_stored_status_reads_as_unspecified(self) -> None:
        state = transitions.snapshot_received(
            selected(), event(SnapshotKind.AVAILABILITY, {"u2": {"days": {"2024-02-10": "yes"}}})
        )
        self.assertEqual(transitions.status_of(state, "u2", "2024-02-10"), AvailabilityStatus.UNSPECIFIED)

    def test_deleted_campaign_document(self) -> None:
        state = transitions.snapshot_received(selected(), event(SnapshotKind.CAMPAIGN, {"name": "Raid"}))
        self.assertEqual(state.persisted.campaign.id, "c1")
        state = transitions.snapshot_received(state, event(SnapshotKind.CAMPAIGN, None))
        self.assertIsNone(state.persisted.campaign)

    def test_stale_events_are_ignored(self) -> None:
        state = selected()
        self.assertIs(transitions.snapshot_received(state, event(SnapshotKind.SETTINGS, {}, "old")), state)


class TestOtherTransitions(unittest.TestCase):
    def test_painting_requires_a_campaign(self) -> None:
        state = transitions.signed_in(SchedulerState(), ADA)
        after = transitions.painted(state, transitions.PaintGesture.CLICK, "2024-02-10", "2024-02-01")
        self.assertEqual(after.pending, {})

    def test_signing_in_as_someone_else_drops_pending(self) -> None:
        state = transitions.painted(selected(), transitions.PaintGesture.CLICK, "2024-02-10", "2024-02-01")
        self.assertEqual(transitions.signed_in(state, ADA).pending, state.pending)
        self.assertEqual(transitions.signed_in(state, Identity(uid="other")).pending, {})

    def test_operation_lifecycle(self) -> None:
        kind = OperationKind.KICK_MEMBER
        state = transitions.operation_failed(selected(), kind, "boom")
        self.assertEqual(state.operation(kind).error, "boom")

        state = transitions.operation_started(state, kind, "u2")
        self.assertTrue(state.operation(kind).in_flight)
        self.assertEqual(state.operation(kind).error, "")
        self.assertEqual(state.operation(kind).target, "u2")

        state = transitions.operation_finished(state, kind)
        self.assertFalse(state.operation(kind).in_flight)

    def test_actor_without_identity(self) -> None:
        self.assertIsNone(transitions.actor_for(SchedulerState()))


class TestSaveTransitions(unittest.TestCase):
    def painted_and_saving(self):
        state = transitions.painted(selected(), transitions.PaintGesture.CLICK, "2024-02-10", "2024-02-01")
        batch = prepare_commit(state.persisted.availability, state.pending, "admin", "c1")
        return transitions.operation_started(state, OperationKind.SAVE_AVAILABILITY, "admin"), batch

    def test_success_clears_the_saved_edits(self) -> None:
        state, batch = self.painted_and_saving()
        state = transitions.save_succeeded(state, batch)
        self.assertEqual(state.pending, {})
        self.assertFalse(state.operation(OperationKind.SAVE_AVAILABILITY).in_flight)

    def test_late_result_leaves_another_campaign_alone(self) -> None:
        state, batch = self.painted_and_saving()
        state = transitions.campaign_selected(state, "c2")
        state = transitions.painted(state, transitions.PaintGesture.CLICK, "2024-02-10", "2024-02-01")
        expected = {"admin": {"2024-02-10": AvailabilityStatus.AVAILABLE}}

        succeeded = transitions.save_succeeded(state, batch)
        self.assertEqual(succeeded.pending, expected)
        self.assertFalse(succeeded.operation(OperationKind.SAVE_AVAILABILITY).in_flight)

        failed = transitions.save_failed(state, batch, "Write failed")
        self.assertEqual(failed.pending, expected)
        self.assertEqual(failed.operation(OperationKind.SAVE_AVAILABILITY).error, "Write failed")


if __name__ == "__main__":
    unittest.main(verbosity=2)

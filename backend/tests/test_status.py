import unittest

from scheduler.schemas.status import (
    PAINT_OPTIONS,
    AvailabilityStatus,
    UserRole,
    coerce_role,
    coerce_status,
    is_availability_status,
    status_label,
    status_score,
    stronger_role,
)


class TestStatusDomain(unittest.TestCase):
    def test_scores(self) -> None:
        self.assertEqual(status_score(AvailabilityStatus.AVAILABLE), 2)
        self.assertEqual(status_score(AvailabilityStatus.MAYBE), 1)
        self.assertEqual(status_score(AvailabilityStatus.UNSPECIFIED), 0)
        self.assertEqual(status_score(AvailabilityStatus.UNAVAILABLE), -2)

    def test_labels(self) -> None:
        self.assertEqual(status_label(AvailabilityStatus.MAYBE), "Maybe")
        self.assertIn((AvailabilityStatus.UNSPECIFIED, "Clear"), PAINT_OPTIONS)

    def test_unknown_stored_values_become_unspecified(self) -> None:
        self.assertTrue(is_availability_status("available"))
        self.assertFalse(is_availability_status("yes"))
        self.assertFalse(is_availability_status(None))
        self.assertEqual(coerce_status("yes"), AvailabilityStatus.UNSPECIFIED)
        self.assertEqual(coerce_status(3), AvailabilityStatus.UNSPECIFIED)
        self.assertEqual(coerce_status("maybe"), AvailabilityStatus.MAYBE)

    def test_roles(self) -> None:
        self.assertEqual(coerce_role("owner"), UserRole.MEMBER)
        self.assertEqual(coerce_role("admin"), UserRole.ADMIN)
        self.assertEqual(stronger_role(UserRole.ADMIN, UserRole.MEMBER), UserRole.ADMIN)
        self.assertEqual(stronger_role(UserRole.MEMBER, UserRole.ADMIN), UserRole.ADMIN)
        self.assertEqual(stronger_role(UserRole.MEMBER, UserRole.MEMBER), UserRole.MEMBER)


if __name__ == "__main__":
    unittest.main(verbosity=2)

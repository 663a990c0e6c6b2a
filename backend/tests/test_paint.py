import unittest

from scheduler.schemas.state import PaintMode, PaintState
from scheduler.schemas.status import AvailabilityStatus
from scheduler.services.paint import click, pointer_down, pointer_enter, pointer_up, select_brush

TODAY = "2024-02-10"


class TestPaintStateMachine(unittest.TestCase):
    def test_drag_paints_every_entered_cell(self) -> None:
        paint = select_brush(PaintState(), AvailabilityStatus.MAYBE)

        paint, pending = pointer_down(paint, {}, {}, "u1", "2024-02-10", TODAY)
        self.assertEqual(paint.mode, PaintMode.PAINTING)
        paint, pending = pointer_enter(paint, {}, pending, "u1", "2024-02-11", TODAY)
        paint, pending = pointer_enter(paint, {}, pending, "u1", "2024-02-12", TODAY)
        paint = pointer_up(paint)

        self.assertEqual(paint.mode, PaintMode.IDLE)
        self.assertEqual(
            pending,
            {"u1": {day: AvailabilityStatus.MAYBE for day in ("2024-02-10", "2024-02-11", "2024-02-12")}},
        )

    def test_enter_without_press_does_nothing(self) -> None:
        paint, pending = pointer_enter(PaintState(), {}, {}, "u1", "2024-02-11", TODAY)
        self.assertEqual(paint.mode, PaintMode.IDLE)
        self.assertEqual(pending, {})

    def test_past_days_are_never_painted(self) -> None:
        paint, pending = pointer_down(PaintState(), {}, {}, "u1", "2024-02-09", TODAY)
        self.assertEqual(paint.mode, PaintMode.IDLE)
        self.assertEqual(pending, {})

        painting = PaintState(mode=PaintMode.PAINTING)
        _, pending = pointer_enter(painting, {}, {}, "u1", "2024-01-31", TODAY)
        self.assertEqual(pending, {})

    def test_click_paints_one_cell_and_stays_idle(self) -> None:
        paint, pending = click(PaintState(), {}, {}, "u1", TODAY, TODAY)
        self.assertEqual(paint.mode, PaintMode.IDLE)
        self.assertEqual(pending, {"u1": {TODAY: AvailabilityStatus.AVAILABLE}})

    def test_pointer_up_when_idle(self) -> None:
        paint = PaintState()
        self.assertIs(pointer_up(paint), paint)


if __name__ == "__main__":
    unittest.main(verbosity=2)

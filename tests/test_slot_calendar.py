from datetime import time

from clinic_scheduler.services.slot_calendar import is_bookable_slot, time_slots


class TestTimeSlots:
    def test_default_calendar_has_seventeen_half_hour_slots(self):
        slots = time_slots()

        assert len(slots) == 17
        assert slots[0] == time(9, 0)
        assert slots[1] == time(9, 30)
        assert slots[-1] == time(17, 0)

    def test_slots_are_strictly_increasing(self):
        slots = time_slots()

        assert all(a < b for a, b in zip(slots, slots[1:]))

    def test_custom_bounds_and_step(self):
        slots = time_slots(day_start=time(8, 0), day_end=time(9, 0), step_minutes=15)

        assert slots == [time(8, 0), time(8, 15), time(8, 30), time(8, 45), time(9, 0)]

    def test_end_is_excluded_when_step_overshoots(self):
        slots = time_slots(day_start=time(9, 0), day_end=time(10, 0), step_minutes=40)

        assert slots == [time(9, 0), time(9, 40)]


class TestIsBookableSlot:
    def test_calendar_times_are_bookable(self):
        assert is_bookable_slot(time(9, 0))
        assert is_bookable_slot(time(12, 30))
        assert is_bookable_slot(time(17, 0))

    def test_off_grid_and_out_of_hours_times_are_not_bookable(self):
        assert not is_bookable_slot(time(9, 15))
        assert not is_bookable_slot(time(8, 30))
        assert not is_bookable_slot(time(17, 30))

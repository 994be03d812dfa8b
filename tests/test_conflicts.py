"""
Reservation conflict detection and the booking flow built on it.
"""
from datetime import date

import pytest

from portal.errors import DateNotAvailable, EquipmentNotReservable, ReservationConflict
from portal.models.request import ReservationData
from portal.services.conflict_checker import intervals_overlap, to_minutes


def booking(day, start, end, ids, location="Sala 1"):
    return ReservationData(date=day, start_time=start, end_time=end, equipment_ids=ids, location=location)


class TestIntervals:
    """Half-open interval arithmetic on HH:mm strings"""

    def test_to_minutes(self):
        assert to_minutes("00:00") == 0
        assert to_minutes("09:30") == 570
        assert to_minutes("23:59") == 1439

    def test_overlapping_ranges_conflict(self):
        assert intervals_overlap("09:00", "10:00", "09:30", "10:30")

    def test_back_to_back_ranges_do_not_conflict(self):
        assert not intervals_overlap("09:00", "10:00", "10:00", "11:00")
        assert not intervals_overlap("10:00", "11:00", "09:00", "10:00")

    def test_containment_conflicts(self):
        assert intervals_overlap("08:00", "12:00", "09:00", "10:00")

    @pytest.mark.parametrize("a,b", [
        (("09:00", "10:00"), ("09:30", "10:30")),
        (("09:00", "10:00"), ("10:00", "11:00")),
        (("07:00", "08:00"), ("13:00", "14:00")),
        (("08:00", "12:00"), ("09:00", "09:15")),
    ])
    def test_overlap_is_symmetric(self, a, b):
        assert intervals_overlap(*a, *b) == intervals_overlap(*b, *a)


class TestConflictChecker:
    """Lookup of clashing reservations in the store"""

    def test_overlap_on_shared_equipment_reports_existing_range(self, services, alice, reservation_day,
                                                                 equipment_ids):
        services.reservations.create_reservation(alice, booking(reservation_day, "09:00", "10:00",
                                                                [equipment_ids["E1"]]))

        conflicts = services.checker.check_conflicts(reservation_day, "09:30", "10:30", [equipment_ids["E1"]])

        assert len(conflicts) == 1
        assert conflicts[0].equipment_name == "E1"
        assert (conflicts[0].start_time, conflicts[0].end_time) == ("09:00", "10:00")

    def test_conflict_is_symmetric_between_two_bookings(self, services, alice, bob, reservation_day,
                                                        equipment_ids):
        e1 = equipment_ids["E1"]
        first = services.reservations.create_reservation(alice, booking(reservation_day, "09:00", "10:00", [e1]))
        a_vs_b = services.checker.check_conflicts(reservation_day, "09:30", "10:30", [e1])
        services.store.delete_doc("reservations", first)

        services.reservations.create_reservation(bob, booking(reservation_day, "09:30", "10:30", [e1]))
        b_vs_a = services.checker.check_conflicts(reservation_day, "09:00", "10:00", [e1])

        assert bool(a_vs_b) == bool(b_vs_a) is True

    def test_different_equipment_does_not_conflict(self, services, alice, reservation_day, equipment_ids):
        services.reservations.create_reservation(alice, booking(reservation_day, "09:00", "10:00",
                                                                [equipment_ids["E1"]]))
        assert services.checker.check_conflicts(reservation_day, "09:00", "10:00", [equipment_ids["E2"]]) == []

    def test_other_day_does_not_conflict(self, services, admin, alice, reservation_day, equipment_ids):
        other_day = date(2025, 6, 2)
        services.availability.add_dates(admin, [other_day])
        services.reservations.create_reservation(alice, booking(reservation_day, "09:00", "10:00",
                                                                [equipment_ids["E1"]]))
        assert services.checker.check_conflicts(other_day, "09:00", "10:00", [equipment_ids["E1"]]) == []

    def test_one_entry_per_shared_equipment(self, services, alice, reservation_day, equipment_ids):
        both = [equipment_ids["E1"], equipment_ids["E2"]]
        services.reservations.create_reservation(alice, booking(reservation_day, "09:00", "10:00", both))

        conflicts = services.checker.check_conflicts(reservation_day, "09:15", "09:45", both)

        assert sorted(c.equipment_name for c in conflicts) == ["E1", "E2"]

    @pytest.mark.parametrize("status", ["canceled", "rejected"])
    def test_released_reservations_free_the_equipment(self, services, admin, alice, reservation_day,
                                                      equipment_ids, status):
        e1 = equipment_ids["E1"]
        request_id = services.reservations.create_reservation(alice, booking(reservation_day, "09:00", "10:00",
                                                                             [e1]))
        if status == "canceled":
            services.requests.cancel(alice, request_id, "reservations")
        else:
            services.requests.update_status(admin, request_id, "reservations", "rejected")

        assert services.checker.check_conflicts(reservation_day, "09:00", "10:00", [e1]) == []

    def test_unknown_equipment_name_falls_back(self, services, alice, reservation_day, equipment_ids):
        e1 = equipment_ids["E1"]
        services.reservations.create_reservation(alice, booking(reservation_day, "09:00", "10:00", [e1]))
        services.store.delete_doc("equipment", e1)

        conflicts = services.checker.check_conflicts(reservation_day, "09:00", "10:00", [e1])

        assert conflicts[0].equipment_name == "Equipamento"


class TestReservationService:
    """Checks made before a reservation is written"""

    def test_end_to_end_second_booking_is_rejected(self, services, alice, bob, reservation_day, equipment_ids):
        e1 = equipment_ids["E1"]
        services.reservations.create_reservation(alice, booking(reservation_day, "09:00", "10:00", [e1]))

        with pytest.raises(ReservationConflict) as exc_info:
            services.reservations.create_reservation(bob, booking(reservation_day, "09:30", "10:30", [e1]))

        conflicts = exc_info.value.conflicts
        assert len(conflicts) == 1
        assert conflicts[0].equipment_name == "E1"
        assert f"{conflicts[0].start_time}-{conflicts[0].end_time}" == "09:00-10:00"
        assert len(services.checker.reservations_on(reservation_day)) == 1

    def test_back_to_back_booking_is_accepted(self, services, alice, bob, reservation_day, equipment_ids):
        e1 = equipment_ids["E1"]
        services.reservations.create_reservation(alice, booking(reservation_day, "09:00", "10:00", [e1]))
        services.reservations.create_reservation(bob, booking(reservation_day, "10:00", "11:00", [e1]))

        assert len(services.checker.reservations_on(reservation_day)) == 2

    def test_stored_reservation_carries_equipment_names(self, services, alice, reservation_day, equipment_ids):
        request_id = services.reservations.create_reservation(
            alice, booking(reservation_day, "09:00", "10:00", [equipment_ids["E1"], equipment_ids["E2"]]))

        stored = services.requests.get_by_id(request_id, "reservations")

        assert stored.equipment_names == ["E1", "E2"]
        assert stored.date == "2025-06-01"
        assert stored.status == "pending"
        assert stored.user_email == alice.email

    def test_closed_date_is_refused(self, services, alice, equipment_ids):
        with pytest.raises(DateNotAvailable):
            services.reservations.create_reservation(alice, booking(date(2025, 6, 3), "09:00", "10:00",
                                                                    [equipment_ids["E1"]]))

    def test_non_reservable_equipment_is_refused(self, services, alice, reservation_day, equipment_ids):
        with pytest.raises(EquipmentNotReservable):
            services.reservations.create_reservation(alice, booking(reservation_day, "09:00", "10:00",
                                                                    [equipment_ids["projetor"]]))

    def test_end_before_start_is_invalid(self, reservation_day):
        with pytest.raises(ValueError):
            booking(reservation_day, "10:00", "09:00", ["x"])

from datetime import date, timedelta

import pytest
from conftest import MONDAY, at
from fastapi import HTTPException

from salonqueue.domain.appointments.schemas import BookingCreate
from salonqueue.models import CANCELLED, IN_PROGRESS, PENDING_CHECK_IN, SCHEDULED
from salonqueue.utils.combo import generate_combo_id


def booking(service, start_time, **extra):
    data = {
        "customer_name": "Jana Kovacova",
        "email": "Jana.Kovacova@example.com",
        "service_id": service.id,
        "start_time": start_time,
    }
    data.update(extra)
    return BookingCreate(**data)


class TestCreateBooking:
    def test_books_first_free_employee(self, booking_service, salon):
        facility, service, anna, _ = salon

        (appointment,) = booking_service.create_booking(booking(service, at(11, 0)), facility.id)

        assert appointment.status == SCHEDULED
        assert appointment.employee_id == anna.id
        assert appointment.email == "jana.kovacova@example.com"
        assert appointment.end_time == at(11, 30)
        assert appointment.combo_id is None

    def test_busy_requested_employee_is_rejected(self, booking_service, salon, make_appointment):
        facility, service, anna, _ = salon
        make_appointment(anna, service, at(11, 15))

        with pytest.raises(HTTPException) as exc:
            booking_service.create_booking(booking(service, at(11, 0), employee_id=anna.id), facility.id)

        assert exc.value.status_code == 409

    def test_any_employee_skips_busy_ones(self, booking_service, salon, make_appointment):
        facility, service, anna, berta = salon
        make_appointment(anna, service, at(11, 0))

        (appointment,) = booking_service.create_booking(booking(service, at(11, 0)), facility.id)

        assert appointment.employee_id == berta.id

    def test_everyone_busy(self, booking_service, salon, make_appointment):
        facility, service, anna, berta = salon
        make_appointment(anna, service, at(11, 0))
        make_appointment(berta, service, at(11, 0))

        with pytest.raises(HTTPException) as exc:
            booking_service.create_booking(booking(service, at(11, 0)), facility.id)

        assert exc.value.status_code == 409

    def test_past_time_is_rejected(self, booking_service, salon):
        facility, service, _, _ = salon

        with pytest.raises(HTTPException) as exc:
            booking_service.create_booking(booking(service, at(8, 0)), facility.id)

        assert exc.value.status_code == 400

    def test_contact_is_required(self, booking_service, salon):
        facility, service, _, _ = salon

        with pytest.raises(HTTPException) as exc:
            booking_service.create_booking(booking(service, at(11, 0), email=None), facility.id)

        assert exc.value.status_code == 400

    def test_unknown_facility(self, booking_service, salon):
        _, service, _, _ = salon

        with pytest.raises(HTTPException) as exc:
            booking_service.create_booking(booking(service, at(11, 0)), 999)

        assert exc.value.status_code == 404

    def test_combo_legs_share_an_id(self, booking_service, salon, make_service):
        facility, service, _, _ = salon
        pedicure = make_service(name="Spa pedicure", duration=45)

        first, second = booking_service.create_booking(
            booking(service, at(11, 0), combo_service_id=pedicure.id), facility.id
        )

        assert first.combo_id == second.combo_id
        assert first.combo_id.startswith("COMBO-")
        assert second.start_time == first.end_time == at(11, 30)
        assert second.end_time == at(12, 15)

    def test_failed_combo_leg_books_nothing(self, booking_service, salon):
        facility, service, _, _ = salon

        with pytest.raises(HTTPException):
            booking_service.create_booking(
                booking(service, at(11, 0), combo_service_id=999), facility.id
            )

        assert booking_service.list_appointments(facility.id) == []


class TestPedicureChairs:
    def test_chairs_are_handed_out_in_order(
        self, booking_service, make_facility, make_service, make_employee
    ):
        facility = make_facility(pedicure_chairs=2)
        pedicure = make_service(name="Pedicure", duration=60, needs_pedicure_chair=True)
        for _ in range(3):
            make_employee(facility)

        first = booking_service.create_booking(booking(pedicure, at(11, 0)), facility.id)[0]
        second = booking_service.create_booking(booking(pedicure, at(11, 30)), facility.id)[0]

        assert (first.chair_number, second.chair_number) == (1, 2)

        with pytest.raises(HTTPException) as exc:
            booking_service.create_booking(booking(pedicure, at(11, 30)), facility.id)
        assert exc.value.status_code == 409

    def test_availability_report(self, booking_service, make_facility, make_service, make_employee):
        facility = make_facility(pedicure_chairs=1)
        pedicure = make_service(name="Pedicure", duration=60, needs_pedicure_chair=True)
        make_employee(facility)
        booking_service.create_booking(booking(pedicure, at(11, 0)), facility.id)

        busy = booking_service.check_pedicure_availability(facility.id, at(11, 30), timedelta(minutes=30))
        free = booking_service.check_pedicure_availability(facility.id, at(12, 0), timedelta(minutes=30))

        assert busy == {
            "is_available": False,
            "available_chair_number": None,
            "total_chairs": 1,
            "occupied_count": 1,
            "next_available_time": at(12, 0),
        }
        assert free["is_available"] is True
        assert free["available_chair_number"] == 1


class TestTimeSlots:
    def test_slots_skip_booked_time(self, booking_service, salon, make_appointment):
        facility, service, anna, _ = salon
        tuesday = MONDAY + timedelta(days=1)
        make_appointment(anna, service, tuesday.replace(hour=10))

        slots = booking_service.get_available_time_slots(
            facility.id, tuesday.date(), service.id, employee_id=anna.id
        )

        assert slots[0] == tuesday.replace(hour=9)
        assert tuesday.replace(hour=10) not in slots
        assert tuesday.replace(hour=10, minute=30) in slots
        assert slots[-1] == tuesday.replace(hour=17, minute=30)
        assert len(slots) == 17

    def test_any_employee_keeps_slot_open(self, booking_service, salon, make_appointment):
        facility, service, anna, _ = salon
        tuesday = MONDAY + timedelta(days=1)
        make_appointment(anna, service, tuesday.replace(hour=10))

        slots = booking_service.get_available_time_slots(facility.id, tuesday.date(), service.id)

        assert tuesday.replace(hour=10) in slots
        assert len(slots) == 18

    def test_past_slots_are_hidden(self, booking_service, salon, clock):
        facility, service, _, _ = salon
        clock.set(12, 10)

        slots = booking_service.get_available_time_slots(facility.id, MONDAY.date(), service.id)

        assert slots[0] == at(12, 30)

    def test_long_service_ends_before_closing(self, booking_service, salon, make_service):
        facility, _, _, _ = salon
        long_service = make_service(name="Full set", duration=90)

        slots = booking_service.get_available_time_slots(facility.id, date(2026, 3, 3), long_service.id)

        assert slots[-1].hour == 16 and slots[-1].minute == 30


class TestKioskCheckIn:
    def test_find_and_mark_arrival(self, booking_service, salon, make_appointment, clock):
        facility, service, anna, _ = salon
        booked = make_appointment(anna, service, at(11, 0), email="jana@example.com", phone="+421900123456")

        found = booking_service.find_todays_booking(facility.id, "900123")
        assert found.id == booked.id
        assert booking_service.find_todays_booking(facility.id, "JANA@").id == booked.id

        clock.set(10, 50)
        arrived = booking_service.mark_arrival(booked.id, facility.id)

        assert arrived.status == PENDING_CHECK_IN
        assert arrived.arrival_time == at(10, 50)

    def test_search_needs_three_characters(self, booking_service, salon):
        facility, _, _, _ = salon

        with pytest.raises(HTTPException) as exc:
            booking_service.find_todays_booking(facility.id, "ab")

        assert exc.value.status_code == 400

    def test_tomorrows_booking_is_not_found(self, booking_service, salon, make_appointment):
        facility, service, anna, _ = salon
        make_appointment(anna, service, at(11, 0) + timedelta(days=1), email="jana@example.com")

        with pytest.raises(HTTPException) as exc:
            booking_service.find_todays_booking(facility.id, "jana@example.com")

        assert exc.value.status_code == 404

    def test_started_appointment_cannot_arrive_again(self, booking_service, salon, make_appointment):
        facility, service, anna, _ = salon
        started = make_appointment(anna, service, at(9, 0), status=IN_PROGRESS)

        with pytest.raises(HTTPException) as exc:
            booking_service.mark_arrival(started.id, facility.id)

        assert exc.value.status_code == 400


class TestCancelBooking:
    def test_cancel_frees_the_employee(self, booking_service, salon, make_appointment):
        facility, service, anna, _ = salon
        booked = make_appointment(anna, service, at(11, 0))

        assert booking_service.cancel_booking(booked.id, facility.id).status == CANCELLED
        (rebooked,) = booking_service.create_booking(
            booking(service, at(11, 0), employee_id=anna.id), facility.id
        )
        assert rebooked.employee_id == anna.id

    def test_cannot_cancel_twice(self, booking_service, salon, make_appointment):
        facility, service, anna, _ = salon
        booked = make_appointment(anna, service, at(11, 0))
        booking_service.cancel_booking(booked.id, facility.id)

        with pytest.raises(HTTPException) as exc:
            booking_service.cancel_booking(booked.id, facility.id)

        assert exc.value.status_code == 400


def test_combo_id_format():
    combo_id = generate_combo_id()

    prefix, millis, suffix = combo_id.split("-")
    assert prefix == "COMBO"
    assert millis.isdigit()
    assert len(suffix) == 3 and suffix.isdigit()

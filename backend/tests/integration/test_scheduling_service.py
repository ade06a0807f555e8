"""
Integration tests for SchedulingService against a real database.

Each operation runs in its own transaction, so these tests exercise the
commit/rollback behavior as well as the scheduling rules.
"""

from datetime import date
from decimal import Decimal

import pytest

from barbershop.core.exceptions import (
    AppointmentFinalizedError,
    AppointmentNotFoundError,
    InvalidTransitionError,
    ResourceNotFoundError,
    ScheduleClosedError,
    SettlementNotAllowedError,
    SlotUnavailableError,
)
from barbershop.db import base as models
from barbershop.domain.entities import (
    AppointmentStatus,
    DaySchedule,
    OperatingSchedule,
    SettlementMethod,
    SoldProduct,
)

MONDAY = date(2030, 1, 7)
TUESDAY = date(2030, 1, 8)
SUNDAY = date(2030, 1, 6)

HAIRCUT_SLOTS_ON_OPEN_DAY = [
    "09:00",
    "09:30",
    "10:00",
    "10:30",
    "11:00",
    "11:30",
    "13:00",
    "13:30",
    "14:00",
    "14:30",
    "15:00",
    "15:30",
    "16:00",
    "16:30",
    "17:00",
    "17:30",
]


def _balance(session_factory, client_id):
    db = session_factory()
    try:
        return db.get(models.Client, client_id).loyalty_points
    finally:
        db.close()


def _book(service, shop, start_time="10:00", service_id=None, **kwargs):
    return service.book_appointment(
        shop.shop_id,
        kwargs.pop("client_id", shop.client_id),
        kwargs.pop("professional_id", shop.alex_id),
        service_id or shop.haircut_id,
        kwargs.pop("day", MONDAY),
        start_time,
        **kwargs,
    )


def _book_in_progress(service, shop, **kwargs):
    return _book(service, shop, initial_status="in_progress", **kwargs)


@pytest.mark.integration
@pytest.mark.services
class TestAvailability:
    def test_open_day_skips_break(self, scheduling_service, shop):
        slots = scheduling_service.get_available_slots(
            shop.shop_id, shop.alex_id, shop.haircut_id, MONDAY
        )

        assert slots == HAIRCUT_SLOTS_ON_OPEN_DAY

    def test_closed_day(self, scheduling_service, shop):
        with pytest.raises(ScheduleClosedError):
            scheduling_service.get_available_slots(
                shop.shop_id, shop.alex_id, shop.haircut_id, SUNDAY
            )

    def test_long_service_cannot_cross_break_or_closing(self, scheduling_service, shop):
        slots = scheduling_service.get_available_slots(
            shop.shop_id, shop.alex_id, shop.combo_id, MONDAY
        )

        assert "11:00" in slots
        assert "11:30" not in slots
        assert "17:00" in slots
        assert "17:30" not in slots

    def test_booking_removes_its_slots(self, scheduling_service, shop):
        _book(scheduling_service, shop, "10:00", service_id=shop.combo_id)

        alex = scheduling_service.get_available_slots(
            shop.shop_id, shop.alex_id, shop.haircut_id, MONDAY
        )
        sam = scheduling_service.get_available_slots(
            shop.shop_id, shop.sam_id, shop.haircut_id, MONDAY
        )

        assert "10:00" not in alex and "10:30" not in alex
        assert "09:30" in alex and "11:00" in alex
        assert sam == HAIRCUT_SLOTS_ON_OPEN_DAY

    def test_excluding_the_edited_appointment(self, scheduling_service, shop):
        booked = _book(scheduling_service, shop, "10:00")

        slots = scheduling_service.get_available_slots(
            shop.shop_id,
            shop.alex_id,
            shop.haircut_id,
            MONDAY,
            exclude_appointment_id=booked.id,
        )

        assert slots == HAIRCUT_SLOTS_ON_OPEN_DAY

    def test_ineligible_professional(self, scheduling_service, shop):
        with pytest.raises(ValueError, match="does not perform"):
            scheduling_service.get_available_slots(
                shop.shop_id, shop.sam_id, shop.beard_id, MONDAY
            )

    def test_unknown_service(self, scheduling_service, shop):
        with pytest.raises(ResourceNotFoundError):
            scheduling_service.get_available_slots(
                shop.shop_id, shop.alex_id, 999, MONDAY
            )

    def test_hourly_grid(self, scheduling_service, shop_factory):
        shop = shop_factory(interval_minutes=60)

        slots = scheduling_service.get_available_slots(
            shop.shop_id, shop.alex_id, shop.haircut_id, MONDAY
        )

        assert slots == [
            "09:00",
            "10:00",
            "11:00",
            "13:00",
            "14:00",
            "15:00",
            "16:00",
            "17:00",
        ]


@pytest.mark.integration
@pytest.mark.services
@pytest.mark.appointment
class TestBooking:
    def test_staff_booking_defaults_to_pending(self, scheduling_service, shop):
        booked = _book(scheduling_service, shop)

        assert booked.status is AppointmentStatus.PENDING
        assert booked.service_name == "Haircut"
        assert booked.version == 1

    def test_self_service_booking_is_confirmed(self, scheduling_service, shop):
        booked = _book(scheduling_service, shop, channel="self_service")

        assert booked.status is AppointmentStatus.CONFIRMED

    def test_walk_in_can_start_in_progress(self, scheduling_service, shop):
        assert _book_in_progress(scheduling_service, shop).status is (
            AppointmentStatus.IN_PROGRESS
        )

    def test_cannot_create_completed(self, scheduling_service, shop):
        with pytest.raises(InvalidTransitionError):
            _book(scheduling_service, shop, initial_status="completed")

    def test_taken_time_is_rejected(self, scheduling_service, shop):
        _book(scheduling_service, shop, "10:00", service_id=shop.combo_id)

        with pytest.raises(SlotUnavailableError) as exc_info:
            _book(scheduling_service, shop, "10:30", client_id=shop.subscriber_id)
        assert "no longer available" in str(exc_info.value)

    def test_off_grid_time_is_rejected(self, scheduling_service, shop):
        with pytest.raises(SlotUnavailableError):
            _book(scheduling_service, shop, "10:15")

    def test_break_time_is_rejected(self, scheduling_service, shop):
        with pytest.raises(SlotUnavailableError):
            _book(scheduling_service, shop, "12:00")

    def test_closed_day_is_rejected(self, scheduling_service, shop):
        with pytest.raises(ScheduleClosedError):
            _book(scheduling_service, shop, day=SUNDAY)

    def test_unknown_client(self, scheduling_service, shop):
        with pytest.raises(ResourceNotFoundError):
            _book(scheduling_service, shop, client_id=999)

    def test_invalid_time_format(self, scheduling_service, shop):
        with pytest.raises(ValueError):
            _book(scheduling_service, shop, "9am")

    def test_failed_booking_leaves_nothing_behind(
        self, scheduling_service, shop, session_factory
    ):
        _book(scheduling_service, shop, "10:00")
        with pytest.raises(SlotUnavailableError):
            _book(scheduling_service, shop, "10:00", client_id=shop.subscriber_id)

        db = session_factory()
        try:
            assert db.query(models.Appointment).count() == 1
            assert db.query(models.SlotClaim).count() == 1
        finally:
            db.close()

    def test_booking_with_products(self, scheduling_service, shop):
        booked = _book(
            scheduling_service,
            shop,
            sold_products=[SoldProduct("pomade", 1, Decimal("12.50"), "Pomade")],
        )

        stored = scheduling_service.get_appointment(shop.shop_id, booked.id)
        assert stored.products_total == Decimal("12.50")

    def test_list_appointments(self, scheduling_service, shop):
        _book(scheduling_service, shop, "13:00")
        _book(scheduling_service, shop, "09:00", professional_id=shop.sam_id)

        day = scheduling_service.list_appointments(shop.shop_id, MONDAY)
        alex_only = scheduling_service.list_appointments(
            shop.shop_id, MONDAY, professional_id=shop.alex_id
        )

        assert [a.start_time for a in day] == ["09:00", "13:00"]
        assert [a.professional_id for a in alex_only] == [shop.alex_id]


@pytest.mark.integration
@pytest.mark.services
@pytest.mark.appointment
class TestReschedule:
    def test_shift_by_one_slot_over_itself(self, scheduling_service, shop):
        booked = _book(scheduling_service, shop, "10:00", service_id=shop.combo_id)

        moved = scheduling_service.reschedule_appointment(
            shop.shop_id, booked.id, MONDAY, "10:30"
        )

        assert moved.start_time == "10:30"
        slots = scheduling_service.get_available_slots(
            shop.shop_id, shop.alex_id, shop.haircut_id, MONDAY
        )
        assert "10:00" in slots
        assert "10:30" not in slots and "11:00" not in slots

    def test_move_to_other_day_and_professional(self, scheduling_service, shop):
        booked = _book(scheduling_service, shop, "10:00")

        moved = scheduling_service.reschedule_appointment(
            shop.shop_id, booked.id, TUESDAY, "15:00", professional_id=shop.sam_id
        )

        assert (moved.date, moved.professional_id) == (TUESDAY, shop.sam_id)
        assert "10:00" in scheduling_service.get_available_slots(
            shop.shop_id, shop.alex_id, shop.haircut_id, MONDAY
        )

    def test_change_service(self, scheduling_service, shop):
        booked = _book(scheduling_service, shop, "10:00")

        moved = scheduling_service.reschedule_appointment(
            shop.shop_id, booked.id, MONDAY, "10:00", service_id=shop.combo_id
        )

        assert moved.service_name == "Haircut & beard"
        assert "10:30" not in scheduling_service.get_available_slots(
            shop.shop_id, shop.alex_id, shop.haircut_id, MONDAY
        )

    def test_conflict_with_other_booking(self, scheduling_service, shop):
        _book(scheduling_service, shop, "14:00")
        booked = _book(scheduling_service, shop, "10:00", client_id=shop.subscriber_id)

        with pytest.raises(SlotUnavailableError):
            scheduling_service.reschedule_appointment(
                shop.shop_id, booked.id, MONDAY, "14:00"
            )

    def test_completed_appointment_cannot_move(self, scheduling_service, shop):
        booked = _book_in_progress(scheduling_service, shop)
        scheduling_service.complete_appointment(shop.shop_id, booked.id, "cash")

        with pytest.raises(AppointmentFinalizedError):
            scheduling_service.reschedule_appointment(
                shop.shop_id, booked.id, MONDAY, "15:00"
            )

    def test_unknown_appointment(self, scheduling_service, shop):
        with pytest.raises(AppointmentNotFoundError):
            scheduling_service.reschedule_appointment(
                shop.shop_id, 999, MONDAY, "15:00"
            )


@pytest.mark.integration
@pytest.mark.services
@pytest.mark.appointment
class TestStatusAndCompletion:
    def test_forward_transitions(self, scheduling_service, shop):
        booked = _book(scheduling_service, shop)

        confirmed = scheduling_service.advance_status(
            shop.shop_id, booked.id, "confirmed"
        )
        started = scheduling_service.advance_status(
            shop.shop_id, booked.id, "in_progress"
        )

        assert confirmed.status is AppointmentStatus.CONFIRMED
        assert started.status is AppointmentStatus.IN_PROGRESS
        stored = scheduling_service.get_appointment(shop.shop_id, booked.id)
        assert stored.version == 3

    def test_backward_transition_is_rejected(self, scheduling_service, shop):
        booked = _book(scheduling_service, shop, channel="self_service")

        with pytest.raises(InvalidTransitionError):
            scheduling_service.advance_status(shop.shop_id, booked.id, "pending")

    def test_completion_requires_in_progress(self, scheduling_service, shop):
        booked = _book(scheduling_service, shop)

        with pytest.raises(InvalidTransitionError):
            scheduling_service.complete_appointment(shop.shop_id, booked.id, "cash")

    @pytest.mark.loyalty
    def test_completion_accrues_default_points(
        self, scheduling_service, shop, session_factory
    ):
        booked = _book_in_progress(scheduling_service, shop)

        completed = scheduling_service.complete_appointment(
            shop.shop_id, booked.id, "card"
        )

        assert completed.status is AppointmentStatus.COMPLETED
        assert completed.settlement_method is SettlementMethod.CARD
        assert _balance(session_factory, shop.client_id) == 1

    @pytest.mark.loyalty
    def test_completion_uses_service_rule(
        self, scheduling_service, shop, session_factory
    ):
        booked = _book_in_progress(scheduling_service, shop, service_id=shop.combo_id)

        scheduling_service.complete_appointment(shop.shop_id, booked.id, "cash")

        assert _balance(session_factory, shop.client_id) == 3

    @pytest.mark.loyalty
    def test_complimentary_earns_no_points(
        self, scheduling_service, shop, session_factory
    ):
        booked = _book_in_progress(scheduling_service, shop)

        scheduling_service.complete_appointment(
            shop.shop_id, booked.id, "complimentary"
        )

        assert _balance(session_factory, shop.client_id) == 0

    @pytest.mark.loyalty
    def test_loyalty_disabled(self, scheduling_service, shop_factory, session_factory):
        shop = shop_factory(loyalty_enabled=False)
        booked = _book_in_progress(scheduling_service, shop)

        scheduling_service.complete_appointment(shop.shop_id, booked.id, "cash")

        assert _balance(session_factory, shop.client_id) == 0

    def test_subscription_settlement(self, scheduling_service, shop):
        booked = _book_in_progress(
            scheduling_service, shop, client_id=shop.subscriber_id
        )

        completed = scheduling_service.complete_appointment(
            shop.shop_id, booked.id, "subscription"
        )

        assert completed.settlement_method is SettlementMethod.SUBSCRIPTION

    def test_subscription_must_cover_service(
        self, scheduling_service, shop, session_factory
    ):
        booked = _book_in_progress(
            scheduling_service,
            shop,
            client_id=shop.subscriber_id,
            service_id=shop.combo_id,
        )

        with pytest.raises(SettlementNotAllowedError):
            scheduling_service.complete_appointment(
                shop.shop_id, booked.id, "subscription"
            )
        stored = scheduling_service.get_appointment(shop.shop_id, booked.id)
        assert stored.status is AppointmentStatus.IN_PROGRESS

    def test_completing_twice_is_rejected(
        self, scheduling_service, shop, session_factory
    ):
        booked = _book_in_progress(scheduling_service, shop)
        scheduling_service.complete_appointment(shop.shop_id, booked.id, "cash")

        with pytest.raises(InvalidTransitionError):
            scheduling_service.complete_appointment(shop.shop_id, booked.id, "cash")
        assert _balance(session_factory, shop.client_id) == 1

    def test_missing_settlement_method(self, scheduling_service, shop):
        booked = _book_in_progress(scheduling_service, shop)

        with pytest.raises(ValueError, match="Settlement method is required"):
            scheduling_service.complete_appointment(shop.shop_id, booked.id, None)

    @pytest.mark.loyalty
    def test_deleted_client_still_completes(
        self, scheduling_service, shop, session_factory
    ):
        booked = _book_in_progress(scheduling_service, shop)
        db = session_factory()
        try:
            db.delete(db.get(models.Client, shop.client_id))
            db.commit()
        finally:
            db.close()

        completed = scheduling_service.complete_appointment(
            shop.shop_id, booked.id, "cash"
        )

        assert completed.status is AppointmentStatus.COMPLETED

    def test_completion_records_products(self, scheduling_service, shop):
        booked = _book_in_progress(scheduling_service, shop)

        scheduling_service.complete_appointment(
            shop.shop_id,
            booked.id,
            "cash",
            sold_products=[SoldProduct("oil", 2, Decimal("15.00"), "Beard oil")],
        )

        stored = scheduling_service.get_appointment(shop.shop_id, booked.id)
        assert stored.products_total == Decimal("30.00")

    def test_products_of_completed_appointment_are_frozen(
        self, scheduling_service, shop
    ):
        booked = _book_in_progress(scheduling_service, shop)
        scheduling_service.complete_appointment(shop.shop_id, booked.id, "cash")

        with pytest.raises(AppointmentFinalizedError):
            scheduling_service.update_sold_products(
                shop.shop_id, booked.id, [SoldProduct("gel", 1, Decimal("8.00"))]
            )

    def test_update_sold_products(self, scheduling_service, shop):
        booked = _book(scheduling_service, shop)

        updated = scheduling_service.update_sold_products(
            shop.shop_id, booked.id, [SoldProduct("gel", 2, Decimal("8.00"))]
        )

        assert updated.products_total == Decimal("16.00")


@pytest.mark.integration
@pytest.mark.services
class TestDeleteAndSettings:
    def test_delete_releases_slots(self, scheduling_service, shop):
        booked = _book(scheduling_service, shop, "10:00", service_id=shop.combo_id)

        scheduling_service.delete_appointment(shop.shop_id, booked.id)

        assert scheduling_service.get_available_slots(
            shop.shop_id, shop.alex_id, shop.haircut_id, MONDAY
        ) == HAIRCUT_SLOTS_ON_OPEN_DAY
        # The freed time can be booked again
        assert _book(scheduling_service, shop, "10:30").start_time == "10:30"

    def test_completed_appointment_can_be_deleted(self, scheduling_service, shop):
        booked = _book_in_progress(scheduling_service, shop)
        scheduling_service.complete_appointment(shop.shop_id, booked.id, "cash")

        scheduling_service.delete_appointment(shop.shop_id, booked.id)

        with pytest.raises(AppointmentNotFoundError):
            scheduling_service.get_appointment(shop.shop_id, booked.id)

    def test_delete_unknown(self, scheduling_service, shop):
        with pytest.raises(AppointmentNotFoundError):
            scheduling_service.delete_appointment(shop.shop_id, 999)

    def test_update_operating_hours(self, scheduling_service, shop):
        schedule = OperatingSchedule(
            days={"monday": DaySchedule(open=True, start="10:00", end="12:00")}
        )

        settings = scheduling_service.update_operating_hours(
            shop.shop_id, schedule, interval_minutes=60
        )

        assert settings.interval_minutes == 60
        assert scheduling_service.get_available_slots(
            shop.shop_id, shop.alex_id, shop.haircut_id, MONDAY
        ) == ["10:00", "11:00"]
        with pytest.raises(ScheduleClosedError):
            scheduling_service.get_available_slots(
                shop.shop_id, shop.alex_id, shop.haircut_id, TUESDAY
            )

    def test_unaligned_closing_time_limits_last_start(self, scheduling_service, shop):
        schedule = OperatingSchedule(
            days={"monday": DaySchedule(open=True, start="09:00", end="10:10")}
        )
        scheduling_service.update_operating_hours(shop.shop_id, schedule)

        assert scheduling_service.get_available_slots(
            shop.shop_id, shop.alex_id, shop.haircut_id, MONDAY
        ) == ["09:00", "09:30"]
        assert scheduling_service.get_available_slots(
            shop.shop_id, shop.alex_id, shop.combo_id, MONDAY
        ) == ["09:00"]
        with pytest.raises(SlotUnavailableError):
            _book(scheduling_service, shop, "10:00")

    def test_update_hours_keeps_interval_when_omitted(self, scheduling_service, shop):
        settings = scheduling_service.update_operating_hours(
            shop.shop_id, OperatingSchedule()
        )

        assert settings.interval_minutes == 30
        assert scheduling_service.get_settings(shop.shop_id).schedule.for_date(
            MONDAY
        ).open is False


@pytest.mark.integration
@pytest.mark.services
@pytest.mark.commission
class TestCommissionReport:
    def _complete(self, service, shop, start_time, settlement, **kwargs):
        booked = _book_in_progress(service, shop, start_time=start_time, **kwargs)
        return service.complete_appointment(shop.shop_id, booked.id, settlement)

    def test_report_over_completed_appointments(self, scheduling_service, shop):
        svc = scheduling_service
        self._complete(svc, shop, "09:00", "cash")
        self._complete(svc, shop, "10:00", "card", service_id=shop.combo_id)
        self._complete(svc, shop, "13:00", "complimentary")
        # Still pending, not counted
        _book(svc, shop, "15:00")

        report = svc.commission_report(shop.shop_id, shop.alex_id, MONDAY, MONDAY)

        assert report.appointment_count == 2
        assert report.excluded_count == 1
        assert report.service_revenue == Decimal("100.00")
        assert report.service_commission == Decimal("25.00")
        assert report.total_commission == Decimal("25.00")

    def test_subscription_counts_when_enabled(self, scheduling_service, shop):
        booked = _book_in_progress(
            scheduling_service, shop, client_id=shop.subscriber_id
        )
        scheduling_service.complete_appointment(
            shop.shop_id, booked.id, "subscription"
        )

        report = scheduling_service.commission_report(
            shop.shop_id, shop.alex_id, MONDAY, MONDAY
        )

        assert report.service_commission == Decimal("10.00")

    def test_products_are_opt_in(self, scheduling_service, shop):
        booked = _book_in_progress(scheduling_service, shop)
        scheduling_service.complete_appointment(
            shop.shop_id,
            booked.id,
            "complimentary",
            sold_products=[SoldProduct("oil", 2, Decimal("15.00"))],
        )

        without = scheduling_service.commission_report(
            shop.shop_id, shop.alex_id, MONDAY, MONDAY
        )
        with_products = scheduling_service.commission_report(
            shop.shop_id, shop.alex_id, MONDAY, MONDAY, include_products=True
        )

        assert without.total_commission == Decimal("0.00")
        assert with_products.product_revenue == Decimal("30.00")
        assert with_products.product_commission == Decimal("3.00")

    def test_period_outside_bookings(self, scheduling_service, shop):
        self._complete(scheduling_service, shop, "09:00", "cash")

        report = scheduling_service.commission_report(
            shop.shop_id, shop.alex_id, TUESDAY, date(2030, 1, 31)
        )

        assert report.appointment_count == 0
        assert report.total_commission == Decimal("0.00")

    def test_inverted_period(self, scheduling_service, shop):
        with pytest.raises(ValueError):
            scheduling_service.commission_report(
                shop.shop_id, shop.alex_id, TUESDAY, MONDAY
            )

    def test_unknown_professional(self, scheduling_service, shop):
        with pytest.raises(ResourceNotFoundError):
            scheduling_service.commission_report(shop.shop_id, 999, MONDAY, MONDAY)

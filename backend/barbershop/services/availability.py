"""
Availability filtering.

Given the candidate slots of a day, the bookings a professional already holds
on that day and the duration of the requested service, keep the start times
that can host the new appointment without overlapping a booking or a break.
"""

from typing import Iterable, List, Mapping, Optional, Set

from barbershop.domain.entities import Appointment, DaySchedule

from .calendar_math import format_time, parse_time, slots_required


def occupied_span(start_time: str, duration_minutes: int, interval_minutes: int):
    """Half-open ``(start, end)`` minutes reserved by a booking, rounded up to whole slots."""
    start = parse_time(start_time)
    return start, start + slots_required(duration_minutes, interval_minutes) * (
        interval_minutes
    )


def occupied_slot_times(
    start_time: str, duration_minutes: int, interval_minutes: int
) -> List[str]:
    """Grid slots a booking starting at ``start_time`` occupies."""
    start, end = occupied_span(start_time, duration_minutes, interval_minutes)
    return [format_time(t) for t in range(start, end, interval_minutes)]


def blocked_slots(
    candidate_slots: Iterable[str],
    existing_appointments: Iterable[Appointment],
    interval_minutes: int,
    day_schedule: Optional[DaySchedule] = None,
    service_durations: Optional[Mapping[str, int]] = None,
    exclude_appointment_id: Optional[int] = None,
) -> Set[str]:
    """Candidate slots taken by existing bookings or by the day's break."""
    service_durations = service_durations or {}
    candidates = [(slot, parse_time(slot)) for slot in candidate_slots]
    blocked: Set[str] = set()

    for appointment in existing_appointments:
        if exclude_appointment_id is not None and appointment.id == exclude_appointment_id:
            continue
        # Unknown services occupy one slot
        duration = service_durations.get(appointment.service_name) or interval_minutes
        busy_start, busy_end = occupied_span(
            appointment.start_time, duration, interval_minutes
        )
        for slot, minutes in candidates:
            if minutes < busy_end and minutes + interval_minutes > busy_start:
                blocked.add(slot)

    if day_schedule is not None and day_schedule.open and day_schedule.has_break:
        break_start = parse_time(day_schedule.break_start)
        break_end = parse_time(day_schedule.break_end)
        for slot, minutes in candidates:
            if break_start <= minutes < break_end:
                blocked.add(slot)

    return blocked


def available_slots(
    candidate_slots: List[str],
    existing_appointments: Iterable[Appointment],
    service_duration: int,
    interval_minutes: int,
    day_schedule: Optional[DaySchedule] = None,
    service_durations: Optional[Mapping[str, int]] = None,
    exclude_appointment_id: Optional[int] = None,
) -> List[str]:
    """
    Ordered subset of ``candidate_slots`` that can host a new booking.

    Args:
        candidate_slots: Ordered slots of the day, as produced by
            ``generate_day_slots``
        existing_appointments: Bookings of the same professional on the same day
        service_duration: Duration of the requested service in minutes
        interval_minutes: Shop-wide slot granularity
        day_schedule: Schedule of the day, used for its break window and
            closing time
        service_durations: Service name to duration of the existing bookings
        exclude_appointment_id: Booking being edited; its own slots stay free

    Returns:
        Start times ``slot[i]`` for which ``slot[i .. i + required - 1]`` exist
        and none of them is blocked. With ``day_schedule`` the service must
        also end by closing time.
    """
    required = slots_required(service_duration, interval_minutes)
    blocked = blocked_slots(
        candidate_slots,
        existing_appointments,
        interval_minutes,
        day_schedule,
        service_durations,
        exclude_appointment_id,
    )

    closing = None
    if day_schedule is not None and day_schedule.open:
        closing = parse_time(day_schedule.end)

    result = []
    for index, slot in enumerate(candidate_slots):
        window = candidate_slots[index : index + required]
        if len(window) < required:
            # Would run past closing time; later slots cannot fit either
            break
        if closing is not None and parse_time(slot) + service_duration > closing:
            break
        if any(s in blocked for s in window):
            continue
        result.append(slot)
    return result

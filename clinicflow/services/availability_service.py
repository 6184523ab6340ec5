"""Slot availability checks against existing bookings."""

from datetime import date, datetime, time, timedelta

import structlog

from clinicflow.core.clock import parse_wall_clock
from clinicflow.domain.entities import AvailabilityResult
from clinicflow.domain.ports import AppointmentRepository, TimeSource
from clinicflow.domain.statuses import AppointmentStatus

logger = structlog.get_logger(__name__)

# Bookings in these statuses no longer occupy their slot
NON_BLOCKING_STATUSES = frozenset({AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW})


def _minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def intervals_overlap(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    """Check whether two half-open minute intervals overlap."""
    return start_a < end_b and start_b < end_a


def _format(minutes: int) -> str:
    return (datetime.min + timedelta(minutes=minutes)).strftime("%H:%M")


class AppointmentAvailabilityService:
    """Checks a doctor's slot against the appointment store."""

    def __init__(
        self,
        appointments: AppointmentRepository,
        clock: TimeSource,
        opening_time: time | None = None,
        closing_time: time | None = None,
    ):
        """Initialize with the appointment store and clinic hours."""
        self.appointments = appointments
        self.clock = clock
        self.opening_time = opening_time
        self.closing_time = closing_time

    async def is_available(
        self,
        doctor_id: str,
        appointment_date: date,
        time: str,
        duration_minutes: int,
        exclude_appointment_id: int | None = None,
    ) -> AvailabilityResult:
        """
        Check whether the doctor can take the requested slot.

        Args:
            doctor_id: Doctor to check
            appointment_date: Requested date (clinic-local)
            time: Requested start time ("HH:MM")
            duration_minutes: Slot length
            exclude_appointment_id: Appointment being moved, ignored in the conflict scan

        Returns:
            Availability with the reason when the slot is taken
        """
        if appointment_date < self.clock.now().date():
            return AvailabilityResult(False, "Appointment date cannot be in the past")

        try:
            start = _minutes(parse_wall_clock(time))
        except ValueError as e:
            return AvailabilityResult(False, str(e))
        end = start + duration_minutes

        if self.opening_time and self.closing_time:
            if start < _minutes(self.opening_time) or end > _minutes(self.closing_time):
                return AvailabilityResult(
                    False,
                    f"Requested time is outside clinic hours "
                    f"({self.opening_time:%H:%M}-{self.closing_time:%H:%M})",
                )

        booked = await self.appointments.find_by_doctor(doctor_id, on_date=appointment_date)
        for existing in booked:
            if existing.id == exclude_appointment_id or existing.status in NON_BLOCKING_STATUSES:
                continue
            try:
                existing_start = _minutes(parse_wall_clock(existing.time))
            except ValueError:
                logger.warning(
                    "appointment_time_unparseable",
                    appointment_id=existing.id,
                    time=existing.time,
                )
                continue

            if intervals_overlap(start, end, existing_start, existing_start + duration_minutes):
                return AvailabilityResult(
                    False,
                    f"Doctor already has an appointment from {existing.time} "
                    f"to {_format(existing_start + duration_minutes)}",
                )

        return AvailabilityResult(True)

"""
Bookable slot calculation.

Slots are computed from the shop's opening hours in its local timezone and
the barber's appointments that still hold time (pending, confirmed,
completed). The listing is advisory: booking re-checks the slot under a
lock, so a slot shown here may already be gone when submitted.
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Callable, Iterator, NamedTuple
from uuid import UUID

from clients.postgres_client import PostgresClient
from core.config import ShopConfig
from core.models import AppointmentStatus
from utils.timezone import now_utc, local_day_bounds, get_zone

logger = logging.getLogger(__name__)

SLOT_HOLDING_STATUSES = [s.value for s in AppointmentStatus if s.blocks_slot]


class BusyInterval(NamedTuple):
    """Half-open [start, end) span of time held by an appointment."""

    start: datetime
    end: datetime


def overlaps(start: datetime, end: datetime, other: BusyInterval) -> bool:
    """Whether [start, end) intersects other. Touching edges do not overlap."""
    return start < other.end and other.start < end


def generate_slots(
    day: date,
    duration_minutes: int,
    busy: list[BusyInterval],
    now: datetime,
    config: ShopConfig,
) -> Iterator[str]:
    """
    Yield free start times on day as local "HH:MM" labels, in order.

    A candidate must end by closing time, must not have started yet, and
    must not overlap any busy interval.
    """
    if duration_minutes <= 0:
        return

    tz = get_zone(config.timezone)
    midnight = datetime.combine(day, time.min, tzinfo=tz)
    opening = midnight + timedelta(hours=config.opening_hour)
    closing = midnight + timedelta(hours=config.closing_hour)
    step = timedelta(minutes=config.slot_step_minutes)
    length = timedelta(minutes=duration_minutes)

    start = opening
    while start + length <= closing:
        end = start + length
        if start >= now and not any(overlaps(start, end, b) for b in busy):
            yield start.strftime("%H:%M")
        start += step


class _Snapshot(NamedTuple):
    busy: list[BusyInterval]
    now: datetime


class AvailableSlots:
    """
    Lazy, restartable sequence of free slot labels.

    The barber's appointments are read once, on first iteration; every
    later iteration replays the same snapshot. A new request builds a new
    AvailableSlots, so nothing is shared across calls.
    """

    def __init__(
        self,
        day: date,
        duration_minutes: int,
        config: ShopConfig,
        load: Callable[[], _Snapshot | None],
    ):
        self.day = day
        self.duration_minutes = duration_minutes
        self._config = config
        self._load = load
        self._snapshot: _Snapshot | None = None
        self._loaded = False

    def _ensure_snapshot(self) -> _Snapshot | None:
        if not self._loaded:
            self._snapshot = self._load()
            self._loaded = True
        return self._snapshot

    def __iter__(self) -> Iterator[str]:
        if self.duration_minutes <= 0:
            return iter(())
        snapshot = self._ensure_snapshot()
        if snapshot is None:
            return iter(())
        return generate_slots(
            self.day, self.duration_minutes, snapshot.busy, snapshot.now, self._config
        )

    def __repr__(self) -> str:
        return f"AvailableSlots(day={self.day.isoformat()}, duration={self.duration_minutes})"


class AvailabilityService:
    """Compute bookable slots for a barber."""

    def __init__(
        self,
        postgres: PostgresClient,
        config: ShopConfig | None = None,
        clock: Callable[[], datetime] = now_utc
    ):
        self.postgres = postgres
        self.config = config or ShopConfig()
        self._clock = clock

    def get_available_slots(
        self,
        barber_id: UUID,
        day: date,
        service_duration_minutes: int
    ) -> AvailableSlots:
        """
        Free start times for a barber on a local shop day.

        Unknown or inactive barbers and non-positive durations produce an
        empty sequence. No database work happens until the result is
        iterated.

        Args:
            barber_id: Barber UUID
            day: Calendar day in the shop's timezone
            service_duration_minutes: Length of the service to fit

        Returns:
            AvailableSlots yielding "HH:MM" labels in ascending order
        """
        return AvailableSlots(
            day,
            service_duration_minutes,
            self.config,
            lambda: self._snapshot(barber_id, day),
        )

    def _snapshot(self, barber_id: UUID, day: date) -> _Snapshot | None:
        barber = self.postgres.execute_single(
            "SELECT id, is_active FROM barbers WHERE id = %s",
            (barber_id,)
        )
        if barber is None or not barber["is_active"]:
            logger.info(f"No slots for barber {barber_id}: unknown or inactive")
            return None

        return _Snapshot(busy=self.busy_intervals(barber_id, day), now=self._clock())

    def busy_intervals(self, barber_id: UUID, day: date) -> list[BusyInterval]:
        """Time held by the barber's non-canceled appointments touching day."""
        day_start, day_end = local_day_bounds(day, self.config.timezone)

        rows = self.postgres.execute(
            """
            SELECT date, duration_minutes FROM appointments
            WHERE barber_id = %s
              AND status = ANY(%s)
              AND date < %s
              AND date + duration_minutes * interval '1 minute' > %s
            ORDER BY date ASC
            """,
            (barber_id, SLOT_HOLDING_STATUSES, day_end, day_start)
        )

        return [
            BusyInterval(row["date"], row["date"] + timedelta(minutes=row["duration_minutes"]))
            for row in rows
        ]

"""
Appointment service: booking and the status state machine.

    pending ──> confirmed ──> completed
       │            │
       └────────────┴──────> canceled

completed and canceled are terminal. Every transition is a conditional
UPDATE keyed on the allowed source statuses, so of two concurrent requests
for the same appointment at most one wins; the other sees
InvalidTransitionError. Completing an appointment creates its completed
service in the same transaction.
"""

import logging
from datetime import date, timedelta
from uuid import UUID, uuid4

from clients.postgres_client import PostgresClient
from core.audit import AuditLogger, AuditAction
from core.config import ShopConfig
from core.errors import (
    InvalidBookingError,
    InvalidTransitionError,
    NotFoundError,
    SlotUnavailableError,
)
from core.event_bus import EventBus
from core.events import (
    AppointmentBooked,
    AppointmentCanceled,
    AppointmentCompleted,
    AppointmentConfirmed,
)
from core.models import (
    Actor,
    Appointment,
    AppointmentStatus,
    BookingRequest,
    CompletedServiceCreate,
    DraftBooking,
    Role,
)
from core.permissions import require_admin, require_staff_for
from core.services.availability_service import SLOT_HOLDING_STATUSES
from core.services.service_record_service import insert_completed_service
from utils.timezone import now_utc, local_day_bounds, to_local

logger = logging.getLogger(__name__)

# target -> statuses it may be reached from
ALLOWED_SOURCES: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.CONFIRMED: frozenset({AppointmentStatus.PENDING}),
    AppointmentStatus.COMPLETED: frozenset({AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED}),
    AppointmentStatus.CANCELED: frozenset({AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED}),
}

ADMIN_ONLY_TARGETS = frozenset({AppointmentStatus.CONFIRMED})


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    """Whether the state machine has an edge current -> target."""
    return current in ALLOWED_SOURCES.get(target, frozenset())


class AppointmentService:
    """Service for appointment booking and lifecycle."""

    def __init__(
        self,
        postgres: PostgresClient,
        audit: AuditLogger,
        event_bus: EventBus,
        config: ShopConfig | None = None
    ):
        self.postgres = postgres
        self.audit = audit
        self.event_bus = event_bus
        self.config = config or ShopConfig()

    # =========================================================================
    # BOOKING
    # =========================================================================

    def book(self, draft: DraftBooking | BookingRequest, actor: Actor) -> Appointment:
        """
        Create a pending appointment from a draft booking.

        Everything the booking flow collected is checked here, at
        submission: service and barber exist and are active, the time is in
        the future and inside opening hours, and the barber is free. The
        free-slot check and insert run under a lock on the barber row, so of
        two overlapping concurrent bookings only one is written.

        Clients always book for themselves.

        Args:
            draft: Draft booking or the BookingRequest built from one
            actor: Caller

        Returns:
            Created appointment in PENDING status

        Raises:
            InvalidBookingError: If the draft is incomplete or fails a check
            NotFoundError: If service or barber does not exist
            SlotUnavailableError: If the barber is busy at that time
        """
        request = draft.build() if isinstance(draft, DraftBooking) else draft

        client_id = request.client_id
        if actor.role == Role.CLIENT:
            client_id = actor.user_id

        if request.date <= now_utc():
            raise InvalidBookingError("Appointments must be booked in the future")

        with self.postgres.transaction() as tx:
            service = tx.execute_single(
                "SELECT id, is_active, duration_minutes FROM services WHERE id = %s",
                (request.service_id,)
            )
            if service is None:
                raise NotFoundError("service", request.service_id)
            if not service["is_active"]:
                raise InvalidBookingError(f"Service {request.service_id} is not offered")

            barber = tx.execute_single(
                "SELECT id, is_active FROM barbers WHERE id = %s FOR UPDATE",
                (request.barber_id,)
            )
            if barber is None:
                raise NotFoundError("barber", request.barber_id)
            if not barber["is_active"]:
                raise InvalidBookingError(f"Barber {request.barber_id} is not taking bookings")

            duration = service["duration_minutes"]
            self._check_opening_hours(request, duration)

            clash = tx.execute_single(
                """
                SELECT id FROM appointments
                WHERE barber_id = %s
                  AND status = ANY(%s)
                  AND date < %s
                  AND date + duration_minutes * interval '1 minute' > %s
                LIMIT 1
                """,
                (
                    request.barber_id,
                    SLOT_HOLDING_STATUSES,
                    request.date + timedelta(minutes=duration),
                    request.date,
                )
            )
            if clash is not None:
                raise SlotUnavailableError(
                    f"Barber {request.barber_id} is not available at {request.date.isoformat()}"
                )

            now = now_utc()
            row = tx.execute_returning(
                """
                INSERT INTO appointments (
                    id, client_id, client_name, barber_id, service_id, date,
                    duration_minutes, status, notes, created_at, updated_at
                ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING *
                """,
                (
                    uuid4(), client_id, request.client_name, request.barber_id,
                    request.service_id, request.date, duration,
                    AppointmentStatus.PENDING.value, request.notes, now, now
                )
            )[0]

            appointment = Appointment.model_validate(row)

            self.audit.log_change(
                entity_type="appointment",
                entity_id=appointment.id,
                action=AuditAction.CREATE,
                changes={"created": appointment.model_dump(mode="json")},
                user_id=actor.user_id,
                tx=tx
            )

        self.event_bus.publish(AppointmentBooked.create(appointment=appointment))
        return appointment

    def _check_opening_hours(self, request: BookingRequest, duration: int) -> None:
        local_start = to_local(request.date, self.config.timezone)
        midnight = local_start.replace(hour=0, minute=0, second=0, microsecond=0)
        opening = midnight + timedelta(hours=self.config.opening_hour)
        closing = midnight + timedelta(hours=self.config.closing_hour)

        if local_start < opening or local_start + timedelta(minutes=duration) > closing:
            raise InvalidBookingError(
                f"{local_start.strftime('%H:%M')} is outside opening hours "
                f"({self.config.opening_hour:02d}:00-{self.config.closing_hour:02d}:00)"
            )

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    def transition(
        self,
        appointment_id: UUID,
        target_status: AppointmentStatus,
        actor: Actor
    ) -> Appointment:
        """
        Move an appointment to target_status.

        Confirming is admin only; completing and canceling are allowed to an
        admin or the appointment's barber. Completing creates exactly one
        completed service carrying the service's current price.

        Args:
            appointment_id: Appointment UUID
            target_status: Desired status
            actor: Caller

        Returns:
            Updated appointment

        Raises:
            NotFoundError: If appointment does not exist
            UnauthorizedError: If actor may not perform this transition
            InvalidTransitionError: If the current status has no edge to target
        """
        target_status = AppointmentStatus(target_status)

        current = self.get(appointment_id)
        if current is None:
            raise NotFoundError("appointment", appointment_id)

        if target_status in ADMIN_ONLY_TARGETS:
            require_admin(actor, f"move appointments to {target_status.value}")
        else:
            require_staff_for(actor, current.barber_id, f"move appointments to {target_status.value}")

        if not can_transition(current.status, target_status):
            raise InvalidTransitionError(
                "appointment", appointment_id, current.status.value, target_status.value
            )

        sources = [s.value for s in ALLOWED_SOURCES[target_status]]
        record = None

        with self.postgres.transaction() as tx:
            # Status under the row lock; the pre-read above may be stale
            locked = tx.execute_single(
                "SELECT status FROM appointments WHERE id = %s FOR UPDATE",
                (appointment_id,)
            )
            if locked is None:
                raise NotFoundError("appointment", appointment_id)
            previous = AppointmentStatus(locked["status"])
            if not can_transition(previous, target_status):
                raise InvalidTransitionError(
                    "appointment", appointment_id, previous.value, target_status.value
                )

            row = tx.execute_single(
                """
                UPDATE appointments
                SET status = %s, updated_at = %s
                WHERE id = %s AND status = ANY(%s)
                RETURNING *
                """,
                (target_status.value, now_utc(), appointment_id, sources)
            )
            if row is None:
                raise InvalidTransitionError(
                    "appointment", appointment_id, previous.value, target_status.value
                )

            updated = Appointment.model_validate(row)

            self.audit.log_change(
                entity_type="appointment",
                entity_id=appointment_id,
                action=AuditAction.UPDATE,
                changes={"status": {"old": previous.value, "new": target_status.value}},
                user_id=actor.user_id,
                tx=tx
            )

            if target_status == AppointmentStatus.COMPLETED:
                price = tx.execute_single(
                    "SELECT price FROM services WHERE id = %s",
                    (updated.service_id,)
                )
                if price is None:
                    raise NotFoundError("service", updated.service_id)

                record = insert_completed_service(
                    tx,
                    CompletedServiceCreate(
                        barber_id=updated.barber_id,
                        service_id=updated.service_id,
                        client_id=updated.client_id,
                        client_name=updated.client_name,
                        price=price["price"],
                        date=updated.date,
                        appointment_id=updated.id,
                    )
                )

                self.audit.log_change(
                    entity_type="completed_service",
                    entity_id=record.id,
                    action=AuditAction.CREATE,
                    changes={"created": record.model_dump(mode="json")},
                    user_id=actor.user_id,
                    tx=tx
                )

        logger.info(
            f"Appointment {appointment_id}: {previous.value} -> {target_status.value}"
        )

        if target_status == AppointmentStatus.CONFIRMED:
            self.event_bus.publish(AppointmentConfirmed.create(appointment=updated))
        elif target_status == AppointmentStatus.COMPLETED:
            self.event_bus.publish(AppointmentCompleted.create(updated, record))
        else:
            self.event_bus.publish(AppointmentCanceled.create(appointment=updated))

        return updated

    def confirm(self, appointment_id: UUID, actor: Actor) -> Appointment:
        return self.transition(appointment_id, AppointmentStatus.CONFIRMED, actor)

    def complete(self, appointment_id: UUID, actor: Actor) -> Appointment:
        return self.transition(appointment_id, AppointmentStatus.COMPLETED, actor)

    def cancel(self, appointment_id: UUID, actor: Actor) -> Appointment:
        return self.transition(appointment_id, AppointmentStatus.CANCELED, actor)

    # =========================================================================
    # READS
    # =========================================================================

    def get(self, appointment_id: UUID) -> Appointment | None:
        """Get appointment by ID, or None."""
        row = self.postgres.execute_single(
            "SELECT * FROM appointments WHERE id = %s",
            (appointment_id,)
        )

        if row is None:
            return None

        return Appointment.model_validate(row)

    def list_for_barber_day(self, barber_ids: list[UUID], day: date) -> list[Appointment]:
        """
        Appointments of the given barbers starting on a local shop day.

        Takes a list so calendar views can pass the barber's visible set.
        """
        day_start, day_end = local_day_bounds(day, self.config.timezone)

        rows = self.postgres.execute(
            """
            SELECT * FROM appointments
            WHERE barber_id = ANY(%s) AND date >= %s AND date < %s
            ORDER BY date ASC
            """,
            (list(barber_ids), day_start, day_end)
        )

        return [Appointment.model_validate(row) for row in rows]

    def list_upcoming(self, barber_id: UUID | None = None, limit: int = 50) -> list[Appointment]:
        """Pending and confirmed appointments from now on, soonest first."""
        open_statuses = [AppointmentStatus.PENDING.value, AppointmentStatus.CONFIRMED.value]

        if barber_id is None:
            rows = self.postgres.execute(
                """
                SELECT * FROM appointments
                WHERE status = ANY(%s) AND date >= %s
                ORDER BY date ASC
                LIMIT %s
                """,
                (open_statuses, now_utc(), limit)
            )
        else:
            rows = self.postgres.execute(
                """
                SELECT * FROM appointments
                WHERE barber_id = %s AND status = ANY(%s) AND date >= %s
                ORDER BY date ASC
                LIMIT %s
                """,
                (barber_id, open_statuses, now_utc(), limit)
            )

        return [Appointment.model_validate(row) for row in rows]

    def list_for_client(self, client_id: UUID) -> list[Appointment]:
        """A client's appointments, newest first."""
        rows = self.postgres.execute(
            "SELECT * FROM appointments WHERE client_id = %s ORDER BY date DESC",
            (client_id,)
        )

        return [Appointment.model_validate(row) for row in rows]

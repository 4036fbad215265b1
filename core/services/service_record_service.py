"""
Completed-service recorder.

A completed service is what settlement pays commission on. Records come
from two places: the appointment state machine (inside its completion
transaction) and barbers or admins recording walk-ins directly. Either way
the record starts unvalidated and only enters settlement once an admin
validates it.
"""

import logging
from datetime import datetime
from uuid import UUID, uuid4

from clients.postgres_client import PostgresClient, Transaction
from core.audit import AuditLogger, AuditAction
from core.errors import AlreadyValidatedError, BarbershopError, NotFoundError
from core.event_bus import EventBus
from core.events import ServiceValidated
from core.models import Actor, CompletedService, CompletedServiceCreate
from core.permissions import require_admin, require_staff_for
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


def insert_completed_service(tx: Transaction, data: CompletedServiceCreate) -> CompletedService:
    """
    Insert an unvalidated completed service through an open transaction.

    The unique constraint on appointment_id rejects a second record for the
    same appointment.
    """
    row = tx.execute_returning(
        """
        INSERT INTO completed_services (
            id, barber_id, service_id, client_id, client_name, price, date,
            appointment_id, validated_by_admin, validated_at, payment_id, created_at
        ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, false, NULL, NULL, %s)
        RETURNING *
        """,
        (
            uuid4(), data.barber_id, data.service_id, data.client_id, data.client_name,
            data.price, data.date, data.appointment_id, now_utc()
        )
    )[0]

    return CompletedService.model_validate(row)


class ServiceRecordService:
    """Service for completed-service records."""

    def __init__(self, postgres: PostgresClient, audit: AuditLogger, event_bus: EventBus):
        self.postgres = postgres
        self.audit = audit
        self.event_bus = event_bus

    def record_service(self, data: CompletedServiceCreate, actor: Actor) -> CompletedService:
        """
        Record a performed service, typically a walk-in.

        Barbers may only record their own work; admins may record for anyone.
        The price is stored as given. Records tied to an appointment are only
        created by completing that appointment, so appointment_id must be unset.

        Args:
            data: Record data
            actor: Caller

        Returns:
            Created record, unvalidated

        Raises:
            UnauthorizedError: If actor is neither admin nor that barber
            NotFoundError: If barber or service does not exist
            BarbershopError: If appointment_id is set
        """
        require_staff_for(actor, data.barber_id, "record services")
        if data.appointment_id is not None:
            raise BarbershopError(
                f"Appointment {data.appointment_id} is recorded by completing the appointment"
            )

        with self.postgres.transaction() as tx:
            if tx.execute_single("SELECT id FROM barbers WHERE id = %s", (data.barber_id,)) is None:
                raise NotFoundError("barber", data.barber_id)
            if tx.execute_single("SELECT id FROM services WHERE id = %s", (data.service_id,)) is None:
                raise NotFoundError("service", data.service_id)

            record = insert_completed_service(tx, data)

            self.audit.log_change(
                entity_type="completed_service",
                entity_id=record.id,
                action=AuditAction.CREATE,
                changes={"created": record.model_dump(mode="json")},
                user_id=actor.user_id,
                tx=tx
            )

        logger.info(f"Recorded service {record.service_id} for barber {record.barber_id}")
        return record

    def get(self, record_id: UUID) -> CompletedService | None:
        """Get a completed service by ID, or None."""
        row = self.postgres.execute_single(
            "SELECT * FROM completed_services WHERE id = %s",
            (record_id,)
        )

        if row is None:
            return None

        return CompletedService.model_validate(row)

    def validate(self, record_id: UUID, actor: Actor) -> CompletedService:
        """
        Approve a completed service for settlement. Admin only.

        The flag only moves false -> true; the conditional update lets
        exactly one of several concurrent validations win.

        Raises:
            UnauthorizedError: If actor is not an admin
            NotFoundError: If record does not exist
            AlreadyValidatedError: If record was already validated
        """
        require_admin(actor, "validate services")

        with self.postgres.transaction() as tx:
            row = tx.execute_single(
                """
                UPDATE completed_services
                SET validated_by_admin = true, validated_at = %s
                WHERE id = %s AND validated_by_admin = false
                RETURNING *
                """,
                (now_utc(), record_id)
            )

            if row is None:
                if tx.execute_single(
                    "SELECT id FROM completed_services WHERE id = %s", (record_id,)
                ) is None:
                    raise NotFoundError("completed service", record_id)
                raise AlreadyValidatedError("completed service", record_id)

            record = CompletedService.model_validate(row)

            self.audit.log_change(
                entity_type="completed_service",
                entity_id=record_id,
                action=AuditAction.UPDATE,
                changes={"validated_by_admin": {"old": False, "new": True}},
                user_id=actor.user_id,
                tx=tx
            )

        self.event_bus.publish(ServiceValidated.create(record=record))
        return record

    def list_pending_validation(self, barber_id: UUID | None = None) -> list[CompletedService]:
        """Unvalidated records, oldest first. All barbers when barber_id is None."""
        if barber_id is None:
            rows = self.postgres.execute(
                """
                SELECT * FROM completed_services
                WHERE validated_by_admin = false
                ORDER BY date ASC
                """
            )
        else:
            rows = self.postgres.execute(
                """
                SELECT * FROM completed_services
                WHERE barber_id = %s AND validated_by_admin = false
                ORDER BY date ASC
                """,
                (barber_id,)
            )

        return [CompletedService.model_validate(row) for row in rows]

    def list_validated_unpaid(self, barber_id: UUID) -> list[CompletedService]:
        """Validated records not yet claimed by a payment: the next settlement's input."""
        rows = self.postgres.execute(
            """
            SELECT * FROM completed_services
            WHERE barber_id = %s AND validated_by_admin = true AND payment_id IS NULL
            ORDER BY date ASC
            """,
            (barber_id,)
        )

        return [CompletedService.model_validate(row) for row in rows]

    def list_for_barber(
        self,
        barber_id: UUID,
        start: datetime | None = None,
        end: datetime | None = None
    ) -> list[CompletedService]:
        """A barber's records, newest first, optionally within [start, end)."""
        conditions = ["barber_id = %s"]
        params: list = [barber_id]
        if start is not None:
            conditions.append("date >= %s")
            params.append(start)
        if end is not None:
            conditions.append("date < %s")
            params.append(end)

        rows = self.postgres.execute(
            f"""
            SELECT * FROM completed_services
            WHERE {' AND '.join(conditions)}
            ORDER BY date DESC
            """,
            tuple(params)
        )

        return [CompletedService.model_validate(row) for row in rows]

    def list_for_payment(self, payment_id: UUID) -> list[CompletedService]:
        """Records claimed by a payment."""
        rows = self.postgres.execute(
            "SELECT * FROM completed_services WHERE payment_id = %s ORDER BY date ASC",
            (payment_id,)
        )

        return [CompletedService.model_validate(row) for row in rows]

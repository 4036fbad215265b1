"""
Commission settlement engine.

Settling a barber for a period [period_start, period_end) turns every
validated, not yet settled completed service and product sale dated before
period_end into one pending Payment. Each claimed row is stamped with the
payment's id, so no row is ever paid twice. Rows validated after their own
period was settled are still unclaimed and are picked up by the next
settlement; the payment counts them in carried_over_count.

Settlements for one barber are serialised by a row lock on the barber;
periods of one barber never overlap.
"""

import calendar
import logging
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID, uuid4

from clients.postgres_client import PostgresClient
from core.audit import AuditLogger, AuditAction
from core.errors import InvalidPeriodError, InvalidTransitionError, NotFoundError
from core.event_bus import EventBus
from core.events import PaymentPaid, PaymentSettled
from core.models import Actor, Payment, PaymentPeriod, PaymentStatus, SettlementPeriod
from core.permissions import require_admin
from core.services.commission_service import (
    CommissionService,
    commission_cut,
    effective_percentage,
    to_cents,
)
from utils.timezone import now_utc, local_day_bounds, to_local

logger = logging.getLogger(__name__)


def add_months(day: date, months: int) -> date:
    """Same day of month, clamped to the target month's last day."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def period_after(start: date, period: PaymentPeriod) -> date:
    """Exclusive end of a settlement period beginning at start."""
    if period == PaymentPeriod.WEEKLY:
        return start + timedelta(days=7)
    if period == PaymentPeriod.BIWEEKLY:
        return start + timedelta(days=14)
    return add_months(start, 1)


def validate_period(period_start: date, period_end: date) -> None:
    """Raise InvalidPeriodError unless period_start < period_end."""
    if period_end <= period_start:
        raise InvalidPeriodError(
            f"Period end {period_end.isoformat()} must be after start {period_start.isoformat()}"
        )


class SettlementService:
    """Service for commission payments."""

    def __init__(
        self,
        postgres: PostgresClient,
        audit: AuditLogger,
        event_bus: EventBus,
        commissions: CommissionService
    ):
        self.postgres = postgres
        self.audit = audit
        self.event_bus = event_bus
        self.commissions = commissions

    @property
    def _timezone(self) -> str:
        return self.commissions.config.timezone

    def settle(
        self,
        barber_id: UUID,
        period_start: date,
        period_end: date,
        actor: Actor,
        allow_empty: bool = True,
        notes: str | None = None
    ) -> Payment | None:
        """
        Create the pending commission payment for a barber's period.

        Period bounds are shop-local calendar days; period_end is exclusive.
        The amount is the exact sum of every claimed row's cut, rounded
        half-up to cents once.

        Args:
            barber_id: Barber UUID
            period_start: First day of the period
            period_end: Day after the last day of the period
            actor: Caller, must be admin
            allow_empty: When False, return None instead of a zero payment
            notes: Free text stored on the payment

        Returns:
            The pending payment, or None if nothing was eligible and
            allow_empty is False

        Raises:
            UnauthorizedError: If actor is not an admin
            InvalidPeriodError: If the period is empty or overlaps a prior payment
            NotFoundError: If barber does not exist
        """
        require_admin(actor, "settle commissions")
        validate_period(period_start, period_end)

        floor, _ = local_day_bounds(period_start, self._timezone)
        cutoff, _ = local_day_bounds(period_end, self._timezone)
        default = self.commissions.default_percentage

        with self.postgres.transaction() as tx:
            if tx.execute_single(
                "SELECT id FROM barbers WHERE id = %s FOR UPDATE", (barber_id,)
            ) is None:
                raise NotFoundError("barber", barber_id)

            overlapping = tx.execute_single(
                """
                SELECT id, period_start, period_end FROM payments
                WHERE barber_id = %s AND period_start < %s AND period_end > %s
                LIMIT 1
                """,
                (barber_id, period_end, period_start)
            )
            if overlapping is not None:
                raise InvalidPeriodError(
                    f"Period overlaps payment {overlapping['id']} "
                    f"({overlapping['period_start']} to {overlapping['period_end']})"
                )

            services = tx.execute(
                """
                SELECT id, service_id, price, date FROM completed_services
                WHERE barber_id = %s
                  AND validated_by_admin = true
                  AND payment_id IS NULL
                  AND date < %s
                FOR UPDATE
                """,
                (barber_id, cutoff)
            )
            sales = tx.execute(
                """
                SELECT id, product_id, unit_price, quantity, date FROM product_sales
                WHERE barber_id = %s
                  AND validated_by_admin = true
                  AND payment_id IS NULL
                  AND date < %s
                FOR UPDATE
                """,
                (barber_id, cutoff)
            )

            if not services and not sales and not allow_empty:
                logger.info(f"Nothing to settle for barber {barber_id} before {period_end}")
                return None

            service_rates = self.commissions.rates_for_barber(barber_id, tx=tx)
            product_rates = self.commissions.product_rates_for_barber(barber_id, tx=tx)

            total = Decimal("0")
            for row in services:
                pct = effective_percentage(service_rates.get(UUID(str(row["service_id"]))), default)
                total += commission_cut(Decimal(row["price"]), pct)
            for row in sales:
                pct = effective_percentage(product_rates.get(UUID(str(row["product_id"]))), default)
                total += commission_cut(Decimal(row["unit_price"]) * row["quantity"], pct)

            carried_over = sum(1 for row in services + sales if row["date"] < floor)

            payment_row = tx.execute_returning(
                """
                INSERT INTO payments (
                    id, barber_id, amount, period_start, period_end, status,
                    payment_date, notes, service_count, product_sale_count,
                    carried_over_count, created_at
                ) VALUES (%s, %s, %s, %s, %s, %s, NULL, %s, %s, %s, %s, %s)
                RETURNING *
                """,
                (
                    uuid4(), barber_id, to_cents(total), period_start, period_end,
                    PaymentStatus.PENDING.value, notes, len(services), len(sales),
                    carried_over, now_utc()
                )
            )[0]

            payment = Payment.model_validate(payment_row)

            if services:
                tx.execute(
                    "UPDATE completed_services SET payment_id = %s WHERE id = ANY(%s::uuid[])",
                    (payment.id, [row["id"] for row in services])
                )
            if sales:
                tx.execute(
                    "UPDATE product_sales SET payment_id = %s WHERE id = ANY(%s::uuid[])",
                    (payment.id, [row["id"] for row in sales])
                )

            self.audit.log_change(
                entity_type="payment",
                entity_id=payment.id,
                action=AuditAction.CREATE,
                changes={"created": payment.model_dump(mode="json")},
                user_id=actor.user_id,
                tx=tx
            )

        logger.info(
            f"Settled barber {barber_id} for {period_start} to {period_end}: "
            f"{payment.amount} over {payment.service_count} services, "
            f"{payment.product_sale_count} product sales"
        )
        if payment.carried_over_count:
            logger.info(
                f"Payment {payment.id} includes {payment.carried_over_count} rows "
                f"dated before {period_start}"
            )

        self.event_bus.publish(PaymentSettled.create(payment=payment))
        return payment

    def mark_paid(self, payment_id: UUID, actor: Actor) -> Payment:
        """
        Record that a pending payment was paid out. Admin only.

        Raises:
            UnauthorizedError: If actor is not an admin
            NotFoundError: If payment does not exist
            InvalidTransitionError: If payment is not pending
        """
        require_admin(actor, "mark payments paid")

        with self.postgres.transaction() as tx:
            row = tx.execute_single(
                """
                UPDATE payments
                SET status = %s, payment_date = %s
                WHERE id = %s AND status = %s
                RETURNING *
                """,
                (PaymentStatus.PAID.value, now_utc(), payment_id, PaymentStatus.PENDING.value)
            )

            if row is None:
                latest = tx.execute_single("SELECT status FROM payments WHERE id = %s", (payment_id,))
                if latest is None:
                    raise NotFoundError("payment", payment_id)
                raise InvalidTransitionError(
                    "payment", payment_id, latest["status"], PaymentStatus.PAID.value
                )

            payment = Payment.model_validate(row)

            self.audit.log_change(
                entity_type="payment",
                entity_id=payment_id,
                action=AuditAction.UPDATE,
                changes={
                    "status": {"old": PaymentStatus.PENDING.value, "new": PaymentStatus.PAID.value},
                    "payment_date": {"old": None, "new": payment.payment_date.isoformat()},
                },
                user_id=actor.user_id,
                tx=tx
            )

        self.event_bus.publish(PaymentPaid.create(payment=payment))
        return payment

    def next_period(self, barber_id: UUID) -> SettlementPeriod:
        """
        Suggest the next period to settle for a barber.

        Starts where the last payment ended; with no payment yet, at the
        earliest unsettled validated service, or today. Length follows the
        barber's payment period.

        Raises:
            NotFoundError: If barber does not exist
        """
        barber = self.postgres.execute_single(
            "SELECT id, payment_period FROM barbers WHERE id = %s",
            (barber_id,)
        )
        if barber is None:
            raise NotFoundError("barber", barber_id)

        last_end = self.postgres.execute_scalar(
            "SELECT MAX(period_end) FROM payments WHERE barber_id = %s",
            (barber_id,)
        )

        if last_end is not None:
            start = last_end
        else:
            earliest = self.postgres.execute_scalar(
                """
                SELECT MIN(date) FROM completed_services
                WHERE barber_id = %s AND validated_by_admin = true AND payment_id IS NULL
                """,
                (barber_id,)
            )
            moment = earliest if earliest is not None else now_utc()
            start = to_local(moment, self._timezone).date()

        end = period_after(start, PaymentPeriod(barber["payment_period"]))
        return SettlementPeriod(barber_id=barber_id, period_start=start, period_end=end)

    def get(self, payment_id: UUID) -> Payment | None:
        """Get payment by ID, or None."""
        row = self.postgres.execute_single("SELECT * FROM payments WHERE id = %s", (payment_id,))

        if row is None:
            return None

        return Payment.model_validate(row)

    def list_for_barber(self, barber_id: UUID) -> list[Payment]:
        """A barber's payments, latest period first."""
        rows = self.postgres.execute(
            "SELECT * FROM payments WHERE barber_id = %s ORDER BY period_start DESC",
            (barber_id,)
        )

        return [Payment.model_validate(row) for row in rows]

    def list_pending(self) -> list[Payment]:
        """Payments awaiting payout, oldest first."""
        rows = self.postgres.execute(
            "SELECT * FROM payments WHERE status = %s ORDER BY created_at ASC",
            (PaymentStatus.PENDING.value,)
        )

        return [Payment.model_validate(row) for row in rows]

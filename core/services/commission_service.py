"""
Commission rate lookup and money arithmetic.

Every place that needs a barber's share goes through effective_percentage():
one explicit-rate lookup with one fallback to the shop default. Cuts are
computed exactly in Decimal and rounded to cents only when a total is
reported.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from uuid import UUID

from clients.postgres_client import PostgresClient, Transaction
from core.config import ShopConfig

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def effective_percentage(explicit: Decimal | None, default: Decimal) -> Decimal:
    """Explicit rate when one is configured, otherwise the shop default."""
    return explicit if explicit is not None else default


def commission_cut(amount: Decimal, percentage: Decimal) -> Decimal:
    """Unrounded barber share of amount."""
    return amount * percentage / HUNDRED


def to_cents(amount: Decimal) -> Decimal:
    """Round half-up to two decimal places."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


class CommissionService:
    """Resolve barber commission rates for services and products."""

    def __init__(self, postgres: PostgresClient, config: ShopConfig | None = None):
        self.postgres = postgres
        self.config = config or ShopConfig()

    @property
    def default_percentage(self) -> Decimal:
        return self.config.default_commission_percentage

    def effective_percentage(
        self,
        barber_id: UUID,
        service_id: UUID,
        tx: Transaction | None = None
    ) -> Decimal:
        """
        Barber's share (0-100) of a service's price.

        Args:
            barber_id: Barber UUID
            service_id: Service UUID
            tx: Open transaction to read through, if any
        """
        executor = tx if tx is not None else self.postgres
        row = executor.execute_single(
            "SELECT percentage FROM commissions WHERE barber_id = %s AND service_id = %s",
            (barber_id, service_id)
        )
        explicit = Decimal(row["percentage"]) if row else None
        return effective_percentage(explicit, self.default_percentage)

    def effective_product_percentage(
        self,
        barber_id: UUID,
        product_id: UUID,
        tx: Transaction | None = None
    ) -> Decimal:
        """Barber's share (0-100) of a product sale."""
        executor = tx if tx is not None else self.postgres
        row = executor.execute_single(
            "SELECT percentage FROM product_commissions WHERE barber_id = %s AND product_id = %s",
            (barber_id, product_id)
        )
        explicit = Decimal(row["percentage"]) if row else None
        return effective_percentage(explicit, self.default_percentage)

    def rates_for_barber(self, barber_id: UUID, tx: Transaction | None = None) -> dict[UUID, Decimal]:
        """All explicit service rates for a barber, keyed by service id."""
        executor = tx if tx is not None else self.postgres
        rows = executor.execute(
            "SELECT service_id, percentage FROM commissions WHERE barber_id = %s",
            (barber_id,)
        )
        return {UUID(str(row["service_id"])): Decimal(row["percentage"]) for row in rows}

    def product_rates_for_barber(self, barber_id: UUID, tx: Transaction | None = None) -> dict[UUID, Decimal]:
        """All explicit product rates for a barber, keyed by product id."""
        executor = tx if tx is not None else self.postgres
        rows = executor.execute(
            "SELECT product_id, percentage FROM product_commissions WHERE barber_id = %s",
            (barber_id,)
        )
        return {UUID(str(row["product_id"])): Decimal(row["percentage"]) for row in rows}

"""
Product sale recorder.

Retail sales follow the same contract as completed services: recorded by
the selling barber or an admin, validated once by an admin, then claimed by
exactly one settlement.
"""

import logging
from uuid import UUID, uuid4

from clients.postgres_client import PostgresClient
from core.audit import AuditLogger, AuditAction
from core.errors import AlreadyValidatedError, InvalidBookingError, NotFoundError
from core.event_bus import EventBus
from core.events import ServiceValidated
from core.models import Actor, ProductSale, ProductSaleCreate
from core.permissions import require_admin, require_staff_for
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class ProductSaleService:
    """Service for product sale records."""

    def __init__(self, postgres: PostgresClient, audit: AuditLogger, event_bus: EventBus):
        self.postgres = postgres
        self.audit = audit
        self.event_bus = event_bus

    def record_sale(self, data: ProductSaleCreate, actor: Actor) -> ProductSale:
        """
        Record a product sale and take the units out of stock.

        Raises:
            UnauthorizedError: If actor is neither admin nor that barber
            NotFoundError: If barber or product does not exist
            InvalidBookingError: If the product is inactive or out of stock
        """
        require_staff_for(actor, data.barber_id, "record product sales")

        with self.postgres.transaction() as tx:
            if tx.execute_single("SELECT id FROM barbers WHERE id = %s", (data.barber_id,)) is None:
                raise NotFoundError("barber", data.barber_id)

            product = tx.execute_single(
                "SELECT id, is_active, stock_quantity FROM products WHERE id = %s FOR UPDATE",
                (data.product_id,)
            )
            if product is None:
                raise NotFoundError("product", data.product_id)
            if not product["is_active"]:
                raise InvalidBookingError(f"Product {data.product_id} is not for sale")
            if product["stock_quantity"] < data.quantity:
                raise InvalidBookingError(
                    f"Only {product['stock_quantity']} units of product {data.product_id} in stock"
                )

            tx.execute(
                "UPDATE products SET stock_quantity = stock_quantity - %s, updated_at = %s WHERE id = %s",
                (data.quantity, now_utc(), data.product_id)
            )

            row = tx.execute_returning(
                """
                INSERT INTO product_sales (
                    id, barber_id, product_id, client_id, client_name, quantity,
                    unit_price, date, validated_by_admin, validated_at, payment_id, created_at
                ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, false, NULL, NULL, %s)
                RETURNING *
                """,
                (
                    uuid4(), data.barber_id, data.product_id, data.client_id, data.client_name,
                    data.quantity, data.unit_price, data.date, now_utc()
                )
            )[0]

            sale = ProductSale.model_validate(row)

            self.audit.log_change(
                entity_type="product_sale",
                entity_id=sale.id,
                action=AuditAction.CREATE,
                changes={"created": sale.model_dump(mode="json")},
                user_id=actor.user_id,
                tx=tx
            )

        return sale

    def get(self, sale_id: UUID) -> ProductSale | None:
        """Get a product sale by ID, or None."""
        row = self.postgres.execute_single(
            "SELECT * FROM product_sales WHERE id = %s",
            (sale_id,)
        )

        if row is None:
            return None

        return ProductSale.model_validate(row)

    def validate(self, sale_id: UUID, actor: Actor) -> ProductSale:
        """
        Approve a product sale for settlement. Admin only.

        Raises:
            UnauthorizedError: If actor is not an admin
            NotFoundError: If sale does not exist
            AlreadyValidatedError: If sale was already validated
        """
        require_admin(actor, "validate product sales")

        with self.postgres.transaction() as tx:
            row = tx.execute_single(
                """
                UPDATE product_sales
                SET validated_by_admin = true, validated_at = %s
                WHERE id = %s AND validated_by_admin = false
                RETURNING *
                """,
                (now_utc(), sale_id)
            )

            if row is None:
                if tx.execute_single("SELECT id FROM product_sales WHERE id = %s", (sale_id,)) is None:
                    raise NotFoundError("product sale", sale_id)
                raise AlreadyValidatedError("product sale", sale_id)

            sale = ProductSale.model_validate(row)

            self.audit.log_change(
                entity_type="product_sale",
                entity_id=sale_id,
                action=AuditAction.UPDATE,
                changes={"validated_by_admin": {"old": False, "new": True}},
                user_id=actor.user_id,
                tx=tx
            )

        self.event_bus.publish(ServiceValidated.create(record=sale, record_type="product_sale"))
        return sale

    def list_pending_validation(self, barber_id: UUID | None = None) -> list[ProductSale]:
        """Unvalidated sales, oldest first."""
        if barber_id is None:
            rows = self.postgres.execute(
                "SELECT * FROM product_sales WHERE validated_by_admin = false ORDER BY date ASC"
            )
        else:
            rows = self.postgres.execute(
                """
                SELECT * FROM product_sales
                WHERE barber_id = %s AND validated_by_admin = false
                ORDER BY date ASC
                """,
                (barber_id,)
            )

        return [ProductSale.model_validate(row) for row in rows]

    def list_for_barber(self, barber_id: UUID) -> list[ProductSale]:
        """A barber's sales, newest first."""
        rows = self.postgres.execute(
            "SELECT * FROM product_sales WHERE barber_id = %s ORDER BY date DESC",
            (barber_id,)
        )

        return [ProductSale.model_validate(row) for row in rows]

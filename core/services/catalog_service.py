"""
Catalog service for what the shop sells and who sells it.

Manages services (name, price, duration), barber profiles, retail products
and per-barber commission rates. Catalog rows are deactivated, never
deleted, so completed services and payments keep their references.
"""

import logging
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel

from auth.invites import InviteManager
from clients.postgres_client import PostgresClient
from core.audit import AuditLogger, AuditAction, compute_changes
from core.errors import BarbershopError, NotFoundError
from core.models import (
    Actor,
    Barber, BarberCreate, BarberUpdate, CalendarVisibility,
    Commission, CommissionCreate,
    Product, ProductCreate,
    ProductCommission, ProductCommissionCreate,
    Service, ServiceCreate, ServiceUpdate,
)
from core.permissions import require_admin
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

_SERVICE_COLUMNS = {"name", "description", "price", "duration_minutes", "is_active"}

_BARBER_COLUMNS = {
    "display_name", "nif", "iban", "payment_period",
    "is_active", "calendar_visibility", "visible_barber_ids",
}


def _enum_values(updates: dict[str, Any]) -> dict[str, Any]:
    return {k: v.value if hasattr(v, "value") else v for k, v in updates.items()}


class CatalogService:
    """Service for catalog operations."""

    def __init__(
        self,
        postgres: PostgresClient,
        audit: AuditLogger,
        invites: InviteManager | None = None
    ):
        self.postgres = postgres
        self.audit = audit
        self.invites = invites

    def _update(
        self,
        table: str,
        entity_id: UUID,
        data: BaseModel,
        allowed: set[str],
    ) -> dict[str, Any] | None:
        """
        Apply the set fields of data to one row.

        Returns the updated row, or None when nothing changed.
        """
        updates = data.model_dump(exclude_none=True)
        for field in updates:
            if field not in allowed:
                logger.warning(
                    f"Attempted to update unknown field '{field}' on {table} {entity_id}"
                )

        valid_updates = _enum_values({k: v for k, v in updates.items() if k in allowed})
        if not valid_updates:
            return None

        set_parts = []
        params = []
        for field, value in valid_updates.items():
            if field == "visible_barber_ids":
                set_parts.append(f"{field} = %s::uuid[]")
            else:
                set_parts.append(f"{field} = %s")
            params.append(value)

        set_parts.append("updated_at = %s")
        params.append(now_utc())
        params.append(entity_id)

        row = self.postgres.execute_returning(
            f"""
            UPDATE {table}
            SET {', '.join(set_parts)}
            WHERE id = %s
            RETURNING *
            """,
            tuple(params)
        )[0]

        return row

    def _log_update(
        self, entity_type: str, entity_id: UUID, old: BaseModel, new: BaseModel, actor: Actor
    ) -> None:
        changes = compute_changes(old.model_dump(mode="json"), new.model_dump(mode="json"))
        if changes:
            self.audit.log_change(
                entity_type=entity_type,
                entity_id=entity_id,
                action=AuditAction.UPDATE,
                changes=changes,
                user_id=actor.user_id
            )

    # =========================================================================
    # SERVICES
    # =========================================================================

    def create_service(self, data: ServiceCreate, actor: Actor) -> Service:
        """
        Add a service to the catalog. Admin only.

        Args:
            data: Service creation data
            actor: Caller

        Returns:
            Created service
        """
        require_admin(actor, "manage services")
        now = now_utc()

        row = self.postgres.execute_returning(
            """
            INSERT INTO services (
                id, name, description, price, duration_minutes,
                is_active, created_at, updated_at
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING *
            """,
            (
                uuid4(), data.name, data.description, data.price, data.duration_minutes,
                data.is_active, now, now
            )
        )[0]

        service = Service.model_validate(row)

        self.audit.log_change(
            entity_type="service",
            entity_id=service.id,
            action=AuditAction.CREATE,
            changes={"created": data.model_dump(mode="json", exclude_none=True)},
            user_id=actor.user_id
        )

        return service

    def get_service(self, service_id: UUID) -> Service | None:
        """Get service by ID, or None."""
        row = self.postgres.execute_single(
            "SELECT * FROM services WHERE id = %s",
            (service_id,)
        )

        if row is None:
            return None

        return Service.model_validate(row)

    def list_services(self, include_inactive: bool = False) -> list[Service]:
        """List services ordered by name. Inactive ones only on request."""
        if include_inactive:
            rows = self.postgres.execute("SELECT * FROM services ORDER BY name ASC")
        else:
            rows = self.postgres.execute(
                "SELECT * FROM services WHERE is_active = true ORDER BY name ASC"
            )

        return [Service.model_validate(row) for row in rows]

    def update_service(self, service_id: UUID, data: ServiceUpdate, actor: Actor) -> Service:
        """
        Update service fields. Admin only.

        A new price only affects services completed afterwards.

        Raises:
            NotFoundError: If service not found
        """
        require_admin(actor, "manage services")

        current = self.get_service(service_id)
        if current is None:
            raise NotFoundError("service", service_id)

        row = self._update("services", service_id, data, _SERVICE_COLUMNS)
        if row is None:
            return current

        updated = Service.model_validate(row)
        self._log_update("service", service_id, current, updated, actor)
        return updated

    # =========================================================================
    # BARBERS
    # =========================================================================

    def create_barber(self, data: BarberCreate, actor: Actor) -> Barber:
        """
        Create a barber profile. Admin only.

        The profile has no identity until an invite is redeemed through
        onboard_barber().
        """
        require_admin(actor, "manage barbers")
        now = now_utc()

        row = self.postgres.execute_returning(
            """
            INSERT INTO barbers (
                id, user_id, display_name, nif, iban, payment_period, is_active,
                calendar_visibility, visible_barber_ids, created_at, updated_at
            ) VALUES (%s, NULL, %s, %s, %s, %s, true, %s, %s::uuid[], %s, %s)
            RETURNING *
            """,
            (
                uuid4(), data.display_name, data.nif, data.iban, data.payment_period.value,
                data.calendar_visibility.value, data.visible_barber_ids, now, now
            )
        )[0]

        barber = Barber.model_validate(row)

        self.audit.log_change(
            entity_type="barber",
            entity_id=barber.id,
            action=AuditAction.CREATE,
            changes={"created": data.model_dump(mode="json")},
            user_id=actor.user_id
        )

        return barber

    def get_barber(self, barber_id: UUID) -> Barber | None:
        """Get barber by ID, or None."""
        row = self.postgres.execute_single(
            "SELECT * FROM barbers WHERE id = %s",
            (barber_id,)
        )

        if row is None:
            return None

        return Barber.model_validate(row)

    def get_barber_by_user(self, user_id: UUID) -> Barber | None:
        """Get the barber profile linked to an identity, or None."""
        row = self.postgres.execute_single(
            "SELECT * FROM barbers WHERE user_id = %s",
            (user_id,)
        )

        if row is None:
            return None

        return Barber.model_validate(row)

    def list_barbers(self, include_inactive: bool = False) -> list[Barber]:
        """List barbers ordered by display name."""
        if include_inactive:
            rows = self.postgres.execute("SELECT * FROM barbers ORDER BY display_name ASC")
        else:
            rows = self.postgres.execute(
                "SELECT * FROM barbers WHERE is_active = true ORDER BY display_name ASC"
            )

        return [Barber.model_validate(row) for row in rows]

    def update_barber(self, barber_id: UUID, data: BarberUpdate, actor: Actor) -> Barber:
        """
        Update barber fields. Admin only.

        Deactivating a barber removes them from booking but keeps history.

        Raises:
            NotFoundError: If barber not found
        """
        require_admin(actor, "manage barbers")

        current = self.get_barber(barber_id)
        if current is None:
            raise NotFoundError("barber", barber_id)

        row = self._update("barbers", barber_id, data, _BARBER_COLUMNS)
        if row is None:
            return current

        updated = Barber.model_validate(row)
        self._log_update("barber", barber_id, current, updated, actor)
        return updated

    def visible_barber_ids(self, barber_id: UUID) -> list[UUID]:
        """
        Barbers whose appointments this barber may see in calendar views.

        Always includes the barber itself.

        Raises:
            NotFoundError: If barber not found
        """
        barber = self.get_barber(barber_id)
        if barber is None:
            raise NotFoundError("barber", barber_id)

        if barber.calendar_visibility == CalendarVisibility.ALL:
            return [b.id for b in self.list_barbers(include_inactive=True)]

        if barber.calendar_visibility == CalendarVisibility.SELECTED:
            others = [b for b in barber.visible_barber_ids if b != barber.id]
            return [barber.id] + others

        return [barber.id]

    # =========================================================================
    # INVITES
    # =========================================================================

    def invite_barber(self, barber_id: UUID, actor: Actor) -> str:
        """
        Issue an invite token for an existing barber profile. Admin only.

        Delivery of the token (email, link) happens outside this service.

        Raises:
            NotFoundError: If barber not found
            BarbershopError: If the profile is already linked
        """
        require_admin(actor, "invite barbers")

        barber = self.get_barber(barber_id)
        if barber is None:
            raise NotFoundError("barber", barber_id)
        if barber.user_id is not None:
            raise BarbershopError(f"Barber {barber_id} already has an account")

        token, expires_at = self.invites.issue(barber_id, actor.user_id)
        logger.info(f"Invite issued for barber {barber_id}, expires {expires_at.isoformat()}")
        return token

    def onboard_barber(self, token: str, user_id: UUID) -> Barber:
        """
        Redeem an invite: link a freshly provisioned identity to its profile.

        The token is consumed atomically, so it links at most one identity.

        Raises:
            InvalidTokenError: If the token is unknown, used or expired
            NotFoundError: If the invited profile no longer exists
        """
        barber_id = self.invites.consume(token)

        current = self.get_barber(barber_id)
        if current is None:
            raise NotFoundError("barber", barber_id)

        row = self.postgres.execute_returning(
            """
            UPDATE barbers
            SET user_id = %s, updated_at = %s
            WHERE id = %s
            RETURNING *
            """,
            (user_id, now_utc(), barber_id)
        )[0]

        linked = Barber.model_validate(row)

        self.audit.log_change(
            entity_type="barber",
            entity_id=barber_id,
            action=AuditAction.UPDATE,
            changes={"user_id": {"old": None, "new": str(user_id)}},
            user_id=user_id
        )

        return linked

    # =========================================================================
    # PRODUCTS
    # =========================================================================

    def create_product(self, data: ProductCreate, actor: Actor) -> Product:
        """Add a retail product. Admin only."""
        require_admin(actor, "manage products")
        now = now_utc()

        row = self.postgres.execute_returning(
            """
            INSERT INTO products (
                id, name, description, price, cost_price, category, sku,
                stock_quantity, is_active, created_at, updated_at
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING *
            """,
            (
                uuid4(), data.name, data.description, data.price, data.cost_price,
                data.category.value, data.sku, data.stock_quantity, data.is_active, now, now
            )
        )[0]

        product = Product.model_validate(row)

        self.audit.log_change(
            entity_type="product",
            entity_id=product.id,
            action=AuditAction.CREATE,
            changes={"created": data.model_dump(mode="json", exclude_none=True)},
            user_id=actor.user_id
        )

        return product

    def get_product(self, product_id: UUID) -> Product | None:
        """Get product by ID, or None."""
        row = self.postgres.execute_single(
            "SELECT * FROM products WHERE id = %s",
            (product_id,)
        )

        if row is None:
            return None

        return Product.model_validate(row)

    def list_products(self, include_inactive: bool = False) -> list[Product]:
        """List products ordered by name."""
        if include_inactive:
            rows = self.postgres.execute("SELECT * FROM products ORDER BY name ASC")
        else:
            rows = self.postgres.execute(
                "SELECT * FROM products WHERE is_active = true ORDER BY name ASC"
            )

        return [Product.model_validate(row) for row in rows]

    # =========================================================================
    # COMMISSIONS
    # =========================================================================

    def set_commission(self, data: CommissionCreate, actor: Actor) -> Commission:
        """
        Set a barber's rate for a service, replacing any existing rate.

        Admin only. One row per (barber, service) pair.

        Raises:
            NotFoundError: If barber or service not found
        """
        require_admin(actor, "manage commissions")

        if self.get_barber(data.barber_id) is None:
            raise NotFoundError("barber", data.barber_id)
        if self.get_service(data.service_id) is None:
            raise NotFoundError("service", data.service_id)

        now = now_utc()
        row = self.postgres.execute_returning(
            """
            INSERT INTO commissions (id, barber_id, service_id, percentage, created_at, updated_at)
            VALUES (%s, %s, %s, %s, %s, %s)
            ON CONFLICT (barber_id, service_id)
            DO UPDATE SET percentage = EXCLUDED.percentage, updated_at = EXCLUDED.updated_at
            RETURNING *
            """,
            (uuid4(), data.barber_id, data.service_id, data.percentage, now, now)
        )[0]

        commission = Commission.model_validate(row)

        self.audit.log_change(
            entity_type="commission",
            entity_id=commission.id,
            action=AuditAction.UPDATE,
            changes={"percentage": {"old": None, "new": str(commission.percentage)}},
            user_id=actor.user_id
        )

        return commission

    def list_commissions(self, barber_id: UUID) -> list[Commission]:
        """Explicit service rates for a barber."""
        rows = self.postgres.execute(
            "SELECT * FROM commissions WHERE barber_id = %s ORDER BY created_at ASC",
            (barber_id,)
        )
        return [Commission.model_validate(row) for row in rows]

    def set_product_commission(self, data: ProductCommissionCreate, actor: Actor) -> ProductCommission:
        """
        Set a barber's rate for a product, replacing any existing rate.

        Raises:
            NotFoundError: If barber or product not found
        """
        require_admin(actor, "manage commissions")

        if self.get_barber(data.barber_id) is None:
            raise NotFoundError("barber", data.barber_id)
        if self.get_product(data.product_id) is None:
            raise NotFoundError("product", data.product_id)

        now = now_utc()
        row = self.postgres.execute_returning(
            """
            INSERT INTO product_commissions (id, barber_id, product_id, percentage, created_at, updated_at)
            VALUES (%s, %s, %s, %s, %s, %s)
            ON CONFLICT (barber_id, product_id)
            DO UPDATE SET percentage = EXCLUDED.percentage, updated_at = EXCLUDED.updated_at
            RETURNING *
            """,
            (uuid4(), data.barber_id, data.product_id, data.percentage, now, now)
        )[0]

        commission = ProductCommission.model_validate(row)

        self.audit.log_change(
            entity_type="product_commission",
            entity_id=commission.id,
            action=AuditAction.UPDATE,
            changes={"percentage": {"old": None, "new": str(commission.percentage)}},
            user_id=actor.user_id
        )

        return commission

"""
Audit trail for every barbershop entity change.

Every mutation to every entity is logged here. The audit log is:
- Append-only (entries never modified or deleted)
- Actor-attributed (who made the change)
- Detailed (captures old and new values)

Writes made inside a transaction pass the Transaction through `tx` so the
audit entry commits or rolls back together with the change it describes.
"""

from enum import Enum
from uuid import UUID, uuid4
from typing import Any

from psycopg2.extras import Json

from clients.postgres_client import PostgresClient, Transaction
from utils.user_context import get_current_user_id
from utils.timezone import now_utc


class AuditAction(Enum):
    """Type of change made to an entity."""

    CREATE = "create"
    UPDATE = "update"


def compute_changes(
    old: dict[str, Any],
    new: dict[str, Any],
    exclude_fields: set[str] | None = None
) -> dict[str, dict[str, Any]]:
    """
    Compute changes between two entity states.

    Args:
        old: Previous state of entity
        new: New state of entity
        exclude_fields: Fields to ignore (defaults to {"updated_at"})

    Returns:
        Dict of {field: {"old": old_val, "new": new_val}} for changed fields.
        Empty dict if no changes.
    """
    exclude = exclude_fields or {"updated_at"}
    changes = {}

    for key in set(old.keys()) | set(new.keys()):
        if key in exclude:
            continue

        old_val = old.get(key)
        new_val = new.get(key)

        if old_val != new_val:
            changes[key] = {"old": old_val, "new": new_val}

    return changes


class AuditLogger:
    """
    Append-only change log.

    IMPORTANT: Always use model_dump(mode="json") when passing Pydantic models
    so UUIDs, Decimals and datetimes serialize to JSON-compatible values.

    Usage:
        audit = AuditLogger(postgres)

        audit.log_change(
            entity_type="appointment",
            entity_id=appointment.id,
            action=AuditAction.CREATE,
            changes={"created": appointment.model_dump(mode="json")}
        )

        with postgres.transaction() as tx:
            ...
            audit.log_change(
                entity_type="payment",
                entity_id=payment.id,
                action=AuditAction.UPDATE,
                changes={"status": {"old": "pending", "new": "paid"}},
                tx=tx
            )

        history = audit.get_entity_history("appointment", appointment.id)
    """

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def log_change(
        self,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        changes: dict[str, Any],
        user_id: UUID | None = None,
        tx: Transaction | None = None
    ) -> None:
        """
        Log an entity change.

        Args:
            entity_type: Type of entity ("appointment", "payment", etc.)
            entity_id: ID of the entity
            action: The action performed (CREATE, UPDATE)
            changes: The changes made (format depends on action)
            user_id: Actor who made change (defaults to current context)
            tx: Open transaction to write through, if any

        Changes format by action:
        - CREATE: {"created": {full entity data}}
        - UPDATE: {"field": {"old": old_val, "new": new_val}, ...}
        """
        if user_id is None:
            user_id = get_current_user_id()

        executor = tx if tx is not None else self.postgres
        executor.execute(
            """
            INSERT INTO audit_log (id, user_id, entity_type, entity_id, action, changes, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            """,
            (
                uuid4(),
                user_id,
                entity_type,
                entity_id,
                action.value,
                Json(changes),
                now_utc()
            )
        )

    def get_entity_history(
        self,
        entity_type: str,
        entity_id: UUID
    ) -> list[dict[str, Any]]:
        """
        Get full audit history for an entity, newest first.
        """
        return self.postgres.execute(
            """
            SELECT id, user_id, entity_type, entity_id, action, changes, created_at
            FROM audit_log
            WHERE entity_type = %s AND entity_id = %s
            ORDER BY created_at DESC
            """,
            (entity_type, entity_id)
        )

    def get_user_activity(
        self,
        user_id: UUID | None = None,
        limit: int = 100
    ) -> list[dict[str, Any]]:
        """
        Get recent activity by user, newest first.

        Args:
            user_id: User to get activity for (defaults to current context)
            limit: Maximum entries to return
        """
        if user_id is None:
            user_id = get_current_user_id()

        return self.postgres.execute(
            """
            SELECT id, user_id, entity_type, entity_id, action, changes, created_at
            FROM audit_log
            WHERE user_id = %s
            ORDER BY created_at DESC
            LIMIT %s
            """,
            (user_id, limit)
        )

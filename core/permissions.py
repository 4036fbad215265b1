"""Role checks shared by core services."""

from uuid import UUID

from core.errors import UnauthorizedError
from core.models.actor import Actor


def require_admin(actor: Actor, operation: str) -> None:
    """Raise UnauthorizedError unless actor is an admin."""
    if not actor.is_admin:
        raise UnauthorizedError(f"Only administrators may {operation}")


def require_staff_for(actor: Actor, barber_id: UUID, operation: str) -> None:
    """Raise UnauthorizedError unless actor is an admin or the barber itself."""
    if actor.is_admin or actor.owns_barber(barber_id):
        return
    raise UnauthorizedError(f"Only the assigned barber or an administrator may {operation}")

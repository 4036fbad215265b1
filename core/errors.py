"""Typed errors for core barbershop operations.

Every error is an expected, recoverable per-request outcome. The API layer
maps each `code` to an HTTP status; nothing here is fatal to the process.
"""

from uuid import UUID


class BarbershopError(Exception):
    """Base class for core operation failures."""

    code = "INVALID_REQUEST"


class NotFoundError(BarbershopError):
    """Referenced entity does not exist."""

    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: UUID):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity.capitalize()} {entity_id} not found")


class InvalidTransitionError(BarbershopError):
    """Requested status change is not allowed from the current status."""

    code = "INVALID_STATUS_TRANSITION"

    def __init__(self, entity: str, entity_id: UUID, current: str | None, target: str):
        self.entity = entity
        self.entity_id = entity_id
        self.current = current
        self.target = target
        super().__init__(
            f"{entity.capitalize()} {entity_id} cannot move from '{current}' to '{target}'"
        )


class AlreadyValidatedError(BarbershopError):
    """Record was already validated by an admin."""

    code = "ALREADY_VALIDATED"

    def __init__(self, entity: str, entity_id: UUID):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity.capitalize()} {entity_id} is already validated")


class UnauthorizedError(BarbershopError):
    """Actor lacks the role or ownership required for the operation."""

    code = "AUTHORIZATION_DENIED"


class InvalidPeriodError(BarbershopError):
    """Settlement period is empty, inverted, or overlaps a prior settlement."""

    code = "INVALID_PERIOD"


class SlotUnavailableError(BarbershopError):
    """Requested booking time overlaps an existing appointment."""

    code = "SLOT_UNAVAILABLE"


class InvalidBookingError(BarbershopError):
    """Draft booking failed validation at submission."""

    code = "INVALID_BOOKING"

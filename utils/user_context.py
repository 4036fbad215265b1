"""Propagate the authenticated actor through the call stack using contextvars."""

from contextvars import ContextVar
from uuid import UUID
from contextlib import contextmanager

from core.models.actor import Actor

_current_actor: ContextVar[Actor | None] = ContextVar("current_actor", default=None)


def get_current_actor() -> Actor:
    """
    Get the current actor from context.

    Raises RuntimeError if no actor context is set.
    This is fail-fast behavior - if you're in a code path that
    requires an actor and it's not set, that's a bug.
    """
    actor = _current_actor.get()
    if actor is None:
        raise RuntimeError(
            "No actor context set. This usually means you're calling "
            "actor-scoped code outside of an authenticated request."
        )
    return actor


def get_current_user_id() -> UUID:
    """User ID of the current actor. Raises RuntimeError without context."""
    return get_current_actor().user_id


def set_current_actor(actor: Actor) -> None:
    """
    Set current actor in context.

    Called by auth middleware after validating session.
    """
    _current_actor.set(actor)


def clear_current_actor() -> None:
    """
    Clear actor context.

    Called by auth middleware after request completes.
    Must be called in finally block to prevent context leakage.
    """
    _current_actor.set(None)


@contextmanager
def actor_context(actor: Actor):
    """
    Context manager for temporarily setting the actor.

    Useful for:
    - Tests
    - Operator scripts (e.g. periodic settlement run as an admin)

    Example:
        with actor_context(admin):
            payment = settlement_service.settle(barber_id, start, end, admin)
    """
    previous = _current_actor.get()
    set_current_actor(actor)
    try:
        yield actor
    finally:
        if previous is None:
            clear_current_actor()
        else:
            set_current_actor(previous)

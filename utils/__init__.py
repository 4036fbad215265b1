"""Utility modules for cross-cutting concerns."""

from utils.timezone import now_utc, to_utc, to_local, parse_iso, local_day_bounds
from utils.user_context import (
    get_current_actor,
    get_current_user_id,
    set_current_actor,
    clear_current_actor,
    actor_context,
)

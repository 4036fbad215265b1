"""Shared test fixtures for the barbershop test suite."""

from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from unittest.mock import Mock
from uuid import UUID, uuid4

import pytest
from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
load_dotenv(Path(__file__).parent.parent / ".env", override=True)

# Reset vault client singleton to pick up env vars
import clients.vault_client as vault_module
vault_module._vault_client_instance = None
vault_module._secret_cache.clear()

from core.event_bus import EventBus
from core.models import Actor, Role
from utils.user_context import actor_context, clear_current_actor


# =============================================================================
# ACTOR CONSTANTS
# =============================================================================

ADMIN_USER_ID = UUID("00000000-0000-0000-0000-000000000001")
BARBER_USER_ID = UUID("00000000-0000-0000-0000-000000000002")
OTHER_BARBER_USER_ID = UUID("00000000-0000-0000-0000-000000000003")
CLIENT_USER_ID = UUID("00000000-0000-0000-0000-000000000004")

BARBER_ID = UUID("10000000-0000-0000-0000-000000000001")
OTHER_BARBER_ID = UUID("10000000-0000-0000-0000-000000000002")
SERVICE_ID = UUID("20000000-0000-0000-0000-000000000001")
PRODUCT_ID = UUID("30000000-0000-0000-0000-000000000001")

CREATED_AT = datetime(2024, 1, 1, tzinfo=timezone.utc)


# =============================================================================
# ACTOR FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def reset_actor_context():
    """Ensure clean actor context before and after each test."""
    clear_current_actor()
    yield
    clear_current_actor()


@pytest.fixture
def admin() -> Actor:
    return Actor(user_id=ADMIN_USER_ID, role=Role.ADMIN, full_name="Admin")


@pytest.fixture
def barber() -> Actor:
    return Actor(user_id=BARBER_USER_ID, role=Role.BARBER, barber_id=BARBER_ID, full_name="Rui")


@pytest.fixture
def other_barber() -> Actor:
    return Actor(
        user_id=OTHER_BARBER_USER_ID, role=Role.BARBER, barber_id=OTHER_BARBER_ID, full_name="Tiago"
    )


@pytest.fixture
def client_actor() -> Actor:
    return Actor(user_id=CLIENT_USER_ID, role=Role.CLIENT, full_name="Ana")


@pytest.fixture
def as_admin(admin):
    """Run the test with the admin as current actor."""
    with actor_context(admin):
        yield admin


# =============================================================================
# SCRIPTED DATABASE
# =============================================================================


def _normalize(sql: str) -> str:
    return " ".join(sql.split())


class ScriptedPostgres:
    """
    In-memory stand-in for PostgresClient that replays scripted results.

    Routes map a SQL fragment to a sequence of results. Each matching query
    consumes the next result; the last one repeats. A result is a list of
    row dicts, a single row dict, or None for no rows. Unrouted queries
    return no rows. transaction() yields the client itself and counts
    commits and rollbacks.
    """

    def __init__(self):
        self._routes: list[tuple[str, list]] = []
        self.calls: list[tuple[str, tuple | dict | None]] = []
        self.commits = 0
        self.rollbacks = 0

    def on(self, fragment: str, *results) -> "ScriptedPostgres":
        self._routes.append((_normalize(fragment), list(results)))
        return self

    def _rows(self, query: str, params) -> list[dict]:
        sql = _normalize(query)
        self.calls.append((sql, params))
        for fragment, results in self._routes:
            if fragment in sql:
                result = results.pop(0) if len(results) > 1 else results[0]
                if result is None:
                    return []
                if isinstance(result, dict):
                    return [dict(result)]
                return [dict(row) for row in result]
        return []

    def queries(self, fragment: str) -> list[tuple[str, tuple | dict | None]]:
        """Recorded calls whose SQL contains fragment."""
        fragment = _normalize(fragment)
        return [call for call in self.calls if fragment in call[0]]

    def execute(self, query, params=None):
        return self._rows(query, params)

    def execute_single(self, query, params=None):
        rows = self._rows(query, params)
        return rows[0] if rows else None

    def execute_returning(self, query, params=None):
        return self._rows(query, params)

    def execute_scalar(self, query, params=None):
        rows = self._rows(query, params)
        return next(iter(rows[0].values())) if rows else None

    @contextmanager
    def transaction(self):
        try:
            yield self
            self.commits += 1
        except Exception:
            self.rollbacks += 1
            raise


@pytest.fixture
def db() -> ScriptedPostgres:
    return ScriptedPostgres()


@pytest.fixture
def event_bus():
    return Mock(spec=EventBus)


@pytest.fixture
def audit():
    from core.audit import AuditLogger
    return Mock(spec=AuditLogger)


# =============================================================================
# ROW FACTORIES
# =============================================================================


@pytest.fixture
def service_row():
    def make(**overrides) -> dict:
        row = {
            "id": SERVICE_ID,
            "name": "Haircut",
            "description": None,
            "price": Decimal("25.00"),
            "duration_minutes": 30,
            "is_active": True,
            "created_at": CREATED_AT,
            "updated_at": CREATED_AT,
        }
        row.update(overrides)
        return row
    return make


@pytest.fixture
def barber_row():
    def make(**overrides) -> dict:
        row = {
            "id": BARBER_ID,
            "user_id": BARBER_USER_ID,
            "display_name": "Rui",
            "nif": "123456789",
            "iban": "PT50000201231234567890154",
            "payment_period": "monthly",
            "is_active": True,
            "calendar_visibility": "own",
            "visible_barber_ids": [],
            "created_at": CREATED_AT,
            "updated_at": CREATED_AT,
        }
        row.update(overrides)
        return row
    return make


@pytest.fixture
def appointment_row():
    def make(**overrides) -> dict:
        row = {
            "id": uuid4(),
            "client_id": CLIENT_USER_ID,
            "client_name": "Ana",
            "barber_id": BARBER_ID,
            "service_id": SERVICE_ID,
            "date": datetime(2030, 3, 10, 10, 0, tzinfo=timezone.utc),
            "duration_minutes": 30,
            "status": "pending",
            "notes": None,
            "created_at": CREATED_AT,
            "updated_at": CREATED_AT,
        }
        row.update(overrides)
        return row
    return make


@pytest.fixture
def completed_service_row():
    def make(**overrides) -> dict:
        row = {
            "id": uuid4(),
            "barber_id": BARBER_ID,
            "service_id": SERVICE_ID,
            "client_id": CLIENT_USER_ID,
            "client_name": "Ana",
            "price": Decimal("25.00"),
            "date": datetime(2024, 3, 10, 10, 0, tzinfo=timezone.utc),
            "appointment_id": None,
            "validated_by_admin": False,
            "validated_at": None,
            "payment_id": None,
            "created_at": CREATED_AT,
        }
        row.update(overrides)
        return row
    return make


@pytest.fixture
def product_row():
    def make(**overrides) -> dict:
        row = {
            "id": PRODUCT_ID,
            "name": "Beard oil",
            "description": None,
            "price": Decimal("12.00"),
            "cost_price": Decimal("5.00"),
            "category": "beard",
            "sku": "BO-01",
            "stock_quantity": 10,
            "is_active": True,
            "created_at": CREATED_AT,
            "updated_at": CREATED_AT,
        }
        row.update(overrides)
        return row
    return make


@pytest.fixture
def product_sale_row():
    def make(**overrides) -> dict:
        row = {
            "id": uuid4(),
            "barber_id": BARBER_ID,
            "product_id": PRODUCT_ID,
            "client_id": None,
            "client_name": "Ana",
            "quantity": 1,
            "unit_price": Decimal("12.00"),
            "date": datetime(2024, 3, 12, 15, 0, tzinfo=timezone.utc),
            "validated_by_admin": False,
            "validated_at": None,
            "payment_id": None,
            "created_at": CREATED_AT,
        }
        row.update(overrides)
        return row
    return make


@pytest.fixture
def payment_row():
    def make(**overrides) -> dict:
        row = {
            "id": uuid4(),
            "barber_id": BARBER_ID,
            "amount": Decimal("0.00"),
            "period_start": datetime(2024, 3, 1).date(),
            "period_end": datetime(2024, 4, 1).date(),
            "status": "pending",
            "payment_date": None,
            "notes": None,
            "service_count": 0,
            "product_sale_count": 0,
            "carried_over_count": 0,
            "created_at": CREATED_AT,
        }
        row.update(overrides)
        return row
    return make


@pytest.fixture
def barber_id() -> UUID:
    return BARBER_ID


@pytest.fixture
def other_barber_id() -> UUID:
    return OTHER_BARBER_ID


@pytest.fixture
def service_id() -> UUID:
    return SERVICE_ID


@pytest.fixture
def product_id() -> UUID:
    return PRODUCT_ID

"""API test fixtures: authenticated TestClient over mocked core services."""

from datetime import timedelta
from unittest.mock import Mock

import pytest
from starlette.testclient import TestClient

from auth.session import SessionManager
from auth.types import Session
from core.models import Actor
from core.services.appointment_service import AppointmentService
from core.services.availability_service import AvailabilityService
from core.services.catalog_service import CatalogService
from core.services.commission_service import CommissionService
from core.services.product_sale_service import ProductSaleService
from core.services.service_record_service import ServiceRecordService
from core.services.settlement_service import SettlementService
from main import create_app
from utils.timezone import now_utc


SERVICE_CLASSES = {
    "catalog": CatalogService,
    "availability": AvailabilityService,
    "appointment": AppointmentService,
    "service_record": ServiceRecordService,
    "product_sale": ProductSaleService,
    "commission": CommissionService,
    "settlement": SettlementService,
}


# =============================================================================
# SERVICES
# =============================================================================


@pytest.fixture
def services():
    """Every core service as a spec'd mock, keyed as build_services() keys them."""
    return {name: Mock(spec=cls) for name, cls in SERVICE_CLASSES.items()}


# =============================================================================
# AUTH FIXTURES
# =============================================================================


def _session_for(actor: Actor) -> Session:
    now = now_utc()
    return Session(
        token="test-token",
        user_id=actor.user_id,
        role=actor.role,
        barber_id=actor.barber_id,
        full_name=actor.full_name,
        created_at=now,
        expires_at=now + timedelta(hours=24),
        last_activity_at=now,
    )


@pytest.fixture
def mock_session_manager(admin):
    """Session manager that authenticates every request as the admin."""
    mock = Mock(spec=SessionManager)
    mock.validate_session.return_value = _session_for(admin)
    return mock


@pytest.fixture
def login(mock_session_manager):
    """Switch the actor the session cookie resolves to."""
    def as_actor(actor: Actor) -> Actor:
        mock_session_manager.validate_session.return_value = _session_for(actor)
        return actor
    return as_actor


# =============================================================================
# APP & CLIENT FIXTURES
# =============================================================================


@pytest.fixture
def app(services, mock_session_manager):
    return create_app(services, mock_session_manager)


@pytest.fixture
def client(app):
    """Authenticated test client."""
    c = TestClient(app, raise_server_exceptions=False)
    c.cookies.set("session_token", "test-token")
    return c


@pytest.fixture
def unauthed_client(app):
    """Unauthenticated test client (no session cookie)."""
    return TestClient(app, raise_server_exceptions=False)

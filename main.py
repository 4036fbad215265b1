"""Application entry point: wires clients, services and routers into a FastAPI app."""

import logging

from fastapi import FastAPI, Request

from api.actions import create_actions_router
from api.base import request_id_of, success_response
from api.data import create_data_router
from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware
from auth.config import AuthConfig
from auth.invites import InviteManager
from auth.security_middleware import AuthMiddleware
from auth.session import SessionManager
from clients.postgres_client import PostgresClient
from clients.valkey_client import ValkeyClient
from clients.vault_client import get_database_url, get_valkey_url
from core.audit import AuditLogger
from core.config import ShopConfig
from core.event_bus import EventBus
from core.services.appointment_service import AppointmentService
from core.services.availability_service import AvailabilityService
from core.services.catalog_service import CatalogService
from core.services.commission_service import CommissionService
from core.services.product_sale_service import ProductSaleService
from core.services.service_record_service import ServiceRecordService
from core.services.settlement_service import SettlementService

logger = logging.getLogger(__name__)


def build_services(
    postgres: PostgresClient,
    invites: InviteManager,
    event_bus: EventBus,
    shop_config: ShopConfig
) -> dict:
    """Construct every core service around shared clients."""
    audit = AuditLogger(postgres)
    commissions = CommissionService(postgres, shop_config)

    return {
        "catalog": CatalogService(postgres, audit, invites),
        "availability": AvailabilityService(postgres, shop_config),
        "appointment": AppointmentService(postgres, audit, event_bus, shop_config),
        "service_record": ServiceRecordService(postgres, audit, event_bus),
        "product_sale": ProductSaleService(postgres, audit, event_bus),
        "commission": commissions,
        "settlement": SettlementService(postgres, audit, event_bus, commissions),
    }


def create_app(
    services: dict,
    session_manager: SessionManager,
) -> FastAPI:
    """FastAPI app with auth middleware, error handlers, and data/actions routes."""
    app = FastAPI(title="Barbershop")
    # Last added runs outermost, so 401s also carry a request id
    app.add_middleware(AuthMiddleware, session_manager=session_manager)
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    @app.get("/health")
    async def health(request: Request):
        return success_response({"status": "ok"}, request_id_of(request)).model_dump(mode="json")

    app.include_router(create_data_router(services), prefix="/api")
    app.include_router(create_actions_router(services), prefix="/api")

    return app


def build_app() -> FastAPI:
    """Production app: secrets from Vault, live Postgres and Valkey."""
    logging.basicConfig(level=logging.INFO)

    postgres = PostgresClient(get_database_url())
    valkey = ValkeyClient(get_valkey_url())
    auth_config = AuthConfig()

    services = build_services(
        postgres,
        InviteManager(valkey, auth_config),
        EventBus(),
        ShopConfig(),
    )
    app = create_app(services, SessionManager(valkey, auth_config))

    @app.on_event("shutdown")
    def close_clients():
        PostgresClient.close_all_pools()
        valkey.close()

    logger.info("Barbershop app ready")
    return app

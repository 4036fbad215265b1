"""POST /api/actions - unified mutation endpoint."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Request
from pydantic import BaseModel

from api.base import request_id_of, success_response
from core.models import (
    Actor,
    AppointmentStatus,
    BarberCreate, BarberUpdate,
    CommissionCreate,
    CompletedServiceCreate,
    DraftBooking,
    ProductCommissionCreate,
    ProductCreate,
    ProductSaleCreate,
    ServiceCreate, ServiceUpdate,
)
from utils.timezone import parse_iso


class ActionRequest(BaseModel):
    domain: str
    action: str
    data: dict


def create_actions_router(services: dict) -> APIRouter:
    router = APIRouter()

    handlers = {
        "appointment": AppointmentHandler(services["appointment"]),
        "service_record": ServiceRecordHandler(services["service_record"]),
        "product_sale": ProductSaleHandler(services["product_sale"]),
        "payment": PaymentHandler(services["settlement"]),
        "catalog": CatalogHandler(services["catalog"]),
    }

    @router.post("/actions")
    async def perform_action(request: Request, body: ActionRequest):
        handler = handlers.get(body.domain)
        if handler is None:
            raise ValueError(
                f"Unknown domain '{body.domain}'. "
                f"Valid domains: {', '.join(sorted(handlers.keys()))}"
            )

        if body.action not in handler.ALLOWED_ACTIONS:
            raise ValueError(
                f"Action '{body.action}' not allowed on '{body.domain}'. "
                f"Allowed: {', '.join(sorted(handler.ALLOWED_ACTIONS))}"
            )

        method = getattr(handler, f"_handle_{body.action}")
        result = method(body.data, request.state.actor)
        return success_response(result, request_id_of(request)).model_dump(mode="json")

    return router


# =============================================================================
# HANDLER CLASSES
# =============================================================================


class AppointmentHandler:
    ALLOWED_ACTIONS = {"book", "confirm", "complete", "cancel", "transition"}

    def __init__(self, service):
        self.service = service

    def _handle_book(self, data: dict, actor: Actor):
        draft = (
            DraftBooking()
            .with_service(UUID(data["service_id"]))
            .with_barber(UUID(data["barber_id"]))
            .at(parse_iso(data["date"]))
            .for_client(
                data.get("client_name") or actor.full_name or "",
                UUID(data["client_id"]) if data.get("client_id") else None,
            )
            .with_notes(data.get("notes"))
        )
        appointment = self.service.book(draft, actor)
        return appointment.model_dump(mode="json")

    def _handle_confirm(self, data: dict, actor: Actor):
        appointment = self.service.transition(UUID(data["id"]), AppointmentStatus.CONFIRMED, actor)
        return appointment.model_dump(mode="json")

    def _handle_complete(self, data: dict, actor: Actor):
        appointment = self.service.transition(UUID(data["id"]), AppointmentStatus.COMPLETED, actor)
        return appointment.model_dump(mode="json")

    def _handle_cancel(self, data: dict, actor: Actor):
        appointment = self.service.transition(UUID(data["id"]), AppointmentStatus.CANCELED, actor)
        return appointment.model_dump(mode="json")

    def _handle_transition(self, data: dict, actor: Actor):
        target = AppointmentStatus(data["status"])
        appointment = self.service.transition(UUID(data["id"]), target, actor)
        return appointment.model_dump(mode="json")


class ServiceRecordHandler:
    ALLOWED_ACTIONS = {"record", "validate"}

    def __init__(self, service):
        self.service = service

    def _handle_record(self, data: dict, actor: Actor):
        record = self.service.record_service(CompletedServiceCreate(**data), actor)
        return record.model_dump(mode="json")

    def _handle_validate(self, data: dict, actor: Actor):
        record = self.service.validate(UUID(data["id"]), actor)
        return record.model_dump(mode="json")


class ProductSaleHandler:
    ALLOWED_ACTIONS = {"record", "validate"}

    def __init__(self, service):
        self.service = service

    def _handle_record(self, data: dict, actor: Actor):
        sale = self.service.record_sale(ProductSaleCreate(**data), actor)
        return sale.model_dump(mode="json")

    def _handle_validate(self, data: dict, actor: Actor):
        sale = self.service.validate(UUID(data["id"]), actor)
        return sale.model_dump(mode="json")


class PaymentHandler:
    ALLOWED_ACTIONS = {"settle", "mark_paid"}

    def __init__(self, service):
        self.service = service

    def _handle_settle(self, data: dict, actor: Actor):
        payment = self.service.settle(
            UUID(data["barber_id"]),
            date.fromisoformat(data["period_start"]),
            date.fromisoformat(data["period_end"]),
            actor,
            allow_empty=data.get("allow_empty", True),
            notes=data.get("notes"),
        )
        return payment.model_dump(mode="json") if payment else None

    def _handle_mark_paid(self, data: dict, actor: Actor):
        payment = self.service.mark_paid(UUID(data["id"]), actor)
        return payment.model_dump(mode="json")


class CatalogHandler:
    ALLOWED_ACTIONS = {
        "create_service", "update_service",
        "create_barber", "update_barber", "invite_barber", "onboard_barber",
        "create_product",
        "set_commission", "set_product_commission",
    }

    def __init__(self, service):
        self.service = service

    def _handle_create_service(self, data: dict, actor: Actor):
        service = self.service.create_service(ServiceCreate(**data), actor)
        return service.model_dump(mode="json")

    def _handle_update_service(self, data: dict, actor: Actor):
        service_id = UUID(data.pop("id"))
        service = self.service.update_service(service_id, ServiceUpdate(**data), actor)
        return service.model_dump(mode="json")

    def _handle_create_barber(self, data: dict, actor: Actor):
        barber = self.service.create_barber(BarberCreate(**data), actor)
        return barber.model_dump(mode="json")

    def _handle_update_barber(self, data: dict, actor: Actor):
        barber_id = UUID(data.pop("id"))
        barber = self.service.update_barber(barber_id, BarberUpdate(**data), actor)
        return barber.model_dump(mode="json")

    def _handle_invite_barber(self, data: dict, actor: Actor):
        token = self.service.invite_barber(UUID(data["barber_id"]), actor)
        return {"token": token}

    def _handle_onboard_barber(self, data: dict, actor: Actor):
        barber = self.service.onboard_barber(data["token"], actor.user_id)
        return barber.model_dump(mode="json")

    def _handle_create_product(self, data: dict, actor: Actor):
        product = self.service.create_product(ProductCreate(**data), actor)
        return product.model_dump(mode="json")

    def _handle_set_commission(self, data: dict, actor: Actor):
        commission = self.service.set_commission(CommissionCreate(**data), actor)
        return commission.model_dump(mode="json")

    def _handle_set_product_commission(self, data: dict, actor: Actor):
        commission = self.service.set_product_commission(ProductCommissionCreate(**data), actor)
        return commission.model_dump(mode="json")

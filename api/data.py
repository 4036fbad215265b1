"""GET /api/data - unified read endpoint."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, Request

from api.base import request_id_of, success_response
from core.errors import NotFoundError, UnauthorizedError
from core.models import Actor, Role


VALID_TYPES = {
    "services", "barbers", "products", "commissions",
    "appointments", "completed_services", "product_sales", "payments",
}


def _dump_all(items) -> list[dict]:
    return [item.model_dump(mode="json") for item in items]


def _respond(request: Request, payload) -> dict:
    return success_response(payload, request_id_of(request)).model_dump(mode="json")


def _own_barber_only(actor: Actor, barber_id: UUID) -> None:
    """Barbers read their own records; admins read anyone's."""
    if actor.is_admin or actor.owns_barber(barber_id):
        return
    raise UnauthorizedError("Barbers may only view their own records")


def _staff_only(actor: Actor) -> None:
    if actor.role == Role.CLIENT:
        raise UnauthorizedError("Only staff may view commission records")


def create_data_router(services: dict) -> APIRouter:
    router = APIRouter()

    catalog_svc = services["catalog"]
    availability_svc = services["availability"]
    appointment_svc = services["appointment"]
    record_svc = services["service_record"]
    sale_svc = services["product_sale"]
    settlement_svc = services["settlement"]

    # -------------------------------------------------------------------------
    # Convenience routes (must be registered before the generic /data route)
    # -------------------------------------------------------------------------

    @router.get("/data/slots")
    async def available_slots(
        request: Request,
        barber_id: UUID = Query(...),
        day: date = Query(..., alias="date"),
        service_id: UUID | None = Query(None),
        duration: int | None = Query(None),
    ):
        if duration is None:
            if service_id is None:
                raise ValueError("'slots' requires 'service_id' or 'duration' parameter")
            service = catalog_svc.get_service(service_id)
            if service is None:
                raise NotFoundError("service", service_id)
            duration = service.duration_minutes

        slots = availability_svc.get_available_slots(barber_id, day, duration)
        return _respond(request, list(slots))

    @router.get("/data/payments/next_period")
    async def next_period(request: Request, barber_id: UUID = Query(...)):
        _own_barber_only(request.state.actor, barber_id)
        period = settlement_svc.next_period(barber_id)
        return _respond(request, period.model_dump(mode="json"))

    @router.get("/data/barbers/visible")
    async def visible_barbers(request: Request):
        actor = request.state.actor
        if actor.is_admin:
            ids = [b.id for b in catalog_svc.list_barbers(include_inactive=True)]
        elif actor.role == Role.BARBER:
            ids = catalog_svc.visible_barber_ids(actor.barber_id)
        else:
            raise UnauthorizedError("Only staff have a calendar")
        return _respond(request, [str(i) for i in ids])

    # -------------------------------------------------------------------------
    # Generic data endpoint
    # -------------------------------------------------------------------------

    def _resolve(actor, type, id, barber_id, day, filter, limit):
        if type is None:
            raise ValueError("'type' query parameter is required")

        if type not in VALID_TYPES:
            raise ValueError(f"Unknown type '{type}'. Valid types: {', '.join(sorted(VALID_TYPES))}")

        barber = UUID(barber_id) if barber_id else None

        if type == "services":
            return _handle_catalog(catalog_svc.get_service, catalog_svc.list_services, "service", id, filter)

        if type == "barbers":
            return _handle_catalog(catalog_svc.get_barber, catalog_svc.list_barbers, "barber", id, filter)

        if type == "products":
            return _handle_catalog(catalog_svc.get_product, catalog_svc.list_products, "product", id, filter)

        if type == "commissions":
            if barber is None:
                raise ValueError("'commissions' type requires 'barber_id' parameter")
            _own_barber_only(actor, barber)
            return _dump_all(catalog_svc.list_commissions(barber))

        if type == "appointments":
            return _handle_appointments(appointment_svc, catalog_svc, actor, id, barber, day, limit)

        if type == "completed_services":
            return _handle_records(record_svc, actor, id, barber, filter)

        if type == "product_sales":
            return _handle_sales(sale_svc, actor, barber, filter)

        if type == "payments":
            return _handle_payments(settlement_svc, actor, id, barber)

    @router.get("/data")
    async def get_data(
        request: Request,
        type: str | None = Query(None),
        id: str | None = Query(None),
        barber_id: str | None = Query(None),
        day: str | None = Query(None),
        filter: str | None = Query(None),
        limit: int = Query(50, ge=1, le=500),
    ):
        return _respond(request, _resolve(request.state.actor, type, id, barber_id, day, filter, limit))

    return router


def _handle_catalog(get_one, list_all, entity, id, filter):
    if id:
        item = get_one(UUID(id))
        if item is None:
            raise NotFoundError(entity, UUID(id))
        return item.model_dump(mode="json")

    items = list_all(include_inactive=(filter == "all"))
    return _dump_all(items)


def _handle_appointments(appointment_svc, catalog_svc, actor, id, barber, day, limit):
    if id:
        appointment = appointment_svc.get(UUID(id))
        if appointment is None:
            raise NotFoundError("appointment", UUID(id))
        if actor.role == Role.CLIENT and appointment.client_id != actor.user_id:
            raise UnauthorizedError("Clients may only view their own appointments")
        return appointment.model_dump(mode="json")

    if actor.role == Role.CLIENT:
        return _dump_all(appointment_svc.list_for_client(actor.user_id))

    if day:
        if barber is not None:
            if not actor.is_admin and barber not in catalog_svc.visible_barber_ids(actor.barber_id):
                raise UnauthorizedError("That calendar is not visible to you")
            barber_ids = [barber]
        elif actor.is_admin:
            barber_ids = [b.id for b in catalog_svc.list_barbers(include_inactive=True)]
        else:
            barber_ids = catalog_svc.visible_barber_ids(actor.barber_id)
        appointments = appointment_svc.list_for_barber_day(barber_ids, date.fromisoformat(day))
        return _dump_all(appointments)

    if barber is None and not actor.is_admin:
        barber = actor.barber_id
    if barber is not None:
        _own_barber_only(actor, barber)
    return _dump_all(appointment_svc.list_upcoming(barber, limit))


def _handle_records(record_svc, actor, id, barber, filter):
    _staff_only(actor)
    if id:
        record = record_svc.get(UUID(id))
        if record is None:
            raise NotFoundError("completed service", UUID(id))
        _own_barber_only(actor, record.barber_id)
        return record.model_dump(mode="json")

    if barber is None and not actor.is_admin:
        barber = actor.barber_id
    if barber is not None:
        _own_barber_only(actor, barber)

    if filter == "pending":
        records = record_svc.list_pending_validation(barber)
    elif filter == "unpaid":
        if barber is None:
            raise ValueError("'unpaid' filter requires 'barber_id' parameter")
        records = record_svc.list_validated_unpaid(barber)
    elif barber is not None:
        records = record_svc.list_for_barber(barber)
    else:
        raise ValueError("'completed_services' type requires 'barber_id' or 'filter' parameter")

    return _dump_all(records)


def _handle_sales(sale_svc, actor, barber, filter):
    _staff_only(actor)
    if barber is None and not actor.is_admin:
        barber = actor.barber_id
    if barber is not None:
        _own_barber_only(actor, barber)

    if filter == "pending":
        sales = sale_svc.list_pending_validation(barber)
    elif barber is not None:
        sales = sale_svc.list_for_barber(barber)
    else:
        raise ValueError("'product_sales' type requires 'barber_id' or 'filter' parameter")

    return _dump_all(sales)


def _handle_payments(settlement_svc, actor, id, barber):
    _staff_only(actor)
    if id:
        payment = settlement_svc.get(UUID(id))
        if payment is None:
            raise NotFoundError("payment", UUID(id))
        _own_barber_only(actor, payment.barber_id)
        return payment.model_dump(mode="json")

    if barber is None and not actor.is_admin:
        barber = actor.barber_id
    if barber is not None:
        _own_barber_only(actor, barber)
        return _dump_all(settlement_svc.list_for_barber(barber))

    return _dump_all(settlement_svc.list_pending())

"""Tests for core domain models - custom validators and the booking builder."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from pydantic import ValidationError

from core.errors import InvalidBookingError


class TestActor:
    """Tests for Actor validation and helpers."""

    def test_barber_requires_barber_id(self):
        from core.models import Actor, Role

        with pytest.raises(ValidationError, match="barber_id"):
            Actor(user_id=uuid4(), role=Role.BARBER)

    def test_admin_needs_no_barber_id(self):
        from core.models import Actor, Role

        actor = Actor(user_id=uuid4(), role=Role.ADMIN)
        assert actor.is_admin

    def test_owns_barber_only_for_own_profile(self):
        from core.models import Actor, Role

        barber_id = uuid4()
        actor = Actor(user_id=uuid4(), role=Role.BARBER, barber_id=barber_id)

        assert actor.owns_barber(barber_id)
        assert not actor.owns_barber(uuid4())

    def test_actor_is_immutable(self):
        from core.models import Actor, Role

        actor = Actor(user_id=uuid4(), role=Role.CLIENT)
        with pytest.raises(ValidationError):
            actor.role = Role.ADMIN


class TestAppointmentStatus:

    @pytest.mark.parametrize("status,terminal", [
        ("pending", False), ("confirmed", False), ("completed", True), ("canceled", True),
    ])
    def test_terminal_states(self, status, terminal):
        from core.models import AppointmentStatus

        assert AppointmentStatus(status).is_terminal is terminal

    def test_only_canceled_frees_the_slot(self):
        from core.models import AppointmentStatus

        holding = {s for s in AppointmentStatus if s.blocks_slot}
        assert AppointmentStatus.CANCELED not in holding
        assert len(holding) == 3


class TestDraftBooking:
    """Tests for the step-by-step booking builder."""

    def _when(self):
        return datetime(2030, 3, 12, 10, 0, tzinfo=timezone.utc)

    def test_build_collects_every_step(self):
        from core.models import DraftBooking

        service_id, barber_id, client_id = uuid4(), uuid4(), uuid4()
        request = (
            DraftBooking()
            .with_service(service_id)
            .with_barber(barber_id)
            .at(self._when())
            .for_client("Ana", client_id=client_id)
            .with_notes("fade on the sides")
            .build()
        )

        assert request.service_id == service_id
        assert request.barber_id == barber_id
        assert request.date == self._when()
        assert request.client_id == client_id
        assert request.notes == "fade on the sides"

    def test_missing_steps_are_named(self):
        from core.models import DraftBooking

        draft = DraftBooking().with_service(uuid4())

        assert draft.missing() == ["barber", "date", "client"]
        with pytest.raises(InvalidBookingError, match="barber, date, client"):
            draft.build()

    def test_rejects_naive_datetime(self):
        from core.models import DraftBooking

        with pytest.raises(InvalidBookingError, match="timezone-aware"):
            DraftBooking().at(datetime(2030, 3, 12, 10, 0))

    def test_blank_client_name_counts_as_missing(self):
        from core.models import DraftBooking

        draft = (
            DraftBooking()
            .with_service(uuid4())
            .with_barber(uuid4())
            .at(self._when())
            .for_client("   ")
        )

        assert draft.missing() == ["client"]

    def test_built_request_is_frozen(self):
        from core.models import DraftBooking

        request = (
            DraftBooking()
            .with_service(uuid4())
            .with_barber(uuid4())
            .at(self._when())
            .for_client("Ana")
            .build()
        )

        with pytest.raises(ValidationError):
            request.date = self._when() + timedelta(days=1)


class TestBarberCreate:

    def test_selected_ids_require_selected_visibility(self):
        from core.models import BarberCreate

        with pytest.raises(ValidationError, match="selected"):
            BarberCreate(
                display_name="Rui", nif="123456789", iban="PT50000201231234567890154",
                visible_barber_ids=[uuid4()],
            )

    def test_defaults_to_monthly_own_calendar(self):
        from core.models import BarberCreate, CalendarVisibility, PaymentPeriod

        barber = BarberCreate(display_name="Rui", nif="123456789", iban="PT50000201231234567890154")

        assert barber.payment_period == PaymentPeriod.MONTHLY
        assert barber.calendar_visibility == CalendarVisibility.OWN


class TestCommissionCreate:

    def test_percentage_bounded_to_hundred(self):
        from core.models import CommissionCreate

        with pytest.raises(ValidationError):
            CommissionCreate(barber_id=uuid4(), service_id=uuid4(), percentage=Decimal("100.01"))

    def test_accepts_zero(self):
        from core.models import CommissionCreate

        c = CommissionCreate(barber_id=uuid4(), service_id=uuid4(), percentage=Decimal("0"))
        assert c.percentage == Decimal("0")


class TestProductSale:

    def test_total_is_unit_price_times_quantity(self, product_sale_row):
        from core.models import ProductSale

        sale = ProductSale.model_validate(product_sale_row(quantity=3, unit_price=Decimal("7.50")))
        assert sale.total == Decimal("22.50")

    def test_quantity_must_be_positive(self):
        from core.models import ProductSaleCreate

        with pytest.raises(ValidationError):
            ProductSaleCreate(
                barber_id=uuid4(), product_id=uuid4(), client_name="Ana",
                quantity=0, unit_price=Decimal("5.00"),
                date=datetime(2024, 3, 1, tzinfo=timezone.utc),
            )


class TestShopConfig:

    def test_closing_must_follow_opening(self):
        from core.config import ShopConfig

        with pytest.raises(ValidationError, match="closing_hour"):
            ShopConfig(opening_hour=18, closing_hour=9)

    def test_defaults(self):
        from core.config import ShopConfig

        config = ShopConfig()
        assert (config.opening_hour, config.closing_hour) == (9, 18)
        assert config.slot_step_minutes == 30
        assert config.default_commission_percentage == Decimal("50")
        assert config.timezone == "Europe/Lisbon"

"""Tests for the commission settlement engine."""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from core.config import ShopConfig
from core.errors import (
    InvalidPeriodError,
    InvalidTransitionError,
    NotFoundError,
    UnauthorizedError,
)
from core.events import PaymentPaid, PaymentSettled
from core.models import PaymentPeriod
from core.services.commission_service import CommissionService
from core.services.settlement_service import (
    SettlementService,
    add_months,
    period_after,
    validate_period,
)

UTC = timezone.utc
MARCH = (date(2024, 3, 1), date(2024, 4, 1))

SERVICE_SELECT = "SELECT id, service_id, price, date FROM completed_services"
SALE_SELECT = "SELECT id, product_id, unit_price, quantity, date FROM product_sales"
IN_MARCH = datetime(2024, 3, 15, 12, 0, tzinfo=UTC)


@pytest.fixture
def settlement(db, audit, event_bus):
    return SettlementService(db, audit, event_bus, CommissionService(db, ShopConfig()))


@pytest.fixture
def settleable(db, barber_id):
    """Barber exists and has no prior payments."""
    db.on("SELECT id FROM barbers WHERE id = %s FOR UPDATE", {"id": barber_id})
    return db


def service_rows(*prices, service_id=None, when=IN_MARCH):
    return [
        {"id": uuid4(), "service_id": service_id or uuid4(), "price": Decimal(p), "date": when}
        for p in prices
    ]


def inserted_amount(db) -> Decimal:
    _, params = db.queries("INSERT INTO payments")[0]
    return params[2]


# =============================================================================
# PERIOD ARITHMETIC
# =============================================================================


class TestPeriodArithmetic:

    def test_add_months_clamps_to_month_end(self):
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
        assert add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)

    def test_add_months_rolls_year(self):
        assert add_months(date(2024, 12, 15), 1) == date(2025, 1, 15)
        assert add_months(date(2024, 11, 30), 3) == date(2025, 2, 28)

    @pytest.mark.parametrize("period,end", [
        (PaymentPeriod.WEEKLY, date(2024, 3, 8)),
        (PaymentPeriod.BIWEEKLY, date(2024, 3, 15)),
        (PaymentPeriod.MONTHLY, date(2024, 4, 1)),
    ])
    def test_period_after(self, period, end):
        assert period_after(date(2024, 3, 1), period) == end

    @pytest.mark.parametrize("start,end", [
        (date(2024, 3, 1), date(2024, 3, 1)),
        (date(2024, 3, 2), date(2024, 3, 1)),
    ])
    def test_empty_or_inverted_period_rejected(self, start, end):
        with pytest.raises(InvalidPeriodError):
            validate_period(start, end)


# =============================================================================
# SETTLE
# =============================================================================


class TestSettle:

    def test_default_rate_on_single_service(self, settleable, settlement, admin, barber_id, payment_row):
        db = settleable
        db.on(SERVICE_SELECT, service_rows("25.00"))
        db.on("INSERT INTO payments", payment_row(amount=Decimal("12.50"), service_count=1))

        payment = settlement.settle(barber_id, *MARCH, admin)

        assert inserted_amount(db) == Decimal("12.50")
        assert payment.amount == Decimal("12.50")
        assert db.commits == 1

    def test_claims_rows_with_payment_id(self, settleable, settlement, admin, barber_id, payment_row):
        db = settleable
        rows = service_rows("25.00", "30.00")
        sale_id = uuid4()
        db.on(SERVICE_SELECT, rows)
        db.on(SALE_SELECT, [{"id": sale_id, "product_id": uuid4(), "unit_price": Decimal("10.00"), "quantity": 2, "date": IN_MARCH}])
        payment = payment_row()
        db.on("INSERT INTO payments", payment)

        settlement.settle(barber_id, *MARCH, admin)

        _, service_claim = db.queries("UPDATE completed_services SET payment_id")[0]
        assert service_claim == (payment["id"], [r["id"] for r in rows])
        _, sale_claim = db.queries("UPDATE product_sales SET payment_id")[0]
        assert sale_claim == (payment["id"], [sale_id])

    def test_counts_recorded_on_payment(self, settleable, settlement, admin, barber_id, payment_row):
        db = settleable
        db.on(SERVICE_SELECT, service_rows("10.00", "10.00", "10.00"))
        db.on("INSERT INTO payments", payment_row())

        settlement.settle(barber_id, *MARCH, admin)

        _, params = db.queries("INSERT INTO payments")[0]
        assert params[7] == 3
        assert params[8] == 0
        assert params[9] == 0

    def test_rows_dated_before_period_counted_as_carried_over(
        self, settleable, settlement, admin, barber_id, payment_row
    ):
        db = settleable
        late = datetime(2024, 2, 20, 12, 0, tzinfo=UTC)
        # Just before Lisbon midnight of March 1st
        edge = datetime(2024, 2, 29, 23, 59, tzinfo=UTC)
        db.on(SERVICE_SELECT, service_rows("10.00", when=late) + service_rows("10.00", "10.00"))
        db.on(SALE_SELECT, [{"id": uuid4(), "product_id": uuid4(), "unit_price": Decimal("5.00"), "quantity": 1, "date": edge}])
        db.on("INSERT INTO payments", payment_row(carried_over_count=2))

        payment = settlement.settle(barber_id, *MARCH, admin)

        _, params = db.queries("INSERT INTO payments")[0]
        assert params[7] == 3
        assert params[8] == 1
        assert params[9] == 2
        assert payment.carried_over_count == 2

    def test_only_unclaimed_validated_rows_before_cutoff(self, settleable, settlement, admin, barber_id, payment_row):
        db = settleable
        db.on("INSERT INTO payments", payment_row())

        settlement.settle(barber_id, *MARCH, admin)

        sql, params = db.queries(SERVICE_SELECT)[0]
        assert "validated_by_admin = true" in sql
        assert "payment_id IS NULL" in sql
        assert "FOR UPDATE" in sql
        # Lisbon is already on summer time at midnight of April 1st
        assert params[1] == datetime(2024, 3, 31, 23, 0, tzinfo=UTC)

    def test_explicit_rates_override_default(self, settleable, settlement, admin, barber_id, payment_row):
        db = settleable
        special = uuid4()
        product = uuid4()
        db.on(SERVICE_SELECT, service_rows("40.00", service_id=special) + service_rows("20.00"))
        db.on(SALE_SELECT, [{"id": uuid4(), "product_id": product, "unit_price": Decimal("12.00"), "quantity": 3, "date": IN_MARCH}])
        db.on("FROM commissions WHERE barber_id", [{"service_id": special, "percentage": Decimal("60")}])
        db.on("FROM product_commissions WHERE barber_id", [{"product_id": product, "percentage": Decimal("10")}])
        db.on("INSERT INTO payments", payment_row())

        settlement.settle(barber_id, *MARCH, admin)

        # 40 * 60% + 20 * 50% + 36 * 10%
        assert inserted_amount(db) == Decimal("37.60")

    def test_total_is_rounded_once(self, settleable, settlement, admin, barber_id, payment_row):
        db = settleable
        db.on(SERVICE_SELECT, service_rows("0.01", "0.01", "0.01"))
        db.on("INSERT INTO payments", payment_row())

        settlement.settle(barber_id, *MARCH, admin)

        # 3 x 0.005 = 0.015 -> 0.02; rounding each cut first would give 0.03
        assert inserted_amount(db) == Decimal("0.02")

    def test_nothing_eligible_yields_zero_payment(self, settleable, settlement, admin, barber_id, payment_row):
        db = settleable
        db.on("INSERT INTO payments", payment_row())

        settlement.settle(barber_id, *MARCH, admin)

        assert inserted_amount(db) == Decimal("0.00")
        assert db.queries("SET payment_id") == []

    def test_nothing_eligible_without_allow_empty_returns_none(self, settleable, settlement, admin, barber_id):
        db = settleable

        assert settlement.settle(barber_id, *MARCH, admin, allow_empty=False) is None
        assert db.queries("INSERT INTO payments") == []
        settlement.event_bus.publish.assert_not_called()

    def test_publishes_settled_event(self, settleable, settlement, admin, barber_id, payment_row):
        db = settleable
        db.on("INSERT INTO payments", payment_row())

        payment = settlement.settle(barber_id, *MARCH, admin)

        event = settlement.event_bus.publish.call_args.args[0]
        assert isinstance(event, PaymentSettled)
        assert event.payment.id == payment.id

    def test_overlapping_period_rejected(self, settleable, settlement, admin, barber_id):
        db = settleable
        db.on("FROM payments WHERE barber_id", {
            "id": uuid4(), "period_start": date(2024, 2, 15), "period_end": date(2024, 3, 15),
        })

        with pytest.raises(InvalidPeriodError, match="overlaps"):
            settlement.settle(barber_id, *MARCH, admin)

        assert db.queries(SERVICE_SELECT) == []
        assert db.rollbacks == 1

    def test_inverted_period_rejected_before_database(self, db, settlement, admin, barber_id):
        with pytest.raises(InvalidPeriodError):
            settlement.settle(barber_id, date(2024, 4, 1), date(2024, 3, 1), admin)

        assert db.calls == []

    def test_unknown_barber(self, db, settlement, admin):
        with pytest.raises(NotFoundError):
            settlement.settle(uuid4(), *MARCH, admin)

    def test_barber_cannot_settle(self, db, settlement, barber, barber_id):
        with pytest.raises(UnauthorizedError):
            settlement.settle(barber_id, *MARCH, barber)

        assert db.calls == []


# =============================================================================
# MARK PAID
# =============================================================================


class TestMarkPaid:

    def test_pending_becomes_paid(self, db, settlement, admin, payment_row):
        row = payment_row(status="paid", payment_date=datetime(2024, 4, 2, tzinfo=UTC))
        db.on("UPDATE payments", row)

        payment = settlement.mark_paid(row["id"], admin)

        assert payment.is_paid
        _, params = db.queries("UPDATE payments")[0]
        assert params[0] == "paid"
        assert params[3] == "pending"
        assert isinstance(settlement.event_bus.publish.call_args.args[0], PaymentPaid)

    def test_already_paid_rejected(self, db, settlement, admin):
        payment_id = uuid4()
        db.on("UPDATE payments", None)
        db.on("SELECT status FROM payments WHERE id", {"status": "paid"})

        with pytest.raises(InvalidTransitionError) as exc_info:
            settlement.mark_paid(payment_id, admin)

        assert exc_info.value.current == "paid"

    def test_unknown_payment(self, db, settlement, admin):
        with pytest.raises(NotFoundError):
            settlement.mark_paid(uuid4(), admin)

    def test_barber_cannot_mark_paid(self, db, settlement, barber):
        with pytest.raises(UnauthorizedError):
            settlement.mark_paid(uuid4(), barber)


# =============================================================================
# NEXT PERIOD
# =============================================================================


class TestNextPeriod:

    def test_continues_from_last_payment(self, db, settlement, barber_id):
        db.on("SELECT id, payment_period FROM barbers", {"id": barber_id, "payment_period": "weekly"})
        db.on("MAX(period_end)", {"max": date(2024, 4, 1)})

        period = settlement.next_period(barber_id)

        assert period.period_start == date(2024, 4, 1)
        assert period.period_end == date(2024, 4, 8)

    def test_starts_at_earliest_unsettled_service(self, db, settlement, barber_id):
        db.on("SELECT id, payment_period FROM barbers", {"id": barber_id, "payment_period": "monthly"})
        db.on("MAX(period_end)", {"max": None})
        db.on("MIN(date)", {"min": datetime(2024, 1, 31, 12, 0, tzinfo=UTC)})

        period = settlement.next_period(barber_id)

        assert period.period_start == date(2024, 1, 31)
        assert period.period_end == date(2024, 2, 29)

    def test_unknown_barber(self, db, settlement):
        with pytest.raises(NotFoundError):
            settlement.next_period(uuid4())

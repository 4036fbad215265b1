"""Core domain models."""

from core.models.actor import Actor, Role
from core.models.service import Service, ServiceCreate, ServiceUpdate
from core.models.barber import Barber, BarberCreate, BarberUpdate, PaymentPeriod, CalendarVisibility
from core.models.commission import Commission, CommissionCreate, ProductCommission, ProductCommissionCreate
from core.models.product import Product, ProductCreate, ProductCategory
from core.models.appointment import Appointment, AppointmentStatus, BookingRequest, DraftBooking
from core.models.completed_service import CompletedService, CompletedServiceCreate
from core.models.product_sale import ProductSale, ProductSaleCreate
from core.models.payment import Payment, PaymentStatus, SettlementPeriod

__all__ = [
    # Actor
    "Actor", "Role",
    # Service
    "Service", "ServiceCreate", "ServiceUpdate",
    # Barber
    "Barber", "BarberCreate", "BarberUpdate", "PaymentPeriod", "CalendarVisibility",
    # Commission
    "Commission", "CommissionCreate", "ProductCommission", "ProductCommissionCreate",
    # Product
    "Product", "ProductCreate", "ProductCategory",
    # Appointment
    "Appointment", "AppointmentStatus", "BookingRequest", "DraftBooking",
    # CompletedService
    "CompletedService", "CompletedServiceCreate",
    # ProductSale
    "ProductSale", "ProductSaleCreate",
    # Payment
    "Payment", "PaymentStatus", "SettlementPeriod",
]

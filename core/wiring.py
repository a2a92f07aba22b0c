"""
Service assembly.

Builds the scheduling object graph from stores, locks, and an optional
payment gateway, and subscribes event handlers. Callers pick the backends:
in-memory stores for tests and single-process use, Postgres stores plus
Valkey locks for multi-process deployments.
"""

import logging
from clients.payment_client import PaymentGatewayClient
from core.audit import AuditLogger
from core.calendar import SlotCalendar
from core.config import SchedulingConfig
from core.event_bus import EventBus
from core.handlers.booking_completion_handler import handle_booking_completed
from core.handlers.booking_created_handler import handle_booking_created
from core.handlers.payment_received_handler import handle_payment_received
from core.locks import LocalSlotLocks, SlotLocks
from core.pricing import PricingEngine
from core.services.catalog_service import CatalogService
from core.services.payment_service import PaymentService
from core.services.scheduling_service import SchedulingService
from core.stores.base import BookingStore, CatalogStore, CustomerStore

logger = logging.getLogger(__name__)


def build_services(
    catalog_store: CatalogStore,
    customer_store: CustomerStore,
    booking_store: BookingStore,
    config: SchedulingConfig | None = None,
    locks: SlotLocks | None = None,
    gateway: PaymentGatewayClient | None = None,
    event_bus: EventBus | None = None,
) -> dict:
    """
    Wire the scheduling core.

    Args:
        catalog_store: Service catalog backend
        customer_store: Customer backend
        booking_store: Booking backend (must provide atomic writes)
        config: Scheduling config (defaults to SchedulingConfig())
        locks: Resource/day locks (defaults to in-process locks)
        gateway: Payment gateway; payments are disabled without one
        event_bus: Bus to publish on (a fresh one by default)

    Returns:
        Dict of services keyed the way the API routers expect, handlers subscribed
    """
    config = config or SchedulingConfig()
    locks = locks or LocalSlotLocks(timeout_seconds=config.lock_timeout_seconds)
    event_bus = event_bus or EventBus()

    audit = AuditLogger(booking_store)
    catalog = CatalogService(catalog_store)
    scheduling = SchedulingService(
        pricing=PricingEngine(catalog),
        calendar=SlotCalendar(booking_store, config),
        store=booking_store,
        customers=customer_store,
        locks=locks,
        audit=audit,
        event_bus=event_bus,
        config=config,
    )

    payments = None
    if gateway is not None:
        payments = PaymentService(booking_store, locks, gateway, audit, event_bus)
    else:
        logger.info("No payment gateway configured; payment actions disabled")

    event_bus.subscribe("BookingCreated", handle_booking_created(customer_store))
    event_bus.subscribe("BookingCompleted", handle_booking_completed(customer_store))
    event_bus.subscribe("PaymentReceived", handle_payment_received(scheduling))

    return {
        "catalog": catalog,
        "scheduling": scheduling,
        "payments": payments,
        "audit": audit,
        "event_bus": event_bus,
        "config": config,
    }

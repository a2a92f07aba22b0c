"""GET /api/data — unified read endpoint."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, Request

from api.base import success_response
from core.models import BookingStatus, ServiceCategory, VehicleType
from utils.clock import today_utc


VALID_TYPES = {"bookings", "services", "availability", "dashboard", "history"}


def create_data_router(services: dict) -> APIRouter:
    router = APIRouter()

    scheduling_svc = services["scheduling"]
    catalog_svc = services["catalog"]
    config = services["config"]

    # -------------------------------------------------------------------------
    # Convenience routes (must be registered before the generic /data route)
    # -------------------------------------------------------------------------

    @router.get("/data/bookings/today")
    async def bookings_today(request: Request):
        today = today_utc()
        bookings = scheduling_svc.list_bookings(today, today)
        return success_response(
            [b.model_dump(mode="json") for b in bookings]
        ).model_dump(mode="json")

    # -------------------------------------------------------------------------
    # Generic data endpoint
    # -------------------------------------------------------------------------

    @router.get("/data")
    async def get_data(
        request: Request,
        type: str | None = Query(None),
        id: str | None = Query(None),
        customer_id: str | None = Query(None),
        start: date | None = Query(None),
        end: date | None = Query(None),
        day: date | None = Query(None),
        resource: str | None = Query(None),
        duration: int | None = Query(None),
        granularity: int | None = Query(None),
        status: str | None = Query(None),
        category: str | None = Query(None),
        vehicle_type: str | None = Query(None),
        limit: int = Query(50, ge=1, le=500),
    ):
        if type is None:
            raise ValueError("'type' query parameter is required")

        if type not in VALID_TYPES:
            raise ValueError(f"Unknown type '{type}'. Valid types: {', '.join(sorted(VALID_TYPES))}")

        if type == "bookings":
            return _handle_bookings(scheduling_svc, id, customer_id, start, end, status, limit)

        if type == "history":
            if not id:
                raise ValueError("'history' type requires 'id' parameter")
            entries = scheduling_svc.get_booking_history(UUID(id))
            return success_response(
                [e.model_dump(mode="json") for e in entries]
            ).model_dump(mode="json")

        if type == "services":
            return _handle_services(catalog_svc, category, vehicle_type)

        if type == "availability":
            return _handle_availability(
                scheduling_svc, resource or config.default_resource, day, duration, granularity
            )

        if type == "dashboard":
            if start is None or end is None:
                raise ValueError("'dashboard' type requires 'start' and 'end' parameters")
            summary = scheduling_svc.dashboard_summary(start, end)
            return success_response(summary.model_dump(mode="json")).model_dump(mode="json")

    return router


def _handle_bookings(scheduling_svc, id, customer_id, start, end, status, limit):
    if id:
        booking = scheduling_svc.get_booking(UUID(id))
        return success_response(booking.model_dump(mode="json")).model_dump(mode="json")

    if customer_id:
        bookings = scheduling_svc.list_customer_bookings(UUID(customer_id), limit)
        return success_response(
            [b.model_dump(mode="json") for b in bookings]
        ).model_dump(mode="json")

    if start and end:
        bookings = scheduling_svc.list_bookings(
            start, end, BookingStatus(status) if status else None
        )
        return success_response(
            [b.model_dump(mode="json") for b in bookings]
        ).model_dump(mode="json")

    raise ValueError("'bookings' type requires 'id', 'customer_id', or 'start' and 'end' parameters")


def _handle_services(catalog_svc, category, vehicle_type):
    services = catalog_svc.list_active(
        category=ServiceCategory(category) if category else None,
        vehicle_type=VehicleType(vehicle_type) if vehicle_type else None,
    )
    return success_response(
        [s.model_dump(mode="json") for s in services]
    ).model_dump(mode="json")


def _handle_availability(scheduling_svc, resource, day, duration, granularity):
    if day is None or duration is None:
        raise ValueError("'availability' type requires 'day' and 'duration' parameters")

    slots = scheduling_svc.get_availability(resource, day, duration, granularity_minutes=granularity)
    return success_response(
        [s.model_dump(mode="json") for s in slots]
    ).model_dump(mode="json")

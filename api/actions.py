"""POST /api/actions — unified mutation endpoint."""

import logging
from datetime import date, time
from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Request
from pydantic import BaseModel
from starlette.responses import JSONResponse

from api.base import error_response, success_response, ErrorCodes
from clients.payment_client import verify_webhook_signature
from core.models import BookingCreate, BookingStatus, BookingUpdate, PaymentMethod

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Signature"


class ActionRequest(BaseModel):
    domain: str
    action: str
    data: dict


def create_actions_router(services: dict) -> APIRouter:
    router = APIRouter()

    handlers = {
        "booking": BookingHandler(services["scheduling"]),
    }
    if services.get("payments") is not None:
        handlers["payment"] = PaymentHandler(services["payments"])

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

        method = getattr(handler, f"_handle_{body.action}", None)
        result = method(body.data)
        return success_response(
            result, request_id=getattr(request.state, "request_id", None)
        ).model_dump(mode="json")

    @router.post("/payments/webhook")
    async def payment_webhook(request: Request):
        payments = services.get("payments")
        if payments is None:
            return JSONResponse(
                status_code=503,
                content=error_response(
                    ErrorCodes.PAYMENTS_DISABLED, "Payments are not configured",
                ).model_dump(mode="json"),
            )

        body = await request.body()
        secret = services.get("webhook_secret")
        if secret and not verify_webhook_signature(body, request.headers.get(SIGNATURE_HEADER, ""), secret):
            logger.warning("Rejected payment webhook with bad signature")
            return JSONResponse(
                status_code=401,
                content=error_response(
                    ErrorCodes.INVALID_SIGNATURE, "Webhook signature mismatch",
                ).model_dump(mode="json"),
            )

        booking = payments.handle_webhook(await request.json())
        data = {"received": True, "booking_id": str(booking.id) if booking else None}
        return success_response(data).model_dump(mode="json")

    return router


# =============================================================================
# HANDLER CLASSES
# =============================================================================


class BookingHandler:
    ALLOWED_ACTIONS = {"create", "update", "transition", "cancel", "reschedule"}

    def __init__(self, service):
        self.service = service

    def _handle_create(self, data: dict):
        booking = self.service.create_booking(BookingCreate(**data))
        return booking.model_dump(mode="json")

    def _handle_update(self, data: dict):
        booking_id = UUID(data.pop("id"))
        booking = self.service.update_booking(booking_id, BookingUpdate(**data))
        return booking.model_dump(mode="json")

    def _handle_transition(self, data: dict):
        booking = self.service.transition_status(
            UUID(data["id"]),
            BookingStatus(data["status"]),
            reason=data.get("reason"),
        )
        return booking.model_dump(mode="json")

    def _handle_cancel(self, data: dict):
        booking = self.service.cancel_booking(UUID(data["id"]), reason=data.get("reason"))
        return booking.model_dump(mode="json")

    def _handle_reschedule(self, data: dict):
        end_time = data.get("end_time")
        original, replacement = self.service.reschedule_booking(
            UUID(data["id"]),
            scheduled_date=date.fromisoformat(data["scheduled_date"]),
            start_time=time.fromisoformat(data["start_time"]),
            end_time=time.fromisoformat(end_time) if end_time else None,
            resource=data.get("resource"),
            reason=data.get("reason"),
        )
        return {
            "original": original.model_dump(mode="json"),
            "replacement": replacement.model_dump(mode="json"),
        }


class PaymentHandler:
    ALLOWED_ACTIONS = {"start", "verify", "refund", "gateway_result"}

    def __init__(self, service):
        self.service = service

    def _handle_start(self, data: dict):
        booking, payment = self.service.start_payment(
            UUID(data["booking_id"]),
            method=PaymentMethod(data.get("method", PaymentMethod.GATEWAY.value)),
            source=data.get("source"),
            callback_url=data.get("callback_url"),
        )
        return {
            "booking": booking.model_dump(mode="json"),
            "payment_id": payment.id,
            "status": payment.status,
            "payment_url": payment.transaction_url,
        }

    def _handle_verify(self, data: dict):
        booking = self.service.verify_payment(UUID(data["booking_id"]))
        return booking.model_dump(mode="json")

    def _handle_refund(self, data: dict):
        amount = data.get("amount")
        booking = self.service.refund(
            UUID(data["booking_id"]),
            amount=Decimal(str(amount)) if amount is not None else None,
            reason=data.get("reason"),
        )
        return booking.model_dump(mode="json")

    def _handle_gateway_result(self, data: dict):
        amount = data.get("amount")
        booking = self.service.apply_gateway_result(
            UUID(data["booking_id"]),
            data["transaction_id"],
            data["status"],
            Decimal(str(amount)) if amount is not None else None,
        )
        return booking.model_dump(mode="json")

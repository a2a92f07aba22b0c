"""
Payment gateway client for card/wallet payments via HTTP API.

Uses HTTP basic auth with the secret API key as username. Amounts cross
the wire in minor units (halalas for SAR); callers always pass and receive
Decimal major units.
"""

import hashlib
import hmac
import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any

import requests

logger = logging.getLogger(__name__)

_MINOR_UNITS = Decimal("100")


class PaymentGatewayError(Exception):
    """Raised when payment gateway request fails."""


@dataclass(frozen=True)
class GatewayPayment:
    """Payment or refund as reported by the gateway."""
    id: str
    status: str
    amount: Decimal
    currency: str
    transaction_url: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


def to_minor_units(amount: Decimal) -> int:
    """Major units to integer minor units, half-up."""
    return int((Decimal(amount) * _MINOR_UNITS).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount: int) -> Decimal:
    """Integer minor units to major units with 2 decimal places."""
    return (Decimal(amount) / _MINOR_UNITS).quantize(Decimal("0.01"))


class PaymentGatewayClient:
    """Create, fetch, and refund payments through the gateway's REST API."""

    def __init__(self, base_url: str, api_key: str, timeout: float = 10):
        """
        Initialize with gateway credentials.

        Args:
            base_url: API root (e.g. https://api.moyasar.com/v1)
            api_key: Secret API key
            timeout: Per-request timeout in seconds

        Raises:
            ValueError: If any credential is empty
        """
        if not base_url:
            raise ValueError("base_url is required")
        if not api_key:
            raise ValueError("api_key is required")

        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

    def _request(self, method: str, path: str, payload: dict | None = None) -> dict:
        """
        Send a request and return the decoded JSON body.

        Raises:
            PaymentGatewayError: On connection failure, non-JSON body, or non-2xx status
        """
        url = f"{self.base_url}{path}"

        try:
            response = requests.request(
                method,
                url,
                json=payload,
                auth=(self.api_key, ""),
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Payment gateway connection failed: {e}")
            raise PaymentGatewayError(f"Connection failed: {e}")

        try:
            data = response.json()
        except (json.JSONDecodeError, ValueError):
            logger.error(f"Payment gateway returned invalid JSON: {response.text}")
            raise PaymentGatewayError("Invalid response from gateway")

        if not 200 <= response.status_code < 300:
            error_msg = data.get("message", "Unknown error") if isinstance(data, dict) else "Unknown error"
            logger.error(f"Payment gateway error ({response.status_code}): {error_msg}")
            raise PaymentGatewayError(f"Gateway error: {error_msg}")

        return data

    @staticmethod
    def _parse(data: dict) -> GatewayPayment:
        try:
            return GatewayPayment(
                id=data["id"],
                status=data["status"],
                amount=from_minor_units(data["amount"]),
                currency=data.get("currency", ""),
                transaction_url=(data.get("source") or {}).get("transaction_url"),
                metadata=data.get("metadata") or {},
            )
        except (KeyError, TypeError) as e:
            logger.error(f"Payment gateway response missing fields: {data}")
            raise PaymentGatewayError(f"Malformed payment in gateway response: {e}")

    def create_payment(
        self,
        amount: Decimal,
        currency: str,
        description: str,
        metadata: dict[str, str],
        source: dict[str, Any] | None = None,
        callback_url: str | None = None,
    ) -> GatewayPayment:
        """
        Create a payment.

        Args:
            amount: Amount in major units
            currency: ISO currency code
            description: Shown on the customer's statement/receipt
            metadata: Opaque key/values echoed back on webhooks
            source: Payment source details (card token, wallet type)
            callback_url: Where the gateway redirects after 3-D Secure

        Raises:
            PaymentGatewayError: On any failure
        """
        payload: dict[str, Any] = {
            "amount": to_minor_units(amount),
            "currency": currency,
            "description": description,
            "metadata": metadata,
        }
        if source:
            payload["source"] = source
        if callback_url:
            payload["callback_url"] = callback_url

        payment = self._parse(self._request("POST", "/payments", payload))
        logger.info(f"Payment {payment.id} created ({payment.status})")
        return payment

    def get_payment(self, payment_id: str) -> GatewayPayment:
        """
        Fetch a payment's current state.

        Raises:
            PaymentGatewayError: On any failure
        """
        return self._parse(self._request("GET", f"/payments/{payment_id}"))

    def refund(self, payment_id: str, amount: Decimal, reason: str | None = None) -> GatewayPayment:
        """
        Refund all or part of a payment.

        Raises:
            PaymentGatewayError: On any failure
        """
        payload: dict[str, Any] = {"amount": to_minor_units(amount)}
        if reason:
            payload["description"] = reason

        payment = self._parse(self._request("POST", f"/payments/{payment_id}/refund", payload))
        logger.info(f"Payment {payment_id} refunded {amount}")
        return payment


def verify_webhook_signature(payload: bytes, signature: str, secret: str) -> bool:
    """
    Check a webhook body against its HMAC-SHA256 hex signature.

    Args:
        payload: Raw request body
        signature: Hex digest from the gateway's signature header
        secret: Shared webhook secret
    """
    if not signature or not secret:
        return False

    expected = hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)

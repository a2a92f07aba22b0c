"""FastAPI application factory."""

import logging

from fastapi import FastAPI

from api.actions import create_actions_router
from api.data import create_data_router
from api.errors import register_error_handlers
from api.middleware import ActorMiddleware, RequestIDMiddleware

logger = logging.getLogger(__name__)


def create_app(services: dict) -> FastAPI:
    """
    Build the HTTP app around already-wired services.

    Args:
        services: Output of core.wiring.build_services, optionally with a
            "webhook_secret" entry for signed payment webhooks
    """
    app = FastAPI(title="Service Center Scheduling")
    app.add_middleware(ActorMiddleware)
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    app.include_router(create_data_router(services), prefix="/api")
    app.include_router(create_actions_router(services), prefix="/api")

    return app


def create_production_app() -> FastAPI:
    """Wire the production stores, locks and gateway from Vault secrets."""
    from clients.payment_client import PaymentGatewayClient
    from clients.postgres_client import PostgresClient
    from clients.valkey_client import ValkeyClient
    from clients.vault_client import get_database_url, get_payment_gateway_config, get_valkey_url
    from core.config import SchedulingConfig
    from core.locks import ValkeySlotLocks
    from core.stores.postgres import PostgresBookingStore, PostgresCatalogStore, PostgresCustomerStore
    from core.wiring import build_services

    config = SchedulingConfig.from_env()
    postgres = PostgresClient(get_database_url())
    gateway_config = get_payment_gateway_config()

    services = build_services(
        PostgresCatalogStore(postgres),
        PostgresCustomerStore(postgres),
        PostgresBookingStore(postgres),
        config=config,
        locks=ValkeySlotLocks(ValkeyClient(get_valkey_url()), timeout_seconds=config.lock_timeout_seconds),
        gateway=PaymentGatewayClient(gateway_config["base_url"], gateway_config["api_key"]),
    )
    services["webhook_secret"] = gateway_config["webhook_secret"]

    logger.info("Scheduling app wired against production backends")
    return create_app(services)

# Infrastructure clients
from clients.vault_client import (
    VaultClient,
    get_cached_secrets,
    get_database_url,
    get_valkey_url,
    get_payment_gateway_config,
)
from clients.postgres_client import PostgresClient
from clients.valkey_client import ValkeyClient
from clients.payment_client import (
    PaymentGatewayClient,
    PaymentGatewayError,
    GatewayPayment,
    verify_webhook_signature,
)

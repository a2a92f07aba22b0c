"""
HashiCorp Vault client for service-center secret management.

Uses AppRole authentication. Fails fast on missing configuration.
All paths scoped to 'servicecenter/' prefix - no escape to other secrets.
"""

import os
import logging
from typing import Dict

import hvac
from hvac.exceptions import InvalidPath, Unauthorized, Forbidden

logger = logging.getLogger(__name__)

# Project scope - all secrets under this path
_SECRET_PREFIX = "servicecenter"

# Singleton instance and cache
_vault_client_instance: "VaultClient | None" = None
_secret_cache: Dict[str, str] = {}


def _ensure_vault_client() -> "VaultClient":
    global _vault_client_instance
    if _vault_client_instance is None:
        _vault_client_instance = VaultClient()
    return _vault_client_instance


class VaultClient:
    """Vault client with AppRole auth, env-based config, and fail-fast behavior."""

    def __init__(
        self,
        vault_addr: str | None = None,
        vault_namespace: str | None = None,
    ):
        """Initialize with environment variables. Fails fast on missing config."""
        self.vault_addr = vault_addr or os.getenv("VAULT_ADDR")
        self.vault_namespace = vault_namespace or os.getenv("VAULT_NAMESPACE")
        self.vault_role_id = os.getenv("VAULT_ROLE_ID")
        self.vault_secret_id = os.getenv("VAULT_SECRET_ID")

        if not self.vault_addr:
            raise ValueError("VAULT_ADDR environment variable is required")

        if not self.vault_role_id or not self.vault_secret_id:
            raise ValueError(
                "VAULT_ROLE_ID and VAULT_SECRET_ID environment variables are required"
            )

        client_kwargs = {"url": self.vault_addr}
        if self.vault_namespace:
            client_kwargs["namespace"] = self.vault_namespace

        self.client = hvac.Client(**client_kwargs)
        self._authenticate_approle()

        if not self.client.is_authenticated():
            raise PermissionError("Vault authentication failed")

        logger.info(f"Vault client initialized: {self.vault_addr}")

    def _authenticate_approle(self) -> None:
        """Authenticate using AppRole credentials."""
        try:
            auth_response = self.client.auth.approle.login(
                role_id=self.vault_role_id,
                secret_id=self.vault_secret_id,
            )
            self.client.token = auth_response["auth"]["client_token"]
            logger.info("AppRole authentication successful")
        except Exception as e:
            logger.error(f"AppRole authentication failed: {e}")
            raise PermissionError(f"AppRole authentication failed: {e}")

    def read_secret(self, path: str) -> Dict[str, str]:
        """
        Read every field of a KV v2 secret.

        Path is automatically scoped to the 'servicecenter/' prefix.
        Caller passes 'database', we access 'servicecenter/database'.

        Raises:
            PermissionError: Path not accessible or doesn't exist.
        """
        full_path = f"{_SECRET_PREFIX}/{path}"

        try:
            response = self.client.secrets.kv.v2.read_secret_version(
                path=full_path, raise_on_deleted_version=True
            )
        except InvalidPath:
            logger.error(f"Secret path not found: {full_path}")
            raise PermissionError(f"Secret path '{full_path}' not found in Vault")
        except (Unauthorized, Forbidden) as e:
            logger.error(f"Access denied to secret {full_path}: {e}")
            raise PermissionError(f"Access denied to secret '{full_path}': {e}")

        return response["data"]["data"]

    def get_secret(self, path: str, field: str) -> str:
        """
        Retrieve a single field.

        Args:
            path: Secret path relative to the prefix (e.g., 'database', 'payments')
            field: Field name within secret (e.g., 'url')

        Raises:
            PermissionError: Path not accessible or doesn't exist.
            KeyError: Field not found in secret.
        """
        return _pick(self.read_secret(path), path, [field])[field]


def _pick(secret: Dict[str, str], path: str, fields: list[str]) -> Dict[str, str]:
    missing = [f for f in fields if f not in secret]
    if missing:
        raise KeyError(
            f"Field(s) {', '.join(missing)} not found in secret '{_SECRET_PREFIX}/{path}'. "
            f"Available: {', '.join(secret)}"
        )
    return {f: secret[f] for f in fields}


# Convenience functions


def get_cached_secrets(path: str, fields: list[str]) -> Dict[str, str]:
    """
    Read several fields of one secret, caching each for the process lifetime.

    Returns:
        Dict of field -> value
    """
    missing = [f for f in fields if f"{_SECRET_PREFIX}/{path}/{f}" not in _secret_cache]
    if missing:
        # One read per path, however many fields are new
        fetched = _pick(_ensure_vault_client().read_secret(path), path, missing)
        for field, value in fetched.items():
            _secret_cache[f"{_SECRET_PREFIX}/{path}/{field}"] = value

    return {f: _secret_cache[f"{_SECRET_PREFIX}/{path}/{f}"] for f in fields}


def get_database_url() -> str:
    """Get PostgreSQL connection URL from Vault."""
    return get_cached_secrets("database", ["url"])["url"]


def get_valkey_url() -> str:
    """Get Valkey (Redis) connection URL from Vault."""
    return get_cached_secrets("valkey", ["url"])["url"]


def get_payment_gateway_config() -> Dict[str, str]:
    """Get payment gateway configuration from Vault.

    Returns:
        Dict with keys: base_url, api_key, webhook_secret
    """
    return get_cached_secrets("payments", ["base_url", "api_key", "webhook_secret"])

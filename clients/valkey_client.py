"""
Valkey (Redis-compatible) client for cross-process booking locks.

Simple wrapper around redis-py. Connection URL from Vault.
Fail-fast: raises on connection failure, never returns fallback values.
"""

import logging

import redis
from redis.lock import Lock

logger = logging.getLogger(__name__)


class ValkeyClient:
    """
    Redis-compatible client for Valkey.

    Usage:
        client = ValkeyClient("redis://localhost:6379/0")
        lock = client.lock("booking-lock:bay1:2024-06-01", timeout=30)
        if lock.acquire(blocking_timeout=5):
            try:
                ...
            finally:
                lock.release()
    """

    def __init__(self, url: str):
        """
        Initialize Valkey connection.

        Args:
            url: Redis-compatible connection URL (e.g., redis://localhost:6379/0)

        Raises:
            redis.ConnectionError: If connection fails
        """
        self._client = redis.from_url(url, decode_responses=True)
        # Verify connectivity immediately (fail-fast)
        self._client.ping()
        logger.info("ValkeyClient connected")

    def ping(self) -> bool:
        """
        Health check.

        Returns True if Valkey responds.
        Raises redis.ConnectionError if unreachable.
        """
        self._client.ping()
        return True

    def lock(self, name: str, timeout: float) -> Lock:
        """
        Distributed lock handle (not yet acquired).

        Args:
            name: Lock key
            timeout: Seconds after which a crashed holder's lock expires

        Returns:
            redis-py Lock; call acquire(blocking_timeout=...) and release()
        """
        return self._client.lock(name, timeout=timeout)

    def close(self) -> None:
        """Close the connection."""
        self._client.close()
        logger.info("ValkeyClient closed")

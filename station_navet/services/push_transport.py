"""
Push Transport: delivers one payload to one device endpoint.

Subscription keys are passed through untouched; encrypting the payload for a
browser push service is left to whatever sits behind the endpoint.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx

from ..models import PushSubscription


logger = logging.getLogger(__name__)

# Push services answer these for endpoints that will never accept again
GONE_STATUS_CODES = frozenset({404, 410})


@dataclass
class PushResult:
    """Outcome of a single delivery attempt."""
    success: bool
    status_code: int | None = None
    error: str | None = None

    @property
    def endpoint_gone(self) -> bool:
        return self.status_code in GONE_STATUS_CODES


class PushTransport(ABC):
    """Abstract base for push delivery."""

    @abstractmethod
    async def send(self, subscription: PushSubscription, payload: dict) -> PushResult:
        pass

    async def aclose(self) -> None:
        """Release held connections. Called once on shutdown."""
        pass


class HttpPushTransport(PushTransport):
    """
    POSTs the JSON payload to the subscription endpoint.

    One pooled client serves every delivery until aclose().
    """

    def __init__(
        self,
        timeout_seconds: float = 10.0,
        ttl_seconds: int = 86400,
        client: httpx.AsyncClient | None = None,
    ):
        self._ttl = ttl_seconds
        self._client = client if client is not None else httpx.AsyncClient(timeout=timeout_seconds)

    async def send(self, subscription: PushSubscription, payload: dict) -> PushResult:
        try:
            response = await self._client.post(
                subscription.endpoint,
                json={**payload, "keys": subscription.keys or {}},
                headers={"TTL": str(self._ttl)},
            )
        except httpx.HTTPError as e:
            error_msg = f"Push request failed: {str(e)}"
            logger.warning(error_msg)
            return PushResult(success=False, error=error_msg)

        if response.is_success:
            return PushResult(success=True, status_code=response.status_code)

        return PushResult(
            success=False,
            status_code=response.status_code,
            error=f"Push endpoint answered {response.status_code}",
        )

    async def aclose(self) -> None:
        await self._client.aclose()


class LoggingPushTransport(PushTransport):
    """Logs instead of delivering. Used when push is disabled."""

    async def send(self, subscription: PushSubscription, payload: dict) -> PushResult:
        logger.info(f"[PUSH] To: {subscription.endpoint}, Title: {payload.get('title')}")
        return PushResult(success=True)

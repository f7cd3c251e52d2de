"""
Base payment client implementing shared concerns: http, retry, logging.

Concrete providers should subclass and implement provider-specific logic.
"""
from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential_jitter, retry_if_exception_type

from core.logging_config import get_logger
from infrastructure.external.payments.exceptions import (
    PaymentProviderError,
    PaymentRecoverableError,
)


logger = get_logger(__name__)

T = TypeVar("T")


class BasePaymentClient:
    provider: str = "base"

    def __init__(
        self,
        *,
        base_url: str = "",
        timeouts: Optional[dict[str, float]] = None,
        retry: Optional[dict[str, Any]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeouts_cfg = timeouts or {"connect": 1.0, "read": 3.0, "write": 3.0, "total": 5.0}
        self._retry_cfg = retry or {"max": 2, "base": 0.2}
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def timeouts(self) -> httpx.Timeout:
        return httpx.Timeout(
            self._timeouts_cfg["total"],
            connect=self._timeouts_cfg["connect"],
            read=self._timeouts_cfg["read"],
            write=self._timeouts_cfg["write"],
        )

    def _http(self) -> httpx.AsyncClient:
        # Keep open for reuse; explicit aclose() will close.
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self.timeouts,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        """Close underlying HTTP client if created."""
        if self._client is not None:
            try:
                await self._client.aclose()
            finally:
                self._client = None

    async def _retry(self, fn: Callable[[], Awaitable[T]]) -> T:
        # Only network-class and 5xx failures are retried; 4xx never are.
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(int(self._retry_cfg["max"]) + 1),
            wait=wait_exponential_jitter(initial=self._retry_cfg["base"], max=2.0, jitter=self._retry_cfg["base"]),
            retry=retry_if_exception_type((httpx.TimeoutException, httpx.TransportError, PaymentRecoverableError)),
            reraise=True,
        ):
            with attempt:
                return await fn()
        raise AssertionError("unreachable")  # pragma: no cover

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        """Send a request with retries and map failures to payment exceptions."""

        async def _send() -> dict[str, Any]:
            response = await self._http().request(method, path, **kwargs)
            if response.status_code >= 500:
                raise PaymentRecoverableError(
                    f"Provider returned {response.status_code}",
                    provider=self.provider,
                    provider_code=str(response.status_code),
                )
            if response.status_code >= 400:
                raise PaymentProviderError(
                    f"Provider rejected request with {response.status_code}",
                    provider=self.provider,
                    provider_code=str(response.status_code),
                    details={"status_code": response.status_code, "body": self._safe_json(response)},
                )
            return self._safe_json(response) or {}

        try:
            body = await self._retry(_send)
        except httpx.HTTPError as exc:
            self._log("payment_provider_unreachable", method=method, path=path, error=str(exc))
            raise PaymentRecoverableError(
                "Payment provider unreachable",
                provider=self.provider,
                details={"error_type": type(exc).__name__},
            ) from exc
        self._log("payment_provider_call", method=method, path=path)
        return body

    @staticmethod
    def _safe_json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return None

    def _log(self, event: str, **kwargs) -> None:
        logger.info(
            event,
            provider=self.provider,
            **kwargs,
        )

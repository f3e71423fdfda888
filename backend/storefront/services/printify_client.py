"""
Storefront Backend: Printify API Client
=========================================

What:  Async HTTP client for the Printify REST API (shops and products).
How:   httpx.AsyncClient with Bearer auth. Every response status is mapped to
       an UpstreamErrorKind; transient kinds (rate limit, 5xx, transport
       failure) are retried with tenacity before the error reaches the caller.

Status → kind:
    429        RATE_LIMIT
    401 / 403  AUTH_ERROR
    404        NOT_FOUND
    >= 500     SERVER_ERROR
    other 4xx  UNKNOWN_ERROR
    transport  NETWORK_ERROR
"""

import logging
from typing import Any, Dict, List, Optional

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from storefront.config import settings
from storefront.exceptions import UpstreamError, UpstreamErrorKind

logger = logging.getLogger(__name__)

PROVIDER = "Printify"

RETRYABLE_KINDS = frozenset({
    UpstreamErrorKind.RATE_LIMIT,
    UpstreamErrorKind.SERVER_ERROR,
    UpstreamErrorKind.NETWORK_ERROR,
})

KIND_MESSAGES: Dict[UpstreamErrorKind, str] = {
    UpstreamErrorKind.RATE_LIMIT: (
        "Printify API rate limit exceeded. Please try again in a few minutes."
    ),
    UpstreamErrorKind.AUTH_ERROR: "Invalid Printify API key. Please check your credentials.",
    UpstreamErrorKind.NOT_FOUND: "Resource not found on Printify.",
    UpstreamErrorKind.SERVER_ERROR: (
        "Printify API is currently unavailable. Please try again later."
    ),
    UpstreamErrorKind.NETWORK_ERROR: "Failed to connect to Printify.",
    UpstreamErrorKind.UNKNOWN_ERROR: "Printify request failed.",
}


def classify_status(status_code: int) -> Optional[UpstreamErrorKind]:
    """None for success statuses."""
    if status_code == 429:
        return UpstreamErrorKind.RATE_LIMIT
    if status_code in (401, 403):
        return UpstreamErrorKind.AUTH_ERROR
    if status_code == 404:
        return UpstreamErrorKind.NOT_FOUND
    if status_code >= 500:
        return UpstreamErrorKind.SERVER_ERROR
    if status_code >= 400:
        return UpstreamErrorKind.UNKNOWN_ERROR
    return None


def _is_retryable(error: BaseException) -> bool:
    return isinstance(error, UpstreamError) and error.kind in RETRYABLE_KINDS


class PrintifyClient:
    """
    One client per API key.

    `transport` is injectable so tests can answer requests with
    httpx.MockTransport instead of the network.
    """

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = (base_url or settings.printify_base_url).rstrip("/")
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            timeout=settings.printify_timeout,
            transport=self.transport,
        )

    @retry(
        retry=retry_if_exception(_is_retryable),
        stop=stop_after_attempt(settings.retry_max_attempts),
        wait=wait_exponential_jitter(
            initial=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=settings.retry_jitter,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _request_with_retry(self, method: str, endpoint: str) -> Any:
        try:
            async with self._client() as client:
                response = await client.request(method, endpoint)
        except httpx.TransportError as e:
            logger.warning("Printify %s %s transport failure: %s", method, endpoint, str(e))
            raise UpstreamError(
                provider=PROVIDER,
                kind=UpstreamErrorKind.NETWORK_ERROR,
                message=KIND_MESSAGES[UpstreamErrorKind.NETWORK_ERROR],
                context={"endpoint": endpoint, "error_type": type(e).__name__},
            )

        kind = classify_status(response.status_code)
        if kind is not None:
            message = KIND_MESSAGES[kind]
            if kind is UpstreamErrorKind.UNKNOWN_ERROR:
                try:
                    message = response.json().get("message") or message
                except ValueError:
                    pass
            logger.warning(
                "Printify %s %s returned %d (%s)",
                method, endpoint, response.status_code, kind.value,
            )
            raise UpstreamError(
                provider=PROVIDER,
                kind=kind,
                message=message,
                upstream_status=response.status_code,
                context={"endpoint": endpoint},
            )
        return response.json()

    async def get_shops(self) -> List[Dict[str, Any]]:
        return await self._request_with_retry("GET", "/shops.json")

    async def get_shop_products(self, shop_id: str) -> List[Dict[str, Any]]:
        payload = await self._request_with_retry("GET", f"/shops/{shop_id}/products.json")
        return payload.get("data") or []

    async def get_product(self, shop_id: str, product_id: str) -> Dict[str, Any]:
        return await self._request_with_retry(
            "GET", f"/shops/{shop_id}/products/{product_id}.json"
        )

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any

import httpx

from apparel_catalog.exceptions import SupplierApiError, SupplierUnavailableError
from apparel_catalog.suppliers import Supplier

logger = logging.getLogger(__name__)

RATE_LIMIT_MIN_REMAINING = 1
RATE_LIMIT_DEFAULT_WAIT = 1.1


@dataclass
class RestBundle:
    products: list[dict[str, Any]] = field(default_factory=list)
    style: dict[str, Any] | None = None


class SsActivewearClient:
    """
    S&S Activewear REST v2 client (Basic auth: account number + API key).

    Every call is bounded by a client-side timeout. Transport failures, timeouts, 429
    and 5xx raise SupplierUnavailableError; other non-success statuses raise
    SupplierApiError. 404 means "nothing there" and returns None.
    """

    def __init__(
        self,
        account_number: str,
        api_key: str,
        base_url: str = "https://api.ssactivewear.com/V2",
        timeout_seconds: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._auth = httpx.BasicAuth(account_number, api_key)
        self._base_url = base_url.rstrip("/")
        self._timeout = httpx.Timeout(timeout_seconds, connect=min(10.0, timeout_seconds))
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._next_allowed_at = 0.0

    @classmethod
    def from_settings(cls, settings) -> "SsActivewearClient":
        return cls(
            account_number=settings.ssactivewear_account_number,
            api_key=settings.ssactivewear_api_key,
            base_url=settings.ssactivewear_rest_base_url,
            timeout_seconds=settings.ssactivewear_timeout_seconds,
        )

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                auth=self._auth,
                timeout=self._timeout,
                transport=self._transport,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "SsActivewearClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _respect_rate_limit(self) -> None:
        wait = self._next_allowed_at - time.monotonic()
        if wait > 0:
            await asyncio.sleep(wait)

    def _update_rate_limit(self, resp: httpx.Response) -> None:
        remaining = resp.headers.get("X-Rate-Limit-Remaining")
        if remaining is None:
            return
        try:
            if float(remaining) > RATE_LIMIT_MIN_REMAINING:
                return
        except ValueError:
            return
        try:
            reset = float(resp.headers.get("X-Rate-Limit-Reset", "0"))
        except ValueError:
            reset = 0.0
        wait = max(reset, RATE_LIMIT_DEFAULT_WAIT)
        logger.info(f"[SSA] Rate limit nearly exhausted; pausing {wait:.1f}s")
        self._next_allowed_at = time.monotonic() + wait

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any | None:
        await self._respect_rate_limit()
        query = {k: v for k, v in (params or {}).items() if v not in (None, "")}
        url = f"{self._base_url}/{path.lstrip('/')}"
        try:
            resp = await self._http().get(f"/{path.lstrip('/')}", params=query)
        except httpx.TimeoutException as e:
            raise SupplierUnavailableError(
                f"S&S request timed out: {url}", supplier=Supplier.SSACTIVEWEAR.value, url=url
            ) from e
        except httpx.TransportError as e:
            raise SupplierUnavailableError(
                f"S&S request failed: {e}", supplier=Supplier.SSACTIVEWEAR.value, url=url
            ) from e

        self._update_rate_limit(resp)

        if resp.status_code == 404:
            return None
        if resp.status_code == 429 or resp.status_code >= 500:
            raise SupplierUnavailableError(
                f"S&S request failed: HTTP {resp.status_code}",
                supplier=Supplier.SSACTIVEWEAR.value,
                status_code=resp.status_code,
                url=url,
                response_body=resp.text,
            )
        if resp.status_code >= 400:
            raise SupplierApiError(
                f"S&S request failed: HTTP {resp.status_code}",
                supplier=Supplier.SSACTIVEWEAR.value,
                status_code=resp.status_code,
                url=url,
                response_body=resp.text,
                recoverable=resp.status_code not in (401, 403),
            )
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise SupplierApiError(
                "S&S returned a non-JSON body",
                supplier=Supplier.SSACTIVEWEAR.value,
                status_code=resp.status_code,
                url=url,
                response_body=resp.text,
            ) from e

    async def list_styles(self) -> list[dict[str, Any]]:
        data = await self.get("/styles/")
        return data if isinstance(data, list) else []

    async def get_style(self, identifier: str) -> dict[str, Any] | None:
        data = await self.get(f"/styles/{identifier}")
        if isinstance(data, list):
            return data[0] if data else None
        return data if isinstance(data, dict) else None

    async def get_products(self, part_number: str) -> list[dict[str, Any]]:
        data = await self.get("/products/", params={"partnumber": part_number})
        return data if isinstance(data, list) else []

    async def fetch_rest_bundle(self, style_number: str) -> RestBundle:
        """Products (one per SKU) for a style plus the style metadata when available."""
        style = await self.get_style(style_number)
        lookup_keys = [style_number]
        if style and style.get("partNumber"):
            lookup_keys.append(str(style["partNumber"]))

        products: list[dict[str, Any]] = []
        for key in dict.fromkeys(lookup_keys):
            products = await self.get_products(key)
            if products:
                break
        return RestBundle(products=products, style=style)

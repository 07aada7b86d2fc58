from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, cast

import httpx

from mexc_relay.errors import GatewayError
from mexc_relay.types import Balance, OrderResult, SignedRequest

logger = logging.getLogger("mexc_relay.gateway")

DEFAULT_BASE_URL = "https://api.mexc.com"
_DEFAULT_TIMEOUT_SECONDS = 10.0


def _exchange_message(payload: Any) -> str | None:
    if isinstance(payload, dict):
        msg = payload.get("msg")
        if msg:
            return str(msg)
    return None


def _to_decimal(value: Any) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal("0")


def parse_balances(account: dict[str, Any]) -> list[Balance]:
    balances = account.get("balances", [])
    if not isinstance(balances, list):
        return []
    parsed: list[Balance] = []
    for b in balances:
        if not isinstance(b, dict) or not b.get("asset"):
            continue
        parsed.append(
            Balance(
                asset=str(b["asset"]).upper(),
                free=_to_decimal(b.get("free", "0")),
                locked=_to_decimal(b.get("locked", "0")),
            )
        )
    return parsed


class MexcSpotClient:
    """Single-attempt async client for the MEXC spot v3 REST API.

    Signed calls take a prebuilt `SignedRequest` and send its query verbatim so
    the bytes on the wire are exactly the bytes that were signed.
    """

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = _DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["X-MEXC-APIKEY"] = api_key
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(timeout_seconds),
            headers=headers,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def ping(self) -> None:
        await self._request("GET", "/api/v3/ping")

    async def exchange_info(self, *, symbol: str) -> dict[str, Any]:
        data = await self._request("GET", f"/api/v3/exchangeInfo?symbol={symbol}")
        return cast(dict[str, Any], data)

    async def account(self, signed: SignedRequest) -> dict[str, Any]:
        data = await self._request("GET", f"/api/v3/account?{signed.final_query}")
        return cast(dict[str, Any], data)

    async def balances(self, signed: SignedRequest) -> list[Balance]:
        return parse_balances(await self.account(signed))

    async def new_order(self, signed: SignedRequest) -> OrderResult:
        logger.debug("order_payload", extra={"query": signed.query_string})
        data = await self._request("POST", f"/api/v3/order?{signed.final_query}")
        return cast(OrderResult, data)

    async def _request(self, method: str, url: str) -> Any:
        path = url.split("?", 1)[0]
        try:
            response = await self._client.request(method, url)
        except httpx.TimeoutException as e:
            raise GatewayError(f"{method} {path} timed out: {e}") from e
        except httpx.TransportError as e:
            raise GatewayError(f"{method} {path} failed: {type(e).__name__}: {e}") from e

        if response.status_code >= 400:
            payload: Any
            try:
                payload = response.json()
            except ValueError:
                payload = response.text
            logger.warning(
                "exchange_error",
                extra={"status_code": response.status_code, "path": path},
            )
            raise GatewayError(
                f"MEXC API error: status={response.status_code} payload={payload!r}",
                status_code=response.status_code,
                exchange_message=_exchange_message(payload),
                payload=payload,
            )

        try:
            return response.json()
        except ValueError as e:
            raise GatewayError(
                f"{method} {path} returned a non-JSON body",
                status_code=response.status_code,
                payload=response.text,
            ) from e

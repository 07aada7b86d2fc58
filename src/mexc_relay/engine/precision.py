from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Protocol

from mexc_relay.errors import MetadataError
from mexc_relay.types import SymbolPrecision

logger = logging.getLogger("mexc_relay.precision")


class ExchangeInfoSource(Protocol):
    async def exchange_info(self, *, symbol: str) -> dict[str, Any]: ...


def step_size_decimals(step_size: Decimal) -> int:
    """Digits after the decimal point in a lot-size step, trailing zeros ignored.

    "0.1" -> 1, "1" -> 0, "0.001" -> 3, "0.10000000" -> 1, "10" -> 0.
    """
    exponent = step_size.normalize().as_tuple().exponent
    if not isinstance(exponent, int):
        raise MetadataError(f"invalid step size: {step_size}")
    return max(0, -exponent)


def extract_symbol_precision(exchange_info: dict[str, Any], *, symbol: str) -> SymbolPrecision:
    symbols = exchange_info.get("symbols", [])
    if not isinstance(symbols, list):
        symbols = []
    entry: Optional[dict[str, Any]] = None
    for s in symbols:
        if isinstance(s, dict) and str(s.get("symbol", "")).upper() == symbol.upper():
            entry = s
            break
    if entry is None:
        raise MetadataError(f"unknown symbol: {symbol}")

    filters = entry.get("filters", [])
    if not isinstance(filters, list):
        filters = []
    for f in filters:
        if not isinstance(f, dict) or f.get("filterType") != "LOT_SIZE":
            continue
        raw_step = f.get("stepSize")
        try:
            step = Decimal(str(raw_step))
        except (InvalidOperation, ValueError) as e:
            raise MetadataError(f"{symbol}: invalid LOT_SIZE stepSize {raw_step!r}") from e
        if not step.is_finite() or step <= 0:
            raise MetadataError(f"{symbol}: invalid LOT_SIZE stepSize {raw_step!r}")
        return SymbolPrecision(
            symbol=symbol,
            step_size=step,
            quantity_decimals=step_size_decimals(step),
        )
    raise MetadataError(f"{symbol}: LOT_SIZE rule not found")


class PrecisionResolver:
    def __init__(self, *, client: ExchangeInfoSource) -> None:
        self._client = client

    async def resolve(self, symbol: str) -> SymbolPrecision:
        exchange_info = await self._client.exchange_info(symbol=symbol)
        precision = extract_symbol_precision(exchange_info, symbol=symbol)
        logger.info(
            "precision_resolved",
            extra={"symbol": symbol, "precision": precision.quantity_decimals},
        )
        return precision

    async def resolve_quantity_precision(self, symbol: str) -> int:
        return (await self.resolve(symbol)).quantity_decimals


class CachedPrecisionResolver(PrecisionResolver):
    """Keeps resolved precisions in memory until `invalidate` is called."""

    def __init__(self, *, client: ExchangeInfoSource) -> None:
        super().__init__(client=client)
        self._cache: dict[str, SymbolPrecision] = {}

    async def resolve(self, symbol: str) -> SymbolPrecision:
        key = symbol.upper()
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        precision = await super().resolve(symbol)
        self._cache[key] = precision
        return precision

    def invalidate(self, symbol: str | None = None) -> None:
        if symbol is None:
            self._cache.clear()
        else:
            self._cache.pop(symbol.upper(), None)

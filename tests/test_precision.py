import asyncio
from decimal import Decimal
from typing import Any

import pytest

from mexc_relay.engine.precision import (
    CachedPrecisionResolver,
    PrecisionResolver,
    extract_symbol_precision,
    step_size_decimals,
)
from mexc_relay.errors import MetadataError


def _info(symbol: str, step: str | None) -> dict[str, Any]:
    filters: list[dict[str, Any]] = [{"filterType": "PRICE_FILTER", "tickSize": "0.0001"}]
    if step is not None:
        filters.append({"filterType": "LOT_SIZE", "minQty": step, "stepSize": step})
    return {"symbols": [{"symbol": symbol, "filters": filters}]}


class _FakeInfoClient:
    def __init__(self, info: dict[str, Any]) -> None:
        self.info = info
        self.calls = 0

    async def exchange_info(self, *, symbol: str) -> dict[str, Any]:
        self.calls += 1
        return self.info


@pytest.mark.parametrize(
    ("step", "expected"),
    [
        ("0.1", 1),
        ("1", 0),
        ("0.001", 3),
        ("0.10000000", 1),
        ("1.00000000", 0),
        ("10", 0),
    ],
)
def test_step_size_decimals(step: str, expected: int) -> None:
    assert step_size_decimals(Decimal(step)) == expected


def test_resolve_quantity_precision_reads_lot_size() -> None:
    client = _FakeInfoClient(_info("XRPUSDT", "0.1"))
    resolver = PrecisionResolver(client=client)
    assert asyncio.run(resolver.resolve_quantity_precision("XRPUSDT")) == 1


def test_unknown_symbol_raises_metadata_error() -> None:
    with pytest.raises(MetadataError):
        extract_symbol_precision(_info("BTCUSDT", "0.0001"), symbol="XRPUSDT")


def test_missing_lot_size_raises_metadata_error() -> None:
    with pytest.raises(MetadataError):
        extract_symbol_precision(_info("XRPUSDT", None), symbol="XRPUSDT")


@pytest.mark.parametrize("step", ["0", "-0.1", "n/a"])
def test_invalid_step_raises_metadata_error(step: str) -> None:
    with pytest.raises(MetadataError):
        extract_symbol_precision(_info("XRPUSDT", step), symbol="XRPUSDT")


def test_uncached_resolver_fetches_every_time() -> None:
    client = _FakeInfoClient(_info("XRPUSDT", "0.01"))
    resolver = PrecisionResolver(client=client)

    async def _run() -> None:
        await resolver.resolve_quantity_precision("XRPUSDT")
        await resolver.resolve_quantity_precision("XRPUSDT")

    asyncio.run(_run())
    assert client.calls == 2


def test_cached_resolver_reuses_until_invalidated() -> None:
    client = _FakeInfoClient(_info("XRPUSDT", "0.01"))
    resolver = CachedPrecisionResolver(client=client)

    async def _run() -> list[int]:
        first = await resolver.resolve_quantity_precision("XRPUSDT")
        second = await resolver.resolve_quantity_precision("xrpusdt")
        resolver.invalidate("XRPUSDT")
        client.info = _info("XRPUSDT", "1")
        third = await resolver.resolve_quantity_precision("XRPUSDT")
        return [first, second, third]

    assert asyncio.run(_run()) == [2, 2, 0]
    assert client.calls == 2

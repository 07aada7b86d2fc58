import asyncio
from decimal import Decimal
from typing import Any, Optional

import pytest

from mexc_relay.engine.closer import PositionCloser
from mexc_relay.engine.orders import OrderBuilder
from mexc_relay.engine.precision import PrecisionResolver
from mexc_relay.engine.relay import SignalRelay, classify
from mexc_relay.errors import ValidationError
from mexc_relay.exchange.signing import RequestSigner
from mexc_relay.types import Balance, Credentials, OrderResult, RequestKind, Signal, SignedRequest


class _CountingGateway:
    def __init__(self) -> None:
        self.calls = 0
        self.orders: list[SignedRequest] = []

    async def balances(self, signed: SignedRequest) -> list[Balance]:
        self.calls += 1
        return [Balance(asset="XRP", free=Decimal("100"))]

    async def exchange_info(self, *, symbol: str) -> dict[str, Any]:
        self.calls += 1
        return {"symbols": [{"symbol": symbol, "filters": [{"filterType": "LOT_SIZE", "stepSize": "0.1"}]}]}

    async def new_order(self, signed: SignedRequest) -> OrderResult:
        self.calls += 1
        self.orders.append(signed)
        return {"orderId": str(len(self.orders))}


def _relay(
    gateway: _CountingGateway,
    *,
    threshold: Optional[Decimal] = Decimal("1"),
) -> SignalRelay:
    builder = OrderBuilder(
        signer=RequestSigner(Credentials(api_key="k", api_secret="s")),
        clock=lambda: 1_700_000_000_000,
    )
    closer = PositionCloser(
        client=gateway,
        builder=builder,
        resolver=PrecisionResolver(client=gateway),
    )
    return SignalRelay(client=gateway, builder=builder, closer=closer, close_threshold=threshold)


def test_large_sell_routes_to_position_closer() -> None:
    gateway = _CountingGateway()
    signal = Signal(symbol="XRPUSDT", side="SELL", type="MARKET", quantity="5")

    asyncio.run(_relay(gateway).handle(signal))

    # balance + metadata + order
    assert gateway.calls == 3
    assert dict(gateway.orders[0].params)["quantity"] == "99.0"


def test_small_sell_routes_to_order_builder() -> None:
    gateway = _CountingGateway()
    signal = Signal(symbol="XRPUSDT", side="SELL", type="MARKET", quantity="0.5")

    result = asyncio.run(_relay(gateway).handle(signal))

    assert result == {"orderId": "1"}
    assert gateway.calls == 1
    assert dict(gateway.orders[0].params)["quantity"] == "0.5"


def test_quantity_equal_to_threshold_is_a_normal_order() -> None:
    signal = Signal(symbol="XRPUSDT", side="SELL", type="MARKET", quantity="1")
    assert classify(signal, close_threshold=Decimal("1")) is RequestKind.PLACE_ORDER


def test_large_buy_is_a_normal_order() -> None:
    signal = Signal(symbol="XRPUSDT", side="BUY", type="MARKET", quantity="500")
    assert classify(signal, close_threshold=Decimal("1")) is RequestKind.PLACE_ORDER


def test_explicit_action_overrides_threshold() -> None:
    close = Signal(symbol="XRPUSDT", side="SELL", type="MARKET", quantity="0.5", action="close_position")
    place = Signal(symbol="XRPUSDT", side="SELL", type="MARKET", quantity="5", action="PLACE_ORDER")
    assert classify(close, close_threshold=Decimal("1")) is RequestKind.CLOSE_POSITION
    assert classify(place, close_threshold=Decimal("1")) is RequestKind.PLACE_ORDER


def test_disabled_threshold_never_infers_close() -> None:
    gateway = _CountingGateway()
    signal = Signal(symbol="XRPUSDT", side="SELL", type="MARKET", quantity="5")

    asyncio.run(_relay(gateway, threshold=None).handle(signal))

    assert gateway.calls == 1
    assert dict(gateway.orders[0].params)["quantity"] == "5"


def test_unknown_action_is_rejected_without_network() -> None:
    gateway = _CountingGateway()
    signal = Signal(symbol="XRPUSDT", side="SELL", type="MARKET", quantity="5", action="FLATTEN")

    with pytest.raises(ValidationError):
        asyncio.run(_relay(gateway).handle(signal))

    assert gateway.calls == 0


@pytest.mark.parametrize(
    "signal",
    [
        Signal(symbol=None, side="SELL", type="MARKET", quantity="5"),
        Signal(symbol="XRPUSDT", side=None, type="MARKET", quantity="5"),
        Signal(symbol="XRPUSDT", side="SELL", type="", quantity="5"),
        Signal(symbol="XRPUSDT", side="SELL", type="MARKET", quantity=None),
    ],
)
def test_missing_field_never_reaches_network(signal: Signal) -> None:
    gateway = _CountingGateway()

    with pytest.raises(ValidationError):
        asyncio.run(_relay(gateway).handle(signal))

    assert gateway.calls == 0


def test_missing_field_with_explicit_close_never_reaches_network() -> None:
    gateway = _CountingGateway()
    signal = Signal(symbol="XRPUSDT", side="SELL", type="MARKET", quantity=None, action="CLOSE_POSITION")

    with pytest.raises(ValidationError):
        asyncio.run(_relay(gateway).handle(signal))

    assert gateway.calls == 0


@pytest.mark.parametrize(
    "signal",
    [
        Signal(symbol="XRPUSDT", side="BUY", type="MARKET", quantity="1", action="CLOSE_POSITION"),
        Signal(symbol="XRPUSDT", side="SELL", type="FOO", quantity="1", action="CLOSE_POSITION"),
        Signal(symbol="XRPUSDT", side="HOLD", type="MARKET", quantity="1", action="CLOSE_POSITION"),
        Signal(symbol="XRPUSDT", side="BUY", type="FOO", quantity="1", action="PLACE_ORDER"),
    ],
)
def test_explicit_action_still_validates_side_and_type(signal: Signal) -> None:
    gateway = _CountingGateway()

    with pytest.raises(ValidationError):
        asyncio.run(_relay(gateway).handle(signal))

    assert gateway.calls == 0
    assert gateway.orders == []

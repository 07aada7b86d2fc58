from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional, Protocol

from mexc_relay.engine.closer import PositionCloser
from mexc_relay.engine.orders import (
    OrderBuilder,
    normalize_order_type,
    normalize_side,
    parse_decimal,
    validate_required_fields,
)
from mexc_relay.engine.precision import CachedPrecisionResolver, PrecisionResolver
from mexc_relay.errors import ValidationError
from mexc_relay.exchange.mexc_spot import MexcSpotClient
from mexc_relay.exchange.signing import RequestSigner
from mexc_relay.settings import Settings
from mexc_relay.types import OrderResult, RequestKind, Signal, SignedRequest

logger = logging.getLogger("mexc_relay.relay")


class OrderGateway(Protocol):
    async def new_order(self, signed: SignedRequest) -> OrderResult: ...


def classify(signal: Signal, *, close_threshold: Optional[Decimal]) -> RequestKind:
    """Decide whether a validated signal places an order or closes a position.

    An explicit `action` always wins. Without one, a SELL whose quantity is
    above `close_threshold` is read as a close; `None` turns that off.
    """
    if signal.action is not None and signal.action.strip():
        try:
            return RequestKind(signal.action.strip().upper())
        except ValueError as e:
            kinds = ", ".join(k.value for k in RequestKind)
            raise ValidationError(f"action must be one of {kinds}, got {signal.action!r}") from e

    if close_threshold is None:
        return RequestKind.PLACE_ORDER
    side = normalize_side(signal.side)
    quantity = parse_decimal("quantity", str(signal.quantity).strip())
    if side == "SELL" and quantity > close_threshold:
        logger.warning(
            "close_inferred_from_quantity",
            extra={"symbol": signal.symbol, "qty": str(quantity), "threshold": str(close_threshold)},
        )
        return RequestKind.CLOSE_POSITION
    return RequestKind.PLACE_ORDER


class SignalRelay:
    def __init__(
        self,
        *,
        client: OrderGateway,
        builder: OrderBuilder,
        closer: PositionCloser,
        close_threshold: Optional[Decimal] = Decimal("1"),
    ) -> None:
        self._client = client
        self._builder = builder
        self._closer = closer
        self._close_threshold = close_threshold

    async def handle(self, signal: Signal) -> OrderResult:
        validate_required_fields(
            symbol=signal.symbol,
            side=signal.side,
            order_type=signal.type,
            quantity=signal.quantity,
        )
        side = normalize_side(signal.side)
        normalize_order_type(signal.type)
        kind = classify(signal, close_threshold=self._close_threshold)
        if kind is RequestKind.CLOSE_POSITION and side != "SELL":
            raise ValidationError(f"{kind.value} requires side SELL, got {signal.side!r}")
        logger.info(
            "signal_received",
            extra={
                "symbol": signal.symbol,
                "side": signal.side,
                "order_type": signal.type,
                "qty": signal.quantity,
                "kind": kind.value,
            },
        )
        if kind is RequestKind.CLOSE_POSITION:
            return await self._closer.close_position(str(signal.symbol))
        return await self.place_order(signal)

    async def place_order(self, signal: Signal) -> OrderResult:
        signed = self._builder.build_order(
            symbol=signal.symbol,
            side=signal.side,
            order_type=signal.type,
            quantity=signal.quantity,
            price=signal.price,
        )
        result = await self._client.new_order(signed)
        logger.info(
            "order_submitted",
            extra={
                "symbol": signal.symbol,
                "side": signal.side,
                "order_type": signal.type,
                "qty": signal.quantity,
                "order_id": str(result.get("orderId", "")),
            },
        )
        return result


def build_relay(*, settings: Settings, client: MexcSpotClient) -> SignalRelay:
    builder = OrderBuilder(signer=RequestSigner(settings.credentials()))
    resolver = (
        CachedPrecisionResolver(client=client)
        if settings.precision_cache_enabled
        else PrecisionResolver(client=client)
    )
    closer = PositionCloser(
        client=client,
        builder=builder,
        resolver=resolver,
        safety_margin=settings.close_safety_margin,
        quote_asset=settings.quote_asset,
    )
    return SignalRelay(
        client=client,
        builder=builder,
        closer=closer,
        close_threshold=settings.close_quantity_threshold,
    )

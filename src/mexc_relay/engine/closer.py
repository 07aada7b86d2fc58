from __future__ import annotations

import logging
from decimal import ROUND_DOWN, Decimal, localcontext
from typing import Any, Protocol

from mexc_relay.engine.orders import OrderBuilder
from mexc_relay.engine.precision import PrecisionResolver
from mexc_relay.errors import InsufficientBalanceError, ValidationError
from mexc_relay.types import Balance, OrderResult, SignedRequest

logger = logging.getLogger("mexc_relay.closer")

DEFAULT_SAFETY_MARGIN = Decimal("0.99")


class CloserGateway(Protocol):
    async def balances(self, signed: SignedRequest) -> list[Balance]: ...

    async def exchange_info(self, *, symbol: str) -> dict[str, Any]: ...

    async def new_order(self, signed: SignedRequest) -> OrderResult: ...


def base_asset_for(symbol: str, *, quote_asset: str) -> str:
    s = symbol.strip().upper()
    quote = quote_asset.strip().upper()
    if not s.endswith(quote) or len(s) <= len(quote):
        raise ValidationError(f"symbol {symbol!r} is not quoted in {quote}")
    return s[: -len(quote)]


def free_balance(balances: list[Balance], *, asset: str) -> Decimal:
    for b in balances:
        if b.asset.upper() == asset.upper():
            return b.free
    return Decimal("0")


def truncate_quantity(quantity: Decimal, decimals: int) -> str:
    """Round down to `decimals` places and render as fixed-point text.

    Trailing zeros are kept ("50.0" at one decimal, "50" at zero).
    """
    exp = Decimal(1).scaleb(-decimals)
    with localcontext() as ctx:
        # quantize needs room for every integer digit plus `decimals`.
        ctx.prec = max(ctx.prec, quantity.adjusted() + 1 + decimals)
        return format(quantity.quantize(exp, rounding=ROUND_DOWN), "f")


class PositionCloser:
    """Sells the free balance of a symbol's base asset with a MARKET order.

    Stages run in order (balance, validation, precision, rounding, submit) and
    the first failure ends the close; nothing is retried.
    """

    def __init__(
        self,
        *,
        client: CloserGateway,
        builder: OrderBuilder,
        resolver: PrecisionResolver,
        safety_margin: Decimal = DEFAULT_SAFETY_MARGIN,
        quote_asset: str = "USDT",
    ) -> None:
        if not (Decimal("0") < safety_margin <= Decimal("1")):
            raise ValueError("safety_margin must be in (0, 1]")
        self._client = client
        self._builder = builder
        self._resolver = resolver
        self._safety_margin = safety_margin
        self._quote_asset = quote_asset

    async def sell_quantity(self, symbol: str) -> str:
        base_asset = base_asset_for(symbol, quote_asset=self._quote_asset)

        balances = await self._client.balances(self._builder.build_signed())
        free = free_balance(balances, asset=base_asset)

        sellable = free * self._safety_margin
        if sellable <= 0:
            raise InsufficientBalanceError(f"no free {base_asset} balance to sell")

        decimals = await self._resolver.resolve_quantity_precision(symbol)
        quantity = truncate_quantity(sellable, decimals)
        if Decimal(quantity) <= 0:
            raise InsufficientBalanceError(
                f"free {base_asset} balance {free} rounds to zero at {decimals} decimals"
            )
        logger.info(
            "close_quantity",
            extra={"symbol": symbol, "asset": base_asset, "free": str(free), "qty": quantity},
        )
        return quantity

    async def close_position(self, symbol: str) -> OrderResult:
        symbol = symbol.strip().upper()
        logger.info("close_started", extra={"symbol": symbol})
        quantity = await self.sell_quantity(symbol)
        signed = self._builder.build_order(
            symbol=symbol,
            side="SELL",
            order_type="MARKET",
            quantity=quantity,
        )
        result = await self._client.new_order(signed)
        logger.info(
            "close_submitted",
            extra={"symbol": symbol, "qty": quantity, "order_id": str(result.get("orderId", ""))},
        )
        return result

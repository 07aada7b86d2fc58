from __future__ import annotations

import re
import time
from collections.abc import Callable
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, cast

from mexc_relay.errors import ValidationError
from mexc_relay.exchange.signing import RequestSigner
from mexc_relay.types import ORDER_TYPES, SIDES, OrderRequest, OrderType, Side, SignedRequest

Clock = Callable[[], int]

_FIXED_POINT = re.compile(r"\d+(\.\d+)?")


def now_ms() -> int:
    return int(time.time() * 1000)


def _required(name: str, value: Any) -> str:
    if value is None:
        raise ValidationError(f"{name} is required")
    text = str(value).strip()
    if not text:
        raise ValidationError(f"{name} is required")
    return text


def parse_decimal(name: str, value: str) -> Decimal:
    try:
        parsed = Decimal(value)
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"{name} must be a decimal number, got {value!r}") from e
    if not parsed.is_finite():
        raise ValidationError(f"{name} must be a decimal number, got {value!r}")
    return parsed


def decimal_text(raw: str, parsed: Decimal) -> str:
    """Wire form of a decimal: the caller's text if plain fixed-point, else `format(parsed, "f")`.

    "12.50" stays "12.50"; "1e-5" and "1E+2" become "0.00001" and "100".
    """
    if _FIXED_POINT.fullmatch(raw):
        return raw
    return format(parsed, "f")


def normalize_side(value: Any) -> Side:
    side = _required("side", value).upper()
    if side not in SIDES:
        raise ValidationError(f"side must be one of {', '.join(SIDES)}, got {value!r}")
    return cast(Side, side)


def normalize_order_type(value: Any) -> OrderType:
    order_type = _required("type", value).upper()
    if order_type not in ORDER_TYPES:
        raise ValidationError(
            f"type must be one of {', '.join(ORDER_TYPES)}, got {value!r}"
        )
    return cast(OrderType, order_type)


def validate_required_fields(
    *,
    symbol: Any,
    side: Any,
    order_type: Any,
    quantity: Any,
) -> None:
    missing = [
        name
        for name, value in (
            ("symbol", symbol),
            ("side", side),
            ("type", order_type),
            ("quantity", quantity),
        )
        if value is None or not str(value).strip()
    ]
    if missing:
        raise ValidationError(f"missing required fields: {', '.join(missing)}")


class OrderBuilder:
    """Turns validated order fields into a signed MEXC order query.

    The query field order is symbol, side, type, quantity, timestamp and then
    price (LIMIT only). MEXC signs the raw string, so this order is part of the
    wire contract.
    """

    def __init__(self, *, signer: RequestSigner, clock: Clock = now_ms) -> None:
        self._signer = signer
        self._clock = clock

    def build_request(
        self,
        *,
        symbol: Any,
        side: Any,
        order_type: Any,
        quantity: Any,
        price: Any = None,
    ) -> OrderRequest:
        validate_required_fields(
            symbol=symbol, side=side, order_type=order_type, quantity=quantity
        )
        symbol_s = _required("symbol", symbol).upper()
        side_s = normalize_side(side)
        type_s = normalize_order_type(order_type)
        raw_qty = _required("quantity", quantity)
        qty = parse_decimal("quantity", raw_qty)
        if qty <= 0:
            raise ValidationError(f"quantity must be > 0, got {raw_qty!r}")
        qty_s = decimal_text(raw_qty, qty)

        price_s: Optional[str] = None
        if price is not None and str(price).strip():
            raw_price = str(price).strip()
            parsed_price = parse_decimal("price", raw_price)
            if parsed_price > 0 and type_s == "LIMIT":
                price_s = decimal_text(raw_price, parsed_price)

        return OrderRequest(
            symbol=symbol_s,
            side=side_s,
            order_type=type_s,
            quantity=qty_s,
            timestamp=self._clock(),
            price=price_s,
        )

    def build_order(
        self,
        *,
        symbol: Any,
        side: Any,
        order_type: Any,
        quantity: Any,
        price: Any = None,
    ) -> SignedRequest:
        order = self.build_request(
            symbol=symbol,
            side=side,
            order_type=order_type,
            quantity=quantity,
            price=price,
        )
        return self._signer.sign(order.params())

    def build_signed(self, params: Optional[list[tuple[str, Any]]] = None) -> SignedRequest:
        items = list(params or [])
        items.append(("timestamp", self._clock()))
        return self._signer.sign(items)

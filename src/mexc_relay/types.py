from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Literal, Optional

Side = Literal["BUY", "SELL"]
OrderType = Literal["MARKET", "LIMIT"]

SIDES: tuple[str, ...] = ("BUY", "SELL")
ORDER_TYPES: tuple[str, ...] = ("MARKET", "LIMIT")

# Raw exchange response, passed through to the caller unmodified.
OrderResult = dict[str, Any]


class RequestKind(str, Enum):
    PLACE_ORDER = "PLACE_ORDER"
    CLOSE_POSITION = "CLOSE_POSITION"


@dataclass(frozen=True)
class Credentials:
    api_key: str
    api_secret: str

    def __repr__(self) -> str:
        return f"Credentials(api_key={self.api_key[:4]!r}..., api_secret='***')"


@dataclass(frozen=True)
class Signal:
    symbol: str | None
    side: str | None
    type: str | None
    quantity: str | None
    price: str | None = None
    action: str | None = None


@dataclass(frozen=True)
class OrderRequest:
    symbol: str
    side: Side
    order_type: OrderType
    # Decimal strings, never floats: they are signed and sent verbatim.
    quantity: str
    timestamp: int
    price: Optional[str] = None

    def params(self) -> list[tuple[str, str]]:
        items = [
            ("symbol", self.symbol),
            ("side", self.side),
            ("type", self.order_type),
            ("quantity", self.quantity),
            ("timestamp", str(self.timestamp)),
        ]
        if self.price is not None:
            items.append(("price", self.price))
        return items


@dataclass(frozen=True)
class SignedRequest:
    params: tuple[tuple[str, str], ...]
    query_string: str
    signature: str

    @property
    def final_query(self) -> str:
        return f"{self.query_string}&signature={self.signature}"


@dataclass(frozen=True)
class SymbolPrecision:
    symbol: str
    step_size: Decimal
    quantity_decimals: int


@dataclass(frozen=True)
class Balance:
    asset: str
    free: Decimal
    locked: Decimal = Decimal("0")

__all__ = [
    "CachedPrecisionResolver",
    "OrderBuilder",
    "PositionCloser",
    "PrecisionResolver",
    "SignalRelay",
]

from mexc_relay.engine.closer import PositionCloser
from mexc_relay.engine.orders import OrderBuilder
from mexc_relay.engine.precision import CachedPrecisionResolver, PrecisionResolver
from mexc_relay.engine.relay import SignalRelay

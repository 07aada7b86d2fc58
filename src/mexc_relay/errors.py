from __future__ import annotations

from typing import Any


class RelayError(RuntimeError):
    pass


class ConfigError(RelayError):
    pass


class ValidationError(RelayError):
    pass


class MetadataError(RelayError):
    pass


class InsufficientBalanceError(RelayError):
    pass


class GatewayError(RelayError):
    """Network, HTTP or exchange-reported failure of a single gateway call.

    `exchange_message` is the exchange's own `msg` when the response carried one;
    it is preferred over the transport text when rendering the error.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        exchange_message: str | None = None,
        payload: Any = None,
    ) -> None:
        super().__init__(exchange_message or message)
        self.status_code = status_code
        self.exchange_message = exchange_message
        self.payload = payload

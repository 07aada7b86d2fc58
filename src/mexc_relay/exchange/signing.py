from __future__ import annotations

import hmac
from collections.abc import Iterable, Mapping
from decimal import Decimal
from hashlib import sha256
from typing import Any, Union

from mexc_relay.errors import ConfigError
from mexc_relay.types import Credentials, SignedRequest

Params = Union[Mapping[str, Any], Iterable[tuple[str, Any]]]


def _normalize_value(value: Any) -> str:
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(value)


def _items(params: Params) -> list[tuple[str, str]]:
    pairs = params.items() if isinstance(params, Mapping) else params
    return [(str(k), _normalize_value(v)) for k, v in pairs if v is not None]


def build_query_string(params: Params) -> str:
    # Insertion order, no sorting and no percent-encoding: MEXC recomputes the
    # signature over the raw string exactly as sent.
    return "&".join(f"{k}={v}" for k, v in _items(params))


def sign_query_string(query_string: str, api_secret: str) -> str:
    mac = hmac.new(api_secret.encode("utf-8"), query_string.encode("utf-8"), sha256)
    return mac.hexdigest()


class RequestSigner:
    def __init__(self, credentials: Credentials) -> None:
        if not credentials.api_secret:
            raise ConfigError("MEXC_API_SECRET is required to sign requests")
        self._credentials = credentials

    @property
    def api_key(self) -> str:
        return self._credentials.api_key

    def sign(self, params: Params) -> SignedRequest:
        items = _items(params)
        query_string = build_query_string(items)
        return SignedRequest(
            params=tuple(items),
            query_string=query_string,
            signature=sign_query_string(query_string, self._credentials.api_secret),
        )

__all__ = ["MexcSpotClient", "RequestSigner", "build_query_string", "sign_query_string"]

from mexc_relay.exchange.mexc_spot import MexcSpotClient
from mexc_relay.exchange.signing import RequestSigner, build_query_string, sign_query_string

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, field_validator

from mexc_relay.engine.relay import SignalRelay, build_relay
from mexc_relay.errors import (
    GatewayError,
    InsufficientBalanceError,
    MetadataError,
    RelayError,
    ValidationError,
)
from mexc_relay.exchange.mexc_spot import MexcSpotClient
from mexc_relay.settings import Settings
from mexc_relay.types import Signal

logger = logging.getLogger("mexc_relay.api")


class SignalPayload(BaseModel):
    symbol: Optional[str] = None
    side: Optional[str] = None
    type: Optional[str] = None
    quantity: Optional[str] = None
    price: Optional[str] = None
    action: Optional[str] = None

    # TradingView may send numbers; keep them as decimal text, never floats.
    @field_validator("quantity", "price", mode="before")
    @classmethod
    def _number_to_text(cls, value: Any) -> Any:
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return str(value)
        return value

    def to_signal(self) -> Signal:
        return Signal(
            symbol=self.symbol,
            side=self.side,
            type=self.type,
            quantity=self.quantity,
            price=self.price,
            action=self.action,
        )


def _status_for(error: RelayError) -> int:
    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, (InsufficientBalanceError, MetadataError)):
        return 422
    if isinstance(error, GatewayError):
        return 502
    return 500


def error_response(error: RelayError) -> JSONResponse:
    body: dict[str, Any] = {
        "status": "error",
        "error": type(error).__name__,
        "message": str(error),
    }
    if isinstance(error, GatewayError) and error.status_code is not None:
        body["status_code"] = error.status_code
    return JSONResponse(status_code=_status_for(error), content=body)


def _describe_payload_errors(exc: RequestValidationError) -> str:
    parts: list[str] = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())[1:]) or "body"
        parts.append(f"{loc}: {err.get('msg', 'invalid')}")
    return "invalid payload: " + "; ".join(parts)


def create_app(
    settings: Settings,
    *,
    client: MexcSpotClient | None = None,
) -> FastAPI:
    # Fail at startup, not on the first signal.
    credentials = settings.credentials()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_gateway = client is None
        gateway = client or MexcSpotClient(
            api_key=credentials.api_key,
            base_url=settings.mexc_base_url,
            timeout_seconds=settings.request_timeout_seconds,
        )
        app.state.relay = build_relay(settings=settings, client=gateway)
        logger.info("relay_started")
        try:
            yield
        finally:
            if owns_gateway:
                await gateway.aclose()
            logger.info("relay_stopped")

    app = FastAPI(lifespan=lifespan)

    @app.exception_handler(RequestValidationError)
    async def invalid_payload(request: Request, exc: RequestValidationError) -> JSONResponse:
        return error_response(ValidationError(_describe_payload_errors(exc)))

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/webhook")
    async def webhook(payload: SignalPayload, request: Request) -> Any:
        relay: SignalRelay = request.app.state.relay
        try:
            result = await relay.handle(payload.to_signal())
        except RelayError as e:
            logger.warning(
                "signal_failed",
                extra={"symbol": payload.symbol, "error": type(e).__name__},
            )
            return error_response(e)
        return {"status": "ok", "result": result}

    return app

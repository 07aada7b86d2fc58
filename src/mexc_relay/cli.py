from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional

import typer
import uvicorn

from mexc_relay.api import create_app
from mexc_relay.engine.relay import build_relay
from mexc_relay.errors import ConfigError, RelayError
from mexc_relay.exchange import MexcSpotClient
from mexc_relay.logging_utils import configure_logging
from mexc_relay.settings import Settings
from mexc_relay.types import OrderResult, RequestKind, Signal

app = typer.Typer(no_args_is_help=True, add_completion=False)
logger = logging.getLogger("mexc_relay")


def _load_settings() -> Settings:
    settings = Settings()
    configure_logging(settings.log_level)
    return settings


def _client(settings: Settings) -> MexcSpotClient:
    return MexcSpotClient(
        api_key=settings.mexc_api_key,
        base_url=settings.mexc_base_url,
        timeout_seconds=settings.request_timeout_seconds,
    )


def _run_signal(settings: Settings, signal: Signal) -> OrderResult:
    async def _run() -> OrderResult:
        client = _client(settings)
        try:
            relay = build_relay(settings=settings, client=client)
            return await relay.handle(signal)
        finally:
            await client.aclose()

    try:
        return asyncio.run(_run())
    except ConfigError as e:
        raise typer.BadParameter(str(e)) from e
    except RelayError as e:
        typer.echo(json.dumps({"status": "error", "error": type(e).__name__, "message": str(e)}))
        raise typer.Exit(code=1) from e


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Bind address (default: HOST)."),
    port: Optional[int] = typer.Option(None, help="Bind port (default: PORT)."),
) -> None:
    """
    Run the webhook server.
    """
    settings = _load_settings()
    try:
        web_app = create_app(settings)
    except ConfigError as e:
        raise typer.BadParameter(str(e)) from e
    uvicorn.run(
        web_app,
        host=host or settings.host,
        port=port or settings.port,
        log_config=None,
    )


@app.command()
def show_config() -> None:
    settings = _load_settings()
    redacted = settings.model_dump(mode="json")
    redacted["mexc_api_secret"] = "***" if redacted["mexc_api_secret"] else ""
    logger.info("loaded_config")
    typer.echo(redacted)


@app.command()
def health() -> None:
    """
    Ping MEXC.
    """
    settings = _load_settings()

    async def _run() -> None:
        client = _client(settings)
        try:
            await client.ping()
            typer.echo({"ok": True, "base_url": settings.mexc_base_url})
        finally:
            await client.aclose()

    asyncio.run(_run())


@app.command()
def order(
    symbol: str = typer.Argument(..., help="Exchange ticker, e.g. XRPUSDT."),
    side: str = typer.Argument(..., help="BUY or SELL."),
    order_type: str = typer.Argument(..., metavar="TYPE", help="MARKET or LIMIT."),
    quantity: str = typer.Argument(..., help="Base asset quantity as a decimal."),
    price: Optional[str] = typer.Option(None, help="Limit price (LIMIT only)."),
) -> None:
    """
    Place a single order.
    """
    settings = _load_settings()
    signal = Signal(
        symbol=symbol,
        side=side,
        type=order_type,
        quantity=quantity,
        price=price,
        action=RequestKind.PLACE_ORDER.value,
    )
    result = _run_signal(settings, signal)
    typer.echo(json.dumps({"status": "ok", "result": result}))


@app.command()
def close(symbol: str = typer.Argument(..., help="Exchange ticker, e.g. XRPUSDT.")) -> None:
    """
    Sell the free balance of the symbol's base asset at market.
    """
    settings = _load_settings()
    signal = Signal(
        symbol=symbol,
        side="SELL",
        type="MARKET",
        # Not used for the close itself; only satisfies field validation.
        quantity="0",
        action=RequestKind.CLOSE_POSITION.value,
    )
    result = _run_signal(settings, signal)
    typer.echo(json.dumps({"status": "ok", "result": result}))

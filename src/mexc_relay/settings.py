from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from mexc_relay.errors import ConfigError
from mexc_relay.types import Credentials


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # MEXC (spot)
    mexc_api_key: str = Field(default="", validation_alias="MEXC_API_KEY")
    mexc_api_secret: str = Field(default="", validation_alias="MEXC_API_SECRET")
    mexc_base_url: str = Field(default="https://api.mexc.com", validation_alias="MEXC_BASE_URL")
    request_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        validation_alias="REQUEST_TIMEOUT_SECONDS",
    )

    # Orders
    quote_asset: str = Field(default="USDT", validation_alias="QUOTE_ASSET")
    close_safety_margin: Decimal = Field(
        default=Decimal("0.99"),
        gt=0,
        le=1,
        validation_alias="CLOSE_SAFETY_MARGIN",
    )
    # SELL signals above this quantity are treated as a close when no explicit
    # action is sent. Empty disables the inference.
    close_quantity_threshold: Optional[Decimal] = Field(
        default=Decimal("1"),
        validation_alias="CLOSE_QUANTITY_THRESHOLD",
    )
    precision_cache_enabled: bool = Field(default=False, validation_alias="PRECISION_CACHE_ENABLED")

    # Server
    host: str = Field(default="0.0.0.0", validation_alias="HOST")
    port: int = Field(default=3000, validation_alias="PORT")

    # Logging
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    @field_validator("close_quantity_threshold", mode="before")
    @classmethod
    def _empty_threshold_is_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def credentials(self) -> Credentials:
        missing = [
            name
            for name, value in (
                ("MEXC_API_KEY", self.mexc_api_key),
                ("MEXC_API_SECRET", self.mexc_api_secret),
            )
            if not value.strip()
        ]
        if missing:
            raise ConfigError(f"missing required settings: {', '.join(missing)}")
        return Credentials(
            api_key=self.mexc_api_key.strip(),
            api_secret=self.mexc_api_secret.strip(),
        )

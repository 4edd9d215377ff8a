from __future__ import annotations

from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_SQUARE_BASE_URLS = {
    "production": "https://connect.squareup.com",
    "sandbox": "https://connect.squareupsandbox.com",
}


class Settings(BaseSettings):
    SQUARE_ACCESS_TOKEN: str
    SQUARE_LOCATION_ID: str
    SQUARE_CATALOG_ITEM_ID: str
    SQUARE_ENVIRONMENT: Literal["production", "sandbox"] = "production"
    SQUARE_API_VERSION: str = "2024-06-04"
    SQUARE_REQUEST_TIMEOUT_SECONDS: float = 20.0

    CHECKOUT_CURRENCY: str = "USD"
    LOG_LEVEL: str = "INFO"

    @field_validator("CHECKOUT_CURRENCY")
    @classmethod
    def validate_currency(cls, value: str) -> str:
        currency = value.strip().upper()
        if len(currency) != 3 or not currency.isalpha():
            raise ValueError("CHECKOUT_CURRENCY must be a 3-letter ISO 4217 code")
        return currency

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        return value.strip().upper()

    @property
    def square_base_url(self) -> str:
        return _SQUARE_BASE_URLS[self.SQUARE_ENVIRONMENT]

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()

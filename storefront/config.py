import os
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Settings:
    # Persistence
    DATABASE_URL: str = "sqlite:///storefront.db"

    # Card processor
    STRIPE_SECRET_KEY: Optional[str] = None

    # Redirect processor
    PAYPAL_CLIENT_ID: Optional[str] = None
    PAYPAL_CLIENT_SECRET: Optional[str] = None
    PAYPAL_API_BASE: str = "https://api-m.paypal.com"

    # Storefront
    CHECKOUT_CURRENCY: str = "usd"
    STORE_BRAND_NAME: str = "Bundle Builder"
    STORE_PUBLIC_URL: str = "http://localhost:5173"
    ADMIN_API_TOKEN: Optional[str] = None

    # Outbound HTTP
    PROVIDER_TIMEOUT_SECONDS: float = 15.0


def load_settings() -> Settings:
    """
    Builds a Settings snapshot from the current environment.

    Returns:
        A frozen Settings instance; unset variables fall back to defaults.
    """
    defaults = Settings()
    return Settings(
        DATABASE_URL=os.environ.get("DATABASE_URL", defaults.DATABASE_URL),
        STRIPE_SECRET_KEY=os.environ.get("STRIPE_SECRET_KEY") or None,
        PAYPAL_CLIENT_ID=os.environ.get("PAYPAL_CLIENT_ID") or None,
        PAYPAL_CLIENT_SECRET=os.environ.get("PAYPAL_CLIENT_SECRET") or None,
        PAYPAL_API_BASE=os.environ.get("PAYPAL_API_BASE", defaults.PAYPAL_API_BASE).rstrip("/"),
        CHECKOUT_CURRENCY=os.environ.get("CHECKOUT_CURRENCY", defaults.CHECKOUT_CURRENCY).lower(),
        STORE_BRAND_NAME=os.environ.get("STORE_BRAND_NAME", defaults.STORE_BRAND_NAME),
        STORE_PUBLIC_URL=os.environ.get("STORE_PUBLIC_URL", defaults.STORE_PUBLIC_URL).rstrip("/"),
        ADMIN_API_TOKEN=os.environ.get("ADMIN_API_TOKEN") or None,
        PROVIDER_TIMEOUT_SECONDS=float(os.environ.get("PROVIDER_TIMEOUT_SECONDS", defaults.PROVIDER_TIMEOUT_SECONDS)),
    )

"""
config.py — Runtime Settings for the Checkout Service

Settings are read from the process environment. A local `.env` file is loaded
first (python-dotenv) so developers can keep provider keys out of the shell.

Environment Variables:
    PAYMENT_KEY_ID / PAYMENT_KEY_SECRET — payment provider credentials
    PAYMENT_API_URL — base URL of the payment provider API
    CURRENCY — ISO 4217 code used for payment intents
    SHIPPING_THRESHOLD / SHIPPING_FEE — free shipping rule for the web channel
    FIREBASE_CRED_JSON — path to the Firebase service account JSON
    TRACK_COUPON_USAGE — enables the coupon usage counter (off by default)
    LOG_FILE — file receiving the application log
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    """
    Immutable snapshot of the service configuration.

    Attributes:
        payment_key_id (str | None): Public key id of the payment provider.
        payment_key_secret (str | None): Shared secret, also used for signature checks.
        payment_api_url (str): Base URL for intent creation.
        currency (str): Currency of every payment intent.
        shipping_threshold (float): Subtotals strictly above this ship for free.
        shipping_fee (float): Fee charged below the threshold.
        firebase_cred_path (str | None): Service account file for Firestore.
        track_coupon_usage (bool): Whether placed orders increment coupon usage.
        log_file (str): Log file path.
        payment_connect_timeout (float): Connect timeout in seconds.
        payment_read_timeout (float): Read timeout in seconds.
    """
    payment_key_id: Optional[str] = None
    payment_key_secret: Optional[str] = None
    payment_api_url: str = "https://api.razorpay.com"
    currency: str = "INR"
    shipping_threshold: float = 999
    shipping_fee: float = 50
    firebase_cred_path: Optional[str] = None
    track_coupon_usage: bool = False
    log_file: str = "checkout.log"
    payment_connect_timeout: float = 5.0
    payment_read_timeout: float = 8.0

    @property
    def has_payment_credentials(self) -> bool:
        return bool(self.payment_key_id and self.payment_key_secret)


def load_settings() -> Settings:
    """Builds a `Settings` instance from the current environment."""
    return Settings(
        payment_key_id=os.environ.get("PAYMENT_KEY_ID"),
        payment_key_secret=os.environ.get("PAYMENT_KEY_SECRET"),
        payment_api_url=os.environ.get("PAYMENT_API_URL", "https://api.razorpay.com"),
        currency=os.environ.get("CURRENCY", "INR"),
        shipping_threshold=float(os.environ.get("SHIPPING_THRESHOLD", 999)),
        shipping_fee=float(os.environ.get("SHIPPING_FEE", 50)),
        firebase_cred_path=os.environ.get("FIREBASE_CRED_JSON"),
        track_coupon_usage=_env_bool("TRACK_COUPON_USAGE", False),
        log_file=os.environ.get("LOG_FILE", "checkout.log"),
        payment_connect_timeout=float(os.environ.get("PAYMENT_CONNECT_TIMEOUT", 5.0)),
        payment_read_timeout=float(os.environ.get("PAYMENT_READ_TIMEOUT", 8.0)),
    )

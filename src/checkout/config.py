"""Runtime settings for checkout, read from environment variables."""

import os
from dataclasses import dataclass

# Floors below which the UI would misbehave (premature geolocation timeouts,
# one postal lookup per keystroke).
MIN_GEOLOCATION_TIMEOUT = 15.0
MIN_POSTAL_DEBOUNCE_MS = 500


@dataclass(frozen=True)
class CheckoutSettings:
    payee_vpa: str
    payee_name: str
    geocoder_url: str
    geocoder_user_agent: str
    geolocation_timeout: float
    postal_debounce_seconds: float
    delivery_days: int


def load_settings() -> CheckoutSettings:
    """Build settings from the environment, enforcing the timing floors."""
    timeout = float(os.getenv("CHECKOUT_GEOLOCATION_TIMEOUT", MIN_GEOLOCATION_TIMEOUT))
    debounce_ms = int(os.getenv("CHECKOUT_POSTAL_DEBOUNCE_MS", MIN_POSTAL_DEBOUNCE_MS))

    return CheckoutSettings(
        payee_vpa=os.getenv("CHECKOUT_PAYEE_VPA", "hrejuh@upi"),
        payee_name=os.getenv("CHECKOUT_PAYEE_NAME", "Cigarro"),
        geocoder_url=os.getenv("CHECKOUT_GEOCODER_URL", "https://nominatim.openstreetmap.org/reverse"),
        geocoder_user_agent=os.getenv("CHECKOUT_GEOCODER_USER_AGENT", "storefront-checkout/1.0"),
        geolocation_timeout=max(timeout, MIN_GEOLOCATION_TIMEOUT),
        postal_debounce_seconds=max(debounce_ms, MIN_POSTAL_DEBOUNCE_MS) / 1000,
        delivery_days=int(os.getenv("CHECKOUT_DELIVERY_DAYS", "7")),
    )


settings = load_settings()

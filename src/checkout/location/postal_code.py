"""Serviceable postal codes and what they resolve to."""

from protean.fields import Boolean, Integer, String

from checkout.domain import checkout

DEFAULT_SHIPPING_METHOD = "standard"


@checkout.aggregate
class PostalCodeEntry:
    """One row of the postal code lookup table.

    Resolves a 6-digit PIN code to its city, state and country, and tells
    checkout whether deliveries are made there. ``shipping_method`` names the
    shipping option the area is served by; only non-standard values override
    the user's choice.
    """

    postal_code: String(identifier=True, max_length=10)
    city: String(required=True, max_length=100)
    state: String(required=True, max_length=100)
    country: String(max_length=100, default="India")
    is_serviceable: Boolean(default=True)
    shipping_method: String(max_length=20, default=DEFAULT_SHIPPING_METHOD)
    delivery_days: Integer(min_value=1)

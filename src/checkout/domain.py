"""Checkout bounded context.

Turns a signed-in user's cart into a confirmed order through the
Shipping, Review, Payment and Complete steps. Persistent records (orders,
saved addresses, postal codes, coupons) live in this domain; the cart and the
signed-in identity are supplied from outside through ports.
"""

from protean.domain import Domain

from checkout.utils.logging import configure_logging, get_logger

configure_logging()

logger = get_logger(__name__)

checkout = Domain(name="checkout")

"""Checkout domain API package."""

from checkout.api.routes import address_router, coupon_router, order_router, postal_code_router

__all__ = ["address_router", "postal_code_router", "coupon_router", "order_router"]

"""Repository for the Order aggregate."""

from checkout.domain import checkout
from checkout.order.order import Order


@checkout.repository(part_of=Order)
class OrderRepository:
    def by_checkout(self, checkout_id: str) -> Order | None:
        """The order placed from a given checkout session, if any."""
        return self._dao.query.filter(checkout_id=checkout_id).all().first

    def count_with_coupon(self, user_id: str, coupon_code: str) -> int:
        """How many of the user's orders redeemed ``coupon_code``."""
        return len(self._dao.query.filter(user_id=str(user_id), coupon_code=coupon_code).all().items)

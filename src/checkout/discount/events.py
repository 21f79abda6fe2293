"""Domain events for the Coupon aggregate."""

from protean.fields import Identifier, Integer, String

from checkout.domain import checkout


@checkout.event(part_of="Coupon")
class CouponRedeemed:
    """A coupon was used on a placed order."""

    __version__ = 1

    coupon_id: Identifier(required=True)
    code: String(required=True)
    order_id: Identifier(required=True)
    usage_count: Integer(required=True)

"""Domain events for the Order aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from checkout.domain import checkout


@checkout.event(part_of="Order")
class OrderPlaced:
    """A shopper confirmed payment and the order was recorded."""

    __version__ = 1

    order_id: Identifier(required=True)
    user_id: Identifier(required=True)
    order_number: String(required=True)
    item_count: Integer(required=True)
    grand_total: Float(required=True)
    currency: String(required=True)
    payment_reference: String(required=True)
    coupon_code: String()
    placed_at: DateTime(required=True)

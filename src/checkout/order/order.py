"""Order aggregate: the record a successful checkout leaves behind.

An Order is written once, when the shopper confirms payment, and the checkout
context never changes it afterwards. Line items and the shipping address are
copies, so later catalog or address-book edits cannot rewrite history.

``payment_confirmed`` records the shopper saying "I paid".
``payment_verification`` records the operator's later check and starts as
``pending``.
"""

from datetime import datetime, timedelta
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    ValueObject,
)

from checkout.domain import checkout


class OrderStatus(Enum):
    PENDING = "pending"
    PLACED = "placed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentVerification(Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


PAYMENT_METHOD_UPI = "UPI"


@checkout.value_object(part_of="Order")
class ShippingSnapshot:
    """Where the order goes, copied from the shipping form at confirmation time."""

    full_name: String(required=True, max_length=100)
    phone: String(required=True, max_length=25)
    street: String(required=True, max_length=500)
    city: String(required=True, max_length=100)
    state: String(required=True, max_length=100)
    postal_code: String(required=True, max_length=10)
    country: String(required=True, max_length=100)


@checkout.value_object(part_of="Order")
class OrderPricing:
    """Final monetary breakdown, in rupees."""

    subtotal: Float(required=True, min_value=0.0)
    shipping_cost: Float(default=0.0, min_value=0.0)
    micro_discount: Float(default=0.0, min_value=0.0)
    coupon_discount: Float(default=0.0, min_value=0.0)
    discount_total: Float(default=0.0, min_value=0.0)
    grand_total: Float(required=True, min_value=0.0)
    currency: String(max_length=3, default="INR")

    @invariant.post
    def total_must_match_breakdown(self):
        expected = round(self.subtotal + (self.shipping_cost or 0.0) - (self.discount_total or 0.0), 2)
        if abs(expected - self.grand_total) > 0.005:
            raise ValidationError({"grand_total": ["Grand total does not match the price breakdown"]})

    @invariant.post
    def total_must_be_positive(self):
        if self.grand_total < 0.01:
            raise ValidationError({"grand_total": ["Grand total must be at least 0.01"]})


@checkout.entity(part_of="Order")
class OrderItem:
    """A cart line as it was when the order was placed."""

    product_id: String(required=True, max_length=100)
    name: String(required=True, max_length=255)
    brand: String(max_length=100)
    unit_price: Float(required=True, min_value=0.0)
    quantity: Integer(required=True, min_value=1)
    variant_id: String(max_length=100)
    variant_name: String(max_length=255)
    bundle_id: String(max_length=100)
    bundle_name: String(max_length=255)
    image: String(max_length=500)


@checkout.aggregate
class Order:
    user_id: Identifier(required=True)
    checkout_id: String(required=True, max_length=50, unique=True)
    display_number: Integer(required=True, min_value=1)
    order_number: String(required=True, max_length=20)
    status: String(choices=OrderStatus, default=OrderStatus.PLACED.value)
    items: HasMany(OrderItem)
    pricing: ValueObject(OrderPricing, required=True)
    shipping: ValueObject(ShippingSnapshot, required=True)
    shipping_method: String(max_length=20, default="standard")
    contact_email: String(max_length=254)
    payment_method: String(max_length=20, default=PAYMENT_METHOD_UPI)
    payment_reference: String(max_length=50)
    payment_confirmed: Boolean(default=False)
    payment_confirmed_at: DateTime()
    payment_verification: String(choices=PaymentVerification, default=PaymentVerification.PENDING.value)
    coupon_code: String(max_length=50)
    coupon_id: Identifier()
    estimated_delivery: DateTime()
    created_at: DateTime(default=datetime.now)

    @invariant.post
    def order_must_have_items(self):
        if not self.items:
            raise ValidationError({"items": ["Order must contain at least one item"]})

    @classmethod
    def place(
        cls,
        user_id,
        checkout_id,
        display_number,
        items,
        shipping,
        pricing,
        payment_reference,
        shipping_method="standard",
        contact_email=None,
        coupon_code=None,
        coupon_id=None,
        delivery_days=7,
    ):
        """Build a placed, shopper-confirmed order ready to be persisted.

        ``items`` is a list of dicts with the OrderItem fields; ``shipping`` and
        ``pricing`` are dicts for the value objects.
        """
        from checkout.order.events import OrderPlaced

        now = datetime.now()
        order = cls(
            user_id=user_id,
            checkout_id=checkout_id,
            display_number=display_number,
            order_number=format_order_number(display_number),
            status=OrderStatus.PLACED.value,
            items=[OrderItem(**item) for item in items],
            pricing=OrderPricing(**pricing),
            shipping=ShippingSnapshot(**shipping),
            shipping_method=shipping_method,
            contact_email=contact_email,
            payment_reference=payment_reference,
            payment_confirmed=True,
            payment_confirmed_at=now,
            payment_verification=PaymentVerification.PENDING.value,
            coupon_code=coupon_code,
            coupon_id=coupon_id,
            estimated_delivery=now + timedelta(days=delivery_days),
            created_at=now,
        )
        order.raise_(
            OrderPlaced(
                order_id=order.id,
                user_id=str(user_id),
                order_number=order.order_number,
                item_count=len(order.items),
                grand_total=order.pricing.grand_total,
                currency=order.pricing.currency,
                payment_reference=payment_reference,
                coupon_code=coupon_code,
                placed_at=now,
            )
        )
        return order


def format_order_number(display_number: int) -> str:
    return f"ORD-{display_number:06d}"

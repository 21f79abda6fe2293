"""Coupon aggregate: the definition of a discount code and its usage."""

import json
from datetime import datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Integer, String, Text

from checkout.domain import checkout


class DiscountType(Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"
    CART_VALUE = "cart_value"


class CouponScope(Enum):
    ALL = "all"
    PRODUCTS = "products"
    BUNDLES = "bundles"
    VARIANTS = "variants"


@checkout.aggregate
class Coupon:
    """A discount code shoppers can apply at checkout.

    Codes are stored lower-cased and matched case-insensitively. A coupon can
    be limited to a date window, a minimum cart value, a global number of
    redemptions, a number of redemptions per user, and a set of products,
    bundles or variants.
    """

    code: String(required=True, max_length=50, unique=True)
    name: String(max_length=200)
    discount_type: String(choices=DiscountType, default=DiscountType.PERCENTAGE.value)
    value: Float(required=True, min_value=0.0)
    min_cart_value: Float(min_value=0.0)
    max_discount_amount: Float(min_value=0.0)
    applicable_to: String(choices=CouponScope, default=CouponScope.ALL.value)
    product_ids: Text()  # JSON array of product ids
    bundle_ids: Text()  # JSON array of bundle ids
    variant_ids: Text()  # JSON array of variant ids
    starts_at: DateTime()
    ends_at: DateTime()
    usage_limit: Integer(min_value=1)
    usage_count: Integer(default=0, min_value=0)
    per_user_limit: Integer(min_value=1)
    is_active: Boolean(default=True)
    created_at: DateTime(default=datetime.now)

    @invariant.post
    def percentage_cannot_exceed_hundred(self):
        if self.discount_type == DiscountType.PERCENTAGE.value and self.value is not None and self.value > 100:
            raise ValidationError({"value": ["Percentage discount cannot exceed 100"]})

    @invariant.post
    def window_must_be_ordered(self):
        if self.starts_at and self.ends_at and self.ends_at < self.starts_at:
            raise ValidationError({"ends_at": ["Coupon cannot end before it starts"]})

    @classmethod
    def define(
        cls,
        code,
        value,
        discount_type=DiscountType.PERCENTAGE.value,
        name=None,
        applicable_to=CouponScope.ALL.value,
        product_ids=None,
        bundle_ids=None,
        variant_ids=None,
        **limits,
    ):
        return cls(
            code=code.strip().lower(),
            name=name or code.strip().upper(),
            value=value,
            discount_type=discount_type,
            applicable_to=applicable_to,
            product_ids=json.dumps(list(product_ids or [])),
            bundle_ids=json.dumps(list(bundle_ids or [])),
            variant_ids=json.dumps(list(variant_ids or [])),
            **limits,
        )

    def ids_for(self, scope: CouponScope) -> set[str]:
        raw = {
            CouponScope.PRODUCTS: self.product_ids,
            CouponScope.BUNDLES: self.bundle_ids,
            CouponScope.VARIANTS: self.variant_ids,
        }.get(scope)
        return {str(value) for value in json.loads(raw)} if raw else set()

    def redeem(self, order_id):
        from checkout.discount.events import CouponRedeemed

        self.usage_count = (self.usage_count or 0) + 1
        self.raise_(
            CouponRedeemed(
                coupon_id=self.id,
                code=self.code,
                order_id=order_id,
                usage_count=self.usage_count,
            )
        )

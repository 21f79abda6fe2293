"""Discount engine: coupon validation, coupon pricing and discount stacking.

Every checkout carries a micro-discount, a few paise picked at random once per
session. A coupon discount may be stacked on top of it. Whatever the inputs,
the stacked total stays strictly between zero and the gross amount, so the
shopper always pays at least one paisa.
"""

import random
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

import structlog
from protean.utils.globals import current_domain

from checkout.cart.port import CartLineItem, cart_subtotal
from checkout.discount.coupon import Coupon, CouponScope, DiscountType
from checkout.order.order import Order
from checkout.shared.money import PAISA, ZERO, format_inr, to_money

logger = structlog.get_logger(__name__)

MICRO_DISCOUNT_MIN_PAISE = 1
MICRO_DISCOUNT_MAX_PAISE = 99

EMPTY_CODE = "Please enter a coupon code"
INVALID_CODE = "Invalid coupon code"
EXPIRED = "Coupon code has expired"
NOT_YET_ACTIVE = "Coupon code is not yet active"
USAGE_LIMIT_REACHED = "Coupon code usage limit reached"
ALREADY_USED = "You have already used this coupon"
NOT_APPLICABLE = "Coupon does not apply to the items in your cart"


@dataclass(frozen=True)
class CouponValidation:
    is_valid: bool
    coupon: Coupon | None = None
    reason: str | None = None


@dataclass(frozen=True)
class CouponDiscount:
    code: str
    amount: Decimal
    is_applicable: bool
    reason: str | None = None
    coupon_id: str | None = None


@dataclass(frozen=True)
class DiscountBreakdown:
    micro: Decimal
    coupon: Decimal
    total: Decimal


def normalize_code(code: str | None) -> str:
    return (code or "").strip().lower()


def find_coupon(code: str) -> Coupon | None:
    return current_domain.repository_for(Coupon)._dao.query.filter(code=normalize_code(code)).all().first


def validate_coupon(code: str | None, user_id: str | None = None, now: datetime | None = None) -> CouponValidation:
    """Check that ``code`` names a live coupon the user may still redeem."""
    normalized = normalize_code(code)
    if not normalized:
        return CouponValidation(is_valid=False, reason=EMPTY_CODE)

    coupon = find_coupon(normalized)
    if coupon is None or not coupon.is_active:
        return CouponValidation(is_valid=False, reason=INVALID_CODE)

    now = now or datetime.now()
    if coupon.ends_at and coupon.ends_at < now:
        return CouponValidation(is_valid=False, coupon=coupon, reason=EXPIRED)
    if coupon.starts_at and coupon.starts_at > now:
        return CouponValidation(is_valid=False, coupon=coupon, reason=NOT_YET_ACTIVE)

    if coupon.usage_limit and (coupon.usage_count or 0) >= coupon.usage_limit:
        return CouponValidation(is_valid=False, coupon=coupon, reason=USAGE_LIMIT_REACHED)

    if coupon.per_user_limit and user_id:
        used = current_domain.repository_for(Order).count_with_coupon(user_id, coupon.code)
        if used >= coupon.per_user_limit:
            return CouponValidation(is_valid=False, coupon=coupon, reason=ALREADY_USED)

    return CouponValidation(is_valid=True, coupon=coupon)


def applies_to_cart(coupon: Coupon, lines: Sequence[CartLineItem]) -> bool:
    scope = CouponScope(coupon.applicable_to or CouponScope.ALL.value)
    if scope is CouponScope.ALL:
        return True

    ids = coupon.ids_for(scope)
    if scope is CouponScope.PRODUCTS:
        return any(not line.bundle_id and line.product_id in ids for line in lines)
    if scope is CouponScope.BUNDLES:
        return any(line.bundle_id and line.bundle_id in ids for line in lines)
    return any(line.variant_id and line.variant_id in ids for line in lines)


def coupon_amount(coupon: Coupon, subtotal: Decimal) -> Decimal:
    value = to_money(coupon.value)
    if coupon.discount_type == DiscountType.PERCENTAGE.value:
        amount = to_money(subtotal * value / 100)
    else:
        # cart_value coupons are flat amounts off a qualifying cart
        amount = value

    if coupon.max_discount_amount is not None:
        amount = min(amount, to_money(coupon.max_discount_amount))
    return min(amount, subtotal)


def compute_discount(
    lines: Sequence[CartLineItem],
    code: str | None,
    user_id: str | None = None,
    now: datetime | None = None,
) -> CouponDiscount:
    """Price ``code`` against the cart as it is right now.

    A coupon that validates on its own can still be inapplicable here, when the
    cart misses the minimum spend or holds none of the items the coupon is
    restricted to.
    """
    normalized = normalize_code(code)
    validation = validate_coupon(normalized, user_id=user_id, now=now)
    if not validation.is_valid:
        return CouponDiscount(code=normalized, amount=ZERO, is_applicable=False, reason=validation.reason)

    coupon = validation.coupon
    subtotal = cart_subtotal(lines)

    if coupon.min_cart_value and subtotal < to_money(coupon.min_cart_value):
        shortfall = to_money(coupon.min_cart_value) - subtotal
        return CouponDiscount(
            code=normalized,
            amount=ZERO,
            is_applicable=False,
            reason=(
                f"Minimum order value of {format_inr(coupon.min_cart_value)} required. "
                f"Add {format_inr(shortfall)} more to use this coupon"
            ),
            coupon_id=str(coupon.id),
        )

    if not applies_to_cart(coupon, lines):
        return CouponDiscount(
            code=normalized, amount=ZERO, is_applicable=False, reason=NOT_APPLICABLE, coupon_id=str(coupon.id)
        )

    return CouponDiscount(
        code=normalized,
        amount=coupon_amount(coupon, subtotal),
        is_applicable=True,
        coupon_id=str(coupon.id),
    )


def generate_micro_discount(rng: random.Random | None = None) -> Decimal:
    """Between 1 and 99 paise, uniformly."""
    paise = (rng or random).randint(MICRO_DISCOUNT_MIN_PAISE, MICRO_DISCOUNT_MAX_PAISE)
    return (Decimal(paise) * PAISA).quantize(PAISA)


def stack_discounts(subtotal, shipping, micro, coupon_discount) -> DiscountBreakdown:
    """Combine the micro-discount and a coupon discount.

    The micro-discount takes precedence; the coupon is trimmed so that the
    total never goes past ``subtotal + shipping - 0.01``.
    """
    gross = to_money(subtotal) + to_money(shipping)
    ceiling = max(gross - PAISA, ZERO)

    micro_amount = min(to_money(micro), ceiling)
    applied_coupon = min(max(to_money(coupon_discount), ZERO), ceiling - micro_amount)

    return DiscountBreakdown(
        micro=micro_amount,
        coupon=applied_coupon,
        total=micro_amount + applied_coupon,
    )


def redeem_coupon(code: str, order_id: str) -> None:
    """Count a redemption against ``code``."""
    coupon = find_coupon(code)
    if coupon is None:
        logger.warning("Redeemed coupon no longer exists", code=code, order_id=order_id)
        return
    coupon.redeem(order_id)
    current_domain.repository_for(Coupon).add(coupon)
    logger.info("Coupon redeemed", code=coupon.code, usage_count=coupon.usage_count)

"""In-memory draft order assembled while the shopper moves through checkout.

Nothing here touches storage. Whether a step is complete is a pure function of
the draft, so the state machine and the tests ask the same question the same
way.
"""

from dataclasses import dataclass, field, fields
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import uuid4

from checkout.discount.engine import CouponDiscount
from checkout.shared.money import ZERO
from checkout.validation.fields import DOMESTIC_DIAL_CODE, shipping_rules, validate_form


class CheckoutStep(Enum):
    SHIPPING = "shipping"
    REVIEW = "review"
    PAYMENT = "payment"
    COMPLETE = "complete"


class NavigationOutcome(Enum):
    SIGN_IN_REQUIRED = "sign_in_required"
    CART_EMPTY = "cart_empty"
    ORDER_CONFIRMED = "order_confirmed"


@dataclass(frozen=True)
class ShippingOption:
    id: str
    name: str
    price: Decimal
    transit: str


SHIPPING_OPTIONS = {
    "standard": ShippingOption("standard", "Standard Shipping", Decimal("0.00"), "5-7 business days"),
    "express": ShippingOption("express", "Express Shipping", Decimal("150.00"), "2-3 business days"),
    "overnight": ShippingOption("overnight", "Overnight Delivery", Decimal("300.00"), "Next business day"),
}
DEFAULT_SHIPPING_OPTION = "standard"

# Fields the shopper types into, in form order
FORM_FIELDS = ("full_name", "email", "phone", "street", "city", "state", "postal_code")
ADDRESS_FIELDS = ("full_name", "phone", "street", "city", "state", "postal_code")


@dataclass
class ShippingDetails:
    full_name: str = ""
    email: str = ""
    phone: str = ""
    country_code: str = DOMESTIC_DIAL_CODE
    street: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = "India"
    latitude: float | None = None
    longitude: float | None = None
    label: str | None = None
    saved_address_id: str | None = None
    # False while the fields mirror a saved address untouched
    is_new: bool = True

    def form_data(self) -> dict[str, str]:
        return {name: getattr(self, name) for name in FORM_FIELDS}

    def has_address(self) -> bool:
        return any(getattr(self, name) for name in ("street", "city", "state", "postal_code"))

    def copy(self) -> "ShippingDetails":
        return ShippingDetails(**{f.name: getattr(self, f.name) for f in fields(self)})


@dataclass(frozen=True)
class ReviewSnapshot:
    """Address and shipping choice frozen on entry to the Review step."""

    full_name: str
    email: str
    phone: str
    street: str
    city: str
    state: str
    postal_code: str
    country: str
    shipping_option: ShippingOption
    taken_at: datetime

    @classmethod
    def of(cls, details: ShippingDetails, option: ShippingOption) -> "ReviewSnapshot":
        return cls(
            full_name=details.full_name,
            email=details.email,
            phone=details.phone,
            street=details.street,
            city=details.city,
            state=details.state,
            postal_code=details.postal_code,
            country=details.country,
            shipping_option=option,
            taken_at=datetime.now(),
        )


@dataclass(frozen=True)
class CheckoutTotals:
    subtotal: Decimal
    shipping: Decimal
    micro_discount: Decimal
    coupon_discount: Decimal
    discount_total: Decimal
    total: Decimal


@dataclass(frozen=True)
class Notice:
    """A non-blocking message for the shopper. ``level`` is info, success, warning or error."""

    level: str
    text: str


@dataclass
class DraftOrder:
    user_id: str | None = None
    checkout_id: str = field(default_factory=lambda: str(uuid4()))
    shipping: ShippingDetails = field(default_factory=ShippingDetails)
    shipping_option_id: str = DEFAULT_SHIPPING_OPTION
    micro_discount: Decimal = ZERO
    coupon: CouponDiscount | None = None
    step: CheckoutStep = CheckoutStep.SHIPPING
    review: ReviewSnapshot | None = None

    @property
    def shipping_option(self) -> ShippingOption:
        return SHIPPING_OPTIONS[self.shipping_option_id]

    @property
    def coupon_code(self) -> str | None:
        return self.coupon.code if self.coupon else None


def shipping_errors(draft: DraftOrder, serviceability_error: str | None = None) -> dict[str, str]:
    """Every reason the Shipping step cannot be left yet, keyed by field."""
    result = validate_form(draft.shipping.form_data(), shipping_rules(draft.shipping.country_code))
    errors = dict(result.errors)
    if serviceability_error and "postal_code" not in errors:
        errors["postal_code"] = serviceability_error
    return errors


def is_shipping_complete(draft: DraftOrder, serviceability_error: str | None = None) -> bool:
    return not shipping_errors(draft, serviceability_error)


def is_review_complete(draft: DraftOrder) -> bool:
    return draft.review is not None


def is_step_complete(draft: DraftOrder, serviceability_error: str | None = None, payment_ready: bool = False) -> bool:
    if draft.step is CheckoutStep.SHIPPING:
        return is_shipping_complete(draft, serviceability_error)
    if draft.step is CheckoutStep.REVIEW:
        return is_review_complete(draft)
    if draft.step is CheckoutStep.PAYMENT:
        return payment_ready
    return True

"""Checkout state machine.

Drives one shopper through Shipping -> Review -> Payment -> Complete. The
machine owns the draft order; collaborators (cart, identity, address book,
location resolution, payment confirmation) are injected and only ever hand
back results, never exceptions from their transports.

A step is "blocked" while its checks fail. Forward transitions that fail
simply leave the machine where it was with the reasons recorded in
``errors``, ``coupon_error`` or ``payment_error``; nothing is retried
automatically. Backward transitions are always allowed and keep what the
shopper entered.
"""

import random

import structlog

from checkout.addressbook.manager import AddressBookManager, is_save_suggested, load_into
from checkout.cart.port import CartLineItem, CartService, cart_subtotal
from checkout.config import settings
from checkout.discount.engine import (
    CouponDiscount,
    compute_discount,
    generate_micro_discount,
    normalize_code,
    stack_discounts,
)
from checkout.flow.draft import (
    ADDRESS_FIELDS,
    FORM_FIELDS,
    SHIPPING_OPTIONS,
    CheckoutStep,
    CheckoutTotals,
    DraftOrder,
    NavigationOutcome,
    Notice,
    ReviewSnapshot,
    is_step_complete,
    shipping_errors,
)
from checkout.identity.port import IdentityService
from checkout.location.debounce import DebouncedLookup
from checkout.location.resolver import LocationResolutionService, PostalLookupResult
from checkout.payment.clipboard import Clipboard, InMemoryClipboard, share_payment_link
from checkout.payment.coordinator import ConfirmationResult, PaymentConfirmationCoordinator
from checkout.payment.upi import PaymentRequest
from checkout.shared.money import ZERO, format_inr
from checkout.utils.logging import bind_checkout_context, clear_checkout_context
from checkout.validation.fields import is_postal_code_shaped, shipping_rules, validate_form

logger = structlog.get_logger(__name__)

EDITABLE_FIELDS = frozenset(FORM_FIELDS) | {"country"}
PLACE_FIELDS = ("city", "state", "country", "postal_code")
COUPON_CHECK_FAILED = "We couldn't check this coupon right now. Please try again."


class CheckoutFlowError(Exception):
    """An operation was attempted in a step that does not allow it."""


class CheckoutStateMachine:
    def __init__(
        self,
        cart: CartService,
        identity: IdentityService,
        *,
        location: LocationResolutionService,
        address_book: AddressBookManager | None = None,
        coordinator: PaymentConfirmationCoordinator | None = None,
        clipboard: Clipboard | None = None,
        rng: random.Random | None = None,
        debounce_seconds: float | None = None,
    ) -> None:
        self.cart = cart
        self.identity = identity
        self.location = location
        self.address_book = address_book or AddressBookManager()
        self.coordinator = coordinator or PaymentConfirmationCoordinator(cart, address_book=self.address_book)
        self.clipboard = clipboard or InMemoryClipboard()
        self._rng = rng

        self.draft = DraftOrder()
        self.errors: dict[str, str] = {}
        self.notices: list[Notice] = []
        self.coupon_error: str | None = None
        self.payment_request: PaymentRequest | None = None
        self.payment_error: str | None = None
        self.order = None
        self.navigation: NavigationOutcome | None = None
        self.locating = False
        self.mounted = True

        self._started = False
        self._unsubscribe = None
        self._serviceability_error: str | None = None
        self._serviceable_code: str | None = None
        # Cart lines and totals the payment request was issued for
        self._payment_lines: list[CartLineItem] | None = None
        self._payment_totals: CheckoutTotals | None = None
        self._postal_lookup = DebouncedLookup(
            lookup=self.location.resolve_postal_code,
            apply=self._apply_postal_lookup,
            is_current=lambda value: self.mounted and self.draft.shipping.postal_code == value,
            delay=settings.postal_debounce_seconds if debounce_seconds is None else debounce_seconds,
        )

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------
    @property
    def step(self) -> CheckoutStep:
        return self.draft.step

    @property
    def lines(self) -> list[CartLineItem]:
        return self.cart.get_cart()

    @property
    def totals(self) -> CheckoutTotals:
        """Live totals while shopping; the amount asked for once payment is requested."""
        if self._payment_totals is not None:
            return self._payment_totals
        return self._live_totals()

    def _live_totals(self) -> CheckoutTotals:
        subtotal = cart_subtotal(self.lines)
        shipping = self.draft.shipping_option.price
        coupon = self.draft.coupon.amount if self.draft.coupon and self.draft.coupon.is_applicable else ZERO
        breakdown = stack_discounts(subtotal, shipping, self.draft.micro_discount, coupon)
        return CheckoutTotals(
            subtotal=subtotal,
            shipping=shipping,
            micro_discount=breakdown.micro,
            coupon_discount=breakdown.coupon,
            discount_total=breakdown.total,
            total=subtotal + shipping - breakdown.total,
        )

    @property
    def blocked(self) -> bool:
        if self.draft.step is CheckoutStep.SHIPPING and self.locating:
            return True
        if self.draft.step is CheckoutStep.PAYMENT and self.confirming:
            return True
        return not is_step_complete(
            self.draft,
            serviceability_error=self._serviceability_error,
            payment_ready=self.payment_request is not None,
        )

    @property
    def confirming(self) -> bool:
        return self.coordinator.is_confirming(self.draft.checkout_id)

    @property
    def save_suggested(self) -> bool:
        return self.draft.user_id is not None and is_save_suggested(self.draft.shipping)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def begin(self) -> NavigationOutcome | None:
        """Start (or resume after sign-in) the checkout.

        Returns a navigation outcome when the shopper has to be sent elsewhere.
        """
        identity = self.identity.get_identity()
        if identity is None:
            self.navigation = NavigationOutcome.SIGN_IN_REQUIRED
            return self.navigation

        if not self.lines:
            self.navigation = NavigationOutcome.CART_EMPTY
            return self.navigation

        self.navigation = None
        self.draft.user_id = identity.user_id
        bind_checkout_context(self.draft.checkout_id, identity.user_id)

        if not self._started:
            self._started = True
            self.draft.micro_discount = generate_micro_discount(self._rng)
            self._unsubscribe = self.cart.on_cart_change(self._on_cart_change)
            logger.info("Checkout started", items=len(self.lines), micro_discount=str(self.draft.micro_discount))

        details = self.draft.shipping
        if not details.has_address():
            primary = await self.address_book.primary(identity.user_id)
            if primary is not None:
                load_into(details, primary)

        details.full_name = details.full_name or identity.name
        details.email = details.email or identity.email
        return None

    def close(self) -> None:
        """Unmount. In-flight work still finishes but its results are no longer applied."""
        self.mounted = False
        self._postal_lookup.cancel()
        clear_checkout_context()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    # ------------------------------------------------------------------
    # Shipping step
    # ------------------------------------------------------------------
    def _require_step(self, *steps: CheckoutStep) -> None:
        if self.draft.step not in steps:
            raise CheckoutFlowError(f"Not allowed in the {self.draft.step.value} step")

    def edit_field(self, field: str, value: str) -> None:
        self._require_step(CheckoutStep.SHIPPING)
        if field not in EDITABLE_FIELDS:
            raise CheckoutFlowError(f"Unknown field {field!r}")

        details = self.draft.shipping
        setattr(details, field, value)
        self.errors.pop(field, None)

        if field in ADDRESS_FIELDS and details.saved_address_id is not None:
            details.saved_address_id = None
            details.is_new = True

        if field == "postal_code":
            self._serviceability_error = None
            self._serviceable_code = None
            if is_postal_code_shaped(value):
                self._postal_lookup.submit(value.strip())
            else:
                self._postal_lookup.cancel()

    def validate_field(self, field: str) -> str | None:
        """Live validation of one field; returns (and records) its error, if any."""
        rule = shipping_rules(self.draft.shipping.country_code).get(field)
        if rule is None:
            return None
        result = rule(getattr(self.draft.shipping, field))
        if result.error:
            self.errors[field] = result.error
        else:
            self.errors.pop(field, None)
        return result.error

    def set_country_code(self, country_code: str) -> None:
        self._require_step(CheckoutStep.SHIPPING)
        self.draft.shipping.country_code = country_code
        self.errors.pop("phone", None)

    def choose_shipping(self, option_id: str) -> None:
        self._require_step(CheckoutStep.SHIPPING)
        if option_id not in SHIPPING_OPTIONS:
            raise CheckoutFlowError(f"Unknown shipping option {option_id!r}")
        self.draft.shipping_option_id = option_id

    async def flush_lookups(self) -> None:
        await self._postal_lookup.flush()

    def _apply_postal_lookup(self, postal_code: str, result: PostalLookupResult) -> None:
        details = self.draft.shipping
        if result.unavailable:
            self._serviceability_error = None
            self._serviceable_code = None
            self.errors["postal_code"] = result.error
            return
        if result.place is None:
            self._serviceability_error = result.error
            self._serviceable_code = None
            self.errors["postal_code"] = result.error
            return

        details.city = result.place.city
        details.state = result.place.state
        details.country = result.place.country
        for name in PLACE_FIELDS:
            self.errors.pop(name, None)
        self._serviceability_error = None
        self._serviceable_code = postal_code
        if result.place.shipping_option:
            self.draft.shipping_option_id = result.place.shipping_option

    async def select_saved_address(self, address_id: str) -> None:
        self._require_step(CheckoutStep.SHIPPING)
        self._postal_lookup.cancel()
        await self.address_book.select(self.draft.shipping, self.draft.user_id, address_id)
        for name in ADDRESS_FIELDS:
            self.errors.pop(name, None)
        self._serviceability_error = None
        self._serviceable_code = None

    async def use_current_location(self):
        """Fill the address from device location. Ignored while a request is already running."""
        self._require_step(CheckoutStep.SHIPPING)
        if self.locating:
            return None

        self.locating = True
        try:
            result = await self.location.resolve_device_location()
        finally:
            self.locating = False

        if not self.mounted:
            return result

        self.notices.append(Notice(result.advisory_level, result.advisory))
        if not result.located:
            return result

        self._postal_lookup.cancel()
        details = self.draft.shipping
        details.street = result.street
        details.city = result.city or details.city
        details.state = result.state or details.state
        details.postal_code = result.postal_code or details.postal_code
        details.country = result.country or details.country
        details.latitude = result.latitude
        details.longitude = result.longitude
        details.saved_address_id = None
        details.is_new = True

        for name, value in (
            ("street", result.street),
            ("city", result.city),
            ("state", result.state),
            ("postal_code", result.postal_code),
        ):
            if value:
                self.errors.pop(name, None)

        self._serviceable_code = None
        self._serviceability_error = result.postal_error
        if result.postal_error:
            self.errors["postal_code"] = result.postal_error
        if result.shipping_option:
            self.draft.shipping_option_id = result.shipping_option
        return result

    async def save_current_address(self, label: str | None = None, make_primary: bool = False) -> str | None:
        self._require_step(CheckoutStep.SHIPPING)
        details = self.draft.shipping

        errors = {k: v for k, v in shipping_errors(self.draft).items() if k in ADDRESS_FIELDS}
        if errors:
            self.errors.update(errors)
            return None

        if await self.address_book.is_duplicate(self.draft.user_id, details):
            self.notices.append(Notice("info", "This address is already saved"))
            return None

        try:
            address_id = await self.address_book.save(self.draft.user_id, details, label=label, make_primary=make_primary)
        except Exception as exc:
            logger.warning("Address could not be saved", error=str(exc))
            self.notices.append(Notice("warning", "We couldn't save this address. You can still continue."))
            return None

        if address_id is None:
            self.notices.append(Notice("info", "This address is already saved"))
            return None

        details.saved_address_id = address_id
        details.is_new = False
        self.notices.append(Notice("success", "Address saved"))
        return address_id

    # ------------------------------------------------------------------
    # Coupons
    # ------------------------------------------------------------------
    def _price_coupon(self, lines: list[CartLineItem], code: str) -> CouponDiscount:
        try:
            return compute_discount(lines, code, user_id=self.draft.user_id)
        except Exception as exc:
            logger.warning("Coupon check failed", code=code, error=str(exc))
            return CouponDiscount(
                code=normalize_code(code), amount=ZERO, is_applicable=False, reason=COUPON_CHECK_FAILED
            )

    async def apply_coupon(self, code: str) -> CouponDiscount:
        self._require_step(CheckoutStep.SHIPPING, CheckoutStep.REVIEW)
        result = self._price_coupon(self.lines, code)
        if not result.is_applicable:
            self.coupon_error = result.reason
            return result

        self.draft.coupon = result
        self.coupon_error = None
        self.notices.append(Notice("success", f"Coupon applied! You saved {format_inr(result.amount)}"))
        return result

    def remove_coupon(self) -> None:
        self._require_step(CheckoutStep.SHIPPING, CheckoutStep.REVIEW)
        self.draft.coupon = None
        self.coupon_error = None

    def _on_cart_change(self, lines: list[CartLineItem]) -> None:
        if not self.mounted or self.draft.coupon is None or not lines:
            return
        if self._payment_totals is not None:
            # The requested amount stands; the order records the lines it was issued for
            logger.info("Cart changed after payment was requested", checkout_id=self.draft.checkout_id)
            return

        result = self._price_coupon(lines, self.draft.coupon.code)
        if result.is_applicable:
            self.draft.coupon = result
            return

        logger.info("Coupon dropped after cart change", code=self.draft.coupon.code, reason=result.reason)
        self.notices.append(Notice("warning", f"Coupon {self.draft.coupon.code.upper()} removed: {result.reason}"))
        self.draft.coupon = None
        self.coupon_error = result.reason

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    async def continue_to_review(self) -> bool:
        if self.draft.step is not CheckoutStep.SHIPPING:
            return False

        await self._postal_lookup.flush()

        details = self.draft.shipping
        code = details.postal_code.strip()
        serviceability_error = self._serviceability_error
        if is_postal_code_shaped(code) and code != self._serviceable_code and serviceability_error is None:
            lookup = await self.location.resolve_postal_code(code)
            self._apply_postal_lookup(code, lookup)
            serviceability_error = lookup.error

        errors = shipping_errors(self.draft, serviceability_error)
        if errors:
            self.errors = errors
            logger.info("Shipping step blocked", fields=sorted(errors))
            return False

        sanitized = validate_form(details.form_data(), shipping_rules(details.country_code)).sanitized
        for name, value in sanitized.items():
            setattr(details, name, value)

        self.errors = {}
        self.draft.review = ReviewSnapshot.of(details, self.draft.shipping_option)
        self.draft.step = CheckoutStep.REVIEW
        return True

    def continue_to_payment(self) -> bool:
        if self.draft.step is not CheckoutStep.REVIEW:
            return False

        self._payment_lines = list(self.lines)
        self._payment_totals = self._live_totals()
        self.payment_request = self.coordinator.prepare(self._payment_totals.total)
        self.payment_error = None
        self.draft.step = CheckoutStep.PAYMENT
        return True

    def back(self) -> bool:
        if self.draft.step is CheckoutStep.REVIEW:
            self.draft.review = None
            self.draft.step = CheckoutStep.SHIPPING
            return True
        if self.draft.step is CheckoutStep.PAYMENT and not self.confirming:
            self.payment_request = None
            self.payment_error = None
            self._payment_lines = None
            self._payment_totals = None
            self.draft.step = CheckoutStep.REVIEW
            return True
        return False

    async def share_payment_link(self) -> Notice | None:
        if self.payment_request is None:
            return None
        notice = await share_payment_link(self.clipboard, self.payment_request)
        self.notices.append(notice)
        return notice

    async def confirm_payment(self) -> ConfirmationResult | None:
        if self.draft.step is not CheckoutStep.PAYMENT or self.payment_request is None:
            return None

        identity = self.identity.get_identity()
        if identity is None:
            self.navigation = NavigationOutcome.SIGN_IN_REQUIRED
            return None

        self.payment_error = None
        result = await self.coordinator.confirm(
            identity,
            self.draft,
            self._payment_lines,
            self._payment_totals,
            self.payment_request,
        )

        if not self.mounted:
            logger.info("Confirmation finished after checkout closed", success=result.success)
            return result

        if not result.success:
            self.payment_error = result.failure_reason
            return result

        self.order = result.order
        self.draft.step = CheckoutStep.COMPLETE
        self.navigation = NavigationOutcome.ORDER_CONFIRMED
        self.notices.append(Notice("success", f"Order {result.order.order_number} placed"))
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        return result

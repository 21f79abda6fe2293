"""Payment confirmation: from "I have paid" to a recorded order.

Confirming runs these steps in order:

1. Record the Order, with every line item, in a single repository write.
2. Count the coupon redemption (best effort).
3. Save a new, complete, not-yet-saved address to the user's book (best effort).
4. Clear the cart (best effort; the order already stands).

A failure in step 1 leaves nothing behind and the cart untouched, so the
shopper can simply retry. Confirmations are single-flight per checkout session,
and a session that already produced an order returns that order instead of
creating a second one.
"""

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from checkout.addressbook.manager import AddressBookManager, is_save_suggested
from checkout.cart.port import CartLineItem, CartService
from checkout.config import settings
from checkout.discount.engine import redeem_coupon
from checkout.flow.draft import CheckoutTotals, DraftOrder
from checkout.identity.port import Identity
from checkout.order.counter import ORDER_SEQUENCE, OrderCounter
from checkout.order.order import Order
from checkout.payment.upi import Payee, PaymentRequest

logger = structlog.get_logger(__name__)

ORDER_NOT_RECORDED = "We couldn't record your order. Your cart is unchanged, please try again."


@dataclass(frozen=True)
class ConfirmationResult:
    success: bool
    order: Order | None = None
    failure_reason: str | None = None
    already_placed: bool = False
    address_saved: bool = False
    cart_cleared: bool = False


class PaymentConfirmationCoordinator:
    def __init__(
        self,
        cart: CartService,
        address_book: AddressBookManager | None = None,
        payee: Payee | None = None,
        delivery_days: int | None = None,
    ) -> None:
        self.cart = cart
        self.address_book = address_book or AddressBookManager()
        self.payee = payee
        self.delivery_days = delivery_days or settings.delivery_days
        self.last_reference: str | None = None
        self._in_flight: dict[str, asyncio.Task] = {}

    def prepare(self, amount) -> PaymentRequest:
        """A fresh payment request; the reference never repeats the previous one."""
        request = PaymentRequest.create(amount, payee=self.payee, previous_reference=self.last_reference)
        self.last_reference = request.reference
        logger.info("Payment request prepared", reference=request.reference, amount=str(request.amount))
        return request

    def is_confirming(self, checkout_id: str) -> bool:
        return checkout_id in self._in_flight

    async def confirm(
        self,
        identity: Identity,
        draft: DraftOrder,
        lines: Sequence[CartLineItem],
        totals: CheckoutTotals,
        request: PaymentRequest,
    ) -> ConfirmationResult:
        """Confirm payment for ``draft``.

        Concurrent calls for the same checkout session share one attempt. The
        attempt is shielded: if the caller goes away it still runs to the end.
        """
        checkout_id = draft.checkout_id
        task = self._in_flight.get(checkout_id)
        if task is None:
            task = asyncio.get_running_loop().create_task(
                self._confirm(identity, draft, list(lines), totals, request)
            )
            self._in_flight[checkout_id] = task
            task.add_done_callback(lambda _: self._in_flight.pop(checkout_id, None))
        else:
            logger.info("Joining confirmation already in flight", checkout_id=checkout_id)
        return await asyncio.shield(task)

    async def _confirm(self, identity, draft, lines, totals, request) -> ConfirmationResult:
        try:
            existing = current_domain.repository_for(Order).by_checkout(draft.checkout_id)
            if existing is not None:
                logger.info(
                    "Order already placed for checkout", checkout_id=draft.checkout_id, order_id=str(existing.id)
                )
                return ConfirmationResult(success=True, order=existing, already_placed=True)

            order = self._record_order(identity, draft, lines, totals, request)
        except Exception:
            logger.exception("Order could not be recorded", checkout_id=draft.checkout_id)
            return ConfirmationResult(success=False, failure_reason=ORDER_NOT_RECORDED)

        logger.info(
            "Order placed",
            order_id=str(order.id),
            order_number=order.order_number,
            grand_total=order.pricing.grand_total,
        )

        if order.coupon_code:
            try:
                redeem_coupon(order.coupon_code, str(order.id))
            except Exception as exc:
                logger.warning("Coupon redemption not counted", code=order.coupon_code, error=str(exc))

        address_saved = await self._save_address(identity, draft)

        cart_cleared = True
        try:
            await self.cart.clear()
        except Exception as exc:
            cart_cleared = False
            logger.warning("Cart could not be cleared after order", order_id=str(order.id), error=str(exc))

        return ConfirmationResult(success=True, order=order, address_saved=address_saved, cart_cleared=cart_cleared)

    def _record_order(self, identity, draft, lines, totals, request) -> Order:
        counter_repo = current_domain.repository_for(OrderCounter)
        try:
            counter = counter_repo.get(ORDER_SEQUENCE)
        except ObjectNotFoundError:
            counter = OrderCounter(name=ORDER_SEQUENCE)
        display_number = counter.advance()

        details = draft.shipping
        coupon = draft.coupon if draft.coupon and draft.coupon.is_applicable and totals.coupon_discount > 0 else None

        order = Order.place(
            user_id=identity.user_id,
            checkout_id=draft.checkout_id,
            display_number=display_number,
            items=[
                {
                    "product_id": line.product_id,
                    "name": line.name,
                    "brand": line.brand,
                    "unit_price": float(line.unit_price),
                    "quantity": line.quantity,
                    "variant_id": line.variant_id,
                    "variant_name": line.variant_name,
                    "bundle_id": line.bundle_id,
                    "bundle_name": line.bundle_name,
                    "image": line.image,
                }
                for line in lines
            ],
            shipping={
                "full_name": details.full_name,
                "phone": details.phone,
                "street": details.street,
                "city": details.city,
                "state": details.state,
                "postal_code": details.postal_code,
                "country": details.country or "India",
            },
            pricing={
                "subtotal": float(totals.subtotal),
                "shipping_cost": float(totals.shipping),
                "micro_discount": float(totals.micro_discount),
                "coupon_discount": float(totals.coupon_discount),
                "discount_total": float(totals.discount_total),
                "grand_total": float(totals.total),
            },
            payment_reference=request.reference,
            shipping_method=draft.shipping_option_id,
            contact_email=details.email or identity.email,
            coupon_code=coupon.code if coupon else None,
            coupon_id=coupon.coupon_id if coupon else None,
            delivery_days=self.delivery_days,
        )

        # Order and items land in one write; the sequence only moves once it has
        current_domain.repository_for(Order).add(order)
        counter_repo.add(counter)
        return order

    async def _save_address(self, identity, draft) -> bool:
        details = draft.shipping
        if not is_save_suggested(details):
            return False
        try:
            if await self.address_book.is_duplicate(identity.user_id, details):
                return False
            address_id = await self.address_book.save(identity.user_id, details)
        except Exception as exc:
            logger.warning("Address could not be saved after order", user_id=identity.user_id, error=str(exc))
            return False
        return address_id is not None

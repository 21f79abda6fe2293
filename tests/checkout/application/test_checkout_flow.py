"""Checkout state machine: Shipping -> Review -> Payment -> Complete."""

import asyncio
from decimal import Decimal

import pytest
from checkout.addressbook.address_book import AddressBook
from checkout.addressbook.manager import AddressBookManager
from checkout.cart.port import CartLineItem, InMemoryCart
from checkout.discount.coupon import Coupon
from checkout.flow.draft import CheckoutStep, NavigationOutcome, ShippingDetails
from checkout.flow.state_machine import COUPON_CHECK_FAILED, CheckoutFlowError
from checkout.location.geocoding import GeocodedAddress
from checkout.location.geolocation import GeolocationErrorCode
from checkout.location.resolver import (
    CURRENT_LOCATION_PLACEHOLDER,
    LOCATION_FILLED,
    LOOKUP_UNAVAILABLE,
    NOT_SERVICEABLE,
)
from checkout.order.order import Order, OrderStatus
from checkout.order.repository import OrderRepository
from checkout.payment.coordinator import ORDER_NOT_RECORDED
from protean import current_domain

pytestmark = pytest.mark.usefixtures("serviceable_postal_codes")


async def _fill_shipping(machine, postal_code="560001"):
    machine.edit_field("phone", "98765 43210")
    machine.edit_field("street", "12 MG Road, Indiranagar")
    machine.edit_field("postal_code", postal_code)
    await machine.flush_lookups()


class TestBegin:
    def test_anonymous_shopper_is_sent_to_sign_in(self, make_machine):
        from checkout.identity.port import StaticIdentityService

        machine = make_machine(identity=StaticIdentityService())

        assert asyncio.run(machine.begin()) is NavigationOutcome.SIGN_IN_REQUIRED
        assert machine.draft.user_id is None

    def test_resumes_after_sign_in(self, make_machine, identity):
        from checkout.identity.port import StaticIdentityService

        identity_service = StaticIdentityService()
        machine = make_machine(identity=identity_service)
        asyncio.run(machine.begin())

        identity_service.sign_in(identity)

        assert asyncio.run(machine.begin()) is None
        assert machine.navigation is None
        assert machine.draft.user_id == "user-001"

    def test_empty_cart(self, make_machine):
        machine = make_machine(cart=InMemoryCart())
        assert asyncio.run(machine.begin()) is NavigationOutcome.CART_EMPTY

    def test_contact_details_and_micro_discount(self, make_machine):
        machine = make_machine()
        asyncio.run(machine.begin())

        assert machine.draft.shipping.full_name == "Asha Rao"
        assert machine.draft.shipping.email == "asha@example.com"
        assert Decimal("0.01") <= machine.draft.micro_discount <= Decimal("0.99")
        assert machine.step is CheckoutStep.SHIPPING
        assert machine.blocked

    def test_micro_discount_is_fixed_for_the_session(self, make_machine):
        machine = make_machine()
        asyncio.run(machine.begin())
        first = machine.draft.micro_discount
        asyncio.run(machine.begin())

        assert machine.draft.micro_discount == first

    def test_primary_address_is_preloaded(self, make_machine):
        manager = AddressBookManager()
        saved = ShippingDetails(
            full_name="Asha Rao",
            phone="9876543210",
            street="Flat 302, Green Meadows Apartments",
            city="Bengaluru",
            state="Karnataka",
            postal_code="560001",
        )
        address_id = asyncio.run(manager.save("user-001", saved))

        machine = make_machine()
        asyncio.run(machine.begin())

        details = machine.draft.shipping
        assert details.saved_address_id == address_id
        assert details.street == "Flat 302, Green Meadows Apartments"
        assert details.is_new is False
        assert machine.save_suggested is False


class TestShippingStep:
    def test_postal_lookup_fills_city_and_state(self, make_machine):
        machine = make_machine()

        async def scenario():
            await machine.begin()
            await _fill_shipping(machine)

        asyncio.run(scenario())

        assert machine.draft.shipping.city == "Bengaluru"
        assert machine.draft.shipping.state == "Karnataka"
        assert not machine.blocked
        assert machine.save_suggested

    def test_postal_lookup_miss_blocks_the_step(self, make_machine):
        machine = make_machine()

        async def scenario():
            await machine.begin()
            await _fill_shipping(machine, postal_code="999999")
            return await machine.continue_to_review()

        assert asyncio.run(scenario()) is False
        assert machine.errors["postal_code"] == NOT_SERVICEABLE
        assert machine.draft.shipping.city == ""
        assert machine.draft.shipping.state == ""
        assert machine.step is CheckoutStep.SHIPPING
        assert machine.blocked

    def test_area_shipping_method_overrides_choice(self, make_machine):
        machine = make_machine()

        async def scenario():
            await machine.begin()
            await _fill_shipping(machine, postal_code="560038")

        asyncio.run(scenario())

        assert machine.draft.shipping_option_id == "express"
        assert machine.totals.shipping == Decimal("150.00")

    def test_pending_lookup_runs_before_leaving_the_step(self, make_machine):
        machine = make_machine(debounce_seconds=30)

        async def scenario():
            await machine.begin()
            machine.edit_field("phone", "9876543210")
            machine.edit_field("street", "12 MG Road, Indiranagar")
            machine.edit_field("postal_code", "400001")
            return await asyncio.wait_for(machine.continue_to_review(), timeout=2)

        assert asyncio.run(scenario()) is True
        assert machine.draft.review.city == "Mumbai"

    def test_editing_a_loaded_address_makes_it_new(self, make_machine):
        machine = make_machine()

        async def scenario():
            await machine.begin()
            await _fill_shipping(machine)
            await machine.save_current_address()
            machine.edit_field("street", "14 MG Road, Indiranagar")

        asyncio.run(scenario())

        assert machine.draft.shipping.saved_address_id is None
        assert machine.draft.shipping.is_new is True

    def test_live_field_validation(self, make_machine):
        machine = make_machine()

        async def scenario():
            await machine.begin()
            machine.edit_field("phone", "12345")
            return machine.validate_field("phone")

        assert asyncio.run(scenario()) == "Please enter a valid 10-digit Indian phone number"
        assert "phone" in machine.errors

        machine.edit_field("phone", "9876543210")
        assert "phone" not in machine.errors

    def test_country_code_changes_phone_rules(self, make_machine):
        machine = make_machine()
        machine.edit_field("phone", "7911 1234567")
        assert machine.validate_field("phone") is not None

        machine.set_country_code("+44")
        assert machine.validate_field("phone") is None

    def test_unknown_field_or_option(self, make_machine):
        machine = make_machine()

        with pytest.raises(CheckoutFlowError):
            machine.edit_field("is_new", "yes")
        with pytest.raises(CheckoutFlowError):
            machine.choose_shipping("teleport")

    def test_invalid_fields_block_with_errors(self, make_machine):
        machine = make_machine()

        async def scenario():
            await machine.begin()
            machine.edit_field("street", "short")
            return await machine.continue_to_review()

        assert asyncio.run(scenario()) is False
        assert machine.errors["street"] == "Please enter a complete address"
        assert machine.errors["phone"] == "Phone number is required"


class TestDeviceLocation:
    def test_fills_address(self, make_machine, geocoder):
        geocoder.configure(
            GeocodedAddress(
                street="12, MG Road, Shivajinagar",
                city="Bangalore",
                state="Karnataka",
                postal_code="560001",
                country="India",
            )
        )
        machine = make_machine()

        async def scenario():
            await machine.begin()
            return await machine.use_current_location()

        asyncio.run(scenario())

        details = machine.draft.shipping
        assert details.street == "12, MG Road, Shivajinagar"
        assert details.city == "Bengaluru"
        assert (details.latitude, details.longitude) == (12.9716, 77.5946)
        assert machine.notices[-1].text == LOCATION_FILLED

    def test_partial_failure_keeps_the_step_blocked(self, make_machine, geocoder):
        geocoder.configure(GeocodedAddress())
        machine = make_machine()

        async def scenario():
            await machine.begin()
            machine.edit_field("phone", "9876543210")
            await machine.use_current_location()
            return await machine.continue_to_review()

        assert asyncio.run(scenario()) is False
        assert machine.draft.shipping.street == CURRENT_LOCATION_PLACEHOLDER
        assert machine.notices[-1].level == "warning"
        assert set(machine.errors) == {"city", "state", "postal_code"}

        async def complete_manually():
            machine.edit_field("postal_code", "560001")
            await machine.flush_lookups()
            return await machine.continue_to_review()

        assert asyncio.run(complete_manually()) is True

    def test_permission_denied_leaves_form_alone(self, make_machine, geolocation):
        geolocation.configure(error_code=GeolocationErrorCode.PERMISSION_DENIED)
        machine = make_machine()

        async def scenario():
            await machine.begin()
            await _fill_shipping(machine)
            return await machine.use_current_location()

        result = asyncio.run(scenario())

        assert result.located is False
        assert machine.draft.shipping.street == "12 MG Road, Indiranagar"
        assert machine.notices[-1].level == "info"

    def test_only_one_request_at_a_time(self, make_machine, geolocation):
        geolocation.configure(delay=0.05)
        machine = make_machine()

        async def scenario():
            await machine.begin()
            return await asyncio.gather(machine.use_current_location(), machine.use_current_location())

        first, second = asyncio.run(scenario())

        assert first is not None
        assert second is None
        assert len(geolocation.calls) == 1
        assert machine.locating is False


class TestSaveAddress:
    def test_save_then_duplicate(self, make_machine):
        machine = make_machine()

        async def scenario():
            await machine.begin()
            await _fill_shipping(machine)
            first = await machine.save_current_address(label="Home")
            second = await machine.save_current_address()
            return first, second

        first, second = asyncio.run(scenario())

        assert first is not None
        assert second is None
        assert [n.text for n in machine.notices[-2:]] == ["Address saved", "This address is already saved"]
        book = current_domain.repository_for(AddressBook).get("user-001")
        assert len(book.addresses) == 1
        assert book.addresses[0].label == "Home"

    def test_incomplete_address_is_not_saved(self, make_machine):
        machine = make_machine()

        async def scenario():
            await machine.begin()
            return await machine.save_current_address()

        assert asyncio.run(scenario()) is None
        assert "street" in machine.errors


class TestCoupons:
    def test_apply_and_remove(self, make_machine):
        current_domain.repository_for(Coupon).add(Coupon.define("WELCOME10", 10))
        machine = make_machine()

        async def scenario():
            await machine.begin()
            return await machine.apply_coupon("welcome10")

        result = asyncio.run(scenario())

        assert result.is_applicable
        assert machine.notices[-1].text == "Coupon applied! You saved ₹125.00"
        assert machine.totals.coupon_discount == Decimal("125.00")
        assert machine.totals.total == Decimal("1125.00") - machine.draft.micro_discount

        machine.remove_coupon()
        assert machine.totals.coupon_discount == Decimal("0.00")

    def test_rejected_coupon_leaves_only_micro_discount(self, make_machine):
        current_domain.repository_for(Coupon).add(Coupon.define("BIGSPEND", 10, min_cart_value=2000))
        machine = make_machine()

        async def scenario():
            await machine.begin()
            return await machine.apply_coupon("BIGSPEND")

        result = asyncio.run(scenario())

        assert result.is_applicable is False
        assert machine.coupon_error.startswith("Minimum order value of ₹2,000.00 required")
        assert machine.draft.coupon is None
        assert machine.totals.discount_total == machine.draft.micro_discount

    def test_coupon_dropped_when_cart_no_longer_qualifies(self, make_machine, cart):
        current_domain.repository_for(Coupon).add(Coupon.define("WELCOME10", 10, min_cart_value=1000))
        machine = make_machine()

        async def scenario():
            await machine.begin()
            await machine.apply_coupon("WELCOME10")

        asyncio.run(scenario())
        cart.replace([CartLineItem(product_id="prod-2", name="Travel Case", unit_price=Decimal("250.00"), quantity=1)])

        assert machine.draft.coupon is None
        assert machine.notices[-1].level == "warning"
        assert "WELCOME10" in machine.notices[-1].text


class TestNavigation:
    def test_forward_and_back_keep_entries(self, make_machine):
        machine = make_machine()

        async def scenario():
            await machine.begin()
            await _fill_shipping(machine)
            assert await machine.continue_to_review()
            assert machine.continue_to_payment()

        asyncio.run(scenario())

        assert machine.step is CheckoutStep.PAYMENT
        assert machine.payment_request.amount == machine.totals.total

        assert machine.back()
        assert machine.step is CheckoutStep.REVIEW
        assert machine.payment_request is None

        assert machine.back()
        assert machine.step is CheckoutStep.SHIPPING
        assert machine.draft.shipping.street == "12 MG Road, Indiranagar"
        assert machine.draft.shipping.phone == "+91 9876543210"
        assert not machine.back()

    @pytest.mark.parametrize(
        "country_code, typed, normalized",
        [("+1", "555 123 4567", "+1 5551234567"), ("+44", "07911 123456", "+44 07911123456")],
    )
    def test_international_phone_survives_back_and_forward(self, make_machine, country_code, typed, normalized):
        machine = make_machine()

        async def scenario():
            await machine.begin()
            await _fill_shipping(machine)
            machine.set_country_code(country_code)
            machine.edit_field("phone", typed)
            assert await machine.continue_to_review()
            assert machine.back()
            return await machine.continue_to_review()

        assert asyncio.run(scenario())
        assert machine.errors == {}
        assert machine.draft.shipping.phone == normalized
        assert machine.draft.review.phone == normalized

    def test_review_snapshot_uses_sanitized_values(self, make_machine):
        machine = make_machine()

        async def scenario():
            await machine.begin()
            await _fill_shipping(machine)
            machine.edit_field("email", "  Asha@Example.COM ")
            await machine.continue_to_review()

        asyncio.run(scenario())

        assert machine.draft.review.email == "asha@example.com"
        assert machine.draft.review.phone == "+91 9876543210"
        assert machine.draft.review.shipping_option.id == "standard"

    def test_shipping_fields_are_locked_after_shipping(self, make_machine):
        machine = make_machine()

        async def scenario():
            await machine.begin()
            await _fill_shipping(machine)
            await machine.continue_to_review()

        asyncio.run(scenario())

        with pytest.raises(CheckoutFlowError):
            machine.edit_field("street", "Somewhere else entirely")

    def test_share_payment_link(self, make_machine, clipboard):
        machine = make_machine()

        async def scenario():
            await machine.begin()
            await _fill_shipping(machine)
            await machine.continue_to_review()
            machine.continue_to_payment()
            copied = await machine.share_payment_link()
            clipboard.should_succeed = False
            failed = await machine.share_payment_link()
            return copied, failed

        copied, failed = asyncio.run(scenario())

        assert clipboard.contents == machine.payment_request.uri
        assert copied.level == "success"
        assert failed.level == "warning"


class TestHappyPath:
    def test_confirm_payment_places_order(self, make_machine, cart):
        machine = make_machine()

        async def scenario():
            await machine.begin()
            await _fill_shipping(machine)
            await machine.continue_to_review()
            machine.continue_to_payment()
            expected_total = machine.totals.total
            return expected_total, await machine.confirm_payment()

        expected_total, result = asyncio.run(scenario())

        assert result.success
        assert machine.step is CheckoutStep.COMPLETE
        assert machine.navigation is NavigationOutcome.ORDER_CONFIRMED
        assert Decimal("1249.01") <= expected_total <= Decimal("1249.99")

        order = current_domain.repository_for(Order).get(result.order.id)
        assert order.status == OrderStatus.PLACED.value
        assert order.order_number == "ORD-000001"
        assert len(order.items) == 2
        assert Decimal(str(order.pricing.grand_total)) == expected_total
        assert cart.get_cart() == []
        assert result.address_saved is True
        assert machine.notices[-1].text == "Order ORD-000001 placed"

    def test_double_confirm_places_one_order(self, make_machine):
        machine = make_machine()

        async def scenario():
            await machine.begin()
            await _fill_shipping(machine)
            await machine.continue_to_review()
            machine.continue_to_payment()
            return await asyncio.gather(machine.confirm_payment(), machine.confirm_payment())

        first, second = asyncio.run(scenario())

        assert first.order.id == second.order.id
        assert len(current_domain.repository_for(Order)._dao.query.all().items) == 1

    def test_closing_during_confirmation_still_records_order(self, make_machine):
        machine = make_machine()

        async def scenario():
            await machine.begin()
            await _fill_shipping(machine)
            await machine.continue_to_review()
            machine.continue_to_payment()
            task = asyncio.ensure_future(machine.confirm_payment())
            await asyncio.sleep(0)
            machine.close()
            return await task

        result = asyncio.run(scenario())

        assert result.success
        assert machine.step is CheckoutStep.PAYMENT
        assert machine.order is None
        assert len(current_domain.repository_for(Order)._dao.query.all().items) == 1


class TestPaymentAmount:
    def test_order_records_the_amount_requested(self, make_machine, cart):
        current_domain.repository_for(Coupon).add(Coupon.define("WELCOME10", 10, min_cart_value=1000))
        machine = make_machine()

        async def scenario():
            await machine.begin()
            await _fill_shipping(machine)
            await machine.continue_to_review()
            await machine.apply_coupon("WELCOME10")
            machine.continue_to_payment()
            requested = machine.payment_request.amount
            cart.replace(
                [CartLineItem(product_id="prod-2", name="Travel Case", unit_price=Decimal("250.00"), quantity=1)]
            )
            return requested, await machine.confirm_payment()

        requested, result = asyncio.run(scenario())

        order = current_domain.repository_for(Order).get(result.order.id)
        assert Decimal(str(order.pricing.grand_total)) == requested
        assert Decimal(str(order.pricing.coupon_discount)) == Decimal("125.00")
        assert len(order.items) == 2
        assert order.coupon_code == "welcome10"

    def test_coupons_are_locked_once_payment_is_requested(self, make_machine):
        current_domain.repository_for(Coupon).add(Coupon.define("WELCOME10", 10))
        machine = make_machine()

        async def scenario():
            await machine.begin()
            await _fill_shipping(machine)
            await machine.continue_to_review()
            machine.continue_to_payment()
            with pytest.raises(CheckoutFlowError):
                await machine.apply_coupon("WELCOME10")

        asyncio.run(scenario())

        with pytest.raises(CheckoutFlowError):
            machine.remove_coupon()
        assert machine.draft.coupon is None
        assert machine.totals.total == machine.payment_request.amount

    def test_returning_to_review_reprices_the_request(self, make_machine):
        current_domain.repository_for(Coupon).add(Coupon.define("WELCOME10", 10))
        machine = make_machine()

        async def scenario():
            await machine.begin()
            await _fill_shipping(machine)
            await machine.continue_to_review()
            machine.continue_to_payment()
            before = machine.payment_request.amount
            machine.back()
            await machine.apply_coupon("WELCOME10")
            machine.continue_to_payment()
            return before, machine.payment_request.amount

        before, after = asyncio.run(scenario())

        assert before - after == Decimal("125.00")


class UnreachableStore:
    def repository_for(self, aggregate):
        raise ConnectionError("store unavailable")


class TestStoreFailures:
    def test_coupon_check_failure_becomes_a_coupon_error(self, make_machine, monkeypatch):
        def unreachable(*args, **kwargs):
            raise ConnectionError("store unavailable")

        machine = make_machine()

        async def scenario():
            await machine.begin()
            monkeypatch.setattr("checkout.flow.state_machine.compute_discount", unreachable)
            return await machine.apply_coupon("WELCOME10")

        result = asyncio.run(scenario())

        assert result.is_applicable is False
        assert machine.coupon_error == COUPON_CHECK_FAILED
        assert machine.draft.coupon is None

    def test_postal_lookup_failure_blocks_review_until_the_table_answers(self, make_machine, monkeypatch):
        machine = make_machine()

        async def scenario():
            await machine.begin()
            with monkeypatch.context() as patch:
                patch.setattr("checkout.location.resolver.current_domain", UnreachableStore())
                await _fill_shipping(machine)
                blocked = not await machine.continue_to_review()
                error = machine.errors.get("postal_code")
            return blocked, error, await machine.continue_to_review()

        blocked, error, recovered = asyncio.run(scenario())

        assert blocked
        assert error == LOOKUP_UNAVAILABLE
        assert recovered
        assert machine.draft.shipping.city == "Bengaluru"

    def test_confirmation_store_failure_stays_on_payment(self, make_machine, cart, cart_lines, monkeypatch):
        def broken_lookup(self, checkout_id):
            raise ConnectionError("store unavailable")

        machine = make_machine()

        async def scenario():
            await machine.begin()
            await _fill_shipping(machine)
            await machine.continue_to_review()
            machine.continue_to_payment()
            monkeypatch.setattr(OrderRepository, "by_checkout", broken_lookup)
            return await machine.confirm_payment()

        result = asyncio.run(scenario())

        assert result.success is False
        assert machine.step is CheckoutStep.PAYMENT
        assert machine.payment_error == ORDER_NOT_RECORDED
        assert cart.get_cart() == cart_lines

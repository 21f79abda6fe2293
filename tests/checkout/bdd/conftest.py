"""Shared BDD fixtures and step definitions for checkout."""

import asyncio
import random
from decimal import Decimal

import pytest
from checkout.cart.port import CartLineItem, InMemoryCart
from checkout.flow.draft import CheckoutStep
from checkout.flow.state_machine import CheckoutStateMachine
from checkout.identity.port import StaticIdentityService
from checkout.location.geocoding import FakeGeocoder
from checkout.location.geolocation import FakeGeolocation
from checkout.location.postal_code import PostalCodeEntry
from checkout.location.resolver import LocationResolutionService
from protean import current_domain
from pytest_bdd import given, parsers, then


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def geocoder():
    return FakeGeocoder()


@pytest.fixture()
def outcome():
    """Container for values returned by When steps."""
    return {}


def _lines_worth(total):
    total = Decimal(total)
    if total >= 1000:
        return [
            CartLineItem(product_id="prod-1", name="Classic Tin", unit_price=total * 2 / 5, quantity=2),
            CartLineItem(product_id="prod-2", name="Travel Case", unit_price=total / 5, quantity=1),
        ]
    return [CartLineItem(product_id="prod-2", name="Travel Case", unit_price=total, quantity=1)]


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse("a signed-in shopper with a cart worth {amount:d} rupees"), target_fixture="machine")
def signed_in_shopper(amount, identity, geocoder):
    cart = InMemoryCart(_lines_worth(amount))
    machine = CheckoutStateMachine(
        cart,
        StaticIdentityService(identity),
        location=LocationResolutionService(FakeGeolocation(), geocoder),
        rng=random.Random(42),
        debounce_seconds=0,
    )
    assert asyncio.run(machine.begin()) is None
    return machine


@given(parsers.cfparse('the PIN code "{postal_code}" is serviceable in "{city}", "{state}"'))
def serviceable_postal_code(postal_code, city, state):
    current_domain.repository_for(PostalCodeEntry).add(PostalCodeEntry(postal_code=postal_code, city=city, state=state))


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then("the shopper is still on the shipping step")
def still_on_shipping(machine):
    assert machine.step is CheckoutStep.SHIPPING


@then("the shipping step is blocked")
def shipping_blocked(machine):
    assert machine.step is CheckoutStep.SHIPPING
    assert machine.blocked


@then("the shipping step is not blocked")
def shipping_not_blocked(machine):
    assert not machine.blocked

import os
import random
from decimal import Decimal

import pytest


@pytest.fixture(scope="session")
def _checkout_domain(request):
    """Initialize the checkout domain once per session."""
    os.environ["PROTEAN_ENV"] = request.config.option.env

    from checkout.domain import checkout

    checkout.init()
    return checkout


@pytest.fixture(scope="session", autouse=True)
def setup_db(_checkout_domain):
    from checkout.utils.db import drop_db, setup_db

    setup_db(_checkout_domain)

    yield

    drop_db(_checkout_domain)


@pytest.fixture(autouse=True)
def run_around_tests(_checkout_domain):
    """Push domain context before each test, cleanup after."""
    ctx = _checkout_domain.domain_context()
    ctx.push()

    yield

    from protean import current_domain

    for _, provider in current_domain.providers.items():
        provider._data_reset()

    for _, broker in current_domain.brokers.items():
        broker._data_reset()

    current_domain.event_store.store._data_reset()
    ctx.pop()


# ---------------------------------------------------------------------------
# Shared builders
# ---------------------------------------------------------------------------
@pytest.fixture()
def identity():
    from checkout.identity.port import Identity

    return Identity(user_id="user-001", name="Asha Rao", email="asha@example.com")


@pytest.fixture()
def cart_lines():
    from checkout.cart.port import CartLineItem

    return [
        CartLineItem(product_id="prod-1", name="Classic Tin", unit_price=Decimal("500.00"), quantity=2),
        CartLineItem(product_id="prod-2", name="Travel Case", unit_price=Decimal("250.00"), quantity=1),
    ]


@pytest.fixture()
def cart(cart_lines):
    from checkout.cart.port import InMemoryCart

    return InMemoryCart(cart_lines)


@pytest.fixture()
def serviceable_postal_codes():
    from protean import current_domain

    from checkout.location.postal_code import PostalCodeEntry

    repo = current_domain.repository_for(PostalCodeEntry)
    repo.add(PostalCodeEntry(postal_code="560001", city="Bengaluru", state="Karnataka"))
    repo.add(PostalCodeEntry(postal_code="560038", city="Bengaluru", state="Karnataka", shipping_method="express"))
    repo.add(PostalCodeEntry(postal_code="400001", city="Mumbai", state="Maharashtra"))
    repo.add(PostalCodeEntry(postal_code="190001", city="Srinagar", state="Jammu and Kashmir", is_serviceable=False))


@pytest.fixture()
def rng():
    return random.Random(7)

import random

import pytest
from checkout.flow.state_machine import CheckoutStateMachine
from checkout.identity.port import StaticIdentityService
from checkout.location.geocoding import FakeGeocoder
from checkout.location.geolocation import FakeGeolocation
from checkout.location.resolver import LocationResolutionService
from checkout.payment.clipboard import InMemoryClipboard


@pytest.fixture()
def geolocation():
    return FakeGeolocation()


@pytest.fixture()
def geocoder():
    return FakeGeocoder()


@pytest.fixture()
def identity_service(identity):
    return StaticIdentityService(identity)


@pytest.fixture()
def clipboard():
    return InMemoryClipboard()


@pytest.fixture()
def make_machine(cart, identity_service, geolocation, geocoder, clipboard):
    """Build a checkout state machine wired to in-memory collaborators."""

    def _make(debounce_seconds=0, **kwargs):
        return CheckoutStateMachine(
            kwargs.pop("cart", cart),
            kwargs.pop("identity", identity_service),
            location=LocationResolutionService(geolocation, geocoder),
            clipboard=clipboard,
            rng=random.Random(7),
            debounce_seconds=debounce_seconds,
            **kwargs,
        )

    return _make

"""Address book operations as the checkout flow uses them."""

import asyncio

import pytest
from checkout.addressbook.manager import AddressBookManager, is_save_suggested, split_phone
from checkout.flow.draft import ShippingDetails
from protean.exceptions import ObjectNotFoundError


def _details(**overrides):
    values = {
        "full_name": "Asha Rao",
        "email": "asha@example.com",
        "phone": "98765 43210",
        "street": "12 MG Road, Indiranagar",
        "city": "Bengaluru",
        "state": "Karnataka",
        "postal_code": "560038",
    }
    values.update(overrides)
    return ShippingDetails(**values)


class TestSaveSuggestion:
    def test_new_complete_address(self):
        assert is_save_suggested(_details())

    def test_missing_field(self):
        assert not is_save_suggested(_details(state=""))

    def test_postal_code_must_have_six_digits(self):
        assert not is_save_suggested(_details(postal_code="5600"))

    def test_loaded_saved_address(self):
        assert not is_save_suggested(_details(is_new=False))


@pytest.mark.parametrize(
    "stored,expected",
    [("+91 9876543210", ("+91", "9876543210")), ("+44 07911123456", ("+44", "07911123456")), ("9876543210", ("+91", "9876543210"))],
)
def test_split_phone(stored, expected):
    assert split_phone(stored) == expected


class TestManager:
    def test_save_normalizes_phone_and_lists(self):
        manager = AddressBookManager()

        async def scenario():
            address_id = await manager.save("user-001", _details())
            return address_id, await manager.list("user-001")

        address_id, addresses = asyncio.run(scenario())

        assert [str(a.id) for a in addresses] == [address_id]
        assert addresses[0].phone == "+91 9876543210"

    def test_duplicate_save_returns_none(self):
        manager = AddressBookManager()

        async def scenario():
            await manager.save("user-001", _details())
            duplicate = await manager.is_duplicate("user-001", _details(street="12, mg road, indiranagar"))
            return duplicate, await manager.save("user-001", _details())

        duplicate, second = asyncio.run(scenario())

        assert duplicate is True
        assert second is None

    def test_select_loads_address_into_form(self):
        manager = AddressBookManager()
        details = ShippingDetails(email="asha@example.com")

        async def scenario():
            address_id = await manager.save("user-001", _details(), label="Home")
            await manager.select(details, "user-001", address_id)
            return address_id

        address_id = asyncio.run(scenario())

        assert details.saved_address_id == address_id
        assert details.is_new is False
        assert details.phone == "9876543210"
        assert details.country_code == "+91"
        assert details.label == "Home"
        assert details.email == "asha@example.com"

    def test_select_unknown_address(self):
        manager = AddressBookManager()

        with pytest.raises(ObjectNotFoundError):
            asyncio.run(manager.select(ShippingDetails(), "user-001", "missing"))

    def test_primary_update_and_delete(self):
        manager = AddressBookManager()

        async def scenario():
            first = await manager.save("user-001", _details())
            second = await manager.save("user-001", _details(street="4th Floor, Prestige Tech Park", postal_code="560103"))
            await manager.set_primary("user-001", second)
            await manager.update("user-001", second, label="Office")
            primary = await manager.primary("user-001")
            await manager.delete("user-001", first)
            return second, primary, await manager.list("user-001")

        second, primary, remaining = asyncio.run(scenario())

        assert str(primary.id) == second
        assert primary.label == "Office"
        assert [str(a.id) for a in remaining] == [second]

    def test_no_book_yet(self):
        manager = AddressBookManager()

        assert asyncio.run(manager.list("nobody")) == []
        assert asyncio.run(manager.primary("nobody")) is None

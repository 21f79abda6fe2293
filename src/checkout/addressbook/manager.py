"""Address book operations as checkout uses them.

Wraps the AddressBook commands in coroutines and translates between saved
addresses and the shipping form. ``is_save_suggested`` decides whether the
"save this address?" prompt should be shown for the current form.
"""

import re

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from checkout.addressbook.address_book import AddressBook
from checkout.addressbook.management import RemoveAddress, SaveAddress, SetPrimaryAddress, UpdateAddress
from checkout.flow.draft import ADDRESS_FIELDS, ShippingDetails
from checkout.validation.fields import DOMESTIC_DIAL_CODE, POSTAL_CODE_LENGTH, validate_phone


def is_save_suggested(details: ShippingDetails) -> bool:
    if not details.is_new:
        return False
    if any(not (getattr(details, name) or "").strip() for name in ADDRESS_FIELDS):
        return False
    return len(details.postal_code.strip()) == POSTAL_CODE_LENGTH and details.postal_code.strip().isdigit()


def split_phone(stored: str | None) -> tuple[str, str]:
    """``"+91 9876543210"`` -> ``("+91", "9876543210")``."""
    stored = (stored or "").strip()
    match = re.match(r"^(\+\d{1,4})\s+(.*)$", stored)
    if match:
        return match.group(1), match.group(2)
    return DOMESTIC_DIAL_CODE, stored


class AddressBookManager:
    def _book(self, user_id) -> AddressBook | None:
        try:
            return current_domain.repository_for(AddressBook).get(user_id)
        except ObjectNotFoundError:
            return None

    async def list(self, user_id):
        book = self._book(user_id)
        return book.ordered() if book else []

    async def primary(self, user_id):
        book = self._book(user_id)
        return book.primary() if book else None

    async def get(self, user_id, address_id):
        book = self._book(user_id)
        return book.find(address_id) if book else None

    async def select(self, details: ShippingDetails, user_id, address_id) -> ShippingDetails:
        """Load a saved address into ``details``. Contact email is left alone."""
        address = await self.get(user_id, address_id)
        if address is None:
            raise ObjectNotFoundError(f"Address {address_id} not found")

        load_into(details, address)
        return details

    async def save(self, user_id, details: ShippingDetails, label=None, make_primary=False) -> str | None:
        """Persist the form as a saved address. Returns ``None`` when it was already saved."""
        phone = validate_phone(details.phone, details.country_code)
        command = SaveAddress(
            user_id=user_id,
            label=label or details.label,
            full_name=details.full_name,
            phone=phone.value or details.phone,
            street=details.street,
            city=details.city,
            state=details.state,
            postal_code=details.postal_code,
            country=details.country or "India",
            latitude=details.latitude,
            longitude=details.longitude,
            make_primary=make_primary,
        )
        return current_domain.process(command, asynchronous=False)

    async def is_duplicate(self, user_id, details: ShippingDetails) -> bool:
        book = self._book(user_id)
        return bool(book and book.find_duplicate(details.street, details.postal_code))

    async def update(self, user_id, address_id, **changes) -> None:
        current_domain.process(UpdateAddress(user_id=user_id, address_id=address_id, **changes), asynchronous=False)

    async def set_primary(self, user_id, address_id) -> None:
        current_domain.process(SetPrimaryAddress(user_id=user_id, address_id=address_id), asynchronous=False)

    async def delete(self, user_id, address_id) -> None:
        current_domain.process(RemoveAddress(user_id=user_id, address_id=address_id), asynchronous=False)


def load_into(details: ShippingDetails, address) -> None:
    country_code, digits = split_phone(address.phone)
    details.full_name = address.full_name
    details.phone = digits
    details.country_code = country_code
    details.street = address.street
    details.city = address.city
    details.state = address.state
    details.postal_code = address.postal_code
    details.country = address.country or "India"
    details.latitude = address.coordinates.latitude if address.coordinates else None
    details.longitude = address.coordinates.longitude if address.coordinates else None
    details.label = address.label
    details.saved_address_id = str(address.id)
    details.is_new = False

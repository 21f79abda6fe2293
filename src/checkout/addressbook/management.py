"""Address book management: commands and handler."""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Boolean, Float, Identifier, String
from protean.utils.globals import current_domain

from checkout.addressbook.address_book import AddressBook, GeoCoordinates
from checkout.addressbook.labeling import derive_label
from checkout.domain import checkout

logger = structlog.get_logger(__name__)


@checkout.command(part_of="AddressBook")
class SaveAddress:
    """Add an address to the user's book unless an equivalent one is already there."""

    user_id: Identifier(required=True)
    label: String(max_length=50)
    full_name: String(required=True, max_length=100)
    phone: String(required=True, max_length=25)
    street: String(required=True, max_length=500)
    city: String(required=True, max_length=100)
    state: String(required=True, max_length=100)
    postal_code: String(required=True, max_length=10)
    country: String(max_length=100, default="India")
    latitude: Float()
    longitude: Float()
    make_primary: Boolean(default=False)


@checkout.command(part_of="AddressBook")
class UpdateAddress:
    user_id: Identifier(required=True)
    address_id: Identifier(required=True)
    label: String(max_length=50)
    full_name: String(max_length=100)
    phone: String(max_length=25)
    street: String(max_length=500)
    city: String(max_length=100)
    state: String(max_length=100)
    postal_code: String(max_length=10)
    country: String(max_length=100)


@checkout.command(part_of="AddressBook")
class RemoveAddress:
    user_id: Identifier(required=True)
    address_id: Identifier(required=True)


@checkout.command(part_of="AddressBook")
class SetPrimaryAddress:
    user_id: Identifier(required=True)
    address_id: Identifier(required=True)


def _open_book(repo, user_id):
    try:
        return repo.get(user_id)
    except ObjectNotFoundError:
        return AddressBook(user_id=user_id)


@checkout.command_handler(part_of=AddressBook)
class ManageAddressBookHandler:
    @handle(SaveAddress)
    def save_address(self, command):
        repo = current_domain.repository_for(AddressBook)
        book = _open_book(repo, command.user_id)

        duplicate = book.find_duplicate(command.street, command.postal_code)
        if duplicate is not None:
            logger.info("Address already saved", user_id=str(command.user_id), address_id=str(duplicate.id))
            return None

        coordinates = None
        if command.latitude is not None and command.longitude is not None:
            coordinates = GeoCoordinates(latitude=command.latitude, longitude=command.longitude)

        address = book.add_address(
            full_name=command.full_name,
            phone=command.phone,
            street=command.street,
            city=command.city,
            state=command.state,
            postal_code=command.postal_code,
            country=command.country or "India",
            label=command.label or derive_label(command.street, command.city),
            make_primary=bool(command.make_primary),
            coordinates=coordinates,
        )
        repo.add(book)
        return str(address.id)

    @handle(UpdateAddress)
    def update_address(self, command):
        repo = current_domain.repository_for(AddressBook)
        book = repo.get(command.user_id)

        changes = {}
        for field in ("label", "full_name", "phone", "street", "city", "state", "postal_code", "country"):
            value = getattr(command, field, None)
            if value is not None:
                changes[field] = value

        book.update_address(command.address_id, **changes)
        repo.add(book)

    @handle(RemoveAddress)
    def remove_address(self, command):
        repo = current_domain.repository_for(AddressBook)
        book = repo.get(command.user_id)
        book.remove_address(command.address_id)
        repo.add(book)

    @handle(SetPrimaryAddress)
    def set_primary_address(self, command):
        repo = current_domain.repository_for(AddressBook)
        book = repo.get(command.user_id)
        book.set_primary(command.address_id)
        repo.add(book)

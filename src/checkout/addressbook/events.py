"""Domain events for the AddressBook aggregate."""

from protean.fields import Boolean, Identifier, String

from checkout.domain import checkout


@checkout.event(part_of="AddressBook")
class AddressSaved:
    """A new address was added to a user's address book."""

    __version__ = 1

    user_id: Identifier(required=True)
    address_id: Identifier(required=True)
    label: String(required=True)
    city: String(required=True)
    postal_code: String(required=True)
    is_primary: Boolean(required=True)


@checkout.event(part_of="AddressBook")
class AddressUpdated:
    __version__ = 1

    user_id: Identifier(required=True)
    address_id: Identifier(required=True)
    changed_fields: String()


@checkout.event(part_of="AddressBook")
class AddressRemoved:
    __version__ = 1

    user_id: Identifier(required=True)
    address_id: Identifier(required=True)
    was_primary: Boolean(default=False)


@checkout.event(part_of="AddressBook")
class PrimaryAddressChanged:
    """The user picked a different primary address."""

    __version__ = 1

    user_id: Identifier(required=True)
    address_id: Identifier(required=True)
    previous_address_id: Identifier()

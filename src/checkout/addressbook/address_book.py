"""AddressBook aggregate: a user's saved shipping addresses."""

import re
from datetime import datetime

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, String, ValueObject

from checkout.domain import checkout

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_street(street: str | None) -> str:
    """Reduce a street line to a comparison key: lower-case, no punctuation, single spaces."""
    text = _PUNCTUATION.sub(" ", (street or "").lower())
    return _WHITESPACE.sub(" ", text).strip()


@checkout.value_object(part_of="AddressBook")
class GeoCoordinates:
    """Latitude/longitude pair captured when the address came from device location."""

    latitude: Float(min_value=-90.0, max_value=90.0)
    longitude: Float(min_value=-180.0, max_value=180.0)

    @invariant.post
    def both_coordinates_required(self):
        if self.latitude is None or self.longitude is None:
            raise ValidationError({"coordinates": ["Both latitude and longitude are required"]})


@checkout.entity(part_of="AddressBook")
class SavedAddress:
    label: String(max_length=50, default="Address")
    full_name: String(required=True, max_length=100)
    phone: String(required=True, max_length=25)
    street: String(required=True, max_length=500)
    city: String(required=True, max_length=100)
    state: String(required=True, max_length=100)
    postal_code: String(required=True, max_length=10)
    country: String(max_length=100, default="India")
    coordinates: ValueObject(GeoCoordinates)
    is_primary: Boolean(default=False)
    created_at: DateTime(default=datetime.now)


@checkout.aggregate
class AddressBook:
    """All addresses one user has saved.

    The book is the consistency boundary for the primary flag: at most one
    address is primary at any time. The first address ever saved becomes
    primary; removing the primary leaves the book without one until the user
    picks another.
    """

    user_id: Identifier(identifier=True)
    addresses: HasMany(SavedAddress)

    @invariant.post
    def at_most_one_primary_address(self):
        primaries = [a for a in self.addresses if a.is_primary]
        if len(primaries) > 1:
            raise ValidationError({"addresses": ["Only one address can be primary"]})

    def find(self, address_id):
        return next((a for a in self.addresses if str(a.id) == str(address_id)), None)

    def _get(self, address_id):
        address = self.find(address_id)
        if address is None:
            raise ValidationError({"addresses": [f"Address {address_id} not found"]})
        return address

    def find_duplicate(self, street, postal_code, exclude_id=None):
        """The saved address with the same normalized street and postal code, if any."""
        key = (normalize_street(street), (postal_code or "").strip())
        for address in self.addresses:
            if exclude_id is not None and str(address.id) == str(exclude_id):
                continue
            if (normalize_street(address.street), address.postal_code) == key:
                return address
        return None

    def primary(self):
        return next((a for a in self.addresses if a.is_primary), None)

    def ordered(self):
        """Primary first, then newest first."""
        newest_first = sorted(self.addresses, key=lambda a: a.created_at, reverse=True)
        return sorted(newest_first, key=lambda a: not a.is_primary)

    def add_address(
        self,
        full_name,
        phone,
        street,
        city,
        state,
        postal_code,
        country="India",
        label="Address",
        make_primary=False,
        coordinates=None,
    ):
        from checkout.addressbook.events import AddressSaved

        if not self.addresses:
            make_primary = True

        with atomic_change(self):
            if make_primary:
                for addr in self.addresses:
                    if addr.is_primary:
                        addr.is_primary = False

            address = SavedAddress(
                label=label,
                full_name=full_name,
                phone=phone,
                street=street,
                city=city,
                state=state,
                postal_code=postal_code,
                country=country,
                coordinates=coordinates,
                is_primary=make_primary,
                created_at=datetime.now(),
            )
            self.add_addresses(address)

        self.raise_(
            AddressSaved(
                user_id=self.user_id,
                address_id=address.id,
                label=label,
                city=city,
                postal_code=postal_code,
                is_primary=make_primary,
            )
        )
        return address

    def update_address(self, address_id, **changes):
        from checkout.addressbook.events import AddressUpdated

        address = self._get(address_id)

        street = changes.get("street", address.street)
        postal_code = changes.get("postal_code", address.postal_code)
        if self.find_duplicate(street, postal_code, exclude_id=address_id):
            raise ValidationError({"street": ["This address is already saved"]})

        for field, value in changes.items():
            setattr(address, field, value)

        self.raise_(
            AddressUpdated(
                user_id=self.user_id,
                address_id=address.id,
                changed_fields=",".join(sorted(changes)),
            )
        )
        return address

    def remove_address(self, address_id):
        from checkout.addressbook.events import AddressRemoved

        address = self._get(address_id)
        was_primary = address.is_primary
        self.remove_addresses(address)

        self.raise_(
            AddressRemoved(
                user_id=self.user_id,
                address_id=address_id,
                was_primary=was_primary,
            )
        )

    def set_primary(self, address_id):
        from checkout.addressbook.events import PrimaryAddressChanged

        address = self._get(address_id)
        previous = self.primary()

        with atomic_change(self):
            for addr in self.addresses:
                if addr.is_primary:
                    addr.is_primary = False
            address.is_primary = True

        self.raise_(
            PrimaryAddressChanged(
                user_id=self.user_id,
                address_id=address.id,
                previous_address_id=previous.id if previous else None,
            )
        )

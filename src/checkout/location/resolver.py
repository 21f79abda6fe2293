"""Resolve where the shopper is: by postal code or by device location.

Both paths end in the same ``ResolvedPlace`` shape. Every failure is turned
into a field error or an advisory here; nothing raised by the lookup table,
the device or the geocoder escapes this module.
"""

from dataclasses import dataclass

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from checkout.config import settings
from checkout.location.geocoding import ReverseGeocoder, ReverseGeocodingError
from checkout.location.geolocation import GeolocationError, GeolocationErrorCode, GeolocationProvider
from checkout.location.postal_code import DEFAULT_SHIPPING_METHOD, PostalCodeEntry
from checkout.validation.fields import validate_postal_code

logger = structlog.get_logger(__name__)

NOT_SERVICEABLE = "This PIN code is not serviceable"
LOOKUP_UNAVAILABLE = "We couldn't check this PIN code right now. Please try again."
CURRENT_LOCATION_PLACEHOLDER = "Current Location"
DEFAULT_COUNTRY = "India"

GEOLOCATION_ADVISORIES = {
    GeolocationErrorCode.PERMISSION_DENIED: (
        "Location permission denied. Please enable location access in your browser settings and try again, "
        "or enter your address manually."
    ),
    GeolocationErrorCode.POSITION_UNAVAILABLE: (
        "Location service unavailable. Please check your internet connection, or enter your address manually."
    ),
    GeolocationErrorCode.TIMEOUT: (
        "Location request timed out. Please try again with a stronger connection, or enter your address manually."
    ),
}
PARTIAL_ADDRESS_ADVISORY = "We found your location but not your full address. Please complete the remaining fields."
LOCATION_FILLED = "Location detected and address filled!"


@dataclass(frozen=True)
class ResolvedPlace:
    city: str
    state: str
    country: str = DEFAULT_COUNTRY
    # Only set when the area is served by something other than standard shipping
    shipping_option: str | None = None


@dataclass(frozen=True)
class PostalLookupResult:
    postal_code: str
    place: ResolvedPlace | None = None
    error: str | None = None
    # The table could not be reached; the code is neither confirmed nor refused
    unavailable: bool = False

    @property
    def is_serviceable(self) -> bool:
        return self.place is not None


@dataclass(frozen=True)
class DeviceLocationResult:
    """What device location produced, ready to be merged into the shipping form."""

    located: bool
    advisory: str
    advisory_level: str = "warning"
    street: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = ""
    latitude: float | None = None
    longitude: float | None = None
    shipping_option: str | None = None
    postal_error: str | None = None
    complete: bool = False


def lookup_postal_code(postal_code: str) -> PostalLookupResult:
    """Look ``postal_code`` up in the serviceability table.

    Malformed codes are rejected with the validator's message without touching
    the table. Unknown and non-serviceable codes both come back as
    ``NOT_SERVICEABLE``. A table that cannot be read gives an ``unavailable``
    result so the caller can retry.
    """
    shape = validate_postal_code(postal_code)
    if not shape.is_valid:
        return PostalLookupResult(postal_code=postal_code, error=shape.error)

    try:
        entry = current_domain.repository_for(PostalCodeEntry).get(shape.value)
    except ObjectNotFoundError:
        logger.info("Postal code not found", postal_code=shape.value)
        return PostalLookupResult(postal_code=shape.value, error=NOT_SERVICEABLE)
    except Exception as exc:
        logger.warning("Postal code lookup failed", postal_code=shape.value, error=str(exc))
        return PostalLookupResult(postal_code=shape.value, error=LOOKUP_UNAVAILABLE, unavailable=True)

    if not entry.is_serviceable:
        logger.info("Postal code not serviceable", postal_code=shape.value)
        return PostalLookupResult(postal_code=shape.value, error=NOT_SERVICEABLE)

    override = entry.shipping_method if entry.shipping_method != DEFAULT_SHIPPING_METHOD else None
    return PostalLookupResult(
        postal_code=shape.value,
        place=ResolvedPlace(
            city=entry.city,
            state=entry.state,
            country=entry.country or DEFAULT_COUNTRY,
            shipping_option=override,
        ),
    )


class LocationResolutionService:
    def __init__(
        self,
        geolocation: GeolocationProvider,
        geocoder: ReverseGeocoder,
        geolocation_timeout: float | None = None,
    ) -> None:
        self.geolocation = geolocation
        self.geocoder = geocoder
        self.geolocation_timeout = max(geolocation_timeout or 0, settings.geolocation_timeout)

    async def resolve_postal_code(self, postal_code: str) -> PostalLookupResult:
        return lookup_postal_code(postal_code)

    async def resolve_device_location(self) -> DeviceLocationResult:
        try:
            coordinates = await self.geolocation.current_position(
                timeout=self.geolocation_timeout,
                high_accuracy=True,
            )
        except GeolocationError as exc:
            logger.info("Device location unavailable", code=exc.code.name)
            return DeviceLocationResult(located=False, advisory=GEOLOCATION_ADVISORIES[exc.code], advisory_level="info")

        try:
            address = await self.geocoder.reverse(coordinates.latitude, coordinates.longitude)
        except ReverseGeocodingError as exc:
            logger.warning("Reverse geocoding failed, falling back to manual entry", error=str(exc))
            address = None

        if address is None or address.is_empty:
            return DeviceLocationResult(
                located=True,
                advisory=PARTIAL_ADDRESS_ADVISORY,
                street=CURRENT_LOCATION_PLACEHOLDER,
                latitude=coordinates.latitude,
                longitude=coordinates.longitude,
            )

        city, state = address.city, address.state
        country = address.country or DEFAULT_COUNTRY
        shipping_option = None
        postal_error = None

        if address.postal_code and validate_postal_code(address.postal_code).is_valid:
            lookup = await self.resolve_postal_code(address.postal_code)
            if lookup.place is not None:
                city, state, country = lookup.place.city, lookup.place.state, lookup.place.country
                shipping_option = lookup.place.shipping_option
            elif not lookup.unavailable:
                postal_error = lookup.error

        street = address.street or CURRENT_LOCATION_PLACEHOLDER
        complete = all((address.street, city, state, address.postal_code))

        return DeviceLocationResult(
            located=True,
            advisory=LOCATION_FILLED if complete else PARTIAL_ADDRESS_ADVISORY,
            advisory_level="success" if complete else "warning",
            street=street,
            city=city,
            state=state,
            postal_code=address.postal_code,
            country=country,
            latitude=coordinates.latitude,
            longitude=coordinates.longitude,
            shipping_option=shipping_option,
            postal_error=postal_error,
            complete=complete,
        )

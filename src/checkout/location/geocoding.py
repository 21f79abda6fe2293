"""Reverse geocoding port and adapters.

``NominatimGeocoder`` talks to an OpenStreetMap Nominatim endpoint over
``httpx``; ``FakeGeocoder`` returns whatever a test configured. Both raise
``ReverseGeocodingError`` for anything other than a usable answer so callers
only have to handle one exception type.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx
import structlog

from checkout.config import settings

logger = structlog.get_logger(__name__)


class ReverseGeocodingError(Exception):
    """The service could not turn coordinates into an address."""


@dataclass(frozen=True)
class GeocodedAddress:
    """Address components recovered from coordinates. Any of them may be missing."""

    street: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = ""

    @property
    def is_empty(self) -> bool:
        return not any((self.street, self.city, self.state, self.postal_code))


class ReverseGeocoder(ABC):
    """Abstract reverse geocoding interface."""

    @abstractmethod
    async def reverse(self, latitude: float, longitude: float) -> GeocodedAddress:
        """Resolve coordinates to address components."""
        ...


def parse_nominatim(payload: dict) -> GeocodedAddress:
    """Map a Nominatim ``/reverse`` JSON body onto ``GeocodedAddress``.

    The street line is assembled from the finest components present and falls
    back to ``display_name`` when none are. City falls back through town,
    village and municipality.
    """
    address = payload.get("address") or {}
    if not address:
        return GeocodedAddress()

    parts = [
        address.get("house_number"),
        address.get("building"),
        address.get("road") or address.get("street"),
        address.get("suburb") or address.get("neighbourhood"),
    ]
    street = ", ".join(part for part in parts if part) or payload.get("display_name", "")

    city = (
        address.get("city")
        or address.get("town")
        or address.get("village")
        or address.get("municipality")
        or address.get("county")
        or ""
    )
    return GeocodedAddress(
        street=street,
        city=city,
        state=address.get("state") or address.get("state_district") or "",
        postal_code=(address.get("postcode") or "").replace(" ", ""),
        country=address.get("country") or "",
    )


class NominatimGeocoder(ReverseGeocoder):
    """Reverse geocoder backed by a Nominatim HTTP endpoint."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        url: str | None = None,
        user_agent: str | None = None,
        timeout: float = 10.0,
    ) -> None:
        self.url = url or settings.geocoder_url
        self.user_agent = user_agent or settings.geocoder_user_agent
        self.timeout = timeout
        self._client = client

    async def reverse(self, latitude: float, longitude: float) -> GeocodedAddress:
        params = {
            "format": "json",
            "lat": latitude,
            "lon": longitude,
            "addressdetails": 1,
        }
        headers = {"User-Agent": self.user_agent, "Accept-Language": "en"}

        try:
            if self._client is not None:
                response = await self._client.get(self.url, params=params, headers=headers, timeout=self.timeout)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.get(self.url, params=params, headers=headers, timeout=self.timeout)
        except httpx.HTTPError as exc:
            logger.warning("Reverse geocoding request failed", error=str(exc))
            raise ReverseGeocodingError(str(exc)) from exc

        if not response.is_success:
            logger.warning("Reverse geocoding returned an error status", status_code=response.status_code)
            raise ReverseGeocodingError(f"Geocoder responded with {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise ReverseGeocodingError("Geocoder returned a malformed body") from exc

        return parse_nominatim(payload if isinstance(payload, dict) else {})


class FakeGeocoder(ReverseGeocoder):
    """Configurable fake reverse geocoder."""

    def __init__(self, address: GeocodedAddress | None = None) -> None:
        self.address = address or GeocodedAddress()
        self.should_succeed: bool = True
        self.calls: list[tuple[float, float]] = []

    def configure(self, address: GeocodedAddress | None = None, should_succeed: bool = True) -> None:
        if address is not None:
            self.address = address
        self.should_succeed = should_succeed

    async def reverse(self, latitude: float, longitude: float) -> GeocodedAddress:
        self.calls.append((latitude, longitude))
        if not self.should_succeed:
            raise ReverseGeocodingError("Geocoder unavailable")
        return self.address

"""Device geolocation port.

Defines the contract for one-shot coordinate requests and a configurable fake
for development and tests. The three failure codes mirror the ones device
location APIs report.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


class GeolocationErrorCode(Enum):
    PERMISSION_DENIED = 1
    POSITION_UNAVAILABLE = 2
    TIMEOUT = 3


class GeolocationError(Exception):
    """Raised by a provider when no position could be obtained."""

    def __init__(self, code: GeolocationErrorCode, message: str | None = None) -> None:
        self.code = code
        super().__init__(message or code.name.replace("_", " ").lower())


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float
    accuracy: float | None = None


class GeolocationProvider(ABC):
    """Abstract device location interface."""

    @abstractmethod
    async def current_position(
        self,
        timeout: float,
        high_accuracy: bool = True,
        maximum_age: float = 60.0,
    ) -> Coordinates:
        """Return the device's current coordinates or raise ``GeolocationError``."""
        ...


class FakeGeolocation(GeolocationProvider):
    """Configurable fake device location."""

    def __init__(self, coordinates: Coordinates | None = None) -> None:
        self.coordinates = coordinates or Coordinates(latitude=12.9716, longitude=77.5946, accuracy=20.0)
        self.error_code: GeolocationErrorCode | None = None
        self.delay: float = 0.0
        self.calls: list[dict] = []

    def configure(
        self,
        coordinates: Coordinates | None = None,
        error_code: GeolocationErrorCode | None = None,
        delay: float = 0.0,
    ) -> None:
        """Configure the next responses at runtime."""
        if coordinates is not None:
            self.coordinates = coordinates
        self.error_code = error_code
        self.delay = delay

    async def current_position(
        self,
        timeout: float,
        high_accuracy: bool = True,
        maximum_age: float = 60.0,
    ) -> Coordinates:
        self.calls.append({"timeout": timeout, "high_accuracy": high_accuracy, "maximum_age": maximum_age})

        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error_code is not None:
            raise GeolocationError(self.error_code)
        return self.coordinates

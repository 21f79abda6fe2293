"""Cart collaborator port.

Checkout never owns the cart. It reads line items, listens for changes and
asks for the cart to be cleared once an order exists. ``InMemoryCart`` is the
adapter used in development and tests.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from decimal import Decimal

import structlog

from checkout.shared.money import ZERO, to_money

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CartLineItem:
    product_id: str
    name: str
    unit_price: Decimal
    quantity: int
    brand: str = ""
    variant_id: str | None = None
    variant_name: str | None = None
    bundle_id: str | None = None
    bundle_name: str | None = None
    image: str | None = None

    def __post_init__(self):
        if self.quantity < 1:
            raise ValueError(f"Quantity must be at least 1, got {self.quantity}")
        object.__setattr__(self, "unit_price", to_money(self.unit_price))

    @property
    def line_total(self) -> Decimal:
        return to_money(self.unit_price * self.quantity)


def cart_subtotal(lines: Sequence[CartLineItem]) -> Decimal:
    return to_money(sum((line.line_total for line in lines), ZERO))


CartListener = Callable[[list[CartLineItem]], None]


class CartService(ABC):
    """Abstract cart interface."""

    @abstractmethod
    def get_cart(self) -> list[CartLineItem]:
        """Return the current line items, in display order."""
        ...

    @abstractmethod
    def on_cart_change(self, handler: CartListener) -> Callable[[], None]:
        """Subscribe to cart changes. Returns a callable that unsubscribes."""
        ...

    @abstractmethod
    async def clear(self) -> None:
        """Empty the cart."""
        ...


class InMemoryCart(CartService):
    """Cart held in process memory, with observer notifications."""

    def __init__(self, lines: Sequence[CartLineItem] = ()) -> None:
        self._lines: list[CartLineItem] = list(lines)
        self._listeners: list[CartListener] = []
        self.fail_on_clear: bool = False
        self.clear_calls: int = 0

    def get_cart(self) -> list[CartLineItem]:
        return list(self._lines)

    def on_cart_change(self, handler: CartListener) -> Callable[[], None]:
        self._listeners.append(handler)

        def unsubscribe() -> None:
            if handler in self._listeners:
                self._listeners.remove(handler)

        return unsubscribe

    def add(self, line: CartLineItem) -> None:
        self._lines.append(line)
        self._notify()

    def replace(self, lines: Sequence[CartLineItem]) -> None:
        self._lines = list(lines)
        self._notify()

    async def clear(self) -> None:
        self.clear_calls += 1
        await asyncio.sleep(0)
        if self.fail_on_clear:
            raise ConnectionError("Cart service unavailable")
        self._lines = []
        self._notify()

    def _notify(self) -> None:
        snapshot = self.get_cart()
        for listener in list(self._listeners):
            listener(snapshot)

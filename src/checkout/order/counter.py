"""Monotonic sequence for human-facing order numbers."""

from protean.fields import Integer, String

from checkout.domain import checkout

ORDER_SEQUENCE = "orders"


@checkout.aggregate
class OrderCounter:
    name: String(identifier=True, max_length=50)
    value: Integer(default=0, min_value=0)

    def advance(self) -> int:
        self.value = (self.value or 0) + 1
        return self.value

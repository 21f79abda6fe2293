"""Money helpers. All checkout arithmetic is done in ``Decimal`` rupees."""

from decimal import ROUND_HALF_UP, Decimal

PAISA = Decimal("0.01")
ZERO = Decimal("0.00")
CURRENCY = "INR"


def to_money(value) -> Decimal:
    """Coerce ints, floats, strings and Decimals to a rupee amount with paise precision."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        amount = value
    else:
        # str() keeps floats such as 0.1 from dragging binary noise along
        amount = Decimal(str(value))
    return amount.quantize(PAISA, rounding=ROUND_HALF_UP)


def format_inr(value) -> str:
    """Render an amount the way Indian price tags do: ``₹1,23,456.78``."""
    amount = to_money(value)
    sign = "-" if amount < 0 else ""
    rupees, paise = f"{abs(amount):.2f}".split(".")

    if len(rupees) > 3:
        head, tail = rupees[:-3], rupees[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        rupees = ",".join(groups + [tail])

    return f"{sign}₹{rupees}.{paise}"

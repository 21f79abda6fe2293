"""UPI payment requests: reference, deep link and QR code.

The reference is a short, time-derived tag shown to the shopper and embedded
in the deep link so a payment can be matched to an order by hand. It is not an
order identifier.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from urllib.parse import quote, urlencode

import segno

from checkout.config import settings
from checkout.shared.money import CURRENCY, to_money

REFERENCE_PREFIX = "TXN"
REFERENCE_DIGITS = 8
QR_SCALE = 8
QR_BORDER = 2


@dataclass(frozen=True)
class Payee:
    vpa: str
    name: str


def default_payee() -> Payee:
    return Payee(vpa=settings.payee_vpa, name=settings.payee_name)


def generate_reference(now: datetime | None = None, previous: str | None = None) -> str:
    """``TXN`` plus the last eight digits of the epoch milliseconds, never equal to ``previous``."""
    millis = int((now or datetime.now()).timestamp() * 1000)
    reference = f"{REFERENCE_PREFIX}{str(millis)[-REFERENCE_DIGITS:]}"
    while reference == previous:
        millis += 1
        reference = f"{REFERENCE_PREFIX}{str(millis)[-REFERENCE_DIGITS:]}"
    return reference


def build_payment_uri(payee: Payee, amount, reference: str) -> str:
    params = {
        "pa": payee.vpa,
        "pn": payee.name,
        "am": f"{to_money(amount):.2f}",
        "cu": CURRENCY,
        "tid": reference,
        "tn": reference,
    }
    return "upi://pay?" + urlencode(params, quote_via=quote, safe="@")


def render_qr(uri: str) -> str:
    """PNG data URI of a QR code encoding ``uri``."""
    return segno.make(uri, error="m").png_data_uri(scale=QR_SCALE, border=QR_BORDER)


@dataclass(frozen=True)
class PaymentRequest:
    reference: str
    amount: Decimal
    payee: Payee
    uri: str
    qr_code: str
    created_at: datetime

    @classmethod
    def create(cls, amount, payee: Payee | None = None, previous_reference: str | None = None) -> "PaymentRequest":
        payee = payee or default_payee()
        now = datetime.now()
        reference = generate_reference(now, previous=previous_reference)
        uri = build_payment_uri(payee, amount, reference)
        return cls(
            reference=reference,
            amount=to_money(amount),
            payee=payee,
            uri=uri,
            qr_code=render_qr(uri),
            created_at=now,
        )

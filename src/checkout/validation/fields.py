"""Field validators for the shipping form.

Every validator takes the raw user input (plus context such as a country
dialling code) and returns a ``FieldResult``: either a normalized value or a
human-readable error, never both. ``validate_form`` runs a rule set over a
whole form and reports per-field errors next to the sanitized values.
"""

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

_UNSAFE_CHARS = re.compile(r"[<>\"'&]")
_WHITESPACE = re.compile(r"\s+")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")
_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_NAME_ALLOWED = re.compile(r"^[^\W\d_]+(?:[ .'\-]+[^\W\d_]+)*\.?$")

DOMESTIC_DIAL_CODE = "+91"

# (min digits, max digits, error) per dialling code; anything else uses the fallback
_PHONE_RULES = {
    "+91": (10, 10, "Please enter a valid 10-digit Indian phone number"),
    "+1": (10, 10, "Please enter a valid 10-digit phone number"),
    "+44": (10, 11, "Please enter a valid UK phone number"),
}
_PHONE_FALLBACK = (7, 15, "Please enter a valid phone number")

# Postal schemes by country key. New countries register a pattern and a message.
POSTAL_SCHEMES = {
    "IN": (re.compile(r"^[1-9][0-9]{5}$"), "Please enter a valid 6-digit PIN code"),
    "US": (re.compile(r"^[0-9]{5}(?:-[0-9]{4})?$"), "Please enter a valid ZIP code"),
}
POSTAL_CODE_LENGTH = 6

MIN_STREET_LENGTH = 10


@dataclass(frozen=True)
class FieldResult:
    """Outcome of validating a single field."""

    value: str | None = None
    error: str | None = None

    @property
    def is_valid(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class FormValidation:
    """Outcome of validating a whole form."""

    errors: dict[str, str] = field(default_factory=dict)
    sanitized: dict[str, str] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def sanitize(raw, max_length: int = 255) -> str:
    """Trim, truncate, strip markup-significant characters and collapse whitespace."""
    if not isinstance(raw, str):
        return ""
    text = raw.strip()[:max_length]
    text = _UNSAFE_CHARS.sub("", text)
    return _WHITESPACE.sub(" ", text).strip()


def validate_name(raw, field_name: str = "Name") -> FieldResult:
    value = sanitize(raw, 100)
    if not value:
        return FieldResult(error=f"{field_name} is required")
    if len(value) < 2:
        return FieldResult(error=f"{field_name} must be at least 2 characters long")
    if not _NAME_ALLOWED.match(value):
        return FieldResult(error=f"{field_name} can only contain letters, spaces, hyphens, and apostrophes")
    return FieldResult(value=value)


def validate_email(raw) -> FieldResult:
    value = sanitize(raw, 254)
    if not value:
        return FieldResult(error="Email is required")
    if not _EMAIL.match(value):
        return FieldResult(error="Please enter a valid email address")
    return FieldResult(value=value.lower())


def validate_phone(raw, country_code: str = DOMESTIC_DIAL_CODE) -> FieldResult:
    """Validate a phone number for the given dialling code.

    Only digits are considered. A leading ``country_code`` is dropped, so an
    already normalized number validates again unchanged. For the domestic code
    an international prefix (``0091``, ``91``) or trunk ``0`` typed in front of
    the ten local digits is stripped as well. The normalized form is
    ``"<code> <digits>"``.
    """
    value = sanitize(raw, 20)
    if not value:
        return FieldResult(error="Phone number is required")
    if value.startswith(country_code):
        value = value[len(country_code) :]

    digits = re.sub(r"\D", "", value)
    if country_code == DOMESTIC_DIAL_CODE and len(digits) > 10:
        for prefix in ("0091", "91", "0"):
            if digits.startswith(prefix) and len(digits) - len(prefix) == 10:
                digits = digits[len(prefix) :]
                break

    minimum, maximum, message = _PHONE_RULES.get(country_code, _PHONE_FALLBACK)
    if not minimum <= len(digits) <= maximum:
        return FieldResult(error=message)
    return FieldResult(value=f"{country_code} {digits}")


def validate_postal_code(raw, scheme: str = "IN") -> FieldResult:
    value = sanitize(raw, 10)
    if not value:
        return FieldResult(error="PIN code is required")
    pattern, message = POSTAL_SCHEMES[scheme]
    if not pattern.match(value):
        return FieldResult(error=message)
    return FieldResult(value=value)


def is_postal_code_shaped(raw, scheme: str = "IN") -> bool:
    return validate_postal_code(raw, scheme).is_valid


def validate_street(raw) -> FieldResult:
    if isinstance(raw, str) and _CONTROL_CHARS.search(raw):
        return FieldResult(error="Address contains invalid characters")
    value = sanitize(raw, 500)
    if not value:
        return FieldResult(error="Address is required")
    if len(value) < MIN_STREET_LENGTH:
        return FieldResult(error="Please enter a complete address")
    return FieldResult(value=value)


def validate_required(raw, field_name: str, max_length: int = 100) -> FieldResult:
    value = sanitize(raw, max_length)
    if not value:
        return FieldResult(error=f"{field_name} is required")
    return FieldResult(value=value)


Rule = Callable[[str], FieldResult]


def validate_form(data: Mapping[str, str], rules: Mapping[str, Rule]) -> FormValidation:
    """Run ``rules`` over ``data``.

    Fields with a rule get an error or a sanitized value; fields without one
    pass through untouched.
    """
    errors: dict[str, str] = {}
    sanitized: dict[str, str] = {}

    for name, raw in data.items():
        rule = rules.get(name)
        if rule is None:
            sanitized[name] = raw
            continue
        result = rule(raw)
        if result.error:
            errors[name] = result.error
        else:
            sanitized[name] = result.value

    # Rules for fields absent from the form still have to run (required checks)
    for name, rule in rules.items():
        if name not in data:
            result = rule("")
            if result.error:
                errors[name] = result.error

    return FormValidation(errors=errors, sanitized=sanitized)


def shipping_rules(country_code: str = DOMESTIC_DIAL_CODE) -> dict[str, Rule]:
    """The rule set applied to the checkout shipping form."""
    return {
        "full_name": lambda raw: validate_name(raw, "Full name"),
        "email": validate_email,
        "phone": lambda raw: validate_phone(raw, country_code),
        "street": validate_street,
        "postal_code": validate_postal_code,
        "city": lambda raw: validate_required(raw, "City"),
        "state": lambda raw: validate_required(raw, "State"),
    }

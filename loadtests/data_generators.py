"""Faker-based data generators for the checkout load test scenarios.

Payloads pass the checkout validation rules (10-digit Indian phone numbers,
6-digit PIN codes without a leading zero, street lines of at least ten
characters) and match the field names of the API's Pydantic request schemas.
"""

import random
import uuid

from faker import Faker

fake = Faker("en_IN")

# PIN codes seeded by scripts/seed_postal_codes.csv, so lookups hit
SEEDED_POSTAL_CODES = ["560001", "560038", "400001", "110001", "600001"]


def unique_user_id() -> str:
    return f"user-lt-{uuid.uuid4().hex[:8]}"


def valid_phone() -> str:
    return f"{random.randint(6, 9)}{random.randint(0, 999_999_999):09d}"


def full_name() -> str:
    return f"{fake.first_name()} {fake.last_name()}"[:100]


def random_postal_code() -> str:
    return f"{random.randint(1, 9)}{random.randint(0, 99_999):05d}"


def address_data(seeded: bool = True) -> dict:
    """Generate a SaveAddressRequest payload."""
    return {
        "full_name": full_name(),
        "phone": valid_phone(),
        "country_code": "+91",
        "street": f"{random.randint(1, 999)}, {fake.street_name()}, {fake.city()}"[:500],
        "city": fake.city()[:100],
        "state": fake.state()[:100],
        "postal_code": random.choice(SEEDED_POSTAL_CODES) if seeded else random_postal_code(),
        "country": "India",
    }


def cart_items(count: int | None = None) -> list[dict]:
    return [
        {
            "product_id": f"prod-{random.randint(1, 500)}",
            "name": fake.catch_phrase()[:255],
            "unit_price": round(random.uniform(99, 2499), 2),
            "quantity": random.randint(1, 3),
        }
        for _ in range(count or random.randint(1, 4))
    ]

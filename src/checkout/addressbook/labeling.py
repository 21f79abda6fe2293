"""Derive a human label for an address the user did not name."""

import re

DEFAULT_LABEL = "Address"

# Checked in order; the first vocabulary with a hit wins
_VOCABULARIES = (
    (
        "Work",
        (
            "office",
            "tower",
            "tech park",
            "it park",
            "business park",
            "corporate",
            "company",
            "sez",
            "floor",
            "workspace",
            "cowork",
            "industrial",
        ),
    ),
    (
        "Home",
        (
            "home",
            "house",
            "flat",
            "apartment",
            "apartments",
            "apt",
            "villa",
            "residence",
            "residency",
            "society",
            "enclave",
            "bungalow",
        ),
    ),
    ("PG", ("pg", "paying guest", "hostel")),
    ("Hotel", ("hotel", "inn", "resort", "lodge", "guest house")),
)


def _mentions(text: str, keyword: str) -> bool:
    return re.search(rf"\b{re.escape(keyword)}\b", text) is not None


def derive_label(street: str | None, city: str | None = None) -> str:
    text = (street or "").lower()
    for label, keywords in _VOCABULARIES:
        if any(_mentions(text, keyword) for keyword in keywords):
            return label

    city = (city or "").strip()
    if city:
        return city.title()
    return DEFAULT_LABEL

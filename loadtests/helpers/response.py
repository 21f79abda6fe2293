"""Response error extraction for load test observability.

Handles the two error shapes the checkout API returns:

- Pydantic validation (422): {"detail": [{"loc": [...], "msg": "...", "type": "..."}]}
- Domain errors (404/422): {"detail": "msg"} or {"detail": {"field": "msg"}}
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from locust.clients import ResponseContextManager


def extract_error_detail(response: ResponseContextManager) -> str:
    """Compact, human-readable error message for Locust failure lines."""
    try:
        body = response.json()
    except Exception:
        text = getattr(response, "text", "") or ""
        return text[:300] or "(empty response body)"

    detail = body.get("detail") if isinstance(body, dict) else None
    if isinstance(detail, list):
        parts = []
        for err in detail:
            loc = ".".join(str(p) for p in err.get("loc", []))
            msg = err.get("msg", str(err))
            parts.append(f"{loc}: {msg}" if loc else msg)
        return " | ".join(parts)
    if isinstance(detail, dict):
        return " | ".join(f"{k}: {v}" for k, v in detail.items())
    if detail is not None:
        return str(detail)

    return str(body)[:300]

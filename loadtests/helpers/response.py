"""Response inspection for load test observability.

Turns stock ledger API error bodies into one-line messages and classifies
rejections. Two body shapes reach the client:

- Pydantic validation (422): {"detail": [{"loc": [...], "msg": "...", "type": "..."}]}
- Domain errors (400/404/422): {"error": "msg"} or {"error": {"field": ["msg", ...]}}
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from requests import Response

# Business rejections a correct ledger is allowed to return under load:
# 400 for insufficient stock or a closed reservation, 422 for a busy record.
CLEAN_REJECTIONS = frozenset({400, 422})


def _flatten(value) -> str:
    if isinstance(value, list):
        return "; ".join(str(v) for v in value)
    return str(value)


def extract_error_detail(response: Response) -> str:
    """Extract a compact, human-readable message from an API error response."""
    try:
        body = response.json()
    except ValueError:
        text = getattr(response, "text", "") or ""
        return text[:300] or "(empty response body)"

    if not isinstance(body, dict):
        return str(body)[:300]

    detail = body.get("detail")
    if isinstance(detail, list):
        parts = []
        for err in detail:
            loc = ".".join(str(p) for p in err.get("loc", []) if p != "body")
            msg = err.get("msg", str(err))
            parts.append(f"{loc}: {msg}" if loc else msg)
        return " | ".join(parts)

    if "error" in body:
        error = body["error"]
        if isinstance(error, dict):
            return " | ".join(f"{field}: {_flatten(messages)}" for field, messages in error.items())
        return str(error)

    return str(body)[:300]


def is_clean_rejection(response: Response) -> bool:
    """True for a refusal that left the record untouched, as opposed to a server fault."""
    return response.status_code in CLEAN_REJECTIONS

"""Response error extraction for load test observability.

Storefront API errors share one shape::

    {"error": "<code>", "message": "...", "details": {...}}
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from requests import Response


def extract_error_detail(response: Response) -> str:
    """Compact error string for Locust failure messages and log lines."""
    try:
        body = response.json()
    except ValueError:
        text = getattr(response, "text", "") or ""
        return text[:300] or "(empty response body)"

    if isinstance(body, dict) and "error" in body:
        detail = f"{body['error']}: {body.get('message', '')}"
        fields = (body.get("details") or {}).get("fields")
        if fields:
            detail += f" ({', '.join(fields)})"
        return detail

    return str(body)[:300]

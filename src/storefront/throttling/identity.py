"""Client identity for rate limiting.

The first public address in X-Forwarded-For wins; private, loopback and
malformed entries are skipped. Without one, the connection's peer address
is used. Nothing the client puts in a body or custom header is trusted.
"""

import ipaddress

from fastapi import Request


def _is_public(candidate: str) -> bool:
    try:
        return ipaddress.ip_address(candidate).is_global
    except ValueError:
        return False


def identity_from_headers(forwarded_for: str | None, peer: str | None) -> str:
    for entry in (forwarded_for or "").split(","):
        candidate = entry.strip()
        if candidate and _is_public(candidate):
            return candidate
    return peer or "unknown"


def client_identity(request: Request) -> str:
    peer = request.client.host if request.client else None
    return identity_from_headers(request.headers.get("x-forwarded-for"), peer)

"""
Host validation for the control plane.

Lives outside ``server`` so that config validation can import it without
pulling in uvicorn or FastAPI.
"""

from __future__ import annotations

import ipaddress


def is_loopback(host: str) -> bool:
    """Check if a host string is a loopback address."""
    if host == "localhost":
        return True
    try:
        addr = ipaddress.ip_address(host)
        return addr.is_loopback
    except ValueError:
        return False

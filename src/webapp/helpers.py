"""
Helper utilities for the Mechinweb portal web application.

Common request parsing used across routes.
"""

import ipaddress
import logging

from fastapi import Request

from src.webapp.middleware import get_client_ip

logger = logging.getLogger(__name__)

USER_ID_HEADER = "X-User-Id"


def public_client_ip(request: Request) -> str | None:
    """
    Visitor address suitable for a geo-IP lookup.

    Private, loopback and unparsable addresses yield None so the lookup
    falls back to the service's view of the caller.
    """
    candidate = get_client_ip(request)
    if not candidate:
        return None

    try:
        address = ipaddress.ip_address(candidate)
    except ValueError:
        logger.debug(f"Ignoring unparsable client address: {candidate}")
        return None

    return candidate if address.is_global else None


def get_user_id(request: Request) -> str | None:
    """Signed-in user id from the request header, if any."""
    user_id = request.headers.get(USER_ID_HEADER, "").strip()
    return user_id or None

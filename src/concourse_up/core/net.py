"""Local network discovery."""

import ipaddress

import httpx

from concourse_up.core.exceptions import NetworkError
from concourse_up.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_IP_LOOKUP_URL = "https://ipv4.icanhazip.com"


def find_user_ip(url: str = DEFAULT_IP_LOOKUP_URL, timeout: float = 10.0) -> str:
    """Find the public IP address of the machine running the deploy.

    Args:
        url: Lookup service returning the caller's address as plain text
        timeout: Request timeout in seconds

    Returns:
        The public IP address
    """
    try:
        response = httpx.get(url, timeout=timeout)
        response.raise_for_status()
    except httpx.HTTPError as e:
        raise NetworkError(f"Failed to determine public IP from {url}: {e}")

    address = response.text.strip()
    try:
        ipaddress.ip_address(address)
    except ValueError:
        raise NetworkError(f"IP lookup service {url} returned an invalid address: {address!r}")

    logger.debug("Resolved public IP %s", address)
    return address

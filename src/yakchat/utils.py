"""
yakchat - Utility functions.

Provides helpers for address validation, fingerprint formatting and display.
"""

import ipaddress
import logging
import re
from typing import Tuple

from cryptography.hazmat.primitives import hashes

from .constants import FINGERPRINT_LENGTH
from .errors import ErrorCode, NetworkError

logger = logging.getLogger(__name__)


def validate_port(port: int) -> bool:
    """
    Validate a port number.

    Args:
        port: Port number to validate

    Returns:
        True if valid, False otherwise
    """
    return 1 <= port <= 65535


def validate_ip(ip: str) -> bool:
    """Check whether ``ip`` is a literal IPv4 or IPv6 address."""
    try:
        ipaddress.ip_address(ip)
        return True
    except ValueError:
        return False


def validate_hostname(hostname: str) -> bool:
    """
    Validate a hostname.

    Args:
        hostname: Hostname string

    Returns:
        True if valid hostname, False otherwise
    """
    if not hostname or len(hostname) > 255:
        return False

    if hostname[-1] == ".":
        hostname = hostname[:-1]

    # Check again after stripping trailing dot
    if not hostname:
        return False

    pattern = r"^[a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?(\.[a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
    return bool(re.match(pattern, hostname))


def parse_address(address: str) -> Tuple[str, int]:
    """
    Parse a recipient address of the form ``host:port``.

    IPv6 literals must be bracketed (``[::1]:5000``).

    Args:
        address: Address string entered by the user

    Returns:
        Tuple of (host, port)

    Raises:
        NetworkError: If the address cannot be parsed
    """
    address = address.strip()
    host, sep, port_str = address.rpartition(":")
    if not sep or not host or not port_str:
        raise NetworkError(
            ErrorCode.E002_INVALID_ARGUMENT,
            f"Expected host:port, got {address!r}",
            {"address": address},
        )

    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]

    try:
        port = int(port_str)
    except ValueError:
        raise NetworkError(
            ErrorCode.E002_INVALID_ARGUMENT,
            f"Invalid port: {port_str!r}",
            {"address": address},
        )

    if not validate_port(port):
        raise NetworkError(
            ErrorCode.E002_INVALID_ARGUMENT, f"Port out of range: {port}", {"address": address}
        )

    if not (validate_ip(host) or validate_hostname(host)):
        raise NetworkError(
            ErrorCode.E002_INVALID_ARGUMENT, f"Invalid host: {host!r}", {"address": address}
        )

    return host, port


def key_fingerprint(key: bytes, length: int = FINGERPRINT_LENGTH) -> str:
    """
    Compute a short fingerprint of session key material.

    Both peers of a healthy session compute the same value, so it can be
    compared out of band without revealing the key.
    """
    digest = hashes.Hash(hashes.SHA256())
    digest.update(key)
    return digest.finalize().hex()[:length]


def format_fingerprint(fingerprint: str) -> str:
    """
    Format a fingerprint for display with spaces every 4 characters.

    Args:
        fingerprint: Hex fingerprint string

    Returns:
        Formatted fingerprint
    """
    return " ".join(fingerprint[i : i + 4] for i in range(0, len(fingerprint), 4))

"""
utils/validators.py
Input validation functions for scan configuration
"""

import re
from typing import Tuple

_RANGE_RE = re.compile(r"^\s*(\d{1,3}(?:\.\d{1,3}){3})/(\d{1,2})\s*$")
_HOST_HEADER_RE = re.compile(r"^[A-Za-z0-9.\-:\[\]_]+$")


def validate_range(text: str) -> Tuple[bool, str]:
    """
    Validate that text looks like an IPv4 CIDR range ("a.b.c.d/n").

    Args:
        text: Range string, e.g. "151.101.0.0/16"

    Returns:
        (is_valid, error_message) tuple
    """
    if not text or not isinstance(text, str):
        return (False, "Range must be a non-empty string")

    m = _RANGE_RE.match(text)
    if not m:
        return (False, f"Invalid range {text!r}: expected a.b.c.d/prefix")

    octets = [int(o) for o in m.group(1).split(".")]
    if any(o > 255 for o in octets):
        return (False, f"Invalid range {text!r}: octet out of range [0-255]")

    prefix = int(m.group(2))
    if prefix > 32:
        return (False, f"Invalid range {text!r}: prefix {prefix} out of range [0-32]")

    return (True, "")


def validate_port(port: int) -> Tuple[bool, str]:
    """
    Validate that port number is in valid range [1-65535].

    Args:
        port: Port number to validate

    Returns:
        (is_valid, error_message) tuple
    """
    if not isinstance(port, int) or isinstance(port, bool):
        return (False, "Port must be an integer")

    if port < 1 or port > 65535:
        return (False, f"Port {port} out of valid range [1-65535]")

    return (True, "")


def validate_host_header(value: str) -> Tuple[bool, str]:
    """
    Validate an optional HTTP Host override.

    Empty means "no HTTP verification" and is valid. Anything else must be a
    bare host[:port] token; whitespace and control characters would let the
    value inject extra header lines.
    """
    if value is None or value == "":
        return (True, "")

    if not isinstance(value, str):
        return (False, "Host header must be a string")

    if not _HOST_HEADER_RE.match(value):
        return (False, f"Invalid host header {value!r}: expected host or host:port")

    return (True, "")


__all__ = ["validate_range", "validate_port", "validate_host_header"]

"""Common utilities for concourse-up."""

import re
import secrets
import string

PASSWORD_ALPHABET = string.ascii_lowercase + string.digits


def generate_password(length: int = 20) -> str:
    """Generate a random password safe to embed in URLs and manifests.

    Args:
        length: Number of characters

    Returns:
        Random lowercase alphanumeric string
    """
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


def tail_lines(text: str, count: int = 20) -> str:
    """Return the last `count` non-empty lines of command output."""
    lines = [line for line in text.splitlines() if line.strip()]
    return "\n".join(lines[-count:])


def sanitize_name(name: str) -> str:
    """Sanitize a deployment name for use in paths and bucket names.

    Args:
        name: String to sanitize

    Returns:
        Lowercase name containing only letters, digits and dashes
    """
    sanitized = re.sub(r"[^a-z0-9-]", "-", name.lower())
    sanitized = sanitized.strip("-")
    return sanitized or "unnamed"

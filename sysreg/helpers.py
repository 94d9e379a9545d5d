"""
Small helpers shared by the registration modules.
"""

from collections.abc import Mapping
from typing import Any

FILTERED = "[FILTERED]"


def http_language(lang: str | None) -> str | None:
    """
    Convert a POSIX locale into an HTTP Accept-Language value.

        >>> http_language("de_DE.UTF-8")
        'de-DE'
        >>> http_language("cs_CZ@euro")
        'cs-CZ'
        >>> http_language("POSIX") is None
        True
    """
    if not lang:
        return None
    language = lang.split(".", 1)[0].split("@", 1)[0]
    if language in ("C", "POSIX", ""):
        return None
    return language.replace("_", "-")


def base_version(version: str) -> str:
    """
    Strip the release part from a product version.

        >>> base_version("12.1-1.4")
        '12.1'
        >>> base_version("15")
        '15'
    """
    return version.split("-", 1)[0]


def redact_reg_code(data: Mapping[str, Any]) -> dict[str, Any]:
    """Copy a mapping with the registration code replaced, for logging."""
    redacted = dict(data)
    if redacted.get("reg_code"):
        redacted["reg_code"] = FILTERED
    return redacted

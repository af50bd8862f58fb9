import re
from typing import Optional

_MANAGEMENT_SUFFIX = re.compile(r"/?v0/management/?$", re.IGNORECASE)
_TRAILING_SLASHES = re.compile(r"/+$")
_SCHEME = re.compile(r"^https?://", re.IGNORECASE)


def normalize_api_base(value: Optional[str]) -> str:
    """
    " example.com/v0/management/ " -> "http://example.com".
    Strips the management suffix and trailing slashes, defaults the scheme to http.
    """
    base = (value or "").strip()
    if not base:
        return ""
    base = _MANAGEMENT_SUFFIX.sub("", base)
    base = _TRAILING_SLASHES.sub("", base)
    if not _SCHEME.match(base):
        base = f"http://{base}"
    return base


def mask_secret(secret: Optional[str]) -> str:
    """Keep only enough of a key to recognise it in logs."""
    if not secret:
        return "<empty>"
    if len(secret) <= 8:
        return "*" * len(secret)
    return f"{secret[:4]}...{secret[-4:]}"

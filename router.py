# router.py
from typing import Mapping

from errors import ConfigurationError

SSE_MARKER = "sse"


def normalize_base_url(base: str) -> str:
    """Add a missing https:// scheme and drop exactly one trailing slash."""
    if not base:
        raise ConfigurationError("no upstream base URL configured")
    if not base.startswith("http"):
        base = f"https://{base}"
    if base.endswith("/"):
        base = base[:-1]
    return base


def upstream_path(path: str, prefix: str) -> str:
    """Return the upstream-relative path for an inbound route path.

    /api/google/v1beta/models → /v1beta/models
    """
    if prefix and path.startswith(prefix):
        return path[len(prefix):]
    return path


def upstream_url(path: str, query: Mapping[str, str], settings) -> str:
    """Resolve the Gemini URL for an inbound path and query.

    Only the streaming marker (alt=sse) survives; other query parameters
    are not forwarded.
    """
    url = normalize_base_url(settings.base_url) + upstream_path(path, settings.api_prefix)
    if query.get("alt") == SSE_MARKER:
        url += "?alt=sse"
    return url

# auth.py
import hashlib
import logging
from typing import Mapping

from config import settings
from errors import AuthorizationDenied, MissingCredential

logger = logging.getLogger(__name__)

GOOGLE_KEY_HEADER = "x-goog-api-key"
ACCESS_CODE_PREFIX = "nk-"

# Provider-specific header first, generic bearer header second.
_KEY_HEADERS = (GOOGLE_KEY_HEADER, "authorization")


def _header(headers: Mapping[str, str], name: str) -> str:
    value = headers.get(name)
    if value is None:
        for key, candidate in headers.items():
            if key.lower() == name:
                return candidate or ""
        return ""
    return value


def _strip_bearer(value: str) -> str:
    return value.replace("Bearer ", "").strip()


def _parse_token(token: str) -> tuple[str, str]:
    """Split a bearer token into (access_code, api_key); one of them is empty."""
    if token.startswith(ACCESS_CODE_PREFIX):
        return token[len(ACCESS_CODE_PREFIX):], ""
    return "", token


def check_access(headers: Mapping[str, str], provider: str) -> None:
    """Authorization gate: raise AuthorizationDenied if the caller may not proxy.

    A caller passes with either a configured access code (``Bearer nk-<code>``)
    or its own API key, unless HIDE_USER_API_KEY forbids user keys.
    """
    access_code = api_key = ""
    for name in ("authorization", GOOGLE_KEY_HEADER):
        code, key = _parse_token(_strip_bearer(_header(headers, name)))
        access_code = access_code or code
        api_key = api_key or key

    logger.debug(
        "[Auth] provider=%s access_code=%s user_key=%s",
        provider, bool(access_code), bool(api_key),
    )

    if settings.need_code and not api_key:
        hashed = hashlib.md5(access_code.encode("utf-8")).hexdigest()
        if hashed not in settings.codes_set:
            logger.warning("[Auth] rejected %s request: bad access code", provider)
            raise AuthorizationDenied(
                "wrong access code" if access_code else "empty access code"
            )

    if settings.hide_user_api_key and api_key:
        logger.warning("[Auth] rejected %s request: user api key not allowed", provider)
        raise AuthorizationDenied("you are not allowed to access with your own api key")


def resolve_api_key(headers: Mapping[str, str], default_key: str) -> str:
    """Pick the key presented upstream: caller header first, server key second."""
    raw = ""
    for name in _KEY_HEADERS:
        raw = _header(headers, name)
        if raw:
            break

    _, token = _parse_token(_strip_bearer(raw))
    api_key = token or (default_key or "").strip()
    if not api_key:
        raise MissingCredential("missing GOOGLE_API_KEY in server env vars")
    return api_key

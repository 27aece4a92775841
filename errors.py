# errors.py

import json
from dataclasses import dataclass
from typing import Any


class ProxyError(Exception):
    """Base error."""


class ConfigurationError(ProxyError):
    """Server configuration is unusable (e.g. no upstream base URL at all)."""


class ProxyAuthError(ProxyError):
    """Raised before forwarding; always answered with a 401."""

    status_code = 401

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"error": True, "message": self.message}


class MissingCredential(ProxyAuthError):
    """Neither the caller nor the server supplied an API key."""


class AuthorizationDenied(ProxyAuthError):
    """The authorization gate rejected the caller."""


class UpstreamTimeout(ProxyError):
    """The upstream request outlived its cancellation token."""


class MalformedSingleShotBody(ProxyError):
    """A buffered upstream response was not valid JSON."""


def pretty_object(obj: Any) -> str:
    """Render an arbitrary object as readable text for an error body.

    Exceptions become ``"<Type>: <message>"``; anything JSON-serializable is
    wrapped in a fenced ``json`` block so chat clients render it as code.
    """
    if isinstance(obj, BaseException):
        detail = str(obj).strip()
        return f"{type(obj).__name__}: {detail}" if detail else type(obj).__name__
    if isinstance(obj, str):
        text = obj
    else:
        try:
            text = json.dumps(obj, indent=2, ensure_ascii=False)
        except (TypeError, ValueError):
            return str(obj)
    if text.startswith("```json"):
        return text
    return "\n".join(["```json", text, "```"])


@dataclass(frozen=True)
class Diagnostic:
    """Error outcome of a dispatch that failed during or after forwarding."""

    type: str
    message: str

    @classmethod
    def from_exception(cls, exc: BaseException) -> "Diagnostic":
        return cls(type=type(exc).__name__, message=pretty_object(exc))

    def to_dict(self) -> dict[str, Any]:
        return {"error": True, "type": self.type, "message": self.message}

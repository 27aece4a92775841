# events.py

import json
from dataclasses import dataclass
from typing import Any

SSE_DATA_PREFIX = "data: "


def first_part(doc: Any) -> dict | None:
    """Return ``candidates[0].content.parts[0]`` if every step is present."""
    if not isinstance(doc, dict):
        return None
    candidates = doc.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return None
    candidate = candidates[0]
    if not isinstance(candidate, dict):
        return None
    content = candidate.get("content")
    if not isinstance(content, dict):
        return None
    parts = content.get("parts")
    if not isinstance(parts, list) or not parts:
        return None
    part = parts[0]
    return part if isinstance(part, dict) else None


def function_call_of(doc: Any) -> dict | None:
    part = first_part(doc)
    if part is None:
        return None
    call = part.get("functionCall")
    return call if isinstance(call, dict) else None


def text_of(doc: Any) -> str | None:
    part = first_part(doc)
    if part is None:
        return None
    text = part.get("text")
    # Empty fragments carry nothing to show.
    return text if isinstance(text, str) and text else None


@dataclass(frozen=True)
class OutboundEvent:
    type: str
    name: str | None = None
    args: Any = None
    has_args: bool = False
    text: str | None = None

    @classmethod
    def function_call(cls, call: dict) -> "OutboundEvent":
        return cls(
            type="functionCall",
            name=call.get("name"),
            args=call.get("args"),
            has_args="args" in call,
        )

    @classmethod
    def text_fragment(cls, text: str) -> "OutboundEvent":
        return cls(type="text", text=text)

    @classmethod
    def from_payload(cls, doc: Any) -> "OutboundEvent | None":
        """Map one upstream payload to an event; None for unrecognized shapes."""
        call = function_call_of(doc)
        if call is not None:
            return cls.function_call(call)
        text = text_of(doc)
        if text is not None:
            return cls.text_fragment(text)
        return None

    def to_dict(self) -> dict[str, Any]:
        if self.type == "functionCall":
            event = {"type": self.type, "name": self.name}
            if self.has_args:
                event["args"] = self.args
            return event
        return {"type": self.type, "text": self.text}

    def to_sse(self) -> bytes:
        return f"{SSE_DATA_PREFIX}{json.dumps(self.to_dict(), ensure_ascii=False)}\n\n".encode("utf-8")

# transform.py

import json
import logging
from typing import TYPE_CHECKING, Any

import httpx
from fastapi.responses import Response

from errors import MalformedSingleShotBody
from events import function_call_of

if TYPE_CHECKING:
    from proxy import CancelToken

logger = logging.getLogger(__name__)

TOOL_REASONING = "The model is calling a tool to work out its answer"


def augment_document(doc: Any) -> Any:
    """Attach a ``thoughtProcess`` summary when the reply is a function call."""
    call = function_call_of(doc)
    if call is not None:
        summary = {"type": "functionCall", "name": call.get("name")}
        # A call without arguments is summarized without an args key.
        if "args" in call:
            summary["args"] = call["args"]
        summary["reasoning"] = TOOL_REASONING
        doc["thoughtProcess"] = summary
    return doc


async def single_shot_response(upstream: httpx.Response, token: "CancelToken") -> Response:
    raw = await token.guard(upstream.aread())
    try:
        doc = json.loads(raw)
    except (ValueError, RecursionError) as exc:
        raise MalformedSingleShotBody(
            f"upstream returned a non-JSON body (status {upstream.status_code}): {exc}"
        ) from exc

    call = function_call_of(doc)
    if call is not None:
        logger.info("Upstream requested tool %s", call.get("name"))
    doc = augment_document(doc)

    return Response(
        content=json.dumps(doc, ensure_ascii=False),
        status_code=upstream.status_code,
        media_type="application/json",
        headers={"Cache-Control": "no-store"},
    )

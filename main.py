# main.py
import logging
import uuid
from contextlib import asynccontextmanager

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import Response

import proxy
from config import settings

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)-8s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Shared HTTP client - connection pools are reused across all proxy requests.
    app.state.http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(settings.upstream_timeout, connect=10.0),
    )
    logger.info("HTTP client initialised, upstream %s", settings.base_url)

    yield

    await app.state.http_client.aclose()


app = FastAPI(title="Gemini Relay", version="1.0.0", lifespan=lifespan)


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Propagate or generate an X-Request-ID header for end-to-end tracing."""
    req_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = req_id
    response = await call_next(request)
    response.headers["x-request-id"] = req_id
    return response


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.api_route(
    settings.api_prefix + "/{path:path}",
    methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
)
async def google(path: str, request: Request) -> Response:
    result = await proxy.dispatch(request, request.app.state.http_client)
    return proxy.render(result)


def run() -> None:
    """Run the relay server."""
    uvicorn.run("main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()

"""Entry point for the FastAPI application."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
import html
import logging
import time
import traceback

from fastapi import Body, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from playwright.async_api import Error as PlaywrightError
from prometheus_client import start_http_server
from prometheus_fastapi_instrumentator import Instrumentator
from pydantic import ValidationError

from sitecapture.batch import run_batch
from sitecapture.capture import CaptureConfig, capture_screenshot, playwright_version
from sitecapture.errors import CaptureError
from sitecapture.schemas import BatchCaptureRequest, BatchCaptureResponse, ErrorEnvelope, ScreenshotRequest
from sitecapture.settings import settings

LOGGER = logging.getLogger(__name__)
_PROMETHEUS_EXPORTER_STARTED = False

PNG_CACHE_CONTROL = "public, max-age=86400"


async def _start_prometheus_exporter() -> None:
    """Expose Prometheus metrics on the configured auxiliary port."""

    global _PROMETHEUS_EXPORTER_STARTED
    if _PROMETHEUS_EXPORTER_STARTED:
        return
    port = settings.telemetry.prometheus_port
    if port <= 0:
        return
    try:
        start_http_server(port)
    except OSError as exc:  # pragma: no cover - system dependent
        LOGGER.warning("Prometheus exporter failed to bind on port %s: %s", port, exc)
        return
    _PROMETHEUS_EXPORTER_STARTED = True
    LOGGER.info("Prometheus exporter listening on port %s", port)


@asynccontextmanager
async def _lifespan(_: FastAPI):
    settings.storage.output_root.mkdir(parents=True, exist_ok=True)
    await _start_prometheus_exporter()
    yield


app = FastAPI(title="Site Capture", lifespan=_lifespan)
app.mount(
    settings.storage.files_prefix,
    StaticFiles(directory=settings.storage.output_root, check_dir=False),
    name="files",
)
instrumentator = Instrumentator(should_instrument_requests_inprogress=True)
instrumentator.instrument(app)
try:
    instrumentator.expose(app, include_in_schema=False, should_gzip=True)
except ValueError:  # pragma: no cover - already registered
    LOGGER.debug("Prometheus /metrics endpoint already exposed")


def _error_response(exc: Exception) -> JSONResponse:
    envelope = ErrorEnvelope(
        error="Failed to take screenshot",
        message=str(exc),
        stack="".join(traceback.format_exception(exc)),
        details=getattr(exc, "details", "Check the capture service logs for more info"),
    )
    return JSONResponse(envelope.model_dump(), status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


async def _render_capture(payload: ScreenshotRequest, *, skip_bar: bool) -> Response:
    config = CaptureConfig.from_request(payload, skip_bar=skip_bar)
    try:
        result = await capture_screenshot(config)
    except (CaptureError, PlaywrightError) as exc:
        LOGGER.error("Screenshot failed for %s: %s", config.url, exc)
        return _error_response(exc)
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("Unexpected screenshot failure for %s", config.url)
        return _error_response(exc)

    headers = {"Cache-Control": PNG_CACHE_CONTROL}
    degraded = [outcome.step for outcome in result.degraded_steps]
    if degraded:
        headers["X-Capture-Degraded"] = ",".join(degraded)
    return Response(content=result.png_bytes, media_type="image/png", headers=headers)


@app.get("/", response_class=HTMLResponse)
async def index() -> str:
    """Small status page with usage hints."""

    now = datetime.now(timezone.utc).isoformat()
    return f"""
<!DOCTYPE html>
<html lang=\"en\">
  <head><meta charset=\"utf-8\" /><title>Screenshot API</title></head>
  <body>
    <h1>Screenshot API is running</h1>
    <p>Usage: <code>POST /screenshot</code> or <code>POST /capturar</code></p>
    <p>Playwright {html.escape(playwright_version())}</p>
    <p>Current time: {html.escape(now)}</p>
  </body>
</html>
"""


@app.get("/health", tags=["health"])
async def healthcheck() -> dict[str, str]:
    """Return a simple status useful for smoke tests."""

    return {"status": "ok"}


@app.post("/screenshot", responses={200: {"content": {"image/png": {}}}, 500: {"model": ErrorEnvelope}})
async def screenshot(
    payload: ScreenshotRequest | None = Body(default=None),
    skipBar: bool = False,  # noqa: N803 - public query flag
) -> Response:
    return await _render_capture(payload or ScreenshotRequest(), skip_bar=skipBar)


@app.get("/screenshot", responses={200: {"content": {"image/png": {}}}, 500: {"model": ErrorEnvelope}})
async def screenshot_query(
    request: Request,
    skipBar: bool = False,  # noqa: N803 - public query flag
) -> Response:
    """Same as ``POST /screenshot`` with fields taken from the query string."""

    params = dict(request.query_params)
    params.pop("skipBar", None)
    try:
        payload = ScreenshotRequest.model_validate(params)
    except ValidationError as exc:
        raise RequestValidationError(exc.errors(include_url=False, include_context=False)) from exc
    return await _render_capture(payload, skip_bar=skipBar)


@app.post("/capturar", response_model=BatchCaptureResponse)
async def capturar(payload: BatchCaptureRequest) -> BatchCaptureResponse | JSONResponse:
    try:
        result = await run_batch(payload)
    except (CaptureError, PlaywrightError, OSError) as exc:
        LOGGER.exception("Batch capture failed for %s", payload.cliente_nombre)
        return JSONResponse(
            {"success": False, "error": str(exc)},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    return result.to_response()


@app.get("/test", response_model=BatchCaptureResponse)
async def quick_test(url: str | None = None) -> BatchCaptureResponse | JSONResponse:
    """Run the batch sweep for ``url`` under a throwaway client name."""

    if not url or not url.strip():
        return JSONResponse({"error": "Missing url parameter"}, status_code=status.HTTP_400_BAD_REQUEST)
    payload = BatchCaptureRequest(
        url_base=url,
        cliente_nombre=f"test_{int(time.time() * 1000)}",
        include_browser_bar=True,
    )
    return await capturar(payload)

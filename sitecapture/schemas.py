"""Pydantic DTOs shared across endpoints."""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from sitecapture.errors import ViewportValidationError
from sitecapture.sections import Section

DEFAULT_URL = "https://example.com"
DEFAULT_VIEWPORT_WIDTH = 1920
DEFAULT_VIEWPORT_HEIGHT = 1080


def normalize_url(raw: str | None, *, default: str = DEFAULT_URL) -> str:
    """Return an absolute URL with an explicit http/https scheme (https assumed)."""

    value = (raw or "").strip()
    if not value:
        return default
    lowered = value.lower()
    if lowered.startswith("http://") or lowered.startswith("https://"):
        return value
    return f"https://{value}"


class ViewportModel(BaseModel):
    """Viewport dimensions in CSS pixels."""

    width: int = Field(default=DEFAULT_VIEWPORT_WIDTH, ge=1)
    height: int = Field(default=DEFAULT_VIEWPORT_HEIGHT, ge=1)


def parse_viewport(value: Any) -> ViewportModel:
    """Coerce an object, JSON string or model into a validated viewport.

    ``None`` yields the 1920×1080 default; anything malformed raises
    :class:`ViewportValidationError` instead of silently falling back.
    """

    if value is None or value == "":
        return ViewportModel()
    if isinstance(value, ViewportModel):
        return value
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as exc:
            raise ViewportValidationError(f"viewport is not valid JSON: {exc.msg}") from exc
    if not isinstance(value, dict):
        raise ViewportValidationError("viewport must be an object with width and height")
    dims: dict[str, int] = {}
    for key in ("width", "height"):
        raw = value.get(key)
        if raw is None:
            continue
        try:
            number = int(raw)
        except (TypeError, ValueError) as exc:
            raise ViewportValidationError(f"viewport.{key} must be an integer") from exc
        if number < 1:
            raise ViewportValidationError(f"viewport.{key} must be >= 1")
        dims[key] = number
    return ViewportModel(**dims)


class ScreenshotRequest(BaseModel):
    """Single-capture payload (JSON body or query string)."""

    model_config = ConfigDict(populate_by_name=True)

    url: str = Field(default=DEFAULT_URL, description="Target URL; https:// is assumed when missing")
    viewport: ViewportModel = Field(default_factory=ViewportModel)
    section: Section = Field(default=Section.HEADER, description="Ignored when fullPage is true")
    device_scale_factor: float = Field(default=1.0, gt=0, alias="deviceScaleFactor")
    full_page: bool = Field(default=False, alias="fullPage")
    add_browser_bar: bool = Field(default=True, alias="addBrowserBar")

    @field_validator("url", mode="before")
    @classmethod
    def _normalize_url(cls, value: Any) -> str:
        return normalize_url(value if isinstance(value, str) else None)

    @field_validator("viewport", mode="before")
    @classmethod
    def _parse_viewport(cls, value: Any) -> ViewportModel:
        return parse_viewport(value)

    @field_validator("section", mode="before")
    @classmethod
    def _lower_section(cls, value: Any) -> Any:
        if value is None or value == "":
            return Section.HEADER
        if isinstance(value, str):
            return value.strip().lower()
        return value


class BatchCaptureRequest(BaseModel):
    """Payload for a full client sweep (pages × viewports × sections)."""

    url_base: str = Field(description="Public site root, e.g. https://client.example")
    cliente_nombre: str = Field(min_length=1, description="Client name used as output folder")
    wp_url: str | None = Field(default=None, description="WordPress root for the admin flow")
    wp_user: str | None = None
    wp_pass: str | None = None
    include_browser_bar: bool = True

    @field_validator("url_base", mode="before")
    @classmethod
    def _normalize_base(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("url_base is required")
        return normalize_url(value)

    @field_validator("wp_url", mode="before")
    @classmethod
    def _normalize_wp(cls, value: Any) -> str | None:
        if not isinstance(value, str) or not value.strip():
            return None
        return normalize_url(value).rstrip("/")


class CaptureFileRecord(BaseModel):
    """One PNG written by a batch run."""

    page: str
    section: str
    viewport: str | None = None
    path: str
    url_local: str | None = None


class CaptureErrorRecord(BaseModel):
    """A page/viewport pair that could not be captured."""

    page: str
    viewport: str
    reason: str


class BatchCaptureResponse(BaseModel):
    """Result envelope returned by ``POST /capturar``."""

    success: bool
    archivos: list[CaptureFileRecord] = Field(default_factory=list)
    errores: list[CaptureErrorRecord] = Field(default_factory=list)
    tiempo_total: float = Field(ge=0)
    output_dir: str


class ErrorEnvelope(BaseModel):
    """JSON body returned when a single capture fails."""

    error: str
    message: str
    stack: str | None = None
    details: Any = None

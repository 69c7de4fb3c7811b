"""Filesystem layout for batch captures and the records that describe them."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
import re

from sitecapture.schemas import CaptureErrorRecord, CaptureFileRecord
from sitecapture.settings import StorageSettings

_UNSAFE_CHARS_RE = re.compile(r"[^\w.-]+")


@dataclass(slots=True)
class CaptureRecord:
    """A PNG that a batch run wrote to disk."""

    page: str
    section: str
    viewport: str | None
    path: Path
    url_local: str | None = None

    def to_schema(self) -> CaptureFileRecord:
        return CaptureFileRecord(
            page=self.page,
            section=self.section,
            viewport=self.viewport,
            path=str(self.path),
            url_local=self.url_local,
        )


@dataclass(slots=True)
class FailureRecord:
    """A page/viewport combination that produced nothing."""

    page: str
    viewport: str
    reason: str

    def to_schema(self) -> CaptureErrorRecord:
        return CaptureErrorRecord(page=self.page, viewport=self.viewport, reason=self.reason)


def sanitize_client_name(name: str) -> str:
    """Collapse a client name into one safe path component."""

    cleaned = _UNSAFE_CHARS_RE.sub("_", name.strip()).strip("._")
    return cleaned or "cliente"


def client_output_dir(storage: StorageSettings, client_name: str) -> Path:
    return storage.output_root / sanitize_client_name(client_name)


def public_url(storage: StorageSettings, path: Path) -> str | None:
    """URL under the static ``/files`` mount, or ``None`` outside the output root."""

    try:
        relative = path.resolve().relative_to(storage.output_root.resolve())
    except ValueError:
        return None
    prefix = "/" + storage.files_prefix.strip("/")
    return f"{storage.public_base_url}{prefix}/{relative.as_posix()}"


async def write_png(path: Path, png_bytes: bytes) -> Path:
    await asyncio.to_thread(_write_sync, path, png_bytes)
    return path


def _write_sync(path: Path, png_bytes: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(png_bytes)

"""Launcher for the Site Capture API using uvicorn."""

from __future__ import annotations

import os
from typing import Optional

import typer
import uvicorn

app = typer.Typer(help="Run the Site Capture FastAPI app with uvicorn.", add_completion=False)


def _env_str(key: str, default: str) -> str:
    return os.getenv(key, default)


def _env_int(key: str, default: int) -> int:
    raw = os.getenv(key, str(default))
    try:
        return int(raw)
    except ValueError as exc:
        raise typer.BadParameter(f"{key} must be an integer") from exc


def _env_bool(key: str, default: bool) -> bool:
    raw = os.getenv(key)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def resolve_options(
    *,
    host: Optional[str],
    port: Optional[int],
    app_path: Optional[str],
    reload: Optional[bool],
    log_level: Optional[str],
) -> dict[str, object]:
    """Merge CLI flags with environment defaults."""

    return {
        "app": app_path or _env_str("APP_MODULE", "sitecapture.main:app"),
        "host": host or _env_str("HOST", "127.0.0.1"),
        "port": port or _env_int("PORT", 8000),
        "reload": _env_bool("SITECAPTURE_SERVER_RELOAD", False) if reload is None else reload,
        "log_level": (log_level or _env_str("SITECAPTURE_LOG_LEVEL", "info")).lower(),
    }


@app.callback(invoke_without_command=True)
def serve(  # type: ignore[no-untyped-def]
    host: Optional[str] = typer.Option(None, "--host", help="Bind host."),
    port: Optional[int] = typer.Option(None, "--port", help="Bind port."),
    app_path: Optional[str] = typer.Option(
        None, "--app", help="ASGI import path (default sitecapture.main:app)."
    ),
    reload: Optional[bool] = typer.Option(None, "--reload/--no-reload", help="Enable auto-reload."),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Log level."),
) -> None:
    """Launch the FastAPI app.

    Captures are serialized per request and each owns its own browser, so a
    single worker is the default.
    """

    options = resolve_options(
        host=host,
        port=port,
        app_path=app_path,
        reload=reload,
        log_level=log_level,
    )
    uvicorn.run(
        options["app"],
        host=options["host"],
        port=options["port"],
        reload=options["reload"],
        log_level=options["log_level"],
    )


def main() -> None:
    app()


if __name__ == "__main__":
    main()

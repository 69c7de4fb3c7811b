#!/usr/bin/env python3
"""Command-line front end: local single captures, client sweeps, and remote probes."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import httpx
import typer
from decouple import Config as DecoupleConfig, RepositoryEnv
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from sitecapture.batch import BatchResult, run_batch
from sitecapture.capture import CaptureConfig, capture_screenshot
from sitecapture.errors import CaptureError
from sitecapture.schemas import BatchCaptureRequest, normalize_url
from sitecapture.sections import Section

console = Console()
cli = typer.Typer(help="Capture website screenshots with a simulated browser bar.")


@dataclass
class APISettings:
    base_url: str


def _load_env_settings() -> APISettings:
    env_path = Path(".env")
    if env_path.exists():
        config = DecoupleConfig(RepositoryEnv(str(env_path)))
        return APISettings(base_url=config("API_BASE_URL", default="http://localhost:8000"))
    return APISettings(base_url="http://localhost:8000")


def _resolve_settings(override_base: Optional[str]) -> APISettings:
    settings = _load_env_settings()
    if override_base:
        settings.base_url = override_base
    return settings


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_time=False)],
        force=True,
    )


def _parse_section(value: str) -> Section:
    try:
        return Section(value.strip().lower())
    except ValueError as exc:
        choices = ", ".join(section.value for section in Section)
        raise typer.BadParameter(f"section must be one of: {choices}", param_hint="--section") from exc


def _print_batch(result: BatchResult) -> None:
    table = Table("Page", "Section", "Viewport", "Path", title="Captures")
    for record in result.records:
        table.add_row(record.page, record.section, record.viewport or "-", str(record.path))
    console.print(table)
    if result.failures:
        errors = Table("Page", "Viewport", "Reason", title="Errors", style="red")
        for failure in result.failures:
            errors.add_row(failure.page, failure.viewport, failure.reason)
        console.print(errors)
    status = "[green]success[/]" if result.success else "[red]completed with errors[/]"
    console.print(f"{status} in {result.elapsed_s:.2f}s · {len(result.records)} files · {result.output_dir}")


@cli.command()
def shot(
    url: str = typer.Argument(..., help="URL to capture (https:// assumed)"),
    width: int = typer.Option(1920, "--width", min=1),
    height: int = typer.Option(1080, "--height", min=1),
    section: str = typer.Option("header", "--section", help="header, content or footer"),
    scale: float = typer.Option(1.0, "--scale", min=0.1, help="Device scale factor"),
    full_page: bool = typer.Option(False, "--full-page/--viewport-only"),
    bar: bool = typer.Option(True, "--bar/--no-bar", help="Add the simulated browser bar"),
    out: Path = typer.Option(Path("screenshot.png"), "--out", "-o"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Capture a single screenshot locally and write it to ``--out``."""

    _configure_logging(verbose)
    config = CaptureConfig(
        url=normalize_url(url),
        viewport_width=width,
        viewport_height=height,
        device_scale_factor=scale,
        section=_parse_section(section),
        full_page=full_page,
        add_browser_bar=bar,
    )
    try:
        result = asyncio.run(capture_screenshot(config))
    except CaptureError as exc:
        console.print(f"[red]Capture failed:[/] {exc}")
        raise typer.Exit(1) from exc
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(result.png_bytes)
    for outcome in result.degraded_steps:
        console.print(f"[yellow]{outcome.step}[/]: {outcome.reason}")
    console.print(f"[green]Saved {out}[/] ({len(result.png_bytes)} bytes, {result.capture_ms}ms)")


@cli.command()
def batch(
    url: str = typer.Argument(..., help="Client site root"),
    client: str = typer.Argument("test", help="Client name (output folder)"),
    wp_url: Optional[str] = typer.Option(None, "--wp-url", help="WordPress root for admin captures"),
    wp_user: Optional[str] = typer.Option(None, "--wp-user"),
    wp_pass: Optional[str] = typer.Option(None, "--wp-pass"),
    bar: bool = typer.Option(True, "--bar/--no-bar"),
    as_json: bool = typer.Option(False, "--json", help="Print the JSON envelope instead of tables"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Sweep pages × viewports × sections for a client and save PNGs."""

    _configure_logging(verbose)
    request = BatchCaptureRequest(
        url_base=url,
        cliente_nombre=client,
        wp_url=wp_url,
        wp_user=wp_user,
        wp_pass=wp_pass,
        include_browser_bar=bar,
    )
    try:
        result = asyncio.run(run_batch(request))
    except CaptureError as exc:
        console.print(f"[red]Batch failed:[/] {exc}")
        raise typer.Exit(1) from exc
    if as_json:
        console.print_json(result.to_response().model_dump_json())
    else:
        _print_batch(result)
    if not result.success:
        raise typer.Exit(2)


@cli.command()
def probe(
    url: str = typer.Argument(..., help="URL the server should capture"),
    api_base: Optional[str] = typer.Option(None, "--api", help="Override API base URL"),
    section: str = typer.Option("header", "--section"),
    viewport: Optional[str] = typer.Option(None, "--viewport", help='JSON, e.g. {"width":375,"height":812}'),
    bar: bool = typer.Option(True, "--bar/--no-bar"),
    out: Path = typer.Option(Path("probe.png"), "--out", "-o"),
    timeout: float = typer.Option(90.0, "--timeout", help="Seconds to wait for the server"),
) -> None:
    """POST to a running server's /screenshot and save the PNG (or show the error)."""

    settings = _resolve_settings(api_base)
    payload: dict[str, object] = {
        "url": url,
        "section": _parse_section(section).value,
        "addBrowserBar": bar,
    }
    if viewport:
        try:
            payload["viewport"] = json.loads(viewport)
        except json.JSONDecodeError as exc:
            raise typer.BadParameter(f"viewport is not valid JSON: {exc.msg}", param_hint="--viewport") from exc

    console.print(f"Probing {settings.base_url}/screenshot for {url}")
    try:
        with httpx.Client(base_url=settings.base_url, timeout=timeout) as client:
            response = client.post("/screenshot", json=payload)
    except httpx.HTTPError as exc:
        console.print(f"[red]Request failed:[/] {exc}")
        raise typer.Exit(1) from exc

    console.print(f"STATUS: {response.status_code}")
    content_type = response.headers.get("content-type", "")
    if response.status_code == 200 and content_type.startswith("image/png"):
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_bytes(response.content)
        degraded = response.headers.get("x-capture-degraded")
        if degraded:
            console.print(f"[yellow]Degraded steps:[/] {degraded}")
        console.print(f"[green]Saved {out}[/] ({len(response.content)} bytes)")
        return
    try:
        console.print_json(data=response.json())
    except ValueError:
        console.print(response.text)
    raise typer.Exit(1)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()

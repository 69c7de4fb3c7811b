from __future__ import annotations

import json
from pathlib import Path
from types import SimpleNamespace

from typer.testing import CliRunner

from scripts import capture_cli
from sitecapture.batch import BatchResult
from sitecapture.errors import NavigationError
from sitecapture.storage import CaptureRecord, FailureRecord

runner = CliRunner()


def test_shot_writes_png(monkeypatch, tmp_path: Path):
    seen = []

    async def _fake_capture(config):  # noqa: ANN001
        seen.append(config)
        return SimpleNamespace(png_bytes=b"png", degraded_steps=[], capture_ms=42)

    monkeypatch.setattr(capture_cli, "capture_screenshot", _fake_capture)
    out = tmp_path / "shots" / "home.png"

    result = runner.invoke(
        capture_cli.cli,
        ["shot", "example.com", "--width", "375", "--height", "812", "--section", "Footer", "--no-bar", "--out", str(out)],
    )

    assert result.exit_code == 0, result.output
    assert out.read_bytes() == b"png"
    config = seen[0]
    assert config.url == "https://example.com"
    assert (config.viewport_width, config.viewport_height) == (375, 812)
    assert config.section.value == "footer"
    assert config.add_browser_bar is False


def test_shot_reports_capture_errors(monkeypatch, tmp_path: Path):
    async def _failing_capture(config):  # noqa: ANN001
        raise NavigationError(config.url, "HTTP 500", status=500)

    monkeypatch.setattr(capture_cli, "capture_screenshot", _failing_capture)

    result = runner.invoke(capture_cli.cli, ["shot", "example.com", "--out", str(tmp_path / "x.png")])

    assert result.exit_code == 1
    assert "Capture failed" in result.output
    assert not (tmp_path / "x.png").exists()


def test_shot_rejects_unknown_section():
    result = runner.invoke(capture_cli.cli, ["shot", "example.com", "--section", "middle"])

    assert result.exit_code == 2


def test_batch_json_output_and_exit_code(monkeypatch, tmp_path: Path):
    async def _fake_batch(request):  # noqa: ANN001
        return BatchResult(
            output_dir=tmp_path / request.cliente_nombre,
            records=[CaptureRecord("inicio", "header", "desktop", tmp_path / "acme/desktop/inicio_header.png")],
            failures=[FailureRecord("servicios", "mobile", "No URL variant could be captured")],
            elapsed_s=1.0,
        )

    monkeypatch.setattr(capture_cli, "run_batch", _fake_batch)

    result = runner.invoke(capture_cli.cli, ["batch", "acme.example", "acme", "--json"])

    assert result.exit_code == 2
    payload = json.loads(result.output)
    assert payload["success"] is False
    assert payload["errores"][0]["viewport"] == "mobile"


def test_batch_table_output(monkeypatch, tmp_path: Path):
    async def _fake_batch(request):  # noqa: ANN001
        return BatchResult(
            output_dir=tmp_path,
            records=[CaptureRecord("inicio", "header", "desktop", tmp_path / "desktop/inicio_header.png")],
        )

    monkeypatch.setattr(capture_cli, "run_batch", _fake_batch)

    result = runner.invoke(capture_cli.cli, ["batch", "acme.example"])

    assert result.exit_code == 0, result.output
    assert "Captures" in result.output
    assert "success" in result.output


class StubResponse:
    def __init__(self, status_code: int, *, content: bytes = b"", payload: dict | None = None, headers: dict | None = None) -> None:
        self.status_code = status_code
        self.content = content
        self.payload = payload
        self.headers = headers or {}
        self.text = json.dumps(payload) if payload is not None else ""

    def json(self):  # noqa: ANN001
        if self.payload is None:
            raise ValueError("no json")
        return self.payload


class StubClient:
    def __init__(self, response: StubResponse) -> None:
        self.response = response
        self.requests: list[tuple[str, dict]] = []

    def __enter__(self):  # noqa: ANN001
        return self

    def __exit__(self, *exc):  # noqa: ANN001
        return False

    def post(self, path: str, json: dict):  # noqa: ANN001, A002
        self.requests.append((path, json))
        return self.response


def _patch_client(monkeypatch, response: StubResponse) -> StubClient:
    stub = StubClient(response)
    monkeypatch.setattr(capture_cli.httpx, "Client", lambda **kwargs: stub)
    monkeypatch.setattr(capture_cli, "_load_env_settings", lambda: capture_cli.APISettings(base_url="http://api.local"))
    return stub


def test_probe_saves_png(monkeypatch, tmp_path: Path):
    stub = _patch_client(
        monkeypatch,
        StubResponse(200, content=b"png", headers={"content-type": "image/png", "x-capture-degraded": "consent"}),
    )
    out = tmp_path / "probe.png"

    result = runner.invoke(
        capture_cli.cli, ["probe", "example.com", "--viewport", '{"width": 375, "height": 812}', "--out", str(out)]
    )

    assert result.exit_code == 0, result.output
    assert out.read_bytes() == b"png"
    assert "Degraded steps" in result.output
    path, body = stub.requests[0]
    assert path == "/screenshot"
    assert body["viewport"] == {"width": 375, "height": 812}
    assert body["addBrowserBar"] is True


def test_probe_prints_error_envelope(monkeypatch, tmp_path: Path):
    _patch_client(
        monkeypatch,
        StubResponse(500, payload={"error": "Failed to take screenshot", "message": "boom"}, headers={"content-type": "application/json"}),
    )

    result = runner.invoke(capture_cli.cli, ["probe", "example.com", "--out", str(tmp_path / "p.png")])

    assert result.exit_code == 1
    assert "Failed to take screenshot" in result.output
    assert not (tmp_path / "p.png").exists()

from __future__ import annotations

from typing import Any

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

import sitecapture.capture as capture_module
from sitecapture.capture import (
    CaptureConfig,
    CapturePipeline,
    CaptureState,
    PipelineTiming,
    capture_screenshot,
    resolve_scale,
)
from sitecapture.errors import NavigationError
from sitecapture.outcomes import StepOutcome
from sitecapture.schemas import ScreenshotRequest
from sitecapture.sections import Section
from sitecapture.settings import get_settings
from tests.fakes import FakePage, session_factory_for


@pytest.fixture()
def composite_calls(monkeypatch) -> list[dict[str, Any]]:
    calls: list[dict[str, Any]] = []

    async def _fake_composite(raw_png: bytes, bar_svg: str, *, bar_width: int):
        calls.append({"raw": raw_png, "svg": bar_svg, "bar_width": bar_width})
        return b"with-bar:" + raw_png, StepOutcome.ok("overlay")

    monkeypatch.setattr(capture_module, "composite_browser_bar", _fake_composite)
    return calls


def _pipeline(page: FakePage) -> CapturePipeline:
    settings = get_settings()
    return CapturePipeline(page, settings=settings, timing=PipelineTiming.single(settings))


@pytest.mark.asyncio()
async def test_header_capture_skips_scrolling(composite_calls):
    page = FakePage(scroll_height=5000)
    pipeline = _pipeline(page)

    result = await pipeline.run(CaptureConfig(url="https://example.com", viewport_width=1280, viewport_height=720))

    assert page.scroll_calls == []
    assert page.screenshot_calls == [
        {"type": "png", "full_page": False, "clip": {"x": 0, "y": 0, "width": 1280, "height": 720}}
    ]
    assert result.png_bytes == b"with-bar:raw-png"
    assert result.composited is True
    assert composite_calls[0]["bar_width"] == 1280
    assert CaptureState.SCROLLED not in result.states
    assert result.states[-1] is CaptureState.DONE


@pytest.mark.asyncio()
async def test_footer_capture_scrolls_to_bottom(composite_calls):
    page = FakePage(scroll_height=5000)
    pipeline = _pipeline(page)

    result = await pipeline.run(
        CaptureConfig(url="https://example.com", viewport_width=1000, viewport_height=1000, section=Section.FOOTER)
    )

    assert page.scroll_calls == [4000.0]
    assert result.offset == 4000.0
    assert result.raw.y == 4000.0
    assert result.states == [
        CaptureState.INIT,
        CaptureState.VIEWPORT_SET,
        CaptureState.NAVIGATED,
        CaptureState.STABILIZED,
        CaptureState.SCROLLED,
        CaptureState.CAPTURED,
        CaptureState.COMPOSITED,
        CaptureState.DONE,
    ]


@pytest.mark.asyncio()
async def test_full_page_ignores_section_and_bar(composite_calls):
    page = FakePage(scroll_height=5000)
    pipeline = _pipeline(page)

    result = await pipeline.run(
        CaptureConfig(url="https://example.com", section=Section.FOOTER, full_page=True, add_browser_bar=True)
    )

    assert page.scroll_calls == []
    assert page.screenshot_calls == [{"type": "png", "full_page": True}]
    assert composite_calls == []
    assert result.png_bytes == b"raw-png"
    assert result.section is None
    assert result.raw.height is None


@pytest.mark.asyncio()
async def test_bar_can_be_skipped(composite_calls):
    page = FakePage()
    request = ScreenshotRequest(url="example.com", addBrowserBar=True)

    config = CaptureConfig.from_request(request, skip_bar=True)
    result = await _pipeline(page).run(config)

    assert config.add_browser_bar is False
    assert composite_calls == []
    assert result.png_bytes == b"raw-png"


@pytest.mark.asyncio()
async def test_invalid_viewport_falls_back_to_default():
    page = FakePage()
    pipeline = _pipeline(page)

    resolved = await pipeline.set_viewport(0, None)

    assert resolved == (1920, 1080)
    assert page.viewport_calls == [{"width": 1920, "height": 1080}]


@pytest.mark.asyncio()
async def test_http_errors_only_fail_when_requested():
    page = FakePage(status_for=lambda url, viewport: 404)
    pipeline = _pipeline(page)

    assert await pipeline.navigate("https://example.com/missing") == 404
    with pytest.raises(NavigationError) as excinfo:
        await pipeline.navigate("https://example.com/missing", fail_on_http_error=True)

    assert excinfo.value.status == 404
    assert pipeline.states[-1] is CaptureState.FAILED


@pytest.mark.asyncio()
async def test_navigation_timeout_raises_and_closes_browser(composite_calls):
    page = FakePage(goto_error=PlaywrightTimeoutError("Timeout 30000ms exceeded"))
    factory, session = session_factory_for(page)

    with pytest.raises(NavigationError) as excinfo:
        await capture_screenshot(CaptureConfig(url="https://unreachable.invalid"), session_factory=factory)

    assert "timed out" in str(excinfo.value)
    assert excinfo.value.details["url"] == "https://unreachable.invalid"
    assert session.closed is True
    assert page.screenshot_calls == []
    assert composite_calls == []


@pytest.mark.asyncio()
async def test_capture_screenshot_uses_requested_scale(composite_calls):
    page = FakePage()
    factory, session = session_factory_for(page)

    result = await capture_screenshot(
        CaptureConfig(url="https://example.com", device_scale_factor=2.0), session_factory=factory
    )

    assert session.opened_with["device_scale_factor"] == 2.0
    assert session.closed is True
    assert result.capture_ms >= 0
    assert [outcome.step for outcome in result.outcomes] == ["consent", "animations", "overlay"]


@pytest.mark.asyncio()
async def test_non_positive_scale_falls_back_to_configured_default(composite_calls):
    page = FakePage()
    factory, session = session_factory_for(page)
    settings = get_settings()

    await capture_screenshot(
        CaptureConfig(url="https://example.com", device_scale_factor=0), settings=settings, session_factory=factory
    )

    assert session.opened_with["device_scale_factor"] == settings.browser.default_device_scale_factor


@pytest.mark.parametrize(
    ("value", "expected"),
    [(2, 2.0), (1.5, 1.5), (0, 1.0), (-3.0, 1.0), (None, 1.0), (True, 1.0)],
)
def test_resolve_scale(value, expected):
    assert resolve_scale(value, 1.0) == expected

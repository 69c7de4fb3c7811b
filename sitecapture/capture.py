"""Playwright-based capture pipeline (viewport → navigate → stabilize → scroll → shoot → bar)."""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from importlib import metadata
import logging
import time
from typing import Any, AsyncIterator, Callable, Sequence

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from sitecapture import metrics
from sitecapture.chrome_bar import render_browser_bar
from sitecapture.compositor import composite_browser_bar
from sitecapture.errors import BrowserLaunchError, NavigationError
from sitecapture.outcomes import StepOutcome
from sitecapture.schemas import ScreenshotRequest
from sitecapture.sections import Section, scroll_to_section
from sitecapture.settings import Settings, get_settings
from sitecapture.stabilizer import DEFAULT_CONSENT_RULES, ConsentRule, stabilize_page

LOGGER = logging.getLogger(__name__)


class CaptureState(str, Enum):
    """Lifecycle of a single capture request."""

    INIT = "INIT"
    VIEWPORT_SET = "VIEWPORT_SET"
    NAVIGATED = "NAVIGATED"
    STABILIZED = "STABILIZED"
    SCROLLED = "SCROLLED"
    CAPTURED = "CAPTURED"
    COMPOSITED = "COMPOSITED"
    DONE = "DONE"
    FAILED = "FAILED"


@dataclass(slots=True)
class CaptureConfig:
    """Inputs that describe one capture."""

    url: str
    viewport_width: int = 1920
    viewport_height: int = 1080
    device_scale_factor: float = 1.0
    section: Section | str = Section.HEADER
    full_page: bool = False
    add_browser_bar: bool = True

    @classmethod
    def from_request(cls, request: ScreenshotRequest, *, skip_bar: bool = False) -> "CaptureConfig":
        return cls(
            url=request.url,
            viewport_width=request.viewport.width,
            viewport_height=request.viewport.height,
            device_scale_factor=request.device_scale_factor,
            section=request.section,
            full_page=request.full_page,
            add_browser_bar=request.add_browser_bar and not skip_bar,
        )


@dataclass(frozen=True, slots=True)
class PipelineTiming:
    """Waits applied by the pipeline; single requests favour latency, batches quality."""

    wait_until: str
    navigation_timeout_ms: int
    consent_settle_ms: int
    animation_timeout_ms: int
    post_settle_ms: int
    scroll_settle_ms: int

    @classmethod
    def single(cls, settings: Settings) -> "PipelineTiming":
        return cls(
            wait_until=settings.browser.wait_until,
            navigation_timeout_ms=settings.browser.navigation_timeout_ms,
            consent_settle_ms=settings.stabilizer.consent_settle_ms,
            animation_timeout_ms=settings.stabilizer.animation_timeout_ms,
            post_settle_ms=settings.stabilizer.post_animation_settle_ms,
            scroll_settle_ms=settings.stabilizer.scroll_settle_ms,
        )

    @classmethod
    def batch(cls, settings: Settings) -> "PipelineTiming":
        return cls(
            wait_until=settings.browser.batch_wait_until,
            navigation_timeout_ms=settings.browser.navigation_timeout_ms,
            consent_settle_ms=settings.stabilizer.consent_settle_ms,
            animation_timeout_ms=settings.stabilizer.batch_animation_timeout_ms,
            post_settle_ms=settings.stabilizer.batch_post_animation_settle_ms,
            scroll_settle_ms=settings.stabilizer.scroll_settle_ms,
        )


@dataclass(frozen=True, slots=True)
class RawCapture:
    """Screenshot bytes plus the document-space rectangle they came from."""

    png_bytes: bytes
    x: float
    y: float
    width: int
    height: int | None


@dataclass(slots=True)
class CaptureResult:
    """Final bytes plus the trail of states and best-effort outcomes."""

    url: str
    png_bytes: bytes
    section: str | None
    offset: float
    raw: RawCapture
    composited: bool
    states: list[CaptureState] = field(default_factory=list)
    outcomes: list[StepOutcome] = field(default_factory=list)
    capture_ms: int = 0

    @property
    def degraded_steps(self) -> list[StepOutcome]:
        return [outcome for outcome in self.outcomes if outcome.is_degraded]


@dataclass(slots=True)
class BrowserSession:
    """One browser, one context, one page; owned by a request or a batch run."""

    browser: Browser
    context: BrowserContext
    page: Page


SessionFactory = Callable[..., Any]


@asynccontextmanager
async def browser_session(
    *,
    device_scale_factor: float | None = None,
    settings: Settings | None = None,
) -> AsyncIterator[BrowserSession]:
    """Launch Chromium and guarantee it is closed on every exit path."""

    active = settings or get_settings()
    scale = resolve_scale(device_scale_factor, active.browser.default_device_scale_factor)
    async with async_playwright() as playwright:
        try:
            browser = await _launch_browser(
                playwright,
                active.browser.playwright_channel,
                headless=active.browser.headless,
                args=active.browser.launch_args,
            )
        except PlaywrightError as exc:
            raise BrowserLaunchError(f"Browser launch failed: {exc}") from exc
        try:
            context = await _build_context(
                browser,
                width=active.browser.default_width,
                height=active.browser.default_height,
                device_scale_factor=scale,
            )
            page = await context.new_page()
            if active.browser.mask_automation:
                await _mask_automation(page)
            yield BrowserSession(browser=browser, context=context, page=page)
        finally:
            await browser.close()


class CapturePipeline:
    """Sequences the capture steps against a single page.

    The single-request endpoint runs :meth:`run` once; the batch runner calls
    :meth:`prepare` once per URL and :meth:`capture_section` per section.
    """

    def __init__(
        self,
        page: Page,
        *,
        settings: Settings,
        timing: PipelineTiming,
        consent_rules: Sequence[ConsentRule] = DEFAULT_CONSENT_RULES,
    ) -> None:
        self.page = page
        self.settings = settings
        self.timing = timing
        self.consent_rules = consent_rules
        self.states: list[CaptureState] = [CaptureState.INIT]
        self.outcomes: list[StepOutcome] = []
        self.viewport: tuple[int, int] = (settings.browser.default_width, settings.browser.default_height)

    def _advance(self, state: CaptureState) -> None:
        self.states.append(state)
        LOGGER.debug("capture state -> %s", state.value)

    async def set_viewport(self, width: int | None, height: int | None) -> tuple[int, int]:
        defaults = self.settings.browser
        resolved_width = width if isinstance(width, int) and width > 0 else defaults.default_width
        resolved_height = height if isinstance(height, int) and height > 0 else defaults.default_height
        await self.page.set_viewport_size({"width": resolved_width, "height": resolved_height})
        self.viewport = (resolved_width, resolved_height)
        self._advance(CaptureState.VIEWPORT_SET)
        return self.viewport

    async def navigate(self, url: str, *, fail_on_http_error: bool = False) -> int | None:
        """Load ``url``; timeouts and network errors are fatal."""

        LOGGER.info("Navigating to %s", url, extra={"url": url})
        try:
            response = await self.page.goto(
                url,
                wait_until=self.timing.wait_until,
                timeout=self.timing.navigation_timeout_ms,
            )
        except PlaywrightTimeoutError as exc:
            self._advance(CaptureState.FAILED)
            raise NavigationError(url, f"timed out after {self.timing.navigation_timeout_ms}ms") from exc
        except PlaywrightError as exc:
            self._advance(CaptureState.FAILED)
            raise NavigationError(url, str(exc)) from exc
        status = response.status if response is not None else None
        if fail_on_http_error and status is not None and status >= 400:
            self._advance(CaptureState.FAILED)
            raise NavigationError(url, f"HTTP {status}", status=status)
        self._advance(CaptureState.NAVIGATED)
        return status

    async def stabilize(self) -> list[StepOutcome]:
        outcomes = await stabilize_page(
            self.page,
            consent_settle_ms=self.timing.consent_settle_ms,
            animation_timeout_ms=self.timing.animation_timeout_ms,
            post_settle_ms=self.timing.post_settle_ms,
            rules=self.consent_rules,
        )
        self.outcomes.extend(outcomes)
        self._advance(CaptureState.STABILIZED)
        return outcomes

    async def prepare(
        self,
        url: str,
        width: int | None,
        height: int | None,
        *,
        fail_on_http_error: bool = False,
    ) -> None:
        await self.set_viewport(width, height)
        await self.navigate(url, fail_on_http_error=fail_on_http_error)
        await self.stabilize()

    async def capture_section(
        self,
        url: str,
        section: Section | str | None,
        *,
        full_page: bool = False,
        add_browser_bar: bool = True,
    ) -> CaptureResult:
        width, height = self.viewport
        offset = 0.0
        section_name = None if full_page else _section_name(section)
        outcomes: list[StepOutcome] = []

        if not full_page and section_name != Section.HEADER.value:
            offset, outcome = await scroll_to_section(
                self.page,
                section_name or Section.HEADER.value,
                height,
                settle_ms=self.timing.scroll_settle_ms,
            )
            outcomes.append(outcome)
            self._advance(CaptureState.SCROLLED)

        raw = await self._screenshot(offset, full_page=full_page)
        self._advance(CaptureState.CAPTURED)

        png_bytes = raw.png_bytes
        composited = False
        if add_browser_bar and not full_page:
            overlay = self.settings.overlay
            bar_svg = render_browser_bar(
                url,
                width,
                bar_height=overlay.bar_height,
                mobile_threshold=overlay.mobile_threshold_px,
                font_family=overlay.font_family,
            )
            png_bytes, outcome = await composite_browser_bar(raw.png_bytes, bar_svg, bar_width=width)
            outcomes.append(outcome)
            composited = not outcome.is_degraded
            self._advance(CaptureState.COMPOSITED)

        self.outcomes.extend(outcomes)
        self._advance(CaptureState.DONE)
        return CaptureResult(
            url=url,
            png_bytes=png_bytes,
            section=section_name,
            offset=offset,
            raw=raw,
            composited=composited,
            states=list(self.states),
            outcomes=list(self.outcomes),
        )

    async def run(self, config: CaptureConfig) -> CaptureResult:
        await self.prepare(config.url, config.viewport_width, config.viewport_height)
        return await self.capture_section(
            config.url,
            config.section,
            full_page=config.full_page,
            add_browser_bar=config.add_browser_bar,
        )

    async def _screenshot(self, offset: float, *, full_page: bool) -> RawCapture:
        width, height = self.viewport
        if full_page:
            png = await self.page.screenshot(type="png", full_page=True)
            return RawCapture(png_bytes=png, x=0, y=0, width=width, height=None)
        # The page is already scrolled to ``offset``; the viewport-relative clip
        # therefore covers document rows [offset, offset + height).
        png = await self.page.screenshot(
            type="png",
            full_page=False,
            clip={"x": 0, "y": 0, "width": width, "height": height},
        )
        return RawCapture(png_bytes=png, x=0, y=offset, width=width, height=height)


async def capture_screenshot(
    config: CaptureConfig,
    *,
    settings: Settings | None = None,
    session_factory: SessionFactory = browser_session,
) -> CaptureResult:
    """Single-request entry point: own a browser for exactly one capture."""

    active = settings or get_settings()
    start = time.perf_counter()
    ok = False
    try:
        async with session_factory(
            device_scale_factor=resolve_scale(config.device_scale_factor, active.browser.default_device_scale_factor),
            settings=active,
        ) as session:
            pipeline = CapturePipeline(session.page, settings=active, timing=PipelineTiming.single(active))
            result = await pipeline.run(config)
        ok = True
    finally:
        elapsed = time.perf_counter() - start
        metrics.observe_capture(elapsed, ok=ok)
    result.capture_ms = int(elapsed * 1000)
    LOGGER.info(
        "Captured %s in %sms",
        config.url,
        result.capture_ms,
        extra={
            "url": config.url,
            "section": result.section,
            "offset": result.offset,
            "degraded": [outcome.step for outcome in result.degraded_steps],
        },
    )
    return result


_CHANNEL_ALIASES = {
    "cft": "chrome",
    "chrome-for-testing": "chrome",
}


async def _launch_browser(playwright, channel: str, *, headless: bool, args: Sequence[str]) -> Browser:
    normalized = _normalize_channel(channel)
    if normalized != channel:
        LOGGER.warning(
            "Playwright channel '%s' is not supported; falling back to '%s'",
            channel,
            normalized,
        )
    LOGGER.debug("launching chromium", extra={"channel": normalized})
    return await playwright.chromium.launch(channel=normalized, headless=headless, args=list(args))


async def _build_context(
    browser: Browser,
    *,
    width: int,
    height: int,
    device_scale_factor: float,
) -> BrowserContext:
    options: dict[str, Any] = {
        "viewport": {"width": width, "height": height},
        "device_scale_factor": device_scale_factor,
        "ignore_https_errors": True,
    }
    return await browser.new_context(**options)


async def _mask_automation(page: Page) -> None:
    await page.add_init_script(
        """
        Object.defineProperty(navigator, 'webdriver', {
            get: () => undefined,
        });
        """
    )


def resolve_scale(value: float | None, default: float) -> float:
    """Return ``value`` when it is a positive number, otherwise ``default``."""

    if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
        return float(value)
    return default


def _section_name(section: Section | str | None) -> str:
    if isinstance(section, Section):
        return section.value
    if not section:
        return Section.HEADER.value
    return str(section).strip().lower()


def playwright_version() -> str:
    try:
        return metadata.version("playwright")
    except metadata.PackageNotFoundError:  # pragma: no cover - dev fallback
        return "unknown"


def _normalize_channel(channel: str) -> str:
    if not channel:
        return "chromium"
    lowered = channel.strip().lower()
    return _CHANNEL_ALIASES.get(lowered, lowered)

"""Client sweeps: logical pages × viewport profiles × sections, plus the admin flow."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from pathlib import Path
import time
from typing import Final, Sequence

from playwright.async_api import Error as PlaywrightError, Page

from sitecapture import metrics
from sitecapture.admin import ADMIN_DIRNAME, ADMIN_VIEWPORT, AdminCaptureFlow, AdminCredentials, EditorTarget
from sitecapture.capture import CapturePipeline, PipelineTiming, SessionFactory, browser_session
from sitecapture.errors import CaptureError
from sitecapture.schemas import BatchCaptureRequest, BatchCaptureResponse
from sitecapture.sections import SECTION_ORDER
from sitecapture.settings import Settings, get_settings
from sitecapture.stabilizer import DEFAULT_CONSENT_RULES, ConsentRule
from sitecapture.storage import (
    CaptureRecord,
    FailureRecord,
    client_output_dir,
    public_url,
    write_png,
)

LOGGER = logging.getLogger(__name__)

NO_VARIANT_REASON = "No URL variant could be captured"


@dataclass(frozen=True, slots=True)
class ViewportProfile:
    name: str
    width: int
    height: int


@dataclass(frozen=True, slots=True)
class LogicalPage:
    """A page of the client site with candidate paths tried in order."""

    name: str
    paths: tuple[str, ...]


VIEWPORT_PROFILES: Final[tuple[ViewportProfile, ...]] = (
    ViewportProfile("desktop", 1920, 1080),
    ViewportProfile("tablet", 768, 1024),
    ViewportProfile("mobile", 375, 812),
)

DEFAULT_PAGES: Final[tuple[LogicalPage, ...]] = (
    LogicalPage("inicio", ("/", "")),
    LogicalPage("servicios", ("/servicios", "/services", "/nuestros-servicios")),
    LogicalPage("contacto", ("/contacto", "/contact", "/contactanos")),
)


@dataclass(slots=True)
class BatchResult:
    """Accumulated records and failures for one client run."""

    output_dir: Path
    records: list[CaptureRecord] = field(default_factory=list)
    failures: list[FailureRecord] = field(default_factory=list)
    elapsed_s: float = 0.0

    @property
    def success(self) -> bool:
        return not self.failures

    def to_response(self) -> BatchCaptureResponse:
        return BatchCaptureResponse(
            success=self.success,
            archivos=[record.to_schema() for record in self.records],
            errores=[failure.to_schema() for failure in self.failures],
            tiempo_total=round(self.elapsed_s, 2),
            output_dir=str(self.output_dir),
        )


def join_url(base: str, path: str) -> str:
    return base.rstrip("/") + path


class BatchRunner:
    """Owns one browser session for a whole client sweep."""

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        session_factory: SessionFactory = browser_session,
        pages: Sequence[LogicalPage] = DEFAULT_PAGES,
        profiles: Sequence[ViewportProfile] = VIEWPORT_PROFILES,
        consent_rules: Sequence[ConsentRule] = DEFAULT_CONSENT_RULES,
    ) -> None:
        self.settings = settings or get_settings()
        self.session_factory = session_factory
        self.pages = tuple(pages)
        self.profiles = tuple(profiles)
        self.consent_rules = consent_rules

    async def run(self, request: BatchCaptureRequest) -> BatchResult:
        start = time.perf_counter()
        result = BatchResult(output_dir=client_output_dir(self.settings.storage, request.cliente_nombre))
        LOGGER.info("Starting batch for %s (%s)", request.cliente_nombre, request.url_base)

        async with self.session_factory(
            device_scale_factor=self.settings.browser.default_device_scale_factor,
            settings=self.settings,
        ) as session:
            for profile in self.profiles:
                LOGGER.info("Viewport %s (%sx%s)", profile.name, profile.width, profile.height)
                for logical in self.pages:
                    records, reason = await self.capture_page(
                        session.page,
                        request.url_base,
                        logical,
                        profile,
                        result.output_dir,
                        add_browser_bar=request.include_browser_bar,
                    )
                    if records:
                        result.records.extend(records)
                        continue
                    result.failures.append(FailureRecord(page=logical.name, viewport=profile.name, reason=reason))
                    metrics.record_batch_failure(profile.name)

            credentials = _admin_credentials(request)
            if credentials is not None:
                records, failures = await self.capture_admin(session.page, credentials, request.url_base, result.output_dir)
                result.records.extend(records)
                result.failures.extend(failures)

        result.elapsed_s = time.perf_counter() - start
        metrics.observe_batch(result.elapsed_s)
        LOGGER.info(
            "Batch for %s finished in %.2fs: %s files, %s errors",
            request.cliente_nombre,
            result.elapsed_s,
            len(result.records),
            len(result.failures),
        )
        return result

    async def capture_page(
        self,
        page: Page,
        base_url: str,
        logical: LogicalPage,
        profile: ViewportProfile,
        output_dir: Path,
        *,
        add_browser_bar: bool = True,
    ) -> tuple[list[CaptureRecord], str]:
        """Try each candidate path; return the first non-empty set of section records."""

        last_error = ""
        for candidate in logical.paths:
            url = join_url(base_url, candidate)
            try:
                records = await self._capture_sections(page, url, logical, profile, output_dir, add_browser_bar)
            except (CaptureError, PlaywrightError, OSError) as exc:
                LOGGER.warning("Error capturing %s at %s: %s", url, profile.name, exc)
                last_error = str(exc)
                continue
            if records:
                return records, ""
        reason = NO_VARIANT_REASON if not last_error else f"{NO_VARIANT_REASON}: {last_error}"
        return [], reason

    async def _capture_sections(
        self,
        page: Page,
        url: str,
        logical: LogicalPage,
        profile: ViewportProfile,
        output_dir: Path,
        add_browser_bar: bool,
    ) -> list[CaptureRecord]:
        pipeline = CapturePipeline(
            page,
            settings=self.settings,
            timing=PipelineTiming.batch(self.settings),
            consent_rules=self.consent_rules,
        )
        await pipeline.prepare(url, profile.width, profile.height, fail_on_http_error=True)

        shots: list[tuple[str, bytes]] = []
        for section in SECTION_ORDER:
            capture = await pipeline.capture_section(url, section, add_browser_bar=add_browser_bar)
            shots.append((section.value, capture.png_bytes))

        records: list[CaptureRecord] = []
        for section_name, png in shots:
            path = await write_png(output_dir / profile.name / f"{logical.name}_{section_name}.png", png)
            records.append(
                CaptureRecord(
                    page=logical.name,
                    section=section_name,
                    viewport=profile.name,
                    path=path,
                    url_local=public_url(self.settings.storage, path),
                )
            )
            LOGGER.info("Saved %s", path)
        return records

    async def capture_admin(
        self,
        page: Page,
        credentials: AdminCredentials,
        site_url: str,
        output_dir: Path,
    ) -> tuple[list[CaptureRecord], list[FailureRecord]]:
        desktop = next((profile for profile in self.profiles if profile.name == "desktop"), VIEWPORT_PROFILES[0])
        try:
            await page.set_viewport_size({"width": desktop.width, "height": desktop.height})
        except PlaywrightError as exc:
            LOGGER.warning("Could not switch to the desktop viewport for admin captures: %s", exc)
            return [], [FailureRecord(page=ADMIN_DIRNAME, viewport=ADMIN_VIEWPORT, reason=str(exc))]
        editors = [EditorTarget(name=logical.name, url=join_url(site_url, logical.paths[0])) for logical in self.pages]
        flow = AdminCaptureFlow(page, credentials, settings=self.settings, output_dir=output_dir)
        return await flow.run(editors)


def _admin_credentials(request: BatchCaptureRequest) -> AdminCredentials | None:
    if request.wp_url and request.wp_user and request.wp_pass:
        return AdminCredentials(base_url=request.wp_url, username=request.wp_user, password=request.wp_pass)
    return None


async def run_batch(
    request: BatchCaptureRequest,
    *,
    settings: Settings | None = None,
    session_factory: SessionFactory = browser_session,
) -> BatchResult:
    return await BatchRunner(settings=settings, session_factory=session_factory).run(request)

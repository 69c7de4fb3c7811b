"""Authenticated WordPress admin capture: dashboard, page list, per-page editors."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Sequence

from playwright.async_api import Error as PlaywrightError, Page, TimeoutError as PlaywrightTimeoutError

from sitecapture.errors import CaptureError
from sitecapture.settings import Settings
from sitecapture.storage import CaptureRecord, FailureRecord, public_url, write_png

LOGGER = logging.getLogger(__name__)

LOGIN_PATH = "/wp-login.php"
PAGES_LIST_PATH = "/wp-admin/edit.php?post_type=page"
USERNAME_FIELD = "#user_login"
PASSWORD_FIELD = "#user_pass"
SUBMIT_BUTTON = "#wp-submit"
EDIT_PAGE_LINK = "#wp-admin-bar-edit a"
EDITOR_READY_SELECTOR = ".edit-post-layout, #postdivrich, #editor"

ADMIN_DIRNAME = "wordpress"
ADMIN_VIEWPORT = "desktop"

_ADMIN_SETTLE_MS = 1000
_EDITOR_SETTLE_MS = 2000
_EDITOR_READY_TIMEOUT_MS = 10000


@dataclass(frozen=True, slots=True)
class AdminCredentials:
    base_url: str
    username: str
    password: str

    def url(self, path: str) -> str:
        return self.base_url.rstrip("/") + path


@dataclass(frozen=True, slots=True)
class EditorTarget:
    """A public page whose editor should be opened via the admin bar."""

    name: str
    url: str


class AdminLoginError(CaptureError):
    """Credentials were rejected (still on the login form after submit)."""


class AdminCaptureFlow:
    """Drives the logged-in screens on an already configured desktop page."""

    def __init__(self, page: Page, credentials: AdminCredentials, *, settings: Settings, output_dir: Path) -> None:
        self.page = page
        self.credentials = credentials
        self.settings = settings
        self.output_dir = output_dir / ADMIN_DIRNAME
        self._wait_until = settings.browser.batch_wait_until
        self._timeout_ms = settings.browser.navigation_timeout_ms

    async def run(self, editors: Sequence[EditorTarget]) -> tuple[list[CaptureRecord], list[FailureRecord]]:
        records: list[CaptureRecord] = []
        failures: list[FailureRecord] = []
        try:
            await self.login()
            records.append(await self._shoot("dashboard"))
            await self._goto(self.credentials.url(PAGES_LIST_PATH))
            await self.page.wait_for_timeout(_ADMIN_SETTLE_MS)
            records.append(await self._shoot("paginas"))
        except (CaptureError, PlaywrightError, OSError) as exc:
            LOGGER.warning("WordPress admin capture failed: %s", exc)
            failures.append(FailureRecord(page=ADMIN_DIRNAME, viewport=ADMIN_VIEWPORT, reason=str(exc)))
            return records, failures

        for target in editors:
            try:
                record = await self.capture_editor(target)
            except (CaptureError, PlaywrightError, OSError) as exc:
                LOGGER.warning("Editor capture failed for %s: %s", target.name, exc)
                failures.append(
                    FailureRecord(page=ADMIN_DIRNAME, viewport=ADMIN_VIEWPORT, reason=f"editor_{target.name}: {exc}")
                )
                continue
            records.append(record)
        return records, failures

    async def login(self) -> None:
        await self._goto(self.credentials.url(LOGIN_PATH))
        await self.page.fill(USERNAME_FIELD, self.credentials.username)
        await self.page.fill(PASSWORD_FIELD, self.credentials.password)
        async with self.page.expect_navigation(wait_until=self._wait_until, timeout=self._timeout_ms):
            await self.page.click(SUBMIT_BUTTON)
        if "wp-login.php" in self.page.url:
            raise AdminLoginError("WordPress login failed", details={"url": self.page.url})
        LOGGER.info("Logged into WordPress admin at %s", self.credentials.base_url)
        await self.page.wait_for_timeout(_ADMIN_SETTLE_MS)

    async def capture_editor(self, target: EditorTarget) -> CaptureRecord:
        await self._goto(target.url)
        link = await self.page.query_selector(EDIT_PAGE_LINK)
        if link is None:
            raise CaptureError(f"No 'edit page' link in the admin bar for {target.name}", details={"url": target.url})
        async with self.page.expect_navigation(wait_until=self._wait_until, timeout=self._timeout_ms):
            await link.click()
        try:
            await self.page.wait_for_selector(EDITOR_READY_SELECTOR, timeout=_EDITOR_READY_TIMEOUT_MS)
        except PlaywrightTimeoutError:
            LOGGER.warning("Editor markup not detected for %s; capturing anyway", target.name)
        await self.page.wait_for_timeout(_EDITOR_SETTLE_MS)
        return await self._shoot(f"editor_{target.name}")

    async def _goto(self, url: str) -> None:
        await self.page.goto(url, wait_until=self._wait_until, timeout=self._timeout_ms)

    async def _shoot(self, name: str) -> CaptureRecord:
        png = await self.page.screenshot(type="png")
        path = await write_png(self.output_dir / f"{name}.png", png)
        LOGGER.info("Saved %s", path)
        return CaptureRecord(
            page=ADMIN_DIRNAME,
            section=name,
            viewport=ADMIN_VIEWPORT,
            path=path,
            url_local=public_url(self.settings.storage, path),
        )

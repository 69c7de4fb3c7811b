from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import pytest

import sitecapture.capture as capture_module
from sitecapture.admin import (
    EDIT_PAGE_LINK,
    PASSWORD_FIELD,
    SUBMIT_BUTTON,
    USERNAME_FIELD,
    AdminCaptureFlow,
    AdminCredentials,
    EditorTarget,
)
from sitecapture.batch import BatchRunner, LogicalPage, ViewportProfile
from sitecapture.outcomes import StepOutcome
from sitecapture.schemas import BatchCaptureRequest
from sitecapture.settings import StorageSettings, get_settings
from tests.fakes import FakeElement, FakePage, playwright_error, session_factory_for


class AdminPage(FakePage):
    """Fake WordPress: the login submit either lands on the dashboard or bounces back."""

    def __init__(self, *, accept_login: bool, with_edit_link: bool = True, **kwargs) -> None:
        super().__init__(**kwargs)
        self.accept_login = accept_login
        if with_edit_link:
            self.elements[EDIT_PAGE_LINK] = FakeElement(EDIT_PAGE_LINK, on_click=self._open_editor)

    def _open_editor(self) -> None:
        self.url = self.url.rstrip("/") + "/wp-admin/post.php?action=edit"

    async def click(self, selector: str, **kwargs) -> None:
        await super().click(selector, **kwargs)
        if selector == SUBMIT_BUTTON and self.accept_login:
            self.url = "https://client.example/wp-admin/"


@pytest.fixture()
def settings(tmp_path: Path):
    return replace(
        get_settings(),
        storage=StorageSettings(output_root=tmp_path, files_prefix="/files", public_base_url="http://localhost:8000"),
    )


CREDENTIALS = AdminCredentials(base_url="https://client.example", username="editor", password="s3cret")


@pytest.mark.asyncio()
async def test_rejected_login_is_a_single_failure(settings, tmp_path):
    page = AdminPage(accept_login=False)
    flow = AdminCaptureFlow(page, CREDENTIALS, settings=settings, output_dir=tmp_path / "acme")

    records, failures = await flow.run([EditorTarget("inicio", "https://client.example/")])

    assert records == []
    assert [(f.page, f.viewport) for f in failures] == [("wordpress", "desktop")]
    assert "login failed" in failures[0].reason
    assert page.filled == {USERNAME_FIELD: "editor", PASSWORD_FIELD: "s3cret"}
    assert page.screenshot_calls == []


@pytest.mark.asyncio()
async def test_successful_login_captures_dashboard_pages_and_editors(settings, tmp_path):
    page = AdminPage(accept_login=True)
    flow = AdminCaptureFlow(page, CREDENTIALS, settings=settings, output_dir=tmp_path / "acme")

    records, failures = await flow.run(
        [EditorTarget("inicio", "https://client.example/"), EditorTarget("contacto", "https://client.example/contacto")]
    )

    assert failures == []
    assert [record.section for record in records] == ["dashboard", "paginas", "editor_inicio", "editor_contacto"]
    assert all(record.page == "wordpress" for record in records)
    assert (tmp_path / "acme" / "wordpress" / "dashboard.png").exists()
    assert (tmp_path / "acme" / "wordpress" / "editor_contacto.png").exists()
    assert page.goto_calls[:2] == [
        "https://client.example/wp-login.php",
        "https://client.example/wp-admin/edit.php?post_type=page",
    ]


@pytest.mark.asyncio()
async def test_missing_edit_link_fails_only_that_editor(settings, tmp_path):
    page = AdminPage(accept_login=True, with_edit_link=False)
    flow = AdminCaptureFlow(page, CREDENTIALS, settings=settings, output_dir=tmp_path / "acme")

    records, failures = await flow.run([EditorTarget("inicio", "https://client.example/")])

    assert [record.section for record in records] == ["dashboard", "paginas"]
    assert [(f.page, f.viewport) for f in failures] == [("wordpress", "desktop")]
    assert failures[0].reason.startswith("editor_inicio: ")
    assert "edit page" in failures[0].reason


@pytest.mark.asyncio()
async def test_batch_runs_admin_flow_on_desktop_when_credentials_present(settings, monkeypatch):
    async def _fake_composite(raw_png: bytes, bar_svg: str, *, bar_width: int):  # noqa: ARG001
        return raw_png, StepOutcome.ok("overlay")

    monkeypatch.setattr(capture_module, "composite_browser_bar", _fake_composite)
    page = AdminPage(accept_login=False)
    factory, _ = session_factory_for(page)
    runner = BatchRunner(
        settings=settings,
        session_factory=factory,
        pages=[LogicalPage("inicio", ("/",))],
        profiles=[ViewportProfile("desktop", 1920, 1080), ViewportProfile("mobile", 375, 812)],
    )
    request = BatchCaptureRequest(
        url_base="https://client.example",
        cliente_nombre="acme",
        wp_url="client.example/",
        wp_user="editor",
        wp_pass="s3cret",
    )

    result = await runner.run(request)

    assert page.viewport_calls[-1] == {"width": 1920, "height": 1080}
    assert "https://client.example/wp-login.php" in page.goto_calls
    assert len(result.records) == 6
    assert [(f.page, f.viewport) for f in result.failures] == [("wordpress", "desktop")]
    assert result.success is False


@pytest.mark.asyncio()
async def test_admin_viewport_failure_is_recorded(settings, tmp_path):
    class BrokenViewportPage(AdminPage):
        async def set_viewport_size(self, size):  # noqa: ANN001
            raise playwright_error("target closed")

    runner = BatchRunner(settings=settings)
    page = BrokenViewportPage(accept_login=True)

    records, failures = await runner.capture_admin(page, CREDENTIALS, "https://client.example", tmp_path)

    assert records == []
    assert failures[0].page == "wordpress"
    assert "target closed" in failures[0].reason

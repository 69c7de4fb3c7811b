from __future__ import annotations

import pytest
from pydantic import ValidationError

from sitecapture.errors import ViewportValidationError
from sitecapture.schemas import BatchCaptureRequest, ScreenshotRequest, normalize_url, parse_viewport
from sitecapture.sections import Section


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("example.com", "https://example.com"),
        ("  http://example.com/path ", "http://example.com/path"),
        ("HTTPS://Example.com", "HTTPS://Example.com"),
        ("", "https://example.com"),
        (None, "https://example.com"),
    ],
)
def test_normalize_url(raw, expected):
    assert normalize_url(raw) == expected


def test_parse_viewport_accepts_objects_and_json():
    assert parse_viewport({"width": 375, "height": 812}).model_dump() == {"width": 375, "height": 812}
    assert parse_viewport('{"width": "1280", "height": 720}').width == 1280
    assert parse_viewport(None).model_dump() == {"width": 1920, "height": 1080}
    assert parse_viewport({"width": 800}).height == 1080


@pytest.mark.parametrize("value", ["{not json", "[375, 812]", {"width": "wide"}, {"width": 0, "height": 10}, 42])
def test_parse_viewport_rejects_malformed_values(value):
    with pytest.raises(ViewportValidationError):
        parse_viewport(value)


def test_screenshot_request_accepts_aliases_and_field_names():
    by_alias = ScreenshotRequest.model_validate({"fullPage": True, "addBrowserBar": False, "deviceScaleFactor": 3})
    by_name = ScreenshotRequest(full_page=True, add_browser_bar=False, device_scale_factor=3)

    assert by_alias == by_name
    assert by_alias.section is Section.HEADER


def test_screenshot_request_rejects_bad_scale_and_section():
    with pytest.raises(ValidationError):
        ScreenshotRequest(deviceScaleFactor=0)
    with pytest.raises(ValidationError):
        ScreenshotRequest(section="middle")


def test_batch_request_normalizes_urls():
    request = BatchCaptureRequest(url_base="acme.example", cliente_nombre="acme", wp_url="acme.example/")

    assert request.url_base == "https://acme.example"
    assert request.wp_url == "https://acme.example"
    assert request.include_browser_bar is True


def test_batch_request_blank_wp_url_disables_admin_flow():
    request = BatchCaptureRequest(url_base="https://acme.example", cliente_nombre="acme", wp_url="  ")

    assert request.wp_url is None


def test_batch_request_requires_base_and_client():
    with pytest.raises(ValidationError):
        BatchCaptureRequest(url_base="   ", cliente_nombre="acme")
    with pytest.raises(ValidationError):
        BatchCaptureRequest(url_base="https://acme.example", cliente_nombre="")

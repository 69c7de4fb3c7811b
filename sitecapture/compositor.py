"""Stack the rasterized browser bar on top of a screenshot, backed by pyvips."""

from __future__ import annotations

import asyncio
import logging

import pyvips

from sitecapture.outcomes import StepOutcome

LOGGER = logging.getLogger(__name__)

_STEP = "overlay"

_PNG_ENCODE_ARGS = {
    "compression": 9,
    "interlace": False,
}
_WHITE = [255, 255, 255]


async def composite_browser_bar(
    raw_png: bytes,
    bar_svg: str,
    *,
    bar_width: int,
) -> tuple[bytes, StepOutcome]:
    """Return ``bar_svg`` stacked above ``raw_png`` as a single PNG.

    ``bar_width`` is the CSS width the SVG was drawn for; the bar is rasterized
    at ``raw width / bar_width`` so it lines up with HiDPI captures. When
    anything goes wrong the original bytes come back untouched.
    """

    try:
        combined = await asyncio.to_thread(_compose_sync, raw_png, bar_svg.encode("utf-8"), bar_width)
    except (pyvips.Error, ValueError, TypeError, RuntimeError, MemoryError) as exc:
        return raw_png, StepOutcome.degraded(_STEP, f"compositing failed: {exc}")
    return combined, StepOutcome.ok(_STEP)


def _compose_sync(raw_png: bytes, bar_svg: bytes, bar_width: int) -> bytes:
    shot = _to_srgb(pyvips.Image.new_from_buffer(raw_png, ""))
    scale = shot.width / max(1, bar_width)
    bar = _to_srgb(pyvips.Image.svgload_buffer(bar_svg, scale=scale))
    bar = _fit_width(bar, shot.width)

    canvas = pyvips.Image.black(shot.width, shot.height + bar.height, bands=3)
    canvas = canvas.insert(bar, 0, 0).insert(shot, 0, bar.height)
    LOGGER.debug(
        "composited browser bar",
        extra={"width": canvas.width, "height": canvas.height, "bar_height": bar.height},
    )
    return canvas.write_to_buffer(".png", **_PNG_ENCODE_ARGS)


def _to_srgb(image: pyvips.Image) -> pyvips.Image:
    if image.hasalpha():
        image = image.flatten(background=_WHITE)
    if image.bands < 3:
        image = image.colourspace("srgb")
    if image.format != "uchar":
        image = image.cast("uchar")
    return image


def _fit_width(image: pyvips.Image, width: int) -> pyvips.Image:
    if image.width > width:
        return image.crop(0, 0, width, image.height)
    if image.width < width:
        return image.embed(0, 0, width, image.height, extend="copy")
    return image

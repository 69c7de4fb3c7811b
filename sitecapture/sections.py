"""Section targeting: map header/content/footer onto a vertical scroll offset."""

from __future__ import annotations

from enum import Enum
import logging
from typing import Final

from playwright.async_api import Error as PlaywrightError, Page

from sitecapture.outcomes import StepOutcome

LOGGER = logging.getLogger(__name__)

_STEP = "scroll"


class Section(str, Enum):
    """Named vertical regions of a page."""

    HEADER = "header"
    CONTENT = "content"
    FOOTER = "footer"


# Fraction of the scrollable range (page height minus viewport height).
SECTION_FRACTIONS: Final[dict[Section, float]] = {
    Section.HEADER: 0.0,
    Section.CONTENT: 0.4,
    Section.FOOTER: 1.0,
}

SECTION_ORDER: Final[tuple[Section, ...]] = (Section.HEADER, Section.CONTENT, Section.FOOTER)


def section_fraction(section: Section | str | None) -> float:
    """Return the fractional position for a section; unknown names behave like the header."""

    if section is None:
        return 0.0
    try:
        key = Section(section.value if isinstance(section, Section) else str(section).strip().lower())
    except ValueError:
        return 0.0
    return SECTION_FRACTIONS[key]


def compute_section_offset(section: Section | str | None, total_height: float, viewport_height: float) -> float:
    """Scroll offset (px from the top) for ``section``, never negative."""

    offset = section_fraction(section) * (total_height - viewport_height)
    return max(0.0, offset)


async def measure_scroll_height(page: Page) -> int:
    return int(await page.evaluate("document.scrollingElement.scrollHeight"))


async def scroll_to_section(
    page: Page,
    section: Section | str,
    viewport_height: int,
    *,
    settle_ms: int = 0,
) -> tuple[float, StepOutcome]:
    """Measure the live page, scroll to the section and return the offset used.

    The offset is approximate: layouts can shift after measurement. Any failure
    to measure or scroll falls back to offset 0 rather than aborting.
    """

    try:
        total_height = await measure_scroll_height(page)
    except (PlaywrightError, TypeError, ValueError) as exc:
        return 0.0, StepOutcome.degraded(_STEP, f"scroll height unavailable: {exc}")

    offset = compute_section_offset(section, total_height, viewport_height)
    try:
        await page.evaluate("(y) => window.scrollTo({top: y, left: 0, behavior: 'instant'})", offset)
        if settle_ms > 0:
            await page.wait_for_timeout(settle_ms)
    except PlaywrightError as exc:
        return 0.0, StepOutcome.degraded(_STEP, f"scroll failed: {exc}")

    LOGGER.debug(
        "scrolled to section",
        extra={"section": getattr(section, "value", section), "offset": offset, "scroll_height": total_height},
    )
    return offset, StepOutcome.ok(_STEP, f"offset={offset:.0f}")

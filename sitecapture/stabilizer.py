"""Drive a freshly loaded page to a screenshot-safe state.

Both steps are best-effort: they report a :class:`StepOutcome` and never raise.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Awaitable, Callable, Sequence

from playwright.async_api import (
    ElementHandle,
    Error as PlaywrightError,
    Page,
    TimeoutError as PlaywrightTimeoutError,
)

from sitecapture.outcomes import StepOutcome

LOGGER = logging.getLogger(__name__)

ConsentAction = Callable[[Page, ElementHandle], Awaitable[None]]

_CONSENT_STEP = "consent"
_ANIMATION_STEP = "animations"

_ANIMATIONS_IDLE_JS = """
() => {
    if (typeof document.getAnimations !== 'function') {
        return true;
    }
    const animations = document.getAnimations();
    if (animations.length === 0) {
        return true;
    }
    return animations.every((a) => a.playState === 'finished' || a.playState === 'idle');
}
"""


async def click_element(page: Page, element: ElementHandle) -> None:  # noqa: ARG001
    await element.click(timeout=2000)


async def hide_element(page: Page, element: ElementHandle) -> None:  # noqa: ARG001
    await element.evaluate("(el) => el.style.setProperty('display', 'none', 'important')")


@dataclass(frozen=True, slots=True)
class ConsentRule:
    """A selector for a consent control plus what to do when it is present."""

    selector: str
    action: ConsentAction = click_element


# Probed in order; the first rule whose action succeeds wins.
DEFAULT_CONSENT_RULES: tuple[ConsentRule, ...] = (
    ConsentRule('[class*="cookie"] button[class*="accept"]'),
    ConsentRule('[class*="cookie"] button[class*="aceptar"]'),
    ConsentRule('[id*="cookie"] button'),
    ConsentRule(".cookie-consent button"),
    ConsentRule("#cookie-banner button"),
    ConsentRule('[class*="consent"] button[class*="accept"]'),
    ConsentRule('button[id*="accept-cookies"]'),
    ConsentRule(".cc-btn.cc-dismiss"),
    ConsentRule("#onetrust-accept-btn-handler"),
    ConsentRule("#CybotCookiebotDialog", action=hide_element),
)


async def dismiss_consent_banner(
    page: Page,
    *,
    rules: Sequence[ConsentRule] = DEFAULT_CONSENT_RULES,
    settle_ms: int = 500,
) -> StepOutcome:
    """Dismiss at most one cookie/consent banner."""

    failures: list[str] = []
    for rule in rules:
        try:
            element = await page.query_selector(rule.selector)
        except PlaywrightError as exc:
            failures.append(f"{rule.selector}: {exc}")
            continue
        if element is None:
            continue
        try:
            await rule.action(page, element)
        except PlaywrightError as exc:
            failures.append(f"{rule.selector}: {exc}")
            continue
        if settle_ms > 0:
            await page.wait_for_timeout(settle_ms)
        LOGGER.info("Consent banner dismissed", extra={"selector": rule.selector})
        return StepOutcome.ok(_CONSENT_STEP, rule.selector)

    if failures:
        return StepOutcome.degraded(_CONSENT_STEP, "; ".join(failures))
    return StepOutcome.skipped(_CONSENT_STEP, "no consent banner found")


async def wait_for_animations(page: Page, *, timeout_ms: int = 3000) -> StepOutcome:
    """Poll ``document.getAnimations()`` until idle or the soft timeout expires."""

    try:
        await page.wait_for_function(_ANIMATIONS_IDLE_JS, timeout=timeout_ms)
    except PlaywrightTimeoutError:
        return StepOutcome.degraded(_ANIMATION_STEP, f"animations still running after {timeout_ms}ms")
    except PlaywrightError as exc:
        return StepOutcome.degraded(_ANIMATION_STEP, f"animation poll failed: {exc}")
    return StepOutcome.ok(_ANIMATION_STEP)


async def stabilize_page(
    page: Page,
    *,
    consent_settle_ms: int = 500,
    animation_timeout_ms: int = 3000,
    post_settle_ms: int = 0,
    rules: Sequence[ConsentRule] = DEFAULT_CONSENT_RULES,
) -> list[StepOutcome]:
    """Run consent dismissal then animation settling, in that order."""

    outcomes = [
        await dismiss_consent_banner(page, rules=rules, settle_ms=consent_settle_ms),
        await wait_for_animations(page, timeout_ms=animation_timeout_ms),
    ]
    if post_settle_ms > 0:
        try:
            await page.wait_for_timeout(post_settle_ms)
        except PlaywrightError as exc:
            outcomes.append(StepOutcome.degraded("settle", str(exc)))
    return outcomes

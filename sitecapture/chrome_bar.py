"""Render a Chrome-style tab strip + address bar as SVG.

Everything here is a pure function of (url, viewport width, viewport class):
no I/O, no randomness, and no exceptions for any width >= 1.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from html import escape
import re
from typing import Final

BAR_HEIGHT: Final[int] = 80
MOBILE_THRESHOLD_PX: Final[int] = 500
TABLET_THRESHOLD_PX: Final[int] = 1024
ELLIPSIS: Final[str] = "..."
TAB_TITLE_MAX_CHARS: Final[int] = 25
DEFAULT_FONT: Final[str] = "Segoe UI, Roboto, Arial, sans-serif"

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)

COLORS: Final[dict[str, str]] = {
    "bg": "#dfe1e5",
    "tab_active": "#ffffff",
    "toolbar": "#ffffff",
    "text": "#3c4043",
    "text_light": "#5f6368",
    "muted": "#c4c7c9",
    "separator": "#dadce0",
    "address_bg": "#f1f3f4",
}

_LOCK_PATH = (
    "M4 6V4a4 4 0 118 0v2h1a1 1 0 011 1v7a1 1 0 01-1 1H3a1 1 0 01-1-1V7a1 1 0 011-1h1z"
    "m2-2v2h4V4a2 2 0 10-4 0z"
)


class ViewportClass(str, Enum):
    MOBILE = "mobile"
    TABLET = "tablet"
    DESKTOP = "desktop"


# Address-bar character budget per layout.
ADDRESS_MAX_CHARS: Final[dict[ViewportClass, int]] = {
    ViewportClass.MOBILE: 35,
    ViewportClass.TABLET: 50,
    ViewportClass.DESKTOP: 80,
}


def classify_viewport(width: int, *, mobile_threshold: int = MOBILE_THRESHOLD_PX) -> ViewportClass:
    """Bucket a viewport width into mobile/tablet/desktop."""

    if width < mobile_threshold:
        return ViewportClass.MOBILE
    if width < TABLET_THRESHOLD_PX:
        return ViewportClass.TABLET
    return ViewportClass.DESKTOP


def display_url(url: str) -> str:
    """Drop the scheme and a single trailing slash."""

    stripped = _SCHEME_RE.sub("", url.strip())
    if stripped.endswith("/"):
        stripped = stripped[:-1]
    return stripped


def truncate(text: str, limit: int) -> str:
    if limit <= 0:
        return ""
    if len(text) <= limit:
        return text
    return text[:limit] + ELLIPSIS


@dataclass(frozen=True, slots=True)
class ChromeOverlaySpec:
    """Declarative description of the bar before it is turned into SVG."""

    width: int
    height: int
    display_url: str
    tab_title: str
    address_text: str
    variant: ViewportClass

    @property
    def shows_tab_strip(self) -> bool:
        return self.variant is not ViewportClass.MOBILE


def build_overlay_spec(
    url: str,
    width: int,
    variant: ViewportClass | None = None,
    *,
    bar_height: int = BAR_HEIGHT,
    mobile_threshold: int = MOBILE_THRESHOLD_PX,
) -> ChromeOverlaySpec:
    safe_width = max(1, int(width))
    layout = variant or classify_viewport(safe_width, mobile_threshold=mobile_threshold)
    shown = display_url(url)
    return ChromeOverlaySpec(
        width=safe_width,
        height=max(1, int(bar_height)),
        display_url=shown,
        tab_title=truncate(shown, TAB_TITLE_MAX_CHARS),
        address_text=truncate(shown, ADDRESS_MAX_CHARS[layout]),
        variant=layout,
    )


def _tab_strip(spec: ChromeOverlaySpec, font: str) -> str:
    w = spec.width
    mid = spec.height / 2
    return f"""
  <g id="tab-strip">
    <path d="M 0 {mid} L 7 {mid} C 7 {mid} 12 {mid} 12 {mid - 5} L 12 15 C 12 10 16 7 20 7 L 220 7 C 224 7 228 10 228 15 L 228 {mid - 5} C 228 {mid} 233 {mid} 233 {mid} L {w} {mid} L {w} {spec.height} L 0 {spec.height} Z" fill="{COLORS['tab_active']}"/>
    <circle cx="25" cy="{mid - 16}" r="7" fill="{COLORS['separator']}"/>
    <text x="40" y="{mid - 12}" font-family="{font}" font-size="12" fill="{COLORS['text']}">{escape(spec.tab_title)}</text>
    <text x="210" y="{mid - 12}" font-family="{font}" font-size="14" fill="{COLORS['text_light']}">&#215;</text>
  </g>"""


def _nav_buttons(spec: ChromeOverlaySpec) -> str:
    y = spec.height - 28
    active = COLORS["text_light"]
    muted = COLORS["muted"]
    return f"""
  <g id="nav-buttons" transform="translate(15, {y})">
    <path d="M 10 2 L 4 8 L 10 14 M 4 8 L 18 8" fill="none" stroke="{active}" stroke-width="2"/>
    <path d="M 38 2 L 44 8 L 38 14 M 44 8 L 30 8" fill="none" stroke="{muted}" stroke-width="2"/>
    <path d="M 72 3 A 6 6 0 1 0 74 8 M 72 0 L 72 4 L 68 4" fill="none" stroke="{active}" stroke-width="2"/>
  </g>"""


def _address_bar(spec: ChromeOverlaySpec, font: str) -> str:
    h = spec.height
    if spec.variant is ViewportClass.MOBILE:
        x, lock_x, text_x = 10, 22, 45
        bar_width = spec.width - 20
    else:
        x, lock_x, text_x = 100, 115, 135
        inset = 200 if spec.variant is ViewportClass.TABLET else 250
        bar_width = spec.width - inset
    bar_width = max(1, bar_width)
    return f"""
  <g id="address-bar">
    <rect x="{x}" y="{h - 33}" width="{bar_width}" height="28" rx="14" fill="{COLORS['address_bg']}"/>
    <g transform="translate({lock_x}, {h - 27})">
      <path d="{_LOCK_PATH}" fill="{COLORS['text_light']}" transform="scale(0.85)"/>
    </g>
    <text x="{text_x}" y="{h - 15}" font-family="{font}" font-size="13" fill="{COLORS['text']}">{escape(spec.address_text)}</text>
  </g>"""


def render_overlay_svg(spec: ChromeOverlaySpec, *, font_family: str = DEFAULT_FONT) -> str:
    """Serialize an overlay description into a standalone SVG document."""

    font = escape(font_family, quote=True)
    w, h = spec.width, spec.height
    parts = [
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{w}" height="{h}" viewBox="0 0 {w} {h}">',
        f'  <rect width="{w}" height="{h}" fill="{COLORS["bg"]}"/>',
        f'  <rect y="{h / 2}" width="{w}" height="{h / 2}" fill="{COLORS["toolbar"]}"/>',
    ]
    if spec.shows_tab_strip:
        parts.append(_tab_strip(spec, font))
        parts.append(_nav_buttons(spec))
    parts.append(_address_bar(spec, font))
    parts.append(f'  <line x1="0" y1="{h - 0.5}" x2="{w}" y2="{h - 0.5}" stroke="{COLORS["separator"]}" stroke-width="1"/>')
    parts.append("</svg>")
    return "\n".join(parts)


def render_browser_bar(
    url: str,
    width: int,
    variant: ViewportClass | None = None,
    *,
    bar_height: int = BAR_HEIGHT,
    mobile_threshold: int = MOBILE_THRESHOLD_PX,
    font_family: str = DEFAULT_FONT,
) -> str:
    """Convenience wrapper: ``build_overlay_spec`` + ``render_overlay_svg``."""

    spec = build_overlay_spec(
        url,
        width,
        variant,
        bar_height=bar_height,
        mobile_threshold=mobile_threshold,
    )
    return render_overlay_svg(spec, font_family=font_family)

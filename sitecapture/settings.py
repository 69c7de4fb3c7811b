"""Typed configuration objects backed by python-decouple settings."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Final

from decouple import Config as DecoupleConfig, RepositoryEmpty, RepositoryEnv

__all__ = [
    "BrowserSettings",
    "StabilizerSettings",
    "OverlaySettings",
    "StorageSettings",
    "TelemetrySettings",
    "Settings",
    "load_config",
    "get_settings",
]


@dataclass(frozen=True, slots=True)
class BrowserSettings:
    """Chromium launch + navigation knobs."""

    playwright_channel: str
    headless: bool
    launch_args: tuple[str, ...]
    navigation_timeout_ms: int
    wait_until: str
    batch_wait_until: str
    default_width: int
    default_height: int
    default_device_scale_factor: float
    mask_automation: bool


@dataclass(frozen=True, slots=True)
class StabilizerSettings:
    """Soft waits applied between navigation and the screenshot."""

    consent_settle_ms: int
    animation_timeout_ms: int
    batch_animation_timeout_ms: int
    post_animation_settle_ms: int
    batch_post_animation_settle_ms: int
    scroll_settle_ms: int


@dataclass(frozen=True, slots=True)
class OverlaySettings:
    """Geometry of the simulated browser chrome."""

    bar_height: int
    mobile_threshold_px: int
    font_family: str


@dataclass(frozen=True, slots=True)
class StorageSettings:
    """Where batch runs write PNGs and how they are exposed over HTTP."""

    output_root: Path
    files_prefix: str
    public_base_url: str


@dataclass(frozen=True, slots=True)
class TelemetrySettings:
    """Ports for the auxiliary Prometheus exporter."""

    prometheus_port: int


@dataclass(frozen=True, slots=True)
class Settings:
    """Top-level immutable configuration container."""

    env_path: str
    browser: BrowserSettings
    stabilizer: StabilizerSettings
    overlay: OverlaySettings
    storage: StorageSettings
    telemetry: TelemetrySettings


def load_config(env_path: str = ".env") -> DecoupleConfig:
    """Return a python-decouple config anchored to the repository .env file.

    Environment variables always win; a missing ``.env`` simply means no file overrides.
    """

    if Path(env_path).is_file():
        return DecoupleConfig(RepositoryEnv(env_path))
    return DecoupleConfig(RepositoryEmpty())


def _int(cfg: DecoupleConfig, key: str, *, default: int) -> int:
    return cfg(key, cast=int, default=default)


def _positive_int(cfg: DecoupleConfig, key: str, *, default: int) -> int:
    value = _int(cfg, key, default=default)
    if value <= 0:
        msg = f"{key} must be a positive integer"
        raise ValueError(msg)
    return value


def _bool(cfg: DecoupleConfig, key: str, *, default: bool) -> bool:
    return cfg(key, cast=bool, default=default)


def _csv_tuple(cfg: DecoupleConfig, key: str, *, default: str = "") -> tuple[str, ...]:
    raw = cfg(key, default=default)
    if not raw:
        return tuple()
    return tuple(part.strip() for part in raw.split(",") if part.strip())


@lru_cache(maxsize=1)
def get_settings(env_path: str = ".env") -> Settings:
    """Load and memoize structured settings for the current process."""

    cfg = load_config(env_path)

    device_scale_factor = cfg("CAPTURE_DEVICE_SCALE_FACTOR", cast=float, default=1.0)
    if device_scale_factor <= 0:
        msg = "CAPTURE_DEVICE_SCALE_FACTOR must be positive"
        raise ValueError(msg)

    browser = BrowserSettings(
        playwright_channel=cfg("PLAYWRIGHT_CHANNEL", default="chromium"),
        headless=_bool(cfg, "BROWSER_HEADLESS", default=True),
        launch_args=_csv_tuple(
            cfg,
            "BROWSER_LAUNCH_ARGS",
            default="--no-sandbox,--disable-setuid-sandbox,--disable-dev-shm-usage",
        ),
        navigation_timeout_ms=_positive_int(cfg, "NAVIGATION_TIMEOUT_MS", default=30000),
        wait_until=cfg("NAVIGATION_WAIT_UNTIL", default="domcontentloaded"),
        batch_wait_until=cfg("BATCH_NAVIGATION_WAIT_UNTIL", default="networkidle"),
        default_width=_positive_int(cfg, "CAPTURE_VIEWPORT_WIDTH", default=1920),
        default_height=_positive_int(cfg, "CAPTURE_VIEWPORT_HEIGHT", default=1080),
        default_device_scale_factor=device_scale_factor,
        mask_automation=_bool(cfg, "MASK_AUTOMATION", default=True),
    )
    stabilizer = StabilizerSettings(
        consent_settle_ms=_int(cfg, "CONSENT_SETTLE_MS", default=500),
        animation_timeout_ms=_positive_int(cfg, "ANIMATION_TIMEOUT_MS", default=3000),
        batch_animation_timeout_ms=_positive_int(cfg, "BATCH_ANIMATION_TIMEOUT_MS", default=5000),
        post_animation_settle_ms=_int(cfg, "POST_ANIMATION_SETTLE_MS", default=0),
        batch_post_animation_settle_ms=_int(cfg, "BATCH_POST_ANIMATION_SETTLE_MS", default=2000),
        scroll_settle_ms=_int(cfg, "SCROLL_SETTLE_MS", default=500),
    )
    overlay = OverlaySettings(
        bar_height=_positive_int(cfg, "BROWSER_BAR_HEIGHT", default=80),
        mobile_threshold_px=_positive_int(cfg, "MOBILE_THRESHOLD_PX", default=500),
        font_family=cfg("BROWSER_BAR_FONT", default="Segoe UI, Roboto, Arial, sans-serif"),
    )
    storage = StorageSettings(
        output_root=Path(cfg("OUTPUT_ROOT", default="capturas")),
        files_prefix=cfg("FILES_PREFIX", default="/files"),
        public_base_url=cfg("PUBLIC_BASE_URL", default="http://localhost:8000").rstrip("/"),
    )
    telemetry = TelemetrySettings(
        prometheus_port=_int(cfg, "PROMETHEUS_PORT", default=0),
    )

    return Settings(
        env_path=env_path,
        browser=browser,
        stabilizer=stabilizer,
        overlay=overlay,
        storage=storage,
        telemetry=telemetry,
    )


# Statically importable settings singleton for modules that prefer constants over DI.
settings: Final[Settings] = get_settings()

"""Result type for best-effort capture steps."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging

from sitecapture import metrics

LOGGER = logging.getLogger(__name__)


class StepStatus(str, Enum):
    OK = "ok"
    SKIPPED = "skipped"
    DEGRADED = "degraded"


@dataclass(frozen=True, slots=True)
class StepOutcome:
    """What happened during one best-effort step.

    ``SKIPPED`` means there was nothing to do (no banner on the page), while
    ``DEGRADED`` means the step tried and failed, and the capture continued
    with a fallback.
    """

    step: str
    status: StepStatus
    reason: str = ""

    @classmethod
    def ok(cls, step: str, reason: str = "") -> "StepOutcome":
        return cls(step=step, status=StepStatus.OK, reason=reason)

    @classmethod
    def skipped(cls, step: str, reason: str) -> "StepOutcome":
        LOGGER.debug("%s skipped: %s", step, reason, extra={"step": step, "reason": reason})
        return cls(step=step, status=StepStatus.SKIPPED, reason=reason)

    @classmethod
    def degraded(cls, step: str, reason: str) -> "StepOutcome":
        LOGGER.warning("%s degraded: %s", step, reason, extra={"step": step, "reason": reason})
        metrics.record_degraded_step(step)
        return cls(step=step, status=StepStatus.DEGRADED, reason=reason)

    @property
    def is_degraded(self) -> bool:
        return self.status is StepStatus.DEGRADED

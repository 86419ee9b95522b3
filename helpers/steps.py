import logging
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional

from models import AutomationStep, StageOutcome, StageStatus, utc_now_iso

logger = logging.getLogger(__name__)


def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", text.lower()).strip("_") or "step"


class StepRecorder:
    """
    Append-only log of AutomationStep records for one run.

    Step numbers are assigned from the list length, so they stay contiguous
    no matter which stages ran or were skipped.
    """

    def __init__(
        self,
        screenshot_dir: Optional[Path] = None,
        screenshot_prefix: str = "run",
        url_prefix: str = "/screenshots",
    ) -> None:
        self._steps: List[AutomationStep] = []
        self.screenshot_dir = screenshot_dir
        self.screenshot_prefix = screenshot_prefix
        self.url_prefix = url_prefix.rstrip("/")

    def record(self, action: str, result: str, screenshot_url: Optional[str] = None) -> AutomationStep:
        step = AutomationStep(
            step=len(self._steps) + 1,
            action=action,
            result=result,
            timestamp=utc_now_iso(),
            screenshot_url=screenshot_url,
        )
        self._steps.append(step)
        return step

    def record_outcome(self, outcome: StageOutcome) -> AutomationStep:
        url = self._save_screenshot(outcome.action, outcome.screenshot) if outcome.screenshot else None
        return self.record(outcome.action, outcome.result, screenshot_url=url)

    def _save_screenshot(self, action: str, image: bytes) -> Optional[str]:
        if not self.screenshot_dir:
            return None
        name = f"{self.screenshot_prefix}_{_slug(action)}_{int(time.time() * 1000)}.png"
        try:
            self.screenshot_dir.mkdir(parents=True, exist_ok=True)
            (self.screenshot_dir / name).write_bytes(image)
        except OSError as exc:
            logger.warning("Could not save screenshot %s: %s", name, exc)
            return None
        return f"{self.url_prefix}/{name}"

    def as_list(self) -> List[Dict[str, Any]]:
        return [step.to_dict() for step in self._steps]


@dataclass(frozen=True)
class Stage:
    name: str
    run: Callable[[], Awaitable[StageOutcome]]


_LOG_LEVELS = {
    StageStatus.SUCCESS: logging.INFO,
    StageStatus.SKIPPED: logging.INFO,
    StageStatus.SOFT_FAILURE: logging.WARNING,
    StageStatus.HARD_FAILURE: logging.ERROR,
    StageStatus.AUTH_REQUIRED: logging.WARNING,
}


async def run_pipeline(stages: List[Stage], recorder: StepRecorder) -> List[StageOutcome]:
    """
    Run stages in order, one recorded step per stage.

    Stops after a hard failure or an authentication block. Exceptions are
    left to the caller.
    """
    outcomes: List[StageOutcome] = []
    for stage in stages:
        outcome = await stage.run()
        recorder.record_outcome(outcome)
        logger.log(_LOG_LEVELS[outcome.status], "[%s] %s", stage.name, outcome.result)
        outcomes.append(outcome)
        if outcome.halts:
            break
    return outcomes

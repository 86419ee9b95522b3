import asyncio
import logging
from typing import Any, Dict

from app import config
from app.utils import make_run_id
from helpers.steps import StepRecorder

logger = logging.getLogger("farecheck")


def make_recorder(prefix: str) -> StepRecorder:
    screenshot_dir = config.SCREENSHOT_DIR if config.SAVE_SCREENSHOTS else None
    return StepRecorder(screenshot_dir=screenshot_dir, screenshot_prefix=f"{prefix}_{make_run_id()}")


def failure_envelope(recorder: StepRecorder, exc: BaseException, **extra: Any) -> Dict[str, Any]:
    """Close out a run that raised: log it, add the error step, report failure."""
    if isinstance(exc, asyncio.TimeoutError):
        message = f"Run exceeded {config.RUN_TIMEOUT_SECONDS}s and was stopped"
    else:
        message = str(exc) or exc.__class__.__name__
    logger.error("Run failed: %s", message, exc_info=exc)
    recorder.record("Error occurred", f"❌ {message}")
    return {"success": False, "message": message, "steps": recorder.as_list(), **extra}

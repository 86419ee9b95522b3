import argparse
import asyncio
import json
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

BASE_DIR = Path(__file__).resolve().parent.parent
if str(BASE_DIR) not in sys.path:
    sys.path.append(str(BASE_DIR))

import config
from helpers.cascade import Attempt, click_first_visible, first_success
from helpers.stealth import random_delay, wait_for_network_idle
from helpers.steps import Stage, StepRecorder, run_pipeline
from models import RideSearchRequest, StageOutcome, StageStatus

OUTPUT_PATH = Path("json/uber_results.json")
AUTH_REQUIRED_MESSAGE = "Uber login required. Run the login flow to create a session first."
logger = logging.getLogger(__name__)
if not logging.getLogger().handlers:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


@dataclass
class RideRunState:
    initial_image: Optional[bytes] = None
    results_image: Optional[bytes] = None
    rides: List[Dict[str, Any]] = field(default_factory=list)


async def _press_keys(page, *keys: str) -> bool:
    for key in keys:
        await page.keyboard.press(key)
        await random_delay(200, 400)
    return True


async def _choose_suggestion(page) -> str:
    selector = await click_first_visible(page, config.UBER_SUGGESTION_SELECTORS, timeout=2000)
    if selector:
        return selector
    await _press_keys(page, "ArrowDown", "Enter")
    return "keyboard"


async def _fill_location(page, field_input, value: str) -> bool:
    try:
        await field_input.wait_for(state="visible", timeout=5000)
        await field_input.click(timeout=3000)
        await field_input.fill(value)
    except Exception as exc:
        logger.debug("Location input not usable: %s", exc)
        return False
    return True


async def _load_page(page) -> StageOutcome:
    await page.goto(config.UBER_URL, wait_until="domcontentloaded", timeout=30000)
    await random_delay(3000, 4000)
    await wait_for_network_idle(page, 20000)
    await random_delay(2000, 3000)
    return StageOutcome.success("Navigate to Uber", f"Loaded {page.url}")


async def _capture_initial(page, state: RideRunState) -> StageOutcome:
    state.initial_image = await page.screenshot(type="png")
    return StageOutcome.success("Capture initial page", "Screenshot taken", screenshot=state.initial_image)


async def _check_auth(extractor, state: RideRunState) -> StageOutcome:
    action = "Check authentication"
    try:
        check = await extractor.check_uber_auth(state.initial_image)
    except Exception as exc:
        logger.error("Authentication check failed: %s", exc)
        return StageOutcome.hard_failure(action, f"Could not verify authentication: {exc}")
    if not check.authenticated:
        return StageOutcome.auth_required(action, "User is NOT logged in - Login/Sign up buttons detected")
    return StageOutcome.success(action, "User is logged in")


async def _enter_pickup(page, pickup: str) -> StageOutcome:
    action = "Enter pickup location"
    first_input = page.locator(config.UBER_LOCATION_INPUTS).first
    if not await _fill_location(page, first_input, pickup):
        return StageOutcome.soft_failure(action, "Pickup field not found")
    await random_delay(1500, 2000)
    chosen = await _choose_suggestion(page)
    await random_delay(1000, 1500)
    return StageOutcome.success(action, f"Entered {pickup} ({chosen})")


async def _enter_dropoff(page, dropoff: str) -> StageOutcome:
    action = "Enter dropoff location"
    inputs = page.locator(config.UBER_LOCATION_INPUTS)
    if await inputs.count() >= 2:
        if await _fill_location(page, inputs.nth(1), dropoff):
            await random_delay(1500, 2000)
            chosen = await _choose_suggestion(page)
            await random_delay(1000, 1500)
            return StageOutcome.success(action, f"Entered {dropoff} ({chosen})")

    label = await click_first_visible(page, config.UBER_DROPOFF_LABEL_SELECTORS)
    if label:
        try:
            await page.locator(":focus").first.fill(dropoff)
        except Exception:
            await page.keyboard.type(dropoff, delay=100)
        method = f"label {label}"
    else:
        await page.keyboard.type(dropoff, delay=100)
        method = "keyboard"
    await random_delay(1500, 2000)
    await _press_keys(page, "ArrowDown", "Enter")
    await random_delay(1000, 1500)
    if label:
        return StageOutcome.success(action, f"Entered {dropoff} ({method})")
    return StageOutcome.soft_failure(action, f"Dropoff field not found; typed {dropoff} into the focused element")


async def _confirm_route(page) -> StageOutcome:
    action = "Confirm trip"
    confirmed_by = await first_success(
        [
            Attempt("confirm button", lambda: click_first_visible(page, config.UBER_CONFIRM_SELECTORS)),
            Attempt("primary button", lambda: click_first_visible(page, config.UBER_PRIMARY_BUTTON_SELECTORS)),
            Attempt("enter", lambda: _press_keys(page, "Enter")),
        ]
    )
    if confirmed_by == "enter":
        return StageOutcome.soft_failure(action, "No confirm button found; pressed Enter")
    return StageOutcome.success(action, f"Confirmed via {confirmed_by}")


async def _capture_results(page, state: RideRunState) -> StageOutcome:
    await random_delay(4000, 6000)
    await wait_for_network_idle(page, 15000)
    await random_delay(2000, 3000)
    state.results_image = await page.screenshot(type="png")
    return StageOutcome.success("Capture ride options", "Screenshot taken", screenshot=state.results_image)


async def _extract_rides(extractor, state: RideRunState) -> StageOutcome:
    action = "Extract ride options"
    try:
        state.rides = await extractor.extract_rides(state.results_image)
    except Exception as exc:
        logger.warning("Ride extraction failed: %s", exc)
        return StageOutcome.soft_failure(action, f"Could not extract ride options: {exc}")
    return StageOutcome.success(action, f"Extracted {len(state.rides)} ride option(s)")


def build_ride_stages(page, request: RideSearchRequest, extractor, state: RideRunState) -> List[Stage]:
    return [
        Stage("load", lambda: _load_page(page)),
        Stage("capture", lambda: _capture_initial(page, state)),
        Stage("auth", lambda: _check_auth(extractor, state)),
        Stage("pickup", lambda: _enter_pickup(page, request.pickup)),
        Stage("dropoff", lambda: _enter_dropoff(page, request.dropoff)),
        Stage("confirm", lambda: _confirm_route(page)),
        Stage("results", lambda: _capture_results(page, state)),
        Stage("extract", lambda: _extract_rides(extractor, state)),
    ]


async def search_rides(page, request: RideSearchRequest, extractor, recorder: StepRecorder) -> Dict[str, Any]:
    logger.info("Ride search %s -> %s", request.pickup, request.dropoff)
    state = RideRunState()
    outcomes = await run_pipeline(build_ride_stages(page, request, extractor, state), recorder)
    last = outcomes[-1] if outcomes else None

    if last and last.status is StageStatus.AUTH_REQUIRED:
        return {
            "success": False,
            "authRequired": True,
            "message": AUTH_REQUIRED_MESSAGE,
            "steps": recorder.as_list(),
            "requested": request.requested(),
        }
    if last and last.status is StageStatus.HARD_FAILURE:
        return {
            "success": False,
            "message": last.detail,
            "steps": recorder.as_list(),
            "rides": [],
            "requested": request.requested(),
        }
    return {
        "success": True,
        "message": f"Found {len(state.rides)} ride options",
        "steps": recorder.as_list(),
        "rides": state.rides,
        "requested": request.requested(),
    }


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Check Uber fares between two places.")
    parser.add_argument("--headed", action="store_true", help="Run browser in headed mode.")
    parser.add_argument("--pickup", required=True, help="Pickup address or place name.")
    parser.add_argument("--dropoff", required=True, help="Dropoff address or place name.")
    parser.add_argument(
        "--output",
        default=str(OUTPUT_PATH),
        help="Path to write the ride response (JSON).",
    )
    return parser.parse_args()


async def main() -> None:
    from app.runners.rides import run_ride_search
    from app.validation import validate_ride_request

    args = parse_args()
    request, errors = validate_ride_request({"pickup": args.pickup, "dropoff": args.dropoff})
    if errors:
        raise SystemExit("Invalid request: " + "; ".join(errors))
    result = await run_ride_search(request, headless=not args.headed)
    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(result, indent=2))
    logger.info("Wrote ride response to %s", output)


if __name__ == "__main__":
    asyncio.run(main())

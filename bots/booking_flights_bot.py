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
from helpers.calendar import select_travel_dates
from helpers.cascade import (
    Attempt,
    click_first_visible,
    click_in_form_area,
    click_or_fill,
    first_success,
    handle_cookie_consent,
    js_click_by_text,
)
from helpers.stealth import random_delay, type_with_delay, wait_for_network_idle
from helpers.steps import Stage, StepRecorder, run_pipeline
from models import FlightSearchRequest, StageOutcome

OUTPUT_PATH = Path("json/booking_flights_results.json")
logger = logging.getLogger(__name__)
if not logging.getLogger().handlers:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

READ_CHIP_JS = r"""
({ containerLabel, anywhere }) => {
  const container = document.querySelector(`div[aria-label="${containerLabel}"]`);
  let chip = container ? container.querySelector('button[data-autocomplete-chip-idx]') : null;
  if (!chip && anywhere) chip = document.querySelector('button[data-autocomplete-chip-idx]');
  if (!chip) return { hasChip: false, code: null, fullText: null };
  const bold = chip.querySelector('b');
  const fullText = (chip.textContent || '').trim();
  const source = ((bold && bold.textContent) || fullText).trim();
  const match = source.match(/^([A-Za-z]{3})/);
  return { hasChip: true, code: match ? match[1].toUpperCase() : null, fullText };
}
"""

CLICK_CHIP_JS = """
(containerLabel) => {
  const container = document.querySelector(`div[aria-label="${containerLabel}"]`);
  const chip = (container && container.querySelector('button'))
    || document.querySelector('button[data-autocomplete-chip-idx]');
  if (!chip) return false;
  chip.click();
  return true;
}
"""

SELECT_SUGGESTION_JS = """
({ code, requireIcon, skip }) => {
  const items = Array.from(document.querySelectorAll('li, [role="option"]'));
  for (const item of items) {
    const text = item.textContent || '';
    if (!text.includes(code)) continue;
    if (skip.some((word) => text.includes(word))) continue;
    if (requireIcon && !item.querySelector('svg')) continue;
    item.click();
    return true;
  }
  return false;
}
"""

READ_CLASS_LABEL_JS = """
({ labels, minY, maxY }) => {
  const nodes = Array.from(document.querySelectorAll(
    '[data-ui-name*="cabin"], [data-testid*="cabin"], [class*="cabin"], button, span'
  ));
  for (const node of nodes) {
    const rect = node.getBoundingClientRect();
    if (rect.top <= minY || rect.top >= maxY) continue;
    const text = (node.textContent || '').trim();
    const hit = labels.find((label) => text === label);
    if (hit) return hit;
  }
  return null;
}
"""

READ_CLASS_SELECT_JS = """
(labels) => {
  const selects = Array.from(document.querySelectorAll(
    'select[data-ui-name*="cabin"], [data-ui-name*="cabin"] select, select[name*="cabin" i]'
  ));
  for (const select of selects) {
    const option = select.selectedOptions && select.selectedOptions[0];
    const text = ((option && option.textContent) || '').trim();
    const hit = labels.find((label) => text === label);
    if (hit) return hit;
  }
  return null;
}
"""

CURRENT_ADULTS_JS = r"""
() => {
  const minus = document.querySelector('[data-ui-name="button_occupancy_adults_minus"]');
  const plus = document.querySelector('[data-ui-name="button_occupancy_adults_plus"]');
  if (minus && minus.nextElementSibling) {
    const value = parseInt((minus.nextElementSibling.textContent || '').trim(), 10);
    if (!Number.isNaN(value)) return value;
  }
  const stepper = minus || plus;
  if (stepper && stepper.parentElement) {
    const match = (stepper.parentElement.textContent || '').match(/\d+/);
    if (match) return parseInt(match[0], 10);
  }
  const summary = (document.body.textContent || '').match(/(\d+)\s+adults?/i);
  if (summary) return parseInt(summary[1], 10);
  return 1;
}
"""


@dataclass
class FlightRunState:
    analysis: Optional[Dict[str, Any]] = None
    verification: Optional[Dict[str, Any]] = None
    results_image: Optional[bytes] = None
    flights: List[Dict[str, Any]] = field(default_factory=list)
    total_results: str = "N/A"


async def _evaluate(page, script: str, arg: Any = None) -> Any:
    try:
        return await page.evaluate(script, arg)
    except Exception as exc:
        logger.debug("Page script failed: %s", exc)
        return None


async def _press(page, key: str) -> bool:
    await page.keyboard.press(key)
    return True


async def _click_at(page, x: int, y: int) -> bool:
    await page.mouse.click(x, y)
    await random_delay(500, 800)
    return True


async def _force_click(page, selector: str, timeout: int) -> bool:
    target = page.locator(selector).first
    if not await target.count():
        return False
    await target.click(force=True, timeout=timeout)
    await random_delay(300, 500)
    return True


async def _load_page(page) -> StageOutcome:
    await page.goto(config.BOOKING_FLIGHTS_URL, wait_until="domcontentloaded", timeout=30000)
    await random_delay(3000, 4000)
    await wait_for_network_idle(page, 20000)
    await random_delay(2000, 3000)
    return StageOutcome.success("Navigate to Booking.com flights", f"Loaded {page.url}")


async def _accept_cookies(page) -> StageOutcome:
    action = "Accept cookie consent"
    if await handle_cookie_consent(page):
        return StageOutcome.success(action, "Cookie banner accepted")
    return StageOutcome.skipped(action, "No cookie banner shown")


async def _analyze_page(page, extractor, state: FlightRunState) -> StageOutcome:
    action = "Analyze search form"
    image = await page.screenshot(type="png")
    try:
        state.analysis = await extractor.analyze_flight_page(image)
    except Exception as exc:
        logger.warning("Initial page analysis failed: %s", exc)
        return StageOutcome.soft_failure(action, f"Page analysis unavailable: {exc}", screenshot=image)
    return StageOutcome.success(
        action,
        "Form shows {trip}, {cabin}".format(
            trip=state.analysis.get("currentTripType", "unknown trip type"),
            cabin=state.analysis.get("currentClass", "unknown class"),
        ),
        screenshot=image,
    )


async def _select_trip_type(page, trip_type: str) -> StageOutcome:
    label = config.TRIP_TYPE_LABELS[trip_type]
    action = f"Select {label}"
    selectors = [template.format(label=label, value=trip_type) for template in config.TRIP_TYPE_SELECTOR_TEMPLATES]
    if await click_or_fill(page, selectors):
        return StageOutcome.success(action, f"Selected {label}")
    return StageOutcome.soft_failure(action, f"Could not find the {label} option")


async def _read_class_label(page) -> Optional[str]:
    labels = list(config.CLASS_LABELS.values())
    # A native <select> trigger keeps its label on the selected option.
    selected = await _evaluate(page, READ_CLASS_SELECT_JS, labels)
    if selected:
        return selected
    return await _evaluate(
        page,
        READ_CLASS_LABEL_JS,
        {
            "labels": labels,
            "minY": config.FORM_AREA_MIN_Y,
            "maxY": config.FORM_AREA_MAX_Y,
        },
    )


async def _select_travel_class(page, travel_class: str) -> StageOutcome:
    """
    Open the cabin dropdown, move down a fixed number of options, then read
    the trigger label back to confirm what was actually picked.
    """
    action = "Select travel class"
    label = config.CLASS_LABELS[travel_class]
    presses = config.CLASS_ARROW_PRESSES[travel_class]
    if presses == 0:
        return StageOutcome.success(action, f"{label} is the default")

    x, y = config.CLASS_TRIGGER_FALLBACK
    opened_by = await first_success(
        [
            Attempt("form-area cabin trigger", lambda: click_in_form_area(page, config.CLASS_TRIGGER_SELECTORS)),
            Attempt("Economy text", lambda: click_first_visible(page, ['text="Economy"'])),
            Attempt("text scan", lambda: js_click_by_text(page, ["Economy"], max_width=200)),
            Attempt("coordinates", lambda: _click_at(page, x, y)),
        ]
    )
    if not opened_by:
        return StageOutcome.soft_failure(action, "Could not open the cabin class dropdown")
    logger.debug("Cabin dropdown opened via %s", opened_by)

    for _ in range(presses):
        await page.keyboard.press("ArrowDown")
        await random_delay(150, 250)
    await page.keyboard.press("Enter")
    await random_delay(500, 800)

    shown = await _read_class_label(page)
    if shown is None:
        return StageOutcome.soft_failure(action, f"Chose {label} by keyboard; label could not be read back (unverified)")
    if shown != label:
        return StageOutcome.soft_failure(action, f"Class mismatch: page shows {shown}, expected {label}", marker="❌")
    return StageOutcome.success(action, f"Selected {label}")


async def _read_chip(page, container: str, anywhere: bool = True) -> Dict[str, Any]:
    chip = await _evaluate(page, READ_CHIP_JS, {"containerLabel": container, "anywhere": anywhere})
    return chip if isinstance(chip, dict) else {"hasChip": False, "code": None, "fullText": None}


async def _clear_chip(page, container: str) -> Optional[str]:
    chip_selector = f'div[aria-label="{container}"] button[data-autocomplete-chip-idx]'
    return await first_success(
        [
            Attempt("chip click", lambda: _force_click(page, chip_selector, 3000)),
            Attempt("chip class", lambda: _force_click(page, config.AIRPORT_CHIP_CLASS_SELECTOR, 2000)),
            Attempt("scripted chip click", lambda: _evaluate(page, CLICK_CHIP_JS, container)),
            Attempt("chip label", lambda: _force_click(page, config.AIRPORT_CHIP_BOLD_SELECTOR, 2000)),
            Attempt("backspace", lambda: _press(page, "Backspace")),
        ]
    )


async def _type_into_first_visible(page, selectors: List[str], text: str) -> bool:
    for selector in selectors:
        field_input = page.locator(selector).first
        try:
            await field_input.wait_for(state="visible", timeout=1500)
            await field_input.click(timeout=3000)
            await field_input.fill("")
        except Exception:
            continue
        await type_with_delay(page, text, 80, 150)
        return True
    return False


async def _type_after_click(page, selector: str, text: str) -> bool:
    target = page.locator(selector).first
    if not await target.count():
        return False
    await target.click(timeout=3000)
    await page.keyboard.type(text, delay=100)
    return True


async def _type_raw(page, text: str) -> bool:
    await page.keyboard.type(text, delay=150)
    return True


async def _type_airport_code(page, code: str, container: str) -> Optional[str]:
    selectors = [template.format(container=container) for template in config.AIRPORT_INPUT_SELECTORS]
    return await first_success(
        [
            Attempt("input field", lambda: _type_into_first_visible(page, selectors, code)),
            Attempt("container keyboard", lambda: _type_after_click(page, f'div[aria-label="{container}"]', code)),
            Attempt("raw keyboard", lambda: _type_raw(page, code)),
        ]
    )


async def _select_suggestion(page, code: str) -> Optional[str]:
    skip = config.SUGGESTION_SKIP_WORDS
    return await first_success(
        [
            Attempt(
                "airport suggestion",
                lambda: _evaluate(page, SELECT_SUGGESTION_JS, {"code": code, "requireIcon": True, "skip": skip}),
            ),
            Attempt(
                "matching suggestion",
                lambda: _evaluate(page, SELECT_SUGGESTION_JS, {"code": code, "requireIcon": False, "skip": skip}),
            ),
            Attempt("suggestion locator", lambda: click_first_visible(page, [f'li:has(svg):has-text("{code}")'], timeout=1500)),
            Attempt("enter", lambda: _press(page, "Enter")),
        ]
    )


async def _enter_airport(page, action: str, code: str, container: str, note: str = "") -> StageOutcome:
    if not await _type_airport_code(page, code, container):
        return StageOutcome.soft_failure(action, f"Could not type {code}{note}")
    await random_delay(1500, 2000)
    picked_by = await _select_suggestion(page, code)
    if not picked_by:
        return StageOutcome.soft_failure(action, f"No suggestion matched {code}{note}")
    await random_delay(500, 800)
    if note:
        return StageOutcome.soft_failure(action, f"Selected {code} ({picked_by}){note}")
    return StageOutcome.success(action, f"Selected {code} ({picked_by})")


async def _select_origin(page, request: FlightSearchRequest) -> StageOutcome:
    action = "Select origin airport"
    code = request.origin_code
    container = config.ORIGIN_CONTAINER_LABEL
    if not await click_or_fill(page, config.ORIGIN_LABEL_SELECTORS, text_fallback=["Leaving from"]):
        return StageOutcome.soft_failure(action, "Could not open the 'Leaving from' field")
    await random_delay(800, 1200)

    chip = await _read_chip(page, container)
    if chip.get("hasChip") and chip.get("code") == code:
        await page.keyboard.press("Escape")
        return StageOutcome.success(action, f"{code} already selected")

    note = ""
    if chip.get("hasChip"):
        cleared_by = await _clear_chip(page, container)
        await random_delay(300, 600)
        leftover = await _read_chip(page, container, anywhere=False)
        if leftover.get("hasChip"):
            # The site gives no confirmation that the chip was removed.
            logger.warning("Chip %s still present after %s", leftover.get("code"), cleared_by)
            note = "; previous airport chip may still be present"
    return await _enter_airport(page, action, code, container, note)


async def _select_destination(page, request: FlightSearchRequest) -> StageOutcome:
    action = "Select destination airport"
    if not await click_or_fill(page, config.DESTINATION_LABEL_SELECTORS, text_fallback=["Going to"]):
        return StageOutcome.soft_failure(action, "Could not open the 'Going to' field")
    await random_delay(800, 1200)
    return await _enter_airport(page, action, request.destination_code, config.DESTINATION_CONTAINER_LABEL)


async def _select_dates(page, request: FlightSearchRequest) -> StageOutcome:
    action = "Select travel dates"
    depart = request.depart_date.isoformat()
    selection = await select_travel_dates(page, request.depart_date, request.return_date, request.trip_type)
    if selection.succeeded:
        if selection.return_clicked:
            return StageOutcome.success(action, f"Selected {depart} to {request.return_date.isoformat()}")
        return StageOutcome.success(action, f"Selected {depart}")
    if not selection.opened:
        return StageOutcome.soft_failure(action, "Could not open the date picker")
    if not selection.depart_clicked:
        return StageOutcome.soft_failure(action, f"Could not select departure date {depart}")
    return StageOutcome.soft_failure(
        action,
        f"Selected {depart} but not return date {request.return_date.isoformat()}",
    )


async def _click_stepper(page, selectors: List[str]) -> bool:
    for selector in selectors:
        button = page.locator(selector).first
        try:
            if not await button.count():
                continue
            if await button.is_disabled():
                return False
            await button.click(timeout=3000)
        except Exception as exc:
            logger.debug("Stepper %s failed: %s", selector, exc)
            continue
        await random_delay(400, 600)
        return True
    return False


async def _current_adults(page) -> int:
    value = await _evaluate(page, CURRENT_ADULTS_JS)
    return value if isinstance(value, int) and value > 0 else 1


async def _select_travelers(page, adults: int) -> StageOutcome:
    action = "Select travelers"
    if adults == 1:
        return StageOutcome.success(action, "1 adult is the default")
    if not await click_or_fill(page, config.TRAVELERS_OPEN_SELECTORS, text_fallback=["Travelers"]):
        return StageOutcome.soft_failure(action, "Could not open the travelers dropdown")
    await random_delay(800, 1200)

    current = await _current_adults(page)
    wanted = abs(adults - current)
    selectors = config.ADULTS_PLUS_SELECTORS if adults > current else config.ADULTS_MINUS_SELECTORS
    clicks = 0
    while clicks < wanted and await _click_stepper(page, selectors):
        clicks += 1

    if not await click_first_visible(page, config.TRAVELERS_DONE_SELECTORS):
        await page.keyboard.press("Escape")
    if clicks != wanted:
        reached = current + clicks if adults > current else current - clicks
        return StageOutcome.soft_failure(action, f"Stopped at {reached} adults, wanted {adults}")
    return StageOutcome.success(action, f"Selected {adults} adults")


async def _select_direct_flights(page, direct_flights: bool) -> StageOutcome:
    if not direct_flights:
        return StageOutcome.skipped("Skip 'Direct flights only' checkbox", "Skipped (not requested)")
    action = "Select 'Direct flights only'"
    selector = await click_first_visible(page, config.DIRECT_FLIGHTS_SELECTORS)
    if selector:
        return StageOutcome.success(action, "Checked 'Direct flights only'")
    return StageOutcome.soft_failure(action, "Direct flights checkbox not found")


async def _click_search(page) -> StageOutcome:
    action = "Click search"
    clicked_by = await first_success(
        [
            Attempt("form-area button", lambda: click_in_form_area(page, config.SEARCH_BUTTON_SELECTORS)),
            Attempt("text scan", lambda: js_click_by_text(page, ["Explore", "Search"])),
        ]
    )
    if not clicked_by:
        return StageOutcome.soft_failure(action, "Search button not found")
    await wait_for_network_idle(page, 30000)
    await random_delay(3000, 5000)
    return StageOutcome.success(action, f"Search submitted ({clicked_by})")


async def _capture_results(page, state: FlightRunState) -> StageOutcome:
    state.results_image = await page.screenshot(type="png")
    return StageOutcome.success("Capture results page", "Screenshot taken", screenshot=state.results_image)


async def _verify_results(extractor, request: FlightSearchRequest, state: FlightRunState) -> StageOutcome:
    action = "Verify search results"
    try:
        state.verification = await extractor.verify_flight_results(state.results_image, request)
    except Exception as exc:
        logger.warning("Result verification failed: %s", exc)
        return StageOutcome.soft_failure(action, f"Verification unavailable: {exc}")
    description = state.verification.get("description") or "No description"
    if state.verification.get("success"):
        return StageOutcome.success(action, description)
    return StageOutcome.soft_failure(action, description)


async def _extract_flights(extractor, state: FlightRunState) -> StageOutcome:
    action = "Extract flight details"
    try:
        state.flights, state.total_results = await extractor.extract_flights(state.results_image)
    except Exception as exc:
        logger.warning("Flight extraction failed: %s", exc)
        return StageOutcome.soft_failure(action, f"Could not extract flight details: {exc}")
    return StageOutcome.success(action, f"Extracted {len(state.flights)} flight(s)")


def build_flight_stages(page, request: FlightSearchRequest, extractor, state: FlightRunState) -> List[Stage]:
    return [
        Stage("load", lambda: _load_page(page)),
        Stage("cookies", lambda: _accept_cookies(page)),
        Stage("analyze", lambda: _analyze_page(page, extractor, state)),
        Stage("trip type", lambda: _select_trip_type(page, request.trip_type)),
        Stage("travel class", lambda: _select_travel_class(page, request.travel_class)),
        Stage("origin", lambda: _select_origin(page, request)),
        Stage("destination", lambda: _select_destination(page, request)),
        Stage("dates", lambda: _select_dates(page, request)),
        Stage("travelers", lambda: _select_travelers(page, request.adults)),
        Stage("direct flights", lambda: _select_direct_flights(page, request.direct_flights)),
        Stage("search", lambda: _click_search(page)),
        Stage("capture", lambda: _capture_results(page, state)),
        Stage("verify", lambda: _verify_results(extractor, request, state)),
        Stage("extract", lambda: _extract_flights(extractor, state)),
    ]


async def search_flights(page, request: FlightSearchRequest, extractor, recorder: StepRecorder) -> Dict[str, Any]:
    """Fill and submit the Booking.com form, then read the results page."""
    logger.info(
        "Flight search %s -> %s on %s (%s, %s, adults=%s)",
        request.origin_code,
        request.destination_code,
        request.depart_date,
        request.trip_type,
        request.travel_class,
        request.adults,
    )
    state = FlightRunState()
    await run_pipeline(build_flight_stages(page, request, extractor, state), recorder)

    verification = state.verification or {}
    success = bool(verification.get("success"))
    message = verification.get("description") or (
        "Flight search completed" if success else "Could not verify flight results"
    )
    return {
        "success": success,
        "message": message,
        "steps": recorder.as_list(),
        "flights": state.flights,
        "totalResults": state.total_results,
        "requested": request.requested(config.CLASS_LABELS[request.travel_class]),
        "analysis": {"initial": state.analysis, "verification": state.verification},
    }


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Search Booking.com flights from a request JSON file.")
    parser.add_argument("--headed", action="store_true", help="Run browser in headed mode.")
    parser.add_argument("--input", default="request.json", help="Path to the flight request JSON file.")
    parser.add_argument(
        "--output",
        default=str(OUTPUT_PATH),
        help="Path to write the search response (JSON).",
    )
    return parser.parse_args()


async def main() -> None:
    from app.runners.flights import run_flight_search
    from app.validation import validate_flight_request

    args = parse_args()
    payload = json.loads(Path(args.input).read_text(encoding="utf-8"))
    request, errors = validate_flight_request(payload)
    if errors:
        raise SystemExit("Invalid request: " + "; ".join(errors))
    result = await run_flight_search(request, headless=not args.headed)
    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(result, indent=2))
    logger.info("Wrote flight search response to %s", output)


if __name__ == "__main__":
    asyncio.run(main())

"""
Two-month calendar widget navigation.

The month/day arithmetic and the day-cell ranking are plain functions; the
page helpers only gather DOM facts and click what the ranking picks.
"""
import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple

import config
from helpers.cascade import Attempt, click_first_visible, click_or_fill, first_success
from helpers.stealth import random_delay

logger = logging.getLogger(__name__)

MONTH_NAMES = [
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
]
_MONTH_HEADER_RE = re.compile(r"(" + "|".join(MONTH_NAMES) + r")\s+(\d{4})")

# Calendar grid band on the desktop layout.
DAY_MIN_TOP, DAY_MAX_TOP = 200, 700
DAY_MIN_LEFT, DAY_MAX_LEFT = 100, 800
DAY_MIN_SIZE = 20

CLICK_BY_DATA_DATE_JS = """
(iso) => {
  const el = document.querySelector(`[data-date="${iso}"]`) || document.querySelector(`[data-value="${iso}"]`);
  if (!el) return false;
  el.click();
  return true;
}
"""

COLLECT_DAY_CELLS_JS = """
({ day, header }) => {
  document.querySelectorAll('[data-fc-day-candidate]').forEach((el) => el.removeAttribute('data-fc-day-candidate'));
  let panel = null;
  const heading = Array.from(document.querySelectorAll('body *')).find(
    (el) => (el.textContent || '').trim() === header
  );
  if (heading) {
    const table = heading.closest('table');
    panel = heading.closest('[class*="Calendar"]')
      || (table && table.parentElement)
      || (heading.parentElement && heading.parentElement.parentElement);
  }
  const dayText = String(day);
  const cells = [];
  document.querySelectorAll('td, span, div, button').forEach((el) => {
    if ((el.textContent || '').trim() !== dayText) return;
    const rect = el.getBoundingClientRect();
    const style = window.getComputedStyle(el);
    const index = cells.length;
    el.setAttribute('data-fc-day-candidate', String(index));
    cells.push({
      index,
      top: rect.top,
      left: rect.left,
      width: rect.width,
      height: rect.height,
      opacity: parseFloat(style.opacity || '1'),
      ariaDisabled: !!el.closest('[aria-disabled="true"]'),
      disabled: el.hasAttribute('disabled'),
      inPanel: !!(panel && panel.contains(el)),
    });
  });
  return cells;
}
"""

CLICK_DAY_CANDIDATE_JS = """
(index) => {
  const el = document.querySelector(`[data-fc-day-candidate="${index}"]`);
  if (!el) return false;
  el.click();
  return true;
}
"""

NAV_BY_POSITION_JS = """
(direction) => {
  const buttons = Array.from(document.querySelectorAll('button')).filter((b) => b.querySelector('svg'));
  for (const button of buttons) {
    const rect = button.getBoundingClientRect();
    if (rect.top <= 150 || rect.top >= 350) continue;
    if (rect.width >= 80 || rect.height >= 80) continue;
    const onSide = direction === 'prev' ? rect.left < 400 : rect.left > 500;
    if (!onSide) continue;
    const cls = String(button.className || '');
    if (!/control|prev|next|Calendar|Button/i.test(cls)) continue;
    button.click();
    return true;
  }
  return false;
}
"""

NAV_BY_EDGE_JS = """
(direction) => {
  const buttons = Array.from(document.querySelectorAll('button')).filter((b) => {
    if (!b.querySelector('svg')) return false;
    const rect = b.getBoundingClientRect();
    return rect.top > 150 && rect.top < 350 && rect.width < 80;
  });
  if (!buttons.length) return false;
  buttons.sort((a, b) => a.getBoundingClientRect().left - b.getBoundingClientRect().left);
  const target = direction === 'prev' ? buttons[0] : buttons[buttons.length - 1];
  target.click();
  return true;
}
"""


def month_label(target: date) -> str:
    return f"{MONTH_NAMES[target.month - 1]} {target.year}"


def parse_displayed_months(text: str) -> List[Tuple[int, int]]:
    """Return (month_index, year) pairs for every month header found, in order."""
    return [
        (MONTH_NAMES.index(name), int(year))
        for name, year in _MONTH_HEADER_RE.findall(text or "")
    ]


def month_difference(displayed: Tuple[int, int], target: Tuple[int, int]) -> int:
    displayed_month, displayed_year = displayed
    target_month, target_year = target
    return (target_year * 12 + target_month) - (displayed_year * 12 + displayed_month)


def plan_navigation(diff: int) -> Optional[str]:
    # Two months are on screen, so a difference of 0 or 1 is already visible.
    if diff < 0:
        return "prev"
    if diff > 1:
        return "next"
    return None


@dataclass(frozen=True)
class DayCell:
    index: int
    top: float
    left: float
    width: float
    height: float
    opacity: float = 1.0
    aria_disabled: bool = False
    disabled: bool = False
    in_panel: bool = False

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> "DayCell":
        opacity = raw.get("opacity")
        return cls(
            index=int(raw.get("index", 0)),
            top=float(raw.get("top") or 0),
            left=float(raw.get("left") or 0),
            width=float(raw.get("width") or 0),
            height=float(raw.get("height") or 0),
            opacity=float(opacity) if opacity is not None else 1.0,
            aria_disabled=bool(raw.get("ariaDisabled")),
            disabled=bool(raw.get("disabled")),
            in_panel=bool(raw.get("inPanel")),
        )

    @property
    def is_disabled(self) -> bool:
        return self.opacity < 0.5 or self.aria_disabled or self.disabled

    @property
    def in_band(self) -> bool:
        return (
            DAY_MIN_TOP < self.top < DAY_MAX_TOP
            and DAY_MIN_LEFT < self.left < DAY_MAX_LEFT
            and self.width > DAY_MIN_SIZE
            and self.height > DAY_MIN_SIZE
        )

    @property
    def score(self) -> int:
        return 10 if self.in_panel else 1


def rank_day_cells(cells: Iterable[DayCell]) -> List[DayCell]:
    """Clickable cells, best first: target-month panel, then leftmost."""
    usable = [cell for cell in cells if cell.in_band and not cell.is_disabled]
    return sorted(usable, key=lambda cell: (-cell.score, cell.left))


async def _evaluate(page, script: str, arg: Any = None) -> Any:
    try:
        return await page.evaluate(script, arg)
    except Exception as exc:
        logger.debug("Calendar script failed: %s", exc)
        return None


async def open_date_picker(page) -> bool:
    return await click_or_fill(page, config.DATE_PICKER_SELECTORS, text_fallback=["Travel date"])


async def click_nav_button(page, direction: str) -> Optional[str]:
    class_selector = f'button[class*="Calendar-module__control--{direction}"]'
    return await first_success(
        [
            Attempt("control class", lambda: click_first_visible(page, [class_selector], timeout=1000, settle=(0, 0))),
            Attempt("positioned svg button", lambda: _evaluate(page, NAV_BY_POSITION_JS, direction)),
            Attempt("edge svg button", lambda: _evaluate(page, NAV_BY_EDGE_JS, direction)),
        ]
    )


async def navigate_to_month(page, target: date) -> bool:
    """
    Page the calendar until the target month is one of the two visible months.

    Bounded to CALENDAR_MAX_NAVIGATIONS iterations. Returns False when the
    header can't be parsed, a control can't be found, or the bound is hit.
    """
    label = month_label(target)
    wanted = (target.month - 1, target.year)
    for _ in range(config.CALENDAR_MAX_NAVIGATIONS):
        try:
            body = await page.text_content("body") or ""
        except Exception as exc:
            logger.warning("Could not read calendar text: %s", exc)
            return False
        if label in body:
            return True
        displayed = parse_displayed_months(body)
        if not displayed:
            logger.warning("No month header visible while looking for %s", label)
            return False
        direction = plan_navigation(month_difference(displayed[0], wanted))
        if direction is None:
            return True
        if not await click_nav_button(page, direction):
            logger.warning("Calendar %s control not found", direction)
            return False
        await random_delay(500, 700)
    logger.warning("Gave up navigating to %s after %s moves", label, config.CALENDAR_MAX_NAVIGATIONS)
    return False


async def click_day(page, target: date) -> bool:
    if await _evaluate(page, CLICK_BY_DATA_DATE_JS, target.isoformat()):
        await random_delay(800, 1200)
        return True
    raw_cells = await _evaluate(page, COLLECT_DAY_CELLS_JS, {"day": target.day, "header": month_label(target)})
    cells = [DayCell.from_raw(item) for item in raw_cells or [] if isinstance(item, dict)]
    ranked = rank_day_cells(cells)
    if not ranked:
        logger.warning("No clickable cell for %s", target.isoformat())
        return False
    clicked = bool(await _evaluate(page, CLICK_DAY_CANDIDATE_JS, ranked[0].index))
    if clicked:
        await random_delay(800, 1200)
    return clicked


@dataclass
class DateSelection:
    opened: bool = False
    depart_clicked: bool = False
    return_attempted: bool = False
    return_clicked: bool = False

    @property
    def succeeded(self) -> bool:
        if not (self.opened and self.depart_clicked):
            return False
        return self.return_clicked if self.return_attempted else True


async def select_travel_dates(
    page,
    depart: date,
    return_date: Optional[date],
    trip_type: str,
) -> DateSelection:
    selection = DateSelection()
    if not await open_date_picker(page):
        logger.warning("Date picker did not open")
        return selection
    selection.opened = True
    await random_delay(1500, 2000)
    try:
        if await navigate_to_month(page, depart):
            selection.depart_clicked = await click_day(page, depart)
        if not selection.depart_clicked:
            return selection
        if return_date and trip_type == "round-trip":
            selection.return_attempted = True
            reached = True
            if (return_date.year, return_date.month) != (depart.year, depart.month):
                reached = await navigate_to_month(page, return_date)
            if reached:
                selection.return_clicked = await click_day(page, return_date)
    finally:
        try:
            await page.keyboard.press("Escape")
        except Exception as exc:
            logger.debug("Could not close the date picker: %s", exc)
    return selection

"""
Selector cascades: ordered strategy lists that stop at the first success.

Every public helper here reports failure through its return value and never
raises.
"""
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Optional, Sequence, Tuple

import config
from helpers.stealth import random_delay

logger = logging.getLogger(__name__)

JS_CLICK_BY_TEXT = """
({ texts, minY, maxY, maxWidth }) => {
  const elements = Array.from(document.querySelectorAll('body *'));
  for (const text of texts) {
    for (const el of elements) {
      const content = el.textContent || '';
      if (!content.includes(text)) continue;
      const deeper = Array.from(el.children).some((child) => (child.textContent || '').includes(text));
      if (deeper) continue;
      const rect = el.getBoundingClientRect();
      if (rect.top <= minY || rect.top >= maxY) continue;
      if (maxWidth && rect.width >= maxWidth) continue;
      el.click();
      return true;
    }
  }
  return false;
}
"""


@dataclass(frozen=True)
class Attempt:
    name: str
    run: Callable[[], Awaitable[Any]]


async def first_success(attempts: Iterable[Attempt]) -> Optional[str]:
    """Run attempts in order and return the name of the first truthy one."""
    for attempt in attempts:
        try:
            if await attempt.run():
                logger.debug("Strategy succeeded: %s", attempt.name)
                return attempt.name
        except Exception as exc:
            logger.debug("Strategy %s raised: %s", attempt.name, exc)
    return None


async def _became_visible(locator, timeout: int) -> bool:
    try:
        await locator.wait_for(state="visible", timeout=timeout)
        return True
    except Exception:
        return False


async def click_first_visible(
    page,
    selectors: Sequence[str],
    timeout: int = 2000,
    click_timeout: int = 3000,
    settle: Tuple[int, int] = (500, 800),
    force: bool = False,
) -> Optional[str]:
    """Click the first selector that becomes visible; return that selector."""
    for selector in selectors:
        locator = page.locator(selector).first
        if not await _became_visible(locator, timeout):
            continue
        try:
            await locator.click(timeout=click_timeout, force=force)
        except Exception as exc:
            logger.debug("Click failed for %s: %s", selector, exc)
            continue
        await random_delay(*settle)
        return selector
    return None


async def fill_first_visible(
    page,
    selectors: Sequence[str],
    value: str,
    timeout: int = 2000,
) -> Optional[str]:
    for selector in selectors:
        locator = page.locator(selector).first
        if not await _became_visible(locator, timeout):
            continue
        try:
            await locator.click(timeout=3000)
            await locator.fill(value)
        except Exception as exc:
            logger.debug("Fill failed for %s: %s", selector, exc)
            continue
        return selector
    return None


async def click_in_form_area(
    page,
    selectors: Sequence[str],
    min_y: int = config.FORM_AREA_MIN_Y,
    max_y: int = config.FORM_AREA_MAX_Y,
) -> Optional[str]:
    """
    Click the first match whose bounding box top sits inside the form band.

    Results pages repeat labels like "Economy" further down; the band keeps
    clicks on the search form itself.
    """
    for selector in selectors:
        try:
            matches = await page.locator(selector).all()
        except Exception as exc:
            logger.debug("Locator failed for %s: %s", selector, exc)
            continue
        for match in matches:
            try:
                box = await match.bounding_box()
                if not box or not (min_y < box["y"] < max_y):
                    continue
                await match.click(timeout=3000)
            except Exception as exc:
                logger.debug("Form-area click failed for %s: %s", selector, exc)
                continue
            await random_delay(500, 800)
            return selector
    return None


async def js_click_by_text(
    page,
    texts: Sequence[str],
    min_y: int = config.FORM_AREA_MIN_Y,
    max_y: int = config.FORM_AREA_MAX_Y,
    max_width: Optional[int] = None,
) -> bool:
    try:
        clicked = await page.evaluate(
            JS_CLICK_BY_TEXT,
            {"texts": list(texts), "minY": min_y, "maxY": max_y, "maxWidth": max_width},
        )
    except Exception as exc:
        logger.debug("Script text scan failed for %s: %s", texts, exc)
        return False
    if clicked:
        await random_delay(500, 800)
    return bool(clicked)


async def keyboard_type_enter(page, text: str) -> bool:
    try:
        await page.keyboard.type(text, delay=100)
        await page.keyboard.press("Enter")
    except Exception as exc:
        logger.debug("Keyboard fallback failed: %s", exc)
        return False
    return True


async def click_or_fill(
    page,
    selectors: Sequence[str],
    action: str = "click",
    value: Optional[str] = None,
    text_fallback: Optional[Sequence[str]] = None,
    keyboard_fallback: bool = False,
    timeout: int = 2000,
) -> bool:
    """Candidates in priority order, then an optional text scan, then the keyboard."""
    attempts = []
    if action == "fill":
        attempts.append(Attempt("candidates", lambda: fill_first_visible(page, selectors, value or "", timeout)))
    else:
        attempts.append(Attempt("candidates", lambda: click_first_visible(page, selectors, timeout)))
    if text_fallback:
        attempts.append(Attempt("text scan", lambda: js_click_by_text(page, text_fallback)))
    if keyboard_fallback and value:
        attempts.append(Attempt("keyboard", lambda: keyboard_type_enter(page, value)))
    return await first_success(attempts) is not None


async def handle_cookie_consent(page) -> bool:
    """Accept the cookie banner when one shows up. No banner is fine."""
    selector = await click_first_visible(page, config.COOKIE_ACCEPT_SELECTORS, timeout=2000, settle=(500, 1000))
    if selector:
        logger.info("Accepted cookie consent via %s", selector)
    return selector is not None

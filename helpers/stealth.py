"""
Human-like pacing and stealth browser setup shared by every bot.
"""
import asyncio
import logging
import random
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from playwright.async_api import TimeoutError as PlaywrightTimeout, async_playwright

import config

logger = logging.getLogger(__name__)

STEALTH_INIT_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => false });
"""


async def random_delay(min_ms: int = 500, max_ms: int = 1500) -> None:
    """Sleep a uniformly random whole number of milliseconds in [min_ms, max_ms]."""
    delay_ms = random.randint(min_ms, max_ms)
    seconds = delay_ms / 1000 * config.DELAY_SCALE
    if seconds > 0:
        await asyncio.sleep(seconds)


async def type_with_delay(
    page,
    text: str,
    min_delay: int = 50,
    max_delay: int = 150,
) -> None:
    """Type one character at a time into the focused field, pausing between keystrokes."""
    for char in text:
        await page.keyboard.type(char)
        await random_delay(min_delay, max_delay)


async def wait_for_network_idle(page, timeout_ms: int) -> bool:
    """Best-effort settle; pages with long-polling never go idle."""
    try:
        await page.wait_for_load_state("networkidle", timeout=timeout_ms)
        return True
    except PlaywrightTimeout:
        logger.debug("Network did not go idle within %sms", timeout_ms)
        return False


async def setup_stealth_mode(page) -> None:
    await page.add_init_script(STEALTH_INIT_SCRIPT)
    await page.set_extra_http_headers(config.EXTRA_HTTP_HEADERS)


async def launch_browser(playwright, headless: bool = True):
    logger.info("Launching Chromium headless=%s", headless)
    return await playwright.chromium.launch(headless=headless, args=config.BROWSER_ARGS)


@asynccontextmanager
async def open_page(
    headless: bool = True,
    storage_state: Optional[Dict[str, Any]] = None,
    viewport: Optional[Dict[str, int]] = None,
) -> AsyncIterator[tuple]:
    """
    Launch a stealth browser with one context and one page.

    Yields (browser, context, page). The browser is closed on exit, including
    when the body raises.
    """
    async with async_playwright() as p:
        browser = await launch_browser(p, headless=headless)
        try:
            options: Dict[str, Any] = {
                "viewport": viewport or config.VIEWPORT,
                "user_agent": config.USER_AGENT,
            }
            if storage_state:
                options["storage_state"] = storage_state
            context = await browser.new_context(**options)
            page = await context.new_page()
            await setup_stealth_mode(page)
            yield browser, context, page
        finally:
            try:
                await browser.close()
            except Exception as exc:
                logger.debug("Browser close failed: %s", exc)

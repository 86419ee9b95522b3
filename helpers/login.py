import argparse
import asyncio
import logging
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from playwright.async_api import TimeoutError as PlaywrightTimeout

import config
from helpers.session_store import FileSessionStore, SessionStore
from helpers.stealth import open_page

logger = logging.getLogger(__name__)


class LoginOutcome(str, Enum):
    AUTHENTICATED = "authenticated"
    ABANDONED = "abandoned"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class LoginResult:
    outcome: LoginOutcome
    waited_seconds: float = 0.0
    detected_by: Optional[str] = None
    state: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class AuthSignals:
    activity: bool = False
    account: bool = False
    ride_tab: bool = False
    pickup_input: bool = False
    authenticated_url: bool = False
    login_button: bool = False


def positive_auth_proof(signals: AuthSignals) -> Optional[str]:
    """
    Name the signal that proves a logged-in UI, or None.

    Cookies never count: the site sets them for anonymous visitors too.
    A visible login button vetoes the weaker signals.
    """
    if signals.activity:
        detector = "activity"
    elif signals.account:
        detector = "account"
    elif signals.ride_tab and signals.pickup_input:
        detector = "ride tab + pickup"
    elif signals.authenticated_url and (signals.ride_tab or signals.pickup_input):
        detector = "authenticated url"
    else:
        return None
    if signals.login_button and not (signals.activity or signals.account):
        return None
    return detector


async def _present(page, selector: str) -> bool:
    try:
        return await page.locator(selector).first.is_visible()
    except Exception:
        return False


async def read_auth_signals(page) -> AuthSignals:
    url = page.url or ""
    return AuthSignals(
        activity=await _present(page, config.UBER_ACTIVITY_SELECTOR),
        account=await _present(page, config.UBER_ACCOUNT_SELECTOR),
        ride_tab=await _present(page, config.UBER_RIDE_TAB_SELECTOR),
        pickup_input=await _present(page, config.UBER_PICKUP_SELECTOR),
        authenticated_url=any(part in url for part in config.UBER_AUTHENTICATED_URL_PARTS),
        login_button=await _present(page, config.UBER_LOGIN_BUTTON_SELECTOR),
    )


def _window_gone(browser, page) -> bool:
    try:
        return not browser.is_connected() or page.is_closed()
    except Exception:
        return True


async def wait_for_login(browser, page, max_wait: float = 180, interval: float = 3) -> LoginResult:
    """Poll the page until the user has logged in, closed the window, or time runs out."""
    loop = asyncio.get_running_loop()
    start = loop.time()
    while True:
        waited = loop.time() - start
        if waited >= max_wait:
            return LoginResult(LoginOutcome.TIMED_OUT, waited_seconds=waited)
        if _window_gone(browser, page):
            return LoginResult(LoginOutcome.ABANDONED, waited_seconds=waited)
        try:
            signals = await read_auth_signals(page)
        except Exception as exc:
            if _window_gone(browser, page):
                return LoginResult(LoginOutcome.ABANDONED, waited_seconds=waited)
            logger.debug("Login check failed: %s", exc)
            signals = None
        if signals:
            detector = positive_auth_proof(signals)
            if detector:
                logger.info("Login detected via %s after %.0fs", detector, waited)
                return LoginResult(LoginOutcome.AUTHENTICATED, waited_seconds=waited, detected_by=detector)
        await asyncio.sleep(interval)


async def perform_login(store: SessionStore, max_wait: float = 180, interval: float = 3) -> LoginResult:
    """
    Open a headed browser on Uber and wait for the user to log in by hand.

    The previous snapshot is dropped first; a new one is written only after
    positive proof of login.
    """
    await store.clear()
    async with open_page(headless=False, viewport=config.LOGIN_VIEWPORT) as (browser, context, page):
        try:
            await page.goto(config.UBER_URL, wait_until="domcontentloaded", timeout=60000)
        except PlaywrightTimeout:
            # Slow first load still leaves a usable window for the user.
            logger.warning("Uber did not finish loading within 60s; continuing")
            await page.wait_for_timeout(5000)
        await page.wait_for_timeout(3000)

        result = await wait_for_login(browser, page, max_wait=max_wait, interval=interval)
        if result.outcome is LoginOutcome.AUTHENTICATED:
            state = await context.storage_state()
            await store.save(state)
            result = replace(result, state=state)
        return result


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Log in to Uber by hand and save the browser session.")
    parser.add_argument("--state", default="data/uber-auth.json", help="Where to write the session snapshot.")
    parser.add_argument("--wait", type=float, default=180, help="Seconds to wait for the login to finish.")
    return parser.parse_args()


async def main() -> None:
    args = parse_args()
    result = await perform_login(FileSessionStore(Path(args.state)), max_wait=args.wait)
    logger.info("Login finished: %s", result.outcome.value)


if __name__ == "__main__":
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        )
    asyncio.run(main())

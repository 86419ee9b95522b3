import asyncio
import logging
from datetime import timedelta
from typing import Any, Dict, Optional, Tuple

from app import config
from app.runners.common import failure_envelope, make_recorder
from app.services.vision import VisionExtractor
from app.state import SESSION_STORE
from bots.uber_bot import search_rides
from helpers.login import LoginOutcome, perform_login
from helpers.session_store import FileSessionStore, SessionStore, validate_client_snapshot
from helpers.stealth import open_page
from models import RideSearchRequest, utc_now_iso

logger = logging.getLogger("farecheck")


async def resolve_session(request: RideSearchRequest, store: SessionStore) -> Tuple[Optional[Dict[str, Any]], str]:
    """A fresh client-held snapshot wins; otherwise use the server file."""
    if request.auth_state is not None:
        state = validate_client_snapshot(
            request.auth_state,
            request.auth_timestamp,
            max_age=timedelta(days=config.SESSION_MAX_AGE_DAYS),
        )
        if state:
            return state, "client"
        logger.info("Client session snapshot is stale or empty; trying the server session")
    state = await store.load()
    if state:
        return state, "server"
    return None, "none"


async def run_ride_search(
    request: RideSearchRequest,
    headless: Optional[bool] = None,
    extractor: Optional[VisionExtractor] = None,
    store: Optional[SessionStore] = None,
) -> Dict[str, Any]:
    if headless is None:
        headless = not config.HEADFUL
    extractor = extractor or VisionExtractor()
    store = store or SESSION_STORE
    recorder = make_recorder("uber")
    storage_state, source = await resolve_session(request, store)
    logger.info("Ride run started headless=%s session=%s", headless, source)
    try:
        async with open_page(headless=headless, storage_state=storage_state) as (_, _, page):
            return await asyncio.wait_for(
                search_rides(page, request, extractor, recorder),
                timeout=config.RUN_TIMEOUT_SECONDS,
            )
    except Exception as exc:
        return failure_envelope(recorder, exc, requested=request.requested())


async def run_uber_login(store: Optional[FileSessionStore] = None) -> Dict[str, Any]:
    store = store or SESSION_STORE
    try:
        result = await perform_login(
            store,
            max_wait=config.LOGIN_WAIT_SECONDS,
            interval=config.LOGIN_POLL_SECONDS,
        )
    except Exception as exc:
        logger.error("Login flow failed: %s", exc, exc_info=True)
        return {"success": False, "message": f"Login failed: {exc}"}

    if result.outcome is LoginOutcome.AUTHENTICATED:
        return {
            "success": True,
            "message": f"Logged in to Uber (detected via {result.detected_by}). Session saved.",
            "path": str(store.path),
            "authState": result.state,
            "authTimestamp": utc_now_iso(),
        }
    if result.outcome is LoginOutcome.ABANDONED:
        return {
            "success": False,
            "message": "Browser was closed. Please try again and complete the login process.",
        }
    minutes = max(1, round(config.LOGIN_WAIT_SECONDS / 60))
    return {
        "success": False,
        "message": f"Login timed out. Please complete the login within {minutes} minutes.",
    }

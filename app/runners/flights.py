import asyncio
import logging
from typing import Any, Dict, Optional

from app import config
from app.runners.common import failure_envelope, make_recorder
from app.services.vision import VisionExtractor
from bots.booking_flights_bot import search_flights
from helpers.stealth import open_page
from models import FlightSearchRequest

logger = logging.getLogger("farecheck")


async def run_flight_search(
    request: FlightSearchRequest,
    headless: Optional[bool] = None,
    extractor: Optional[VisionExtractor] = None,
) -> Dict[str, Any]:
    if headless is None:
        headless = not config.HEADFUL
    extractor = extractor or VisionExtractor()
    recorder = make_recorder("flights")
    logger.info("Flight run started headless=%s", headless)
    try:
        async with open_page(headless=headless) as (_, _, page):
            return await asyncio.wait_for(
                search_flights(page, request, extractor, recorder),
                timeout=config.RUN_TIMEOUT_SECONDS,
            )
    except Exception as exc:
        return failure_envelope(recorder, exc)

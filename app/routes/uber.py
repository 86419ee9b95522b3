import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, HTTPException

from app.runners.rides import run_ride_search, run_uber_login
from app.state import LOGIN_SEMAPHORE, SESSION_STORE
from app.validation import validate_ride_request

router = APIRouter(prefix="/api")
logger = logging.getLogger("farecheck")


@router.post("/uber")
async def search_rides(payload: dict[str, Any] = Body(...)) -> dict[str, Any]:
    request, errors = validate_ride_request(payload)
    if errors:
        raise HTTPException(status_code=400, detail={"message": "Invalid request", "errors": errors})
    return await run_ride_search(request)


@router.get("/uber/auth")
async def auth_status() -> dict[str, Any]:
    status = await SESSION_STORE.status()
    return status.to_dict()


@router.post("/uber/auth")
async def auth_action(payload: Optional[dict[str, Any]] = Body(default=None)) -> dict[str, Any]:
    action = (payload or {}).get("action")
    if action == "clear":
        removed = await SESSION_STORE.clear()
        return {"success": True, "message": "Session cleared" if removed else "No session to clear"}
    if action not in (None, "", "login"):
        raise HTTPException(
            status_code=400,
            detail={"message": "Invalid request", "errors": ["action must be 'login' or 'clear'."]},
        )
    if LOGIN_SEMAPHORE.locked():
        raise HTTPException(status_code=409, detail="A login window is already open.")
    async with LOGIN_SEMAPHORE:
        logger.info("Starting interactive Uber login")
        return await run_uber_login()

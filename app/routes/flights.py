from typing import Any

from fastapi import APIRouter, Body, HTTPException

from app.runners.flights import run_flight_search
from app.validation import validate_flight_request

router = APIRouter(prefix="/api")


@router.post("/flights")
async def search_flights(payload: dict[str, Any] = Body(...)) -> dict[str, Any]:
    request, errors = validate_flight_request(payload)
    if errors:
        raise HTTPException(status_code=400, detail={"message": "Invalid request", "errors": errors})
    return await run_flight_search(request)

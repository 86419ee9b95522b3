from datetime import date, datetime
from typing import Any, Optional

from app.utils import parse_timestamp
from helpers.session_store import is_session_state
from models import TRAVEL_CLASSES, TRIP_TYPES, FlightSearchRequest, RideSearchRequest


def parse_iso_date(value: Any) -> Optional[date]:
    if not isinstance(value, str):
        return None
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError:
        return None


def _text(payload: dict[str, Any], key: str) -> str:
    value = payload.get(key)
    return value.strip() if isinstance(value, str) else ""


def validate_flight_request(payload: Any) -> tuple[Optional[FlightSearchRequest], list[str]]:
    errors: list[str] = []
    if not isinstance(payload, dict):
        return None, ["Request body must be a JSON object."]

    origin = _text(payload, "from")
    destination = _text(payload, "to")
    if len(origin) < 2:
        errors.append("from must be at least 2 characters.")
    if len(destination) < 2:
        errors.append("to must be at least 2 characters.")

    trip_type = payload.get("tripType") or "round-trip"
    if trip_type not in TRIP_TYPES:
        errors.append(f"tripType must be one of: {', '.join(TRIP_TYPES)}.")
    travel_class = payload.get("travelClass") or "economy"
    if travel_class not in TRAVEL_CLASSES:
        errors.append(f"travelClass must be one of: {', '.join(TRAVEL_CLASSES)}.")

    direct_flights = payload.get("directFlights", False)
    if direct_flights in (None, ""):
        direct_flights = False
    if not isinstance(direct_flights, bool):
        errors.append("directFlights must be a boolean.")

    adults = payload.get("adults", 1)
    if adults in (None, ""):
        adults = 1
    if isinstance(adults, bool) or not isinstance(adults, int) or not 1 <= adults <= 9:
        errors.append("adults must be an integer between 1 and 9.")

    depart_date = parse_iso_date(payload.get("departDate"))
    if not payload.get("departDate"):
        errors.append("departDate is required.")
    elif depart_date is None:
        errors.append("departDate must be YYYY-MM-DD.")

    return_date = None
    if payload.get("returnDate"):
        return_date = parse_iso_date(payload.get("returnDate"))
        if return_date is None:
            errors.append("returnDate must be YYYY-MM-DD.")
        elif depart_date and return_date < depart_date:
            errors.append("returnDate must not be before departDate.")

    if errors:
        return None, errors
    return (
        FlightSearchRequest(
            origin=origin,
            destination=destination,
            depart_date=depart_date,
            return_date=return_date,
            trip_type=trip_type,
            travel_class=travel_class,
            direct_flights=direct_flights,
            adults=adults,
        ),
        [],
    )


def validate_ride_request(payload: Any) -> tuple[Optional[RideSearchRequest], list[str]]:
    errors: list[str] = []
    if not isinstance(payload, dict):
        return None, ["Request body must be a JSON object."]

    pickup = _text(payload, "pickup")
    dropoff = _text(payload, "dropoff")
    if len(pickup) < 3:
        errors.append("pickup must be at least 3 characters.")
    if len(dropoff) < 3:
        errors.append("dropoff must be at least 3 characters.")

    auth_state = payload.get("authState")
    if auth_state is not None and not is_session_state(auth_state):
        errors.append("authState must be an object with cookies and origins arrays.")

    auth_timestamp = None
    if payload.get("authTimestamp") not in (None, ""):
        auth_timestamp = parse_timestamp(payload.get("authTimestamp"))
        if auth_timestamp is None:
            errors.append("authTimestamp must be an ISO-8601 string or epoch milliseconds.")

    if errors:
        return None, errors
    return RideSearchRequest(pickup=pickup, dropoff=dropoff, auth_state=auth_state, auth_timestamp=auth_timestamp), []

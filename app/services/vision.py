import asyncio
import base64
import json
import logging
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from app import config
from app.utils import extract_json_from_text
from models import FlightOption, FlightSearchRequest, RideOption

logger = logging.getLogger("farecheck")

MAX_FLIGHTS = 5
MAX_RIDES = 3

SAFETY_SETTINGS = [
    {"category": category, "threshold": "BLOCK_NONE"}
    for category in (
        "HARM_CATEGORY_HARASSMENT",
        "HARM_CATEGORY_HATE_SPEECH",
        "HARM_CATEGORY_SEXUALLY_EXPLICIT",
        "HARM_CATEGORY_DANGEROUS_CONTENT",
    )
]

_STRING = {"type": "STRING"}
_BOOLEAN = {"type": "BOOLEAN"}

PAGE_ANALYSIS_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "currentTripType": _STRING,
        "currentClass": _STRING,
        "directFlightsChecked": _BOOLEAN,
        "description": _STRING,
    },
    "required": ["currentTripType", "currentClass", "directFlightsChecked", "description"],
}

VERIFICATION_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "success": _BOOLEAN,
        "isResultsPage": _BOOLEAN,
        "matchesRoute": _BOOLEAN,
        "description": _STRING,
    },
    "required": ["success", "isResultsPage", "matchesRoute", "description"],
}

FLIGHT_DETAILS_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "flights": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "departureTime": _STRING,
                    "arrivalTime": _STRING,
                    "departureAirport": _STRING,
                    "arrivalAirport": _STRING,
                    "departureDate": _STRING,
                    "arrivalDate": _STRING,
                    "duration": _STRING,
                    "stops": _STRING,
                    "airlines": _STRING,
                    "price": _STRING,
                },
                "required": [
                    "departureTime",
                    "arrivalTime",
                    "departureAirport",
                    "arrivalAirport",
                    "duration",
                    "stops",
                    "airlines",
                    "price",
                ],
            },
        },
        "totalResults": _STRING,
    },
    "required": ["flights"],
}

AUTH_CHECK_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "isLoggedIn": _BOOLEAN,
        "hasLoginButton": _BOOLEAN,
        "hasSignUpButton": _BOOLEAN,
        "description": _STRING,
    },
    "required": ["isLoggedIn", "hasLoginButton", "hasSignUpButton", "description"],
}

RIDE_OPTIONS_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "rides": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "name": _STRING,
                    "description": _STRING,
                    "fare": _STRING,
                    "eta": _STRING,
                    "capacity": _STRING,
                },
                "required": ["name", "fare"],
            },
        },
    },
    "required": ["rides"],
}

PAGE_ANALYSIS_PROMPT = (
    "This is a screenshot of the Booking.com flight search form. Report which trip type "
    "(Round-trip or One-way) is selected, which cabin class is shown, whether the "
    "'Direct flights only' checkbox is ticked, and describe the form briefly."
)
FLIGHT_EXTRACTION_PROMPT = (
    "This is a screenshot of Booking.com flight search results. Extract the first "
    f"{MAX_FLIGHTS} flight cards from top to bottom. For each one give departure and arrival "
    "times, departure and arrival airport codes, dates if shown, total duration, stops "
    "(e.g. 'Direct', '1 stop'), airline names and the price with currency exactly as displayed. "
    "Also report the total number of results if the page shows it."
)
AUTH_CHECK_PROMPT = (
    "This is a screenshot of m.uber.com. Decide whether a user is logged in. Report whether "
    "'Log in' or 'Sign up' buttons are visible, whether account or activity controls are "
    "present, and describe what you see."
)
RIDE_EXTRACTION_PROMPT = (
    "This is a screenshot of Uber ride options. List the ride products shown from top to "
    f"bottom, at most {MAX_RIDES}. For each give the product name (e.g. UberX), a short "
    "description, the fare exactly as displayed, the pickup ETA and the seat capacity when shown."
)


class ExtractionError(RuntimeError):
    pass


def _call_gemini(prompt: str, image_b64: Optional[str] = None, schema: Optional[Dict[str, Any]] = None) -> str:
    if not config.GEMINI_API_KEY:
        raise ExtractionError("GEMINI_API_KEY is not configured.")
    url = (
        "https://generativelanguage.googleapis.com/v1beta/models/"
        f"{config.GEMINI_MODEL}:generateContent?key={config.GEMINI_API_KEY}"
    )
    parts: List[Dict[str, Any]] = [{"text": prompt}]
    if image_b64:
        parts.append({"inline_data": {"mime_type": "image/png", "data": image_b64}})
    generation_config: Dict[str, Any] = {"temperature": 0.2}
    if schema:
        generation_config["responseMimeType"] = "application/json"
        generation_config["responseSchema"] = schema
    payload = {
        "contents": [{"parts": parts}],
        "generationConfig": generation_config,
        "safetySettings": SAFETY_SETTINGS,
    }
    req = urllib.request.Request(
        url,
        data=json.dumps(payload).encode("utf-8"),
        headers={"Content-Type": "application/json"},
        method="POST",
    )
    try:
        with urllib.request.urlopen(req, timeout=config.GEMINI_TIMEOUT_SECONDS) as resp:
            data = json.loads(resp.read().decode("utf-8"))
    except urllib.error.HTTPError as exc:
        detail = exc.read().decode("utf-8") if exc.fp else str(exc)
        raise ExtractionError(f"Gemini HTTP error {exc.code}: {detail}") from exc
    except urllib.error.URLError as exc:
        raise ExtractionError(f"Gemini request failed: {exc}") from exc
    try:
        return data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as exc:
        raise ExtractionError(f"Gemini returned no content: {data.get('promptFeedback')}") from exc


def normalize_flights(raw: Any, limit: int = MAX_FLIGHTS) -> List[Dict[str, Any]]:
    items = raw if isinstance(raw, list) else []
    return [FlightOption.from_raw(item).to_dict() for item in items if isinstance(item, dict)][:limit]


def normalize_rides(raw: Any, limit: int = MAX_RIDES) -> List[Dict[str, Any]]:
    items = raw if isinstance(raw, list) else []
    return [RideOption.from_raw(item).to_dict() for item in items if isinstance(item, dict)][:limit]


@dataclass(frozen=True)
class AuthCheck:
    is_logged_in: bool
    has_login_button: bool
    has_sign_up_button: bool
    description: str = ""

    @property
    def authenticated(self) -> bool:
        return self.is_logged_in and not (self.has_login_button or self.has_sign_up_button)


class VisionExtractor:
    """Structured answers about page screenshots from Gemini."""

    def __init__(self, call: Optional[Callable[..., str]] = None) -> None:
        self._call = call or _call_gemini

    async def _ask(self, prompt: str, image: bytes, schema: Dict[str, Any]) -> Dict[str, Any]:
        image_b64 = base64.b64encode(image).decode("ascii")
        text = await asyncio.to_thread(self._call, prompt, image_b64, schema)
        parsed = extract_json_from_text(text or "")
        if not isinstance(parsed, dict):
            raise ExtractionError("Gemini response was not a JSON object.")
        return parsed

    async def analyze_flight_page(self, image: bytes) -> Dict[str, Any]:
        return await self._ask(PAGE_ANALYSIS_PROMPT, image, PAGE_ANALYSIS_SCHEMA)

    async def verify_flight_results(self, image: bytes, request: FlightSearchRequest) -> Dict[str, Any]:
        when = request.depart_date.isoformat()
        if request.is_round_trip and request.return_date:
            when += f" returning {request.return_date.isoformat()}"
        prompt = (
            "This is a screenshot taken after submitting a Booking.com flight search from "
            f"{request.origin_code} to {request.destination_code} on {when}. Decide whether it shows "
            "flight results for that route, and set success only if it does. Describe the page briefly."
        )
        data = await self._ask(prompt, image, VERIFICATION_SCHEMA)
        data["success"] = bool(data.get("success"))
        data["description"] = str(data.get("description") or "")
        return data

    async def extract_flights(self, image: bytes) -> Tuple[List[Dict[str, Any]], str]:
        data = await self._ask(FLIGHT_EXTRACTION_PROMPT, image, FLIGHT_DETAILS_SCHEMA)
        total = data.get("totalResults")
        return normalize_flights(data.get("flights")), str(total) if total not in (None, "") else "N/A"

    async def check_uber_auth(self, image: bytes) -> AuthCheck:
        data = await self._ask(AUTH_CHECK_PROMPT, image, AUTH_CHECK_SCHEMA)
        return AuthCheck(
            is_logged_in=bool(data.get("isLoggedIn")),
            has_login_button=bool(data.get("hasLoginButton")),
            has_sign_up_button=bool(data.get("hasSignUpButton")),
            description=str(data.get("description") or ""),
        )

    async def extract_rides(self, image: bytes) -> List[Dict[str, Any]]:
        data = await self._ask(RIDE_EXTRACTION_PROMPT, image, RIDE_OPTIONS_SCHEMA)
        return normalize_rides(data.get("rides"))

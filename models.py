from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional

TRIP_TYPES = ("round-trip", "one-way")
TRAVEL_CLASSES = ("economy", "premium_economy", "business", "first")

_AIRPORT_CODE_RE = re.compile(r"^([A-Z]{3})", re.I)


def extract_airport_code(value: str) -> str:
    """
    "BLR - Bengaluru" -> "BLR". Anything without a leading code is uppercased whole.
    """
    text = (value or "").strip()
    match = _AIRPORT_CODE_RE.match(text)
    if match:
        return match.group(1).upper()
    return text.upper()


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class StageStatus(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    SOFT_FAILURE = "soft_failure"
    HARD_FAILURE = "hard_failure"
    AUTH_REQUIRED = "auth_required"


STATUS_MARKERS = {
    StageStatus.SUCCESS: "✅",
    StageStatus.SKIPPED: "ℹ️",
    StageStatus.SOFT_FAILURE: "⚠️",
    StageStatus.HARD_FAILURE: "❌",
    StageStatus.AUTH_REQUIRED: "🔒",
}


@dataclass(frozen=True)
class StageOutcome:
    status: StageStatus
    action: str
    detail: str
    marker: Optional[str] = None
    screenshot: Optional[bytes] = None

    @property
    def result(self) -> str:
        return f"{self.marker or STATUS_MARKERS[self.status]} {self.detail}"

    @property
    def halts(self) -> bool:
        return self.status in (StageStatus.HARD_FAILURE, StageStatus.AUTH_REQUIRED)

    @classmethod
    def success(cls, action: str, detail: str, **kwargs: Any) -> "StageOutcome":
        return cls(StageStatus.SUCCESS, action, detail, **kwargs)

    @classmethod
    def skipped(cls, action: str, detail: str) -> "StageOutcome":
        return cls(StageStatus.SKIPPED, action, detail)

    @classmethod
    def soft_failure(cls, action: str, detail: str, **kwargs: Any) -> "StageOutcome":
        return cls(StageStatus.SOFT_FAILURE, action, detail, **kwargs)

    @classmethod
    def hard_failure(cls, action: str, detail: str) -> "StageOutcome":
        return cls(StageStatus.HARD_FAILURE, action, detail)

    @classmethod
    def auth_required(cls, action: str, detail: str) -> "StageOutcome":
        return cls(StageStatus.AUTH_REQUIRED, action, detail)


@dataclass(frozen=True)
class AutomationStep:
    step: int
    action: str
    result: str
    timestamp: str
    screenshot_url: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "step": self.step,
            "action": self.action,
            "result": self.result,
            "timestamp": self.timestamp,
        }
        if self.screenshot_url:
            data["screenshotUrl"] = self.screenshot_url
        return data


@dataclass(frozen=True)
class FlightSearchRequest:
    origin: str
    destination: str
    depart_date: date
    return_date: Optional[date] = None
    trip_type: str = "round-trip"
    travel_class: str = "economy"
    direct_flights: bool = False
    adults: int = 1

    @property
    def origin_code(self) -> str:
        return extract_airport_code(self.origin)

    @property
    def destination_code(self) -> str:
        return extract_airport_code(self.destination)

    @property
    def is_round_trip(self) -> bool:
        return self.trip_type == "round-trip"

    def requested(self, class_label: str) -> dict[str, Any]:
        return {
            "tripType": self.trip_type,
            "travelClass": class_label,
            "from": self.origin,
            "to": self.destination,
            "directFlights": self.direct_flights,
        }


@dataclass(frozen=True)
class RideSearchRequest:
    pickup: str
    dropoff: str
    auth_state: Optional[dict[str, Any]] = None
    auth_timestamp: Optional[datetime] = None

    def requested(self) -> dict[str, Any]:
        return {"pickup": self.pickup, "dropoff": self.dropoff}


def _text(value: Any, default: str) -> str:
    if value is None:
        return default
    text = str(value).strip()
    return text or default


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class FlightOption:
    departure_time: str = "N/A"
    arrival_time: str = "N/A"
    departure_airport: str = "N/A"
    arrival_airport: str = "N/A"
    departure_date: Optional[str] = None
    arrival_date: Optional[str] = None
    duration: str = "N/A"
    stops: str = "N/A"
    airlines: str = "N/A"
    price: str = "N/A"

    @classmethod
    def from_raw(cls, raw: dict[str, Any]) -> "FlightOption":
        return cls(
            departure_time=_text(raw.get("departureTime"), "N/A"),
            arrival_time=_text(raw.get("arrivalTime"), "N/A"),
            departure_airport=_text(raw.get("departureAirport"), "N/A"),
            arrival_airport=_text(raw.get("arrivalAirport"), "N/A"),
            departure_date=_optional_text(raw.get("departureDate")),
            arrival_date=_optional_text(raw.get("arrivalDate")),
            duration=_text(raw.get("duration"), "N/A"),
            stops=_text(raw.get("stops"), "N/A"),
            airlines=_text(raw.get("airlines"), "N/A"),
            price=_text(raw.get("price"), "N/A"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "departureTime": self.departure_time,
            "arrivalTime": self.arrival_time,
            "departureAirport": self.departure_airport,
            "arrivalAirport": self.arrival_airport,
            "departureDate": self.departure_date,
            "arrivalDate": self.arrival_date,
            "duration": self.duration,
            "stops": self.stops,
            "airlines": self.airlines,
            "price": self.price,
        }


@dataclass(frozen=True)
class RideOption:
    name: str = "Unknown"
    fare: str = "N/A"
    description: Optional[str] = None
    eta: Optional[str] = None
    capacity: Optional[str] = None

    @classmethod
    def from_raw(cls, raw: dict[str, Any]) -> "RideOption":
        return cls(
            name=_text(raw.get("name"), "Unknown"),
            fare=_text(raw.get("fare"), "N/A"),
            description=_optional_text(raw.get("description")),
            eta=_optional_text(raw.get("eta")),
            capacity=_optional_text(raw.get("capacity")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "fare": self.fare,
            "eta": self.eta,
            "capacity": self.capacity,
        }

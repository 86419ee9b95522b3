"""Unit tests for app.services.vision: Gemini request shape and result normalization."""

from __future__ import annotations

import base64
from datetime import date

import pytest
from conftest import run

from app import config as app_config
from app.services import vision
from app.services.vision import (
    AUTH_CHECK_SCHEMA,
    AuthCheck,
    ExtractionError,
    VisionExtractor,
    normalize_flights,
    normalize_rides,
)
from app.utils import extract_json_from_text
from models import FlightSearchRequest


class RecordingCall:
    def __init__(self, reply: str) -> None:
        self.reply = reply
        self.calls: list[tuple] = []

    def __call__(self, prompt, image_b64, schema):
        self.calls.append((prompt, image_b64, schema))
        return self.reply


# ---------------------------------------------------------------------------
# 1. Normalization
# ---------------------------------------------------------------------------

class TestNormalizeFlights:
    def test_missing_fields_default_to_na(self):
        flights = normalize_flights([{"price": "₹5,400", "airlines": "IndiGo"}])
        assert flights[0]["price"] == "₹5,400"
        assert flights[0]["departureTime"] == "N/A"
        assert flights[0]["stops"] == "N/A"
        assert flights[0]["departureDate"] is None

    def test_caps_at_five_and_skips_junk(self):
        raw = ["junk", None] + [{"price": str(i)} for i in range(8)]
        flights = normalize_flights(raw)
        assert [flight["price"] for flight in flights] == ["0", "1", "2", "3", "4"]

    def test_non_list_input(self):
        assert normalize_flights({"flights": []}) == []


class TestNormalizeRides:
    def test_defaults_and_limit(self):
        rides = normalize_rides([{"fare": "$12"}, {"name": "UberXL"}, {"name": "Comfort"}, {"name": "Black"}])
        assert len(rides) == 3
        assert rides[0]["name"] == "Unknown"
        assert rides[1]["fare"] == "N/A"
        assert rides[0]["eta"] is None


# ---------------------------------------------------------------------------
# 2. JSON recovery
# ---------------------------------------------------------------------------

class TestExtractJson:
    def test_plain_json(self):
        assert extract_json_from_text('{"rides": []}') == {"rides": []}

    def test_json_wrapped_in_prose(self):
        text = 'Here you go:\n```json\n{"flights": [{"price": "$1"}]}\n```'
        assert extract_json_from_text(text) == {"flights": [{"price": "$1"}]}

    def test_garbage(self):
        assert extract_json_from_text("no json here") is None


# ---------------------------------------------------------------------------
# 3. VisionExtractor
# ---------------------------------------------------------------------------

class TestVisionExtractor:
    def test_sends_base64_image_and_schema(self):
        call = RecordingCall('{"isLoggedIn": true, "hasLoginButton": false, "hasSignUpButton": false, "description": "home"}')
        check = run(VisionExtractor(call=call).check_uber_auth(b"png-bytes"))
        prompt, image_b64, schema = call.calls[0]
        assert base64.b64decode(image_b64) == b"png-bytes"
        assert schema is AUTH_CHECK_SCHEMA
        assert check.authenticated is True

    def test_extract_flights_normalizes(self):
        call = RecordingCall('{"flights": [{"price": "$99"}], "totalResults": "120"}')
        flights, total = run(VisionExtractor(call=call).extract_flights(b"png"))
        assert flights[0]["price"] == "$99"
        assert flights[0]["airlines"] == "N/A"
        assert total == "120"

    def test_verify_mentions_route(self):
        call = RecordingCall('{"success": true, "isResultsPage": true, "matchesRoute": true, "description": "ok"}')
        request = FlightSearchRequest(
            origin="BLR - Bengaluru",
            destination="DEL",
            depart_date=date(2025, 6, 10),
            return_date=date(2025, 6, 20),
        )
        result = run(VisionExtractor(call=call).verify_flight_results(b"png", request))
        assert result["success"] is True
        prompt = call.calls[0][0]
        assert "BLR" in prompt and "DEL" in prompt and "2025-06-20" in prompt

    def test_non_object_reply_raises(self):
        with pytest.raises(ExtractionError):
            run(VisionExtractor(call=RecordingCall("[1, 2]")).extract_rides(b"png"))

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.setattr(app_config, "GEMINI_API_KEY", "")
        with pytest.raises(ExtractionError, match="GEMINI_API_KEY"):
            vision._call_gemini("prompt", "aW1n", AUTH_CHECK_SCHEMA)


class TestAuthCheck:
    @pytest.mark.parametrize(
        "logged_in, login_button, sign_up, expected",
        [
            (True, False, False, True),
            (True, True, False, False),
            (True, False, True, False),
            (False, False, False, False),
        ],
    )
    def test_authenticated_rule(self, logged_in, login_button, sign_up, expected):
        assert AuthCheck(logged_in, login_button, sign_up).authenticated is expected

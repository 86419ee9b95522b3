"""Unit tests for bots.booking_flights_bot: stage behaviour and the full flight flow."""

from __future__ import annotations

from datetime import date

from conftest import FakeExtractor, FakePage, run

import config
from bots import booking_flights_bot as bot
from helpers.calendar import CLICK_BY_DATA_DATE_JS
from helpers.steps import StepRecorder
from models import FlightSearchRequest, StageStatus

PLUS = config.ADULTS_PLUS_SELECTORS[0]
CABIN = config.CLASS_TRIGGER_SELECTORS[0]


def _request(**overrides) -> FlightSearchRequest:
    values = {
        "origin": "BLR",
        "destination": "DEL - Delhi",
        "depart_date": date(2025, 6, 10),
        "return_date": None,
        "trip_type": "one-way",
        "travel_class": "economy",
        "direct_flights": False,
        "adults": 1,
    }
    values.update(overrides)
    return FlightSearchRequest(**values)


# ---------------------------------------------------------------------------
# 1. Travel class
# ---------------------------------------------------------------------------

class TestSelectTravelClass:
    def test_economy_touches_nothing(self):
        page = FakePage()
        outcome = run(bot._select_travel_class(page, "economy"))
        assert outcome.status is StageStatus.SUCCESS
        assert page.interactions == []

    def _class_page(self, shown: str | None) -> FakePage:
        page = FakePage(visible={CABIN}, scripts={bot.READ_CLASS_LABEL_JS: shown})
        page.boxes[CABIN] = {"x": 360, "y": 137, "width": 120, "height": 32}
        return page

    def test_business_uses_two_arrow_presses_and_verifies(self):
        page = self._class_page("Business")
        outcome = run(bot._select_travel_class(page, "business"))
        assert outcome.status is StageStatus.SUCCESS
        assert page.clicks == [CABIN]
        assert page.keyboard.presses == ["ArrowDown", "ArrowDown", "Enter"]

    def test_mismatch_fails_loudly(self):
        page = self._class_page("Premium economy")
        outcome = run(bot._select_travel_class(page, "first"))
        assert outcome.status is StageStatus.SOFT_FAILURE
        assert outcome.result.startswith("❌")
        assert "Premium economy" in outcome.result and "First-class" in outcome.result

    def test_unreadable_label_is_unverified(self):
        page = self._class_page(None)
        outcome = run(bot._select_travel_class(page, "premium_economy"))
        assert outcome.status is StageStatus.SOFT_FAILURE
        assert "unverified" in outcome.result

    def test_coordinate_fallback(self):
        page = FakePage(scripts={bot.READ_CLASS_LABEL_JS: "Business"})
        outcome = run(bot._select_travel_class(page, "business"))
        assert outcome.status is StageStatus.SUCCESS
        assert page.mouse.clicks == [config.CLASS_TRIGGER_FALLBACK]

    def test_native_select_label_is_read_from_selected_option(self):
        page = self._class_page(None)
        page.scripts[bot.READ_CLASS_SELECT_JS] = "Business"
        outcome = run(bot._select_travel_class(page, "business"))
        assert outcome.status is StageStatus.SUCCESS
        assert page.evaluations_of(bot.READ_CLASS_SELECT_JS) == [list(config.CLASS_LABELS.values())]
        assert page.evaluations_of(bot.READ_CLASS_LABEL_JS) == []


# ---------------------------------------------------------------------------
# 2. Travelers
# ---------------------------------------------------------------------------

class TestSelectTravelers:
    def test_single_adult_touches_nothing(self):
        page = FakePage()
        outcome = run(bot._select_travelers(page, 1))
        assert outcome.status is StageStatus.SUCCESS
        assert page.interactions == []

    def test_clicks_plus_for_each_extra_adult(self):
        page = FakePage(
            visible={'text="Travelers"', PLUS, 'button:has-text("Done")'},
            scripts={bot.CURRENT_ADULTS_JS: 1},
        )
        outcome = run(bot._select_travelers(page, 3))
        assert outcome.status is StageStatus.SUCCESS
        assert page.clicks.count(PLUS) == 2
        assert page.clicks[-1] == 'button:has-text("Done")'

    def test_disabled_stepper_stops(self):
        page = FakePage(visible={'text="Travelers"', PLUS}, scripts={bot.CURRENT_ADULTS_JS: 1})
        page.disabled.add(PLUS)
        outcome = run(bot._select_travelers(page, 4))
        assert outcome.status is StageStatus.SOFT_FAILURE
        assert "Stopped at 1 adults" in outcome.result
        assert page.keyboard.presses == ["Escape"]


# ---------------------------------------------------------------------------
# 3. Airports
# ---------------------------------------------------------------------------

class TestSelectOrigin:
    def test_matching_chip_skips_typing(self):
        page = FakePage(
            visible={'text="Leaving from"'},
            scripts={bot.READ_CHIP_JS: {"hasChip": True, "code": "BLR", "fullText": "BLR Bengaluru"}},
        )
        outcome = run(bot._select_origin(page, _request()))
        assert outcome.status is StageStatus.SUCCESS
        assert page.keyboard.typed == []
        assert page.keyboard.presses == ["Escape"]

    def test_leftover_chip_is_flagged(self):
        page = FakePage(
            visible={'text="Leaving from"', config.AIRPORT_INPUT_SELECTORS[0]},
            scripts={
                bot.READ_CHIP_JS: {"hasChip": True, "code": "BOM", "fullText": "BOM Mumbai"},
                bot.SELECT_SUGGESTION_JS: True,
            },
        )
        outcome = run(bot._select_origin(page, _request()))
        assert outcome.status is StageStatus.SOFT_FAILURE
        assert "may still be present" in outcome.result
        assert "".join(page.keyboard.typed) == "BLR"


# ---------------------------------------------------------------------------
# 4. Dates
# ---------------------------------------------------------------------------

class TestSelectDates:
    def _dates_page(self, clicks) -> FakePage:
        return FakePage(
            visible={'text="Travel dates"'},
            scripts={CLICK_BY_DATA_DATE_JS: lambda iso: iso in clicks},
            body_text="June 2025 July 2025",
        )

    def test_round_trip_reports_both_dates(self):
        page = self._dates_page({"2025-06-10", "2025-07-02"})
        request = _request(trip_type="round-trip", return_date=date(2025, 7, 2))
        outcome = run(bot._select_dates(page, request))
        assert outcome.status is StageStatus.SUCCESS
        assert outcome.result == "✅ Selected 2025-06-10 to 2025-07-02"

    def test_missed_return_day_is_a_soft_failure(self):
        page = self._dates_page({"2025-06-10"})
        request = _request(trip_type="round-trip", return_date=date(2025, 7, 2))
        outcome = run(bot._select_dates(page, request))
        assert outcome.status is StageStatus.SOFT_FAILURE
        assert "not return date 2025-07-02" in outcome.result

    def test_picker_missing(self):
        outcome = run(bot._select_dates(FakePage(), _request()))
        assert outcome.status is StageStatus.SOFT_FAILURE
        assert "date picker" in outcome.result


# ---------------------------------------------------------------------------
# 5. Direct flights
# ---------------------------------------------------------------------------

class TestDirectFlights:
    def test_not_requested_is_skipped(self):
        page = FakePage()
        outcome = run(bot._select_direct_flights(page, False))
        assert outcome.status is StageStatus.SKIPPED
        assert outcome.result == "ℹ️ Skipped (not requested)"
        assert page.interactions == []

    def test_requested_but_missing(self):
        outcome = run(bot._select_direct_flights(FakePage(), True))
        assert outcome.status is StageStatus.SOFT_FAILURE


# ---------------------------------------------------------------------------
# 6. Full flow
# ---------------------------------------------------------------------------

def _booking_page() -> FakePage:
    search = 'button:has-text("Search")'
    page = FakePage(
        visible={
            'label:has-text("One-way")',
            'text="Leaving from"',
            'text="Going to"',
            config.AIRPORT_INPUT_SELECTORS[0],
            'text="Travel dates"',
            search,
        },
        scripts={
            bot.READ_CHIP_JS: {"hasChip": True, "code": "BLR", "fullText": "BLR Bengaluru"},
            bot.SELECT_SUGGESTION_JS: True,
            CLICK_BY_DATA_DATE_JS: True,
        },
        body_text="June 2025 July 2025",
    )
    page.boxes[search] = {"x": 900, "y": 180, "width": 100, "height": 40}
    return page


class TestSearchFlights:
    def test_one_way_flow(self):
        page = _booking_page()
        extractor = FakeExtractor(flights=[{"price": "₹5,400"}])
        recorder = StepRecorder()
        result = run(bot.search_flights(page, _request(), extractor, recorder))

        steps = result["steps"]
        assert [step["step"] for step in steps] == list(range(1, len(steps) + 1))
        assert len(steps) == 14
        direct = [step for step in steps if "Direct flights only" in step["action"]]
        assert direct[0]["result"] == "ℹ️ Skipped (not requested)"

        assert page.evaluations_of(CLICK_BY_DATA_DATE_JS) == ["2025-06-10"]
        assert page.gotos == [config.BOOKING_FLIGHTS_URL]
        assert result["success"] is True
        assert result["flights"] == [{"price": "₹5,400"}]
        assert result["requested"]["travelClass"] == "Economy"
        assert result["analysis"]["verification"]["success"] is True
        assert extractor.calls == ["analyze", "verify", "extract_flights"]

    def test_unverified_results_report_failure(self):
        result = run(
            bot.search_flights(_booking_page(), _request(), FakeExtractor(verified=False), StepRecorder())
        )
        assert result["success"] is False
        assert result["message"] == "Still on the search form"

"""Unit tests for helpers.calendar: month paging and day-cell selection."""

from __future__ import annotations

from datetime import date

from conftest import FakePage, run

import config
from helpers.calendar import (
    CLICK_BY_DATA_DATE_JS,
    CLICK_DAY_CANDIDATE_JS,
    COLLECT_DAY_CELLS_JS,
    MONTH_NAMES,
    NAV_BY_POSITION_JS,
    DayCell,
    click_day,
    month_difference,
    navigate_to_month,
    parse_displayed_months,
    plan_navigation,
    rank_day_cells,
    select_travel_dates,
)


class FakeCalendarPage(FakePage):
    """Shows `months_shown` consecutive months; nav scripts move by one month."""

    def __init__(self, month: int, year: int, months_shown: int = 2, nav_works: bool = True) -> None:
        super().__init__()
        self.total = year * 12 + month
        self.months_shown = months_shown
        self.nav_clicks: list[str] = []
        if nav_works:
            self.scripts[NAV_BY_POSITION_JS] = self._navigate

    def _navigate(self, direction: str) -> bool:
        self.nav_clicks.append(direction)
        self.total += -1 if direction == "prev" else 1
        return True

    async def text_content(self, selector: str) -> str:
        labels = []
        for offset in range(self.months_shown):
            total = self.total + offset
            labels.append(f"{MONTH_NAMES[total % 12]} {total // 12}")
        return "  ".join(labels) + "  Mo Tu We Th Fr Sa Su"


# ---------------------------------------------------------------------------
# 1. Pure month arithmetic
# ---------------------------------------------------------------------------

class TestMonthArithmetic:
    def test_parse_displayed_months_in_order(self):
        text = "Travel dates December 2025 January 2026 1 2 3"
        assert parse_displayed_months(text) == [(11, 2025), (0, 2026)]

    def test_parse_ignores_text_without_headers(self):
        assert parse_displayed_months("Depart  Return") == []

    def test_month_difference_across_years(self):
        assert month_difference((11, 2025), (1, 2026)) == 2
        assert month_difference((0, 2026), (11, 2025)) == -1

    def test_plan_navigation(self):
        assert plan_navigation(-3) == "prev"
        assert plan_navigation(0) is None
        assert plan_navigation(1) is None
        assert plan_navigation(2) == "next"


# ---------------------------------------------------------------------------
# 2. navigate_to_month()
# ---------------------------------------------------------------------------

class TestNavigateToMonth:
    def test_visible_month_needs_no_clicks(self):
        page = FakeCalendarPage(month=0, year=2025)
        assert run(navigate_to_month(page, date(2025, 2, 14))) is True
        assert page.nav_clicks == []

    def test_difference_of_one_does_not_click_next(self):
        # Only the first month's header is readable; the second panel is implied.
        page = FakeCalendarPage(month=0, year=2025, months_shown=1)
        assert run(navigate_to_month(page, date(2025, 2, 14))) is True
        assert page.nav_clicks == []

    def test_pages_forward_until_visible(self):
        page = FakeCalendarPage(month=0, year=2025)
        assert run(navigate_to_month(page, date(2026, 12, 1))) is True
        assert page.nav_clicks == ["next"] * 22

    def test_pages_backward(self):
        page = FakeCalendarPage(month=2, year=2025)
        assert run(navigate_to_month(page, date(2025, 1, 5))) is True
        assert page.nav_clicks == ["prev", "prev"]

    def test_terminates_at_navigation_bound(self):
        page = FakeCalendarPage(month=0, year=2025)
        assert run(navigate_to_month(page, date(2027, 3, 1))) is False
        assert len(page.nav_clicks) == config.CALENDAR_MAX_NAVIGATIONS

    def test_missing_control_aborts(self):
        page = FakeCalendarPage(month=0, year=2025, nav_works=False)
        assert run(navigate_to_month(page, date(2025, 9, 1))) is False

    def test_unparseable_header_aborts(self):
        page = FakePage(body_text="no calendar here")
        assert run(navigate_to_month(page, date(2025, 9, 1))) is False
        assert page.evaluations == []


# ---------------------------------------------------------------------------
# 3. Day cells
# ---------------------------------------------------------------------------

class TestRankDayCells:
    def test_prefers_target_panel_then_leftmost(self):
        cells = [
            DayCell(index=0, top=300, left=150, width=40, height=40, in_panel=False),
            DayCell(index=1, top=300, left=600, width=40, height=40, in_panel=True),
            DayCell(index=2, top=300, left=450, width=40, height=40, in_panel=True),
        ]
        assert [cell.index for cell in rank_day_cells(cells)] == [2, 1, 0]

    def test_drops_disabled_and_out_of_band_cells(self):
        cells = [
            DayCell(index=0, top=300, left=200, width=40, height=40, opacity=0.3, in_panel=True),
            DayCell(index=1, top=300, left=250, width=40, height=40, aria_disabled=True, in_panel=True),
            DayCell(index=2, top=300, left=300, width=40, height=40, disabled=True, in_panel=True),
            DayCell(index=3, top=900, left=300, width=40, height=40, in_panel=True),
            DayCell(index=4, top=300, left=300, width=15, height=40, in_panel=True),
            DayCell(index=5, top=300, left=700, width=40, height=40),
        ]
        assert [cell.index for cell in rank_day_cells(cells)] == [5]


class TestClickDay:
    def test_data_date_fast_path(self):
        page = FakePage(scripts={CLICK_BY_DATA_DATE_JS: True})
        assert run(click_day(page, date(2025, 6, 10))) is True
        assert page.evaluations_of(CLICK_BY_DATA_DATE_JS) == ["2025-06-10"]
        assert page.evaluations_of(COLLECT_DAY_CELLS_JS) == []

    def test_clicks_top_ranked_candidate(self):
        clicked: list[int] = []
        page = FakePage(
            scripts={
                CLICK_BY_DATA_DATE_JS: False,
                COLLECT_DAY_CELLS_JS: [
                    {"index": 0, "top": 320, "left": 180, "width": 36, "height": 36, "opacity": 1, "inPanel": False},
                    {"index": 1, "top": 320, "left": 520, "width": 36, "height": 36, "opacity": 1, "inPanel": True},
                ],
                CLICK_DAY_CANDIDATE_JS: lambda index: clicked.append(index) or True,
            }
        )
        assert run(click_day(page, date(2025, 7, 4))) is True
        assert clicked == [1]
        assert page.evaluations_of(COLLECT_DAY_CELLS_JS) == [{"day": 4, "header": "July 2025"}]

    def test_no_candidates(self):
        page = FakePage(scripts={CLICK_BY_DATA_DATE_JS: False, COLLECT_DAY_CELLS_JS: []})
        assert run(click_day(page, date(2025, 7, 4))) is False


# ---------------------------------------------------------------------------
# 4. select_travel_dates()
# ---------------------------------------------------------------------------

class TestSelectTravelDates:
    def _page(self) -> FakePage:
        return FakePage(
            visible={'text="Travel dates"'},
            scripts={CLICK_BY_DATA_DATE_JS: True},
            body_text="June 2025 July 2025",
        )

    def test_one_way_never_clicks_return_day(self):
        page = self._page()
        selection = run(select_travel_dates(page, date(2025, 6, 10), date(2025, 7, 2), "one-way"))
        assert selection.succeeded
        assert selection.return_attempted is False
        assert page.evaluations_of(CLICK_BY_DATA_DATE_JS) == ["2025-06-10"]
        assert page.keyboard.presses[-1] == "Escape"

    def test_round_trip_clicks_both_days(self):
        page = self._page()
        selection = run(select_travel_dates(page, date(2025, 6, 10), date(2025, 7, 2), "round-trip"))
        assert selection.succeeded
        assert page.evaluations_of(CLICK_BY_DATA_DATE_JS) == ["2025-06-10", "2025-07-02"]

    def test_picker_not_found(self):
        page = FakePage()
        selection = run(select_travel_dates(page, date(2025, 6, 10), None, "one-way"))
        assert selection.opened is False
        assert selection.succeeded is False

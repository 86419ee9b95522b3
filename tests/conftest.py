"""Shared fixtures and Playwright stand-ins for Farecheck unit tests."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

import config
from app.services.vision import AuthCheck


def run(coro):
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# Fake Playwright objects
# ---------------------------------------------------------------------------

class FakeKeyboard:
    def __init__(self) -> None:
        self.presses: list[str] = []
        self.typed: list[str] = []

    async def press(self, key: str) -> None:
        self.presses.append(key)

    async def type(self, text: str, delay: float | None = None) -> None:
        self.typed.append(text)


class FakeMouse:
    def __init__(self) -> None:
        self.clicks: list[tuple[int, int]] = []

    async def click(self, x: int, y: int) -> None:
        self.clicks.append((x, y))


class FakeLocator:
    def __init__(self, page: "FakePage", selector: str, index: int = 0) -> None:
        self.page = page
        self.selector = selector
        self.index = index

    @property
    def first(self) -> "FakeLocator":
        return FakeLocator(self.page, self.selector, 0)

    def nth(self, index: int) -> "FakeLocator":
        return FakeLocator(self.page, self.selector, index)

    def _visible(self) -> bool:
        return self.selector in self.page.visible and self.index < self._count()

    def _count(self) -> int:
        return self.page.counts.get(self.selector, 1 if self.selector in self.page.visible else 0)

    async def count(self) -> int:
        return self._count()

    async def all(self) -> list["FakeLocator"]:
        return [FakeLocator(self.page, self.selector, i) for i in range(self._count())]

    async def wait_for(self, state: str = "visible", timeout: int | None = None) -> None:
        if not self._visible():
            raise Exception(f"Timeout waiting for {self.selector}")

    async def is_visible(self) -> bool:
        return self._visible()

    async def is_disabled(self) -> bool:
        return self.selector in self.page.disabled

    async def click(self, timeout: int | None = None, force: bool = False) -> None:
        if not self._visible() and not (force and self._count()):
            raise Exception(f"Not clickable: {self.selector}")
        self.page.clicks.append(self.selector)

    async def fill(self, value: str) -> None:
        if not self._visible():
            raise Exception(f"Not fillable: {self.selector}")
        self.page.fills.append((self.selector, value))

    async def bounding_box(self) -> dict[str, float] | None:
        return self.page.boxes.get(self.selector)


class FakePage:
    """
    Minimal async page: selectors listed in `visible` exist and are clickable,
    scripts answer from `scripts` (a value or a callable taking the arg).
    """

    def __init__(
        self,
        visible: set[str] | None = None,
        scripts: dict[str, Any] | None = None,
        body_text: str = "",
        url: str = "https://example.test/",
    ) -> None:
        self.visible = set(visible or ())
        self.scripts = dict(scripts or {})
        self.body_text = body_text
        self.url = url
        self.counts: dict[str, int] = {}
        self.boxes: dict[str, dict[str, float]] = {}
        self.disabled: set[str] = set()
        self.keyboard = FakeKeyboard()
        self.mouse = FakeMouse()
        self.clicks: list[str] = []
        self.fills: list[tuple[str, str]] = []
        self.evaluations: list[tuple[str, Any]] = []
        self.gotos: list[str] = []
        self.closed = False

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self, selector)

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        self.evaluations.append((script, arg))
        handler = self.scripts.get(script)
        if callable(handler):
            return handler(arg)
        return handler

    def evaluations_of(self, script: str) -> list[Any]:
        return [arg for called, arg in self.evaluations if called == script]

    async def text_content(self, selector: str) -> str:
        return self.body_text

    async def goto(self, url: str, **kwargs: Any) -> None:
        self.gotos.append(url)
        self.url = url

    async def wait_for_load_state(self, state: str = "load", timeout: int | None = None) -> None:
        return None

    async def wait_for_timeout(self, ms: int) -> None:
        return None

    async def screenshot(self, **kwargs: Any) -> bytes:
        return b"\x89PNG fake"

    async def add_init_script(self, script: str) -> None:
        return None

    async def set_extra_http_headers(self, headers: dict[str, str]) -> None:
        return None

    def is_closed(self) -> bool:
        return self.closed

    @property
    def interactions(self) -> list[Any]:
        return [
            *self.clicks,
            *self.fills,
            *self.keyboard.presses,
            *self.keyboard.typed,
            *self.mouse.clicks,
            *self.evaluations,
        ]


class FakeBrowser:
    def __init__(self, connected: bool = True) -> None:
        self.connected = connected

    def is_connected(self) -> bool:
        return self.connected


class FakeExtractor:
    def __init__(
        self,
        authenticated: bool = True,
        verified: bool = True,
        flights: list[dict[str, Any]] | None = None,
        rides: list[dict[str, Any]] | None = None,
    ) -> None:
        self.authenticated = authenticated
        self.verified = verified
        self.flights = flights or []
        self.rides = rides or []
        self.calls: list[str] = []

    async def analyze_flight_page(self, image: bytes) -> dict[str, Any]:
        self.calls.append("analyze")
        return {
            "currentTripType": "Round-trip",
            "currentClass": "Economy",
            "directFlightsChecked": False,
            "description": "Search form",
        }

    async def verify_flight_results(self, image: bytes, request: Any) -> dict[str, Any]:
        self.calls.append("verify")
        return {
            "success": self.verified,
            "isResultsPage": self.verified,
            "matchesRoute": self.verified,
            "description": "Results for the route" if self.verified else "Still on the search form",
        }

    async def extract_flights(self, image: bytes) -> tuple[list[dict[str, Any]], str]:
        self.calls.append("extract_flights")
        return self.flights, str(len(self.flights))

    async def check_uber_auth(self, image: bytes) -> AuthCheck:
        self.calls.append("auth")
        return AuthCheck(
            is_logged_in=self.authenticated,
            has_login_button=not self.authenticated,
            has_sign_up_button=not self.authenticated,
            description="",
        )

    async def extract_rides(self, image: bytes) -> list[dict[str, Any]]:
        self.calls.append("extract_rides")
        return self.rides


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def no_pacing(monkeypatch):
    """Random human-like delays are disabled for every test."""
    monkeypatch.setattr(config, "DELAY_SCALE", 0.0)

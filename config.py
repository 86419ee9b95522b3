"""
Centralized configuration for selectors, URLs, and browser settings.
"""
import os

# Pacing multiplier applied to every random delay (0 disables pacing).
DELAY_SCALE = float(os.getenv("DELAY_SCALE", "1.0"))

# Browser
BROWSER_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--no-sandbox",
    "--disable-setuid-sandbox",
]
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
VIEWPORT = {"width": 1920, "height": 1080}
LOGIN_VIEWPORT = {"width": 1280, "height": 800}
EXTRA_HTTP_HEADERS = {"Accept-Language": "en-US,en;q=0.9"}

# Vertical band (px) that the search form occupies on desktop layouts.
FORM_AREA_MIN_Y = 50
FORM_AREA_MAX_Y = 400

# Cookie consent
COOKIE_ACCEPT_SELECTORS = [
    'button:has-text("Accept")',
    'button:has-text("Accept all")',
    'button:has-text("I agree")',
    'button[id*="accept"]',
    'button[aria-label*="Accept"]',
]

# Booking.com flights
BOOKING_FLIGHTS_URL = "https://www.booking.com/flights"

TRIP_TYPE_LABELS = {"round-trip": "Round-trip", "one-way": "One-way"}
TRIP_TYPE_SELECTOR_TEMPLATES = [
    'label:has-text("{label}")',
    'span:has-text("{label}")',
    'text="{label}"',
    'input[type="radio"][value*="{value}"]',
    '[data-testid*="{value}"]',
]

CLASS_LABELS = {
    "economy": "Economy",
    "premium_economy": "Premium economy",
    "business": "Business",
    "first": "First-class",
}
CLASS_ARROW_PRESSES = {"economy": 0, "premium_economy": 1, "business": 2, "first": 3}
CLASS_TRIGGER_SELECTORS = [
    '[data-ui-name*="cabin"]',
    '[data-testid*="cabin"]',
    '[class*="cabin"]',
    'button:has-text("Economy")',
    'div:has-text("Economy"):has(svg)',
    'span:has-text("Economy")',
]
CLASS_TRIGGER_FALLBACK = (380, 137)

ORIGIN_LABEL_SELECTORS = [
    'text="Leaving from"',
    'span:has-text("Leaving from")',
    'div:has-text("Leaving from")',
    '[data-ui-name*="origin"]',
    '[data-testid*="origin"]',
]
ORIGIN_CONTAINER_LABEL = "Departure airport or city"

DESTINATION_LABEL_SELECTORS = [
    'text="Going to"',
    'span:has-text("Going to")',
    'input[placeholder*="Going" i]',
    'input[placeholder*="destination" i]',
    '[data-ui-name*="destination"]',
    '[data-testid*="destination"]',
    'button:has-text("Going to")',
]
DESTINATION_CONTAINER_LABEL = "Destination airport or city"

AIRPORT_INPUT_SELECTORS = [
    'input[data-ui-name="input_text_autocomplete"]',
    'input[class*="AutoComplete-module__textInput"]',
    'div[aria-label="{container}"] input[type="text"]',
    'input[role="combobox"][aria-controls*="suggestions"]',
    'input[type="text"][class*="autocomplete" i]',
    'input[role="combobox"]',
    'input[type="text"]',
]
AIRPORT_CHIP_CLASS_SELECTOR = 'button[class*="Actionable-module"][class*="Chip-module"]'
AIRPORT_CHIP_BOLD_SELECTOR = "button[data-autocomplete-chip-idx] b"
SUGGESTION_SKIP_WORDS = ["Anywhere", "Explore"]

DATE_PICKER_SELECTORS = [
    'text="Travel dates"',
    'text="Travel date"',
    'span:has-text("Travel dates")',
    'span:has-text("Travel date")',
    'button:has-text("Travel")',
    '[data-ui-name*="date"]',
    '[data-testid*="date"]',
    'input[placeholder*="date" i]',
]
CALENDAR_MAX_NAVIGATIONS = 24

TRAVELERS_OPEN_SELECTORS = [
    'text="Travelers"',
    'text="1 adult"',
    'text="2 adults"',
    'span:has-text("Travelers")',
    'span:has-text("adult")',
    'button:has-text("adult")',
    '[data-ui-name*="occupancy"]',
    '[data-testid*="occupancy"]',
    '[data-testid*="traveler"]',
]
ADULTS_PLUS_SELECTORS = ['[data-ui-name="button_occupancy_adults_plus"]', 'button[class*="add"]']
ADULTS_MINUS_SELECTORS = ['[data-ui-name="button_occupancy_adults_minus"]', 'button[class*="subtract"]']
TRAVELERS_DONE_SELECTORS = ['button:has-text("Done")']

DIRECT_FLIGHTS_SELECTORS = [
    'label:has-text("Direct flights only")',
    'span:has-text("Direct flights only")',
    'text="Direct flights only"',
    'input[type="checkbox"][name*="direct" i]',
    '[id*="direct" i]',
    '[data-testid*="direct"]',
    '[role="checkbox"]:has-text("Direct")',
    "text=/Direct/i",
]

SEARCH_BUTTON_SELECTORS = [
    'button:has-text("Explore")',
    'button:has-text("Search")',
    'button[type="submit"]',
    'input[type="submit"]',
    '[data-testid*="search"]',
    '[data-testid*="submit"]',
    '[data-ui-name*="search"]',
    "button.search",
    'button[class*="search" i]',
    'button[class*="submit" i]',
]

# Uber
UBER_URL = "https://m.uber.com/"
UBER_LOCATION_INPUTS = 'input[type="text"], input[role="combobox"]'
UBER_SUGGESTION_SELECTORS = [
    '[data-testid*="suggestion"]',
    '[role="option"]',
    'ul[role="listbox"] li',
    "ul li",
]
UBER_DROPOFF_LABEL_SELECTORS = [
    'text="Dropoff location"',
    'text="Where to?"',
    '[placeholder*="Dropoff" i]',
    '[placeholder*="Where" i]',
]
UBER_CONFIRM_SELECTORS = [
    'button:has-text("Save")',
    'button:has-text("Confirm")',
    'button:has-text("Done")',
    'button:has-text("Search")',
    'button:has-text("See prices")',
    'button:has-text("Request")',
    'button[type="submit"]',
    '[data-testid*="confirm"]',
    '[data-testid*="save"]',
]
UBER_PRIMARY_BUTTON_SELECTORS = ['button[class*="primary" i]', 'button[class*="submit" i]']

# Uber login detection
UBER_ACTIVITY_SELECTOR = 'text="Activity"'
UBER_ACCOUNT_SELECTOR = '[aria-label*="Account" i], [aria-label*="Profile" i], [data-testid*="account"]'
UBER_RIDE_TAB_SELECTOR = 'a[href*="/go/ride"], button:has-text("Ride")'
UBER_PICKUP_SELECTOR = '[data-testid="pickup-input"], input[placeholder*="Pickup" i]'
UBER_LOGIN_BUTTON_SELECTOR = (
    'button:has-text("Log in"), button:has-text("Sign up"), '
    'a:has-text("Log in"), a:has-text("Sign up"), button:has-text("Continue")'
)
UBER_AUTHENTICATED_URL_PARTS = ["/go/", "/looking", "/ride"]

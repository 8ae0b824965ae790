"""
Pytest configuration and fixtures
"""

import asyncio
from datetime import datetime, timezone

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeout

from salmon_scraper.models import DailyHarvestRecord, DistrictObservation, RiverObservation, TotalRunSummary
from salmon_scraper.storage import get_session_factory

DATE_SELECTOR = 'select[name="dateDropdown"]'
SUBMIT_SELECTOR = 'input[type="submit"][value="Go!"]'

CATCH_TABLE = {
    "text": "District Catch Daily Cumulative Escapement Daily Cumulative In-River Estimate Total Run",
    "rows": [
        [],
        ["Egegik", "40", "1,200", "20", "800", "0", "2,000"],
        ["Naknek/Kvichak", "10", "200", "5", "100", "0", "300"],
        ["Port Heiden", "1", "1", "1", "1", "1", "1"],
        ["Total", "100", "5,000", "50", "2,000", "0", "7,000"],
    ],
}

RIVER_TABLE = {
    "text": "Individual River Estimates River Escapement Daily Cumulative In-River",
    "rows": [
        [],
        ["Kvichak", "1,000", "20,000", "0"],
        ["Alagnak", "500", "8,000"],
        ["--", "1", "1", "1"],
    ],
}

DELIVERY_TABLE = {
    "text": "Sockeye per Drift Delivery District Sockeye",
    "rows": [
        [],
        ["Naknek-Kvichak", "812"],
        ["Egegik", "1,040"],
        ["Unknown", "5"],
    ],
}


class FakeElement:
    def __init__(self, page, selector):
        self.page = page
        self.selector = selector

    async def click(self):
        self.page.events.append("click")
        self.page.start_submit_request()


class FakePage:
    """Stands in for a Playwright page showing the harvest summary form."""

    def __init__(self, tables=None, options=(), present=None, goto_error=None, response_delay=0.05, hang=False):
        self.tables = list(tables or [])
        self.options = set(options)
        self.present = set(present) if present is not None else {DATE_SELECTOR, SUBMIT_SELECTOR}
        self.goto_error = goto_error
        self.response_delay = response_delay
        self.hang = hang
        self.listeners = {}
        self.events = []
        self.selected = None
        self.closed = False

    def on(self, event, handler):
        self.listeners.setdefault(event, []).append(handler)

    def remove_listener(self, event, handler):
        self.listeners.get(event, []).remove(handler)

    def _emit(self, event, request):
        for handler in list(self.listeners.get(event, [])):
            handler(request)

    def _finish_request(self, request):
        self.events.append("response")
        self._emit("requestfinished", request)

    def start_submit_request(self):
        request = object()
        self._emit("request", request)
        if not self.hang:
            asyncio.get_running_loop().call_later(self.response_delay, self._finish_request, request)

    async def goto(self, url, wait_until=None, timeout=None):
        self.events.append(("goto", wait_until))
        if self.goto_error is not None:
            raise self.goto_error

    async def wait_for_selector(self, selector, state=None, timeout=None):
        if selector in self.present:
            return FakeElement(self, selector)
        raise PlaywrightTimeout(f"Timeout {timeout}ms exceeded waiting for {selector}")

    async def query_selector(self, selector):
        if selector in self.present:
            return FakeElement(self, selector)
        return None

    async def select_option(self, selector, value=None, timeout=None):
        if value not in self.options:
            raise PlaywrightTimeout(f"Timeout {timeout}ms exceeded selecting {value}")
        self.selected = value
        return [value]

    async def wait_for_timeout(self, timeout):
        self.events.append(("settle", timeout))

    async def eval_on_selector_all(self, selector, expression):
        if selector == "select":
            return [{"name": "other", "id": "", "options": []}]
        return self.tables

    async def content(self):
        return "<html><body><table></table></body></html>"

    async def close(self):
        self.closed = True


def make_record(run_date="07-15-2025", catch_daily=100.0, districts=None, rivers=None, sockeye=None):
    if districts is None:
        districts = [
            DistrictObservation(
                id="naknek",
                name="Naknek-Kvichak",
                catch_daily=catch_daily,
                catch_cumulative=5_000,
                escapement_daily=50,
                escapement_cumulative=2_000,
                in_river_estimate=0,
                total_run=7_000,
            ),
            DistrictObservation(id="egegik", name="Egegik", catch_cumulative=1_200, escapement_cumulative=800),
        ]
    if rivers is None:
        rivers = [
            RiverObservation(name="Kvichak", escapement_daily=1_000, escapement_cumulative=20_000),
            RiverObservation(name="Alagnak", escapement_daily=500, escapement_cumulative=8_000),
        ]
    return DailyHarvestRecord(
        run_date=run_date,
        scraped_at=datetime(2025, 7, 15, 18, 30, tzinfo=timezone.utc),
        season=int(run_date[-4:]),
        total_run_summary=TotalRunSummary(
            catch_daily=catch_daily,
            catch_cumulative=6_200,
            escapement_daily=50,
            escapement_cumulative=2_800,
            total_run=9_000,
        ),
        districts=districts,
        rivers=rivers,
        sockeye_per_delivery={"naknek": 812.0, "egegik": 1_040.0} if sockeye is None else sockeye,
    )


def with_duplicate_rivers(record):
    """Copy of `record` (unvalidated) whose river rows collide on the unique constraint."""
    return record.model_copy(update={"rivers": [RiverObservation(name="Kvichak"), RiverObservation(name="Kvichak")]})


@pytest.fixture
def session_factory(tmp_path):
    return get_session_factory(str(tmp_path / "data" / "harvest.db"))


@pytest.fixture
def db_session(session_factory):
    with session_factory() as session:
        yield session

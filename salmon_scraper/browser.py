"""
Playwright utilities used by the harvest extractor.

The functions here wrap launching a browser session and the small set of
page interactions the harvest page needs (waiting for controls, probing
fallback selectors, collecting table text). The actual selectors come from
`selectors.py`.
"""

from __future__ import annotations

import asyncio
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Dict, List, Optional, Sequence, Set

from playwright.async_api import (
    Browser,
    BrowserContext,
    ElementHandle,
    Page,
    Request,
    TimeoutError as PlaywrightTimeout,
    async_playwright,
)

from .parser import RawTable

SYSTEM_CHROMIUM_PATHS = (
    "/usr/bin/chromium",
    "/usr/bin/chromium-browser",
    "/usr/bin/google-chrome",
    "/usr/bin/google-chrome-stable",
)

# Only direct rows/cells of each table, so layout tables that wrap the data
# tables do not swallow their rows.
COLLECT_TABLES_JS = """
(tables) => tables.map((table) => ({
    text: table.textContent || "",
    rows: Array.from(table.rows).map((row) =>
        Array.from(row.cells)
            .filter((cell) => cell.tagName === "TD")
            .map((cell) => (cell.textContent || "").trim())
    ),
}))
"""

DESCRIBE_SELECTS_JS = """
(selects) => selects.map((select) => ({
    name: select.name,
    id: select.id,
    options: Array.from(select.options).slice(0, 5).map((option) => option.value),
}))
"""


@dataclass
class BrowserConfig:
    headless: bool = True
    timeout_ms: int = 15_000
    navigation_timeout_ms: int = 30_000
    control_timeout_ms: int = 15_000
    network_idle_timeout_ms: int = 30_000
    network_quiet_ms: int = 500
    settle_ms: int = 5_000


def _system_chromium() -> Optional[str]:
    for path in SYSTEM_CHROMIUM_PATHS:
        if os.path.exists(path):
            return path
    return None


@asynccontextmanager
async def browser_page(config: BrowserConfig) -> AsyncIterator[Page]:
    """
    Context manager yielding a single Playwright page.

    Closes all resources automatically, even if an exception bubbles up.
    """
    playwright = await async_playwright().start()
    browser: Optional[Browser] = None
    context: Optional[BrowserContext] = None
    try:
        browser = await playwright.chromium.launch(
            headless=config.headless,
            args=[
                "--no-sandbox",
                "--disable-dev-shm-usage",
                "--disable-gpu",
                "--disable-extensions",
            ],
            executable_path=_system_chromium(),  # None uses Playwright's bundled build
        )
        context = await browser.new_context(
            user_agent="Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
            viewport={"width": 1280, "height": 800},
            locale="en-US",
            timezone_id="America/Anchorage",
        )
        page = await context.new_page()
        page.set_default_timeout(config.timeout_ms)
        yield page
    finally:
        if context is not None:
            await context.close()
        if browser is not None:
            await browser.close()
        await playwright.stop()


@asynccontextmanager
async def page_session(config: BrowserConfig, page: Optional[Page] = None) -> AsyncIterator[Page]:
    """
    Yield `page` when the caller lends one, otherwise own a fresh browser.

    A borrowed page is never closed here; an owned one is always closed.
    """
    if page is not None:
        yield page
        return
    async with browser_page(config) as owned:
        yield owned


async def first_match(page: Page, selectors: Sequence[str]) -> Optional[str]:
    """Return the first selector that currently matches an element."""
    for selector in selectors:
        if await page.query_selector(selector) is not None:
            return selector
    return None


async def wait_for_any(page: Page, primary: str, fallbacks: Sequence[str], timeout_ms: int) -> Optional[str]:
    """
    Wait for `primary` to attach; if it never does, probe the fallbacks.

    Returns the selector that matched, or None.
    """
    try:
        await page.wait_for_selector(primary, state="attached", timeout=timeout_ms)
        return primary
    except PlaywrightTimeout:
        return await first_match(page, fallbacks)


async def find_element(page: Page, primary: str, fallbacks: Sequence[str]) -> Optional[ElementHandle]:
    for selector in [primary, *fallbacks]:
        element = await page.query_selector(selector)
        if element is not None:
            return element
    return None


async def _until_quiet(in_flight: Set[Request], changed: asyncio.Event, quiet_seconds: float) -> None:
    while True:
        changed.clear()
        if in_flight:
            await changed.wait()
            continue
        try:
            await asyncio.wait_for(changed.wait(), quiet_seconds)
        except asyncio.TimeoutError:
            return


async def wait_for_network_idle(page: Page, timeout_ms: int, quiet_ms: int = 500) -> None:
    """
    Wait until no request has been in flight for `quiet_ms`.

    `page.wait_for_load_state("networkidle")` returns at once for a document
    that already reached that state, so it cannot see traffic caused by a
    later form submission. This watches the page's request events from the
    moment it is called instead, whether the submission navigates or only
    updates the current document.

    Raises Playwright's TimeoutError when the page stays busy past `timeout_ms`.
    """
    in_flight: Set[Request] = set()
    changed = asyncio.Event()

    def started(request: Request) -> None:
        in_flight.add(request)
        changed.set()

    def settled(request: Request) -> None:
        in_flight.discard(request)
        changed.set()

    page.on("request", started)
    page.on("requestfinished", settled)
    page.on("requestfailed", settled)
    try:
        await asyncio.wait_for(_until_quiet(in_flight, changed, quiet_ms / 1000), timeout_ms / 1000)
    except asyncio.TimeoutError as exc:
        raise PlaywrightTimeout(
            f"Timeout {timeout_ms}ms exceeded waiting for network idle ({len(in_flight)} requests pending)"
        ) from exc
    finally:
        page.remove_listener("request", started)
        page.remove_listener("requestfinished", settled)
        page.remove_listener("requestfailed", settled)


async def describe_selects(page: Page) -> List[Dict[str, object]]:
    """Summaries of every <select> on the page, for selector troubleshooting."""
    return await page.eval_on_selector_all("select", DESCRIBE_SELECTS_JS)


async def collect_tables(page: Page, selector: str = "table") -> List[RawTable]:
    payload = await page.eval_on_selector_all(selector, COLLECT_TABLES_JS)
    tables: List[RawTable] = []
    for item in payload or []:
        if not isinstance(item, dict):
            continue
        rows = [[str(cell) for cell in row] for row in item.get("rows") or [] if isinstance(row, list)]
        tables.append(RawTable(text=str(item.get("text") or ""), rows=rows))
    return tables

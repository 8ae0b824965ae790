"""
Per-date extraction from the ADF&G harvest summary page.

The page only renders a day's tables after that date is picked in a
dropdown and the form is submitted, so every extraction replays the same
interaction: navigate, locate the dropdown, select the date, submit, let the
page settle, then read every table. Any failed step aborts the date and no
partial record is returned.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo

from playwright.async_api import Error as PlaywrightError, Page, TimeoutError as PlaywrightTimeout

from .browser import (
    BrowserConfig,
    collect_tables,
    describe_selects,
    find_element,
    page_session,
    wait_for_any,
    wait_for_network_idle,
)
from .models import DailyHarvestRecord
from .parser import build_record
from .seasons import format_run_date
from .selectors import PageSelectors, get_default_page

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "America/Anchorage"


class ExtractionError(RuntimeError):
    """Raised when one date's page interaction cannot complete."""

    def __init__(self, message: str, suggestion: str):
        super().__init__(message)
        self.suggestion = suggestion


class NavigationTimeout(ExtractionError):
    pass


class NavigationFailed(ExtractionError):
    pass


class ControlNotFound(ExtractionError):
    pass


class SubmitControlNotFound(ExtractionError):
    pass


class DateNotAvailable(ExtractionError):
    pass


class HarvestExtractor:
    """
    Drive the harvest page for one date at a time.

    Pass `page` to reuse an existing browser page across dates; the
    extractor never closes a page it did not open. Without one, each call
    launches and tears down its own browser.
    """

    def __init__(
        self,
        page_config: Optional[PageSelectors] = None,
        browser_config: Optional[BrowserConfig] = None,
        page: Optional[Page] = None,
        snapshot_dir: Optional[Path] = None,
        tz_name: str = DEFAULT_TIMEZONE,
    ):
        self.page_config = page_config or get_default_page()
        self.browser_config = browser_config or BrowserConfig()
        self.page = page
        self.snapshot_dir = Path(snapshot_dir) if snapshot_dir else None
        self.tz = ZoneInfo(tz_name)

    async def extract(self, target_date: date) -> DailyHarvestRecord:
        run_date = format_run_date(target_date)
        logger.info("Scraping harvest data for %s", run_date)
        async with page_session(self.browser_config, self.page) as page:
            await self._navigate(page)
            await self._select_date(page, run_date)
            await self._submit(page)
            await page.wait_for_timeout(self.browser_config.settle_ms)

            tables = await collect_tables(page, self.page_config.tables)
            if self.snapshot_dir is not None:
                await self._save_snapshot(page, run_date)

        record = build_record(tables, target_date, scraped_at=datetime.now(self.tz))
        logger.info(
            "Parsed %s: tables=%s districts=%s rivers=%s",
            run_date,
            len(tables),
            len(record.districts),
            len(record.rivers),
        )
        return record

    async def _navigate(self, page: Page) -> None:
        try:
            await page.goto(
                self.page_config.url,
                wait_until="networkidle",
                timeout=self.browser_config.navigation_timeout_ms,
            )
        except PlaywrightTimeout as exc:
            raise NavigationTimeout(
                f"Page did not settle within {self.browser_config.navigation_timeout_ms} ms: {self.page_config.url}",
                "Check that the ADF&G site is reachable, or raise playwright.navigation_timeout_ms.",
            ) from exc
        except PlaywrightError as exc:
            raise NavigationFailed(
                f"Could not load {self.page_config.url}: {exc.message}",
                "Check network access and DNS for the ADF&G site, then retry.",
            ) from exc

    async def _select_date(self, page: Page, run_date: str) -> None:
        form = self.page_config.form
        selector = await wait_for_any(
            page,
            form.date_control,
            form.date_control_fallbacks,
            self.browser_config.control_timeout_ms,
        )
        if selector is None:
            logger.warning("Available select elements: %s", await describe_selects(page))
            raise ControlNotFound(
                f"Date dropdown not found: {form.date_control}",
                "The page layout has probably changed; update FormSelectors.date_control.",
            )
        if selector != form.date_control:
            logger.info("Using fallback date selector: %s", selector)

        try:
            selected = await page.select_option(
                selector,
                value=run_date,
                timeout=self.browser_config.control_timeout_ms,
            )
        except PlaywrightTimeout as exc:
            raise DateNotAvailable(
                f"Date {run_date} is not offered by the dropdown",
                "The site only lists dates it has published; skip or retry this date later.",
            ) from exc
        if run_date not in (selected or []):
            raise DateNotAvailable(
                f"Dropdown did not accept {run_date} (selected: {selected})",
                "The site only lists dates it has published; skip or retry this date later.",
            )

    async def _submit(self, page: Page) -> None:
        form = self.page_config.form
        button = await find_element(page, form.submit_control, form.submit_fallbacks)
        if button is None:
            raise SubmitControlNotFound(
                f"Submit control not found: {form.submit_control}",
                "The page layout has probably changed; update FormSelectors.submit_control.",
            )
        # The idle watcher must be listening before the click sends its request.
        network_idle = asyncio.ensure_future(
            wait_for_network_idle(
                page,
                self.browser_config.network_idle_timeout_ms,
                self.browser_config.network_quiet_ms,
            )
        )
        await asyncio.sleep(0)
        try:
            await button.click()
            await network_idle
        except PlaywrightTimeout as exc:
            raise NavigationTimeout(
                f"Page did not settle after submitting within {self.browser_config.network_idle_timeout_ms} ms",
                "The site may be slow; retry later or raise playwright.network_idle_timeout_ms.",
            ) from exc
        finally:
            network_idle.cancel()

    async def _save_snapshot(self, page: Page, run_date: str) -> Path:
        """Persist the rendered HTML for auditing."""
        self.snapshot_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now(self.tz).strftime("%Y%m%dT%H%M%S")
        snapshot_path = self.snapshot_dir / f"{run_date}_{timestamp}.html"
        snapshot_path.write_text(await page.content(), encoding="utf-8")
        return snapshot_path

"""
High-level orchestration for scraping runs.

The job loads configuration, drives `HarvestExtractor` over a list of dates
one at a time, and persists every successful record with the storage layer.
A failed date is logged and recorded but never stops the run.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Sequence

import yaml
from sqlalchemy.orm import Session

from .browser import BrowserConfig, browser_page
from .extractor import DEFAULT_TIMEZONE, HarvestExtractor
from .models import DailyHarvestRecord, summarize_record
from .seasons import Season, format_run_date
from .selectors import get_default_page
from .storage import get_session_factory, save_record

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SETTINGS_PATH = PROJECT_ROOT / "config" / "settings.yaml"

DEFAULT_DELAY_SECONDS = 2.0


@dataclass
class DateFailure:
    run_date: str
    error: str


@dataclass
class BackfillReport:
    successes: int = 0
    failures: List[DateFailure] = field(default_factory=list)
    cancelled: bool = False
    database_path: str = ""

    @property
    def attempted(self) -> int:
        return self.successes + len(self.failures)


def load_settings(settings_path: Path = SETTINGS_PATH) -> Dict[str, object]:
    with Path(settings_path).open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle)["default"]


def browser_config_from(settings: Dict[str, object]) -> BrowserConfig:
    playwright_cfg = settings.get("playwright") or {}
    defaults = BrowserConfig()
    return BrowserConfig(
        headless=bool(playwright_cfg.get("headless", defaults.headless)),
        timeout_ms=int(playwright_cfg.get("timeout_ms", defaults.timeout_ms)),
        navigation_timeout_ms=int(playwright_cfg.get("navigation_timeout_ms", defaults.navigation_timeout_ms)),
        control_timeout_ms=int(playwright_cfg.get("control_timeout_ms", defaults.control_timeout_ms)),
        network_idle_timeout_ms=int(playwright_cfg.get("network_idle_timeout_ms", defaults.network_idle_timeout_ms)),
        network_quiet_ms=int(playwright_cfg.get("network_quiet_ms", defaults.network_quiet_ms)),
        settle_ms=int(playwright_cfg.get("settle_ms", defaults.settle_ms)),
    )


def seasons_from(settings: Dict[str, object]) -> List[Season]:
    return [Season(**item) for item in settings.get("seasons") or []]


def database_path_from(settings: Dict[str, object]) -> Path:
    return PROJECT_ROOT / settings.get("database_path", "data/bristol_bay.db")


def _snapshot_dir_from(settings: Dict[str, object]) -> Optional[Path]:
    snapshot_dir = settings.get("snapshot_dir")
    return PROJECT_ROOT / snapshot_dir if snapshot_dir else None


class BackfillJob:
    """
    Sequentially scrape and store a list of dates.

    Requests are paced by `delay_seconds` between consecutive dates whether
    the previous date succeeded or not. Setting `cancel` stops the run
    before the next date (and cuts short a pending delay).
    """

    def __init__(
        self,
        extractor: HarvestExtractor,
        session: Session,
        delay_seconds: float = DEFAULT_DELAY_SECONDS,
        cancel: Optional[asyncio.Event] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.extractor = extractor
        self.session = session
        self.delay_seconds = delay_seconds
        self.cancel = cancel or asyncio.Event()
        self._sleep = sleep

    async def run(self, dates: Sequence[date]) -> BackfillReport:
        report = BackfillReport()
        total = len(dates)
        for index, target_date in enumerate(dates, start=1):
            if index > 1:
                await self._pause()
            if self.cancel.is_set():
                report.cancelled = True
                logger.warning("Run cancelled with %s dates remaining", total - index + 1)
                break

            run_date = format_run_date(target_date)
            logger.info("[%s/%s] Scraping %s", index, total, run_date)
            try:
                record = await self.extractor.extract(target_date)
                save_record(self.session, record)
            except Exception as exc:
                report.failures.append(DateFailure(run_date=run_date, error=str(exc)))
                logger.error("Failed %s: %s", run_date, exc)
                continue

            report.successes += 1
            summary = summarize_record(record)
            if record.total_run_summary.total_run > 0:
                logger.info("Saved %s: total run %s", run_date, f"{record.total_run_summary.total_run:,.0f}")
            else:
                logger.info("Saved %s: no fishing activity (districts=%s)", run_date, summary.district_count)

        log_report(report)
        return report

    async def run_seasons(self, seasons: Iterable[Season]) -> BackfillReport:
        dates: List[date] = []
        for season in seasons:
            season_dates = season.dates()
            logger.info("Season %s: %s to %s (%s days)", season.name, season.start, season.end, len(season_dates))
            dates.extend(season_dates)
        return await self.run(dates)

    async def _pause(self) -> None:
        if self.delay_seconds <= 0:
            return
        sleeper = asyncio.ensure_future(self._sleep(self.delay_seconds))
        waiter = asyncio.ensure_future(self.cancel.wait())
        try:
            await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (sleeper, waiter):
                task.cancel()


def log_report(report: BackfillReport) -> None:
    logger.info("Backfill finished: succeeded=%s failed=%s", report.successes, len(report.failures))
    for failure in report.failures:
        logger.info("  - %s: %s", failure.run_date, failure.error)


async def run_backfill(
    dates: Sequence[date],
    settings: Optional[Dict[str, object]] = None,
    cancel: Optional[asyncio.Event] = None,
) -> BackfillReport:
    """
    Scrape `dates` in order with the configured browser and database.

    With `backfill.reuse_browser` set, one browser page serves every date;
    otherwise each date launches its own browser.
    """
    settings = settings if settings is not None else load_settings()
    backfill_cfg = settings.get("backfill") or {}
    browser_cfg = browser_config_from(settings)
    db_path = database_path_from(settings)
    SessionFactory = get_session_factory(str(db_path))

    def make_job(session: Session, page=None) -> BackfillJob:
        extractor = HarvestExtractor(
            page_config=get_default_page(),
            browser_config=browser_cfg,
            page=page,
            snapshot_dir=_snapshot_dir_from(settings),
            tz_name=settings.get("timezone", DEFAULT_TIMEZONE),
        )
        return BackfillJob(
            extractor,
            session,
            delay_seconds=float(backfill_cfg.get("delay_seconds", DEFAULT_DELAY_SECONDS)),
            cancel=cancel,
        )

    logger.info("Backfilling %s dates into %s", len(dates), db_path)
    with SessionFactory() as session:
        if backfill_cfg.get("reuse_browser", True):
            async with browser_page(browser_cfg) as page:
                report = await make_job(session, page).run(dates)
        else:
            report = await make_job(session).run(dates)
    report.database_path = str(db_path)
    return report


async def scrape_single_date(
    target_date: date,
    settings: Optional[Dict[str, object]] = None,
    persist: bool = True,
) -> DailyHarvestRecord:
    """
    Scrape one date and (optionally) store it; errors propagate to the caller.
    """
    settings = settings if settings is not None else load_settings()
    extractor = HarvestExtractor(
        page_config=get_default_page(),
        browser_config=browser_config_from(settings),
        snapshot_dir=_snapshot_dir_from(settings),
        tz_name=settings.get("timezone", DEFAULT_TIMEZONE),
    )
    record = await extractor.extract(target_date)
    if persist:
        SessionFactory = get_session_factory(str(database_path_from(settings)))
        with SessionFactory() as session:
            save_record(session, record)
    return record

"""Entry point for scraping and storing a single run date."""

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from zoneinfo import ZoneInfo

from salmon_scraper.extractor import ExtractionError
from salmon_scraper.job import database_path_from, load_settings, scrape_single_date
from salmon_scraper.models import summarize_record
from salmon_scraper.seasons import coerce_date


def _date_arg(text):
    try:
        return coerce_date(text)
    except (ValueError, OverflowError) as exc:
        raise argparse.ArgumentTypeError(f"not a date: {text!r}") from exc


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Scrape one day of Bristol Bay harvest data")
    parser.add_argument("date", nargs="?", type=_date_arg, help="Run date (MM-DD-YYYY or YYYY-MM-DD); defaults to today")
    parser.add_argument("--dry-run", action="store_true", help="Scrape and print without saving")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    settings = load_settings()
    if args.date:
        target_date = args.date
    else:
        target_date = datetime.now(ZoneInfo(settings.get("timezone", "America/Anchorage"))).date()

    try:
        record = asyncio.run(scrape_single_date(target_date, settings, persist=not args.dry_run))
    except ExtractionError as exc:
        logging.error("Scrape failed: %s", exc)
        logging.info("Suggestion: %s", exc.suggestion)
        return 1

    stats = summarize_record(record)
    totals = record.total_run_summary
    print(f"Run date: {record.run_date}")
    print(f"Total run (page):          {totals.total_run:,.0f}")
    print(f"Catch cumulative:          {stats.total_catch:,.0f}")
    print(f"Escapement cumulative:     {stats.total_escapement:,.0f}")
    print(f"Districts / rivers:        {stats.district_count} / {stats.river_count}")
    if stats.top_district is not None:
        print(f"Top district:              {stats.top_district.name} ({stats.top_district.catch_cumulative:,.0f})")
    for district_id, ratio in record.sockeye_per_delivery.items():
        print(f"Sockeye per delivery {district_id:<10} {ratio:,.0f}")
    if not args.dry_run:
        print(f"SQLite path: {database_path_from(settings)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())

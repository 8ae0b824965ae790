"""Entry point for season backfills, date patches and maintenance purges."""

import argparse
import asyncio
import logging
import sys

from salmon_scraper.job import database_path_from, load_settings, run_backfill, seasons_from
from salmon_scraper.seasons import coerce_date, enumerate_dates
from salmon_scraper.storage import delete_records, get_session_factory


def _date_arg(text):
    try:
        return coerce_date(text)
    except (ValueError, OverflowError) as exc:
        raise argparse.ArgumentTypeError(f"not a date: {text!r}") from exc


def _parse_args(argv):
    parser = argparse.ArgumentParser(description="Backfill Bristol Bay harvest data")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--season", action="append", default=[], help="Configured season name (repeatable)")
    mode.add_argument("--dates", nargs="+", type=_date_arg, help="Explicit run dates to (re)scrape, in any order")
    mode.add_argument("--purge", action="store_true", help="Delete stored dates in --start/--end instead of scraping")
    parser.add_argument("--start", type=_date_arg, help="Range start (MM-DD-YYYY or YYYY-MM-DD)")
    parser.add_argument("--end", type=_date_arg, help="Range end (MM-DD-YYYY or YYYY-MM-DD)")
    return parser.parse_args(argv)


def _select_seasons(settings, names):
    seasons = seasons_from(settings)
    if not names:
        return seasons
    by_name = {season.name: season for season in seasons}
    missing = [name for name in names if name not in by_name]
    if missing:
        raise SystemExit(f"Unknown season(s): {', '.join(missing)}; configured: {', '.join(by_name)}")
    return [by_name[name] for name in names]


def main(argv=None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    settings = load_settings()

    if args.purge:
        if not (args.start and args.end):
            raise SystemExit("--purge requires --start and --end")
        SessionFactory = get_session_factory(str(database_path_from(settings)))
        with SessionFactory() as session:
            deleted = delete_records(session, args.start, args.end)
        print(f"Deleted {deleted} stored dates")
        return 0

    if args.dates:
        dates = args.dates
    elif args.start or args.end:
        if not (args.start and args.end):
            raise SystemExit("--start and --end must be given together")
        dates = enumerate_dates(args.start, args.end)
    else:
        seasons = _select_seasons(settings, args.season)
        dates = [day for season in seasons for day in season.dates()]
        for season in seasons:
            logging.info("Season %s: %s to %s", season.name, season.start, season.end)

    delay = float((settings.get("backfill") or {}).get("delay_seconds", 2))
    logging.info("Found %s dates; estimated time %.1f minutes", len(dates), len(dates) * delay / 60)
    report = asyncio.run(run_backfill(dates, settings))

    print(f"Successfully scraped: {report.successes} days")
    print(f"Failed: {len(report.failures)} days")
    for failure in report.failures:
        print(f"  - {failure.run_date}: {failure.error}")
    print(f"SQLite path: {report.database_path}")
    return 1 if report.failures else 0


if __name__ == "__main__":
    sys.exit(main())

"""
Calendar helpers for season backfills.

Run dates travel through the system as `MM-DD-YYYY` strings because that is
the exact value the harvest page's date dropdown expects.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import List, Union

from dateutil import parser as date_parser
from pydantic import BaseModel, Field, model_validator

RUN_DATE_FORMAT = "%m-%d-%Y"


def format_run_date(value: date) -> str:
    return value.strftime(RUN_DATE_FORMAT)


def parse_run_date(value: str) -> date:
    """Parse a canonical `MM-DD-YYYY` string; raises ValueError otherwise."""
    return datetime.strptime(value.strip(), RUN_DATE_FORMAT).date()


def coerce_date(value: Union[str, date]) -> date:
    """
    Accept a date, an ISO `YYYY-MM-DD` string or a `MM-DD-YYYY` string.

    Used for command line input where either form is common.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = value.strip()
    try:
        return parse_run_date(text)
    except ValueError:
        pass
    return date_parser.parse(text).date()


def enumerate_dates(start: date, end: date) -> List[date]:
    """Every calendar day from start to end inclusive; empty if start > end."""
    if start > end:
        return []
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


class Season(BaseModel):
    """A fixed fishing window, e.g. the 2025 Bristol Bay sockeye run."""

    name: str = Field(..., description="Label used on the command line, usually the year.")
    start: date
    end: date

    @model_validator(mode="after")
    def _check_bounds(self) -> "Season":
        if self.start > self.end:
            raise ValueError(f"season {self.name} starts after it ends")
        return self

    def dates(self) -> List[date]:
        return enumerate_dates(self.start, self.end)

"""
Utilities for turning the harvest page's tables into a `DailyHarvestRecord`.

The functions here focus on:
    - Normalizing numeric cell text (thousands separators, blanks, dashes).
    - Classifying each rendered table by the keywords in its text.
    - Parsing the rows of each known table kind into typed observations.

Everything in this module is pure; the browser work lives in `extractor.py`.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional, Sequence, Tuple

from .districts import canonicalize_district, district_name
from .models import DailyHarvestRecord, DistrictObservation, RiverObservation, TotalRunSummary
from .seasons import format_run_date

logger = logging.getLogger(__name__)

_NON_NUMERIC_RE = re.compile(r"[^0-9.\-]")

CATCH_ESCAPEMENT_COLUMNS = 7
RIVER_MIN_COLUMNS = 3
DELIVERY_MIN_COLUMNS = 2

# First-cell labels of a river-table header row laid out with <td> cells.
RIVER_HEADER_LABELS = {"River", "Rivers", "River System", "Escapement"}


class TableKind(enum.Enum):
    CATCH_ESCAPEMENT = "catch_escapement"
    RIVER = "river"
    SOCKEYE_DELIVERY = "sockeye_delivery"
    UNKNOWN = "unknown"


@dataclass
class RawTable:
    """
    Plain-text snapshot of one `<table>` element.

    `text` is the table's full text content, used only for classification.
    `rows` holds the stripped text of each row's data cells (`<td>`), so
    header rows built from `<th>` cells arrive as empty lists.
    """

    text: str
    rows: List[List[str]] = field(default_factory=list)


def parse_number(value: Optional[str]) -> float:
    """
    Convert cell text such as "1,234,567" into a float.

    Anything other than digits, '.' and '-' is dropped first. Blank, dash
    and otherwise unparseable cells become 0.0, so a missing value cannot be
    told apart from a real zero.
    """
    if not value:
        return 0.0
    cleaned = _NON_NUMERIC_RE.sub("", str(value))
    try:
        return float(cleaned)
    except ValueError:
        return 0.0


def classify_table(text: str) -> TableKind:
    if "District" in text and "Catch" in text and "Escapement" in text:
        return TableKind.CATCH_ESCAPEMENT
    if "River" in text and "Escapement" in text and "District" not in text:
        return TableKind.RIVER
    if "Sockeye" in text and ("Delivery" in text or "Drift" in text):
        return TableKind.SOCKEYE_DELIVERY
    return TableKind.UNKNOWN


def _run_totals(cells: Sequence[str]) -> Dict[str, float]:
    return {
        "catch_daily": parse_number(cells[1]),
        "catch_cumulative": parse_number(cells[2]),
        "escapement_daily": parse_number(cells[3]),
        "escapement_cumulative": parse_number(cells[4]),
        "in_river_estimate": parse_number(cells[5]),
        "total_run": parse_number(cells[6]),
    }


def parse_catch_escapement_rows(
    rows: Sequence[Sequence[str]],
) -> Tuple[Optional[TotalRunSummary], List[DistrictObservation]]:
    """
    Split the catch/escapement table into its total row and district rows.

    Rows whose label does not map to a known district are dropped, as are
    repeats of a district already seen.
    """
    totals: Optional[TotalRunSummary] = None
    districts: List[DistrictObservation] = []
    seen = set()

    for cells in rows:
        if len(cells) < CATCH_ESCAPEMENT_COLUMNS:
            continue
        label = cells[0].strip()
        if not label:
            continue
        if "total" in label.lower():
            totals = TotalRunSummary(**_run_totals(cells))
            continue
        if "District" in label:
            continue

        district_id = canonicalize_district(label)
        if district_id is None:
            logger.debug("Skipping unrecognized district row: %s", label)
            continue
        if district_id in seen:
            logger.debug("Skipping repeated district row: %s", label)
            continue
        seen.add(district_id)
        districts.append(
            DistrictObservation(id=district_id, name=district_name(district_id), **_run_totals(cells))
        )
    return totals, districts


def parse_river_rows(rows: Sequence[Sequence[str]]) -> List[RiverObservation]:
    rivers: List[RiverObservation] = []
    seen = set()
    for cells in rows:
        if len(cells) < RIVER_MIN_COLUMNS:
            continue
        name = cells[0].strip()
        if len(name) <= 2 or name in RIVER_HEADER_LABELS:
            continue
        if name in seen:
            continue
        seen.add(name)
        rivers.append(
            RiverObservation(
                name=name,
                escapement_daily=parse_number(cells[1]),
                escapement_cumulative=parse_number(cells[2]),
                in_river_estimate=parse_number(cells[3]) if len(cells) > 3 else 0.0,
            )
        )
    return rivers


def parse_delivery_rows(rows: Sequence[Sequence[str]]) -> Dict[str, float]:
    ratios: Dict[str, float] = {}
    for cells in rows:
        if len(cells) < DELIVERY_MIN_COLUMNS:
            continue
        district_id = canonicalize_district(cells[0])
        if district_id is None:
            continue
        ratios[district_id] = parse_number(cells[1])
    return ratios


def build_record(tables: Sequence[RawTable], target_date: date, scraped_at: datetime) -> DailyHarvestRecord:
    """
    Assemble a record from every table on the settled page.

    The first table of each kind that yields rows is used; later tables of
    the same kind are ignored. A catch/escapement table holding only a
    total row does not count: scanning continues until district rows turn
    up, keeping the earlier totals if the later table has none.
    `run_date` and `season` always come from `target_date`, never from
    the page.
    """
    totals: Optional[TotalRunSummary] = None
    districts: List[DistrictObservation] = []
    rivers: List[RiverObservation] = []
    ratios: Dict[str, float] = {}

    for table in tables:
        kind = classify_table(table.text)
        if kind is TableKind.CATCH_ESCAPEMENT and not districts:
            table_totals, districts = parse_catch_escapement_rows(table.rows)
            totals = table_totals or totals
        elif kind is TableKind.RIVER and not rivers:
            rivers = parse_river_rows(table.rows)
        elif kind is TableKind.SOCKEYE_DELIVERY and not ratios:
            ratios = parse_delivery_rows(table.rows)

    return DailyHarvestRecord(
        run_date=format_run_date(target_date),
        scraped_at=scraped_at,
        season=target_date.year,
        total_run_summary=totals or TotalRunSummary(),
        districts=districts,
        rivers=rivers,
        sockeye_per_delivery=ratios,
    )

"""
Typed records produced by the extractor and stored by `storage.py`.

The JSON form of a record (what lands in `daily_summaries.data_json`) uses
camelCase keys so the dashboard can read it without a translation step.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .seasons import format_run_date, parse_run_date


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TotalRunSummary(_CamelModel):
    catch_daily: float = 0
    catch_cumulative: float = 0
    escapement_daily: float = 0
    escapement_cumulative: float = 0
    in_river_estimate: float = 0
    total_run: float = 0


class DistrictObservation(TotalRunSummary):
    id: str
    name: str


class RiverObservation(_CamelModel):
    name: str
    escapement_daily: float = 0
    escapement_cumulative: float = 0
    in_river_estimate: float = 0


class DailyHarvestRecord(_CamelModel):
    """
    One scraped day of harvest data.

    Numeric fields default to 0; the source page does not distinguish a
    blank cell from a real zero.
    """

    run_date: str
    scraped_at: datetime
    season: int
    total_run_summary: TotalRunSummary = Field(default_factory=TotalRunSummary)
    districts: List[DistrictObservation] = Field(default_factory=list)
    rivers: List[RiverObservation] = Field(default_factory=list)
    sockeye_per_delivery: Dict[str, float] = Field(default_factory=dict)

    @field_validator("run_date")
    @classmethod
    def _canonical_run_date(cls, value: str) -> str:
        if format_run_date(parse_run_date(value)) != value:
            raise ValueError(f"run date must be MM-DD-YYYY: {value!r}")
        return value

    @field_validator("districts")
    @classmethod
    def _unique_districts(cls, value: List[DistrictObservation]) -> List[DistrictObservation]:
        seen = set()
        for district in value:
            if district.id in seen:
                raise ValueError(f"duplicate district observation: {district.id}")
            seen.add(district.id)
        return value

    @field_validator("rivers")
    @classmethod
    def _unique_rivers(cls, value: List[RiverObservation]) -> List[RiverObservation]:
        names = [river.name for river in value]
        if len(names) != len(set(names)):
            raise ValueError(f"duplicate river observation in {names}")
        return value

    @model_validator(mode="after")
    def _season_matches_run_date(self) -> "DailyHarvestRecord":
        year = parse_run_date(self.run_date).year
        if self.season != year:
            raise ValueError(f"season {self.season} does not match run date {self.run_date}")
        return self

    def to_json(self) -> str:
        """Serialized copy stored alongside the summary row (sockeye data lives in its own table)."""
        return self.model_dump_json(by_alias=True, exclude={"sockeye_per_delivery"})


@dataclass
class HarvestSummary:
    total_catch: float
    total_escapement: float
    total_run: float
    district_count: int
    river_count: int
    top_district: Optional[DistrictObservation]


def summarize_record(record: DailyHarvestRecord) -> HarvestSummary:
    total_catch = sum(d.catch_cumulative for d in record.districts)
    total_escapement = sum(d.escapement_cumulative for d in record.districts)
    top = max(record.districts, key=lambda d: d.catch_cumulative, default=None)
    if top is not None and top.catch_cumulative <= 0:
        top = None
    return HarvestSummary(
        total_catch=total_catch,
        total_escapement=total_escapement,
        total_run=total_catch + total_escapement,
        district_count=len(record.districts),
        river_count=len(record.rivers),
        top_district=top,
    )

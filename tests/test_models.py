import json
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from conftest import make_record
from salmon_scraper.models import DailyHarvestRecord, DistrictObservation, RiverObservation, summarize_record

SCRAPED_AT = datetime(2025, 7, 15, tzinfo=timezone.utc)


def test_season_must_match_run_date_year():
    with pytest.raises(ValidationError):
        DailyHarvestRecord(run_date="07-15-2025", scraped_at=SCRAPED_AT, season=2024)


@pytest.mark.parametrize("run_date", ["2025-07-15", "7-15-2025", "07/15/2025"])
def test_run_date_must_be_canonical(run_date):
    with pytest.raises(ValidationError):
        DailyHarvestRecord(run_date=run_date, scraped_at=SCRAPED_AT, season=2025)


def test_duplicate_district_ids_are_rejected():
    district = DistrictObservation(id="egegik", name="Egegik")
    with pytest.raises(ValidationError):
        DailyHarvestRecord(run_date="07-15-2025", scraped_at=SCRAPED_AT, season=2025, districts=[district, district])


def test_duplicate_river_names_are_rejected():
    river = RiverObservation(name="Kvichak")
    with pytest.raises(ValidationError):
        DailyHarvestRecord(run_date="07-15-2025", scraped_at=SCRAPED_AT, season=2025, rivers=[river, river])


def test_json_uses_camel_case_and_omits_sockeye():
    payload = json.loads(make_record().to_json())

    assert payload["runDate"] == "07-15-2025"
    assert payload["totalRunSummary"]["catchDaily"] == 100
    assert payload["districts"][0]["inRiverEstimate"] == 0
    assert "sockeyePerDelivery" not in payload


def test_summarize_record():
    stats = summarize_record(make_record())

    assert stats.total_catch == 6_200
    assert stats.total_escapement == 2_800
    assert stats.total_run == 9_000
    assert stats.district_count == 2
    assert stats.river_count == 2
    assert stats.top_district.id == "naknek"


def test_summarize_empty_record():
    record = DailyHarvestRecord(run_date="06-01-2025", scraped_at=SCRAPED_AT, season=2025)

    stats = summarize_record(record)

    assert stats.total_run == 0
    assert stats.top_district is None

"""
Tests for the SQLite store: replace semantics, atomicity and read queries
"""

from datetime import date

import pytest
from sqlalchemy.exc import IntegrityError

from conftest import make_record, with_duplicate_rivers
from salmon_scraper import storage
from salmon_scraper.models import RiverObservation
from salmon_scraper.storage import (
    DailySummary,
    DistrictData,
    RiverData,
    SockeyePerDelivery,
    delete_records,
    get_record,
    list_available_dates,
    list_seasons,
    records_between,
    save_record,
    season_date_range,
)

ALL_TABLES = (DailySummary, DistrictData, RiverData, SockeyePerDelivery)


def _counts(session, run_date=None):
    counts = {}
    for model in ALL_TABLES:
        query = session.query(model)
        if run_date is not None:
            query = query.filter(model.run_date == run_date)
        counts[model.__tablename__] = query.count()
    return counts


def test_round_trip(db_session):
    record = make_record()
    save_record(db_session, record)

    loaded = get_record(db_session, "07-15-2025")

    assert loaded.model_dump() == record.model_dump()
    assert loaded.sockeye_per_delivery == {"naknek": 812.0, "egegik": 1040.0}


def test_missing_date_returns_none(db_session):
    assert get_record(db_session, "01-01-2020") is None


def test_child_rows_are_written(db_session):
    save_record(db_session, make_record())

    assert _counts(db_session) == {
        "daily_summaries": 1,
        "district_data": 2,
        "river_data": 2,
        "sockeye_per_delivery": 2,
    }
    naknek = db_session.query(SockeyePerDelivery).filter_by(district_id="naknek").one()
    assert naknek.district_name == "Naknek-Kvichak"
    summary = db_session.query(DailySummary).one()
    assert summary.run_day == date(2025, 7, 15)
    assert summary.total_catch == 6_200
    assert summary.total_run == 9_000


def test_save_is_idempotent(db_session):
    record = make_record()
    save_record(db_session, record)
    first = _counts(db_session)

    save_record(db_session, record)

    assert _counts(db_session) == first
    assert get_record(db_session, record.run_date).model_dump() == record.model_dump()


def test_resave_replaces_values(db_session):
    save_record(db_session, make_record(catch_daily=100))
    save_record(db_session, make_record(catch_daily=250))

    summaries = db_session.query(DailySummary).filter_by(run_date="07-15-2025").all()
    assert len(summaries) == 1
    assert get_record(db_session, "07-15-2025").total_run_summary.catch_daily == 250
    naknek = db_session.query(DistrictData).filter_by(district_id="naknek").one()
    assert naknek.catch_daily == 250


def test_resave_drops_rows_missing_from_new_scrape(db_session):
    save_record(db_session, make_record())
    save_record(db_session, make_record(rivers=[RiverObservation(name="Kvichak")], sockeye={}))

    assert [row.river_name for row in db_session.query(RiverData).all()] == ["Kvichak"]
    assert db_session.query(SockeyePerDelivery).count() == 0
    assert get_record(db_session, "07-15-2025").sockeye_per_delivery == {}


def test_failed_save_writes_nothing(db_session):
    with pytest.raises(IntegrityError):
        save_record(db_session, with_duplicate_rivers(make_record()))

    assert _counts(db_session) == {
        "daily_summaries": 0,
        "district_data": 0,
        "river_data": 0,
        "sockeye_per_delivery": 0,
    }


def test_failed_resave_keeps_previous_scrape(db_session):
    save_record(db_session, make_record(catch_daily=100))
    before = _counts(db_session)

    with pytest.raises(IntegrityError):
        save_record(db_session, with_duplicate_rivers(make_record(catch_daily=999)))

    assert _counts(db_session) == before
    assert get_record(db_session, "07-15-2025").total_run_summary.catch_daily == 100


def test_failure_while_building_child_rows_rolls_back(db_session, monkeypatch):
    save_record(db_session, make_record(run_date="07-14-2025"))

    def explode(district_id):
        raise RuntimeError("lookup failed")

    monkeypatch.setattr(storage, "district_name", explode)
    with pytest.raises(RuntimeError):
        save_record(db_session, make_record(run_date="07-15-2025"))

    assert all(count == 0 for count in _counts(db_session, "07-15-2025").values())
    assert _counts(db_session, "07-14-2025")["daily_summaries"] == 1


@pytest.fixture
def populated(db_session):
    for run_date in ["12-31-2023", "07-15-2025", "01-02-2024", "06-30-2025", "07-01-2025"]:
        save_record(db_session, make_record(run_date=run_date))
    return db_session


def test_available_dates_newest_first(populated):
    entries = list_available_dates(populated)

    assert [e.run_date for e in entries] == ["07-15-2025", "07-01-2025", "06-30-2025", "01-02-2024", "12-31-2023"]
    assert entries[0].season == 2025
    assert entries[0].total_run == 9_000


def test_available_dates_for_season(populated):
    assert [e.run_date for e in list_available_dates(populated, season=2025)] == [
        "07-15-2025",
        "07-01-2025",
        "06-30-2025",
    ]


def test_seasons_newest_first(populated):
    assert list_seasons(populated) == [2025, 2024, 2023]


def test_season_date_range_oldest_first(populated):
    assert [e.run_date for e in season_date_range(populated, 2025)] == ["06-30-2025", "07-01-2025", "07-15-2025"]
    assert season_date_range(populated, 2019) == []


def test_records_between(populated):
    records = records_between(populated, date(2023, 12, 1), date(2024, 6, 30))

    assert [r.run_date for r in records] == ["12-31-2023", "01-02-2024"]
    assert records[0].sockeye_per_delivery == {"naknek": 812.0, "egegik": 1040.0}


def test_delete_records(populated):
    deleted = delete_records(populated, date(2025, 7, 1), date(2025, 7, 31))

    assert deleted == 2
    assert [e.run_date for e in list_available_dates(populated, season=2025)] == ["06-30-2025"]
    assert populated.query(DistrictData).filter(DistrictData.run_date.in_(["07-01-2025", "07-15-2025"])).count() == 0
    assert populated.query(RiverData).count() == 6

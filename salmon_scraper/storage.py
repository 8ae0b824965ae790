"""
Persistence layer built on SQLAlchemy for the harvest scraper.

Four tables are defined:
    - daily_summaries: one row per run date, with the full record as JSON.
    - district_data: one row per (run_date, district_id).
    - river_data: one row per (run_date, river_name).
    - sockeye_per_delivery: one row per (run_date, district_id).

`save_record` replaces everything stored for a run date in a single
transaction, so re-scraping a day is idempotent and never leaves a partial
write behind.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    func,
)
from sqlalchemy.orm import Session, declarative_base, relationship, sessionmaker

from .districts import district_name
from .models import DailyHarvestRecord
from .seasons import parse_run_date

logger = logging.getLogger(__name__)

Base = declarative_base()


class DailySummary(Base):
    __tablename__ = "daily_summaries"

    id = Column(Integer, primary_key=True)
    run_date = Column(String(10), nullable=False, unique=True)
    run_day = Column(Date, nullable=False)
    scraped_at = Column(DateTime(timezone=True), nullable=False)
    season = Column(Integer, nullable=False)
    total_catch = Column(Float, nullable=True)
    total_escapement = Column(Float, nullable=True)
    in_river_estimate = Column(Float, nullable=True)
    total_run = Column(Float, nullable=True)
    data_json = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    districts = relationship("DistrictData", back_populates="summary", cascade="all, delete-orphan")
    rivers = relationship("RiverData", back_populates="summary", cascade="all, delete-orphan")
    deliveries = relationship("SockeyePerDelivery", back_populates="summary", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_daily_summaries_run_day", "run_day"),
        Index("ix_daily_summaries_season", "season"),
    )


class DistrictData(Base):
    __tablename__ = "district_data"

    id = Column(Integer, primary_key=True)
    run_date = Column(String(10), ForeignKey("daily_summaries.run_date"), nullable=False)
    district_id = Column(String(32), nullable=False)
    district_name = Column(String(64), nullable=False)
    catch_daily = Column(Float, nullable=True)
    catch_cumulative = Column(Float, nullable=True)
    escapement_daily = Column(Float, nullable=True)
    escapement_cumulative = Column(Float, nullable=True)
    in_river_estimate = Column(Float, nullable=True)
    total_run = Column(Float, nullable=True)

    summary = relationship("DailySummary", back_populates="districts")

    __table_args__ = (UniqueConstraint("run_date", "district_id", name="uq_district_run_date"),)


class RiverData(Base):
    __tablename__ = "river_data"

    id = Column(Integer, primary_key=True)
    run_date = Column(String(10), ForeignKey("daily_summaries.run_date"), nullable=False)
    river_name = Column(String(128), nullable=False)
    escapement_daily = Column(Float, nullable=True)
    escapement_cumulative = Column(Float, nullable=True)
    in_river_estimate = Column(Float, nullable=True)

    summary = relationship("DailySummary", back_populates="rivers")

    __table_args__ = (UniqueConstraint("run_date", "river_name", name="uq_river_run_date"),)


class SockeyePerDelivery(Base):
    __tablename__ = "sockeye_per_delivery"

    id = Column(Integer, primary_key=True)
    run_date = Column(String(10), ForeignKey("daily_summaries.run_date"), nullable=False)
    district_id = Column(String(32), nullable=False)
    district_name = Column(String(64), nullable=False)
    sockeye_per_delivery = Column(Float, nullable=False)

    summary = relationship("DailySummary", back_populates="deliveries")

    __table_args__ = (UniqueConstraint("run_date", "district_id", name="uq_sockeye_run_date"),)


CHILD_MODELS = (DistrictData, RiverData, SockeyePerDelivery)


def get_engine(database_path: str):
    """Create a SQLite engine, ensuring the parent directory is available."""
    directory = os.path.dirname(database_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    return create_engine(f"sqlite:///{database_path}", future=True)


def get_session_factory(database_path: str):
    engine = get_engine(database_path)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False, class_=Session)


@dataclass
class DateEntry:
    run_date: str
    season: int
    total_run: Optional[float]


def _build_summary(record: DailyHarvestRecord) -> DailySummary:
    totals = record.total_run_summary
    summary = DailySummary(
        run_date=record.run_date,
        run_day=parse_run_date(record.run_date),
        scraped_at=record.scraped_at,
        season=record.season,
        total_catch=totals.catch_cumulative,
        total_escapement=totals.escapement_cumulative,
        in_river_estimate=totals.in_river_estimate,
        total_run=totals.total_run,
        data_json=record.to_json(),
    )
    summary.districts = [
        DistrictData(
            run_date=record.run_date,
            district_id=district.id,
            district_name=district.name,
            catch_daily=district.catch_daily,
            catch_cumulative=district.catch_cumulative,
            escapement_daily=district.escapement_daily,
            escapement_cumulative=district.escapement_cumulative,
            in_river_estimate=district.in_river_estimate,
            total_run=district.total_run,
        )
        for district in record.districts
    ]
    summary.rivers = [
        RiverData(
            run_date=record.run_date,
            river_name=river.name,
            escapement_daily=river.escapement_daily,
            escapement_cumulative=river.escapement_cumulative,
            in_river_estimate=river.in_river_estimate,
        )
        for river in record.rivers
    ]
    summary.deliveries = [
        SockeyePerDelivery(
            run_date=record.run_date,
            district_id=district_id,
            district_name=district_name(district_id),
            sockeye_per_delivery=ratio,
        )
        for district_id, ratio in record.sockeye_per_delivery.items()
    ]
    return summary


def _delete_run_dates(session: Session, run_dates: List[str]) -> int:
    """Remove every row for the given run dates, children first."""
    if not run_dates:
        return 0
    for model in CHILD_MODELS:
        session.query(model).filter(model.run_date.in_(run_dates)).delete(synchronize_session=False)
    deleted = (
        session.query(DailySummary)
        .filter(DailySummary.run_date.in_(run_dates))
        .delete(synchronize_session=False)
    )
    session.expunge_all()
    return deleted


def save_record(session: Session, record: DailyHarvestRecord) -> DailySummary:
    """
    Replace everything stored for `record.run_date` with `record`.

    Summary and child rows are written in one transaction; rows left over
    from an earlier scrape of the same date are removed first. On any error
    the whole date is rolled back and the exception re-raised.
    """
    try:
        _delete_run_dates(session, [record.run_date])
        summary = _build_summary(record)
        session.add(summary)
        session.flush()
        session.commit()
    except Exception:
        session.rollback()
        logger.error("Rolled back save for %s", record.run_date)
        raise
    logger.debug(
        "Saved %s: districts=%s rivers=%s deliveries=%s",
        record.run_date,
        len(record.districts),
        len(record.rivers),
        len(record.sockeye_per_delivery),
    )
    return summary


def _load_record(summary: DailySummary) -> DailyHarvestRecord:
    record = DailyHarvestRecord.model_validate_json(summary.data_json)
    ratios = {row.district_id: row.sockeye_per_delivery for row in summary.deliveries}
    return record.model_copy(update={"sockeye_per_delivery": ratios})


def get_record(session: Session, run_date: str) -> Optional[DailyHarvestRecord]:
    """The stored record for `run_date`, or None if that date was never saved."""
    summary = session.query(DailySummary).filter(DailySummary.run_date == run_date).one_or_none()
    if summary is None:
        return None
    return _load_record(summary)


def list_available_dates(session: Session, season: Optional[int] = None) -> List[DateEntry]:
    query = session.query(DailySummary.run_date, DailySummary.season, DailySummary.total_run)
    if season is not None:
        query = query.filter(DailySummary.season == season)
    rows = query.order_by(DailySummary.run_day.desc()).all()
    return [DateEntry(run_date=row[0], season=row[1], total_run=row[2]) for row in rows]


def list_seasons(session: Session) -> List[int]:
    rows = session.query(DailySummary.season).distinct().order_by(DailySummary.season.desc()).all()
    return [row[0] for row in rows]


def season_date_range(session: Session, season: int) -> List[DateEntry]:
    rows = (
        session.query(DailySummary.run_date, DailySummary.season, DailySummary.total_run)
        .filter(DailySummary.season == season)
        .order_by(DailySummary.run_day.asc())
        .all()
    )
    return [DateEntry(run_date=row[0], season=row[1], total_run=row[2]) for row in rows]


def records_between(session: Session, start: date, end: date) -> List[DailyHarvestRecord]:
    """Stored records with start <= run date <= end, oldest first."""
    summaries = (
        session.query(DailySummary)
        .filter(DailySummary.run_day >= start, DailySummary.run_day <= end)
        .order_by(DailySummary.run_day.asc())
        .all()
    )
    return [_load_record(summary) for summary in summaries]


def delete_records(session: Session, start: date, end: date) -> int:
    """
    Maintenance purge of every stored date in [start, end] across all tables.

    Returns the number of daily summaries removed.
    """
    run_dates = [
        row[0]
        for row in session.query(DailySummary.run_date)
        .filter(DailySummary.run_day >= start, DailySummary.run_day <= end)
        .all()
    ]
    try:
        deleted = _delete_run_dates(session, run_dates)
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info("Deleted %s stored dates between %s and %s", deleted, start, end)
    return deleted

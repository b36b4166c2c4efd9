"""database schema definitions for space weather hq storage."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Float, Integer, String
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class SpaceWeatherHour(Base):  # type: ignore[misc,valid-type]
    """one hourly bucket of combined flare, cme and storm activity.

    doc_id is derived from the hour's iso timestamp, so re-ingesting the same
    window overwrites rows instead of duplicating them.
    """

    __tablename__ = "space_weather_hourly"

    id = Column(Integer, primary_key=True, autoincrement=True)
    doc_id = Column(String(32), nullable=False, unique=True, index=True)  # e.g. 2024-01-01_05-00-00-000Z
    timestamp = Column(DateTime, nullable=False, unique=True, index=True)  # top of the hour, naive utc

    # flares
    solar_flare_count = Column(Integer, nullable=False, default=0)
    max_flare_intensity = Column(Float, nullable=False, default=0.0)  # letter rank * 10 + magnitude

    # coronal mass ejections
    cme_count = Column(Integer, nullable=False, default=0)
    max_cme_speed = Column(Float, nullable=False, default=0.0)  # km/s

    # geomagnetic storms
    geomagnetic_storm_level = Column(Float, nullable=False, default=0.0)  # max kp index

    # audit
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<SpaceWeatherHour(timestamp={self.timestamp}, flares={self.solar_flare_count})>"


class DataIngestionLog(Base):  # type: ignore[misc,valid-type]
    """log of ingestion runs for monitoring and debugging."""

    __tablename__ = "space_weather_ingestion_log"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # run info
    run_timestamp = Column(DateTime, default=datetime.utcnow, index=True)
    source_name = Column(String(100), nullable=False)

    # execution details
    status = Column(String(20), nullable=False)  # success, failure, cancelled
    records_fetched = Column(Integer, default=0)
    records_inserted = Column(Integer, default=0)
    records_updated = Column(Integer, default=0)

    # time range processed
    data_start_time = Column(DateTime)
    data_end_time = Column(DateTime)

    # error tracking
    error_message = Column(String(500))

    # performance
    duration_seconds = Column(Float)

    def __repr__(self):
        return f"<DataIngestionLog(source={self.source_name}, status={self.status})>"

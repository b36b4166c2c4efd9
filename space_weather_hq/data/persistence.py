"""data persistence layer for hourly space weather buckets."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import pandas as pd
from sqlalchemy.orm import Session

from space_weather_hq.data.database import Database, get_database
from space_weather_hq.data.schema import DataIngestionLog, SpaceWeatherHour
from space_weather_hq.ingestion.aggregate import METRIC_FIELDS, HourBucket

logger = logging.getLogger(__name__)

_INT_FIELDS = {"solar_flare_count", "cme_count"}


def _to_datetime(value: Any) -> datetime:
    if hasattr(value, "to_pydatetime"):
        return value.to_pydatetime()
    if isinstance(value, datetime):
        return value
    return pd.to_datetime(value).to_pydatetime()


def _row_values(row: pd.Series) -> Dict[str, Any]:
    """native python values for one timeline row (absent metrics become 0)."""
    values: Dict[str, Any] = {}
    for field in METRIC_FIELDS:
        raw = row.get(field)
        if raw is None or pd.isna(raw):
            raw = 0
        values[field] = int(raw) if field in _INT_FIELDS else float(raw)
    return values


def _to_bucket(record: SpaceWeatherHour) -> HourBucket:
    return HourBucket(
        timestamp=record.timestamp,
        solar_flare_count=record.solar_flare_count or 0,
        max_flare_intensity=record.max_flare_intensity or 0.0,
        cme_count=record.cme_count or 0,
        max_cme_speed=record.max_cme_speed or 0.0,
        geomagnetic_storm_level=record.geomagnetic_storm_level or 0.0,
    )


class HourlyStore:
    """handles persistence of filled hourly timelines to the database."""

    def __init__(self, db: Optional[Database] = None):
        self.db = db or get_database()

    def save_timeline(
        self, df: pd.DataFrame, session: Optional[Session] = None, source_name: str = "nasa_donki"
    ) -> Dict[str, Any]:
        """
        upsert timeline rows keyed by doc_id.

        uses explicit lookup+update so it works on any dialect (sqlite in
        tests, postgresql in deployment). rows whose values already match are
        left untouched and counted as unchanged.

        args:
            df: dataframe from timeline_to_frame (doc_id, timestamp, metric columns)
            session: optional sqlalchemy session; the caller owns the commit
            source_name: name of data source for the ingestion log

        returns:
            dict with save statistics
        """
        start_time = datetime.utcnow()
        stats = {
            "records_fetched": int(len(df)),
            "records_inserted": 0,
            "records_updated": 0,
            "records_unchanged": 0,
            "status": "success",
            "error_message": None,
        }

        def _process(sess: Session) -> None:
            for _, row in df.iterrows():
                values = _row_values(row)
                existing = sess.query(SpaceWeatherHour).filter(SpaceWeatherHour.doc_id == row["doc_id"]).first()

                if existing is None:
                    sess.add(SpaceWeatherHour(doc_id=row["doc_id"], timestamp=_to_datetime(row["timestamp"]), **values))
                    stats["records_inserted"] += 1
                elif all(getattr(existing, field) == value for field, value in values.items()):
                    stats["records_unchanged"] += 1
                else:
                    for field, value in values.items():
                        setattr(existing, field, value)
                    stats["records_updated"] += 1

        try:
            if session is not None:
                _process(session)
                session.flush()
            else:
                with self.db.get_session() as scoped_session:
                    _process(scoped_session)
        except Exception as e:
            stats["status"] = "failure"
            stats["error_message"] = str(e)
            stats["records_inserted"] = stats["records_updated"] = stats["records_unchanged"] = 0
            logger.error(f"failed to save hourly timeline: {e}")

        if session is None:
            self.log_ingestion(
                source_name=source_name,
                data_start=_to_datetime(df["timestamp"].min()) if len(df) > 0 else None,
                data_end=_to_datetime(df["timestamp"].max()) if len(df) > 0 else None,
                duration=(datetime.utcnow() - start_time).total_seconds(),
                **{k: v for k, v in stats.items() if k != "records_unchanged"},
            )

        return stats

    def get_latest_hour(self, session: Optional[Session] = None) -> Optional[HourBucket]:
        """
        get the most recent persisted bucket.

        returns:
            latest hour bucket or none if nothing is stored yet

        raises the underlying sqlalchemy error if the store is unreachable.
        """

        def _query(sess: Session) -> Optional[HourBucket]:
            record = sess.query(SpaceWeatherHour).order_by(SpaceWeatherHour.timestamp.desc()).first()
            return _to_bucket(record) if record is not None else None

        if session is not None:
            return _query(session)
        with self.db.get_session() as scoped_session:
            return _query(scoped_session)

    def get_timeline(
        self,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        session: Optional[Session] = None,
    ) -> List[HourBucket]:
        """
        retrieve buckets within an optional inclusive time range.

        returns:
            buckets ordered ascending by timestamp
        """

        def _query(sess: Session) -> List[HourBucket]:
            query = sess.query(SpaceWeatherHour)
            if start_time is not None:
                query = query.filter(SpaceWeatherHour.timestamp >= start_time)
            if end_time is not None:
                query = query.filter(SpaceWeatherHour.timestamp <= end_time)
            return [_to_bucket(r) for r in query.order_by(SpaceWeatherHour.timestamp.asc()).all()]

        if session is not None:
            return _query(session)
        with self.db.get_session() as scoped_session:
            return _query(scoped_session)

    def log_ingestion(
        self,
        source_name: str,
        data_start: Optional[datetime],
        data_end: Optional[datetime],
        duration: float,
        status: str,
        records_fetched: int = 0,
        records_inserted: int = 0,
        records_updated: int = 0,
        error_message: Optional[str] = None,
    ):
        """log an ingestion run; failures to log are reported, never raised."""
        try:
            with self.db.get_session() as session:
                session.add(
                    DataIngestionLog(
                        source_name=source_name,
                        status=status,
                        records_fetched=records_fetched,
                        records_inserted=records_inserted,
                        records_updated=records_updated,
                        data_start_time=data_start,
                        data_end_time=data_end,
                        error_message=error_message[:500] if error_message else None,
                        duration_seconds=duration,
                    )
                )
        except Exception as e:
            logger.error(f"failed to log ingestion: {e}")

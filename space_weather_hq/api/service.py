"""advisory service combining the persisted timeline with the last in-memory run."""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from space_weather_hq.data.persistence import HourlyStore
from space_weather_hq.errors import IngestionUnavailableError, NoDataYetError
from space_weather_hq.ingestion.aggregate import HourBucket, iso_timestamp
from space_weather_hq.ingestion.normalize_donki import truncate_to_hour
from space_weather_hq.ingestion.run_ingestion import SpaceWeatherPipeline
from space_weather_hq.ingestion.scheduler import IngestionScheduler
from space_weather_hq.risk.classifier import advisory_for

logger = logging.getLogger(__name__)

RUN_SUMMARY_KEYS = (
    "status",
    "window_start",
    "window_end",
    "events",
    "buckets",
    "persist",
    "error_message",
    "status_code",
)


def summarize_run(run: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """json-friendly view of a pipeline run's stats."""
    if run is None:
        return None
    summary = {}
    for key in RUN_SUMMARY_KEYS:
        if key in run:
            value = run[key]
            summary[key] = iso_timestamp(value) if isinstance(value, datetime) else value
    return summary


class AdvisoryService:
    """read side of the system: latest advisory, timeline, and manual ingestion."""

    def __init__(
        self,
        store: Optional[HourlyStore] = None,
        pipeline: Optional[SpaceWeatherPipeline] = None,
        scheduler: Optional[IngestionScheduler] = None,
    ):
        """
        initialize advisory service.

        args:
            store: persisted hourly buckets
            pipeline: ingestion pipeline whose last timeline backs reads when the store is down
            scheduler: optional scheduler used to serialize manual ingestion with periodic runs
        """
        self.store = store if store is not None else HourlyStore()
        self.pipeline = pipeline
        self.scheduler = scheduler
        self._last_manual_run: Optional[Dict[str, Any]] = None

    @property
    def last_run(self) -> Optional[Dict[str, Any]]:
        if self.pipeline is not None and self.pipeline.last_run is not None:
            return self.pipeline.last_run
        return self._last_manual_run

    def _memory_timeline(self) -> List[HourBucket]:
        if self.pipeline is None:
            return []
        return list(self.pipeline.last_timeline)

    def latest_bucket(self) -> Dict[str, Any]:
        """
        best available latest bucket.

        returns:
            dict with "bucket" and "source" ("store" or "memory")

        the newer of the stored latest hour and the last in-memory hour wins,
        so a run whose save failed is still classified; on a tie the store wins.

        raises NoDataYetError when neither the store nor memory has a bucket.
        """
        stored = None
        try:
            stored = self.store.get_latest_hour()
        except SQLAlchemyError as e:
            logger.error(f"failed to read latest bucket from store, falling back to memory: {e}")

        memory = self._memory_timeline()
        in_memory = memory[-1] if memory else None

        if in_memory is not None and (stored is None or in_memory.timestamp > stored.timestamp):
            return {"bucket": in_memory, "source": "memory"}
        if stored is not None:
            return {"bucket": stored, "source": "store"}
        raise NoDataYetError("no real space weather data available yet")

    def current_advisory(self) -> Dict[str, Any]:
        """classify the latest bucket and attach the last run status."""
        latest = self.latest_bucket()
        bucket = latest["bucket"]
        payload = advisory_for(bucket).to_dict()
        payload["bucket"] = bucket.to_dict()
        payload["source"] = latest["source"]
        payload["last_run"] = summarize_run(self.last_run)
        return payload

    def timeline(self, hours: int = 168, now: Optional[datetime] = None) -> List[HourBucket]:
        """buckets for the last ``hours`` hours, ordered ascending."""
        now = now or datetime.utcnow()
        first_hour = truncate_to_hour(now - timedelta(hours=hours))
        try:
            return self.store.get_timeline(start_time=first_hour)
        except SQLAlchemyError as e:
            logger.error(f"failed to read timeline from store, falling back to memory: {e}")
            return [b for b in self._memory_timeline() if b.timestamp >= first_hour]

    def trigger_ingestion(self) -> Dict[str, Any]:
        """run one ingestion now (without a scheduler, TransportError propagates)."""
        if self.scheduler is not None:
            result = self.scheduler.run_once()
        elif self.pipeline is not None:
            result = self.pipeline.run()
        else:
            raise IngestionUnavailableError("ingestion pipeline not configured")
        self._last_manual_run = result
        return result

    def health_check(self) -> Dict[str, Any]:
        database_ok = True
        try:
            self.store.get_latest_hour()
        except SQLAlchemyError as e:
            logger.warning(f"health check could not reach the store: {e}")
            database_ok = False

        last_run = summarize_run(self.last_run)
        healthy = database_ok and (last_run is None or last_run.get("status") != "failure")
        return {
            "status": "healthy" if healthy else "degraded",
            "database_available": database_ok,
            "ingestion_available": self.pipeline is not None,
            "last_run": last_run,
            "timestamp": iso_timestamp(datetime.utcnow()),
        }

"""High-level runner: fetch -> normalize -> aggregate -> fill -> persist."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from space_weather_hq.config import DataConfig
from space_weather_hq.data.persistence import HourlyStore
from space_weather_hq.errors import TransportError
from space_weather_hq.ingestion.aggregate import HourBucket, aggregate
from space_weather_hq.ingestion.donki_client import DonkiClient
from space_weather_hq.ingestion.normalize_donki import normalize_donki_events, parse_instant
from space_weather_hq.ingestion.timeline import fill_timeline, timeline_to_frame

logger = logging.getLogger(__name__)


def build_timeline(
    flares: List[Dict[str, Any]],
    cmes: List[Dict[str, Any]],
    storms: List[Dict[str, Any]],
    window_start: datetime,
    window_end: datetime,
) -> List[HourBucket]:
    """Turn raw payloads from the three feeds into a filled hourly timeline."""
    updates = normalize_donki_events(flares=flares, cmes=cmes, storms=storms)
    return fill_timeline(aggregate(updates), window_start, window_end)


class SpaceWeatherPipeline:
    """One ingestion run per call to ``run``; keeps the last good timeline in memory."""

    SOURCE_NAME = "nasa_donki"

    def __init__(
        self,
        client: Optional[DonkiClient] = None,
        store: Optional[HourlyStore] = None,
        lookback_days: Optional[int] = None,
    ):
        self.client = client or DonkiClient.from_config()
        self.store = store if store is not None else HourlyStore()
        self.lookback_days = lookback_days or DataConfig.LOOKBACK_DAYS
        self.last_timeline: List[HourBucket] = []
        self.last_run: Optional[Dict[str, Any]] = None

    def window(self, now: Optional[datetime] = None) -> tuple:
        end = parse_instant(now) if now is not None else datetime.utcnow()
        return end - timedelta(days=self.lookback_days), end

    def run(self, now: Optional[datetime] = None, stop_event: Optional[threading.Event] = None) -> Dict[str, Any]:
        """Run one ingestion over the lookback window ending at ``now``.

        TransportError propagates after the failure is recorded. A run whose
        ``stop_event`` is set before persisting stores nothing.
        """
        started = datetime.utcnow()
        window_start, window_end = self.window(now)
        stats: Dict[str, Any] = {
            "status": "success",
            "window_start": window_start,
            "window_end": window_end,
            "events": {},
            "buckets": 0,
            "persist": None,
            "error_message": None,
        }

        try:
            payloads = self.client.fetch_all(window_start, window_end)
        except TransportError as e:
            stats.update(status="failure", error_message=str(e))
            self._finish(stats, started)
            raise

        stats["events"] = {name: len(events) for name, events in payloads.items()}
        if stop_event is not None and stop_event.is_set():
            logger.warning("ingestion cancelled before persisting; nothing stored for this run")
            stats["status"] = "cancelled"
            self._finish(stats, started)
            return stats

        timeline = build_timeline(
            payloads["flares"], payloads["cmes"], payloads["storms"], window_start, window_end
        )
        stats["buckets"] = len(timeline)
        self.last_timeline = timeline

        persist = self.store.save_timeline(timeline_to_frame(timeline), source_name=self.SOURCE_NAME)
        stats["persist"] = persist
        if persist["status"] != "success":
            stats["status"] = "failure"
            stats["error_message"] = persist["error_message"]

        logger.info(
            f"DONKI ingestion finished: {stats['events']} events -> {stats['buckets']} buckets "
            f"(inserted={persist['records_inserted']} updated={persist['records_updated']} "
            f"unchanged={persist['records_unchanged']})"
        )
        self._finish(stats, started, log_to_store=False)
        return stats

    def _finish(self, stats: Dict[str, Any], started: datetime, log_to_store: bool = True) -> None:
        stats["duration_seconds"] = (datetime.utcnow() - started).total_seconds()
        self.last_run = stats
        if stats["status"] != "success":
            logger.error(f"ingestion run {stats['status']}: {stats.get('error_message')}")
        if log_to_store:
            self.store.log_ingestion(
                source_name=self.SOURCE_NAME,
                data_start=stats["window_start"],
                data_end=stats["window_end"],
                duration=stats["duration_seconds"],
                status=stats["status"],
                records_fetched=sum(stats["events"].values()),
                error_message=stats["error_message"],
            )


def run_ingestion(
    lookback_days: Optional[int] = None,
    api_key: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Fetch DONKI events for the lookback window, aggregate hourly and upsert into the DB."""
    pipeline = SpaceWeatherPipeline(client=DonkiClient.from_config(api_key=api_key), lookback_days=lookback_days)
    return pipeline.run(now=now)

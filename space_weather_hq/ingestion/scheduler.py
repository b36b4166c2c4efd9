"""Periodic, non-overlapping ingestion runs."""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Optional

from space_weather_hq.errors import TransportError
from space_weather_hq.ingestion.run_ingestion import SpaceWeatherPipeline

logger = logging.getLogger(__name__)


class IngestionScheduler:
    """Runs the pipeline every ``interval_minutes``, one run at a time.

    Failures are logged and reported in the returned stats; they never stop
    the loop, and the next tick retries independently.
    """

    def __init__(self, pipeline: SpaceWeatherPipeline, interval_minutes: int = 15):
        self.pipeline = pipeline
        self.interval_seconds = interval_minutes * 60
        self.stop_event = threading.Event()
        self._run_lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._run_lock.locked()

    def run_once(self) -> Dict[str, Any]:
        """Run the pipeline unless a run is already in progress."""
        if not self._run_lock.acquire(blocking=False):
            logger.info("ingestion already in progress, skipping this tick")
            return {"status": "skipped", "reason": "run in progress"}

        try:
            return self.pipeline.run(stop_event=self.stop_event)
        except TransportError as e:
            logger.error(f"ingestion aborted by transport failure (status={e.status_code}): {e}")
            return {"status": "failure", "error_message": str(e), "status_code": e.status_code}
        except Exception as e:
            logger.error(f"unexpected ingestion error: {e}", exc_info=True)
            return {"status": "failure", "error_message": str(e)}
        finally:
            self._run_lock.release()

    def run_forever(self, max_runs: Optional[int] = None) -> int:
        """Loop until ``stop`` is called (or ``max_runs`` runs have happened).

        returns the number of runs attempted.
        """
        runs = 0
        logger.info(f"ingestion scheduler started (every {self.interval_seconds // 60} minutes)")
        while not self.stop_event.is_set():
            result = self.run_once()
            runs += 1
            logger.info(f"scheduled run #{runs} finished with status {result.get('status')}")
            if max_runs is not None and runs >= max_runs:
                break
            self.stop_event.wait(self.interval_seconds)
        logger.info("ingestion scheduler stopped")
        return runs

    def stop(self) -> None:
        self.stop_event.set()

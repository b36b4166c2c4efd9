"""tests for the periodic ingestion scheduler."""

import threading
from unittest.mock import Mock

from space_weather_hq.errors import TransportError
from space_weather_hq.ingestion.run_ingestion import SpaceWeatherPipeline
from space_weather_hq.ingestion.scheduler import IngestionScheduler


def _scheduler(**run_kwargs):
    pipeline = Mock(spec=SpaceWeatherPipeline)
    pipeline.run = Mock(**run_kwargs)
    return IngestionScheduler(pipeline, interval_minutes=0), pipeline


def test_run_once_returns_pipeline_stats():
    scheduler, pipeline = _scheduler(return_value={"status": "success"})
    assert scheduler.run_once() == {"status": "success"}
    pipeline.run.assert_called_once_with(stop_event=scheduler.stop_event)


def test_transport_error_does_not_escape():
    scheduler, _ = _scheduler(side_effect=TransportError("HTTP error 429", status_code=429))
    result = scheduler.run_once()
    assert result["status"] == "failure"
    assert result["status_code"] == 429


def test_unexpected_error_does_not_escape():
    scheduler, _ = _scheduler(side_effect=RuntimeError("boom"))
    assert scheduler.run_once()["status"] == "failure"


def test_overlapping_run_is_skipped():
    started = threading.Event()
    release = threading.Event()

    def slow_run(stop_event=None):
        started.set()
        release.wait(5)
        return {"status": "success"}

    scheduler, pipeline = _scheduler(side_effect=slow_run)
    worker = threading.Thread(target=scheduler.run_once)
    worker.start()
    assert started.wait(5)

    assert scheduler.running
    assert scheduler.run_once() == {"status": "skipped", "reason": "run in progress"}

    release.set()
    worker.join(5)
    assert pipeline.run.call_count == 1
    assert not scheduler.running


def test_run_forever_keeps_going_after_failures():
    scheduler, pipeline = _scheduler(side_effect=[TransportError("down"), {"status": "success"}, {"status": "success"}])
    assert scheduler.run_forever(max_runs=3) == 3
    assert pipeline.run.call_count == 3


def test_stop_ends_loop():
    scheduler, _ = _scheduler(return_value={"status": "success"})
    scheduler.stop()
    assert scheduler.run_forever() == 0

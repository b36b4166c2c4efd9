"""tests for a full ingestion run."""

import threading
from datetime import timedelta
from unittest.mock import Mock

import pytest

from conftest import NOW
from space_weather_hq.data.schema import DataIngestionLog, SpaceWeatherHour
from space_weather_hq.errors import TransportError
from space_weather_hq.ingestion.donki_client import DonkiClient
from space_weather_hq.ingestion.run_ingestion import SpaceWeatherPipeline, build_timeline
from space_weather_hq.risk.classifier import Severity, latest_advisory


@pytest.fixture
def client(mock_payloads):
    client = Mock(spec=DonkiClient)
    client.fetch_all.return_value = mock_payloads
    return client


@pytest.fixture
def pipeline(client, store):
    return SpaceWeatherPipeline(client=client, store=store, lookback_days=7)


def test_run_persists_full_window(pipeline, client, test_db):
    stats = pipeline.run(now=NOW)

    assert stats["status"] == "success"
    assert stats["buckets"] == 169
    assert stats["events"] == {"flares": 3, "cmes": 3, "storms": 2}
    assert stats["persist"]["records_inserted"] == 169
    client.fetch_all.assert_called_once_with(NOW - timedelta(days=7), NOW)

    with test_db.get_session() as session:
        assert session.query(SpaceWeatherHour).count() == 169


def test_latest_bucket_reflects_storm_in_current_hour(pipeline, store):
    pipeline.run(now=NOW)

    latest = store.get_latest_hour()
    assert latest.timestamp == NOW.replace(minute=0)
    assert latest.geomagnetic_storm_level == pytest.approx(8.0)
    assert latest_advisory(pipeline.last_timeline).level == Severity.SEVERE


def test_second_identical_run_changes_nothing(pipeline):
    first = pipeline.run(now=NOW)
    timeline = list(pipeline.last_timeline)
    second = pipeline.run(now=NOW)

    assert pipeline.last_timeline == timeline
    assert first["persist"]["records_inserted"] == 169
    assert second["persist"]["records_inserted"] == 0
    assert second["persist"]["records_updated"] == 0
    assert second["persist"]["records_unchanged"] == 169


def test_events_outside_window_do_not_extend_timeline(pipeline, client, mock_payloads):
    mock_payloads["flares"].append({"beginTime": "2023-01-01T00:00Z", "classType": "X5.0"})
    stats = pipeline.run(now=NOW)
    assert stats["buckets"] == 169


def test_transport_error_persists_nothing(pipeline, client, test_db):
    client.fetch_all.side_effect = TransportError("HTTP error 503", status_code=503)

    with pytest.raises(TransportError):
        pipeline.run(now=NOW)

    assert pipeline.last_run["status"] == "failure"
    assert pipeline.last_timeline == []
    with test_db.get_session() as session:
        assert session.query(SpaceWeatherHour).count() == 0
        assert session.query(DataIngestionLog).one().status == "failure"


def test_transport_error_keeps_previous_buckets(pipeline, client, store):
    pipeline.run(now=NOW)
    client.fetch_all.side_effect = TransportError("HTTP error 429", status_code=429)

    with pytest.raises(TransportError):
        pipeline.run(now=NOW + timedelta(hours=1))

    assert len(store.get_timeline()) == 169
    assert len(pipeline.last_timeline) == 169


def test_cancelled_run_persists_nothing(pipeline, test_db):
    stop = threading.Event()
    stop.set()

    stats = pipeline.run(now=NOW, stop_event=stop)

    assert stats["status"] == "cancelled"
    with test_db.get_session() as session:
        assert session.query(SpaceWeatherHour).count() == 0


def test_persistence_failure_keeps_timeline_in_memory(pipeline, store):
    store.save_timeline = Mock(
        return_value={
            "status": "failure",
            "error_message": "database unavailable",
            "records_inserted": 0,
            "records_updated": 0,
            "records_unchanged": 0,
        }
    )

    stats = pipeline.run(now=NOW)

    assert stats["status"] == "failure"
    assert stats["error_message"] == "database unavailable"
    assert len(pipeline.last_timeline) == 169


def test_malformed_entries_do_not_abort_the_batch():
    flares = [{"beginTime": "2024-05-10T11:05Z", "classType": "M1.0"}, "garbage"]
    timeline = build_timeline(flares, [], [], NOW - timedelta(hours=2), NOW)

    assert len(timeline) == 3
    assert timeline[1].solar_flare_count == 1
    assert timeline[1].max_flare_intensity == pytest.approx(31.0)

"""tests for hourly bucket persistence."""

from datetime import datetime

import pytest
from sqlalchemy.exc import SQLAlchemyError

from space_weather_hq.data.schema import DataIngestionLog, SpaceWeatherHour
from space_weather_hq.ingestion.aggregate import HourBucket
from space_weather_hq.ingestion.timeline import fill_timeline, timeline_to_frame


def _timeline(**metrics_at_ten):
    buckets = {}
    if metrics_at_ten:
        ten = HourBucket(timestamp=datetime(2024, 5, 10, 10), **metrics_at_ten)
        buckets[ten.hour_key] = ten
    return fill_timeline(buckets, datetime(2024, 5, 10, 8), datetime(2024, 5, 10, 12, 35))


def test_save_timeline_inserts_every_hour(store, test_db):
    stats = store.save_timeline(timeline_to_frame(_timeline(solar_flare_count=1, max_flare_intensity=31.0)))

    assert stats["status"] == "success"
    assert stats["records_inserted"] == 5
    with test_db.get_session() as session:
        assert session.query(SpaceWeatherHour).count() == 5
        row = session.query(SpaceWeatherHour).filter_by(doc_id="2024-05-10_10-00-00-000Z").one()
        assert row.timestamp == datetime(2024, 5, 10, 10)
        assert row.solar_flare_count == 1
        assert row.max_flare_intensity == 31.0


def test_resaving_identical_window_is_idempotent(store, test_db):
    df = timeline_to_frame(_timeline(cme_count=2, max_cme_speed=650.0))
    store.save_timeline(df)
    stats = store.save_timeline(df)

    assert stats["records_inserted"] == 0
    assert stats["records_updated"] == 0
    assert stats["records_unchanged"] == 5
    with test_db.get_session() as session:
        assert session.query(SpaceWeatherHour).count() == 5


def test_changed_bucket_is_overwritten(store):
    store.save_timeline(timeline_to_frame(_timeline(geomagnetic_storm_level=4.0)))
    stats = store.save_timeline(timeline_to_frame(_timeline(geomagnetic_storm_level=7.33)))

    assert stats["records_updated"] == 1
    assert stats["records_unchanged"] == 4
    latest = store.get_timeline(start_time=datetime(2024, 5, 10, 10), end_time=datetime(2024, 5, 10, 10))
    assert latest[0].geomagnetic_storm_level == pytest.approx(7.33)


def test_save_with_explicit_session(store, db_session):
    stats = store.save_timeline(timeline_to_frame(_timeline()), session=db_session)
    assert stats["records_inserted"] == 5
    assert db_session.query(SpaceWeatherHour).count() == 5


def test_get_latest_hour(store):
    assert store.get_latest_hour() is None

    store.save_timeline(timeline_to_frame(_timeline(cme_count=1)))
    latest = store.get_latest_hour()
    assert latest == HourBucket.empty(datetime(2024, 5, 10, 12))


def test_get_timeline_is_ordered(store):
    store.save_timeline(timeline_to_frame(_timeline()[::-1]))
    stamps = [b.timestamp for b in store.get_timeline()]
    assert stamps == sorted(stamps)
    assert len(stamps) == 5


def test_successful_save_is_logged(store, test_db):
    store.save_timeline(timeline_to_frame(_timeline()))
    with test_db.get_session() as session:
        log = session.query(DataIngestionLog).one()
        assert log.status == "success"
        assert log.records_inserted == 5
        assert log.data_start_time == datetime(2024, 5, 10, 8)


def test_storage_failure_is_reported_not_raised(store, test_db):
    SpaceWeatherHour.__table__.drop(test_db.engine)

    stats = store.save_timeline(timeline_to_frame(_timeline()))

    assert stats["status"] == "failure"
    assert stats["error_message"]
    assert stats["records_inserted"] == 0
    with pytest.raises(SQLAlchemyError):
        store.get_latest_hour()

"""tests for hourly aggregation."""

import random
from datetime import datetime

import pytest

from space_weather_hq.ingestion.aggregate import HourBucket, aggregate, bucket_doc_id, iso_timestamp
from space_weather_hq.ingestion.normalize_donki import BucketUpdate, hour_key, normalize_donki_events


def test_flares_count_and_keep_max_intensity():
    key = hour_key(datetime(2024, 5, 10, 11))
    buckets = aggregate(
        [
            (key, BucketUpdate(solar_flare_count=1, flare_intensity=32.5)),
            (key, BucketUpdate(solar_flare_count=1, flare_intensity=23.4)),
        ]
    )
    bucket = buckets[key]
    assert bucket.timestamp == datetime(2024, 5, 10, 11)
    assert bucket.solar_flare_count == 2
    assert bucket.max_flare_intensity == pytest.approx(32.5)
    assert bucket.cme_count == 0


def test_cme_without_speed_does_not_touch_max_speed():
    key = hour_key(datetime(2024, 5, 10, 11))
    buckets = aggregate([(key, BucketUpdate(cme_count=1)), (key, BucketUpdate(cme_count=1, cme_speed=650.0))])
    assert buckets[key].cme_count == 2
    assert buckets[key].max_cme_speed == 650.0


def test_storm_level_is_max_kp():
    key = hour_key(datetime(2024, 5, 10, 12))
    buckets = aggregate([(key, BucketUpdate(storm_level=6.33)), (key, BucketUpdate(storm_level=4.0))])
    assert buckets[key].geomagnetic_storm_level == pytest.approx(6.33)


def test_hours_without_events_are_absent_and_keys_are_sorted(mock_donki_flares, mock_donki_cmes, mock_donki_storms):
    buckets = aggregate(normalize_donki_events(mock_donki_flares, mock_donki_cmes, mock_donki_storms))
    keys = list(buckets)
    assert keys == sorted(keys)
    assert hour_key(datetime(2024, 5, 10, 10)) not in buckets

    busy = buckets[hour_key(datetime(2024, 5, 10, 11))]
    assert busy.solar_flare_count == 2
    assert busy.max_flare_intensity == pytest.approx(32.5)
    assert busy.cme_count == 2
    assert busy.max_cme_speed == 650.0


def test_aggregation_is_order_independent(mock_donki_flares, mock_donki_cmes, mock_donki_storms):
    updates = normalize_donki_events(mock_donki_flares, mock_donki_cmes, mock_donki_storms)
    rng = random.Random(20240510)
    # synthetic extra load so permutations interleave many hours and feeds
    for _ in range(200):
        key = hour_key(datetime(2024, 5, 3)) + rng.randrange(0, 168)
        updates.append(
            (
                key,
                rng.choice(
                    [
                        BucketUpdate(solar_flare_count=1, flare_intensity=rng.uniform(0, 50)),
                        BucketUpdate(cme_count=1, cme_speed=rng.choice([None, rng.uniform(100, 2500)])),
                        BucketUpdate(storm_level=rng.choice([None, rng.uniform(0, 9)])),
                    ]
                ),
            )
        )

    expected = aggregate(updates)
    for _ in range(25):
        shuffled = list(updates)
        rng.shuffle(shuffled)
        assert aggregate(shuffled) == expected


def test_iso_timestamp_and_doc_id():
    ts = datetime(2024, 1, 1, 5)
    assert iso_timestamp(ts) == "2024-01-01T05:00:00.000Z"
    assert bucket_doc_id(ts) == "2024-01-01_05-00-00-000Z"


def test_to_dict_uses_camel_case_names():
    bucket = HourBucket(timestamp=datetime(2024, 1, 1, 5), solar_flare_count=2, max_cme_speed=700.0)
    assert bucket.to_dict() == {
        "timestamp": "2024-01-01T05:00:00.000Z",
        "solarFlareCount": 2,
        "maxFlareIntensity": 0.0,
        "cmeCount": 0,
        "maxCmeSpeed": 700.0,
        "geomagneticStormLevel": 0.0,
    }


def test_from_record_treats_missing_fields_as_zero():
    record = {"timestamp": "2024-01-01T05:00:00.000Z", "geomagneticStormLevel": 5, "cmeCount": None}
    bucket = HourBucket.from_record(record)
    assert bucket == HourBucket(timestamp=datetime(2024, 1, 1, 5), geomagnetic_storm_level=5.0)

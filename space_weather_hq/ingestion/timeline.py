"""Gap-free hourly timeline over a lookback window."""

from __future__ import annotations

from datetime import datetime
from typing import List, Mapping

import pandas as pd

from space_weather_hq.ingestion.aggregate import METRIC_FIELDS, HourBucket, bucket_doc_id
from space_weather_hq.ingestion.normalize_donki import ONE_HOUR, hour_key, parse_instant, truncate_to_hour

TIMELINE_COLUMNS = ["doc_id", "timestamp", *METRIC_FIELDS]


def fill_timeline(buckets: Mapping[int, HourBucket], window_start: datetime, window_end: datetime) -> List[HourBucket]:
    """Emit one bucket per hour from the hour containing ``window_start`` through ``window_end``.

    ``window_end`` is compared untruncated, so the last bucket is the hour that
    contains it. Hours missing from ``buckets`` become zero-valued buckets;
    aggregated hours outside the window are ignored.
    """
    start = truncate_to_hour(parse_instant(window_start))
    end = parse_instant(window_end)

    timeline: List[HourBucket] = []
    cursor = start
    while cursor <= end:
        bucket = buckets.get(hour_key(cursor))
        timeline.append(bucket if bucket is not None else HourBucket.empty(cursor))
        cursor += ONE_HOUR
    return timeline


def expected_length(window_start: datetime, window_end: datetime) -> int:
    """Number of buckets fill_timeline produces for a window (0 if it is inverted)."""
    start = truncate_to_hour(parse_instant(window_start))
    end = parse_instant(window_end)
    if end < start:
        return 0
    return (end - start) // ONE_HOUR + 1


def timeline_to_frame(timeline: List[HourBucket]) -> pd.DataFrame:
    """Tabular form of a timeline, one row per hour, keyed by ``doc_id``."""
    rows = []
    for bucket in timeline:
        row = {"doc_id": bucket_doc_id(bucket.timestamp), "timestamp": bucket.timestamp}
        row.update({field: getattr(bucket, field) for field in METRIC_FIELDS})
        rows.append(row)
    return pd.DataFrame(rows, columns=TIMELINE_COLUMNS)

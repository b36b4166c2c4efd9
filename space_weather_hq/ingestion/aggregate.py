"""Hourly aggregation of normalized DONKI events."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

import pandas as pd

from space_weather_hq.ingestion.normalize_donki import BucketUpdate, hour_from_key, hour_key, parse_instant

# python attribute -> camelCase name used on the wire
WIRE_FIELDS = {
    "solar_flare_count": "solarFlareCount",
    "max_flare_intensity": "maxFlareIntensity",
    "cme_count": "cmeCount",
    "max_cme_speed": "maxCmeSpeed",
    "geomagnetic_storm_level": "geomagneticStormLevel",
}
METRIC_FIELDS = tuple(WIRE_FIELDS)


def _number(value: Any, cast=float):
    if value is None:
        return cast(0)
    try:
        if pd.isna(value):
            return cast(0)
    except (TypeError, ValueError):
        return cast(0)
    return cast(value)


@dataclass(frozen=True)
class HourBucket:
    """All activity observed during one clock hour (UTC)."""

    timestamp: datetime
    solar_flare_count: int = 0
    max_flare_intensity: float = 0.0
    cme_count: int = 0
    max_cme_speed: float = 0.0
    geomagnetic_storm_level: float = 0.0

    @property
    def hour_key(self) -> int:
        return hour_key(self.timestamp)

    @classmethod
    def empty(cls, timestamp: datetime) -> "HourBucket":
        return cls(timestamp=timestamp)

    def apply(self, update: BucketUpdate) -> "HourBucket":
        """Fold one event contribution into this bucket (count += n, max(a, b))."""
        return replace(
            self,
            solar_flare_count=self.solar_flare_count + update.solar_flare_count,
            max_flare_intensity=_max(self.max_flare_intensity, update.flare_intensity),
            cme_count=self.cme_count + update.cme_count,
            max_cme_speed=_max(self.max_cme_speed, update.cme_speed),
            geomagnetic_storm_level=_max(self.geomagnetic_storm_level, update.storm_level),
        )

    def to_dict(self) -> Dict[str, Any]:
        """camelCase representation with an ISO-8601 UTC timestamp."""
        payload: Dict[str, Any] = {"timestamp": iso_timestamp(self.timestamp)}
        for attr, wire_name in WIRE_FIELDS.items():
            payload[wire_name] = getattr(self, attr)
        return payload

    @property
    def metrics(self) -> Dict[str, Any]:
        return {field: getattr(self, field) for field in METRIC_FIELDS}

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "HourBucket":
        """Build a bucket from a snake_case or camelCase mapping; absent metrics are 0."""
        return cls(timestamp=parse_instant(record["timestamp"]), **record_metrics(record))


def record_metrics(record: Mapping[str, Any]) -> Dict[str, Any]:
    """Metric fields of a snake_case or camelCase mapping; absent, None or NaN values are 0."""

    def pick(attr: str):
        if attr in record:
            return record[attr]
        return record.get(WIRE_FIELDS[attr])

    return {
        "solar_flare_count": _number(pick("solar_flare_count"), int),
        "max_flare_intensity": _number(pick("max_flare_intensity")),
        "cme_count": _number(pick("cme_count"), int),
        "max_cme_speed": _number(pick("max_cme_speed")),
        "geomagnetic_storm_level": _number(pick("geomagnetic_storm_level")),
    }


def _max(current: float, candidate: Optional[float]) -> float:
    if candidate is None:
        return current
    return max(current, float(candidate))


def iso_timestamp(ts: datetime) -> str:
    """Millisecond ISO-8601 form with a Z suffix, e.g. 2024-01-01T05:00:00.000Z."""
    return ts.strftime("%Y-%m-%dT%H:%M:%S.") + f"{ts.microsecond // 1000:03d}Z"


def bucket_doc_id(ts: datetime) -> str:
    """Storage key for a bucket: 2024-01-01T05:00:00.000Z -> 2024-01-01_05-00-00-000Z."""
    return iso_timestamp(ts).replace(":", "-").replace(".", "-").replace("T", "_")


def aggregate(updates: Iterable[Tuple[int, BucketUpdate]]) -> Dict[int, HourBucket]:
    """Merge bucket updates into one bucket per hour key.

    Every field reduces with a commutative operation, so any ordering of
    ``updates`` produces the same result. Hours without updates are absent;
    the returned dict is ordered by hour key.
    """
    buckets: Dict[int, HourBucket] = {}
    for key, update in updates:
        bucket = buckets.get(key)
        if bucket is None:
            bucket = HourBucket.empty(hour_from_key(key))
        buckets[key] = bucket.apply(update)
    return dict(sorted(buckets.items()))

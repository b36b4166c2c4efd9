"""Normalization utilities for DONKI FLR, CMEAnalysis and GST events.

Each raw event becomes an ``(hour_key, BucketUpdate)`` pair. ``hour_key`` is
the number of whole hours since the unix epoch (UTC) of the event time, so
every event in the same clock hour shares one key.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import pandas as pd

from space_weather_hq.errors import ParseError

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1)
ONE_HOUR = timedelta(hours=1)

# ordinal distance from 'A' within the A/B/C/M/X classification alphabet
FLARE_LETTER_RANK = {"A": 0, "B": 1, "C": 2, "M": 3, "X": 4}


def parse_instant(value: Any) -> datetime:
    """Parse an ISO-8601 instant into a naive UTC datetime."""
    if value is None or value == "":
        raise ParseError("missing time value")
    if isinstance(value, datetime):
        ts = pd.Timestamp(value)
        if ts.tzinfo is not None:
            ts = ts.tz_convert("UTC").tz_localize(None)
        return ts.to_pydatetime()
    try:
        # pandas handles Z and timezone offsets; convert to UTC and drop tzinfo
        ts = pd.to_datetime(value, utc=True)
    except (ValueError, TypeError, OverflowError) as e:
        raise ParseError(f"unparseable time value {value!r}") from e
    if not isinstance(ts, pd.Timestamp) or pd.isna(ts):
        raise ParseError(f"unparseable time value {value!r}")
    return ts.tz_convert("UTC").tz_localize(None).to_pydatetime()


def truncate_to_hour(dt: datetime) -> datetime:
    return dt.replace(minute=0, second=0, microsecond=0)


def hour_key(dt: datetime) -> int:
    """Whole hours between the unix epoch and ``dt`` (naive UTC)."""
    return (truncate_to_hour(dt) - EPOCH) // ONE_HOUR


def hour_from_key(key: int) -> datetime:
    return EPOCH + key * ONE_HOUR


def parse_flare_class(class_type: Optional[str], strict: bool = False) -> Tuple[int, float]:
    """Split a class string like 'M2.5' into (letter rank, magnitude).

    Unknown letters clamp to rank 0 and unparseable magnitudes default to 0,
    each with a logged warning. ``strict=True`` raises ParseError instead.
    """
    if not class_type or not str(class_type).strip():
        if strict:
            raise ParseError("empty flare class")
        return 0, 0.0

    class_type = str(class_type).strip()
    letter = class_type[0].upper()
    rank = FLARE_LETTER_RANK.get(letter)
    if rank is None:
        if strict:
            raise ParseError(f"unknown flare class letter in {class_type!r}")
        logger.warning(f"unknown flare class letter in {class_type!r}, treating as rank 0")
        rank = 0

    try:
        magnitude = float(class_type[1:])
    except ValueError:
        if strict:
            raise ParseError(f"unparseable flare magnitude in {class_type!r}")
        logger.warning(f"unparseable flare magnitude in {class_type!r}, treating as 0")
        magnitude = 0.0

    if not math.isfinite(magnitude) or magnitude < 0:
        if strict:
            raise ParseError(f"invalid flare magnitude in {class_type!r}")
        magnitude = 0.0

    return rank, magnitude


def flare_intensity(class_type: Optional[str]) -> float:
    """Numeric flare strength: letter rank * 10 + magnitude (C3.4 -> 23.4)."""
    rank, magnitude = parse_flare_class(class_type)
    return rank * 10 + magnitude


def _optional_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if math.isfinite(result) else None


@dataclass(frozen=True)
class FlareEvent:
    begin_time: datetime
    class_type: Optional[str] = None

    @classmethod
    def from_donki(cls, record: Dict[str, Any]) -> "FlareEvent":
        return cls(begin_time=parse_instant(record.get("beginTime")), class_type=record.get("classType"))


@dataclass(frozen=True)
class CMEEvent:
    start_time: datetime
    speed: Optional[float] = None

    @classmethod
    def from_donki(cls, record: Dict[str, Any]) -> "CMEEvent":
        # CMEAnalysis entries carry time21_5 rather than startTime
        raw_time = record.get("startTime") or record.get("time21_5")
        return cls(start_time=parse_instant(raw_time), speed=_optional_float(record.get("speed")))


@dataclass(frozen=True)
class StormEvent:
    start_time: datetime
    kp_index: Optional[float] = None

    @classmethod
    def from_donki(cls, record: Dict[str, Any]) -> "StormEvent":
        kp = _optional_float(record.get("kpIndex"))
        if kp is None:
            # GST events report kp readings in allKpValues
            values = [v for v in record.get("allKpValues") or [] if isinstance(v, dict)]
            readings = [r for r in (_optional_float(v.get("kpIndex")) for v in values) if r is not None]
            kp = max(readings) if readings else None
        return cls(start_time=parse_instant(record.get("startTime")), kp_index=kp)


RawEvent = Union[FlareEvent, CMEEvent, StormEvent]


@dataclass(frozen=True)
class BucketUpdate:
    """Partial contribution of one event to its hour bucket.

    Counts are added; ``None`` maxima leave the bucket's value untouched.
    """

    solar_flare_count: int = 0
    flare_intensity: Optional[float] = None
    cme_count: int = 0
    cme_speed: Optional[float] = None
    storm_level: Optional[float] = None


def normalize(event: RawEvent) -> Tuple[int, BucketUpdate]:
    """Convert one raw event into its hour key and bucket contribution."""
    if isinstance(event, FlareEvent):
        return hour_key(event.begin_time), BucketUpdate(
            solar_flare_count=1, flare_intensity=flare_intensity(event.class_type)
        )
    if isinstance(event, CMEEvent):
        # only a positive speed is measurable; zero or missing speed still counts the CME
        speed = event.speed if event.speed is not None and event.speed > 0 else None
        return hour_key(event.start_time), BucketUpdate(cme_count=1, cme_speed=speed)
    if isinstance(event, StormEvent):
        kp = event.kp_index if event.kp_index is not None and event.kp_index > 0 else None
        return hour_key(event.start_time), BucketUpdate(storm_level=kp)
    raise TypeError(f"unsupported event type: {type(event).__name__}")


def _parse_records(records: Iterable[Dict[str, Any]], event_cls, label: str) -> List[RawEvent]:
    events: List[RawEvent] = []
    for record in records or []:
        if not isinstance(record, Mapping):
            logger.warning(f"skipping {label} entry that is not an object: {record!r}")
            continue
        try:
            events.append(event_cls.from_donki(record))
        except ParseError as e:
            logger.warning(f"skipping {label} event without a usable time: {e}")
    return events


def normalize_donki_events(
    flares: Iterable[Dict[str, Any]] = (),
    cmes: Iterable[Dict[str, Any]] = (),
    storms: Iterable[Dict[str, Any]] = (),
) -> List[Tuple[int, BucketUpdate]]:
    """Normalize raw DONKI payloads from all three feeds into bucket updates."""
    events: List[RawEvent] = []
    events.extend(_parse_records(flares, FlareEvent, "FLR"))
    events.extend(_parse_records(cmes, CMEEvent, "CME"))
    events.extend(_parse_records(storms, StormEvent, "GST"))
    return [normalize(event) for event in events]

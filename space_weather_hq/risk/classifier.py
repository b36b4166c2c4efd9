"""Severity classification of the latest hourly bucket."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from space_weather_hq.errors import NoDataYetError
from space_weather_hq.ingestion.aggregate import HourBucket, record_metrics

# kp 7 ~ G3-G5 storm, intensity 80 ~ X-class threshold
SEVERE_KP = 7
SEVERE_FLARE_INTENSITY = 80
# kp 5 ~ G1-G2 storm, intensity 40 ~ M-class threshold
MODERATE_KP = 5
MODERATE_FLARE_INTENSITY = 40
MINOR_CME_SPEED = 400
MINOR_KP = 3


class Severity(IntEnum):
    NORMAL = 0
    MINOR = 1
    MODERATE = 2
    SEVERE = 3

    @property
    def label(self) -> str:
        return self.name.capitalize()


@dataclass(frozen=True)
class Advisory:
    level: Severity
    title: str
    message: str
    details: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level.label,
            "severity": int(self.level),
            "title": self.title,
            "message": self.message,
            "details": self.details,
        }


ADVISORIES = {
    Severity.SEVERE: Advisory(
        level=Severity.SEVERE,
        title="SEVERE SPACE WEATHER ALERT!",
        message="SEVERE ALERT: Critical infrastructure at high risk from solar storm!",
        details=(
            "Expect widespread power grid fluctuations, significant satellite outages, and severe radio/GPS "
            "interference. Prepare for emergency protocols and communication blackouts."
        ),
    ),
    Severity.MODERATE: Advisory(
        level=Severity.MODERATE,
        title="Moderate Space Weather Watch",
        message="MODERATE WATCH: Potentially disruptive space weather incoming!",
        details=(
            "Possible aurora visible at mid-latitudes, minor power grid fluctuations, and occasional satellite "
            "navigation errors. Exercise caution, particularly for sensitive systems."
        ),
    ),
    Severity.MINOR: Advisory(
        level=Severity.MINOR,
        title="Minor Solar Activity Advisory",
        message="Minor Solar Activity detected. Monitoring advised.",
        details=(
            "Elevated radiation levels, potential for minor radio blackouts, especially in polar regions. "
            "No immediate widespread threats, but stay informed."
        ),
    ),
    Severity.NORMAL: Advisory(
        level=Severity.NORMAL,
        title="Nominal Conditions",
        message="All systems nominal. Space weather is calm.",
    ),
}


def classify(bucket: Union[HourBucket, Mapping[str, Any]]) -> Severity:
    """Map one bucket to a severity level; the first matching rule wins.

    Mappings only need the metric fields; a timestamp is not required.
    """
    metrics = bucket.metrics if isinstance(bucket, HourBucket) else record_metrics(bucket)

    kp = metrics["geomagnetic_storm_level"]
    intensity = metrics["max_flare_intensity"]

    if kp >= SEVERE_KP or intensity >= SEVERE_FLARE_INTENSITY:
        return Severity.SEVERE
    if kp >= MODERATE_KP or intensity >= MODERATE_FLARE_INTENSITY:
        return Severity.MODERATE
    if metrics["solar_flare_count"] > 0 or metrics["max_cme_speed"] > MINOR_CME_SPEED or kp >= MINOR_KP:
        return Severity.MINOR
    return Severity.NORMAL


def advisory_for(bucket: Union[HourBucket, Mapping[str, Any]]) -> Advisory:
    return ADVISORIES[classify(bucket)]


def latest_advisory(timeline: Sequence[HourBucket]) -> Advisory:
    """Advisory for the most recent bucket of a timeline.

    raises NoDataYetError when the timeline is empty.
    """
    if not timeline:
        raise NoDataYetError("no hourly space weather data available yet")
    latest = max(timeline, key=lambda b: b.timestamp)
    return advisory_for(latest)

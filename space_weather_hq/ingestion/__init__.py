"""space_weather_hq ingestion helpers."""

from .aggregate import HourBucket, aggregate  # noqa: F401
from .donki_client import DonkiClient  # noqa: F401
from .normalize_donki import flare_intensity, normalize, normalize_donki_events  # noqa: F401
from .timeline import fill_timeline  # noqa: F401

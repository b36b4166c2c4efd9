"""http api for the hourly timeline and advisories."""

from .app import create_app  # noqa: F401

"""space weather hq: hourly solar activity timeline and risk advisories."""

__version__ = "0.1.0"

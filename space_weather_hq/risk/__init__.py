"""space weather risk classification."""

from .classifier import ADVISORIES, Advisory, Severity, advisory_for, classify, latest_advisory  # noqa: F401

"""NASA DONKI client for FLR, CMEAnalysis and GST events.

Rate-limited responses (HTTP 429) are retried with pure exponential backoff;
every other failure surfaces immediately as a TransportError.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter

from space_weather_hq.config import DataConfig
from space_weather_hq.errors import TransportError

logger = logging.getLogger(__name__)

RATE_LIMITED = 429


class DonkiClient:
    """Client for the three DONKI event feeds."""

    BASE_URL = "https://api.nasa.gov/DONKI"

    def __init__(
        self,
        api_key: str = "DEMO_KEY",
        timeout: int = 30,
        base_url: Optional[str] = None,
        max_retries: int = 5,
        initial_delay_ms: int = 1000,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.api_key = api_key
        self.timeout = timeout
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.max_retries = max_retries
        self.initial_delay_ms = initial_delay_ms
        self._sleep = sleep
        self.session = self._create_session()

    @classmethod
    def from_config(cls, api_key: Optional[str] = None) -> "DonkiClient":
        return cls(
            api_key=api_key or DataConfig.NASA_API_KEY,
            timeout=DataConfig.REQUEST_TIMEOUT,
            base_url=DataConfig.DONKI_BASE_URL,
            max_retries=DataConfig.MAX_RETRIES,
            initial_delay_ms=DataConfig.INITIAL_DELAY_MS,
        )

    def _create_session(self) -> requests.Session:
        # retries are owned by fetch_json, so the transport adapter never retries
        session = requests.Session()
        adapter = HTTPAdapter(pool_connections=3, pool_maxsize=3, max_retries=0)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return session

    def fetch_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        retries: Optional[int] = None,
        delay_ms: Optional[int] = None,
    ) -> Any:
        """GET ``url`` and return the decoded JSON document.

        Waits ``delay_ms`` after a 429 and doubles it for the next attempt,
        at most ``retries`` times. Holds no per-call state on the client, so
        independent URLs can be fetched from several threads at once.
        """
        retries = self.max_retries if retries is None else retries
        delay_ms = self.initial_delay_ms if delay_ms is None else delay_ms

        while True:
            try:
                response = self.session.get(url, params=params, timeout=self.timeout)
            except requests.RequestException as e:
                logger.error(f"DONKI request to {url} failed: {e}")
                raise TransportError(f"request to {url} failed: {e}", url=url) from e

            if response.status_code == RATE_LIMITED and retries > 0:
                logger.warning(
                    f"rate limited by {url} ({response.status_code}). "
                    f"retrying in {delay_ms / 1000:.1f}s (retries left: {retries})"
                )
                self._sleep(delay_ms / 1000.0)
                retries -= 1
                delay_ms *= 2
                continue

            if not response.ok:
                logger.error(f"DONKI request to {url} returned HTTP {response.status_code}")
                raise TransportError(
                    f"HTTP error {response.status_code} from {url}", status_code=response.status_code, url=url
                )

            # DONKI answers some empty windows with an empty body
            if not response.content or not response.content.strip():
                return []
            try:
                return response.json()
            except ValueError as e:
                raise TransportError(f"invalid JSON from {url}: {e}", status_code=response.status_code, url=url) from e

    def _fetch_events(self, endpoint: str, start_date: str, end_date: str, extra: Optional[Dict] = None) -> List[Dict]:
        params: Dict[str, Any] = {"startDate": start_date, "endDate": end_date}
        if extra:
            params.update(extra)
        params["api_key"] = self.api_key

        url = f"{self.base_url}/{endpoint}"
        data = self.fetch_json(url, params=params)
        if not isinstance(data, list):
            raise TransportError(f"unexpected DONKI response shape from {endpoint}: not a list", url=url)
        logger.info(f"fetched {len(data)} {endpoint} events for {start_date} -> {end_date}")
        return data

    def fetch_flares(self, start_date: str, end_date: str) -> List[Dict]:
        """Fetch FLR events for a date window [start_date, end_date]."""
        return self._fetch_events(DataConfig.ENDPOINTS["flares"], start_date, end_date)

    def fetch_cmes(self, start_date: str, end_date: str) -> List[Dict]:
        """Fetch the most accurate CMEAnalysis entries for a date window."""
        return self._fetch_events(DataConfig.ENDPOINTS["cmes"], start_date, end_date, extra=DataConfig.CME_PARAMS)

    def fetch_storms(self, start_date: str, end_date: str) -> List[Dict]:
        """Fetch GST events for a date window [start_date, end_date]."""
        return self._fetch_events(DataConfig.ENDPOINTS["storms"], start_date, end_date)

    def fetch_all(self, start: datetime, end: datetime) -> Dict[str, List[Dict]]:
        """Fetch flares, CMEs and storms concurrently.

        Returns a dict with ``flares``, ``cmes`` and ``storms`` keys. The
        first TransportError raised by any feed propagates.
        """
        start_str = start.strftime("%Y-%m-%d")
        end_str = end.strftime("%Y-%m-%d")
        fetchers = {
            "flares": self.fetch_flares,
            "cmes": self.fetch_cmes,
            "storms": self.fetch_storms,
        }
        with ThreadPoolExecutor(max_workers=len(fetchers), thread_name_prefix="donki") as pool:
            futures = {name: pool.submit(fn, start_str, end_str) for name, fn in fetchers.items()}
            return {name: future.result() for name, future in futures.items()}

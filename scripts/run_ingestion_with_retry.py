#!/usr/bin/env python3
"""
run space weather ingestion with whole-run retries for cron workflows.

the fetcher only backs off on rate limits; this retries the entire run on
transport or persistence failures.
"""

import sys
import time
import logging
from pathlib import Path
from typing import Optional, Tuple

# add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from space_weather_hq.errors import TransportError  # noqa: E402

# setup logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


def run_ingestion_with_retry(max_retries: int = 3, retry_delay: int = 60) -> Tuple[bool, Optional[str]]:
    """
    run ingestion with retry logic.

    args:
        max_retries: maximum number of attempts
        retry_delay: delay between attempts in seconds

    returns:
        tuple of (success, error_message)
    """
    # import here to avoid loading modules on script load
    from space_weather_hq.ingestion.run_ingestion import SpaceWeatherPipeline

    pipeline = SpaceWeatherPipeline()
    error_msg = "max retries exceeded"

    for attempt in range(1, max_retries + 1):
        logger.info(f"ingestion attempt {attempt}/{max_retries}")
        try:
            stats = pipeline.run()
            if stats["status"] == "success":
                logger.info("ingestion successful")
                return True, None
            error_msg = f"ingestion {stats['status']}: {stats.get('error_message')}"
        except TransportError as e:
            error_msg = f"transport error (status={e.status_code}): {e}"

        logger.warning(error_msg)
        if attempt < max_retries:
            logger.info(f"retrying in {retry_delay} seconds...")
            time.sleep(retry_delay)

    return False, error_msg


if __name__ == "__main__":
    success, error = run_ingestion_with_retry()

    if success:
        logger.info("ingestion completed successfully")
        sys.exit(0)
    else:
        logger.error(f"ingestion failed: {error}")
        sys.exit(1)

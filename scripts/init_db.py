#!/usr/bin/env python
"""create the space weather tables, asking before dropping stored buckets."""

import sys
from pathlib import Path

# add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from space_weather_hq.cli import main  # noqa: E402


if __name__ == "__main__":
    argv = ["init-db"]
    if "--drop" in sys.argv[1:]:
        answer = input("drop existing hourly buckets and ingestion log? (y/N): ")
        if answer.lower().strip() != "y":
            print("aborted, nothing dropped")
            sys.exit(1)
        argv.append("--drop")
    sys.exit(main(argv))

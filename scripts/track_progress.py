#!/usr/bin/env python3
from __future__ import annotations

import argparse
import logging

from cgmanifest_schema import create_client
from cgmanifest_schema.tracker import track_progress

log = logging.getLogger("track_progress")


def main() -> int:
    ap = argparse.ArgumentParser(description="Tally merged/open/closed cgmanifest $schema pull requests.")
    ap.add_argument(
        "--owner",
        default=None,
        help="Owner of the repositories the PRs live in (default: the authenticated user)",
    )
    ap.add_argument("--env-file", default=None)
    args = ap.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")

    client = create_client(dotenv_path=args.env_file)
    report = track_progress(client, args.owner)

    for line in report.tally.lines():
        print(line)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

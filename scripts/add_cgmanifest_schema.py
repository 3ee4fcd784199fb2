#!/usr/bin/env python3
"""
Fork every repository of an organization that has a cgmanifest.json, add
`$schema` to the manifest on a maintenance branch and open a pull request.

Safe to rerun: existing forks are reused, repositories whose fork already has
the campaign pull request are skipped, stale maintenance branches are
recreated.

Prereqs:
  - GITHUB_TOKEN in the environment or in .env (or `gh auth login`)
"""
from __future__ import annotations

import argparse
import logging
from dataclasses import replace

from cgmanifest_schema import CampaignConfig, create_client
from cgmanifest_schema.orchestrator import RepoState, run_campaign, summarize

log = logging.getLogger("add_cgmanifest_schema")


def main() -> int:
    defaults = CampaignConfig()
    ap = argparse.ArgumentParser(description="Add $schema to cgmanifest.json files across an organization.")
    ap.add_argument("--org", default=defaults.org, help=f"Organization to search (default: {defaults.org})")
    ap.add_argument("--schema-url", default=defaults.schema_url)
    ap.add_argument("--branch", default=defaults.branch_name, help="Maintenance branch created on each fork")
    ap.add_argument("--max-repos", type=int, default=0, help="If >0, limit how many repos are processed")
    ap.add_argument(
        "--continue-on-error",
        action="store_true",
        help="Record API/manifest errors per repository and keep going instead of aborting the run",
    )
    ap.add_argument("--dry-run", action="store_true", help="Only read from GitHub and log planned actions")
    ap.add_argument("--env-file", default=None, help="Path to a .env file (default: search from cwd)")
    ap.add_argument("-v", "--verbose", action="store_true")
    args = ap.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )

    config = replace(
        defaults,
        org=args.org,
        schema_url=args.schema_url,
        branch_name=args.branch,
        continue_on_error=args.continue_on_error,
    )
    client = create_client(config, dotenv_path=args.env_file)
    log.info("Authenticated as %s", client.current_user)

    outcomes = run_campaign(client, dry_run=args.dry_run, max_repos=args.max_repos)

    counts = summarize(outcomes)
    log.info("Done. %s", " ".join(f"{k}={v}" for k, v in counts.items()) or "nothing to do")

    if any(o.state == RepoState.FAILED for o in outcomes):
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

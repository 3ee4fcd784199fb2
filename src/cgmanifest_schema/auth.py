from __future__ import annotations

import os
import subprocess
from typing import Optional

from dotenv import load_dotenv

def get_token_from_env(dotenv_path: Optional[str] = None) -> Optional[str]:
    """
    Reads GITHUB_TOKEN (or GH_TOKEN) after merging a local .env file into
    the process environment. Variables already set in the process win.
    """
    load_dotenv(dotenv_path)
    return os.getenv("GITHUB_TOKEN") or os.getenv("GH_TOKEN")


def get_token_from_gh_cli(hostname: str = "github.com") -> Optional[str]:
    """
    Uses GitHub CLI to fetch an access token from the local auth context.
    Requires: gh auth login
    """
    try:
        proc = subprocess.run(
            ["gh", "auth", "token", "--hostname", hostname],
            check=True,
            capture_output=True,
            text=True,
        )
    except (OSError, subprocess.CalledProcessError):
        return None
    token = proc.stdout.strip()
    return token or None

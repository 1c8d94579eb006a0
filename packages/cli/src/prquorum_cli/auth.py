"""GitHub token fallback through the gh CLI.

load_config has already applied the source ``access_token`` and the
``GITHUB_TOKEN`` environment variable; this module is the last link of the
chain and asks an authenticated ``gh`` session for a token.
"""

from __future__ import annotations

import logging
import subprocess

logger = logging.getLogger(__name__)


def resolve_github_token(configured: str = "") -> str | None:
    """Return the configured token, else the gh CLI session token, else None.

    Never raises: an unauthenticated client still works against public repositories.
    """
    if configured:
        return configured

    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired):
        logger.debug("gh CLI unavailable; continuing without a token.")
        return None

    token = result.stdout.strip() if result.returncode == 0 else ""
    if token:
        logger.debug("Resolved GitHub token via gh CLI session.")
    return token or None

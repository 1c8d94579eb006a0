"""Working-copy client: drives the ``git`` executable to materialize a pull request.

The sequence used by the in step is always
    init(base_ref) → pull(base) → fetch(pull/N/head) → rebase | merge | checkout
inside a single directory. Credentials are injected with a
``url.<authenticated>.insteadOf`` rewrite passed through ``GIT_CONFIG_*``
environment variables, so neither the remote URL nor ``.git/config`` holds them.
"""

from __future__ import annotations

import logging
import os
import subprocess
from urllib.parse import quote, urlsplit, urlunsplit

from prquorum_core.errors import TransportError

logger = logging.getLogger(__name__)

_GIT_USER_NAME = "prquorum"
_GIT_USER_EMAIL = "prquorum@users.noreply.github.com"


class GitClient:
    def __init__(
        self,
        directory: str,
        access_token: str = "",
        username: str = "",
        password: str = "",
        skip_ssl: bool = False,
        disable_git_lfs: bool = False,
    ):
        self.directory = directory
        self._token = access_token
        self._username = username
        self._password = password
        self._skip_ssl = skip_ssl
        self._env = {**os.environ, "GIT_TERMINAL_PROMPT": "0"}
        if disable_git_lfs:
            self._env["GIT_LFS_SKIP_SMUDGE"] = "1"

    def init(self, base_ref: str) -> None:
        self._git("init")
        self._git("checkout", "-b", base_ref)
        self._git("config", "user.name", _GIT_USER_NAME)
        self._git("config", "user.email", _GIT_USER_EMAIL)
        if self._skip_ssl:
            self._git("config", "http.sslVerify", "false")

    def pull(self, url: str, ref: str, depth: int = 0, submodules: bool = False, fetch_tags: bool = False) -> None:
        self._configure_auth(url)
        self._git("remote", "add", "origin", url)
        args = ["pull", "origin", ref]
        if depth > 0:
            args.append(f"--depth={depth}")
        if submodules:
            args.append("--recurse-submodules")
        args.append("--tags" if fetch_tags else "--no-tags")
        self._git(*args)
        if submodules:
            self._update_submodules(depth)

    def fetch(self, url: str, pr_number: int, depth: int = 0, submodules: bool = False) -> None:
        self._configure_auth(url)
        args = ["fetch", url, f"pull/{pr_number}/head"]
        if depth > 0:
            args.append(f"--depth={depth}")
        if submodules:
            args.append("--recurse-submodules")
        self._git(*args)

    def rebase(self, base_ref: str, head_sha: str, submodules: bool = False) -> None:
        self._git("checkout", "-b", f"pr-{base_ref}", head_sha)
        self._git("rebase", base_ref)
        if submodules:
            self._update_submodules()

    def merge(self, head_sha: str, submodules: bool = False) -> None:
        self._git("merge", head_sha, "--no-stat")
        if submodules:
            self._update_submodules()

    def checkout(self, head_ref: str, head_sha: str, submodules: bool = False) -> None:
        self._git("checkout", "-b", head_ref, head_sha)
        if submodules:
            self._update_submodules()

    def _update_submodules(self, depth: int = 0) -> None:
        args = ["submodule", "update", "--init", "--recursive"]
        if depth > 0:
            args.append(f"--depth={depth}")
        self._git(*args)

    def _credentials(self) -> str:
        if self._token:
            return f"x-oauth-basic:{quote(self._token, safe='')}"
        if self._username and self._password:
            return f"{quote(self._username, safe='')}:{quote(self._password, safe='')}"
        return ""

    def _configure_auth(self, url: str) -> None:
        credentials = self._credentials()
        if not credentials:
            return
        parts = urlsplit(url)
        if parts.scheme not in ("http", "https"):
            return
        prefix = urlunsplit((parts.scheme, parts.netloc, "/", "", ""))
        authed = urlunsplit((parts.scheme, f"{credentials}@{parts.netloc}", "/", "", ""))
        self._env.update(
            {
                "GIT_CONFIG_COUNT": "1",
                "GIT_CONFIG_KEY_0": f"url.{authed}.insteadOf",
                "GIT_CONFIG_VALUE_0": prefix,
            }
        )

    def _redact(self, text: str) -> str:
        for secret in (self._token, self._password):
            if secret:
                text = text.replace(secret, "[REDACTED]").replace(quote(secret, safe=""), "[REDACTED]")
        return text

    def _git(self, *args: str) -> str:
        cmd = ["git", *args]
        logger.debug("Running %s in %s", self._redact(" ".join(cmd)), self.directory)
        try:
            result = subprocess.run(cmd, cwd=self.directory, env=self._env, capture_output=True, text=True)
        except FileNotFoundError as e:
            raise TransportError(f"git executable not found: {e}") from e
        if result.returncode != 0:
            raise TransportError(
                f"git {self._redact(' '.join(args))} failed with exit code {result.returncode}: "
                f"{self._redact(result.stderr.strip())}"
            )
        return result.stdout

"""Error types raised by prquorum.

Every failure aborts the current invocation. The CLI maps any PrquorumError
to a non-zero exit with the message on stderr and nothing on stdout.
"""

from __future__ import annotations


class PrquorumError(Exception):
    """Base class for all prquorum failures."""


class ConfigError(PrquorumError):
    """Invalid configuration: unknown integration tool, malformed regex, missing repository."""


class TransportError(PrquorumError):
    """A GitHub API call or a git subprocess failed."""


class DecodeError(PrquorumError):
    """A request, version token, or response entry could not be decoded."""


class ArtifactError(PrquorumError, OSError):
    """An artifact could not be written to the output directory."""

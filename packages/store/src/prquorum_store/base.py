"""Abstract artifact store interface.

The CLI depends on BaseStore, not on a concrete backend, so the output
layout can change without touching CLI code.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from prquorum_store.models import ArtifactRecord


class BaseStore(ABC):
    """Persistence layer for the artifacts of one in step.

    Implementations raise OSError on write failures. Files written before
    the failure are left in place.
    """

    @abstractmethod
    def save(self, record: ArtifactRecord, map_metadata: bool = False) -> None:
        """Persist the version, the metadata and, with map_metadata, one tree per matched message."""

    def close(self) -> None:
        """Release any resources held by the store.

        Default is a no-op so callers can always call close() safely.
        """

"""DirectoryStore: writes in-step artifacts as plain files.

Layout of the output directory:
  version.json        the version exactly as received
  metadata.json       JSON array of {"name", "value"}
  <name>              one file per metadata field (last write wins on duplicate names)
  approval/<i>/<f>    with map_metadata: one directory per approval, one file per field/capture
  review/<i>/<f>      same for reviews
"""

from __future__ import annotations

import json
import logging
import os

from prquorum_store.base import BaseStore
from prquorum_store.models import ArtifactRecord, MessageRecord

logger = logging.getLogger(__name__)

VERSION_FILE = "version.json"
METADATA_FILE = "metadata.json"


class DirectoryStore(BaseStore):
    def __init__(self, output_dir: str):
        self.output_dir = output_dir

    def save(self, record: ArtifactRecord, map_metadata: bool = False) -> None:
        os.makedirs(self.output_dir, exist_ok=True)

        self._write(VERSION_FILE, json.dumps(record.version, separators=(",", ":")))
        self._write(
            METADATA_FILE,
            json.dumps([{"name": f.name, "value": f.value} for f in record.metadata], separators=(",", ":")),
        )
        for f in record.metadata:
            self._write(f.name, f.value)

        if map_metadata:
            self._write_map("approval", record.approvals)
            self._write_map("review", record.reviews)

        logger.debug("Wrote %d metadata field(s) to %s", len(record.metadata), self.output_dir)

    def _write_map(self, parent: str, messages: list[MessageRecord]) -> None:
        for i, message in enumerate(messages, 1):
            directory = os.path.join(parent, str(i))
            os.makedirs(os.path.join(self.output_dir, directory), exist_ok=True)
            for f in message.fields:
                self._write(os.path.join(directory, f.name), f.value)
            for name, value in message.matches.items():
                self._write(os.path.join(directory, name), value)

    def _write(self, relative_path: str, content: str) -> None:
        with open(os.path.join(self.output_dir, relative_path), "w", encoding="utf-8") as f:
            f.write(content)

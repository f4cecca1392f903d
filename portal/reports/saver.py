from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class ReportSaver(Protocol):
    def save(self, filename: str, content_type: str, data: bytes) -> str:
        """Persist the artifact and return where it went."""


class DirectorySaver:
    """Write downloaded reports into a directory, never overwriting files."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def save(self, filename: str, content_type: str, data: bytes) -> str:
        self.directory.mkdir(parents=True, exist_ok=True)
        target = self._free_path(Path(filename).name)
        target.write_bytes(data)
        logger.info("Saved %s report (%d bytes) to %s", content_type, len(data), target)
        return str(target)

    def _free_path(self, name: str) -> Path:
        candidate = self.directory / name
        stem, suffix = candidate.stem, candidate.suffix
        counter = 1
        while candidate.exists():
            candidate = self.directory / f"{stem} ({counter}){suffix}"
            counter += 1
        return candidate

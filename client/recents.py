"""
Recent-file registries.

Two bounded lists of previously opened locations are kept, one for datasets
and one for imported binaries. Each list lives under its own key in a small
JSON key-value area inside the configuration directory.
"""

import json
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional

from pydantic import BaseModel, Field, ValidationError

from api.app_config import resolve_config_dir
from api.shared.logger import get_logger

logger = get_logger(__name__)

MAX_RECENT_FILES = 8


class RecentKind(str, Enum):
    DATASET = "dataset"
    BINARY = "binary"


STORAGE_KEYS = {
    RecentKind.DATASET: "caldb-dataset-recents",
    RecentKind.BINARY: "caldb-binary-recents",
}


class RecentFileEntry(BaseModel):
    """One previously opened location."""

    name: str
    path: Optional[str] = None
    last_opened: datetime = Field(default_factory=datetime.now)

    def same_file(self, other: "RecentFileEntry") -> bool:
        return self.name == other.name and self.path == other.path


class JsonKeyValueStore:
    """Durable key-value area: one JSON document per key."""

    def __init__(self, directory: Optional[Path] = None):
        self.directory = Path(directory) if directory is not None else Path(resolve_config_dir())

    def _file(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Any:
        """Return the decoded value for ``key``, or ``None`` if absent or unreadable."""
        path = self._file(key)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable state file %s: %s", path, e)
            return None

    def set(self, key: str, value: Any) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        with open(self._file(key), "w", encoding="utf-8") as f:
            json.dump(value, f, indent=2)


class RecentFileRegistry:
    """Most-recent-first lists of reopenable locations, one per ``RecentKind``."""

    def __init__(self, storage: Optional[JsonKeyValueStore] = None, max_entries: int = MAX_RECENT_FILES):
        self.storage = storage if storage is not None else JsonKeyValueStore()
        self.max_entries = max_entries

    def list(self, kind: RecentKind) -> List[RecentFileEntry]:
        """Stored entries for ``kind``; missing or malformed data reads as empty."""
        raw = self.storage.get(STORAGE_KEYS[kind])
        if not isinstance(raw, list):
            return []
        entries = []
        for item in raw:
            try:
                entry = RecentFileEntry.model_validate(item)
            except ValidationError:
                logger.warning("Dropping malformed %s recent entry: %r", kind.value, item)
                continue
            if entry.path:
                entries.append(entry)
        return entries

    def record(self, kind: RecentKind, entry: RecentFileEntry) -> List[RecentFileEntry]:
        """Move ``entry`` to the front of the ``kind`` list and persist it.

        Entries without a location cannot be reopened and are not stored.
        """
        entries = self.list(kind)
        if not entry.path:
            return entries

        # Remove if already exists
        entries = [existing for existing in entries if not existing.same_file(entry)]
        entries.insert(0, entry)
        entries = entries[: self.max_entries]

        try:
            self.storage.set(
                STORAGE_KEYS[kind],
                [e.model_dump(mode="json") for e in entries],
            )
        except OSError as e:
            logger.warning("Failed to save %s recents: %s", kind.value, e)
        return entries

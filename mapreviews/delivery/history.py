"""
Run history persisted as a JSON file.

Entries are stored newest first and capped at ``max_entries``. A save is
skipped when an entry of the same mode (and, in brand mode, the same brand)
was saved within the dedupe window.

Usage:
    store = HistoryStore(Path("data/history.json"))
    store.record(artifact, mode=SearchMode.BRAND, brand_name="Acme", ai_enabled=True)
    for entry in store.list_entries():
        print(entry.brand_name, entry.places_count)
"""

import json
import time
import uuid
from pathlib import Path
from typing import Callable, Optional

import structlog
from pydantic import Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from mapreviews.models.schemas import CamelModel, RunArtifact, SearchMode

logger = structlog.get_logger(__name__)


class HistoryEntry(CamelModel):
    """A completed run saved for later reload."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: float = Field(..., description="Epoch seconds when the entry was saved")
    mode: SearchMode
    brand_name: Optional[str] = None
    places_count: int = 0
    reviews_count: int = 0
    ai_enabled: bool = False
    results: RunArtifact = Field(default_factory=RunArtifact)


_entries_adapter = TypeAdapter(list[HistoryEntry])


class HistoryStore:
    """File-backed run history."""

    def __init__(
        self,
        path: Path,
        max_entries: int = 20,
        dedupe_window_seconds: float = 60.0,
        clock: Callable[[], float] = time.time,
    ):
        self.path = Path(path)
        self.max_entries = max_entries
        self.dedupe_window_seconds = dedupe_window_seconds
        self.clock = clock

    # -------------------------------------------------------------------------
    # File I/O
    # -------------------------------------------------------------------------

    def _read(self) -> list[HistoryEntry]:
        if not self.path.exists():
            return []
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            return _entries_adapter.validate_python(raw)
        except (OSError, json.JSONDecodeError, PydanticValidationError) as e:
            logger.warning("history_unreadable", path=str(self.path), error=str(e))
            return []

    def _write(self, entries: list[HistoryEntry]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = [entry.to_json_dict() for entry in entries]
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
        tmp_path.replace(self.path)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def list_entries(self) -> list[HistoryEntry]:
        """All entries, newest first."""
        return self._read()

    def get(self, entry_id: str) -> Optional[HistoryEntry]:
        for entry in self._read():
            if entry.id == entry_id:
                return entry
        return None

    def is_duplicate(self, entry: HistoryEntry, existing: list[HistoryEntry]) -> bool:
        for other in existing:
            if entry.timestamp - other.timestamp >= self.dedupe_window_seconds:
                continue
            if other.mode != entry.mode:
                continue
            if entry.mode == SearchMode.URL or other.brand_name == entry.brand_name:
                return True
        return False

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def save(self, entry: HistoryEntry) -> bool:
        """
        Insert an entry at the front of the history.

        Args:
            entry: Entry to store

        Returns:
            False when the entry was skipped as a duplicate
        """
        entries = self._read()
        if self.is_duplicate(entry, entries):
            logger.info("history_duplicate_skipped", mode=entry.mode.value, brand=entry.brand_name)
            return False

        entries.insert(0, entry)
        del entries[self.max_entries:]
        self._write(entries)
        logger.info("history_saved", entry_id=entry.id, entries=len(entries))
        return True

    def record(
        self,
        artifact: RunArtifact,
        mode: SearchMode,
        brand_name: Optional[str] = None,
        ai_enabled: bool = False,
    ) -> Optional[HistoryEntry]:
        """Build an entry for a finished run and save it; None if it was a duplicate."""
        entry = HistoryEntry(
            timestamp=self.clock(),
            mode=mode,
            brand_name=brand_name if mode == SearchMode.BRAND else None,
            places_count=len(artifact.places),
            reviews_count=artifact.aggregate_stats.total_reviews,
            ai_enabled=ai_enabled,
            results=artifact,
        )
        return entry if self.save(entry) else None

    def delete(self, entry_id: str) -> bool:
        entries = self._read()
        remaining = [entry for entry in entries if entry.id != entry_id]
        if len(remaining) == len(entries):
            return False
        self._write(remaining)
        return True

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
        logger.info("history_cleared", path=str(self.path))

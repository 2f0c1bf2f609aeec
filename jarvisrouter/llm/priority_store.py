"""File-backed provider priority store.

The store keeps an immutable snapshot of the priority collection in memory.
Reads return the current snapshot; writes build a new snapshot, persist it
atomically (temp file + rename) and only then swap it in. Runtime changes
made by another process become visible after ``reload()``.
"""

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from pydantic import ValidationError as PydanticValidationError

from ..config.exceptions import ConfigError, NotFoundError
from .models import PriorityEntry, ProviderDescriptor

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY_FILE = "priority.json"
DEFAULT_PRIORITY_ORDER = ["gemini", "groq", "github", "openrouter"]


class _Snapshot:
    """Immutable view of one loaded priority file."""

    __slots__ = ("entries", "settings")

    def __init__(self, entries: Tuple[PriorityEntry, ...], settings: Dict[str, Any]):
        self.entries = entries
        self.settings = settings


class PriorityStore:
    """Durable, reorderable ranking of providers."""

    def __init__(self, path: Union[str, Path] = DEFAULT_PRIORITY_FILE):
        self.path = Path(path)
        self._snapshot: Optional[_Snapshot] = None
        self._lock = Lock()

    # ========================================================================
    # Loading
    # ========================================================================

    def load(self) -> List[PriorityEntry]:
        """Read the priority file, caching the result.

        Raises:
            ConfigError: If the file is missing or malformed
        """
        return list(self._load_snapshot().entries)

    def _load_snapshot(self) -> _Snapshot:
        with self._lock:
            if self._snapshot is None:
                self._snapshot = self._read()
            return self._snapshot

    def reload(self) -> List[PriorityEntry]:
        """Discard the cached collection and re-read it from disk."""
        with self._lock:
            self._snapshot = None
        return self.load()

    @property
    def loaded(self) -> bool:
        return self._snapshot is not None

    def _read(self) -> _Snapshot:
        if not self.path.exists():
            raise ConfigError(
                f"Priority configuration file not found: {self.path}. "
                "Create it with 'jarvisrouter priority init'.",
                str(self.path),
            )

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Failed to read priority configuration {self.path}: {e}", str(self.path)) from e

        if not isinstance(data, dict) or not isinstance(data.get("providers"), list):
            raise ConfigError("Invalid priority configuration: providers array is required", str(self.path))

        entries: List[PriorityEntry] = []
        seen = set()
        for index, raw in enumerate(data["providers"]):
            try:
                entry = PriorityEntry.model_validate(raw)
            except PydanticValidationError as e:
                raise ConfigError(
                    f"Invalid provider entry #{index} in priority configuration: {e.errors()[0]['msg']}",
                    str(self.path),
                ) from e
            if entry.id in seen:
                raise ConfigError(f"Duplicate provider id in priority configuration: {entry.id}", str(self.path))
            seen.add(entry.id)
            entries.append(entry)

        settings = data.get("settings") or {}
        if not isinstance(settings, dict):
            raise ConfigError("Invalid priority configuration: settings must be an object", str(self.path))

        logger.info(f"Priority configuration loaded from {self.path} ({len(entries)} providers)")
        return _Snapshot(tuple(entries), dict(settings))

    def _current(self) -> _Snapshot:
        snapshot = self._snapshot
        if snapshot is None:
            snapshot = self._load_snapshot()
        return snapshot

    # ========================================================================
    # Queries
    # ========================================================================

    def entries(self) -> List[PriorityEntry]:
        """All entries, enabled or not, sorted by priority."""
        return sorted(self._current().entries, key=lambda e: e.priority)

    def ordered_enabled_provider_ids(self) -> List[str]:
        """Enabled provider ids, highest precedence (lowest priority) first."""
        return [e.id for e in self.entries() if e.enabled]

    def get_entry(self, provider_id: str) -> PriorityEntry:
        for entry in self._current().entries:
            if entry.id == provider_id:
                return entry
        raise NotFoundError(provider_id, str(self.path))

    def model_for(self, provider_id: str) -> str:
        return self.get_entry(provider_id).model

    @property
    def settings(self) -> Dict[str, Any]:
        return dict(self._current().settings)

    # ========================================================================
    # Mutations
    # ========================================================================

    def set_priority(self, provider_id: str, priority: int) -> PriorityEntry:
        entry = self._update(provider_id, priority=int(priority))
        logger.info(f"Updated priority for {provider_id} to {priority}")
        return entry

    def set_enabled(self, provider_id: str, enabled: bool) -> PriorityEntry:
        entry = self._update(provider_id, enabled=bool(enabled))
        logger.info(f"{'Enabled' if enabled else 'Disabled'} provider {provider_id}")
        return entry

    def set_model(self, provider_id: str, model: str) -> PriorityEntry:
        if not model or not model.strip():
            raise ConfigError("Model name cannot be empty", str(self.path))
        entry = self._update(provider_id, model=model.strip())
        logger.info(f"Updated model for {provider_id} to {model}")
        return entry

    def _update(self, provider_id: str, **changes: Any) -> PriorityEntry:
        with self._lock:
            snapshot = self._snapshot if self._snapshot is not None else self._read()

            updated: Optional[PriorityEntry] = None
            entries = []
            for entry in snapshot.entries:
                if entry.id == provider_id:
                    updated = entry.model_copy(update=changes)
                    entries.append(updated)
                else:
                    entries.append(entry)
            if updated is None:
                raise NotFoundError(provider_id, str(self.path))

            new_snapshot = _Snapshot(tuple(entries), snapshot.settings)
            self._write(new_snapshot)
            self._snapshot = new_snapshot
            return updated

    def _write(self, snapshot: _Snapshot) -> None:
        data = {
            "providers": [e.model_dump() for e in snapshot.entries],
            "settings": snapshot.settings,
            "lastUpdated": datetime.now(timezone.utc).isoformat(),
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, self.path)
        except OSError as e:
            if temp_path.exists():
                temp_path.unlink()
            raise ConfigError(f"Failed to save priority configuration {self.path}: {e}", str(self.path)) from e

    # ========================================================================
    # Seeding
    # ========================================================================

    @classmethod
    def initialize(
        cls,
        path: Union[str, Path],
        descriptors: Iterable[ProviderDescriptor],
        order: Optional[List[str]] = None,
        overwrite: bool = False,
    ) -> "PriorityStore":
        """Explicitly write a seed priority file and return a loaded store.

        Providers listed in ``order`` come first (default: gemini, groq,
        github, openrouter); any others follow in descriptor order.

        Raises:
            ConfigError: If the file exists and ``overwrite`` is False
        """
        store = cls(path)
        if store.path.exists() and not overwrite:
            raise ConfigError(f"Priority configuration already exists: {store.path}", str(store.path))

        by_id = {d.id: d for d in descriptors}
        ranked = [pid for pid in (order or DEFAULT_PRIORITY_ORDER) if pid in by_id]
        ranked += [pid for pid in by_id if pid not in ranked]

        entries = tuple(
            PriorityEntry(id=pid, priority=rank, enabled=True, model=by_id[pid].model)
            for rank, pid in enumerate(ranked, start=1)
        )
        with store._lock:
            snapshot = _Snapshot(entries, {})
            store._write(snapshot)
            store._snapshot = snapshot
        logger.info(f"Wrote default priority configuration to {store.path}")
        return store

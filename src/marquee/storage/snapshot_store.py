"""
Local snapshot store for the last good configuration document.

Lets the player start showing content immediately after a restart, before
the first network fetch completes. Each entry is wrapped:

    {
      "version": 1,
      "configurationId": "...",
      "savedAt": "2026-01-01T00:00:00+00:00",
      "configuration": {...},
      "fingerprint": {"schedules": 2, "size": 1234, "configurationId": "..."}
    }

A wrapper with another version or id, or a file that does not parse, is
discarded and removed rather than misread.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

_logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1
_FILE_PREFIX = "marquee-config-"
_SAFE_ID = re.compile(r"[^A-Za-z0-9_.-]")


@dataclass(frozen=True)
class Snapshot:
    """A stored configuration document and when it was saved."""

    configuration: dict[str, Any]
    saved_at: datetime
    fingerprint: dict[str, Any]


class SnapshotStore(Protocol):
    """Protocol for persisting the last good configuration document."""

    def save(self, configuration_id: str, document: dict[str, Any]) -> None:
        ...

    def load(self, configuration_id: str) -> Snapshot | None:
        """Return the stored snapshot, or None if absent or unreadable."""
        ...


def fingerprint(configuration_id: str, document: dict[str, Any]) -> dict[str, Any]:
    """Cheap summary used to spot a changed document without diffing it."""
    schedules = document.get("schedules")
    return {
        "schedules": len(schedules) if isinstance(schedules, list) else 0,
        "size": len(json.dumps(document, sort_keys=True, default=str)),
        "configurationId": configuration_id,
    }


def wrap(configuration_id: str, document: dict[str, Any], saved_at: datetime) -> dict[str, Any]:
    return {
        "version": SNAPSHOT_VERSION,
        "configurationId": configuration_id,
        "savedAt": saved_at.isoformat(),
        "configuration": document,
        "fingerprint": fingerprint(configuration_id, document),
    }


def unwrap(configuration_id: str, wrapper: Any) -> Snapshot | None:
    """Return the snapshot held by a wrapper, or None when it must be discarded."""
    if not isinstance(wrapper, dict):
        return None
    if wrapper.get("version") != SNAPSHOT_VERSION:
        _logger.info("Discarding snapshot with version %r", wrapper.get("version"))
        return None
    if wrapper.get("configurationId") != configuration_id:
        _logger.info(
            "Discarding snapshot for %r (wanted %r)",
            wrapper.get("configurationId"),
            configuration_id,
        )
        return None
    document = wrapper.get("configuration")
    if not isinstance(document, dict):
        return None
    try:
        saved_at = datetime.fromisoformat(str(wrapper.get("savedAt")))
    except ValueError:
        return None
    if saved_at.tzinfo is None:
        saved_at = saved_at.replace(tzinfo=timezone.utc)
    return Snapshot(
        configuration=document,
        saved_at=saved_at,
        fingerprint=dict(wrapper.get("fingerprint") or {}),
    )


class InMemorySnapshotStore:
    """
    Snapshot store kept in process memory.

    Useful for tests or when the player runs without a writable disk.
    """

    def __init__(self) -> None:
        self._entries: dict[str, dict[str, Any]] = {}

    def save(self, configuration_id: str, document: dict[str, Any]) -> None:
        self._entries[configuration_id] = wrap(
            configuration_id, document, datetime.now(timezone.utc)
        )

    def load(self, configuration_id: str) -> Snapshot | None:
        wrapper = self._entries.get(configuration_id)
        if wrapper is None:
            return None
        snapshot = unwrap(configuration_id, wrapper)
        if snapshot is None:
            del self._entries[configuration_id]
        return snapshot

    def put_raw(self, configuration_id: str, wrapper: Any) -> None:
        """Store a wrapper as-is (used to simulate stale or corrupt entries)."""
        self._entries[configuration_id] = wrapper


class FileSnapshotStore:
    """Snapshot store writing one JSON file per configuration id."""

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def path_for(self, configuration_id: str) -> Path:
        return self._directory / f"{_FILE_PREFIX}{_SAFE_ID.sub('_', configuration_id)}.json"

    def save(self, configuration_id: str, document: dict[str, Any]) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        path = self.path_for(configuration_id)
        payload = wrap(configuration_id, document, datetime.now(timezone.utc))
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(payload, default=str), encoding="utf-8")
        tmp.replace(path)
        _logger.debug("Saved configuration snapshot %s", path)

    def load(self, configuration_id: str) -> Snapshot | None:
        path = self.path_for(configuration_id)
        if not path.exists():
            return None
        try:
            wrapper = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            _logger.warning("Corrupt configuration snapshot %s: %s", path, exc)
            wrapper = None
        snapshot = unwrap(configuration_id, wrapper)
        if snapshot is None:
            path.unlink(missing_ok=True)
        return snapshot

    def list_cached(self) -> list[str]:
        """Configuration ids that currently have a snapshot file."""
        if not self._directory.is_dir():
            return []
        ids = []
        for path in sorted(self._directory.glob(f"{_FILE_PREFIX}*.json")):
            ids.append(path.stem[len(_FILE_PREFIX):])
        return ids

    def clear(self, configuration_id: str | None = None) -> None:
        """Remove one snapshot, or all of them."""
        if configuration_id is not None:
            self.path_for(configuration_id).unlink(missing_ok=True)
            return
        if not self._directory.is_dir():
            return
        for path in self._directory.glob(f"{_FILE_PREFIX}*.json"):
            path.unlink(missing_ok=True)

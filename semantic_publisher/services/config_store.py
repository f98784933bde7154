"""Persistence of workspace site configuration and sync history.

Everything is kept in one JSON settings blob keyed by workspace id. Writes
go through a temp file and an atomic rename so readers never observe a
partially written file. Several processes may share the file (a scheduler
process next to one-off CLI runs), so every access re-reads it and every
read-modify-write holds an exclusive ``flock`` on ``<file>.lock``.
"""

import contextlib
import fcntl
import json
import os
import re
import tempfile
import threading
from collections.abc import Iterator
from pathlib import Path
from typing import Any, Protocol

from semantic_publisher.config.settings import SiteConfig
from semantic_publisher.errors import SyncInProgressError
from semantic_publisher.models import SyncResult, SyncStatus

SITE_CONFIG_KEY = "site_config"
HISTORY_KEY = "sync_history"
LAST_SYNC_KEY = "last_sync_result"
DEFAULT_HISTORY_LIMIT = 50


class ConfigurationStore(Protocol):
    """Per-workspace configuration and settings storage."""

    def get_config(self, workspace_id: str) -> SiteConfig | None: ...

    def save_config(self, workspace_id: str, config: SiteConfig) -> None: ...

    def list_workspace_ids(self) -> list[str]: ...

    def get_setting(self, workspace_id: str, key: str, default: Any = None) -> Any: ...

    def update_settings(self, workspace_id: str, values: dict[str, Any]) -> None: ...

    def run_lock(self, workspace_id: str) -> contextlib.AbstractContextManager: ...


class JsonSettingsStore:
    """Configuration store backed by a JSON file (or memory when no path)."""

    def __init__(self, path: str | Path | None = None):
        """Initialize settings store.

        Args:
            path: JSON file location; None keeps settings in memory only

        Raises:
            ValueError: If an existing settings file is not valid JSON
        """
        self.path = Path(path) if path else None
        self._lock = threading.RLock()
        self._data = self._load()

    def _load(self) -> dict[str, Any]:
        if self.path is None or not self.path.exists():
            return {"workspaces": {}}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in settings file: {e}") from e
        data.setdefault("workspaces", {})
        return data

    def _flush(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)

        # Atomic write: write to temp, then rename
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._data, f, indent=2)
            os.replace(tmp_path, self.path)
        except Exception:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def _refresh(self) -> None:
        if self.path is not None:
            self._data = self._load()

    @contextlib.contextmanager
    def _file_lock(self, path: Path) -> Iterator[None]:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "a+", encoding="utf-8") as handle:
            fcntl.flock(handle, fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(handle, fcntl.LOCK_UN)

    @contextlib.contextmanager
    def _modifying(self) -> Iterator[None]:
        """Hold the store for a read-modify-write of the latest file contents."""
        with self._lock:
            if self.path is None:
                yield
                return
            with self._file_lock(self.path.with_name(f"{self.path.name}.lock")):
                self._refresh()
                yield
                self._flush()

    @contextlib.contextmanager
    def run_lock(self, workspace_id: str) -> Iterator[None]:
        """Exclusive lock on a workspace's sync runs, shared by all processes.

        Raises:
            SyncInProgressError: If another holder owns the lock
        """
        if self.path is None:
            yield
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        safe_id = re.sub(r"[^A-Za-z0-9_.-]", "_", workspace_id)
        lock_path = self.path.with_name(f"{self.path.name}.{safe_id}.lock")
        with open(lock_path, "a+", encoding="utf-8") as handle:
            try:
                fcntl.flock(handle, fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError as e:
                raise SyncInProgressError(workspace_id) from e
            try:
                yield
            finally:
                fcntl.flock(handle, fcntl.LOCK_UN)

    def _workspace(self, workspace_id: str) -> dict[str, Any]:
        return self._data["workspaces"].setdefault(workspace_id, {})

    def get_config(self, workspace_id: str) -> SiteConfig | None:
        with self._lock:
            self._refresh()
            raw = self._data["workspaces"].get(workspace_id, {}).get(SITE_CONFIG_KEY)
        if raw is None:
            return None
        return SiteConfig.model_validate(raw)

    def save_config(self, workspace_id: str, config: SiteConfig) -> None:
        with self._modifying():
            self._workspace(workspace_id)[SITE_CONFIG_KEY] = config.model_dump(mode="json")

    def list_workspace_ids(self) -> list[str]:
        with self._lock:
            self._refresh()
            return list(self._data["workspaces"])

    def get_setting(self, workspace_id: str, key: str, default: Any = None) -> Any:
        with self._lock:
            self._refresh()
            return self._data["workspaces"].get(workspace_id, {}).get(key, default)

    def update_settings(self, workspace_id: str, values: dict[str, Any]) -> None:
        with self._modifying():
            self._workspace(workspace_id).update(values)


class SyncHistoryLog:
    """Capped, newest-first log of sync results for one workspace."""

    def __init__(
        self,
        store: ConfigurationStore,
        workspace_id: str,
        limit: int = DEFAULT_HISTORY_LIMIT,
    ):
        self.store = store
        self.workspace_id = workspace_id
        self.limit = limit

    def _entries(self) -> list[dict[str, Any]]:
        return list(self.store.get_setting(self.workspace_id, HISTORY_KEY, []) or [])

    def append(self, result: SyncResult) -> None:
        """Prepend a result, evict entries past the limit and cache it as last."""
        entry = result.model_dump(mode="json")
        history = [entry, *self._entries()][: self.limit]
        self.store.update_settings(
            self.workspace_id, {HISTORY_KEY: history, LAST_SYNC_KEY: entry}
        )

    def recent(self, n: int = 10) -> list[SyncResult]:
        """Up to ``n`` results, newest first."""
        return [SyncResult.model_validate(e) for e in self._entries()[:n]]

    def last(self) -> SyncResult | None:
        raw = self.store.get_setting(self.workspace_id, LAST_SYNC_KEY)
        return SyncResult.model_validate(raw) if raw else None

    def last_successful(self) -> SyncResult | None:
        for entry in self._entries():
            if entry.get("status") == SyncStatus.SUCCESS.value:
                return SyncResult.model_validate(entry)
        return None

    def last_export(self) -> SyncResult | None:
        """Newest finished run that got past configuration and may have written files."""
        for entry in self._entries():
            if entry.get("status") == SyncStatus.IN_PROGRESS.value or not entry.get("end_time"):
                continue
            if not entry.get("error"):
                return SyncResult.model_validate(entry)
        return None

    def find(self, sync_id: str) -> SyncResult | None:
        for entry in self._entries():
            if entry.get("sync_id") == sync_id:
                return SyncResult.model_validate(entry)
        return None

    def __len__(self) -> int:
        return len(self._entries())

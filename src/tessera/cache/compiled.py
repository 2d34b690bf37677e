"""Compiled-artifact cache: template name → compiled code.

An entry records the fingerprint of every source it was built from (the
template and its extends chain). By default every lookup re-reads those
sources through the loader and serves the entry only when all
fingerprints still match, so an edited template is never served stale.

``fast=True`` skips that check and serves whatever is cached until it is
invalidated explicitly. It is an opt-in for deployments whose templates
do not change while the process runs.

With ``directory`` set, compiled code is also persisted as ``marshal``
files so a fresh process can skip compilation. Disk entries carry the
interpreter's bytecode magic number and are ignored when it differs.

Thread-Safety:
Concurrent population is tolerated: two threads compiling the same
template both store a complete entry and the last write wins.
"""

from __future__ import annotations

import hashlib
import importlib.util
import logging
import marshal
import os
import tempfile
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import types

logger = logging.getLogger(__name__)

_DISK_FORMAT = 1


@dataclass(slots=True)
class CompiledEntry:
    """A compiled template and what it was compiled from.

    Attributes:
        name: Canonical template name
        code: Code object defining ``render`` and ``render_stream``
        fingerprints: Canonical name → source fingerprint for every source used
        sources: Canonical name → source text (for runtime diagnostics)
        filename: Source path of the template itself
        template: Template built from ``code`` (filled in by the Environment)
    """

    name: str
    code: types.CodeType
    fingerprints: dict[str, str]
    sources: dict[str, str]
    filename: str | None = None
    template: Any = field(default=None, compare=False)


class CompiledCache:
    """Thread-safe store of compiled templates.

    Args:
        fast: Serve entries without re-checking source fingerprints
        directory: Optional directory for persisted compiled code
    """

    __slots__ = ("_directory", "_entries", "_fast", "_lock")

    def __init__(self, *, fast: bool = False, directory: str | Path | None = None):
        self._fast = fast
        self._directory = Path(directory) if directory is not None else None
        self._entries: dict[str, CompiledEntry] = {}
        self._lock = threading.Lock()

    @property
    def fast(self) -> bool:
        return self._fast

    def get(self, name: str, current_fingerprint: Callable[[str], str | None]) -> CompiledEntry | None:
        """Return a valid entry for ``name`` or None.

        Args:
            name: Canonical template name
            current_fingerprint: Returns the current fingerprint of a source
                name, or None when it can no longer be loaded
        """
        with self._lock:
            entry = self._entries.get(name)
        if entry is None:
            entry = self._load(name)
            if entry is None:
                return None
            with self._lock:
                self._entries[name] = entry
        if self._fast or self._is_fresh(entry, current_fingerprint):
            return entry
        logger.debug("Compiled cache entry for %s is stale", name)
        self.invalidate(name)
        return None

    @staticmethod
    def _is_fresh(entry: CompiledEntry, current_fingerprint: Callable[[str], str | None]) -> bool:
        return all(
            current_fingerprint(source_name) == stored
            for source_name, stored in entry.fingerprints.items()
        )

    def put(self, entry: CompiledEntry) -> None:
        with self._lock:
            self._entries[entry.name] = entry
        self._store(entry)

    def invalidate(self, name: str | None = None) -> int:
        """Drop ``name`` (and entries built on it), or everything when None.

        Returns:
            Number of in-memory entries dropped
        """
        with self._lock:
            if name is None:
                dropped = list(self._entries)
                self._entries.clear()
            else:
                dropped = [
                    key for key, entry in self._entries.items()
                    if key == name or name in entry.fingerprints
                ]
                for key in dropped:
                    del self._entries[key]
        if self._directory is not None:
            if name is None:
                for path in self._directory.glob("*.tcache"):
                    path.unlink(missing_ok=True)
            else:
                for key in dropped or [name]:
                    self._path(key).unlink(missing_ok=True)
        if dropped:
            logger.debug("Invalidated compiled templates: %s", ", ".join(sorted(dropped)))
        return len(dropped)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # -- disk persistence ------------------------------------------------

    def _path(self, name: str) -> Path:
        assert self._directory is not None
        digest = hashlib.sha256(name.encode("utf-8")).hexdigest()[:32]
        return self._directory / f"{digest}.tcache"

    def _store(self, entry: CompiledEntry) -> None:
        if self._directory is None:
            return
        payload = marshal.dumps(
            (
                _DISK_FORMAT,
                importlib.util.MAGIC_NUMBER,
                entry.name,
                entry.filename,
                entry.fingerprints,
                entry.sources,
                entry.code,
            )
        )
        self._directory.mkdir(parents=True, exist_ok=True)
        # Write-then-rename so readers never see a partial file
        fd, tmp = tempfile.mkstemp(dir=self._directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
            os.replace(tmp, self._path(entry.name))
        except OSError:
            Path(tmp).unlink(missing_ok=True)
            logger.warning("Could not persist compiled template %s", entry.name, exc_info=True)

    def _load(self, name: str) -> CompiledEntry | None:
        if self._directory is None:
            return None
        path = self._path(name)
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            return None
        try:
            fmt, magic, stored_name, filename, fingerprints, sources, code = marshal.loads(data)
        except (EOFError, ValueError, TypeError):
            logger.warning("Ignoring unreadable compiled cache file %s", path)
            return None
        if fmt != _DISK_FORMAT or magic != importlib.util.MAGIC_NUMBER or stored_name != name:
            return None
        logger.debug("Loaded compiled template %s from %s", name, path)
        return CompiledEntry(
            name=name,
            code=code,
            fingerprints=dict(fingerprints),
            sources=dict(sources),
            filename=filename,
        )

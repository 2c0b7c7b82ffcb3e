"""
Visited-cell persistence.

Only visited keys are stored, never grids: grids are regenerated
deterministically from the boundaries at load time. The persisted form is a
single entry named VisitedCells holding a JSON object:

    {
      "06075": ["37.712345,-122.401234", "37.723456,-122.401234"],
      "06081": ["37.512345,-122.301234"]
    }

Reads are fail-soft: a missing, unreadable or corrupt file loads as an empty
mapping, and malformed entries inside an otherwise valid file are skipped.
Writes go through a file lock and an atomic replace, so concurrent processes
never see a half-written file.

Usage:
    from county_explorer.persistence import VisitedCellsFile

    backend = VisitedCellsFile()            # data/progress/VisitedCells.json
    visited = backend.load()                # {region_id: {CanonicalKey, ...}}
    backend.save(visited)
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Set

import filelock

from county_explorer.config import PROGRESS_DIR, SAVE_KEY
from county_explorer.data_types import CanonicalKey
from county_explorer.quantize import format_key, parse_key


VisitedMapping = Dict[str, Set[CanonicalKey]]

LOCK_TIMEOUT_SECONDS = 10


def encode_visited(visited: Dict[str, Iterable[CanonicalKey]]) -> Dict[str, list]:
    """
    Convert a visited mapping into its JSON form.

    Region ids and key strings are sorted so the file diffs cleanly.
    """
    return {
        region_id: sorted(format_key(key) for key in keys)
        for region_id, keys in sorted(visited.items())
    }


def decode_visited(data: Any) -> VisitedMapping:
    """
    Convert the JSON form back into a visited mapping.

    Anything that is not an object of string -> list-of-key-strings is
    skipped entry by entry.

    Returns:
        {region_id: set of CanonicalKey}; empty if data is unusable
    """
    if not isinstance(data, dict):
        if data is not None:
            print(f"[!] Ignoring visited cells: expected a JSON object, got {type(data).__name__}")
        return {}

    visited: VisitedMapping = {}
    skipped = 0
    for region_id, raw_keys in data.items():
        if not isinstance(region_id, str) or not isinstance(raw_keys, list):
            skipped += 1
            continue

        keys = set()
        for raw_key in raw_keys:
            key = parse_key(raw_key)
            if key is None:
                skipped += 1
                continue
            keys.add(key)
        visited[region_id] = keys

    if skipped:
        print(f"[!] Skipped {skipped} malformed visited-cell entries")

    return visited


class VisitedCellsBackend:
    """Interface for visited-cell storage used by ProgressStore."""

    def load(self) -> VisitedMapping:
        raise NotImplementedError

    def save(self, visited: Dict[str, Iterable[CanonicalKey]]) -> bool:
        raise NotImplementedError


class MemoryVisitedCells(VisitedCellsBackend):
    """
    In-process storage holding the encoded JSON text.

    Goes through the same encode/decode path as the file backend, so it is a
    faithful stand-in for tests and for sessions that should not touch disk.
    """

    def __init__(self, initial: Optional[str] = None):
        self.text: Optional[str] = initial
        self.save_count = 0

    def load(self) -> VisitedMapping:
        if self.text is None:
            return {}
        try:
            return decode_visited(json.loads(self.text))
        except json.JSONDecodeError:
            print("[!] Ignoring visited cells: stored data is not valid JSON")
            return {}

    def save(self, visited: Dict[str, Iterable[CanonicalKey]]) -> bool:
        self.text = json.dumps(encode_visited(visited))
        self.save_count += 1
        return True


class VisitedCellsFile(VisitedCellsBackend):
    """
    JSON file storage shared safely between processes.

    Args:
        data_dir: Directory holding the state file (default data/progress)
        key: Entry name; the file is <data_dir>/<key>.json
    """

    def __init__(self, data_dir: Optional[Path] = None, key: str = SAVE_KEY):
        self.data_dir = Path(data_dir) if data_dir is not None else PROGRESS_DIR
        self.path = self.data_dir / f"{key}.json"
        self.lock_path = self.data_dir / f"{key}.lock"

    def _ensure_dir(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _discard(partial: Path) -> None:
        """Remove a half-written temp file."""
        try:
            partial.unlink(missing_ok=True)
        except OSError as e:
            print(f"[!] Could not remove partial file {partial}: {e}")

    def load(self) -> VisitedMapping:
        """
        Read the visited mapping.

        Returns:
            {region_id: set of CanonicalKey}; empty when the file is absent,
            locked by another process for too long, or corrupt
        """
        if not self.path.exists():
            return {}

        try:
            self._ensure_dir()
            with filelock.FileLock(str(self.lock_path), timeout=LOCK_TIMEOUT_SECONDS):
                with open(self.path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
        except filelock.Timeout:
            print(f"WARNING: Could not acquire lock on {self.lock_path}; starting with no visited cells")
            return {}
        except (json.JSONDecodeError, UnicodeDecodeError):
            print(f"[!] Ignoring corrupt visited-cell file: {self.path}")
            return {}
        except OSError as e:
            print(f"[!] Could not read {self.path}: {e}")
            return {}

        return decode_visited(data)

    def save(self, visited: Dict[str, Iterable[CanonicalKey]]) -> bool:
        """
        Write the visited mapping atomically.

        Returns:
            True if written; False if the lock or the disk failed (the
            caller keeps its in-memory state either way)
        """
        payload = encode_visited(visited)
        tmp_path = self.path.with_suffix('.json.tmp')

        try:
            self._ensure_dir()
            with filelock.FileLock(str(self.lock_path), timeout=LOCK_TIMEOUT_SECONDS):
                try:
                    with open(tmp_path, 'w', encoding='utf-8') as f:
                        json.dump(payload, f, indent=2)
                    os.replace(tmp_path, self.path)
                except OSError:
                    self._discard(tmp_path)
                    raise
        except filelock.Timeout:
            print(f"WARNING: Could not acquire lock on {self.lock_path}; visited cells not saved")
            return False
        except OSError as e:
            print(f"WARNING: Could not save visited cells to {self.path}: {e}")
            return False

        return True

"""In-memory vault state and the lock that guards it.

The mirror holds one ``NoteRecord`` per known note, ordered by path. It is
never authoritative for body text; commands re-read the file for that.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional

from fusen_vault.exceptions import FusenError, LockPoisonedError
from fusen_vault.models.schema import NoteRecord

logger = logging.getLogger(__name__)


class NoteMirror:
    """Ordered collection of note records keyed by path."""

    def __init__(self, records: Iterable[NoteRecord] = ()) -> None:
        self._records: List[NoteRecord] = sorted(records, key=lambda r: r.path)

    def __iter__(self) -> Iterator[NoteRecord]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, path: object) -> bool:
        return self.find(path) is not None  # type: ignore[arg-type]

    def _index(self, path: str) -> Optional[int]:
        for i, record in enumerate(self._records):
            if record.path == path:
                return i
        return None

    def _sort(self) -> None:
        self._records.sort(key=lambda r: r.path)

    def find(self, path: str) -> Optional[NoteRecord]:
        index = self._index(path)
        return None if index is None else self._records[index]

    def paths(self) -> List[str]:
        return [r.path for r in self._records]

    def add(self, record: NoteRecord) -> None:
        self._records.append(record)
        self._sort()

    def replace(self, old_path: str, record: NoteRecord) -> bool:
        """Swap the record stored under ``old_path`` for ``record``.

        Returns False (and changes nothing) when ``old_path`` is unknown.
        """
        index = self._index(old_path)
        if index is None:
            return False
        self._records[index] = record
        self._sort()
        return True

    def upsert(self, old_path: str, record: NoteRecord) -> None:
        if not self.replace(old_path, record):
            self.add(record)

    def remove(self, path: str) -> Optional[NoteRecord]:
        index = self._index(path)
        if index is None:
            return None
        return self._records.pop(index)

    def reset(self, records: Iterable[NoteRecord]) -> None:
        self._records = sorted(records, key=lambda r: r.path)

    def snapshot(self) -> List[NoteRecord]:
        """Deep copies of every record, safe to hand out after unlocking."""
        return [r.model_copy(deep=True) for r in self._records]


@dataclass
class VaultState:
    """Everything the engine remembers between commands."""

    base_path: Optional[str] = None
    folder_path: Optional[str] = None
    notes: NoteMirror = field(default_factory=NoteMirror)
    selected_path: Optional[str] = None
    active_context_menu_path: Optional[str] = None
    active_tags: List[str] = field(default_factory=list)


class StateStore:
    """Lock-guarded owner of a ``VaultState``.

    Use ``locked()`` for every read-modify-write. If something other than a
    ``FusenError`` escapes while the lock is held, the mirror may be half
    updated, so the store is marked poisoned and every later acquisition
    raises ``LockPoisonedError``.
    """

    def __init__(self, state: Optional[VaultState] = None) -> None:
        self._state = state or VaultState()
        self._lock = threading.Lock()
        self._poisoned = False

    @property
    def poisoned(self) -> bool:
        return self._poisoned

    @contextmanager
    def locked(self) -> Iterator[VaultState]:
        with self._lock:
            if self._poisoned:
                raise LockPoisonedError()
            try:
                yield self._state
            except FusenError:
                raise
            except Exception as e:
                self._poisoned = True
                logger.error(f"State lock poisoned by {type(e).__name__}: {e}")
                raise

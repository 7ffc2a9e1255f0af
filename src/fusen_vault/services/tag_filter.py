"""Tag-based visibility and window reconciliation.

A note is visible when no tag is active, or when it shares at least one
tag with the active selection. Note windows are identified by a label
derived from the note path, so the tray can show or hide them without
asking the window system which note each one holds.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Sequence

from fusen_vault.models.schema import NoteRecord

logger = logging.getLogger(__name__)

WINDOW_LABEL_PREFIX = "note-"
DEFAULT_UTILITY_WINDOWS = ("main",)

_DUPLICATE_SLASHES = re.compile(r"/{2,}")


def _clean_tags(tags: Iterable[str]) -> set:
    return {t.strip() for t in tags if t.strip()}


def filter_visible(notes: Iterable[NoteRecord], active_tags: Iterable[str]) -> List[str]:
    """Return the paths of notes that should be shown.

    Tags are compared after trimming surrounding whitespace. An empty
    selection shows everything.
    """
    active = _clean_tags(active_tags)
    if not active:
        return [note.path for note in notes]
    return [note.path for note in notes if _clean_tags(note.tags) & active]


def normalize_path(path: str) -> str:
    """Canonical form used for window labels.

    Backslashes become ``/``, case is folded, repeated slashes collapse and
    surrounding whitespace and trailing slashes are dropped.
    """
    text = path.strip().replace("\\", "/").lower()
    text = _DUPLICATE_SLASHES.sub("/", text)
    if len(text) > 1:
        text = text.rstrip("/")
    return text


def _hash32(text: str) -> int:
    h = 0
    for ch in text:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    return h - 0x100000000 if h & 0x80000000 else h


def window_label(path: str) -> str:
    """Stable window label for a note path. Collisions are not detected."""
    return f"{WINDOW_LABEL_PREFIX}{abs(_hash32(normalize_path(path)))}"


@dataclass
class WindowSweep:
    """Labels to show and hide after the active tag set changed."""

    show: List[str] = field(default_factory=list)
    hide: List[str] = field(default_factory=list)


def plan_window_sweep(
    window_labels: Iterable[str],
    visible_paths: Iterable[str],
    utility_labels: Sequence[str] = DEFAULT_UTILITY_WINDOWS,
) -> WindowSweep:
    """Split open windows into those to show and those to hide.

    Utility windows (the main window by default) are never touched.
    """
    visible = {window_label(p) for p in visible_paths}
    sweep = WindowSweep()
    for label in window_labels:
        if label in utility_labels:
            continue
        if label in visible:
            sweep.show.append(label)
        else:
            sweep.hide.append(label)
    logger.debug(f"Window sweep: show={len(sweep.show)} hide={len(sweep.hide)}")
    return sweep


def toggle_tag(active_tags: Iterable[str], tag: str) -> List[str]:
    """Add ``tag`` to the selection, or remove it if already selected."""
    current = list(active_tags)
    tag = tag.strip()
    if not tag:
        return current
    if tag in current:
        return [t for t in current if t != tag]
    return current + [tag]

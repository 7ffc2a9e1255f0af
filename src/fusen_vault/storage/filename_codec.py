"""Note file names as record keys.

A note file is named ``SEQ_DATE_TITLE.md``: a 4-digit zero-padded sequence
number, the ISO creation date and the sanitized title. The title may itself
contain ``_``; parsing rejoins every trailing segment.
"""

from typing import Iterable, Tuple

SEPARATOR = "_"
NOTE_SUFFIX = ".md"
UNKNOWN_DATE = "unknown"

# Characters that are reserved on at least one mainstream filesystem
RESERVED_CHARS = frozenset('\\/:*?"<>|')


def parse_filename(filename: str) -> Tuple[int, str, str]:
    """Decode a note file name into ``(seq, date, title)``.

    Malformed names never raise: fewer than three segments yield
    ``(0, "unknown", filename)`` and a non-numeric sequence yields 0.

    Args:
        filename: Bare file name, e.g. ``0001_2026-01-12_Shopping.md``.

    Returns:
        Sequence number, date string and title.
    """
    parts = filename.split(SEPARATOR)
    if len(parts) < 3:
        return 0, UNKNOWN_DATE, filename

    try:
        seq = int(parts[0])
    except ValueError:
        seq = 0
    if seq < 0:
        seq = 0

    title = SEPARATOR.join(parts[2:])
    if title.endswith(NOTE_SUFFIX):
        title = title[: -len(NOTE_SUFFIX)]
    return seq, parts[1], title


def generate_filename(seq: int, date: str, title: str) -> str:
    """Encode ``(seq, date, title)`` as a note file name."""
    return f"{seq:04d}{SEPARATOR}{date}{SEPARATOR}{title}{NOTE_SUFFIX}"


def sanitize_title(title: str) -> str:
    """Replace filesystem-reserved characters with spaces and trim.

    All other characters, including non-Latin scripts, pass through.
    """
    return "".join(" " if ch in RESERVED_CHARS else ch for ch in title).strip()


def next_sequence(filenames: Iterable[str]) -> int:
    """Return ``max(existing seq) + 1``; 1 for an empty folder."""
    highest = 0
    for name in filenames:
        seq, _, _ = parse_filename(name)
        if seq > highest:
            highest = seq
    return highest + 1


def is_note_file(filename: str) -> bool:
    return filename.endswith(NOTE_SUFFIX) and not filename.startswith(".")

"""Pure decision logic for note edits.

Every ``handle_*`` function takes the mirror and the note's current text,
updates the mirror in place and returns the filesystem effects needed to
make the disk agree. Nothing in this module does I/O.
"""

import logging
import math
import os
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Tuple

from fusen_vault.exceptions import ErrorCode, PathError, ValidationError
from fusen_vault.models.effects import Batch, Effect, RenameNote, WriteNote, batch
from fusen_vault.models.schema import NoteFields, NoteRecord
from fusen_vault.state import NoteMirror
from fusen_vault.storage.filename_codec import (
    UNKNOWN_DATE,
    generate_filename,
    parse_filename,
    sanitize_title,
)
from fusen_vault.storage.frontmatter_fields import (
    compose,
    extract_meta,
    format_tags,
    generate_frontmatter,
    has_field,
    read_field,
    update_field,
    update_updated_field,
)

logger = logging.getLogger(__name__)


def _today() -> str:
    return date.today().isoformat()


def split_path(path: str) -> Tuple[str, str]:
    """Return ``(parent, filename)`` or raise ``PathError``."""
    parent, name = os.path.split(path)
    if not name:
        raise PathError(path, ErrorCode.PATH_NO_FILENAME)
    if not parent:
        raise PathError(path, ErrorCode.PATH_NO_PARENT)
    return parent, name


def round_half_away(value: float) -> int:
    """Round to the nearest integer, ties away from zero (2.5 -> 3, -2.5 -> -3)."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def first_line(body: str) -> str:
    return body.split("\n", 1)[0].strip() if body else ""


def record_from_fields(
    path: str, seq: int, context: str, updated: str, fields: NoteFields
) -> NoteRecord:
    return NoteRecord(
        path=path,
        seq=seq,
        context=context,
        updated=updated,
        x=fields.x,
        y=fields.y,
        width=fields.width,
        height=fields.height,
        background_color=fields.color,
        always_on_top=fields.always_on_top,
        tags=list(fields.tags),
    )


def record_from_content(path: str, content: str) -> NoteRecord:
    """Build a mirror record from a file name and its full text.

    ``updated`` comes from the header when present, otherwise from the date
    segment of the file name.
    """
    _, name = os.path.split(path)
    seq, file_date, title = parse_filename(name)
    updated = read_field(content, "updated") or file_date
    return record_from_fields(path, seq, title, updated, extract_meta(content))


def _content_changed(
    old: Optional[NoteRecord], new_body: str, old_body: str, fields: NoteFields
) -> bool:
    if new_body != old_body or old is None:
        return True
    return (
        old.background_color != fields.color
        or old.always_on_top != fields.always_on_top
        or old.tags != fields.tags
    )


def handle_save(
    mirror: NoteMirror,
    path: str,
    new_body: str,
    old_body: str,
    front_raw: str,
    allow_rename: bool,
    today: Optional[str] = None,
) -> Tuple[str, Effect]:
    """Plan the effects of saving an edited note.

    Args:
        mirror: Mirror to update; the record for ``path`` is replaced (or
            added when missing) whether or not an effect is emitted.
        path: Current location of the note.
        new_body: Body text after the edit.
        old_body: Body text before the edit.
        front_raw: Header text (both fences) as the editor holds it.
        allow_rename: Whether the first body line may rename the file.
        today: Date to stamp into ``updated``; defaults to the local date.

    Returns:
        ``(final_path, effect)``. ``final_path`` differs from ``path`` only
        when a rename was planned.

    Raises:
        PathError: ``path`` has no file name or no parent directory.
    """
    today = today or _today()
    parent, name = split_path(path)
    seq, created, old_title = parse_filename(name)

    old = mirror.find(path)
    header_fields = extract_meta(front_raw)
    changed = _content_changed(old, new_body, old_body, header_fields)
    if changed:
        final_updated = today
    else:
        final_updated = old.updated if old is not None else today

    content = compose(update_updated_field(front_raw, final_updated), new_body)
    fields = extract_meta(content)
    geometry_same = old is not None and old.geometry == fields.geometry

    if not allow_rename:
        record = record_from_fields(path, seq, old_title, final_updated, fields)
        mirror.upsert(path, record)
        if not changed and geometry_same:
            logger.debug(f"Save of {name} is a no-op")
            return path, batch()
        return path, WriteNote(path, content)

    candidate = sanitize_title(first_line(new_body))
    rename = bool(candidate) and candidate != old_title
    new_title = candidate if rename else old_title
    final_path = os.path.join(parent, generate_filename(seq, created, new_title)) if rename else path

    effects: List[Effect] = []
    if rename:
        effects.append(RenameNote(path, final_path))
    if changed or rename or not geometry_same:
        effects.append(WriteNote(final_path, content))

    record = record_from_fields(final_path, seq, new_title, final_updated, fields)
    mirror.upsert(path, record)
    if rename:
        logger.info(f"Planned rename {name} -> {os.path.basename(final_path)}")
    return final_path, Batch(tuple(effects))


def handle_update_geometry(
    mirror: NoteMirror,
    path: str,
    content: str,
    x: float,
    y: float,
    width: float,
    height: float,
) -> WriteNote:
    """Write rounded geometry into the header.

    The short ``w``/``h`` spellings are kept when a note already uses them.
    """
    rx, ry, rw, rh = (round_half_away(v) for v in (x, y, width, height))
    width_key = "w" if has_field(content, "w") and not has_field(content, "width") else "width"
    height_key = "h" if has_field(content, "h") and not has_field(content, "height") else "height"

    new_content = update_field(content, "x", rx)
    new_content = update_field(new_content, "y", ry)
    new_content = update_field(new_content, width_key, rw)
    new_content = update_field(new_content, height_key, rh)

    record = mirror.find(path)
    if record is not None:
        mirror.replace(
            path,
            record.model_copy(
                update={"x": float(rx), "y": float(ry), "width": float(rw), "height": float(rh)}
            ),
        )
    return WriteNote(path, new_content)


def handle_toggle_always_on_top(
    mirror: NoteMirror, path: str, content: str, enable: bool
) -> WriteNote:
    new_content = update_field(content, "alwaysOnTop", "true" if enable else "false")
    record = mirror.find(path)
    if record is not None:
        mirror.replace(path, record.model_copy(update={"always_on_top": enable}))
    return WriteNote(path, new_content)


def _write_tags(mirror: NoteMirror, path: str, content: str, tags: List[str]) -> WriteNote:
    new_content = update_field(content, "tags", format_tags(tags))
    record = mirror.find(path)
    if record is not None:
        mirror.replace(path, record.model_copy(update={"tags": list(tags)}))
    return WriteNote(path, new_content)


def handle_add_tag(mirror: NoteMirror, path: str, content: str, tag: str) -> WriteNote:
    """Add ``tag`` to the note; the stored list stays sorted and unique."""
    tag = tag.strip()
    if not tag or "," in tag or "[" in tag or "]" in tag:
        raise ValidationError(
            f"Invalid tag {tag!r}", field="tag", value=tag, code=ErrorCode.TAG_INVALID
        )
    tags = extract_meta(content).tags
    if tag not in tags:
        tags.append(tag)
    tags.sort()
    return _write_tags(mirror, path, content, tags)


def handle_remove_tag(mirror: NoteMirror, path: str, content: str, tag: str) -> WriteNote:
    tags = [t for t in extract_meta(content).tags if t != tag]
    return _write_tags(mirror, path, content, tags)


def plan_rename(
    mirror: NoteMirror, path: str, new_context: str, content: str
) -> Tuple[str, RenameNote]:
    """Plan an explicit rename that keeps the sequence and the file-name date.

    Raises:
        PathError: ``path`` has no file name or no parent directory.
        ValidationError: the file name does not follow ``SEQ_DATE_TITLE.md``
            or the new title is empty after sanitizing.
    """
    parent, name = split_path(path)
    seq, file_date, _ = parse_filename(name)
    if file_date == UNKNOWN_DATE and seq == 0:
        raise ValidationError(f"Cannot rename {name}: unrecognised file name", field="path")
    title = sanitize_title(new_context)
    if not title:
        raise ValidationError("New title is empty", field="context", value=new_context)

    new_path = os.path.join(parent, generate_filename(seq, file_date, title))
    mirror.upsert(path, record_from_content(new_path, content))
    return new_path, RenameNote(path, new_path)


@dataclass
class CreatedNote:
    """Everything needed to write and register a brand-new note."""

    filename: str
    path: str
    frontmatter: str
    body: str
    content: str
    record: NoteRecord


def build_create_note(
    folder: str,
    context: str,
    seq: int,
    today: Optional[str] = None,
    background_color: Optional[str] = None,
    body: str = "ここにコンテキストを書く！",
) -> CreatedNote:
    """Assemble file name, default header, body and mirror record for a new note."""
    today = today or _today()
    title = sanitize_title(context) or "untitled"
    filename = generate_filename(seq, today, title)
    path = os.path.join(folder, filename)
    front = generate_frontmatter(seq, title, today, today, background_color)
    content = compose(front, body)
    record = record_from_fields(path, seq, title, today, extract_meta(content))
    return CreatedNote(filename, path, front, body, content, record)


def all_unique_tags(mirror: NoteMirror) -> List[str]:
    """Sorted union of every tag in the mirror."""
    tags = set()
    for record in mirror:
        tags.update(record.tags)
    return sorted(tags)

"""Data models for the Fusen vault engine."""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

Geometry = Tuple[Optional[float], Optional[float], Optional[float], Optional[float]]


@dataclass
class NoteFields:
    """Metadata fields read from a note header by the field store.

    Every field is ``None`` when the header does not carry it; tags are an
    empty list when the ``tags:`` line is missing or empty.
    """

    x: Optional[float] = None
    y: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    color: Optional[str] = None
    always_on_top: Optional[bool] = None
    tags: List[str] = field(default_factory=list)

    @property
    def geometry(self) -> Geometry:
        return (self.x, self.y, self.width, self.height)


class NoteRecord(BaseModel):
    """Mirror entry for one note file.

    ``path`` is the lookup key. ``seq`` never changes once assigned and the
    creation date only lives in the file name, so it is not stored here.
    """

    path: str = Field(default="", description="Current on-disk location")
    seq: int = Field(default=0, ge=0, description="Sequence number from the file name")
    context: str = Field(default="", description="Title part of the file name")
    updated: str = Field(default="", description="Last-updated date (YYYY-MM-DD)")
    x: Optional[float] = None
    y: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    background_color: Optional[str] = None
    always_on_top: Optional[bool] = None
    tags: List[str] = Field(default_factory=list)

    model_config = {
        "validate_assignment": True,
        "extra": "forbid",
        "alias_generator": to_camel,
        "populate_by_name": True,
    }

    @property
    def geometry(self) -> Geometry:
        return (self.x, self.y, self.width, self.height)


class Note(BaseModel):
    """A note as handed to an editor: header text, body and metadata."""

    body: str = ""
    frontmatter: str = ""
    meta: NoteRecord = Field(default_factory=NoteRecord)


class Settings(BaseModel):
    """User settings document (stored as camelCase JSON)."""

    base_path: Optional[str] = Field(default=None, description="Vault base folder")
    language: str = Field(default="ja", description="UI language code")
    auto_start: bool = False
    font_size: float = Field(default=16.0, gt=0)
    sound_enabled: bool = True

    model_config = {
        "validate_assignment": True,
        "alias_generator": to_camel,
        "populate_by_name": True,
    }


@dataclass
class ImportStats:
    """Outcome of importing a folder of Markdown files."""

    total_files: int = 0
    imported_md: int = 0
    imported_images: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)


@dataclass
class ArchiveReport:
    """Outcome of archiving one note.

    Attributes:
        source_path: Where the note lived before archiving.
        archived_path: Where the note file lives now.
        copied_assets: Asset destinations that were written.
        missing_assets: Referenced assets that did not exist on disk.
        links: Symlinks created for additional tags.
        skipped_links: Link locations already occupied by another entry.
        link_errors: ``(tag, error message)`` for fan-out failures.
    """

    source_path: str
    archived_path: str
    copied_assets: List[str] = field(default_factory=list)
    missing_assets: List[str] = field(default_factory=list)
    links: List[str] = field(default_factory=list)
    skipped_links: List[str] = field(default_factory=list)
    link_errors: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.link_errors

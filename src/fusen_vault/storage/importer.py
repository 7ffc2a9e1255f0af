"""Import Markdown notes and their images from a foreign folder.

Every Markdown file becomes a fresh vault note: a new sequence number, a
file name built from its first line, and the complete default header.
``tags`` and ``backgroundColor`` from an existing YAML header are carried
over. Images are copied into the vault's ``assets/`` folder (renamed
``name_1.png``, ``name_2.png``... on clashes) and image links in the
imported bodies are rewritten to point at the copies.
"""

import logging
import os
import re
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from urllib.parse import quote, unquote

import frontmatter
import yaml

from fusen_vault.config import DEFAULT_BACKGROUND_COLOR
from fusen_vault.exceptions import StorageError, ValidationError
from fusen_vault.models.schema import ImportStats
from fusen_vault.storage.filename_codec import (
    generate_filename,
    next_sequence,
    sanitize_title,
)
from fusen_vault.storage.frontmatter_fields import (
    compose,
    generate_frontmatter,
    parse_tags,
    split_frontmatter,
)
from fusen_vault.storage.gateway import StorageGateway

logger = logging.getLogger(__name__)

MARKDOWN_EXTENSIONS = frozenset({"md"})
IMAGE_EXTENSIONS = frozenset({"png", "jpg", "jpeg", "gif", "webp", "svg"})
IMPORTED_CONTEXT = "imported"

_IMAGE_LINK_RE = re.compile(r"(!\[[^\]]*\]\()([^)\s]+)(\))")
_WIKI_EMBED_RE = re.compile(r"!\[\[([^\]|]+)(?:\|[^\]]*)?\]\]")


def _extension(path: str) -> str:
    return Path(path).suffix.lstrip(".").lower()


def unique_name(name: str, used: Dict[str, int]) -> str:
    """Return ``name`` or the first free ``stem_N.ext``; case-insensitive."""
    if name.lower() not in used:
        return name
    stem, ext = Path(name).stem, Path(name).suffix
    count = 1
    while True:
        candidate = f"{stem}_{count}{ext}"
        if candidate.lower() not in used:
            return candidate
        count += 1


def _coerce_tags(raw: object) -> List[str]:
    if isinstance(raw, str):
        return parse_tags(raw)
    if isinstance(raw, list):
        tags = [str(t).strip() for t in raw if t is not None and str(t).strip()]
        return list(dict.fromkeys(tags))
    return []


def read_foreign_note(content: str) -> Tuple[str, List[str], Optional[str]]:
    """Return ``(body, tags, background_color)`` from any Markdown text.

    Headers that are not valid YAML are dropped and their tags lost.
    """
    try:
        post = frontmatter.loads(content)
    except (ValueError, yaml.YAMLError) as e:
        logger.warning(f"Unparseable header, importing body only: {e}")
        _, body = split_frontmatter(content)
        return body, [], None

    metadata = post.metadata or {}
    color = metadata.get("backgroundColor")
    return (
        post.content.lstrip(),
        _coerce_tags(metadata.get("tags")),
        color if isinstance(color, str) and color.strip() else None,
    )


def context_from_body(body: str) -> str:
    first = body.split("\n", 1)[0] if body else ""
    title = sanitize_title(first.strip().lstrip("#").strip())
    return title or IMPORTED_CONTEXT


class NoteImporter:
    """Copies notes and images from ``source`` into a vault folder."""

    def __init__(
        self,
        gateway: StorageGateway,
        vault_root: str,
        assets_dir_name: str = "assets",
        default_color: str = DEFAULT_BACKGROUND_COLOR,
    ) -> None:
        self.gateway = gateway
        self.vault_root = vault_root
        self.assets_dir_name = assets_dir_name
        self.default_color = default_color

    @property
    def assets_dir(self) -> str:
        return str(Path(self.vault_root) / self.assets_dir_name)

    def import_folder(self, source: str, today: Optional[str] = None) -> ImportStats:
        """Import every note and image below ``source``.

        Per-file failures are recorded in the returned stats and do not
        stop the run.

        Raises:
            ValidationError: ``source`` does not exist.
        """
        if not self.gateway.exists(source):
            raise ValidationError(
                f"Source directory not found: {source}", field="source", value=source
            )
        today = today or date.today().isoformat()
        self.gateway.ensure_dir(self.vault_root)

        stats = ImportStats()
        markdown: List[str] = []
        images: List[str] = []
        vault_abs = Path(os.path.abspath(self.vault_root))
        for path in self.gateway.walk_files(source):
            ext = _extension(path)
            if ext not in MARKDOWN_EXTENSIONS and ext not in IMAGE_EXTENSIONS:
                continue
            stats.total_files += 1
            if Path(os.path.abspath(path)).is_relative_to(vault_abs):
                stats.skipped += 1
                continue
            (markdown if ext in MARKDOWN_EXTENSIONS else images).append(path)

        by_path, by_name = self._import_images(images, stats)
        self._import_markdown(markdown, by_path, by_name, today, stats)

        logger.info(
            f"Imported {stats.imported_md} note(s) and {stats.imported_images} "
            f"image(s) from {source} ({len(stats.errors)} error(s))"
        )
        return stats

    def _import_images(
        self, images: List[str], stats: ImportStats
    ) -> Tuple[Dict[str, str], Dict[str, str]]:
        by_path: Dict[str, str] = {}
        by_name: Dict[str, str] = {}
        if not images:
            return by_path, by_name

        self.gateway.ensure_dir(self.assets_dir)
        used = {name.lower(): 1 for name in self.gateway.list_names(self.assets_dir)}
        for src in images:
            target_name = unique_name(Path(src).name, used)
            try:
                self.gateway.copy_file(src, str(Path(self.assets_dir) / target_name))
            except StorageError as e:
                stats.errors.append(f"Failed to copy {Path(src).name}: {e}")
                continue
            used[target_name.lower()] = 1
            by_path[os.path.normpath(os.path.abspath(src))] = target_name
            by_name.setdefault(Path(src).name.lower(), target_name)
            stats.imported_images += 1
        return by_path, by_name

    def _import_markdown(
        self,
        files: List[str],
        by_path: Dict[str, str],
        by_name: Dict[str, str],
        today: str,
        stats: ImportStats,
    ) -> None:
        seq = next_sequence(self.gateway.list_names(self.vault_root))
        for src in files:
            try:
                content = self.gateway.read_text(src)
            except StorageError as e:
                stats.errors.append(f"Failed to read {Path(src).name}: {e}")
                continue

            body, tags, color = read_foreign_note(content)
            body = self.rewrite_links(body, str(Path(src).parent), by_path, by_name)
            context = context_from_body(body)
            front = generate_frontmatter(
                seq, context, today, today, color or self.default_color, tags
            )
            target = str(Path(self.vault_root) / generate_filename(seq, today, context))
            try:
                self.gateway.write_text(target, compose(front, body))
            except StorageError as e:
                stats.errors.append(f"Failed to write {Path(target).name}: {e}")
                continue
            stats.imported_md += 1
            seq += 1

    def rewrite_links(
        self,
        body: str,
        note_dir: str,
        by_path: Dict[str, str],
        by_name: Dict[str, str],
    ) -> str:
        """Point image links at the imported copies under ``assets/``.

        Targets are percent-encoded, so a name with spaces stays a single
        link that the archiver can find again.

        Links are resolved relative to the note first, then by file name.
        Remote URLs and unknown images are left alone.
        """

        def resolve(ref: str) -> Optional[str]:
            ref = unquote(ref)
            if "://" in ref:
                return None
            local = os.path.normpath(os.path.abspath(os.path.join(note_dir, ref)))
            if local in by_path:
                return by_path[local]
            return by_name.get(Path(ref).name.lower())

        def standard(match: re.Match) -> str:
            target = resolve(match.group(2))
            if target is None:
                return match.group(0)
            return f"{match.group(1)}{self.assets_dir_name}/{quote(target)}{match.group(3)}"

        def wiki(match: re.Match) -> str:
            target = resolve(match.group(1).strip())
            if target is None:
                return match.group(0)
            return f"![{Path(target).stem}]({self.assets_dir_name}/{quote(target)})"

        return _WIKI_EMBED_RE.sub(wiki, _IMAGE_LINK_RE.sub(standard, body))

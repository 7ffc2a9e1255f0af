"""Moves notes out of the active vault into the archive tree.

A note without tags goes to ``<vault>/Archive``. A tagged note goes to
``<vault>/tags/<first tag>`` and every further tag gets a symlink at
``<vault>/tags/<tag>/<name>`` pointing at the moved file. Images the note
references under ``assets/`` travel with it.
"""

import logging
import os
import re
from pathlib import Path
from typing import Iterable, List, Optional
from urllib.parse import unquote

from fusen_vault.exceptions import ArchiveError, ErrorCode, StorageError
from fusen_vault.models.schema import ArchiveReport
from fusen_vault.storage.filename_codec import sanitize_title
from fusen_vault.storage.gateway import StorageGateway

logger = logging.getLogger(__name__)


def find_asset_refs(body: str, assets_dir_name: str = "assets") -> List[str]:
    """Relative paths of images embedded as ``![alt](assets/...)``, in order.

    Percent-encoded links are decoded, so ``assets/my%20photo.png`` yields
    ``assets/my photo.png``. References that would escape the assets folder
    are ignored.
    """
    pattern = re.compile(
        r"!\[[^\]]*\]\((" + re.escape(assets_dir_name) + r"/[^)\s]+)\)"
    )
    refs: List[str] = []
    for match in pattern.finditer(body):
        ref = unquote(match.group(1))
        normalized = os.path.normpath(ref)
        if not normalized.startswith(assets_dir_name + os.sep):
            logger.warning(f"Ignoring asset reference outside {assets_dir_name}/: {ref}")
            continue
        if ref not in refs:
            refs.append(ref)
    return refs


def tag_dir_names(tags: Iterable[str]) -> List[str]:
    """Sanitized, de-duplicated directory names for ``tags``, order kept."""
    names: List[str] = []
    for tag in tags:
        name = sanitize_title(tag)
        if name and name not in (".", "..") and name not in names:
            names.append(name)
    return names


class ArchiveService:
    """Relocates a note and its assets, then fans out tag symlinks."""

    def __init__(
        self,
        gateway: StorageGateway,
        vault_root: str,
        archive_dir_name: str = "Archive",
        tags_dir_name: str = "tags",
        assets_dir_name: str = "assets",
    ) -> None:
        self.gateway = gateway
        self.vault_root = Path(vault_root)
        self.archive_dir_name = archive_dir_name
        self.tags_dir_name = tags_dir_name
        self.assets_dir_name = assets_dir_name

    def tag_dir(self, tag_dir_name: str) -> Path:
        return self.vault_root / self.tags_dir_name / tag_dir_name

    def target_dir(self, tags: Iterable[str]) -> Path:
        names = tag_dir_names(tags)
        if not names:
            return self.vault_root / self.archive_dir_name
        return self.tag_dir(names[0])

    def archive(self, path: str, body: str, tags: Iterable[str]) -> ArchiveReport:
        """Archive the note at ``path``.

        Order matters: assets are copied first, originals deleted second and
        the note renamed last, so a copy failure leaves the note in place.
        Symlink failures for extra tags are collected, not raised.

        Raises:
            ArchiveError: the target is occupied or a copy/delete/rename failed.
        """
        names = tag_dir_names(tags)
        note = Path(path)
        target = self.target_dir(names)
        archived = target / note.name
        archived_path = str(archived)

        if self.gateway.exists(archived_path):
            raise ArchiveError(
                f"Archive target already exists: {archived_path}", path=path
            )

        report = ArchiveReport(source_path=path, archived_path=archived_path)
        moved_assets = self._copy_assets(path, note.parent, target, body, report)
        self._delete_originals(path, moved_assets)

        try:
            self.gateway.ensure_dir(str(target))
            self.gateway.rename(path, archived_path)
        except StorageError as e:
            raise ArchiveError(
                f"Failed to move note into {target}", path=path, original_error=e
            ) from e
        logger.info(f"Archived {note.name} into {target}")

        for name in names[1:]:
            self._link(name, archived, report)

        if not report.complete:
            logger.warning(
                f"Archived {note.name} with {len(report.link_errors)} link failure(s)"
            )
        return report

    def _copy_assets(
        self, path: str, note_dir: Path, target: Path, body: str, report: ArchiveReport
    ) -> List[Path]:
        moved: List[Path] = []
        for ref in find_asset_refs(body, self.assets_dir_name):
            src = note_dir / ref
            if not self.gateway.exists(str(src)):
                report.missing_assets.append(ref)
                continue
            dst = target / ref
            try:
                self.gateway.ensure_dir(str(dst.parent))
                self.gateway.copy_file(str(src), str(dst))
            except StorageError as e:
                raise ArchiveError(
                    f"Failed to copy asset {ref}", path=path, original_error=e
                ) from e
            report.copied_assets.append(str(dst))
            moved.append(src)
        return moved

    def _delete_originals(self, path: str, sources: List[Path]) -> None:
        for src in sources:
            try:
                self.gateway.delete_file(str(src))
            except StorageError as e:
                raise ArchiveError(
                    f"Failed to remove original asset {src.name}",
                    path=path,
                    code=ErrorCode.ARCHIVE_PARTIAL,
                    original_error=e,
                ) from e

    def _link(self, tag_name: str, archived: Path, report: ArchiveReport) -> Optional[str]:
        link_dir = self.tag_dir(tag_name)
        link_path = str(link_dir / archived.name)
        if self.gateway.exists(link_path):
            report.skipped_links.append(link_path)
            return None
        # Relative to the link's own folder, so the vault can move as a whole
        link_target = os.path.relpath(archived, link_dir)
        try:
            self.gateway.ensure_dir(str(link_dir))
            self.gateway.symlink(link_target, link_path)
        except StorageError as e:
            logger.warning(f"Could not link {archived.name} under tag {tag_name}: {e}")
            report.link_errors.append((tag_name, str(e)))
            return None
        report.links.append(link_path)
        return link_path

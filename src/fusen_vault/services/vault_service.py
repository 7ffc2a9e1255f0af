"""Command layer for the Fusen vault engine.

Each command reads whatever file content it needs, takes the state lock
for the planning step only, releases it and then applies the planned
effects through the storage gateway.
"""

import logging
import os
from typing import Iterable, List, Optional

from fusen_vault.config import FusenConfig, config
from fusen_vault.exceptions import (
    BulkOperationError,
    NoteNotFoundError,
    StorageError,
    ValidationError,
)
from fusen_vault.models.effects import flatten, is_noop
from fusen_vault.models.schema import ArchiveReport, ImportStats, Note, NoteRecord, Settings
from fusen_vault.observability import timed_operation, traced
from fusen_vault.services import effect_planner as planner
from fusen_vault.services.archive_service import ArchiveService
from fusen_vault.services.tag_filter import (
    WindowSweep,
    filter_visible,
    plan_window_sweep,
    toggle_tag,
)
from fusen_vault.state import StateStore
from fusen_vault.storage.filename_codec import is_note_file, next_sequence
from fusen_vault.storage.frontmatter_fields import extract_meta, split_frontmatter
from fusen_vault.storage.gateway import FileSystemGateway, StorageGateway
from fusen_vault.storage.importer import NoteImporter
from fusen_vault.storage.settings_store import SettingsStore

logger = logging.getLogger(__name__)


class VaultService:
    """Service for managing sticky notes in a vault folder."""

    def __init__(
        self,
        gateway: Optional[StorageGateway] = None,
        store: Optional[StateStore] = None,
        settings_store: Optional[SettingsStore] = None,
        cfg: Optional[FusenConfig] = None,
    ):
        """Initialize the service.

        Args:
            gateway: Filesystem access. A real ``FileSystemGateway`` if None.
            store: Shared state. A fresh, empty ``StateStore`` if None.
            settings_store: Settings persistence. Built from
                ``cfg.settings_path`` if None.
            cfg: Configuration; the module-level ``config`` if None.
        """
        self.config = cfg or config
        self.gateway = gateway or FileSystemGateway()
        self.store = store or StateStore()
        self.settings_store = settings_store or SettingsStore(self.config.settings_path)

    # ------------------------------------------------------------------
    # Folder & settings
    # ------------------------------------------------------------------

    def _scan_folder(self, folder: str) -> List[NoteRecord]:
        records = []
        for name in self.gateway.list_names(folder):
            if not is_note_file(name):
                continue
            path = os.path.join(folder, name)
            try:
                content = self.gateway.read_text(path)
            except StorageError as e:
                logger.warning(f"Listing {name} without metadata: {e}")
                content = ""
            records.append(planner.record_from_content(path, content))
        return records

    @traced("open_folder")
    def open_folder(self, folder: str) -> List[NoteRecord]:
        """Scan ``folder`` and make it the current vault folder."""
        records = self._scan_folder(folder)
        with self.store.locked() as state:
            state.folder_path = folder
            if state.base_path is None:
                state.base_path = folder
            state.notes.reset(records)
            return state.notes.snapshot()

    def list_notes(self) -> List[NoteRecord]:
        with self.store.locked() as state:
            return state.notes.snapshot()

    def load_settings(self) -> Settings:
        """Load settings and open the configured base folder, if any."""
        settings = self.settings_store.load()
        if settings.base_path:
            with self.store.locked() as state:
                state.base_path = settings.base_path
            if self.gateway.exists(settings.base_path):
                self.open_folder(settings.base_path)
        return settings

    @traced("save_settings")
    def save_settings(self, settings: Settings) -> None:
        """Persist settings and re-point the vault at the new base folder."""
        self.settings_store.save(settings)
        records = self._scan_folder(settings.base_path) if settings.base_path else None
        with self.store.locked() as state:
            state.base_path = settings.base_path
            state.folder_path = settings.base_path
            if records is not None:
                state.notes.reset(records)

    # ------------------------------------------------------------------
    # Single-note commands
    # ------------------------------------------------------------------

    def _read(self, path: str) -> str:
        if not self.gateway.exists(path):
            raise NoteNotFoundError(path)
        return self.gateway.read_text(path)

    @traced("read_note")
    def read_note(self, path: str) -> Note:
        content = self._read(path)
        front, body = split_frontmatter(content)
        with self.store.locked() as state:
            state.selected_path = path
            record = state.notes.find(path)
            meta = record.model_copy(deep=True) if record else None
        if meta is None:
            meta = planner.record_from_content(path, content)
        return Note(body=body, frontmatter=front, meta=meta)

    @traced("create_note")
    def create_note(
        self, folder: Optional[str] = None, context: Optional[str] = None
    ) -> Note:
        """Create a note with the default header and body.

        Without ``folder`` the current folder is used, then the base folder.
        """
        if folder is None:
            with self.store.locked() as state:
                folder = state.folder_path or state.base_path
        if not folder:
            raise ValidationError("No folder selected for the new note", field="folder")

        seq = next_sequence(self.gateway.list_names(folder))
        created = planner.build_create_note(
            folder,
            context or self.config.default_context,
            seq,
            background_color=self.config.default_color,
            body=self.config.default_body,
        )
        self.gateway.write_text(created.path, created.content)
        with self.store.locked() as state:
            state.notes.add(created.record)
        logger.info(f"Created note {created.filename}")
        return Note(
            body=created.body,
            frontmatter=created.frontmatter,
            meta=created.record.model_copy(deep=True),
        )

    def save_note(
        self,
        path: str,
        body: str,
        frontmatter_raw: str,
        old_body: Optional[str] = None,
        allow_rename: bool = True,
    ) -> str:
        """Save an edited note; returns the note's path after any rename.

        When ``old_body`` is not given, the body currently on disk is used.
        """
        with timed_operation("save_note", path=path) as op:
            if old_body is None:
                _, old_body = split_frontmatter(self._read(path))
            with self.store.locked() as state:
                final_path, effect = planner.handle_save(
                    state.notes, path, body, old_body, frontmatter_raw, allow_rename
                )
                if final_path != path and state.selected_path == path:
                    state.selected_path = final_path
            op["effects"] = len(flatten(effect))
            if is_noop(effect):
                logger.debug(f"Nothing to write for {os.path.basename(path)}")
            else:
                self.gateway.execute(effect)
            return final_path

    @traced("update_geometry")
    def update_geometry(
        self, path: str, x: float, y: float, width: float, height: float
    ) -> None:
        content = self._read(path)
        with self.store.locked() as state:
            effect = planner.handle_update_geometry(
                state.notes, path, content, x, y, width, height
            )
        self.gateway.execute(effect)

    @traced("toggle_always_on_top")
    def toggle_always_on_top(self, path: str, enable: bool) -> None:
        content = self._read(path)
        with self.store.locked() as state:
            effect = planner.handle_toggle_always_on_top(state.notes, path, content, enable)
        self.gateway.execute(effect)

    @traced("rename_note")
    def rename_note(self, path: str, new_context: str) -> str:
        content = self._read(path)
        with self.store.locked() as state:
            new_path, effect = planner.plan_rename(state.notes, path, new_context, content)
        self.gateway.execute(effect)
        return new_path

    @traced("move_to_trash")
    def move_to_trash(self, path: str) -> str:
        """Move a note into ``Trash/`` beside it and forget it."""
        parent, name = planner.split_path(path)
        trash_dir = os.path.join(parent, self.config.trash_dir_name)
        self.gateway.ensure_dir(trash_dir)
        new_path = os.path.join(trash_dir, name)
        self.gateway.rename(path, new_path)
        with self.store.locked() as state:
            state.notes.remove(path)
            if state.selected_path == path:
                state.selected_path = None
        return new_path

    def set_context_menu_path(self, path: Optional[str]) -> None:
        with self.store.locked() as state:
            state.active_context_menu_path = path

    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------

    @traced("add_tag")
    def add_tag(self, path: str, tag: str) -> None:
        content = self._read(path)
        with self.store.locked() as state:
            effect = planner.handle_add_tag(state.notes, path, content, tag)
        self.gateway.execute(effect)

    @traced("remove_tag")
    def remove_tag(self, path: str, tag: str) -> None:
        content = self._read(path)
        with self.store.locked() as state:
            effect = planner.handle_remove_tag(state.notes, path, content, tag)
        self.gateway.execute(effect)

    @traced("delete_tag")
    def delete_tag(self, tag: str) -> List[str]:
        """Remove ``tag`` from every note and from the active selection.

        Every tagged note is attempted, even after one fails.

        Returns:
            Paths of the notes that were rewritten.

        Raises:
            BulkOperationError: one or more notes could not be rewritten.
        """
        with self.store.locked() as state:
            paths = [r.path for r in state.notes if tag in r.tags]
            state.active_tags = [t for t in state.active_tags if t != tag]

        changed: List[str] = []
        failed: List[str] = []
        for path in paths:
            try:
                self.remove_tag(path, tag)
            except (NoteNotFoundError, StorageError) as e:
                logger.warning(f"Could not remove tag '{tag}' from {os.path.basename(path)}: {e}")
                failed.append(path)
                continue
            changed.append(path)

        if failed:
            raise BulkOperationError(
                f"Could not remove tag '{tag}' from {len(failed)} note(s)",
                operation="delete_tag",
                total_count=len(paths),
                success_count=len(changed),
                failed_paths=failed,
            )
        return changed

    def all_tags(self) -> List[str]:
        with self.store.locked() as state:
            return planner.all_unique_tags(state.notes)

    def active_tags(self) -> List[str]:
        with self.store.locked() as state:
            return list(state.active_tags)

    def set_active_tags(self, tags: Iterable[str]) -> List[str]:
        with self.store.locked() as state:
            state.active_tags = list(dict.fromkeys(t.strip() for t in tags if t.strip()))
            return list(state.active_tags)

    def toggle_active_tag(self, tag: str) -> List[str]:
        with self.store.locked() as state:
            state.active_tags = toggle_tag(state.active_tags, tag)
            return list(state.active_tags)

    def visible_paths(self) -> List[str]:
        with self.store.locked() as state:
            return filter_visible(state.notes, state.active_tags)

    def window_sweep(self, window_labels: Iterable[str]) -> WindowSweep:
        """Which open note windows to show or hide for the active tags."""
        visible = self.visible_paths()
        return plan_window_sweep(window_labels, visible, self.config.utility_windows)

    # ------------------------------------------------------------------
    # Vault-level commands
    # ------------------------------------------------------------------

    def _vault_root(self, fallback: str) -> str:
        with self.store.locked() as state:
            return state.base_path or state.folder_path or fallback

    @traced("archive_note")
    def archive_note(self, path: str) -> ArchiveReport:
        """Move a note (and its assets) into the archive or tag tree."""
        parent, _ = planner.split_path(path)
        content = self._read(path)
        _, body = split_frontmatter(content)
        with self.store.locked() as state:
            record = state.notes.find(path)
            tags = list(record.tags) if record else extract_meta(content).tags

        service = ArchiveService(
            self.gateway,
            self._vault_root(parent),
            archive_dir_name=self.config.archive_dir_name,
            tags_dir_name=self.config.tags_dir_name,
            assets_dir_name=self.config.assets_dir_name,
        )
        report = service.archive(path, body, tags)
        with self.store.locked() as state:
            state.notes.remove(path)
            if state.selected_path == path:
                state.selected_path = None
        return report

    @traced("import_notes")
    def import_notes(self, source: str, target: Optional[str] = None) -> ImportStats:
        """Import a foreign folder into ``target`` (the current folder by default)."""
        if target is None:
            with self.store.locked() as state:
                target = state.folder_path or state.base_path
        if not target:
            raise ValidationError("No target folder for import", field="target")

        importer = NoteImporter(
            self.gateway,
            target,
            assets_dir_name=self.config.assets_dir_name,
            default_color=self.config.default_color,
        )
        stats = importer.import_folder(source)

        with self.store.locked() as state:
            reload = state.folder_path == target
        if reload:
            self.open_folder(target)
        return stats

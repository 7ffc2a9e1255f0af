"""Filesystem primitives used by the vault engine.

The planner never touches the disk; it hands ``Effect`` values to a
``StorageGateway``. ``FileSystemGateway`` is the real implementation and
turns every ``OSError`` into a ``StorageError`` carrying the operation name
and a path hint.
"""

import logging
import shutil
from pathlib import Path
from typing import Iterator, List, Protocol, runtime_checkable

from fusen_vault.exceptions import ErrorCode, StorageError
from fusen_vault.models.effects import Batch, Effect, RenameNote, WriteNote

logger = logging.getLogger(__name__)


@runtime_checkable
class StorageGateway(Protocol):
    """Contract for the raw file operations the engine needs."""

    def read_text(self, path: str) -> str:
        """Return the full text of a file, line endings untouched."""
        ...

    def write_text(self, path: str, content: str) -> None:
        """Replace the full content of a file, creating it if needed."""
        ...

    def rename(self, old_path: str, new_path: str) -> None:
        """Move a file. Must refuse to overwrite an existing target."""
        ...

    def list_names(self, folder: str) -> List[str]:
        """File names (not paths) directly inside ``folder``, sorted."""
        ...

    def ensure_dir(self, path: str) -> None:
        ...

    def copy_file(self, src: str, dst: str) -> None:
        ...

    def delete_file(self, path: str) -> None:
        ...

    def symlink(self, target: str, link_path: str) -> None:
        ...

    def exists(self, path: str) -> bool:
        """True for any directory entry, including dangling symlinks."""
        ...

    def walk_files(self, root: str) -> Iterator[str]:
        """Yield the paths of all regular files below ``root``."""
        ...

    def execute(self, effect: Effect) -> None:
        """Apply a planned effect."""
        ...


def execute_effect(gateway: StorageGateway, effect: Effect) -> int:
    """Apply ``effect`` through ``gateway`` in order.

    Stops at the first failure and lets the error propagate; effects that
    already ran are not rolled back.

    Returns:
        Number of primitive operations performed.
    """
    if isinstance(effect, Batch):
        done = 0
        for inner in effect:
            done += execute_effect(gateway, inner)
        return done
    if isinstance(effect, WriteNote):
        gateway.write_text(effect.path, effect.content)
        return 1
    if isinstance(effect, RenameNote):
        gateway.rename(effect.old_path, effect.new_path)
        return 1
    raise TypeError(f"Unknown effect type: {type(effect).__name__}")


class FileSystemGateway:
    """``StorageGateway`` backed by the local filesystem."""

    def read_text(self, path: str) -> str:
        try:
            with Path(path).open("r", encoding="utf-8", newline="") as f:
                return f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(
                f"Failed to read {path}",
                operation="read",
                path=path,
                code=ErrorCode.STORAGE_READ_FAILED,
                original_error=e,
            ) from e

    def write_text(self, path: str, content: str) -> None:
        try:
            with Path(path).open("w", encoding="utf-8", newline="") as f:
                f.write(content)
        except OSError as e:
            raise StorageError(
                f"Failed to write {path}",
                operation="write",
                path=path,
                code=ErrorCode.STORAGE_WRITE_FAILED,
                original_error=e,
            ) from e
        logger.debug(f"Wrote {len(content)} chars to {path}")

    def rename(self, old_path: str, new_path: str) -> None:
        src, dst = Path(old_path), Path(new_path)
        if self.exists(new_path) and not self._same_entry(src, dst):
            raise StorageError(
                f"Refusing to rename onto existing file {new_path}",
                operation="rename",
                path=new_path,
                code=ErrorCode.STORAGE_TARGET_EXISTS,
            )
        try:
            src.rename(dst)
        except OSError as e:
            raise StorageError(
                f"Failed to rename {old_path}",
                operation="rename",
                path=old_path,
                code=ErrorCode.STORAGE_RENAME_FAILED,
                original_error=e,
            ) from e
        logger.info(f"Renamed {old_path} -> {new_path}")

    @staticmethod
    def _same_entry(a: Path, b: Path) -> bool:
        # Case-only renames on case-insensitive filesystems
        try:
            return a.samefile(b)
        except OSError:
            return False

    def list_names(self, folder: str) -> List[str]:
        try:
            return sorted(p.name for p in Path(folder).iterdir() if p.is_file())
        except OSError as e:
            raise StorageError(
                f"Failed to list {folder}",
                operation="list",
                path=folder,
                code=ErrorCode.STORAGE_READ_FAILED,
                original_error=e,
            ) from e

    def ensure_dir(self, path: str) -> None:
        try:
            Path(path).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(
                f"Failed to create directory {path}",
                operation="mkdir",
                path=path,
                code=ErrorCode.STORAGE_WRITE_FAILED,
                original_error=e,
            ) from e

    def copy_file(self, src: str, dst: str) -> None:
        try:
            shutil.copy2(Path(src), Path(dst))
        except OSError as e:
            raise StorageError(
                f"Failed to copy {src}",
                operation="copy",
                path=src,
                code=ErrorCode.STORAGE_COPY_FAILED,
                original_error=e,
            ) from e

    def delete_file(self, path: str) -> None:
        try:
            Path(path).unlink()
        except OSError as e:
            raise StorageError(
                f"Failed to delete {path}",
                operation="delete",
                path=path,
                code=ErrorCode.STORAGE_DELETE_FAILED,
                original_error=e,
            ) from e

    def symlink(self, target: str, link_path: str) -> None:
        """Create ``link_path`` pointing at ``target``.

        A relative ``target`` is resolved from the link's own directory.
        """
        try:
            Path(link_path).symlink_to(target)
        except (OSError, NotImplementedError) as e:
            raise StorageError(
                f"Failed to link {link_path}",
                operation="symlink",
                path=link_path,
                code=ErrorCode.STORAGE_LINK_FAILED,
                original_error=e,
            ) from e

    def exists(self, path: str) -> bool:
        entry = Path(path)
        return entry.is_symlink() or entry.exists()

    def walk_files(self, root: str) -> Iterator[str]:
        for entry in sorted(Path(root).rglob("*")):
            if entry.is_file():
                yield str(entry)

    def execute(self, effect: Effect) -> None:
        count = execute_effect(self, effect)
        if count:
            logger.debug(f"Executed {count} effect(s)")

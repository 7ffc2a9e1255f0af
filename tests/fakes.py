"""In-memory storage gateway for testing.

FakeStorageGateway keeps files, directories and symlinks in dictionaries
and records every mutating call, so tests can assert on the exact order
of filesystem effects without touching the disk.

Design principles:
- Same contract as FileSystemGateway: missing files and occupied rename
  targets raise StorageError with the same error codes
- Deterministic: listings are sorted
- Inspectable: ``calls`` holds ``(operation, *paths)`` tuples in order
- Failure injection via ``fail_on`` (operation name, path) pairs
"""
import os
from typing import Dict, Iterator, List, Optional, Set, Tuple

from fusen_vault.exceptions import ErrorCode, StorageError
from fusen_vault.models.effects import Effect
from fusen_vault.storage.gateway import execute_effect


def _norm(path: str) -> str:
    return os.path.normpath(path)


class FakeStorageGateway:
    """Dictionary-backed StorageGateway."""

    def __init__(self, files: Optional[Dict[str, str]] = None) -> None:
        self.files: Dict[str, str] = {}
        self.dirs: Set[str] = set()
        self.links: Dict[str, str] = {}
        self.calls: List[Tuple[str, ...]] = []
        self.fail_on: Set[Tuple[str, str]] = set()
        for path, content in (files or {}).items():
            self.add_file(path, content)

    # -- test helpers ---------------------------------------------------

    def add_file(self, path: str, content: str) -> None:
        path = _norm(path)
        self.files[path] = content
        self.ensure_dir(os.path.dirname(path), record=False)

    def _check(self, operation: str, path: str, code: ErrorCode) -> None:
        if (operation, _norm(path)) in self.fail_on:
            raise StorageError(
                f"Injected {operation} failure",
                operation=operation,
                path=path,
                code=code,
                original_error=OSError("injected"),
            )

    @property
    def writes(self) -> List[str]:
        return [c[1] for c in self.calls if c[0] == "write"]

    # -- StorageGateway -------------------------------------------------

    def read_text(self, path: str) -> str:
        path = _norm(path)
        self._check("read", path, ErrorCode.STORAGE_READ_FAILED)
        if path not in self.files:
            raise StorageError(
                f"Failed to read {path}",
                operation="read",
                path=path,
                code=ErrorCode.STORAGE_READ_FAILED,
                original_error=FileNotFoundError(path),
            )
        return self.files[path]

    def write_text(self, path: str, content: str) -> None:
        path = _norm(path)
        self._check("write", path, ErrorCode.STORAGE_WRITE_FAILED)
        self.calls.append(("write", path))
        self.files[path] = content

    def rename(self, old_path: str, new_path: str) -> None:
        old_path, new_path = _norm(old_path), _norm(new_path)
        self._check("rename", old_path, ErrorCode.STORAGE_RENAME_FAILED)
        if self.exists(new_path) and new_path != old_path:
            raise StorageError(
                f"Refusing to rename onto existing file {new_path}",
                operation="rename",
                path=new_path,
                code=ErrorCode.STORAGE_TARGET_EXISTS,
            )
        if old_path not in self.files:
            raise StorageError(
                f"Failed to rename {old_path}",
                operation="rename",
                path=old_path,
                code=ErrorCode.STORAGE_RENAME_FAILED,
                original_error=FileNotFoundError(old_path),
            )
        self.calls.append(("rename", old_path, new_path))
        self.files[new_path] = self.files.pop(old_path)

    def list_names(self, folder: str) -> List[str]:
        folder = _norm(folder)
        names = [
            os.path.basename(p)
            for p in list(self.files) + list(self.links)
            if os.path.dirname(p) == folder
        ]
        return sorted(names)

    def ensure_dir(self, path: str, record: bool = True) -> None:
        path = _norm(path)
        if record:
            self.calls.append(("mkdir", path))
        while path and path not in self.dirs:
            self.dirs.add(path)
            parent = os.path.dirname(path)
            if parent == path:
                break
            path = parent

    def copy_file(self, src: str, dst: str) -> None:
        src, dst = _norm(src), _norm(dst)
        self._check("copy", src, ErrorCode.STORAGE_COPY_FAILED)
        if src not in self.files:
            raise StorageError(
                f"Failed to copy {src}",
                operation="copy",
                path=src,
                code=ErrorCode.STORAGE_COPY_FAILED,
                original_error=FileNotFoundError(src),
            )
        self.calls.append(("copy", src, dst))
        self.files[dst] = self.files[src]

    def delete_file(self, path: str) -> None:
        path = _norm(path)
        self._check("delete", path, ErrorCode.STORAGE_DELETE_FAILED)
        if path not in self.files:
            raise StorageError(
                f"Failed to delete {path}",
                operation="delete",
                path=path,
                code=ErrorCode.STORAGE_DELETE_FAILED,
                original_error=FileNotFoundError(path),
            )
        self.calls.append(("delete", path))
        del self.files[path]

    def symlink(self, target: str, link_path: str) -> None:
        link_path = _norm(link_path)
        self._check("symlink", link_path, ErrorCode.STORAGE_LINK_FAILED)
        if self.exists(link_path):
            raise StorageError(
                f"Failed to link {link_path}",
                operation="symlink",
                path=link_path,
                code=ErrorCode.STORAGE_LINK_FAILED,
                original_error=FileExistsError(link_path),
            )
        self.calls.append(("symlink", _norm(target), link_path))
        # Stored as the path the link resolves to, as the OS would
        self.links[link_path] = _norm(os.path.join(os.path.dirname(link_path), target))

    def exists(self, path: str) -> bool:
        path = _norm(path)
        return path in self.files or path in self.dirs or path in self.links

    def walk_files(self, root: str) -> Iterator[str]:
        prefix = _norm(root) + os.sep
        for path in sorted(self.files):
            if path.startswith(prefix):
                yield path

    def execute(self, effect: Effect) -> None:
        execute_effect(self, effect)


VAULT = os.path.join(os.sep, "vault")


def note_text(
    seq: int = 1,
    context: str = "Hello",
    updated: str = "2026-01-01",
    body: str = "Hello\nfirst note",
    extra: str = "",
) -> str:
    """Full content of a note in the format new notes are written in."""
    return (
        "---\n"
        "type: sticky\n"
        f"seq: {seq}\n"
        f"context: {context}\n"
        "created: 2026-01-01\n"
        f"updated: {updated}\n"
        "backgroundColor: #f7e9b0\n"
        f"{extra}"
        "x: 100\n"
        "y: 100\n"
        "width: 400\n"
        "height: 300\n"
        "---\n"
        "\n"
        f"{body}"
    )

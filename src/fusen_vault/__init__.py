"""
Fusen Vault - persistence and metadata-synchronization engine for sticky notes.

Each note is a plain Markdown file named ``SEQ_DATE_TITLE.md`` whose leading
``---`` header carries window geometry, color, flags and tags. This package
keeps the file name, the header text and an in-memory mirror consistent,
planning filesystem effects as plain values and executing them separately.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("fusen-vault")
except PackageNotFoundError:
    __version__ = "0.7.0"

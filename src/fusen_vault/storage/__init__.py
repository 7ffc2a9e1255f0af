"""Storage layer for the Fusen vault engine."""

from fusen_vault.storage.gateway import (
    FileSystemGateway,
    StorageGateway,
    execute_effect,
)

__all__ = [
    "FileSystemGateway",
    "StorageGateway",
    "execute_effect",
]

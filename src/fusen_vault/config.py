"""Configuration module for the Fusen vault engine."""

import logging
import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

# Load environment variables from the project root .env file.
# Anchored to __file__ so it works regardless of the process CWD.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# User-level config, lives next to the settings document
_USER_ENV = Path.home() / ".fusen" / ".env"
load_dotenv(_USER_ENV)


logger = logging.getLogger(__name__)

DEFAULT_BACKGROUND_COLOR = "#f7e9b0"


def _env_list(name: str, default: str) -> List[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


class FusenConfig(BaseModel):
    """Configuration for the vault engine."""

    # Base directory that relative paths are resolved against
    base_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("FUSEN_BASE_DIR", "."))
    )
    # Folder holding the note files (the vault root)
    notes_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("FUSEN_NOTES_DIR", "data/notes"))
    )
    # JSON settings document (basePath, language, autoStart, ...)
    settings_path: Path = Field(
        default_factory=lambda: Path(
            os.getenv(
                "FUSEN_SETTINGS_PATH", str(Path.home() / ".fusen" / "settings.json")
            )
        )
    )
    log_dir: Optional[Path] = Field(
        default_factory=lambda: (
            Path(os.getenv("FUSEN_LOG_DIR")) if os.getenv("FUSEN_LOG_DIR") else None
        )
    )
    # Reserved subtrees
    trash_dir_name: str = Field(
        default_factory=lambda: os.getenv("FUSEN_TRASH_DIR", "Trash")
    )
    archive_dir_name: str = Field(
        default_factory=lambda: os.getenv("FUSEN_ARCHIVE_DIR", "Archive")
    )
    tags_dir_name: str = Field(
        default_factory=lambda: os.getenv("FUSEN_TAGS_DIR", "tags")
    )
    assets_dir_name: str = Field(
        default_factory=lambda: os.getenv("FUSEN_ASSETS_DIR", "assets")
    )
    # New-note defaults
    default_color: str = Field(
        default_factory=lambda: os.getenv("FUSEN_DEFAULT_COLOR", DEFAULT_BACKGROUND_COLOR)
    )
    default_context: str = Field(
        default_factory=lambda: os.getenv("FUSEN_DEFAULT_CONTEXT", "新規メモ")
    )
    default_body: str = Field(
        default_factory=lambda: os.getenv(
            "FUSEN_DEFAULT_BODY", "ここにコンテキストを書く！"
        )
    )
    # Windows never touched by a tag show/hide sweep
    utility_windows: List[str] = Field(
        default_factory=lambda: _env_list("FUSEN_UTILITY_WINDOWS", "main")
    )

    @model_validator(mode="after")
    def _validate_reserved_dirs(self) -> "FusenConfig":
        """Reserved directory names must be single, non-empty path segments."""
        for key in (
            "trash_dir_name",
            "archive_dir_name",
            "tags_dir_name",
            "assets_dir_name",
        ):
            value = getattr(self, key)
            if not value or "/" in value or "\\" in value or value in (".", ".."):
                raise ValueError(f"{key} must be a single directory name, got {value!r}")
        if not self.default_context.strip():
            logger.warning("FUSEN_DEFAULT_CONTEXT is blank; new notes get 'untitled'")
        return self

    def get_absolute_path(self, path: Path) -> Path:
        """Convert a relative path to an absolute path based on base_dir."""
        if path.is_absolute():
            return path
        return self.base_dir / path

    def get_notes_dir(self) -> Path:
        """Get the absolute vault root, creating it when missing."""
        notes_dir = self.get_absolute_path(self.notes_dir)
        notes_dir.mkdir(parents=True, exist_ok=True)
        return notes_dir


# Create a global config instance
config = FusenConfig()

"""Load and save the JSON settings document."""

import json
import logging
import os
from pathlib import Path
from typing import Union

from pydantic import ValidationError as PydanticValidationError

from fusen_vault.exceptions import ConfigurationError, ErrorCode, StorageError
from fusen_vault.models.schema import Settings

logger = logging.getLogger(__name__)


class SettingsStore:
    """Persists ``Settings`` as camelCase JSON at a fixed path.

    A missing file yields the defaults. Both ``basePath`` and the
    snake_case ``base_path`` are accepted on load.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def load(self) -> Settings:
        if not self.path.exists():
            logger.debug(f"No settings at {self.path}, using defaults")
            return Settings()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                f"Settings file is not valid JSON: {e}",
                config_key=str(self.path),
                code=ErrorCode.SETTINGS_INVALID,
            ) from e
        except OSError as e:
            raise StorageError(
                "Failed to read settings",
                operation="read",
                path=str(self.path),
                original_error=e,
            ) from e

        if not isinstance(data, dict):
            raise ConfigurationError(
                "Settings document must be a JSON object",
                config_key=str(self.path),
                code=ErrorCode.SETTINGS_INVALID,
            )
        try:
            return Settings.model_validate(data)
        except PydanticValidationError as e:
            raise ConfigurationError(
                f"Invalid settings: {e.errors()[0].get('msg', e)}",
                config_key=str(self.path),
                code=ErrorCode.SETTINGS_INVALID,
            ) from e

    def save(self, settings: Settings) -> None:
        content = json.dumps(
            settings.model_dump(by_alias=True), indent=2, ensure_ascii=False
        )
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(content)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise StorageError(
                "Failed to write settings",
                operation="write",
                path=str(self.path),
                code=ErrorCode.STORAGE_WRITE_FAILED,
                original_error=e,
            ) from e
        logger.info(f"Saved settings to {self.path}")

"""File-backed storage for the cloud service API key."""

import json
import os
import threading
from pathlib import Path
from typing import Any, Dict

from .error_handling import with_error_handling
from .exceptions import ConfigurationError

API_KEY_SETTING = "gemini_api_key"


class JsonCredentialStore:
    """Keeps the API key in a JSON settings file next to other settings."""

    def __init__(self, path: Path):
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def get(self) -> str:
        with self._lock:
            value = self._read().get(API_KEY_SETTING, "")
        return value if isinstance(value, str) else ""

    def set(self, key: str) -> None:
        with self._lock:
            settings = self._read()
            settings[API_KEY_SETTING] = key.strip()
            self._write(settings)

    def clear(self) -> None:
        with self._lock:
            settings = self._read()
            if settings.pop(API_KEY_SETTING, None) is not None:
                self._write(settings)

    @with_error_handling
    def _read(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError as exc:
            raise ConfigurationError(
                f"Settings file {self._path} is not valid JSON: {exc}"
            ) from exc
        if not isinstance(data, dict):
            raise ConfigurationError(f"Settings file {self._path} must hold an object")
        return data

    @with_error_handling
    def _write(self, settings: Dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(settings, indent=2), encoding="utf-8")
        # Owner-only: the file holds a secret
        os.chmod(tmp_path, 0o600)
        os.replace(tmp_path, self._path)

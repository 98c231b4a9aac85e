"""Key/value stores backing the token store.

Two capabilities are consumed: a secure store for tokens and a lightweight
settings store for expiry timestamps and cached flags. Both are synchronous.
Platform integrations implement the protocols; in-memory versions and a
JSON-file settings store ship here.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class SecureStore(Protocol):
    """Encrypted string key/value storage."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class SettingsStore(Protocol):
    """Non-secure typed key/value storage."""

    def get_string(self, key: str) -> str | None: ...

    def get_number(self, key: str) -> float | None: ...

    def get_boolean(self, key: str) -> bool | None: ...

    def set_string(self, key: str, value: str) -> None: ...

    def set_number(self, key: str, value: float) -> None: ...

    def set_boolean(self, key: str, value: bool) -> None: ...

    def has_key(self, key: str) -> bool: ...

    def remove(self, key: str) -> None: ...


class InMemorySecureStore:
    """Process-local secure store, for tests and short-lived tools."""

    def __init__(self) -> None:
        self._values: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def remove(self, key: str) -> None:
        self._values.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._values)


class InMemorySettingsStore:
    """Process-local settings store."""

    def __init__(self, values: dict[str, Any] | None = None) -> None:
        self._values: dict[str, Any] = dict(values or {})

    def get_string(self, key: str) -> str | None:
        value = self._values.get(key)
        return value if isinstance(value, str) else None

    def get_number(self, key: str) -> float | None:
        value = self._values.get(key)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return value

    def get_boolean(self, key: str) -> bool | None:
        value = self._values.get(key)
        return value if isinstance(value, bool) else None

    def set_string(self, key: str, value: str) -> None:
        self._set(key, str(value))

    def set_number(self, key: str, value: float) -> None:
        self._set(key, value)

    def set_boolean(self, key: str, value: bool) -> None:
        self._set(key, bool(value))

    def has_key(self, key: str) -> bool:
        return key in self._values

    def remove(self, key: str) -> None:
        if key in self._values:
            del self._values[key]
            self._persist()

    def keys(self) -> list[str]:
        return list(self._values)

    def _set(self, key: str, value: Any) -> None:
        self._values[key] = value
        self._persist()

    def _persist(self) -> None:
        pass


class JsonFileSettingsStore(InMemorySettingsStore):
    """Settings store persisted to a single JSON file.

    Every mutation rewrites the file atomically: content goes to a
    temporary file in the same directory which is then renamed into place,
    so a crash never leaves a half-written file behind.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        super().__init__(self._load())

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, Any]:
        if not self._path.is_file():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Ignoring unreadable settings file {self._path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _persist(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        text = json.dumps(self._values, indent=2, sort_keys=True) + "\n"

        fd, tmp_path = tempfile.mkstemp(
            dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self._path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

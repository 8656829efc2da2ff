import asyncio
import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path

from unitwatch.errors import UnitwatchError


class KeyValueStore(ABC):
    """String key-value persistence provided to a plugin.
    """

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Get the value stored under `key`, None when absent.
        """

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store `value` under `key`, replacing any previous value.
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove `key`; removing an absent key is not an error.
        """


class MemoryKeyValueStore(KeyValueStore):
    """Process-local store, used by tests and one-off CLI runs.
    """

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)


class FileKeyValueStore(KeyValueStore):
    """Keeps all keys of one plugin in a single JSON object on disk.

    The file is re-read on every access so edits made by other processes
    are seen; every write replaces it atomically through a temporary file
    in the same directory.
    """

    def __init__(self, path: Path) -> None:
        self._logger = logging.getLogger(__name__)
        self._path = Path(path)
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    async def get(self, key: str) -> str | None:
        async with self._lock:
            return self._load().get(key)

    async def set(self, key: str, value: str) -> None:
        async with self._lock:
            data = self._load()
            data[key] = value
            self._write(data)

    async def delete(self, key: str) -> None:
        async with self._lock:
            data = self._load()
            if data.pop(key, None) is not None:
                self._write(data)

    def _load(self) -> dict[str, str]:
        try:
            raw = self._path.read_text(encoding='utf-8')
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise UnitwatchError(f'Failed to read {self._path}: {e}') from e

        try:
            loaded = json.loads(raw)
        except ValueError:
            self._logger.warning('Ignoring malformed settings file %s', self._path)
            return {}

        if not isinstance(loaded, dict):
            self._logger.warning('Ignoring non-object settings file %s', self._path)
            return {}

        return {
            str(key): value for key, value in loaded.items()
            if isinstance(value, str)
        }

    def _write(self, data: dict[str, str]) -> None:
        tmp_path = self._path.with_name(f'.{self._path.name}.tmp')
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(
                json.dumps(data, indent=2, sort_keys=True),
                encoding='utf-8',
            )
            os.replace(tmp_path, self._path)
        except OSError as e:
            raise UnitwatchError(f'Failed to write {self._path}: {e}') from e
        self._logger.debug('Saved %d keys to %s', len(data), self._path)

import json
import logging
from collections.abc import Iterable

from pydantic import Field

from unitwatch.settings.store import KeyValueStore
from unitwatch.systemd.types import UnitKind
from unitwatch.systemd.validation import validate_unit_name
from unitwatch.utils import BaseModel


WATCHED_SERVICES_KEY = 'watched_services'
WATCHED_TIMERS_KEY = 'watched_timers'


class WatchedList(BaseModel):
    """The persisted watch list as read back from the store.

    Args:
        units: Unit names in the order they were saved
        warning: Why the stored value was ignored, if it was
    """
    model_config = {'frozen': True}

    units: list[str] = Field(default_factory=list)
    warning: str | None = Field(None)


class WatchedUnits:
    """The JSON array of unit names a plugin shows on its main page.
    """

    def __init__(self, store: KeyValueStore, key: str, kind: UnitKind) -> None:
        self._logger = logging.getLogger(__name__)
        self._store = store
        self._key = key
        self._kind = kind

    @classmethod
    def services(cls, store: KeyValueStore) -> 'WatchedUnits':
        return cls(store, WATCHED_SERVICES_KEY, UnitKind.SERVICE)

    @classmethod
    def timers(cls, store: KeyValueStore) -> 'WatchedUnits':
        return cls(store, WATCHED_TIMERS_KEY, UnitKind.TIMER)

    @property
    def kind(self) -> UnitKind:
        return self._kind

    async def load(self) -> WatchedList:
        """Read the list; a missing or malformed value reads as empty.
        """
        raw = await self._store.get(self._key)
        if raw is None or not raw.strip():
            return WatchedList()

        try:
            value = json.loads(raw)
        except ValueError as e:
            return self._degraded(f'stored value is not valid JSON: {e}')

        if not isinstance(value, list):
            return self._degraded('stored value is not a JSON array')

        units = [item for item in value if isinstance(item, str) and item]
        if len(units) != len(value):
            self._logger.warning(
                'Dropped %d non-string entries from %s',
                len(value) - len(units),
                self._key,
            )
        return WatchedList(units=units)

    async def save(self, names: Iterable[str]) -> list[str]:
        """Validate, drop exact duplicates and persist the list.

        Returns:
            The names as stored, suffixes completed

        Raises:
            InvalidUnitNameError: If any name fails validation; nothing is
                stored in that case
        """
        units = []
        for name in names:
            unit = str(validate_unit_name(name, self._kind))
            if unit not in units:
                units.append(unit)

        await self._store.set(self._key, json.dumps(units))
        self._logger.info('Saved %d watched units under %s', len(units), self._key)
        return units

    def _degraded(self, reason: str) -> WatchedList:
        warning = f'Ignoring malformed {self._key}: {reason}'
        self._logger.warning('%s', warning)
        return WatchedList(warning=warning)

import json
from datetime import UTC, datetime

import pytest

from unitwatch.command import RecordingCommandExecutor
from unitwatch.settings import MemoryKeyValueStore


NOW = datetime(2026, 1, 15, 14, 0, 0, tzinfo=UTC)

SERVICE_PROPERTIES = (
    '--property=LoadState,ActiveState,SubState,MainPID,ActiveEnterTimestamp'
)
TIMER_PROPERTIES = (
    '--property=Id,LoadState,UnitFileState,ActiveState,Unit,'
    'NextElapseUSecRealtime,LastTriggerUSec,TimersCalendar,TimersMonotonic'
)


@pytest.fixture
def executor() -> RecordingCommandExecutor:
    return RecordingCommandExecutor()


@pytest.fixture
def store() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def journal_line():
    """Build one `journalctl -o json` line.
    """
    def build(
        invocation_id: str,
        timestamp: datetime,
        message: str,
        **fields: str,
    ) -> str:
        entry = {
            '__REALTIME_TIMESTAMP': str(int(timestamp.timestamp() * 1_000_000)),
            '_SYSTEMD_INVOCATION_ID': invocation_id,
            'MESSAGE': message,
            **fields,
        }
        return json.dumps(entry)

    return build

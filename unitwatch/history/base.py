from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Iterable

from unitwatch.config import Defaults
from unitwatch.history.models import ExecutionDetails, ExecutionRecord
from unitwatch.systemd.validation import UnitName


def clamp_limit(limit: int | None, default: int = Defaults.HISTORY_LIMIT) -> int:
    """Bound a requested record count to 1..MAX_HISTORY_LIMIT.
    """
    if limit is None:
        limit = default
    return max(1, min(limit, Defaults.MAX_HISTORY_LIMIT))


def newest_first(records: Iterable[ExecutionRecord]) -> list[ExecutionRecord]:
    return sorted(records, key=lambda record: record.start_time, reverse=True)


class HistoryReader(ABC):
    """Reconstructs the executions of a unit from an external store.
    """

    @abstractmethod
    async def list_executions(
        self,
        unit: UnitName,
        limit: int | None = None,
    ) -> list[ExecutionRecord]:
        """List executions of a unit, newest first.

        Args:
            unit: Service unit whose executions are wanted
            limit: Maximum number of records, clamped to 1..500

        Returns:
            At most `limit` records ordered by start time, newest first
        """

    @abstractmethod
    async def get_details(
        self,
        unit: UnitName,
        execution_id: str,
    ) -> ExecutionDetails:
        """Get one execution together with its captured output.

        Args:
            unit: Service unit the execution belongs to
            execution_id: Invocation id or log file token

        Returns:
            ExecutionDetails with output capped to the configured size

        Raises:
            ExecutionNotFoundError: If the id resolves to nothing
        """

    async def latest(self, unit: UnitName) -> ExecutionRecord | None:
        records = await self.list_executions(unit, limit=1)
        return records[0] if records else None


class OutputBuffer:
    """Keeps the newest lines of an execution's output within a byte cap.

    When the cap is exceeded the oldest lines are dropped and
    `truncated` is set.
    """

    def __init__(self, max_bytes: int = Defaults.MAX_OUTPUT_BYTES) -> None:
        self._max_bytes = max_bytes
        self._lines: deque[str] = deque()
        self._size = 0
        self.truncated = False

    def append(self, line: str) -> None:
        encoded = line.encode('utf-8', errors='replace')
        if len(encoded) + 1 > self._max_bytes:
            # Keep the tail of a single oversized line
            line = encoded[-(self._max_bytes - 1):].decode(
                'utf-8',
                errors='ignore',
            )
            encoded = line.encode('utf-8')
            self.truncated = True

        self._lines.append(line)
        self._size += len(encoded) + 1
        while self._size > self._max_bytes and self._lines:
            dropped = self._lines.popleft()
            self._size -= len(dropped.encode('utf-8', errors='replace')) + 1
            self.truncated = True

    def extend(self, lines: Iterable[str]) -> None:
        for line in lines:
            self.append(line)

    @property
    def lines(self) -> list[str]:
        return list(self._lines)

    @property
    def size(self) -> int:
        return self._size

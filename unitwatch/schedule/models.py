from collections.abc import Iterable
from typing import Self

from pydantic import Field

from unitwatch.schedule.humanizer import humanize_schedule
from unitwatch.utils import BaseModel


class ScheduleSpec(BaseModel):
    """Ordered schedule clauses of one timer unit.

    Args:
        clauses: Raw clauses in the order systemd reports them
    """
    model_config = {'frozen': True}

    clauses: tuple[str, ...] = Field(default_factory=tuple)

    @classmethod
    def from_clauses(cls, clauses: Iterable[str]) -> Self:
        """Keep every non-empty clause, duplicates included, in order.
        """
        return cls(clauses=tuple(c.strip() for c in clauses if c and c.strip()))

    @property
    def is_empty(self) -> bool:
        return not self.clauses

    def humanize(self) -> str:
        return humanize_schedule(self.clauses)

import re
from typing import Final, Self

from unitwatch.errors import InvalidUnitNameError
from unitwatch.systemd.types import KNOWN_UNIT_SUFFIXES, UnitKind


MAX_UNIT_NAME_LENGTH: Final[int] = 256

_UNIT_NAME_PATTERN: Final[re.Pattern[str]] = re.compile(r'^[A-Za-z0-9:_.@\-]+$')
_FORBIDDEN_CHARACTERS: Final[frozenset[str]] = frozenset(
    '/\\;|&$`\'"<>(){}[]*?!~#%^=,+\n\r\t '
)


class UnitName(str):
    """A unit name that passed validation.

    Instances only come out of `validate_unit_name`, so anything typed as
    UnitName is safe to hand to the command executor.
    """

    __slots__ = ()

    @property
    def kind(self) -> UnitKind | None:
        for kind in UnitKind:
            if self.endswith(kind.suffix):
                return kind
        return None

    @property
    def base_name(self) -> str:
        """The name without its unit type suffix.
        """
        stem, dot, suffix = self.rpartition('.')
        if dot and f'.{suffix}' in KNOWN_UNIT_SUFFIXES:
            return stem
        return str(self)

    def with_kind(self, kind: UnitKind) -> Self:
        """The sibling unit of another kind, e.g. the service a timer activates.
        """
        return type(self)(f'{self.base_name}{kind.suffix}')


def validate_unit_name(name: str, kind: UnitKind | None = None) -> UnitName:
    """Check a unit name before it may reach a systemctl invocation.

    A missing suffix is completed from `kind`; a name carrying the suffix of
    a different unit type is rejected.

    Args:
        name: Raw unit name from a request, settings or the CLI
        kind: Unit type implied by the calling context

    Returns:
        The validated UnitName

    Raises:
        InvalidUnitNameError: If the name is empty, too long, contains path
            separators, `..`, whitespace or shell metacharacters, starts
            like an option, or names the wrong unit type
    """
    if not isinstance(name, str) or not name:
        raise InvalidUnitNameError(str(name), 'name cannot be empty')

    if len(name) > MAX_UNIT_NAME_LENGTH:
        raise InvalidUnitNameError(
            name[:32] + '...',
            f'name exceeds {MAX_UNIT_NAME_LENGTH} characters',
        )

    bad = sorted(set(name) & _FORBIDDEN_CHARACTERS)
    if bad:
        raise InvalidUnitNameError(
            name,
            f'contains forbidden characters {"".join(bad)!r}',
        )

    if '..' in name:
        raise InvalidUnitNameError(name, "contains '..'")

    if not _UNIT_NAME_PATTERN.match(name):
        raise InvalidUnitNameError(name, 'contains invalid characters')

    if name.startswith(('-', '.')):
        raise InvalidUnitNameError(name, "cannot start with '-' or '.'")

    if kind is not None:
        name = _apply_suffix(name, kind)

    if len(name) > MAX_UNIT_NAME_LENGTH:
        raise InvalidUnitNameError(
            name[:32] + '...',
            f'name exceeds {MAX_UNIT_NAME_LENGTH} characters',
        )

    return UnitName(name)


def _apply_suffix(name: str, kind: UnitKind) -> str:
    if name.endswith(kind.suffix):
        if name == kind.suffix:
            raise InvalidUnitNameError(name, 'name has no base part')
        return name

    for suffix in KNOWN_UNIT_SUFFIXES:
        if name.endswith(suffix):
            raise InvalidUnitNameError(
                name,
                f'expected a {kind.suffix} unit, got {suffix}',
            )

    if name.endswith('@'):
        raise InvalidUnitNameError(name, 'template unit needs an instance')

    return f'{name}{kind.suffix}'

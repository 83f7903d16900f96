from __future__ import annotations

from typing import Any, Optional


class MapperError(Exception):
    """Base class for errors raised by the mapping engine."""


class SchemaShapeError(MapperError, ValueError):
    """The schema handed to the catalog builder is structurally unusable."""

    def __init__(self, message: str, location: str = '#'):
        super().__init__(f"{message} (at {location})")
        self.location = location


class MappingConflictError(MapperError):
    """Raised when approving an entry that still has conflicts."""

    def __init__(self, header: str, conflicts):
        kinds = sorted({c.kind for c in conflicts})
        super().__init__(f"Mapping for '{header}' has unresolved {', '.join(kinds)} conflicts.")
        self.header = header
        self.conflicts = list(conflicts)


class ConfigError(MapperError, ValueError):
    """A mapping configuration object is not a flat header -> path object."""


class CoercionWarning(UserWarning):
    """A value did not fit its declared type and was passed through unchanged."""

    def __init__(self, row: int, header: str, path: str, value: Any, expected: Optional[str]):
        super().__init__(f"Row {row}: '{header}' -> {path}: {value!r} is not a valid {expected}")
        self.row = row
        self.header = header
        self.path = path
        self.value = value
        self.expected = expected

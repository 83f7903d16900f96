from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union

from .errors import MappingConflictError

# (branch_set_id, branch_index). The id is '<owner path>#<schema location>',
# e.g. 'dopc#/properties/dopc/oneOf'; the owner path is '' for the root object.
BranchTag = Tuple[str, int]


def branch_owner(branch_set_id: str) -> str:
    return branch_set_id.split('#', 1)[0]


@dataclass(frozen=True)
class FieldDescriptor:
    path: str
    type: str = 'string'
    format: Optional[str] = None
    enum: Optional[Tuple[Any, ...]] = None
    is_array: bool = False
    one_of_groups: Tuple[BranchTag, ...] = ()
    array_root: Optional[str] = None
    required: bool = False
    leaf_array: bool = False  # the leaf itself holds a list of primitives

    @classmethod
    def coerce(cls, value: Union['FieldDescriptor', str, Dict[str, Any]]) -> 'FieldDescriptor':
        """Accept a descriptor, a bare path, or a {'path': ..., 'isArray': ...} dict."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            return cls(path=value)
        if isinstance(value, dict):
            is_array = bool(value.get('is_array', value.get('isArray', False)))
            path = value['path']
            root = value.get('array_root')
            if is_array and root is None:
                root = path.split('.')[0]
            return cls(
                path=path,
                type=value.get('type') or 'string',
                format=value.get('format'),
                enum=tuple(value['enum']) if value.get('enum') else None,
                is_array=is_array,
                one_of_groups=tuple(tuple(g) for g in value.get('one_of_groups', ())),
                array_root=root,
                required=bool(value.get('required', False)),
                leaf_array=bool(value.get('leaf_array', False)),
            )
        raise TypeError(f"Cannot build a FieldDescriptor from {type(value).__name__}.")

    @property
    def family(self) -> Optional[str]:
        """Repeating group this field belongs to (None for scalar fields)."""
        if not self.is_array:
            return None
        return self.array_root or self.path.split('.')[0]


@dataclass(frozen=True)
class PropertyRule:
    """Presence constraints of one schema property (leaf or container)."""

    path: str
    required: bool = False
    is_array: bool = False
    min_items: int = 0


@dataclass
class MappingEntry:
    header: str
    target_path: Optional[str] = None
    approved: bool = False

    @property
    def skipped(self) -> bool:
        return self.approved and not self.target_path


@dataclass(frozen=True)
class Suggestion:
    value: str
    kind: str  # 'existing', 'new' or 'scalar'
    index: Optional[int] = None
    conflict: bool = False
    type_mismatch: bool = False


@dataclass(frozen=True)
class ColumnInfo:
    type: str = 'empty'
    format: Optional[str] = None


@dataclass(frozen=True)
class MappingConflict:
    header: str
    kind: str  # 'branch' or 'type'
    path: str
    other_header: Optional[str] = None
    detail: str = ''


class Mapping:
    """Header -> MappingEntry, ordered like the source columns.

    The header set is fixed at construction; edits change targets and approval only.
    """

    def __init__(self, headers: Iterable[str], entries: Optional[Iterable[MappingEntry]] = None):
        self._entries: Dict[str, MappingEntry] = {h: MappingEntry(h) for h in headers}
        for entry in entries or ():
            if entry.header in self._entries:
                self._entries[entry.header] = replace(entry)

    @classmethod
    def from_targets(cls, targets: Dict[str, Optional[str]], approved: bool = False) -> 'Mapping':
        return cls(
            targets.keys(),
            [MappingEntry(h, p or None, approved) for h, p in targets.items()],
        )

    def __iter__(self) -> Iterator[MappingEntry]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, header: object) -> bool:
        return header in self._entries

    def __getitem__(self, header: str) -> MappingEntry:
        return self._entries[header]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Mapping):
            return NotImplemented
        return list(self) == list(other)

    def __repr__(self) -> str:
        return f"Mapping({list(self._entries.values())!r})"

    @property
    def headers(self) -> List[str]:
        return list(self._entries)

    def targets(self, approved_only: bool = False) -> Dict[str, str]:
        """Header -> target path for every entry that has a target."""
        return {
            e.header: e.target_path
            for e in self
            if e.target_path and (e.approved or not approved_only)
        }

    def set_target(self, header: str, path: Optional[str]) -> None:
        entry = self._entries[header]
        entry.target_path = path.strip() if path and path.strip() else None
        entry.approved = False

    def clear(self, header: str) -> None:
        self.set_target(header, None)

    def skip(self, header: str) -> None:
        entry = self._entries[header]
        entry.target_path = None
        entry.approved = True

    def approve(self, header: str, conflicts: Optional[Dict[str, List[MappingConflict]]] = None) -> None:
        found = (conflicts or {}).get(header)
        if found:
            raise MappingConflictError(header, found)
        self._entries[header].approved = True

    def approve_all(self, conflicts: Optional[Dict[str, List[MappingConflict]]] = None) -> List[str]:
        """Approve every entry without conflicts; return the headers left pending."""
        pending = []
        for header in self._entries:
            if (conflicts or {}).get(header):
                pending.append(header)
            else:
                self._entries[header].approved = True
        return pending

    def is_ready(self) -> bool:
        """True once every header is approved (mapped or explicitly skipped)."""
        return bool(self._entries) and all(e.approved for e in self)


@dataclass
class BuildResult:
    records: List[Dict[str, Any]] = field(default_factory=list)
    context: Optional[List[str]] = None
    warnings: List[Any] = field(default_factory=list)
    invalid_targets: Dict[str, str] = field(default_factory=dict)

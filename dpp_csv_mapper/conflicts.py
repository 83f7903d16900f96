from __future__ import annotations

import logging
import re
from collections import defaultdict
from itertools import combinations
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .config import Settings, get_settings
from .indices import suggestions_for_field
from .models import ColumnInfo, FieldDescriptor, Mapping, MappingConflict, Suggestion, branch_owner
from .paths import parse_path, split_path, strip_indices
from .records import parse_number

logger = logging.getLogger(__name__)

BOOLEAN_LITERALS = {'true', 'false', 'yes', 'no', '0', '1'}

_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}(T\d{2}:\d{2}(:\d{2}(\.\d+)?)?(Z|[+-]\d{2}:?\d{2})?)?$", re.IGNORECASE)
_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_URI = re.compile(r"^[a-z][a-z0-9+.-]*:\S+$", re.IGNORECASE)
_URI_REF = re.compile(r"^([a-z][a-z0-9+.-]*:\S+|/\S*)$", re.IGNORECASE)

# CSV column type -> schema types it may be written into.
_COMPATIBLE = {
    'boolean': {'boolean', 'string'},
    'integer': {'integer', 'number', 'string'},
    'number': {'number', 'string'},
    'string': {'string'},
}

# (object instance, branch set id) -> branch index
BranchKey = Tuple[str, str]


def analyze_column(rows: Sequence[Dict[str, Any]], header: str, limit: Optional[int] = None,
                   settings: Optional[Settings] = None) -> ColumnInfo:
    """Infer the type (and string format) of one CSV column from its first non-empty values.

    Hierarchy: boolean > integer > number > date-time > email > uri > uri-reference > string.
    """
    if limit is None:
        limit = (settings or get_settings()).column_sample_limit
    if not rows or not header:
        return ColumnInfo('empty')

    flags = dict(boolean=True, integer=True, number=True, date=True, email=True, uri=True, uri_ref=True)
    checked = 0
    for row in rows:
        if checked >= limit:
            break
        value = row.get(header)
        if value is None or str(value).strip() == '':
            continue
        checked += 1
        text = str(value).strip()

        if text.lower() not in BOOLEAN_LITERALS:
            flags['boolean'] = False
        number = parse_number(text)
        if number is None:
            flags['number'] = flags['integer'] = False
        elif not isinstance(number, int):
            flags['integer'] = False
        if not _DATE.match(text):
            flags['date'] = False
        if not _EMAIL.match(text):
            flags['email'] = False
        if not _URI.match(text):
            flags['uri'] = False
        if not _URI_REF.match(text):
            flags['uri_ref'] = False

    if not checked:
        return ColumnInfo('empty')
    if flags['boolean']:
        return ColumnInfo('boolean')
    if flags['integer']:
        return ColumnInfo('integer')
    if flags['number']:
        return ColumnInfo('number')
    if flags['date']:
        return ColumnInfo('string', 'date-time')
    if flags['email']:
        return ColumnInfo('string', 'email')
    if flags['uri']:
        return ColumnInfo('string', 'uri')
    if flags['uri_ref']:
        return ColumnInfo('string', 'uri-reference')
    return ColumnInfo('string')


def _numeric_enum(values: Iterable[Any]) -> bool:
    for v in values:
        if isinstance(v, bool):
            return False
        if isinstance(v, (int, float)):
            continue
        if not isinstance(v, str) or parse_number(v) is None:
            return False
    return True


def is_type_compatible(column: Optional[ColumnInfo], field: Optional[FieldDescriptor]) -> bool:
    """Can values of this column be written into this field without surprising the user?"""
    if column is None or field is None or column.type == 'empty':
        return True

    allowed = _COMPATIBLE.get(column.type)
    if allowed is not None and field.type not in allowed:
        return False

    if field.enum and column.type in ('integer', 'number') and not _numeric_enum(field.enum):
        return False

    if field.type == 'string' and field.format:
        fmt = field.format
        if fmt in ('date-time', 'date'):
            return column.format in ('date-time', 'date')
        if fmt == 'email':
            return column.format == 'email'
        if fmt == 'uri':
            return column.format == 'uri'
        if fmt == 'uri-reference':
            return column.format in ('uri', 'uri-reference')
    return True


def _instance_of(path: str, owner: str) -> str:
    """The concrete object a branch owner refers to inside `path`.

    _instance_of('items[1].fieldY', 'items') -> 'items[1]'
    _instance_of('dopc.url', 'dopc')         -> 'dopc'
    """
    if not owner:
        return ''
    wanted = len(split_path(owner))
    out = ''
    names = 0
    for seg in parse_path(path):
        if isinstance(seg, int):
            out += f"[{seg}]"
            continue
        if names == wanted:
            break
        out = f"{out}.{seg}" if out else seg
        names += 1
    return out


def _branch_keys(path: str, field: Optional[FieldDescriptor]) -> Dict[BranchKey, int]:
    if field is None:
        return {}
    return {
        (_instance_of(path, branch_owner(set_id)), set_id): index
        for set_id, index in field.one_of_groups
    }


def _catalog_index(catalog: Iterable[FieldDescriptor]) -> Dict[str, FieldDescriptor]:
    return {d.path: d for d in (FieldDescriptor.coerce(c) for c in catalog or [])}


def _rivals(a: Dict[BranchKey, int], b: Dict[BranchKey, int]) -> bool:
    return any(key in b and b[key] != index for key, index in a.items())


def find_branch_conflicts(mapping: Dict[str, str], catalog: Iterable[FieldDescriptor]) -> List[List[str]]:
    """Groups of mapped paths that populate rival branches of the same oneOf/anyOf.

    Each array item is its own scope: items[0].x and items[1].y never conflict.
    """
    fields = _catalog_index(catalog)
    paths = [p for p in (mapping.targets() if isinstance(mapping, Mapping) else mapping).values() if p]

    groups: Dict[BranchKey, Dict[str, Any]] = defaultdict(lambda: {'paths': [], 'indices': set()})
    for path in paths:
        for key, index in _branch_keys(path, fields.get(strip_indices(path))).items():
            group = groups[key]
            if path not in group['paths']:
                group['paths'].append(path)
            group['indices'].add(index)
    return [g['paths'] for g in groups.values() if len(g['indices']) > 1]


def find_conflicts(
    mapping: Mapping,
    catalog: Iterable[FieldDescriptor],
    rows: Optional[Sequence[Dict[str, Any]]] = None,
    columns: Optional[Dict[str, ColumnInfo]] = None,
) -> Dict[str, List[MappingConflict]]:
    """Per-header conflict flags for the current state of a Mapping.

    'branch' conflicts are symmetric: if A lists B, B lists A. 'type' conflicts
    need column information, taken from `columns` or inferred from `rows`.
    Headers without conflicts are absent from the result. Nothing is corrected.
    """
    fields = _catalog_index(catalog)
    targets = mapping.targets()
    out: Dict[str, List[MappingConflict]] = defaultdict(list)

    keys = {h: _branch_keys(p, fields.get(strip_indices(p))) for h, p in targets.items()}
    for a, b in combinations(targets, 2):
        if _rivals(keys[a], keys[b]):
            out[a].append(MappingConflict(a, 'branch', targets[a], b, f"rival branch of {targets[b]}"))
            out[b].append(MappingConflict(b, 'branch', targets[b], a, f"rival branch of {targets[a]}"))

    if columns is None and rows:
        columns = {h: analyze_column(rows, h) for h in targets}
    for header, path in targets.items():
        field = fields.get(strip_indices(path))
        column = (columns or {}).get(header)
        if field is not None and not is_type_compatible(column, field):
            detail = f"{column.type}{'/' + column.format if column.format else ''} column into {field.type}"
            if field.format:
                detail += f" ({field.format})"
            out[header].append(MappingConflict(header, 'type', path, None, detail))

    if out:
        logger.debug("Conflicts: %s", {h: [c.kind for c in cs] for h, cs in out.items()})
    return dict(out)


def suggest_targets(
    header: str,
    catalog: Iterable[FieldDescriptor],
    mapping: Mapping,
    column: Optional[ColumnInfo] = None,
    text: str = '',
    allow_conflicts: bool = False,
) -> List[Suggestion]:
    """Autocomplete candidates for one header's target cell.

    Paths taken by other headers are left out. Candidates that would create a
    branch conflict with another mapped entry, or that do not fit the column
    type, are left out too, or kept and marked when `allow_conflicts` is set.
    """
    fields = [FieldDescriptor.coerce(c) for c in catalog or []]
    by_path = _catalog_index(fields)
    current = mapping[header].target_path if header in mapping else None
    taken: Set[str] = {p for h, p in mapping.targets().items() if h != header}
    other_keys = [_branch_keys(p, by_path.get(strip_indices(p))) for p in taken]
    needle = (text or '').lower()

    out: List[Suggestion] = []
    for field in fields:
        for s in suggestions_for_field(field, mapping):
            if s.value in taken and s.value != current:
                continue
            if needle and needle not in s.value.lower():
                continue
            keys = _branch_keys(s.value, field)
            conflict = any(_rivals(keys, k) for k in other_keys)
            mismatch = not is_type_compatible(column, field)
            if (conflict or mismatch) and not allow_conflicts:
                continue
            if conflict or mismatch:
                s = Suggestion(s.value, s.kind, s.index, conflict, mismatch)
            out.append(s)
    return out

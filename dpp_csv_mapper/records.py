from __future__ import annotations

import logging
import math
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from .accessors import append_value_by_path, compact_arrays, set_value_by_path
from .config import Settings, get_settings
from .errors import CoercionWarning
from .models import BuildResult, FieldDescriptor, Mapping
from .paths import parse_path, strip_indices

logger = logging.getLogger(__name__)

_NUMBER = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
_INTEGER = re.compile(r"^[+-]?\d+$")


def parse_number(text: str) -> Optional[Union[int, float]]:
    """'42' -> 42, '10.5' -> 10.5, '1e3' -> 1000.0; None unless the whole string is a number."""
    if text is None:
        return None
    text = str(text).strip()
    if not _NUMBER.match(text):
        return None
    if _INTEGER.match(text):
        return int(text)
    value = float(text)
    return value if math.isfinite(value) else None


def coerce_value(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    text = value.strip()
    if text == 'true':
        return True
    if text == 'false':
        return False
    number = parse_number(text)
    if number is not None:
        return number
    return value


def validate_value(value: Any, field: FieldDescriptor) -> bool:
    """Enum membership check; empty values and fields without an enum always pass."""
    if value is None or value == '' or not field.enum:
        return True
    if isinstance(value, bool):
        value = str(value).lower()
    return str(value) in {str(v) for v in field.enum}


def _fits_declared_type(value: Any, field: FieldDescriptor) -> bool:
    if field.type == 'boolean':
        return isinstance(value, bool)
    if field.type == 'integer':
        return isinstance(value, int) and not isinstance(value, bool)
    if field.type == 'number':
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    return True


def build_context(sectors: Iterable[str], settings: Optional[Settings] = None) -> List[str]:
    """Core context first, then one context per sector in the order given."""
    settings = settings or get_settings()
    contexts = [settings.context_base_url + settings.core_context]
    for sector in sectors or []:
        url = settings.context_base_url + settings.sector_context.format(sector=sector)
        if url not in contexts:
            contexts.append(url)
    return contexts


def _approved_targets(mapping: Union[Mapping, Dict[str, str]]) -> Dict[str, str]:
    if isinstance(mapping, Mapping):
        return mapping.targets(approved_only=True)
    return {h: p.strip() for h, p in (mapping or {}).items() if p and p.strip()}


def build(
    rows: Sequence[Dict[str, Any]],
    mapping: Union[Mapping, Dict[str, str]],
    sectors: Optional[Sequence[str]] = None,
    catalog: Optional[Iterable[FieldDescriptor]] = None,
    settings: Optional[Settings] = None,
) -> BuildResult:
    """Apply an approved mapping to every row.

    A Mapping contributes its approved entries only; a plain header -> path
    dict is taken as already approved. Values are coerced (exactly 'true'/'false'
    to booleans, full numeric strings to numbers), written at their target
    paths, and every array is compacted to dense 0..n-1 order afterwards.
    Fields that hold a list of primitives collect their values in a list
    when the target path has no trailing index.
    With `sectors` given (even empty) each record starts with '@context'.
    With `catalog` given, values that do not fit their field's declared type
    or enum are reported as CoercionWarning (row numbers are 0-based) and
    still written unchanged.
    """
    result = BuildResult()
    targets = {}
    for header, path in _approved_targets(mapping).items():
        try:
            parse_path(path)
        except ValueError as e:
            logger.warning("Skipping '%s': %s", header, e)
            result.invalid_targets[header] = path
            continue
        targets[header] = path

    if sectors is not None:
        result.context = build_context(sectors, settings)
    fields = {d.path: d for d in map(FieldDescriptor.coerce, catalog)} if catalog is not None else {}

    for row_number, row in enumerate(rows or []):
        record: Dict[str, Any] = {}
        if result.context is not None:
            record['@context'] = list(result.context)

        for header, path in targets.items():
            raw = row.get(header)
            if raw is None or (isinstance(raw, str) and raw.strip() == ''):
                continue
            value = coerce_value(raw)

            field = fields.get(strip_indices(path))
            if field is not None and not (_fits_declared_type(value, field) and validate_value(value, field)):
                expected = f"one of {list(field.enum)}" if field.enum else field.type
                result.warnings.append(CoercionWarning(row_number, header, path, raw, expected))

            if field is not None and field.leaf_array and not path.endswith(']'):
                append_value_by_path(record, path, value)
            else:
                set_value_by_path(record, path, value)

        result.records.append(compact_arrays(record))

    logger.info("Built %d records from %d mapped columns (%d warnings)",
                len(result.records), len(targets), len(result.warnings))
    return result


def build_records(
    rows: Sequence[Dict[str, Any]],
    mapping: Union[Mapping, Dict[str, str]],
    sectors: Optional[Sequence[str]] = None,
) -> List[Dict[str, Any]]:
    return build(rows, mapping, sectors).records

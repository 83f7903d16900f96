from __future__ import annotations

import json
import logging
import os
import tempfile
from typing import Any, Dict, List, Optional, Sequence

import gradio as gr

from .automap import generate_auto_mapping
from .completeness import missing_required_fields
from .conflicts import analyze_column, find_conflicts, suggest_targets
from .errors import MapperError
from .io_utils import SchemaStore, read_csv_rows, read_json_content
from .mapping_config import apply_config, to_config
from .models import Mapping, MappingEntry
from .records import build
from .scoring import find_best_match
from .schema_utils import build_catalog_for_sectors, build_field_catalog, extract_property_rules, merge_catalogs

logger = logging.getLogger(__name__)

TABLE_HEADERS = ["CSV Header", "Sample", "Target Path", "Approved", "Conflicts"]


def parse_sectors(text: Any) -> List[str]:
    """'battery, textile' or ['battery', 'textile'] -> ['battery', 'textile']."""
    if not text:
        return []
    items = text if isinstance(text, (list, tuple)) else str(text).split(',')
    out: List[str] = []
    for item in items:
        item = str(item).strip()
        if item and item not in out:
            out.append(item)
    return out


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('true', 'yes', '1', 'x')
    return bool(value)


def _table_rows(table) -> List[List[Any]]:
    if table is None:
        return []
    if hasattr(table, 'columns') and hasattr(table, 'values'):
        return table.values.tolist()
    return [list(row) for row in table]


def _cell(row: Sequence[Any], i: int) -> Any:
    return row[i] if i < len(row) else None


def table_to_mapping(table) -> Mapping:
    """Rebuild a Mapping from the editable table (header, sample, target, approved, ...)."""
    headers: List[str] = []
    entries: List[MappingEntry] = []
    for row in _table_rows(table):
        header = _cell(row, 0)
        if not header:
            continue
        header = str(header)
        target = _cell(row, 2)
        target = str(target).strip() if target is not None and str(target).strip() not in ('', 'nan') else None
        headers.append(header)
        entries.append(MappingEntry(header, target, _truthy(_cell(row, 3))))
    return Mapping(headers, entries)


def _sample(rows: Sequence[Dict[str, Any]], header: str) -> str:
    for row in rows or []:
        value = row.get(header)
        if value is not None and str(value).strip():
            return str(value)
    return ""


def _conflict_text(found) -> str:
    return "; ".join(f"{c.kind}: {c.detail}" for c in found or [])


def mapping_to_table(mapping: Mapping, rows: Sequence[Dict[str, Any]], conflicts=None) -> List[List[Any]]:
    conflicts = conflicts or {}
    return [
        [e.header, _sample(rows, e.header), e.target_path or "", e.approved, _conflict_text(conflicts.get(e.header))]
        for e in mapping
    ]


def _missing_text(mapping: Mapping, rules) -> str:
    if not rules:
        return ""
    missing = missing_required_fields(mapping, rules)
    if not missing:
        return "All required fields are mapped."
    return "Missing required fields: " + ", ".join(missing)


def load_schemas_handler(files, sectors_text, store: Optional[SchemaStore] = None):
    """Build the field catalog from uploaded schemas, or from the schema store when none are uploaded."""
    sectors = parse_sectors(sectors_text)
    try:
        if files:
            schemas = [read_json_content(f) for f in (files if isinstance(files, list) else [files])]
            catalog = merge_catalogs(*[build_field_catalog(s) for s in schemas])
            by_path: Dict[str, Any] = {}
            for schema in schemas:
                for rule in extract_property_rules(schema):
                    by_path.setdefault(rule.path, rule)
            rules = list(by_path.values())
        else:
            if not sectors:
                return None, None, "Upload schema files or enter at least one sector."
            catalog, rules = build_catalog_for_sectors(store or SchemaStore(), sectors)
    except (ValueError, OSError, MapperError) as e:
        logger.warning("Schema load failed: %s", e)
        return None, None, f"Error loading schemas: {str(e)}"

    return catalog, rules, f"Schemas loaded. Found {len(catalog)} fields."


def load_csv_handler(file_obj, catalog):
    if file_obj is None:
        return [], [], [], "No file uploaded."
    try:
        headers, rows = read_csv_rows(file_obj)
    except (ValueError, OSError) as e:
        return [], [], [], f"Error parsing CSV: {str(e)}"

    if not catalog:
        mapping = Mapping(headers)
        return headers, rows, mapping_to_table(mapping, rows), f"Loaded {len(rows)} rows. Load schemas to auto-map."

    mapping = generate_auto_mapping(headers, catalog)
    conflicts = find_conflicts(mapping, catalog, rows)
    mapped = len(mapping.targets())
    return (
        headers,
        rows,
        mapping_to_table(mapping, rows, conflicts),
        f"Loaded {len(rows)} rows. Auto-mapped {mapped} of {len(headers)} columns.",
    )


def refresh_conflicts_handler(table, catalog, rows, rules):
    mapping = table_to_mapping(table)
    if not catalog:
        return mapping_to_table(mapping, rows), ""
    conflicts = find_conflicts(mapping, catalog, rows)
    return mapping_to_table(mapping, rows, conflicts), _missing_text(mapping, rules)


def approve_all_handler(table, catalog, rows):
    mapping = table_to_mapping(table)
    conflicts = find_conflicts(mapping, catalog or [], rows)
    pending = mapping.approve_all(conflicts)
    status = "All columns approved." if not pending else f"{len(pending)} columns have conflicts: {', '.join(pending)}"
    return mapping_to_table(mapping, rows, conflicts), status


def suggestions_handler(table, catalog, rows, header, text):
    """Target-path choices for one header, for the autocomplete dropdown."""
    if not catalog or not header:
        return gr.update(choices=[])
    mapping = table_to_mapping(table)
    if header not in mapping:
        return gr.update(choices=[])
    column = analyze_column(rows, header)
    choices = [s.value for s in suggest_targets(header, catalog, mapping, column=column, text=text or "")]
    current = mapping[header].target_path
    value = current if current in choices else find_best_match(header, choices)
    return gr.update(choices=choices, value=value)


def set_target_handler(table, catalog, rows, rules, header, path):
    mapping = table_to_mapping(table)
    if header not in mapping:
        return mapping_to_table(mapping, rows), "Choose a column first."
    mapping.set_target(header, path)
    conflicts = find_conflicts(mapping, catalog or [], rows)
    return mapping_to_table(mapping, rows, conflicts), _missing_text(mapping, rules)


def _write_temp_json(data: Any, file_name: str, default: str) -> str:
    if not file_name or not file_name.strip():
        file_name = default
    if not file_name.lower().endswith(".json"):
        file_name += ".json"
    path = os.path.join(tempfile.gettempdir(), file_name)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    return path


def generate_records_handler(table, rows, sectors_text, catalog, file_name):
    if not rows:
        return None, "No CSV loaded.", None
    mapping = table_to_mapping(table)
    if not mapping.is_ready():
        pending = [e.header for e in mapping if not e.approved]
        return None, f"Approve or skip every column first ({len(pending)} pending).", None

    sectors = parse_sectors(sectors_text)
    result = build(rows, mapping, sectors=sectors, catalog=catalog)
    try:
        path = _write_temp_json(result.records, file_name, "dpp_records")
    except OSError as e:
        return None, f"Error during export: {str(e)}", None

    status = f"Generated {len(result.records)} records. Saved to {path}"
    if result.warnings:
        status += f" ({len(result.warnings)} values did not fit their field type)"
    if result.invalid_targets:
        status += f" Skipped invalid paths: {', '.join(result.invalid_targets.values())}"
    return path, status, result.records[:3] or None


def save_config_handler(table, file_name):
    mapping = table_to_mapping(table)
    if not mapping.is_ready():
        return None, "Approve or skip every column before saving."
    try:
        path = _write_temp_json(to_config(mapping), file_name, "mapping_config")
    except OSError as e:
        return None, f"Error saving configuration: {str(e)}"
    return path, f"Configuration saved to {path}"


def load_config_handler(file_obj, headers, rows, catalog):
    if not headers:
        return [], "Load a CSV before applying a configuration."
    try:
        config = read_json_content(file_obj)
        mapping, diff = apply_config(config, headers)
    except (ValueError, OSError) as e:
        return [], f"Error loading configuration: {str(e)}"

    conflicts = find_conflicts(mapping, catalog or [], rows)
    status = f"Configuration applied to {len(headers) - len(diff.unmapped_headers)} columns."
    if diff.unmapped_headers:
        status += f" Not in configuration: {', '.join(diff.unmapped_headers)}."
    if diff.unknown_headers:
        status += f" Ignored unknown headers: {', '.join(diff.unknown_headers)}."
    return mapping_to_table(mapping, rows, conflicts), status

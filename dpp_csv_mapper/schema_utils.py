from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import replace
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Sequence, Set

from .config import Settings, get_settings
from .errors import SchemaShapeError
from .models import FieldDescriptor, PropertyRule
from .paths import join_path

logger = logging.getLogger(__name__)

LEAF_TYPES = ('string', 'number', 'integer', 'boolean')
COMBINATORS = ('oneOf', 'anyOf')


def _required_keys(node: Dict[str, Any], extra: FrozenSet[str] = frozenset()) -> FrozenSet[str]:
    """`required` of a node, unioned with its allOf members' and any inherited names."""
    keys: Set[str] = set(extra)
    keys.update(node.get('required') or [])
    for member in node.get('allOf') or []:
        if isinstance(member, dict):
            keys.update(member.get('required') or [])
    return frozenset(keys)


def _leaf_type(node: Dict[str, Any]) -> Optional[str]:
    raw = node.get('type')
    if isinstance(raw, list):
        valid = [t for t in raw if t != 'null']
        raw = valid[0] if valid else None
    if raw is None:
        return 'string' if node.get('enum') else None
    if raw == 'array':
        return 'array'
    return raw if raw in LEAF_TYPES else None


class _CatalogWalker:
    def __init__(self, max_depth: int):
        self.max_depth = max_depth

    def walk(
        self,
        node: Any,
        prefix: str,
        in_array: bool,
        array_root: Optional[str],
        location: str,
        depth: int,
        required: bool = False,
        inherited: FrozenSet[str] = frozenset(),
    ) -> List[FieldDescriptor]:
        if not isinstance(node, dict):
            raise SchemaShapeError(f"Expected a schema object, got {type(node).__name__}", location)
        if '$ref' in node:
            if node.get('circular'):
                return []
            raise SchemaShapeError(f"Unresolved $ref '{node['$ref']}'", location)
        if depth > self.max_depth:
            raise SchemaShapeError(f"Schema nesting exceeds {self.max_depth} levels", location)

        fields: List[FieldDescriptor] = []
        structural = False
        required_keys = _required_keys(node, inherited)

        props = node.get('properties')
        if props is not None:
            if not isinstance(props, dict):
                raise SchemaShapeError("'properties' must be an object", location)
            structural = True
            for key, sub in props.items():
                fields.extend(self.walk(
                    sub, join_path(prefix, key), in_array, array_root,
                    f"{location}/properties/{key}", depth + 1, key in required_keys,
                ))

        items = node.get('items')
        if items is not None:
            if not isinstance(items, dict):
                raise SchemaShapeError("Tuple-form or non-object 'items' is not supported", location)
            structural = True
            if prefix:
                root = array_root if array_root is not None else prefix
                # A leaf at the array's own path is an array of primitives.
                fields.extend(
                    replace(d, leaf_array=True) if d.path == prefix else d
                    for d in self.walk(items, prefix, True, root, f"{location}/items", depth + 1, required)
                )
            else:
                # A root-level array describes a list of records, not a repeating group.
                fields.extend(self.walk(items, prefix, in_array, array_root, f"{location}/items", depth + 1))

        members = node.get('allOf')
        if members is not None:
            if not isinstance(members, list):
                raise SchemaShapeError("'allOf' must be a list", location)
            structural = True
            for i, member in enumerate(members):
                fields.extend(self.walk(
                    member, prefix, in_array, array_root, f"{location}/allOf/{i}",
                    depth + 1, required, required_keys,
                ))

        for combinator in COMBINATORS:
            members = node.get(combinator)
            if members is None:
                continue
            if not isinstance(members, list):
                raise SchemaShapeError(f"'{combinator}' must be a list", location)
            structural = True
            fields.extend(self._walk_branches(
                members, prefix, in_array, array_root, f"{location}/{combinator}",
                depth, required, required_keys,
            ))

        for cond in ('then', 'else'):
            if cond in node:
                structural = True
                fields.extend(self.walk(
                    node[cond], prefix, in_array, array_root, f"{location}/{cond}", depth + 1, required,
                ))

        if structural or not prefix or ('type' not in node and 'enum' not in node):
            return fields

        leaf_type = _leaf_type(node)
        if leaf_type is None:
            return fields
        leaf_array = False
        is_array = in_array
        if leaf_type == 'array':
            leaf_array = True
            # Array without an item schema: a repeating value of unknown type.
            leaf_type = 'string'
            is_array = True
            array_root = array_root if array_root is not None else prefix
        enum = node.get('enum')
        fields.append(FieldDescriptor(
            path=prefix,
            type=leaf_type,
            format=node.get('format'),
            enum=tuple(enum) if enum else None,
            is_array=is_array,
            array_root=array_root if is_array else None,
            required=required,
            leaf_array=leaf_array,
        ))
        return fields

    def _walk_branches(
        self,
        members: Sequence[Any],
        prefix: str,
        in_array: bool,
        array_root: Optional[str],
        location: str,
        depth: int,
        required: bool,
        required_keys: FrozenSet[str],
    ) -> List[FieldDescriptor]:
        branch_set_id = f"{prefix}#{location.lstrip('#')}"
        per_branch = [
            self.walk(member, prefix, in_array, array_root, f"{location}/{i}", depth + 1, required, required_keys)
            for i, member in enumerate(members)
        ]

        seen_in: Dict[str, Set[int]] = defaultdict(set)
        for i, branch in enumerate(per_branch):
            for desc in branch:
                seen_in[desc.path].add(i)

        out: List[FieldDescriptor] = []
        for i, branch in enumerate(per_branch):
            for desc in branch:
                if len(seen_in[desc.path]) > 1:
                    # Valid under several alternatives: not conditional on this combinator.
                    out.append(desc)
                else:
                    out.append(replace(desc, one_of_groups=desc.one_of_groups + ((branch_set_id, i),)))
        return out


def merge_catalogs(*catalogs: Iterable[FieldDescriptor]) -> List[FieldDescriptor]:
    """Concatenate catalogs, keeping the first definition of every path."""
    merged: Dict[str, FieldDescriptor] = {}
    for catalog in catalogs:
        for desc in catalog:
            merged.setdefault(desc.path, desc)
    return list(merged.values())


def build_field_catalog(schema: Dict[str, Any], settings: Optional[Settings] = None) -> List[FieldDescriptor]:
    """Flatten a resolved JSON Schema into one FieldDescriptor per addressable leaf.

    Raises SchemaShapeError if the schema cannot be walked; nothing is returned
    for a partially valid schema.
    """
    settings = settings or get_settings()
    if not isinstance(schema, dict):
        raise SchemaShapeError("Schema root must be an object")
    walker = _CatalogWalker(settings.max_schema_depth)
    catalog = merge_catalogs(walker.walk(schema, '', False, None, '#', 0))
    logger.info("Field catalog built: %d fields (%d repeating)", len(catalog), sum(d.is_array for d in catalog))
    return catalog


def extract_property_rules(schema: Dict[str, Any]) -> List[PropertyRule]:
    """Collect presence constraints for every property, containers included.

    Properties reached through oneOf/anyOf/then/else are never required, since
    their branch may not be the one in use.
    """
    rules: Dict[str, PropertyRule] = {}

    def visit(node: Any, prefix: str, inherited: FrozenSet[str], conditional: bool):
        if not isinstance(node, dict) or '$ref' in node:
            return
        required = _required_keys(node, inherited)
        for key, sub in (node.get('properties') or {}).items():
            if not isinstance(sub, dict):
                continue
            path = join_path(prefix, key)
            types = sub.get('type') if isinstance(sub.get('type'), list) else [sub.get('type')]
            is_array = 'array' in types or isinstance(sub.get('items'), dict)
            rules.setdefault(path, PropertyRule(
                path=path,
                required=(key in required) and not conditional,
                is_array=is_array,
                min_items=int(sub.get('minItems') or 0),
            ))
            visit(sub, path, frozenset(), conditional)
        if isinstance(node.get('items'), dict):
            visit(node['items'], prefix, frozenset(), conditional)
        for member in node.get('allOf') or []:
            visit(member, prefix, required, conditional)
        for key in ('oneOf', 'anyOf'):
            for member in node.get(key) or []:
                visit(member, prefix, frozenset(), True)
        for key in ('then', 'else'):
            if key in node:
                visit(node[key], prefix, frozenset(), True)

    visit(schema, '', frozenset(), False)
    return list(rules.values())


def build_catalog_for_sectors(store, sectors: Sequence[str], settings: Optional[Settings] = None):
    """Load the base schemas plus the selected sectors and merge their catalogs.

    Returns (catalog, property_rules). `store` is anything with a `load(name)` method.
    """
    settings = settings or get_settings()
    names: List[str] = []
    for name in list(settings.base_schemas) + list(sectors):
        if name not in names:
            names.append(name)

    catalogs = []
    rules: Dict[str, PropertyRule] = {}
    for name in names:
        schema = store.load(name)
        catalogs.append(build_field_catalog(schema, settings))
        for rule in extract_property_rules(schema):
            rules.setdefault(rule.path, rule)
    catalog = merge_catalogs(*catalogs)
    logger.info("Loaded %d schemas (%s): %d unique fields", len(names), ', '.join(names), len(catalog))
    return catalog, list(rules.values())

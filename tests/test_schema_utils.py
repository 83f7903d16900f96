import pytest

from dpp_csv_mapper.config import Settings
from dpp_csv_mapper.errors import SchemaShapeError
from dpp_csv_mapper.io_utils import SchemaStore
from dpp_csv_mapper.models import FieldDescriptor
from dpp_csv_mapper.schema_utils import (
    build_catalog_for_sectors,
    build_field_catalog,
    extract_property_rules,
    merge_catalogs,
)

SCHEMA = {
    'type': 'object',
    'required': ['digitalProductPassportId'],
    'properties': {
        'digitalProductPassportId': {'type': 'string'},
        'tradeName': {'type': 'string'},
        'weight': {'type': ['number', 'null']},
        'status': {'enum': ['draft', 'final']},
        'manufacturer': {
            'type': 'object',
            'required': ['name'],
            'properties': {
                'name': {'type': 'string'},
                'url': {'type': 'string', 'format': 'uri'},
            },
        },
        'items': {
            'type': 'array',
            'minItems': 1,
            'items': {
                'type': 'object',
                'required': ['name'],
                'properties': {
                    'name': {'type': 'string'},
                    'share': {'type': 'number'},
                },
            },
        },
        'tags': {'type': 'array'},
        'dopc': {
            'type': 'object',
            'oneOf': [
                {'properties': {'url': {'type': 'string'}}},
                {'properties': {'documentId': {'type': 'string'}}},
            ],
        },
    },
}


def by_path(catalog):
    return {d.path: d for d in catalog}


def test_catalog_lists_every_leaf():
    catalog = by_path(build_field_catalog(SCHEMA))
    assert set(catalog) == {
        'digitalProductPassportId', 'tradeName', 'weight', 'status',
        'manufacturer.name', 'manufacturer.url',
        'items.name', 'items.share', 'tags',
        'dopc.url', 'dopc.documentId',
    }


def test_catalog_types_formats_and_enums():
    catalog = by_path(build_field_catalog(SCHEMA))
    assert catalog['weight'].type == 'number', "first non-null member of a type list"
    assert catalog['status'].type == 'string' and catalog['status'].enum == ('draft', 'final')
    assert catalog['manufacturer.url'].format == 'uri'
    assert catalog['digitalProductPassportId'].required
    assert catalog['manufacturer.name'].required
    assert not catalog['tradeName'].required


def test_catalog_marks_repeating_groups():
    catalog = by_path(build_field_catalog(SCHEMA))
    assert catalog['items.name'].is_array and catalog['items.name'].family == 'items'
    assert catalog['items.name'].required
    assert catalog['tags'].is_array and catalog['tags'].family == 'tags'
    assert catalog['tags'].leaf_array
    assert not catalog['items.name'].leaf_array
    assert catalog['tradeName'].family is None


def test_one_of_branches_are_tagged():
    catalog = by_path(build_field_catalog(SCHEMA))
    assert catalog['dopc.url'].one_of_groups == (('dopc#/properties/dopc/oneOf', 0),)
    assert catalog['dopc.documentId'].one_of_groups == (('dopc#/properties/dopc/oneOf', 1),)
    assert catalog['tradeName'].one_of_groups == ()


def test_path_in_several_branches_is_unconditional():
    schema = {'oneOf': [
        {'properties': {'x': {'type': 'string'}, 'y': {'type': 'string'}}},
        {'properties': {'x': {'type': 'string'}, 'z': {'type': 'string'}}},
    ]}
    catalog = by_path(build_field_catalog(schema))
    assert catalog['x'].one_of_groups == ()
    assert catalog['y'].one_of_groups == (('#/oneOf', 0),)
    assert catalog['z'].one_of_groups == (('#/oneOf', 1),)


def test_all_of_and_conditionals_contribute_fields():
    schema = {
        'allOf': [{'properties': {'a': {'type': 'string'}}}],
        'if': {'properties': {'kind': {'const': 'x'}}},
        'then': {'properties': {'b': {'type': 'integer'}}},
        'else': {'properties': {'c': {'type': 'boolean'}}},
    }
    catalog = by_path(build_field_catalog(schema))
    assert set(catalog) == {'a', 'b', 'c'}
    assert catalog['b'].type == 'integer'


def test_circular_ref_is_skipped():
    schema = {'properties': {'a': {'type': 'string'}, 'self': {'$ref': '#', 'circular': True}}}
    assert [d.path for d in build_field_catalog(schema)] == ['a']


@pytest.mark.parametrize('schema', [
    ['not', 'an', 'object'],
    {'properties': ['a']},
    {'properties': {'a': {'$ref': 'other.json'}}},
    {'properties': {'a': {'type': 'array', 'items': [{'type': 'string'}]}}},
    {'properties': {'a': {'oneOf': {'type': 'string'}}}},
    {'properties': {'a': 'string'}},
])
def test_malformed_schema_raises(schema):
    with pytest.raises(SchemaShapeError):
        build_field_catalog(schema)


def test_shape_error_carries_location():
    with pytest.raises(SchemaShapeError) as excinfo:
        build_field_catalog({'properties': {'a': {'$ref': 'other.json'}}})
    assert excinfo.value.location == '#/properties/a'


def test_depth_limit():
    schema = {'properties': {'a': {'properties': {'b': {'properties': {'c': {'type': 'string'}}}}}}}
    with pytest.raises(SchemaShapeError):
        build_field_catalog(schema, Settings(max_schema_depth=2))
    assert [d.path for d in build_field_catalog(schema)] == ['a.b.c']


def test_merge_catalogs_first_definition_wins():
    first = [FieldDescriptor('a', type='string')]
    second = [FieldDescriptor('a', type='number'), FieldDescriptor('b')]
    merged = merge_catalogs(first, second)
    assert [(d.path, d.type) for d in merged] == [('a', 'string'), ('b', 'string')]


def test_property_rules():
    rules = {r.path: r for r in extract_property_rules(SCHEMA)}
    assert rules['digitalProductPassportId'].required
    assert rules['items'].is_array and rules['items'].min_items == 1
    assert not rules['items'].required
    assert rules['items.name'].required
    assert rules['manufacturer.name'].required
    assert not rules['dopc.url'].required, "branch properties are never required"


def test_build_catalog_for_sectors_loads_base_first():
    schemas = {
        'dpp': {'properties': {'id': {'type': 'string'}}, 'required': ['id']},
        'battery': {'properties': {'id': {'type': 'integer'}, 'capacity': {'type': 'number'}}},
    }
    calls = []

    def loader(name):
        calls.append(name)
        return schemas[name]

    store = SchemaStore(loader=loader)
    catalog, rules = build_catalog_for_sectors(store, ['battery', 'dpp'], Settings(base_schemas=('dpp',)))
    assert calls == ['dpp', 'battery']
    assert [(d.path, d.type) for d in catalog] == [('id', 'string'), ('capacity', 'number')]
    assert {r.path for r in rules} == {'id', 'capacity'}


def test_primitive_array_inside_repeating_item():
    schema = {'properties': {'items': {'type': 'array', 'items': {'properties': {
        'name': {'type': 'string'},
        'tags': {'type': 'array', 'items': {'type': 'string'}},
    }}}}}
    catalog = by_path(build_field_catalog(schema))
    assert catalog['items.tags'].leaf_array, "items.tags holds a list of strings"
    assert catalog['items.tags'].family == 'items'
    assert not catalog['items.name'].leaf_array

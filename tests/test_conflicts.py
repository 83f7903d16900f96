import pytest

from dpp_csv_mapper.conflicts import (
    analyze_column,
    find_branch_conflicts,
    find_conflicts,
    is_type_compatible,
    suggest_targets,
)
from dpp_csv_mapper.errors import MappingConflictError
from dpp_csv_mapper.models import ColumnInfo, FieldDescriptor, Mapping


def column(values):
    return analyze_column([{'c': v} for v in values], 'c')


@pytest.mark.parametrize('values, expected', [
    (['yes', 'No', '1'], ColumnInfo('boolean')),
    (['12', '7', ''], ColumnInfo('integer')),
    (['1.5', '2'], ColumnInfo('number')),
    (['2024-01-31', '2023-12-01T10:00:00Z'], ColumnInfo('string', 'date-time')),
    (['a@example.com'], ColumnInfo('string', 'email')),
    (['https://example.com/a', 'urn:isbn:123'], ColumnInfo('string', 'uri')),
    (['/docs/a', 'https://example.com'], ColumnInfo('string', 'uri-reference')),
    (['Steel', '12'], ColumnInfo('string')),
    (['', '  '], ColumnInfo('empty')),
])
def test_analyze_column(values, expected):
    assert column(values) == expected


def test_analyze_column_sample_limit():
    rows = [{'c': '1'}, {'c': '2'}, {'c': 'text'}]
    assert analyze_column(rows, 'c', limit=2) == ColumnInfo('integer')
    assert analyze_column(rows, 'c') == ColumnInfo('string')


def test_type_compatibility_matrix():
    number = FieldDescriptor('w', type='number')
    integer = FieldDescriptor('n', type='integer')
    text = FieldDescriptor('t')
    assert is_type_compatible(ColumnInfo('integer'), number)
    assert not is_type_compatible(ColumnInfo('number'), integer)
    assert not is_type_compatible(ColumnInfo('string'), number)
    assert is_type_compatible(ColumnInfo('boolean'), text)
    assert is_type_compatible(ColumnInfo('empty'), integer)
    assert is_type_compatible(None, integer)


def test_string_formats():
    uri_ref = FieldDescriptor('u', format='uri-reference')
    email = FieldDescriptor('e', format='email')
    date = FieldDescriptor('d', format='date')
    assert is_type_compatible(ColumnInfo('string', 'uri'), uri_ref)
    assert not is_type_compatible(ColumnInfo('string'), email)
    assert is_type_compatible(ColumnInfo('string', 'date-time'), date)


def test_numeric_column_into_text_enum():
    assert not is_type_compatible(ColumnInfo('integer'), FieldDescriptor('s', enum=('A', 'B')))
    assert is_type_compatible(ColumnInfo('integer'), FieldDescriptor('s', enum=('1', '2')))


def test_branch_conflicts_are_symmetric(dpp_catalog):
    mapping = Mapping.from_targets({'URL': 'dopc.url', 'Doc': 'dopc.documentId', 'Brand': 'tradeName'})
    conflicts = find_conflicts(mapping, dpp_catalog)
    assert set(conflicts) == {'URL', 'Doc'}
    assert [(c.kind, c.other_header) for c in conflicts['URL']] == [('branch', 'Doc')]
    assert [(c.kind, c.other_header) for c in conflicts['Doc']] == [('branch', 'URL')], "branch conflicts are reported on both headers"


def test_branch_conflicts_are_scoped_to_array_items(dpp_catalog):
    separate = Mapping.from_targets({'A': 'items[0].x', 'B': 'items[1].y'})
    shared = Mapping.from_targets({'A': 'items[0].x', 'B': 'items[0].y'})
    assert find_conflicts(separate, dpp_catalog) == {}, "different array items are separate objects"
    assert set(find_conflicts(shared, dpp_catalog)) == {'A', 'B'}
    assert find_branch_conflicts({'A': 'items[0].x', 'B': 'items[1].y'}, dpp_catalog) == []


def test_find_branch_conflicts_groups_paths(dpp_catalog):
    groups = find_branch_conflicts({'URL': 'dopc.url', 'Doc': 'dopc.documentId'}, dpp_catalog)
    assert groups == [['dopc.url', 'dopc.documentId']]


def test_type_conflicts_from_rows(dpp_catalog):
    mapping = Mapping.from_targets({'Weight': 'physicalDimensions.weight', 'Brand': 'tradeName'})
    rows = [{'Weight': 'heavy', 'Brand': 'Acme'}]
    conflicts = find_conflicts(mapping, dpp_catalog, rows=rows)
    assert list(conflicts) == ['Weight']
    assert conflicts['Weight'][0].kind == 'type'


def test_approve_is_blocked_by_conflicts(dpp_catalog):
    mapping = Mapping.from_targets({'URL': 'dopc.url', 'Doc': 'dopc.documentId', 'Brand': 'tradeName'})
    conflicts = find_conflicts(mapping, dpp_catalog)
    with pytest.raises(MappingConflictError) as excinfo:
        mapping.approve('URL', conflicts)
    assert excinfo.value.header == 'URL'
    assert mapping.approve_all(conflicts) == ['URL', 'Doc']
    assert mapping['Brand'].approved
    assert not mapping.is_ready()


def test_suggestions_exclude_taken_paths(dpp_catalog):
    mapping = Mapping.from_targets({'Brand': 'tradeName', 'Maker': None})
    values = [s.value for s in suggest_targets('Maker', dpp_catalog, mapping)]
    assert 'tradeName' not in values
    assert 'manufacturer.name' in values
    assert 'items[0].name' in values


def test_suggestions_text_filter(dpp_catalog):
    mapping = Mapping.from_targets({'Maker': None})
    found = suggest_targets('Maker', dpp_catalog, mapping, text='MANU')
    assert [s.value for s in found] == ['manufacturer.name']


def test_suggestions_branch_conflicts(dpp_catalog):
    mapping = Mapping.from_targets({'URL': 'dopc.url', 'Doc': None})
    values = [s.value for s in suggest_targets('Doc', dpp_catalog, mapping)]
    assert 'dopc.documentId' not in values
    marked = {s.value: s for s in suggest_targets('Doc', dpp_catalog, mapping, allow_conflicts=True)}
    assert marked['dopc.documentId'].conflict
    assert not marked['tradeName'].conflict


def test_suggestions_type_mismatch(dpp_catalog):
    mapping = Mapping.from_targets({'Notes': None})
    values = [s.value for s in suggest_targets('Notes', dpp_catalog, mapping, column=ColumnInfo('string'))]
    assert 'physicalDimensions.weight' not in values
    assert 'tradeName' in values

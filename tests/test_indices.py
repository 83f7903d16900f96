from dpp_csv_mapper.indices import (
    find_used_indices,
    generate_indexed_suggestions,
    mapped_paths,
    suggestions_for_field,
)
from dpp_csv_mapper.models import FieldDescriptor, Mapping

ITEM_NAME = FieldDescriptor('items.name', is_array=True, array_root='items')


def test_suggestion_ordering():
    found = generate_indexed_suggestions(ITEM_NAME, {5, 0})
    assert [(s.value, s.kind, s.index) for s in found] == [
        ('items[0].name', 'existing', 0),
        ('items[5].name', 'existing', 5),
        ('items[6].name', 'new', 6),
    ], "existing indices ascending, then one new index"


def test_first_suggestion_for_unused_family():
    found = generate_indexed_suggestions(ITEM_NAME, set())
    assert [(s.value, s.kind) for s in found] == [('items[0].name', 'new')]


def test_scalar_field_suggests_its_own_path():
    found = generate_indexed_suggestions(FieldDescriptor('tradeName'), {0, 1})
    assert [(s.value, s.kind) for s in found] == [('tradeName', 'scalar')]


def test_find_used_indices():
    mapping = {'A': 'items[0].name', 'B': 'items[3].value', 'C': 'other[1]', 'D': 'itemsExtra[2]', 'E': ''}
    assert find_used_indices(mapping, 'items') == {0, 3}
    assert find_used_indices(mapping, 'other') == {1}
    assert find_used_indices(mapping, '') == set()


def test_unapproved_targets_count_as_used():
    mapping = Mapping.from_targets({'Mat 1': 'items[0].name', 'Mat 2': None})
    assert mapped_paths(mapping) == ['items[0].name']
    found = suggestions_for_field(ITEM_NAME, mapping)
    assert [s.value for s in found] == ['items[0].name', 'items[1].name']

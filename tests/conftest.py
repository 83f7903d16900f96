import pytest

from dpp_csv_mapper.models import FieldDescriptor

DOPC_SET = 'dopc#/properties/dopc/oneOf'
ITEM_SET = 'items#/properties/items/items/oneOf'


@pytest.fixture
def dpp_catalog():
    return [
        FieldDescriptor('digitalProductPassportId', required=True),
        FieldDescriptor('uniqueProductId'),
        FieldDescriptor('tradeName'),
        FieldDescriptor('manufacturer.name'),
        FieldDescriptor('physicalDimensions.weight', type='number'),
        FieldDescriptor('status', enum=('draft', 'final')),
        FieldDescriptor('dopc.url', format='uri', one_of_groups=((DOPC_SET, 0),)),
        FieldDescriptor('dopc.documentId', one_of_groups=((DOPC_SET, 1),)),
        FieldDescriptor('items.name', is_array=True, array_root='items'),
        FieldDescriptor('items.x', is_array=True, array_root='items', one_of_groups=((ITEM_SET, 0),)),
        FieldDescriptor('items.y', is_array=True, array_root='items', one_of_groups=((ITEM_SET, 1),)),
    ]

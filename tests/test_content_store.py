"""Unit tests for DynamoDB content store."""
from unittest.mock import patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from conftest import TABLE_NAME
from processor.models import LocalEventRecord
from storage.content_store import DynamoDBContentStore, StoreError


@pytest.fixture
def store(dynamodb_table):
    """Create DynamoDBContentStore instance with mock table."""
    return DynamoDBContentStore(TABLE_NAME, region_name='us-east-1')


def make_record(eventbrite_id='E1', end='2099-01-01 17:00:00 ', **overrides):
    record = LocalEventRecord(
        post_type='eventbrite_events',
        title=f'Event {eventbrite_id}',
        author='owner-1',
        metadata={
            'eventbrite_id': eventbrite_id,
            'eventbrite_end': end,
            'eventbrite_capacity': '100'
        }
    )
    for name, value in overrides.items():
        setattr(record, name, value)
    return record


def test_insert_and_get(store):
    """Inserted records get an id and keep their fields and metadata."""
    local_id = store.insert(make_record())

    assert local_id
    record = store.get(local_id)
    assert record.local_id == local_id
    assert record.post_type == 'eventbrite_events'
    assert record.title == 'Event E1'
    assert record.body == ''
    assert record.author == 'owner-1'
    assert record.status == 'published'
    assert record.created_at
    assert record.metadata == {
        'eventbrite_id': 'E1',
        'eventbrite_end': '2099-01-01 17:00:00 ',
        'eventbrite_capacity': '100'
    }


def test_insert_assigns_distinct_ids(store):
    assert store.insert(make_record()) != store.insert(make_record())


def test_get_missing(store):
    assert store.get('missing') is None


def test_find_by_metadata(store):
    """Only active records of the requested type with an equal value match."""
    wanted = store.insert(make_record('E1'))
    store.insert(make_record('E2'))
    store.insert(make_record('E1', post_type='other_type'))

    records = store.find_by_metadata('eventbrite_events', 'eventbrite_id', 'E1')

    assert [record.local_id for record in records] == [wanted]


def test_find_by_metadata_orders_by_creation(store):
    """Duplicates come back oldest first."""
    newer = store.insert(make_record('E1', created_at='2024-02-01 00:00:00.000000'))
    older = store.insert(make_record('E1', created_at='2024-01-01 00:00:00.000000'))

    records = store.find_by_metadata('eventbrite_events', 'eventbrite_id', 'E1')

    assert [record.local_id for record in records] == [older, newer]


def test_find_by_metadata_no_match(store):
    store.insert(make_record('E1'))

    assert store.find_by_metadata('eventbrite_events', 'eventbrite_id', 'E9') == []


def test_find_by_metadata_range_date(store):
    """Date comparisons are lexicographic on the normalized format."""
    past = store.insert(make_record('E1', end='2020-01-01 00:00:00 '))
    store.insert(make_record('E2', end='2099-01-01 00:00:00 '))

    records = store.find_by_metadata_range(
        'eventbrite_events', 'eventbrite_end', '<', '2024-06-01 12:00:00', 'date'
    )

    assert [record.local_id for record in records] == [past]


def test_find_by_metadata_range_skips_records_without_key(store):
    record = make_record('E1')
    del record.metadata['eventbrite_end']
    store.insert(record)

    records = store.find_by_metadata_range(
        'eventbrite_events', 'eventbrite_end', '<', '2024-06-01 12:00:00', 'date'
    )

    assert records == []


def test_find_by_metadata_range_numeric(store):
    """Numeric comparisons parse stored strings as numbers."""
    small = make_record('E1')
    small.metadata['eventbrite_capacity'] = '9'
    large = make_record('E2')
    large.metadata['eventbrite_capacity'] = '100'
    unknown = make_record('E3')
    unknown.metadata['eventbrite_capacity'] = ''
    small_id = store.insert(small)
    store.insert(large)
    store.insert(unknown)

    records = store.find_by_metadata_range(
        'eventbrite_events', 'eventbrite_capacity', '<', 50, 'numeric'
    )

    assert [record.local_id for record in records] == [small_id]


def test_find_by_metadata_range_rejects_unknown_operator(store):
    with pytest.raises(ValueError):
        store.find_by_metadata_range('eventbrite_events', 'eventbrite_end', 'LIKE', 'x')
    with pytest.raises(ValueError):
        store.find_by_metadata_range(
            'eventbrite_events', 'eventbrite_end', '<', 'x', 'datetime'
        )


def test_find_raises_store_error(store):
    """Scan failures surface as StoreError."""
    error = ClientError(
        {'Error': {'Code': 'ProvisionedThroughputExceededException', 'Message': 'slow down'}},
        'Scan'
    )
    with patch.object(store.table, 'scan', side_effect=error):
        with pytest.raises(StoreError):
            store.find_by_metadata('eventbrite_events', 'eventbrite_id', 'E1')


def test_update(store):
    local_id = store.insert(make_record())

    assert store.update(local_id, {'title': 'Renamed'}) is True
    assert store.get(local_id).title == 'Renamed'
    assert store.get(local_id).metadata['eventbrite_id'] == 'E1'


def test_update_missing_record(store):
    assert store.update('missing', {'title': 'Renamed'}) is False
    assert store.get('missing') is None


def test_update_rejects_unknown_fields(store):
    local_id = store.insert(make_record())

    with pytest.raises(ValueError):
        store.update(local_id, {'local_id': 'other'})


def test_set_and_get_metadata(store):
    local_id = store.insert(make_record())

    assert store.set_metadata(local_id, 'request_url', 'https://example.com/edit') is True
    assert store.get_metadata(local_id, 'request_url') == 'https://example.com/edit'
    assert store.get_metadata(local_id, 'eventbrite_id') == 'E1'
    assert store.get_metadata(local_id, 'absent_key') is None
    assert store.get_metadata('missing', 'request_url') is None


def test_set_metadata_missing_record(store):
    """Metadata is never written onto a record that does not exist."""
    assert store.set_metadata('missing', 'request_url', 'x') is False
    assert store.get('missing') is None


def test_set_metadata_rejects_record_fields(store):
    local_id = store.insert(make_record())

    with pytest.raises(ValueError):
        store.set_metadata(local_id, 'title', 'x')


def test_delete_permanent(store):
    local_id = store.insert(make_record())

    assert store.delete(local_id, permanent=True) is True
    assert store.get(local_id) is None


def test_delete_missing_record(store):
    assert store.delete('missing') is False


def test_delete_to_trash(store):
    """Soft-deleted records stay in the table but are hidden from finds."""
    local_id = store.insert(make_record())

    assert store.delete(local_id, permanent=False) is True

    assert store.get(local_id).status == 'trash'
    assert store.find_by_metadata('eventbrite_events', 'eventbrite_id', 'E1') == []


def test_insert_connection_error_returns_none(store):
    """Network errors on writes are reported as a failed write."""
    error = EndpointConnectionError(endpoint_url='https://dynamodb.us-east-1.amazonaws.com')
    with patch.object(store.table, 'put_item', side_effect=error):
        assert store.insert(make_record()) is None


def test_set_metadata_connection_error_returns_false(store):
    local_id = store.insert(make_record())
    error = EndpointConnectionError(endpoint_url='https://dynamodb.us-east-1.amazonaws.com')

    with patch.object(store.table, 'update_item', side_effect=error):
        assert store.set_metadata(local_id, 'request_url', 'x') is False


def test_find_connection_error_raises_store_error(store):
    error = EndpointConnectionError(endpoint_url='https://dynamodb.us-east-1.amazonaws.com')
    with patch.object(store.table, 'scan', side_effect=error):
        with pytest.raises(StoreError):
            store.find_by_metadata_range(
                'eventbrite_events', 'eventbrite_end', '<', '2024-06-01 12:00:00', 'date'
            )


def test_find_by_metadata_range_numeric_rejects_non_number(store):
    with pytest.raises(ValueError):
        store.find_by_metadata_range(
            'eventbrite_events', 'eventbrite_capacity', '<', 'many', 'numeric'
        )

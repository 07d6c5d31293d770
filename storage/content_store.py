"""DynamoDB-backed content store for synced event records."""
import logging
import operator
import uuid
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import Attr
from botocore.exceptions import BotoCoreError, ClientError

from processor.models import LocalEventRecord

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Raised when a store query cannot be completed."""


# Attributes that belong to the record itself. Every other attribute on an
# item is a metadata entry.
RECORD_FIELDS = (
    'local_id', 'post_type', 'title', 'body', 'author', 'status', 'created_at'
)
UPDATABLE_FIELDS = ('title', 'body', 'author', 'status')
TRASH_STATUS = 'trash'

RANGE_OPERATORS = {
    '<': 'lt',
    '<=': 'lte',
    '>': 'gt',
    '>=': 'gte',
    '=': 'eq',
    '!=': 'ne',
}
NUMERIC_OPERATORS = {
    '<': operator.lt,
    '<=': operator.le,
    '>': operator.gt,
    '>=': operator.ge,
    '=': operator.eq,
    '!=': operator.ne,
}
TYPE_HINTS = ('date', 'string', 'numeric')


class DynamoDBContentStore:
    """Record and metadata storage on a single DynamoDB table."""

    def __init__(self, table_name: str, region_name: Optional[str] = None):
        """
        Initialize DynamoDB resource and table reference.

        Args:
            table_name: Name of the DynamoDB table
            region_name: AWS region, defaults to the environment's region
        """
        self.table_name = table_name
        self.dynamodb = boto3.resource('dynamodb', region_name=region_name)
        self.table = self.dynamodb.Table(table_name)
        logger.info(f"Initialized DynamoDBContentStore for table: {table_name}")

    def find_by_metadata(
        self,
        post_type: str,
        key: str,
        value: str
    ) -> List[LocalEventRecord]:
        """
        Find active records whose metadata key equals a value.

        Args:
            post_type: Record type name
            key: Metadata key
            value: Value to match

        Returns:
            Matching records ordered by creation time

        Raises:
            StoreError: If the table scan fails
        """
        return self._scan(self._active(post_type) & Attr(key).eq(value))

    def find_by_metadata_range(
        self,
        post_type: str,
        key: str,
        op: str,
        value: Any,
        type_hint: str = 'string'
    ) -> List[LocalEventRecord]:
        """
        Find active records whose metadata compares against a value.

        ``date`` and ``string`` hints compare stored strings lexicographically,
        so date values must share one zero-padded format. ``numeric``
        compares parsed numbers and skips values that are not numbers.

        Args:
            post_type: Record type name
            key: Metadata key
            op: One of <, <=, >, >=, =, !=
            value: Value to compare against
            type_hint: One of date, string, numeric

        Returns:
            Matching records ordered by creation time

        Raises:
            ValueError: If op or type_hint is not supported, or a numeric
                comparison gets a value that is not a number
            StoreError: If the table scan fails
        """
        if op not in RANGE_OPERATORS:
            raise ValueError(f"Unsupported comparison operator: {op}")
        if type_hint not in TYPE_HINTS:
            raise ValueError(f"Unsupported type hint: {type_hint}")

        if type_hint != 'numeric':
            condition = getattr(Attr(key), RANGE_OPERATORS[op])(str(value))
            return self._scan(self._active(post_type) & condition)

        try:
            target = Decimal(str(value))
        except InvalidOperation as e:
            raise ValueError(f"Numeric comparison needs a number, got {value!r}") from e
        compare = NUMERIC_OPERATORS[op]
        records = []
        for record in self._scan(self._active(post_type) & Attr(key).exists()):
            try:
                stored = Decimal(record.metadata[key])
            except (InvalidOperation, KeyError):
                continue
            if compare(stored, target):
                records.append(record)
        return records

    def get(self, local_id: str) -> Optional[LocalEventRecord]:
        """
        Fetch a record by its local id.

        Args:
            local_id: Store-assigned identifier

        Returns:
            LocalEventRecord or None if absent

        Raises:
            StoreError: If the read fails
        """
        try:
            response = self.table.get_item(
                Key={'local_id': local_id},
                ConsistentRead=True
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error reading record {local_id}: {e}")
            raise StoreError(str(e)) from e

        item = response.get('Item')
        return self._item_to_record(item) if item else None

    def insert(self, record: LocalEventRecord) -> Optional[str]:
        """
        Insert a new record and assign its local id.

        Args:
            record: Record to store; its local_id is ignored

        Returns:
            The new local id, or None if the write failed
        """
        local_id = uuid.uuid4().hex
        created_at = record.created_at or datetime.now(timezone.utc).strftime(
            '%Y-%m-%d %H:%M:%S.%f'
        )

        item = dict(record.metadata)
        item.update({
            'local_id': local_id,
            'post_type': record.post_type,
            'title': record.title,
            'body': record.body,
            'author': record.author,
            'status': record.status,
            'created_at': created_at
        })

        try:
            self.table.put_item(
                Item=item,
                ConditionExpression=Attr('local_id').not_exists()
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error inserting record '{record.title}': {e}")
            return None

        logger.debug(f"Inserted record {local_id}")
        return local_id

    def update(self, local_id: str, fields: Dict[str, str]) -> bool:
        """
        Overwrite record fields on an existing record.

        Args:
            local_id: Store-assigned identifier
            fields: Mapping of record field to new value

        Returns:
            True if the record was updated, False otherwise

        Raises:
            ValueError: If a field is not an updatable record field
        """
        unknown = [name for name in fields if name not in UPDATABLE_FIELDS]
        if unknown:
            raise ValueError(f"Fields cannot be updated: {', '.join(unknown)}")
        if not fields:
            return True
        return self._set_attributes(local_id, fields)

    def delete(self, local_id: str, permanent: bool = True) -> bool:
        """
        Delete a record.

        Args:
            local_id: Store-assigned identifier
            permanent: Remove the item outright instead of moving it to trash

        Returns:
            True if the record was deleted, False otherwise
        """
        if not permanent:
            return self._set_attributes(local_id, {'status': TRASH_STATUS})

        try:
            self.table.delete_item(
                Key={'local_id': local_id},
                ConditionExpression=Attr('local_id').exists()
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error deleting record {local_id}: {e}")
            return False

        logger.debug(f"Deleted record {local_id}")
        return True

    def set_metadata(self, local_id: str, key: str, value: str) -> bool:
        """
        Set one metadata entry on an existing record.

        Args:
            local_id: Store-assigned identifier
            key: Metadata key
            value: Value to store

        Returns:
            True if the entry was written, False otherwise

        Raises:
            ValueError: If key names a record field
        """
        if key in RECORD_FIELDS:
            raise ValueError(f"Metadata key collides with record field: {key}")
        return self._set_attributes(local_id, {key: value})

    def get_metadata(self, local_id: str, key: str) -> Optional[str]:
        """Read one metadata entry, or None when the record or key is absent."""
        record = self.get(local_id)
        if record is None:
            return None
        return record.metadata.get(key)

    def _active(self, post_type: str):
        return Attr('post_type').eq(post_type) & Attr('status').ne(TRASH_STATUS)

    def _scan(self, filter_expression) -> List[LocalEventRecord]:
        """
        Scan the table with a filter, following pagination.

        Args:
            filter_expression: boto3 condition to filter on

        Returns:
            Records ordered by created_at, then local_id

        Raises:
            StoreError: If the scan fails
        """
        try:
            response = self.table.scan(
                FilterExpression=filter_expression,
                ConsistentRead=True
            )
            items = response.get('Items', [])

            while 'LastEvaluatedKey' in response:
                response = self.table.scan(
                    FilterExpression=filter_expression,
                    ConsistentRead=True,
                    ExclusiveStartKey=response['LastEvaluatedKey']
                )
                items.extend(response.get('Items', []))

        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error scanning table {self.table_name}: {e}")
            raise StoreError(str(e)) from e

        records = [self._item_to_record(item) for item in items]
        records.sort(key=lambda record: (record.created_at or '', record.local_id))
        return records

    def _set_attributes(self, local_id: str, attributes: Dict[str, Any]) -> bool:
        """
        Write attributes onto an existing item.

        Args:
            local_id: Store-assigned identifier
            attributes: Mapping of attribute name to value

        Returns:
            True if the item exists and was written, False otherwise
        """
        names = {}
        values = {}
        assignments = []
        for index, (name, value) in enumerate(attributes.items()):
            names[f'#a{index}'] = name
            values[f':v{index}'] = value
            assignments.append(f'#a{index} = :v{index}')
        names['#id'] = 'local_id'

        try:
            self.table.update_item(
                Key={'local_id': local_id},
                UpdateExpression='SET ' + ', '.join(assignments),
                ConditionExpression='attribute_exists(#id)',
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error updating record {local_id}: {e}")
            return False

        return True

    def _item_to_record(self, item: dict) -> LocalEventRecord:
        """
        Convert DynamoDB item to LocalEventRecord.

        Args:
            item: DynamoDB item dictionary

        Returns:
            LocalEventRecord
        """
        metadata = {
            key: value for key, value in item.items()
            if key not in RECORD_FIELDS
        }
        return LocalEventRecord(
            local_id=item['local_id'],
            post_type=item.get('post_type', ''),
            title=item.get('title', ''),
            body=item.get('body', ''),
            author=item.get('author', ''),
            status=item.get('status', ''),
            created_at=item.get('created_at'),
            metadata=metadata
        )

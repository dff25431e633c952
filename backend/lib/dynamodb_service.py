"""
=============================================================================
DYNAMODB SERVICE - Amazon DynamoDB reading store
=============================================================================
Stores one item per balance reading.

Our Table Schema:
-----------------
Table: ElectricityReadings
- room_id (String) - Partition Key - Groups readings by room
- timestamp (String) - Sort Key - Orders readings chronologically
- kwh (Number) - The remaining balance in kWh
- recorded_at (String) - When the item was inserted

Timestamps are written in one canonical UTC format
(2025-11-01T00:00:00.000+00:00), so comparing the sort key as a string is
the same as comparing instants. That is what makes range queries work.

Example Item:
{
    "room_id": "507",
    "timestamp": "2025-11-01T00:00:00.000+00:00",
    "kwh": 42.5,
    "recorded_at": "2025-11-01T00:00:01.203+00:00"
}

Insert-if-absent:
-----------------
put_item is sent with ConditionExpression attribute_not_exists(#ts).
DynamoDB evaluates the condition atomically, so two overlapping scrapes can
never store the same (room_id, timestamp) twice; the loser gets
ConditionalCheckFailedException, which we report as "not inserted".
=============================================================================
"""

# boto3 - AWS SDK for Python
import boto3
from boto3.dynamodb.conditions import Attr, Key

# ClientError - Exception class for AWS API errors
from botocore.exceptions import BotoCoreError, ClientError

import logging
import os
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional

from backend.lib.balance_core.io import format_timestamp, parse_timestamp
from backend.lib.balance_core.models import Reading
from backend.lib.store import StoreError

logger = logging.getLogger(__name__)


class DynamoDBReadingStore:
    """
    Reading store backed by a DynamoDB table.

    Usage:
        store = DynamoDBReadingStore()
        store.create_table_if_not_exists()
        store.insert_if_absent("507", datetime.now(timezone.utc), 42.5)
        readings = store.query_range("507", since)
    """

    def __init__(self, table_name: str = None, region: str = None, resource=None):
        """
        Args:
            table_name: Optional custom table name. If not provided,
                       uses DYNAMODB_TABLE_NAME from environment or default.
            region: AWS region, AWS_REGION from environment by default.
            resource: An existing boto3 DynamoDB resource (tests pass one
                      whose client is stubbed).
        """
        self.table_name = table_name or os.getenv('DYNAMODB_TABLE_NAME', 'ElectricityReadings')
        self.region = region or os.getenv('AWS_REGION', 'us-east-1')

        if resource is None:
            # Get session token for temporary credentials
            session_token = os.getenv('AWS_SESSION_TOKEN')
            resource = boto3.resource(
                'dynamodb',
                region_name=self.region,
                aws_access_key_id=os.getenv('AWS_ACCESS_KEY_ID'),
                aws_secret_access_key=os.getenv('AWS_SECRET_ACCESS_KEY'),
                aws_session_token=session_token if session_token else None
            )
        self.dynamodb = resource
        # The low-level client is needed for describe_table
        self.client = resource.meta.client
        self.table = resource.Table(self.table_name)

    def create_table_if_not_exists(self) -> bool:
        """
        Create the table if it doesn't exist.

        Billing Mode:
        - PAY_PER_REQUEST (On-Demand): one write per hour needs no capacity planning

        Returns:
            bool: True if the table already existed, False if it was created
        """
        try:
            self.client.describe_table(TableName=self.table_name)
            logger.info("DynamoDB table '%s' exists", self.table_name)
            return True
        except ClientError as e:
            if e.response['Error']['Code'] != 'ResourceNotFoundException':
                raise StoreError(f"Error checking table {self.table_name}: {e}") from e
        except BotoCoreError as e:
            raise StoreError(f"Error checking table {self.table_name}: {e}") from e

        try:
            table = self.dynamodb.create_table(
                TableName=self.table_name,
                KeySchema=[
                    {'AttributeName': 'room_id', 'KeyType': 'HASH'},     # Partition key
                    {'AttributeName': 'timestamp', 'KeyType': 'RANGE'},  # Sort key
                ],
                AttributeDefinitions=[
                    {'AttributeName': 'room_id', 'AttributeType': 'S'},
                    {'AttributeName': 'timestamp', 'AttributeType': 'S'},
                ],
                BillingMode='PAY_PER_REQUEST'
            )
            # Wait for table to be fully created
            table.wait_until_exists()
            self.table = table
            logger.info("Created DynamoDB table '%s'", self.table_name)
            return False
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f"Failed to create table {self.table_name}: {e}") from e

    def insert_if_absent(self, room_id: str, timestamp: datetime, kwh: float) -> bool:
        """
        Store a single reading unless (room_id, timestamp) is already taken.

        Note:
            DynamoDB requires Decimal for numbers, not float.
            We convert using str(kwh) to avoid floating-point precision issues.

        Returns:
            bool: True if written, False if a reading with that key exists
        """
        try:
            self.table.put_item(
                Item={
                    'room_id': room_id,
                    'timestamp': format_timestamp(timestamp),
                    'kwh': Decimal(str(kwh)),
                    'recorded_at': format_timestamp(datetime.now(timezone.utc)),
                },
                ConditionExpression='attribute_not_exists(#ts)',
                ExpressionAttributeNames={'#ts': 'timestamp'},
            )
            return True
        except ClientError as e:
            if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                return False
            raise StoreError(f"Failed to put reading: {e}") from e
        except BotoCoreError as e:
            raise StoreError(f"Failed to put reading: {e}") from e

    def query_range(self, room_id: Optional[str], since: datetime) -> List[Reading]:
        """
        Readings with timestamp >= since.

        With a room_id this is a Query on the partition key (results come back
        sorted by the sort key). Without one every room is read with a Scan,
        which is expensive on large tables.

        DynamoDB returns max 1MB of data per call, so both follow
        LastEvaluatedKey until the result is complete.
        """
        since_key = format_timestamp(since)
        if room_id is not None:
            operation = self.table.query
            kwargs = {'KeyConditionExpression': Key('room_id').eq(room_id) & Key('timestamp').gte(since_key)}
        else:
            operation = self.table.scan
            kwargs = {'FilterExpression': Attr('timestamp').gte(since_key)}

        items = []
        try:
            response = operation(**kwargs)
            items.extend(response.get('Items', []))
            while 'LastEvaluatedKey' in response:
                response = operation(ExclusiveStartKey=response['LastEvaluatedKey'], **kwargs)
                items.extend(response.get('Items', []))
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f"Failed to query readings: {e}") from e

        return [self._to_reading(item) for item in items]

    def list_rooms(self) -> List[str]:
        """All room ids that have readings (Scan with a projection)."""
        rooms = set()
        try:
            response = self.table.scan(ProjectionExpression='room_id')
            rooms.update(item['room_id'] for item in response.get('Items', []))
            while 'LastEvaluatedKey' in response:
                response = self.table.scan(
                    ProjectionExpression='room_id',
                    ExclusiveStartKey=response['LastEvaluatedKey']
                )
                rooms.update(item['room_id'] for item in response.get('Items', []))
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f"Failed to list rooms: {e}") from e
        return sorted(rooms)

    @staticmethod
    def _to_reading(item: Dict) -> Reading:
        recorded_at = item.get('recorded_at')
        kwh = item.get('kwh')
        return Reading(
            room_id=item['room_id'],
            timestamp=parse_timestamp(item['timestamp']),
            # Convert Decimal back to float
            kwh=float(kwh) if kwh is not None else None,
            recorded_at=parse_timestamp(recorded_at) if recorded_at else None,
        )

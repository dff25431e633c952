"""
Reading store selection.

Both stores offer the same three operations:
    insert_if_absent(room_id, timestamp, kwh) -> bool
    query_range(room_id | None, since) -> list of Reading
    list_rooms() -> list of room ids
and raise StoreError when the underlying storage fails.
"""

import logging

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """The reading store could not be read or written."""


def create_store(settings):
    """
    DynamoDB when USE_DYNAMODB is enabled and reachable, otherwise the local
    JSON-lines file under DATA_DIR.
    """
    if settings.use_dynamodb:
        try:
            from backend.lib.dynamodb_service import DynamoDBReadingStore
            store = DynamoDBReadingStore(table_name=settings.table_name, region=settings.aws_region)
            store.create_table_if_not_exists()
            logger.info("DynamoDB storage enabled (table %s)", settings.table_name)
            return store
        except StoreError as e:
            # If DynamoDB fails, we'll fall back to local file storage
            logger.warning("DynamoDB initialization failed: %s. Using local storage.", e)

    from backend.lib.local_store import LocalReadingStore
    logger.info("Local storage enabled (%s)", settings.readings_file)
    return LocalReadingStore(settings.readings_file)

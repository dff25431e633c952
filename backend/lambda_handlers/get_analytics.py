# backend/lambda_handlers/get_analytics.py
"""
Lambda function to get consumption analytics for a room
Triggered by API Gateway
"""
import json
import logging
import os
from datetime import datetime, timezone

from backend.lib.balance_core.processor import compute_analytics
from backend.lib.dynamodb_service import DynamoDBReadingStore
from backend.lib.settings import Settings
from backend.lib.store import StoreError

logger = logging.getLogger()
logger.setLevel(logging.INFO)

# Created on first use and reused across warm invocations
_store = None


def get_store():
    global _store
    if _store is None:
        settings = Settings.from_env(os.environ)
        _store = DynamoDBReadingStore(table_name=settings.table_name, region=settings.aws_region)
    return _store


def lambda_handler(event, context):
    """
    Get analytics for a room.

    Query parameters:
    - room_id: the room (default: ROOM_ID)
    - lookback_days: readings considered (default: LOOKBACK_DAYS or 30)
    """
    logger.info("Received event: %s", json.dumps(event))
    settings = Settings.from_env(os.environ)

    params = event.get('queryStringParameters') or {}
    room_id = params.get('room_id') or settings.room_id
    if not room_id:
        return response(400, {'error': 'room_id is required'})

    try:
        lookback_days = int(params.get('lookback_days', settings.lookback_days))
        if lookback_days <= 0:
            raise ValueError
    except ValueError:
        return response(400, {'error': 'lookback_days must be a positive integer'})

    try:
        result = compute_analytics(
            get_store(),
            room_id,
            datetime.now(timezone.utc),
            lookback_days,
            settings.analytics_config(),
        )
    except StoreError as e:
        logger.error("Error: %s", e)
        return response(500, {'error': str(e)})

    return response(200, result.to_dict())


def response(status_code: int, body: dict) -> dict:
    """Create API Gateway response."""
    return {
        'statusCode': status_code,
        'headers': {
            'Content-Type': 'application/json',
            'Access-Control-Allow-Origin': '*',
            'Access-Control-Allow-Methods': 'GET,OPTIONS',
            'Access-Control-Allow-Headers': 'Content-Type'
        },
        'body': json.dumps(body, ensure_ascii=False)
    }

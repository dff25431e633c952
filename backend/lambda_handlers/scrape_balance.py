# backend/lambda_handlers/scrape_balance.py
"""
Lambda function to scrape the balance page and store a reading
Triggered hourly by an EventBridge (CloudWatch Events) schedule: cron(0 * * * ? *)
"""
import json
import logging
import os

from backend.lib.dynamodb_service import DynamoDBReadingStore
from backend.lib.scraper import BalanceScraper
from backend.lib.settings import Settings

logger = logging.getLogger()
logger.setLevel(logging.INFO)

_scraper = None


def get_scraper():
    global _scraper
    if _scraper is None:
        settings = Settings.from_env(os.environ)
        store = DynamoDBReadingStore(table_name=settings.table_name, region=settings.aws_region)
        _scraper = BalanceScraper(settings, store)
    return _scraper


def lambda_handler(event, context):
    """
    Run one scrape.

    A failed scrape is reported in the body but still returns normally, so
    the schedule does not retry into the next hour.
    """
    logger.info("Received event: %s", json.dumps(event))
    result = get_scraper().scrape()
    return {
        'statusCode': 200 if result.success else 502,
        'body': json.dumps(result.to_dict())
    }

# tests/test_dynamodb_service.py
from backend.lib.dynamodb_service import DynamoDBReadingStore
from backend.lib.store import StoreError
from botocore.stub import Stubber
from conftest import T0
import boto3
import pytest


@pytest.fixture
def stubbed_store():
    resource = boto3.resource(
        "dynamodb",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )
    store = DynamoDBReadingStore(table_name="ElectricityReadings", resource=resource)
    with Stubber(resource.meta.client) as stubber:
        yield store, stubber
        stubber.assert_no_pending_responses()


def item(room_id, timestamp, kwh, recorded_at=None):
    data = {
        "room_id": {"S": room_id},
        "timestamp": {"S": timestamp},
        "kwh": {"N": kwh},
    }
    if recorded_at:
        data["recorded_at"] = {"S": recorded_at}
    return data


def test_insert_if_absent_writes_new_reading(stubbed_store):
    store, stubber = stubbed_store
    stubber.add_response("put_item", {})
    assert store.insert_if_absent("507", T0, 42.5) is True

def test_insert_if_absent_reports_existing_key(stubbed_store):
    store, stubber = stubbed_store
    stubber.add_client_error(
        "put_item",
        service_error_code="ConditionalCheckFailedException",
        service_message="The conditional request failed",
        http_status_code=400,
    )
    assert store.insert_if_absent("507", T0, 42.5) is False

def test_insert_failure_raises_store_error(stubbed_store):
    store, stubber = stubbed_store
    stubber.add_client_error(
        "put_item",
        service_error_code="ProvisionedThroughputExceededException",
        http_status_code=400,
    )
    with pytest.raises(StoreError):
        store.insert_if_absent("507", T0, 42.5)

def test_query_range_follows_pagination(stubbed_store):
    store, stubber = stubbed_store
    first_ts = "2025-11-01T00:00:00.000+00:00"
    second_ts = "2025-11-01T01:00:00.000+00:00"
    stubber.add_response("query", {
        "Items": [item("507", first_ts, "42.5", recorded_at="2025-11-01T00:00:01.000+00:00")],
        "Count": 1,
        "ScannedCount": 1,
        "LastEvaluatedKey": {"room_id": {"S": "507"}, "timestamp": {"S": first_ts}},
    })
    stubber.add_response("query", {
        "Items": [item("507", second_ts, "42.1")],
        "Count": 1,
        "ScannedCount": 1,
    })
    readings = store.query_range("507", T0)
    assert [r.kwh for r in readings] == [42.5, 42.1]
    assert isinstance(readings[0].kwh, float)
    assert readings[0].timestamp == T0
    assert readings[0].recorded_at is not None
    assert readings[1].recorded_at is None

def test_query_range_without_room_scans(stubbed_store):
    store, stubber = stubbed_store
    stubber.add_response("scan", {
        "Items": [
            item("507", "2025-11-01T00:00:00.000+00:00", "42.5"),
            item("508", "2025-11-01T00:00:00.000+00:00", "7"),
        ],
        "Count": 2,
        "ScannedCount": 2,
    })
    readings = store.query_range(None, T0)
    assert {r.room_id for r in readings} == {"507", "508"}

def test_query_failure_raises_store_error(stubbed_store):
    store, stubber = stubbed_store
    stubber.add_client_error("query", service_error_code="InternalServerError", http_status_code=500)
    with pytest.raises(StoreError):
        store.query_range("507", T0)

def test_list_rooms(stubbed_store):
    store, stubber = stubbed_store
    stubber.add_response("scan", {
        "Items": [{"room_id": {"S": "508"}}, {"room_id": {"S": "507"}}, {"room_id": {"S": "507"}}],
        "Count": 3,
        "ScannedCount": 3,
    })
    assert store.list_rooms() == ["507", "508"]

def test_existing_table_is_reused(stubbed_store):
    store, stubber = stubbed_store
    stubber.add_response("describe_table", {"Table": {"TableName": "ElectricityReadings"}})
    assert store.create_table_if_not_exists() is True

def test_missing_table_is_created(stubbed_store):
    store, stubber = stubbed_store
    stubber.add_client_error("describe_table", service_error_code="ResourceNotFoundException")
    stubber.add_response("create_table", {
        "TableDescription": {"TableName": "ElectricityReadings", "TableStatus": "CREATING"},
    })
    stubber.add_response("describe_table", {
        "Table": {"TableName": "ElectricityReadings", "TableStatus": "ACTIVE"},
    })
    assert store.create_table_if_not_exists() is False

def test_table_check_failure_raises_store_error(stubbed_store):
    store, stubber = stubbed_store
    stubber.add_client_error("describe_table", service_error_code="AccessDeniedException")
    with pytest.raises(StoreError):
        store.create_table_if_not_exists()

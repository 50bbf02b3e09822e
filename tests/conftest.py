"""
Pytest configuration and shared fixtures for the e-commerce service.

AWS resources are created with moto inside ``mock_aws``; handler components are
rebuilt for every test so that their boto3 clients talk to the mock.
"""

import json
import os
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import boto3
import pytest
from moto import mock_aws

REGION = "us-east-1"
ACCOUNT_ID = "123456789012"

PRODUCTS_TABLE = "test-products"
ORDERS_TABLE = "test-orders"
EVENTS_TABLE = "test-events"
INVOICES_TABLE = "test-invoices"
ORDER_TOPIC_NAME = "order-events"
ORDER_TOPIC_ARN = f"arn:aws:sns:{REGION}:{ACCOUNT_ID}:{ORDER_TOPIC_NAME}"
PRODUCT_EVENTS_FUNCTION = "product-events"
INVOICE_BUCKET = "test-invoices-bucket"
INVOICE_WSAPI_ENDPOINT = "wss://abc123.execute-api.us-east-1.amazonaws.com/prod"
EMAIL_SOURCE = "orders@example.com"

os.environ.update({
    "AWS_DEFAULT_REGION": REGION,
    "AWS_REGION": REGION,
    "AWS_ACCESS_KEY_ID": "testing",
    "AWS_SECRET_ACCESS_KEY": "testing",
    "AWS_SECURITY_TOKEN": "testing",
    "AWS_SESSION_TOKEN": "testing",
    "POWERTOOLS_SERVICE_NAME": "test-ecommerce",
    "POWERTOOLS_TRACE_DISABLED": "true",  # Disable X-Ray in tests
    "LOG_LEVEL": "DEBUG",
    "PRODUCTS_TABLE_NAME": PRODUCTS_TABLE,
    "ORDERS_TABLE_NAME": ORDERS_TABLE,
    "EVENTS_TABLE_NAME": EVENTS_TABLE,
    "INVOICES_TABLE_NAME": INVOICES_TABLE,
    "ORDER_EVENTS_TOPIC_ARN": ORDER_TOPIC_ARN,
    "PRODUCT_EVENTS_FUNCTION_NAME": PRODUCT_EVENTS_FUNCTION,
    "PRODUCT_EVENTS_EMAIL": "catalog@example.com",
    "INVOICE_BUCKET_NAME": INVOICE_BUCKET,
    "INVOICE_WSAPI_ENDPOINT": INVOICE_WSAPI_ENDPOINT,
    "ORDER_EMAIL_SOURCE": EMAIL_SOURCE,
})


@dataclass
class LambdaContext:
    function_name: str = "test-function"
    memory_limit_in_mb: int = 128
    invoked_function_arn: str = f"arn:aws:lambda:{REGION}:{ACCOUNT_ID}:function:test-function"
    aws_request_id: str = "52fdfc07-2182-154f-163f-5f0f9a621d72"

    def get_remaining_time_in_millis(self) -> int:
        return 30000


class RecordingNotifier:
    """Stands in for the WebSocket notifier and records every push and disconnect."""

    def __init__(self, gone: Optional[set] = None):
        self.gone = gone or set()
        self.posts: List[tuple] = []
        self.disconnects: List[str] = []

    def post(self, connection_id: str, payload: Any) -> bool:
        if connection_id in self.gone:
            return False
        if hasattr(payload, "model_dump"):
            payload = payload.model_dump(mode="json", by_alias=True)
        self.posts.append((connection_id, payload))
        return True

    def disconnect(self, connection_id: str) -> bool:
        if connection_id in self.gone:
            return False
        self.disconnects.append(connection_id)
        return True

    def statuses(self, connection_id: str) -> List[str]:
        return [payload["status"] for target, payload in self.posts if target == connection_id and "status" in payload]


@pytest.fixture
def lambda_context() -> LambdaContext:
    return LambdaContext()


# AWS fixtures
@pytest.fixture
def aws():
    """Start moto for the duration of a test."""
    with mock_aws():
        yield


def _create_table(name: str, key_schema: List[Dict[str, str]], attributes: List[str], **kwargs):
    dynamodb = boto3.resource("dynamodb", region_name=REGION)
    table = dynamodb.create_table(
        TableName=name,
        KeySchema=key_schema,
        AttributeDefinitions=[{"AttributeName": attribute, "AttributeType": "S"} for attribute in attributes],
        BillingMode="PAY_PER_REQUEST",
        **kwargs,
    )
    table.wait_until_exists()
    return table


@pytest.fixture
def products_table(aws):
    return _create_table(PRODUCTS_TABLE, [{"AttributeName": "id", "KeyType": "HASH"}], ["id"])


@pytest.fixture
def orders_table(aws):
    return _create_table(
        ORDERS_TABLE,
        [{"AttributeName": "pk", "KeyType": "HASH"}, {"AttributeName": "sk", "KeyType": "RANGE"}],
        ["pk", "sk"],
    )


@pytest.fixture
def events_table(aws):
    return _create_table(
        EVENTS_TABLE,
        [{"AttributeName": "pk", "KeyType": "HASH"}, {"AttributeName": "sk", "KeyType": "RANGE"}],
        ["pk", "sk", "email"],
        GlobalSecondaryIndexes=[
            {
                "IndexName": "emailIdx",
                "KeySchema": [
                    {"AttributeName": "email", "KeyType": "HASH"},
                    {"AttributeName": "sk", "KeyType": "RANGE"},
                ],
                "Projection": {"ProjectionType": "ALL"},
            }
        ],
    )


@pytest.fixture
def invoices_table(aws):
    return _create_table(
        INVOICES_TABLE,
        [{"AttributeName": "pk", "KeyType": "HASH"}, {"AttributeName": "sk", "KeyType": "RANGE"}],
        ["pk", "sk"],
    )


@pytest.fixture
def order_topic(aws) -> str:
    return boto3.client("sns", region_name=REGION).create_topic(Name=ORDER_TOPIC_NAME)["TopicArn"]


@pytest.fixture
def invoice_bucket(aws) -> str:
    boto3.client("s3", region_name=REGION).create_bucket(Bucket=INVOICE_BUCKET)
    return INVOICE_BUCKET


@pytest.fixture
def ses_client(aws):
    client = boto3.client("ses", region_name=REGION)
    client.verify_email_identity(EmailAddress=EMAIL_SOURCE)
    return client


@pytest.fixture
def all_tables(products_table, orders_table, events_table, invoices_table):
    return products_table, orders_table, events_table, invoices_table


# Sample data fixtures
@pytest.fixture
def seeded_products(products_table) -> List[Dict[str, Any]]:
    """Three catalog products with known prices."""
    from decimal import Decimal

    products = [
        {"id": "p1", "productName": "Notebook", "code": "COD1", "price": Decimal("10"), "model": "N1"},
        {"id": "p2", "productName": "Keyboard", "code": "COD2", "price": Decimal("15"), "model": "K2"},
        {"id": "p3", "productName": "Mouse", "code": "COD3", "price": Decimal("5.50"), "model": "M3"},
    ]
    for product in products:
        products_table.put_item(Item=product)
    return products


@pytest.fixture
def order_request_body() -> Dict[str, Any]:
    return {
        "email": "matilde@example.com",
        "productIds": ["p1", "p2"],
        "payment": "CREDIT_CARD",
        "shipping": {"type": "URGENT", "carrier": "FEDEX"},
    }


# Event builders
def make_api_gateway_event(
    method: str,
    path: str,
    body: Optional[Any] = None,
    query: Optional[Dict[str, str]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """API Gateway REST proxy event."""
    request_headers = {"Content-Type": "application/json"}
    request_headers.update(headers or {})
    return {
        "resource": path,
        "path": path,
        "httpMethod": method,
        "headers": request_headers,
        "multiValueHeaders": {name: [value] for name, value in request_headers.items()},
        "queryStringParameters": query,
        "multiValueQueryStringParameters": {name: [value] for name, value in query.items()} if query else None,
        "pathParameters": None,
        "stageVariables": None,
        "body": body if body is None or isinstance(body, str) else json.dumps(body),
        "isBase64Encoded": False,
        "requestContext": {
            "requestId": str(uuid.uuid4()),
            "accountId": ACCOUNT_ID,
            "stage": "test",
            "httpMethod": method,
            "path": path,
            "resourcePath": path,
            "protocol": "HTTP/1.1",
            "identity": {"sourceIp": "127.0.0.1", "userAgent": "pytest"},
        },
    }


def make_sns_event(message: str, event_type: Optional[str] = None, message_id: Optional[str] = None) -> Dict[str, Any]:
    """SNS event as delivered to a subscribed function."""
    attributes = {"eventType": {"Type": "String", "Value": event_type}} if event_type else {}
    return {
        "Records": [
            {
                "EventSource": "aws:sns",
                "EventVersion": "1.0",
                "EventSubscriptionArn": f"{ORDER_TOPIC_ARN}:{uuid.uuid4()}",
                "Sns": {
                    "Type": "Notification",
                    "MessageId": message_id or str(uuid.uuid4()),
                    "TopicArn": ORDER_TOPIC_ARN,
                    "Subject": None,
                    "Message": message,
                    "Timestamp": "2024-01-01T12:00:00.000Z",
                    "SignatureVersion": "1",
                    "Signature": "EXAMPLE",
                    "SigningCertUrl": "https://sns.us-east-1.amazonaws.com/cert.pem",
                    "UnsubscribeUrl": "https://sns.us-east-1.amazonaws.com/unsubscribe",
                    "MessageAttributes": attributes,
                },
            }
        ]
    }


def make_sqs_record(body: str, message_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "messageId": message_id or str(uuid.uuid4()),
        "receiptHandle": "receipt",
        "body": body,
        "attributes": {
            "ApproximateReceiveCount": "1",
            "SentTimestamp": "1704110400000",
            "SenderId": ACCOUNT_ID,
            "ApproximateFirstReceiveTimestamp": "1704110400000",
        },
        "messageAttributes": {},
        "md5OfBody": "",
        "eventSource": "aws:sqs",
        "eventSourceARN": f"arn:aws:sqs:{REGION}:{ACCOUNT_ID}:order-confirmations",
        "awsRegion": REGION,
    }


# Handler component caches
@pytest.fixture(autouse=True)
def reset_handler_components():
    """Forget the components built by the handlers so each test gets fresh clients."""
    from ecommerce.handlers import (
        invoice_connection_handler,
        invoice_events_handler,
        invoice_import_handler,
        invoice_sweeper_handler,
        order_confirmations_handler,
        order_emails_handler,
        order_events_fetch_handler,
        order_events_handler,
        order_payments_handler,
        orders_handler,
        product_events_handler,
        products_handler,
    )

    modules = (
        invoice_connection_handler,
        invoice_events_handler,
        invoice_import_handler,
        invoice_sweeper_handler,
        order_confirmations_handler,
        order_emails_handler,
        order_events_fetch_handler,
        order_events_handler,
        order_payments_handler,
        orders_handler,
        product_events_handler,
        products_handler,
    )

    def clear():
        for module in modules:
            for attribute in vars(module).values():
                if callable(getattr(attribute, "cache_clear", None)):
                    attribute.cache_clear()

    clear()
    yield
    clear()


@pytest.fixture(autouse=True)
def reset_metrics():
    """Drop metrics recorded outside of a handler invocation."""
    from ecommerce.handlers.utils.observability import metrics

    yield
    metrics.clear_metrics()


# Integration test fixtures
@pytest.fixture
def integration_client():
    """HTTP client for end-to-end tests against a deployed API."""
    import httpx

    base_url = os.environ.get("API_BASE_URL")
    if not base_url:
        pytest.skip("API_BASE_URL is not set")

    with httpx.Client(base_url=base_url, timeout=30.0) as client:
        yield client


# Pytest configuration
def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "e2e" in str(item.fspath):
            item.add_marker(pytest.mark.e2e)

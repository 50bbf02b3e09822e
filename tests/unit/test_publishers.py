"""
Unit tests for the Lambda event publisher and the WebSocket connection notifier.

The boto3 clients are stubbed with botocore's ``Stubber``.
"""

import io
import json

import boto3
import pytest
from botocore.response import StreamingBody
from botocore.stub import ANY, Stubber

from ecommerce.events.bus import EventPublisher
from ecommerce.events.connections import ConnectionNotifier
from ecommerce.events.lambda_publisher import LambdaEventPublisher
from ecommerce.handlers.utils.errors import DownstreamDeliveryError, ExternalServiceError
from ecommerce.models.output import TransactionStatusMessage, UploadTargetMessage

ENDPOINT = "https://abc123.execute-api.us-east-1.amazonaws.com/prod"


def _streaming(payload: bytes) -> StreamingBody:
    return StreamingBody(io.BytesIO(payload), len(payload))


@pytest.fixture
def lambda_client():
    client = boto3.client("lambda", region_name="us-east-1")
    with Stubber(client) as stubber:
        yield client, stubber
        stubber.assert_no_pending_responses()


@pytest.fixture
def management_client():
    client = boto3.client("apigatewaymanagementapi", endpoint_url=ENDPOINT, region_name="us-east-1")
    with Stubber(client) as stubber:
        yield client, stubber
        stubber.assert_no_pending_responses()


class TestLambdaEventPublisher:
    """Test cases for LambdaEventPublisher."""

    def test_is_an_event_publisher(self, lambda_client):
        client, _ = lambda_client
        assert isinstance(LambdaEventPublisher(client=client), EventPublisher)

    def test_publish_invokes_synchronously(self, lambda_client):
        """Test that the message is the payload of a RequestResponse invocation."""
        client, stubber = lambda_client
        message = json.dumps({"productEvent": {"productId": "p1"}})
        stubber.add_response(
            "invoke",
            {"StatusCode": 200, "Payload": _streaming(b"{}"), "ResponseMetadata": {"RequestId": "req-123"}},
            {"FunctionName": "product-events", "InvocationType": "RequestResponse", "Payload": message.encode("utf-8")},
        )

        message_id = LambdaEventPublisher(client=client).publish("product-events", message, {"eventType": "PRODUCT_CREATED"})

        assert message_id == "req-123"

    def test_function_error_is_delivery_failure(self, lambda_client):
        """Test that an error raised inside the consumer surfaces to the publisher."""
        client, stubber = lambda_client
        stubber.add_response(
            "invoke",
            {
                "StatusCode": 200,
                "FunctionError": "Unhandled",
                "Payload": _streaming(b'{"errorMessage": "boom"}'),
            },
            {"FunctionName": "product-events", "InvocationType": "RequestResponse", "Payload": ANY},
        )

        with pytest.raises(DownstreamDeliveryError) as exc_info:
            LambdaEventPublisher(client=client).publish("product-events", "{}", {})

        assert exc_info.value.topic == "product-events"

    def test_invoke_failure_is_delivery_failure(self, lambda_client):
        client, stubber = lambda_client
        stubber.add_client_error("invoke", service_error_code="ResourceNotFoundException", http_status_code=404)

        with pytest.raises(DownstreamDeliveryError):
            LambdaEventPublisher(client=client).publish("missing-function", "{}", {})


class TestConnectionNotifier:
    """Test cases for ConnectionNotifier."""

    def test_post_model_uses_camel_case(self, management_client):
        """Test that models are sent with their wire names."""
        client, stubber = management_client
        message = UploadTargetMessage(url="https://upload", expires=300, transaction_id="t1")
        stubber.add_response(
            "post_to_connection",
            {},
            {"ConnectionId": "c1", "Data": b'{"url":"https://upload","expires":300,"transactionId":"t1"}'},
        )

        assert ConnectionNotifier(ENDPOINT, client=client).post("c1", message) is True

    def test_post_dict(self, management_client):
        client, stubber = management_client
        stubber.add_response("post_to_connection", {}, {"ConnectionId": "c1", "Data": b'{"key": "t1", "status": "TIMEOUT"}'})

        assert ConnectionNotifier(ENDPOINT, client=client).post("c1", {"key": "t1", "status": "TIMEOUT"})

    def test_post_to_gone_connection(self, management_client):
        """Test that a closed connection is reported, not raised."""
        client, stubber = management_client
        stubber.add_client_error("post_to_connection", service_error_code="GoneException", http_status_code=410)

        notifier = ConnectionNotifier(ENDPOINT, client=client)

        assert notifier.post("c1", TransactionStatusMessage(key="t1", status="TIMEOUT")) is False

    def test_post_failure_raises(self, management_client):
        client, stubber = management_client
        stubber.add_client_error("post_to_connection", service_error_code="LimitExceededException", http_status_code=429)

        with pytest.raises(ExternalServiceError):
            ConnectionNotifier(ENDPOINT, client=client).post("c1", "hello")

    def test_disconnect(self, management_client):
        client, stubber = management_client
        stubber.add_response("delete_connection", {}, {"ConnectionId": "c1"})

        assert ConnectionNotifier(ENDPOINT, client=client).disconnect("c1") is True

    def test_disconnect_gone_connection(self, management_client):
        client, stubber = management_client
        stubber.add_client_error("delete_connection", service_error_code="GoneException", http_status_code=410)

        assert ConnectionNotifier(ENDPOINT, client=client).disconnect("c1") is False

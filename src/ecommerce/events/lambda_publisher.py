"""Publishes events by invoking a Lambda function synchronously."""

from typing import Any, Dict, Optional

import boto3
from aws_lambda_powertools.metrics import MetricUnit
from botocore.exceptions import BotoCoreError, ClientError

from ecommerce.handlers.utils.errors import DownstreamDeliveryError
from ecommerce.handlers.utils.observability import logger, metrics, tracer


class LambdaEventPublisher:
    """
    Event publisher whose topic is a function name.

    The call blocks until the function has processed the event
    (``RequestResponse``), so a failing consumer surfaces to the publisher.
    """

    def __init__(self, region_name: Optional[str] = None, client: Any = None) -> None:
        if client is None:
            client = boto3.client('lambda', region_name=region_name) if region_name else boto3.client('lambda')
        self.lambda_client = client

    @tracer.capture_method
    def publish(self, topic: str, message: str, attributes: Dict[str, str]) -> str:
        try:
            response = self.lambda_client.invoke(
                FunctionName=topic,
                InvocationType='RequestResponse',
                Payload=message.encode('utf-8'),
            )
        except (ClientError, BotoCoreError) as e:
            metrics.add_metric(name='EventPublishFailed', unit=MetricUnit.Count, value=1)
            logger.error('Failed to invoke event function', extra={'function_name': topic, 'error': str(e)})
            raise DownstreamDeliveryError(message=f'Lambda invoke failed: {e}', topic=topic) from e

        if response.get('FunctionError'):
            payload = response['Payload'].read() if 'Payload' in response else b''
            metrics.add_metric(name='EventPublishFailed', unit=MetricUnit.Count, value=1)
            logger.error('Event function failed', extra={
                'function_name': topic,
                'function_error': response['FunctionError'],
                'payload': payload.decode('utf-8', errors='replace'),
                'attributes': attributes,
            })
            raise DownstreamDeliveryError(message=f"Event function {topic} failed: {response['FunctionError']}", topic=topic)

        metrics.add_metric(name='EventPublished', unit=MetricUnit.Count, value=1)
        message_id = response.get('ResponseMetadata', {}).get('RequestId', '')
        logger.info('Event delivered', extra={
            'function_name': topic,
            'message_id': message_id,
            'attributes': attributes,
        })
        return message_id

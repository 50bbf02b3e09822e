"""
Order Confirmations Handler - SQS consumer sending order confirmations.

The queue is subscribed to the order events topic (ORDER_CREATED only) and
delivers up to five messages per invocation. Each SQS body is the SNS
notification document, whose ``Message`` is the order event envelope. Failed
records are reported individually so that only they return to the queue.
"""

import functools
import json
from typing import Any, Dict

from aws_lambda_powertools.utilities.batch import BatchProcessor, EventType as BatchEventType, process_partial_response
from aws_lambda_powertools.utilities.data_classes.sqs_event import SQSRecord
from aws_lambda_powertools.utilities.typing import LambdaContext

from ecommerce.handlers.models.env_vars import get_order_emails_env_vars
from ecommerce.handlers.utils.observability import logger, metrics, tracer
from ecommerce.logic.order_consumers import ConfirmationMailer, OrderMailer
from ecommerce.models.events import OrderEventEnvelope

processor = BatchProcessor(event_type=BatchEventType.SQS)


@functools.cache
def get_confirmation_mailer() -> ConfirmationMailer:
    env_vars = get_order_emails_env_vars()
    mailer = OrderMailer(
        source=env_vars.ORDER_EMAIL_SOURCE,
        reply_to=env_vars.ORDER_EMAIL_REPLY_TO,
        region_name=env_vars.AWS_REGION,
    )
    return ConfirmationMailer(mailer)


def envelope_from_record(record: SQSRecord) -> OrderEventEnvelope:
    notification = json.loads(record.body)
    return OrderEventEnvelope.from_message(notification['Message'])


@tracer.capture_method
def record_handler(record: SQSRecord) -> str:
    envelope = envelope_from_record(record)
    message_id = get_confirmation_mailer().handle(envelope)
    logger.info('Order confirmation sent', extra={'sqs_message_id': record.message_id, 'email_id': message_id})
    return message_id


@tracer.capture_lambda_handler
@logger.inject_lambda_context
@metrics.log_metrics(capture_cold_start_metric=True)
def lambda_handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    return process_partial_response(
        event=event,
        record_handler=record_handler,
        processor=processor,
        context=context,
    )

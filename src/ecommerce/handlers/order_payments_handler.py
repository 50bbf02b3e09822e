"""Order Payments Handler - SNS consumer of ORDER_CREATED events (filtered by subscription)."""

import functools
from typing import Any, Dict

from aws_lambda_powertools.utilities.data_classes import SNSEvent, event_source
from aws_lambda_powertools.utilities.typing import LambdaContext

from ecommerce.handlers.utils.observability import logger, metrics, tracer
from ecommerce.logic.order_consumers import PaymentProcessor
from ecommerce.models.events import OrderEventEnvelope


@functools.cache
def get_payment_processor() -> PaymentProcessor:
    return PaymentProcessor()


@tracer.capture_lambda_handler
@logger.inject_lambda_context
@metrics.log_metrics(capture_cold_start_metric=True)
@event_source(data_class=SNSEvent)
def lambda_handler(event: SNSEvent, context: LambdaContext) -> Dict[str, Any]:
    processor = get_payment_processor()
    for record in event.records:
        processor.handle(OrderEventEnvelope.from_message(record.sns.message))
    return {}

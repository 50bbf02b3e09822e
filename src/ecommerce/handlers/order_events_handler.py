"""
Order Events Handler - SNS consumer appending order events to the event log.

Each record is handled independently; a failure raises so that SNS retries the
delivery and eventually moves it to the consumer's dead-letter queue.
"""

import functools
from typing import Any, Dict

from aws_lambda_powertools.utilities.data_classes import SNSEvent, event_source
from aws_lambda_powertools.utilities.typing import LambdaContext

from ecommerce.dal.events_db import EventsDbHandler
from ecommerce.handlers.models.env_vars import get_events_env_vars
from ecommerce.handlers.utils.observability import logger, metrics, tracer
from ecommerce.logic.event_correlator import EventCorrelator
from ecommerce.models.events import OrderEventEnvelope


@functools.cache
def get_correlator() -> EventCorrelator:
    env_vars = get_events_env_vars()
    return EventCorrelator(
        events_db=EventsDbHandler(env_vars.EVENTS_TABLE_NAME),
        ttl_minutes=env_vars.EVENT_TTL_MINUTES,
        invoice_ttl_minutes=env_vars.INVOICE_EVENT_TTL_MINUTES,
    )


@tracer.capture_lambda_handler
@logger.inject_lambda_context
@metrics.log_metrics(capture_cold_start_metric=True)
@event_source(data_class=SNSEvent)
def lambda_handler(event: SNSEvent, context: LambdaContext) -> Dict[str, Any]:
    correlator = get_correlator()
    for record in event.records:
        message = record.sns
        envelope = OrderEventEnvelope.from_message(message.message)
        correlator.record_order_event(envelope, message_id=message.message_id)
    return {}

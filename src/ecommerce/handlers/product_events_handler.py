"""
Product Events Handler - invoked synchronously by the products API.

The payload is ``{"productEvent": {...}}``. An exception here surfaces to the
products API as a function error.
"""

import functools
from typing import Any, Dict

from aws_lambda_powertools.utilities.typing import LambdaContext

from ecommerce.dal.events_db import EventsDbHandler
from ecommerce.handlers.models.env_vars import get_events_env_vars
from ecommerce.handlers.utils.observability import logger, metrics, tracer
from ecommerce.logic.event_correlator import EventCorrelator
from ecommerce.models.events import ProductEvent


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
def lambda_handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    product_event = ProductEvent.from_payload(event)
    logger.append_keys(request_id=product_event.request_id)

    entry = get_correlator().record_product_event(product_event)
    return {'pk': entry.pk, 'sk': entry.sk}

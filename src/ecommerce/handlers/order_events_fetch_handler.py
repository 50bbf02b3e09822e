"""
Order Events Fetch Handler - Lambda function answering lifecycle event queries.

Route:
    GET /orders/events?email=<email>[&eventType=<type or prefix>]
"""

import functools
import json
from http import HTTPStatus
from typing import Any, Dict

from aws_lambda_powertools.event_handler import APIGatewayRestResolver
from aws_lambda_powertools.logging import correlation_paths
from aws_lambda_powertools.utilities.typing import LambdaContext

from ecommerce.dal.events_db import EventsDbHandler
from ecommerce.handlers.models.env_vars import get_events_env_vars
from ecommerce.handlers.utils.errors import ValidationFailedError, create_error_context
from ecommerce.handlers.utils.observability import logger, metrics, tracer
from ecommerce.handlers.utils.rest import cors_config, get_request_id, json_response, register_error_handlers
from ecommerce.logic.event_correlator import DEFAULT_EVENT_TYPE_PREFIX, EventCorrelator

app = APIGatewayRestResolver(cors=cors_config)
register_error_handlers(app)


@functools.cache
def get_correlator() -> EventCorrelator:
    env_vars = get_events_env_vars()
    return EventCorrelator(
        events_db=EventsDbHandler(env_vars.EVENTS_TABLE_NAME),
        ttl_minutes=env_vars.EVENT_TTL_MINUTES,
        invoice_ttl_minutes=env_vars.INVOICE_EVENT_TTL_MINUTES,
    )


@app.get('/orders/events')
@tracer.capture_method
def get_customer_events():
    email = app.current_event.get_query_string_value(name='email', default_value=None)
    event_type = app.current_event.get_query_string_value(name='eventType', default_value=None)
    if not email:
        raise ValidationFailedError(
            message='email is required',
            context=create_error_context(get_request_id(app), 'get_customer_events'),
        )

    events = get_correlator().query_by_customer(email, event_type or DEFAULT_EVENT_TYPE_PREFIX)
    logger.info('Customer events fetched', extra={'email': email, 'event_type': event_type, 'count': len(events)})
    return json_response(
        HTTPStatus.OK.value,
        json.dumps([event.model_dump(mode='json', by_alias=True, exclude_none=True) for event in events]),
    )


@tracer.capture_lambda_handler
@logger.inject_lambda_context(correlation_id_path=correlation_paths.API_GATEWAY_REST)
@metrics.log_metrics(capture_cold_start_metric=True)
def lambda_handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    return app.resolve(event, context)

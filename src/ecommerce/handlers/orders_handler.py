"""
Orders Handler - Lambda function for the orders API.

Routes:
    GET    /orders[?email=<email>[&orderId=<id>]]
    POST   /orders
    DELETE /orders?email=<email>&orderId=<id>
"""

import functools
import json
from http import HTTPStatus
from typing import Any, Dict, Optional

from aws_lambda_powertools.event_handler import APIGatewayRestResolver
from aws_lambda_powertools.logging import correlation_paths
from aws_lambda_powertools.utilities.typing import LambdaContext

from ecommerce.dal.orders_db import OrdersDbHandler
from ecommerce.dal.products_db import ProductsDbHandler
from ecommerce.events.sns_bus import SnsEventBus
from ecommerce.handlers.models.env_vars import get_orders_env_vars
from ecommerce.handlers.utils.errors import ValidationFailedError, create_error_context
from ecommerce.handlers.utils.observability import logger, metrics, tracer
from ecommerce.handlers.utils.rest import cors_config, get_request_id, json_response, parse_body, register_error_handlers
from ecommerce.logic.order_workflow import OrderWorkflow
from ecommerce.models.input import CreateOrderRequest

app = APIGatewayRestResolver(cors=cors_config)
register_error_handlers(app)


@functools.cache
def get_workflow() -> OrderWorkflow:
    """Build the workflow once per execution environment."""
    env_vars = get_orders_env_vars()
    return OrderWorkflow(
        products_db=ProductsDbHandler(env_vars.PRODUCTS_TABLE_NAME),
        orders_db=OrdersDbHandler(env_vars.ORDERS_TABLE_NAME),
        bus=SnsEventBus(region_name=env_vars.AWS_REGION),
        topic=env_vars.ORDER_EVENTS_TOPIC_ARN,
    )


def _query_param(name: str) -> Optional[str]:
    return app.current_event.get_query_string_value(name=name, default_value=None) or None


@app.get('/orders')
@tracer.capture_method
def list_orders():
    email = _query_param('email')
    order_id = _query_param('orderId')
    tracer.put_annotation('customer_email', email or 'all')

    orders = get_workflow().list_orders(request_id=get_request_id(app), email=email, order_id=order_id)

    logger.info('Orders listed', extra={'count': len(orders), 'email': email, 'order_id': order_id})
    if order_id:
        return json_response(HTTPStatus.OK.value, orders[0].model_dump_json(by_alias=True))
    return json_response(
        HTTPStatus.OK.value,
        json.dumps([order.model_dump(mode='json', by_alias=True) for order in orders]),
    )


@app.post('/orders')
@tracer.capture_method
def create_order():
    request_id = get_request_id(app)
    request = parse_body(app, CreateOrderRequest, create_error_context(request_id, 'create_order'))
    tracer.put_annotation('customer_email', request.email)

    order = get_workflow().submit(request, request_id=request_id)
    return json_response(HTTPStatus.CREATED.value, order.model_dump_json(by_alias=True))


@app.delete('/orders')
@tracer.capture_method
def delete_order():
    request_id = get_request_id(app)
    email = _query_param('email')
    order_id = _query_param('orderId')
    if not email or not order_id:
        raise ValidationFailedError(
            message='email and orderId are required',
            context=create_error_context(request_id, 'delete_order'),
        )

    order = get_workflow().delete(email, order_id, request_id=request_id)
    return json_response(HTTPStatus.OK.value, order.model_dump_json(by_alias=True))


@tracer.capture_lambda_handler
@logger.inject_lambda_context(correlation_id_path=correlation_paths.API_GATEWAY_REST)
@metrics.log_metrics(capture_cold_start_metric=True)
def lambda_handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    return app.resolve(event, context)

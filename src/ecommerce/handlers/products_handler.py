"""
Products Handler - Lambda function for the products API.

Routes:
    GET    /products
    POST   /products
    GET    /products/{id}
    PUT    /products/{id}
    DELETE /products/{id}
"""

import functools
import json
from http import HTTPStatus
from typing import Any, Dict

from aws_lambda_powertools.event_handler import APIGatewayRestResolver
from aws_lambda_powertools.logging import correlation_paths
from aws_lambda_powertools.utilities.typing import LambdaContext

from ecommerce.dal.products_db import ProductsDbHandler
from ecommerce.events.lambda_publisher import LambdaEventPublisher
from ecommerce.handlers.models.env_vars import ProductsEnvVars, get_products_env_vars
from ecommerce.handlers.utils.errors import create_error_context
from ecommerce.handlers.utils.observability import logger, metrics, tracer
from ecommerce.handlers.utils.rest import cors_config, get_request_id, json_response, parse_body, register_error_handlers
from ecommerce.logic.product_catalog import ProductCatalog
from ecommerce.models.input import ProductRequest

ACTOR_EMAIL_HEADER = 'x-user-email'

app = APIGatewayRestResolver(cors=cors_config)
register_error_handlers(app)


@functools.cache
def get_env_vars() -> ProductsEnvVars:
    return get_products_env_vars()


@functools.cache
def get_catalog() -> ProductCatalog:
    """Build the catalog once per execution environment."""
    env_vars = get_env_vars()
    return ProductCatalog(
        products_db=ProductsDbHandler(env_vars.PRODUCTS_TABLE_NAME),
        publisher=LambdaEventPublisher(region_name=env_vars.AWS_REGION),
        events_topic=env_vars.PRODUCT_EVENTS_FUNCTION_NAME,
    )


def _actor_email() -> str:
    return app.current_event.get_header_value(ACTOR_EMAIL_HEADER) or get_env_vars().PRODUCT_EVENTS_EMAIL


def _product_json(product) -> str:
    return product.model_dump_json(by_alias=True)


@app.get('/products')
@tracer.capture_method
def list_products():
    products = get_catalog().list_products()
    logger.info('Products listed', extra={'count': len(products)})
    return json_response(
        HTTPStatus.OK.value,
        json.dumps([product.model_dump(mode='json', by_alias=True) for product in products]),
    )


@app.get('/products/<product_id>')
@tracer.capture_method
def get_product(product_id: str):
    tracer.put_annotation('product_id', product_id)
    product = get_catalog().get_product(product_id, request_id=get_request_id(app))
    return json_response(HTTPStatus.OK.value, _product_json(product))


@app.post('/products')
@tracer.capture_method
def create_product():
    request_id = get_request_id(app)
    request = parse_body(app, ProductRequest, create_error_context(request_id, 'create_product'))

    product = get_catalog().create_product(request, request_id=request_id, email=_actor_email())
    return json_response(HTTPStatus.CREATED.value, _product_json(product))


@app.put('/products/<product_id>')
@tracer.capture_method
def update_product(product_id: str):
    request_id = get_request_id(app)
    request = parse_body(app, ProductRequest, create_error_context(request_id, 'update_product', product_id))

    product = get_catalog().update_product(product_id, request, request_id=request_id, email=_actor_email())
    return json_response(HTTPStatus.OK.value, _product_json(product))


@app.delete('/products/<product_id>')
@tracer.capture_method
def delete_product(product_id: str):
    product = get_catalog().delete_product(product_id, request_id=get_request_id(app), email=_actor_email())
    return json_response(HTTPStatus.OK.value, _product_json(product))


@tracer.capture_lambda_handler
@logger.inject_lambda_context(correlation_id_path=correlation_paths.API_GATEWAY_REST)
@metrics.log_metrics(capture_cold_start_metric=True)
def lambda_handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    """
    Main Lambda handler function.

    Args:
        event: API Gateway proxy event
        context: Lambda context object

    Returns:
        API Gateway proxy response
    """
    return app.resolve(event, context)

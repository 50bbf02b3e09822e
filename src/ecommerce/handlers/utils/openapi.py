"""
OpenAPI document of the REST API.

The products, orders and order events functions each own an
``APIGatewayRestResolver``; their schemas are merged into one document and the
request/response models are added as components.
"""

import json
from typing import Any, Dict, List

import yaml

API_TITLE = 'E-commerce API'
API_VERSION = '1.0.0'
API_DESCRIPTION = (
    'Products, orders and order lifecycle events. '
    'Error bodies are JSON strings: 400 invalid request, 404 missing resource, '
    '502 event delivery failure, 500 unexpected error.'
)


def _rest_apps() -> List[Any]:
    # the handler modules build their resolvers at import time
    from ecommerce.handlers import order_events_fetch_handler, orders_handler, products_handler

    return [products_handler.app, orders_handler.app, order_events_fetch_handler.app]


def _component_schemas() -> Dict[str, Any]:
    from ecommerce.models import CreateOrderRequest, CustomerEventView, Order, Product, ProductRequest

    schemas: Dict[str, Any] = {}
    for model in (Product, ProductRequest, Order, CreateOrderRequest, CustomerEventView):
        schema = model.model_json_schema(by_alias=True, ref_template='#/components/schemas/{model}')
        schemas.update(schema.pop('$defs', {}))
        schemas[model.__name__] = schema
    schemas['ErrorMessage'] = {'type': 'string', 'examples': ['Order not found']}
    return schemas


def build_openapi_spec() -> Dict[str, Any]:
    """
    Generate the OpenAPI document of every REST route.

    Returns:
        OpenAPI document as a dictionary
    """
    spec: Dict[str, Any] = {}
    for app in _rest_apps():
        schema = json.loads(app.get_openapi_json_schema(title=API_TITLE, version=API_VERSION))
        if not spec:
            spec = schema
        else:
            spec['paths'].update(schema.get('paths', {}))

    spec['info']['description'] = API_DESCRIPTION
    spec.setdefault('components', {}).setdefault('schemas', {}).update(_component_schemas())
    return spec


def validate_openapi_spec(spec: Dict[str, Any]) -> List[str]:
    """Return the structural problems of an OpenAPI document, empty if none."""
    problems = [f"missing field '{field}'" for field in ('openapi', 'info', 'paths') if field not in spec]
    info = spec.get('info', {})
    problems.extend(f"missing field 'info.{field}'" for field in ('title', 'version') if field not in info)
    if 'openapi' in spec and not str(spec['openapi']).startswith('3.'):
        problems.append(f"unsupported OpenAPI version '{spec['openapi']}'")
    return problems


def render_openapi_spec(spec: Dict[str, Any], output_format: str = 'yaml', pretty: bool = False) -> str:
    if output_format == 'json':
        return json.dumps(spec, indent=2 if pretty else None, ensure_ascii=False)
    return yaml.safe_dump(spec, default_flow_style=False, allow_unicode=True, sort_keys=False)

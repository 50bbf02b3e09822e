"""
E-commerce serverless backend.

Three-layer layout:

- handlers: Lambda entry points, one module per function
- logic: product catalog, order workflow, event log, order consumers, invoice import
- dal: DynamoDB and S3 access
- events: event bus implementations and the order topic fan-out
- models: domain, request, response and event models
"""

__version__ = "1.0.0"

from ecommerce.handlers.utils.observability import logger, metrics, tracer
from ecommerce.models import CreateOrderRequest, Order, Product, ProductRequest

__all__ = [
    "CreateOrderRequest",
    "Order",
    "Product",
    "ProductRequest",
    "logger",
    "metrics",
    "tracer",
]

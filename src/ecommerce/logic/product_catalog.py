"""
Business logic of the product catalog.

Every mutation is followed by a product lifecycle event, published
synchronously: the caller learns about a failed delivery even though the
mutation itself is already durable.
"""

from typing import List

from aws_lambda_powertools.metrics import MetricUnit

from ecommerce.dal.products_db import ProductsDbHandler
from ecommerce.events.bus import EventPublisher
from ecommerce.handlers.utils.errors import ResourceNotFoundError, create_error_context
from ecommerce.handlers.utils.observability import logger, metrics, tracer
from ecommerce.models.events import EVENT_TYPE_ATTRIBUTE, EventType, ProductEvent
from ecommerce.models.input import ProductRequest
from ecommerce.models.product import Product


class ProductCatalog:
    """CRUD over products with lifecycle notifications."""

    def __init__(self, products_db: ProductsDbHandler, publisher: EventPublisher, events_topic: str) -> None:
        """
        Initialize the catalog.

        Args:
            products_db: Products table handler
            publisher: Publisher of product lifecycle events
            events_topic: Destination of product events (the product events function)
        """
        self.products_db = products_db
        self.publisher = publisher
        self.events_topic = events_topic

    @tracer.capture_method
    def list_products(self) -> List[Product]:
        return self.products_db.list_products()

    @tracer.capture_method
    def get_product(self, product_id: str, request_id: str) -> Product:
        product = self.products_db.get_product(product_id)
        if product is None:
            raise ResourceNotFoundError(
                resource_type='Product',
                resource_id=product_id,
                context=create_error_context(request_id, 'get_product', product_id),
            )
        return product

    @tracer.capture_method
    def create_product(self, request: ProductRequest, request_id: str, email: str) -> Product:
        product = Product.create(**request.model_dump())
        self.products_db.put_product(product)

        metrics.add_metric(name='ProductCreated', unit=MetricUnit.Count, value=1)
        logger.info('Product created', extra={'product_id': product.id, 'product_code': product.code})

        self._publish(EventType.PRODUCT_CREATED, product, request_id, email)
        return product

    @tracer.capture_method
    def update_product(self, product_id: str, request: ProductRequest, request_id: str, email: str) -> Product:
        """
        Replace the attributes of an existing product, keeping its id.

        Raises:
            ResourceNotFoundError: If no product has that id
            DownstreamDeliveryError: If the product event could not be delivered
        """
        product = Product(id=product_id, **request.model_dump())
        if self.products_db.replace_product(product) is None:
            raise ResourceNotFoundError(
                resource_type='Product',
                resource_id=product_id,
                context=create_error_context(request_id, 'update_product', product_id),
            )

        logger.info('Product updated', extra={'product_id': product_id})
        self._publish(EventType.PRODUCT_UPDATED, product, request_id, email)
        return product

    @tracer.capture_method
    def delete_product(self, product_id: str, request_id: str, email: str) -> Product:
        """Delete a product and return the deleted record."""
        product = self.products_db.delete_product(product_id)
        if product is None:
            raise ResourceNotFoundError(
                resource_type='Product',
                resource_id=product_id,
                context=create_error_context(request_id, 'delete_product', product_id),
            )

        logger.info('Product deleted', extra={'product_id': product_id})
        self._publish(EventType.PRODUCT_DELETED, product, request_id, email)
        return product

    def _publish(self, event_type: EventType, product: Product, request_id: str, email: str) -> str:
        event = ProductEvent(
            request_id=request_id,
            event_type=event_type,
            product_id=product.id,
            product_code=product.code,
            product_price=product.price,
            email=email,
        )
        return self.publisher.publish(
            self.events_topic,
            event.to_payload(),
            {EVENT_TYPE_ATTRIBUTE: event_type.value},
        )

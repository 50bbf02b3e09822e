"""
Business logic of order creation and deletion.

Creating an order resolves every requested product first; the order is only
persisted when all of them exist, and only then is ORDER_CREATED published.
"""

from typing import List, Optional

from aws_lambda_powertools.metrics import MetricUnit

from ecommerce.dal.orders_db import OrdersDbHandler
from ecommerce.dal.products_db import ProductsDbHandler
from ecommerce.events.bus import EventPublisher
from ecommerce.handlers.utils.errors import (
    ProductsNotFoundError,
    ResourceNotFoundError,
    ValidationFailedError,
    create_error_context,
)
from ecommerce.handlers.utils.observability import logger, metrics, tracer
from ecommerce.models.events import EVENT_TYPE_ATTRIBUTE, EventType, OrderEvent, OrderEventEnvelope
from ecommerce.models.input import CreateOrderRequest
from ecommerce.models.order import Order


class OrderWorkflow:
    """Order submission, listing and deletion."""

    def __init__(
        self,
        products_db: ProductsDbHandler,
        orders_db: OrdersDbHandler,
        bus: EventPublisher,
        topic: str,
    ) -> None:
        """
        Initialize the workflow.

        Args:
            products_db: Products table handler, used to resolve ordered products
            orders_db: Orders table handler
            bus: Publisher of order lifecycle events
            topic: Order events topic
        """
        self.products_db = products_db
        self.orders_db = orders_db
        self.bus = bus
        self.topic = topic

    @tracer.capture_method
    def submit(self, request: CreateOrderRequest, request_id: str) -> Order:
        """
        Create an order.

        Args:
            request: Validated order request
            request_id: Id of the API request, carried by the order event

        Returns:
            The persisted order

        Raises:
            ProductsNotFoundError: If any requested product does not exist
            DownstreamDeliveryError: If ORDER_CREATED could not be published
        """
        logger.info('Submitting order', extra={
            'email': request.email,
            'product_count': len(request.product_ids),
            'request_id': request_id,
        })

        found = self.products_db.batch_get_products(request.product_ids)
        missing = [product_id for product_id in dict.fromkeys(request.product_ids) if product_id not in found]
        if missing:
            metrics.add_metric(name='ProductsNotFound', unit=MetricUnit.Count, value=1)
            logger.info('Order references unknown products', extra={'missing_product_ids': missing})
            raise ProductsNotFoundError(
                missing_ids=missing,
                context=create_error_context(request_id, 'submit_order', email=request.email),
            )

        order = Order.create(
            email=request.email,
            products=[found[product_id] for product_id in request.product_ids],
            payment=request.payment,
            shipping=request.shipping,
        )
        self.orders_db.put_order(order)

        metrics.add_metric(name='OrderCreated', unit=MetricUnit.Count, value=1)
        logger.info('Order created', extra={
            'order_id': order.id,
            'total_price': str(order.billing.total_price),
        })

        self._publish(EventType.ORDER_CREATED, order, request_id)
        return order

    @tracer.capture_method
    def list_orders(self, request_id: str, email: Optional[str] = None, order_id: Optional[str] = None) -> List[Order]:
        """
        List all orders, the orders of one customer, or exactly one order.

        Raises:
            ValidationFailedError: If ``order_id`` is given without ``email``
            ResourceNotFoundError: If the single requested order does not exist
        """
        if order_id and not email:
            raise ValidationFailedError(
                message='email is required when orderId is given',
                context=create_error_context(request_id, 'list_orders', order_id),
            )

        if email and order_id:
            order = self.orders_db.get_order(email, order_id)
            if order is None:
                raise ResourceNotFoundError(
                    resource_type='Order',
                    resource_id=order_id,
                    context=create_error_context(request_id, 'get_order', order_id, email=email),
                )
            return [order]

        if email:
            return self.orders_db.list_orders_by_email(email)
        return self.orders_db.list_orders()

    @tracer.capture_method
    def delete(self, email: str, order_id: str, request_id: str) -> Order:
        """Delete an order and publish ORDER_DELETED built from the deleted record."""
        order = self.orders_db.delete_order(email, order_id)
        if order is None:
            raise ResourceNotFoundError(
                resource_type='Order',
                resource_id=order_id,
                context=create_error_context(request_id, 'delete_order', order_id, email=email),
            )

        metrics.add_metric(name='OrderDeleted', unit=MetricUnit.Count, value=1)
        logger.info('Order deleted', extra={'order_id': order_id})

        self._publish(EventType.ORDER_DELETED, order, request_id)
        return order

    def _publish(self, event_type: EventType, order: Order, request_id: str) -> str:
        envelope = OrderEventEnvelope.wrap(event_type, OrderEvent.from_order(order, request_id))
        return self.bus.publish(self.topic, envelope.to_message(), {EVENT_TYPE_ATTRIBUTE: event_type.value})

"""
DynamoDB access to the orders table.

Orders are partitioned by customer email (``pk``) and sorted by order id
(``sk``). They are created and hard-deleted, never updated.
"""

from typing import Any, Dict, List, Optional

from boto3.dynamodb.conditions import Key

from ecommerce.dal.dynamodb_handler import DynamoDBHandler
from ecommerce.handlers.utils.observability import logger, tracer
from ecommerce.models.order import Order


class OrdersDbHandler:
    """Orders table handler."""

    def __init__(self, table_name: str, db: Optional[DynamoDBHandler] = None) -> None:
        self.table_name = table_name
        self.db = db or DynamoDBHandler(table_name)

    @tracer.capture_method
    def put_order(self, order: Order) -> Order:
        self.db.put_item(self._to_item(order))
        logger.debug('Order stored', extra={'order_id': order.id})
        return order

    @tracer.capture_method
    def get_order(self, email: str, order_id: str) -> Optional[Order]:
        item = self.db.get_item({'pk': email, 'sk': order_id})
        return self._to_order(item) if item else None

    @tracer.capture_method
    def list_orders(self) -> List[Order]:
        """Return the orders of every customer (paginated scan)."""
        return [self._to_order(item) for item in self.db.scan_all()]

    @tracer.capture_method
    def list_orders_by_email(self, email: str) -> List[Order]:
        """Return the orders of one customer, following pagination."""
        return [self._to_order(item) for item in self.db.query_all(Key('pk').eq(email))]

    @tracer.capture_method
    def delete_order(self, email: str, order_id: str) -> Optional[Order]:
        """Delete an order and return its prior state, or None if it did not exist."""
        old_item = self.db.delete_item({'pk': email, 'sk': order_id})
        return self._to_order(old_item) if old_item else None

    @staticmethod
    def _to_item(order: Order) -> Dict[str, Any]:
        item = order.model_dump(by_alias=True, exclude={'email', 'id'})
        item['pk'] = order.email
        item['sk'] = order.id
        return item

    @staticmethod
    def _to_order(item: Dict[str, Any]) -> Order:
        data = {key: value for key, value in item.items() if key not in ('pk', 'sk')}
        return Order.model_validate({**data, 'email': item['pk'], 'id': item['sk']})

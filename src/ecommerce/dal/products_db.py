"""
DynamoDB access to the products table.

Products are stored one item per product id, with the camelCase attribute
names of the API representation.
"""

from typing import Any, Dict, List, Optional

from boto3.dynamodb.conditions import Attr

from ecommerce.dal.dynamodb_handler import ConditionalCheckFailedError, DynamoDBHandler
from ecommerce.handlers.utils.observability import logger, tracer
from ecommerce.models.product import Product


class ProductsDbHandler:
    """Products table handler."""

    def __init__(self, table_name: str, db: Optional[DynamoDBHandler] = None) -> None:
        self.table_name = table_name
        self.db = db or DynamoDBHandler(table_name)

    @tracer.capture_method
    def list_products(self) -> List[Product]:
        """Return every product (paginated scan)."""
        return [self._to_product(item) for item in self.db.scan_all()]

    @tracer.capture_method
    def get_product(self, product_id: str) -> Optional[Product]:
        item = self.db.get_item({'id': product_id})
        return self._to_product(item) if item else None

    @tracer.capture_method
    def batch_get_products(self, product_ids: List[str]) -> Dict[str, Product]:
        """
        Fetch several products at once.

        Args:
            product_ids: Requested ids, possibly with duplicates

        Returns:
            Found products keyed by id; ids that do not exist are absent
        """
        unique_ids = list(dict.fromkeys(product_ids))
        if not unique_ids:
            return {}

        items = self.db.batch_get_items([{'id': product_id} for product_id in unique_ids])
        products = {item['id']: self._to_product(item) for item in items}

        logger.debug('Products resolved', extra={
            'requested': len(unique_ids),
            'found': len(products),
        })
        return products

    @tracer.capture_method
    def put_product(self, product: Product) -> Product:
        """Store a product, replacing any previous version with the same id."""
        self.db.put_item(product.model_dump(by_alias=True))
        return product

    @tracer.capture_method
    def replace_product(self, product: Product) -> Optional[Product]:
        """Overwrite an existing product; returns None if no product has that id."""
        try:
            self.db.put_item(product.model_dump(by_alias=True), condition_expression=Attr('id').exists())
        except ConditionalCheckFailedError:
            return None
        return product

    @tracer.capture_method
    def delete_product(self, product_id: str) -> Optional[Product]:
        """Delete a product and return what was stored, or None if absent."""
        old_item = self.db.delete_item({'id': product_id})
        return self._to_product(old_item) if old_item else None

    @staticmethod
    def _to_product(item: Dict[str, Any]) -> Product:
        return Product.model_validate(item)

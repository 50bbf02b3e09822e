"""
Order domain model.

An order belongs to a customer (email) and holds a snapshot of the code and
price of every ordered product, taken when the order was created. Orders are
never updated in place.
"""

import time
from decimal import Decimal
from enum import Enum
from typing import Annotated, List, Sequence
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ecommerce.models.product import Product
from ecommerce.models.types import Money


class PaymentMethod(str, Enum):
    """Accepted payment methods."""

    CASH = 'CASH'
    DEBIT_CARD = 'DEBIT_CARD'
    CREDIT_CARD = 'CREDIT_CARD'


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OrderProduct(_CamelModel):
    """Product snapshot captured at order creation."""

    code: str
    price: Money


class Billing(_CamelModel):
    payment: PaymentMethod
    total_price: Money


class Shipping(_CamelModel):
    type: str
    carrier: str


class Order(_CamelModel):
    """Core Order domain model."""

    email: Annotated[str, Field(description='Customer email, the partition of the order')]

    id: Annotated[str, Field(
        description='Unique identifier of the order within the customer',
        examples=['b8e0e4f5-3b4c-4b0e-8a4c-0f0f4cbb7b2e']
    )]

    created_at: Annotated[int, Field(description='Creation time in epoch milliseconds')]

    products: List[OrderProduct]

    billing: Billing

    shipping: Shipping

    @property
    def product_codes(self) -> List[str]:
        return [product.code for product in self.products]

    @classmethod
    def create(
        cls,
        email: str,
        products: Sequence[Product],
        payment: PaymentMethod,
        shipping: Shipping,
    ) -> 'Order':
        """
        Create a new order from resolved catalog products.

        The total price is computed here from the snapshot prices; a price sent
        by the client is never used.

        Args:
            email: Customer email
            products: Resolved products, in the order they were requested
            payment: Payment method
            shipping: Shipping information

        Returns:
            New Order instance with generated id and creation timestamp
        """
        snapshots = [OrderProduct(code=product.code, price=product.price) for product in products]
        total_price = sum((snapshot.price for snapshot in snapshots), Decimal('0'))

        return cls(
            email=email,
            id=str(uuid4()),
            created_at=int(time.time() * 1000),
            products=snapshots,
            billing=Billing(payment=payment, total_price=total_price),
            shipping=shipping,
        )

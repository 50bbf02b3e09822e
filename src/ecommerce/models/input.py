"""
Input models for request validation using Pydantic.

This module defines the request bodies accepted by the products and orders
APIs. Field names on the wire are camelCase.
"""

import re
from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ecommerce.models.order import PaymentMethod, Shipping
from ecommerce.models.types import Money

EMAIL_PATTERN = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'


class ProductRequest(BaseModel):
    """Request model for creating or replacing a product."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    product_name: Annotated[str, Field(
        min_length=1,
        description='Display name of the product',
        examples=['Notebook']
    )]

    code: Annotated[str, Field(
        min_length=1,
        description='Product code',
        examples=['COD4']
    )]

    price: Annotated[Money, Field(
        ge=0,
        description='Unit price',
        examples=[40.5]
    )]

    model: Optional[str] = None

    product_url: Optional[str] = None


class CreateOrderRequest(BaseModel):
    """Request model for creating a new order."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    email: Annotated[str, Field(
        description='Customer email address',
        examples=['john.doe@example.com']
    )]

    product_ids: Annotated[List[str], Field(
        min_length=1,
        description='Identifiers of the ordered products',
        examples=[['p1', 'p2']]
    )]

    payment: Annotated[PaymentMethod, Field(
        description='Payment method',
        examples=['CREDIT_CARD']
    )]

    shipping: Shipping

    @field_validator('email')
    @classmethod
    def validate_email_format(cls, v: str) -> str:
        """Validate email format."""
        if not re.match(EMAIL_PATTERN, v):
            raise ValueError('Invalid email format')
        return v

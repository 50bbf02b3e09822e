"""
Product domain model.

Products are stored one item per product id and are replaced as a whole on
update (last write wins).
"""

from typing import Annotated, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ecommerce.models.types import Money


class Product(BaseModel):
    """Catalog product as stored in the products table."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: Annotated[str, Field(
        description='Unique identifier for the product',
        examples=['63aa2a0c-6647-41cd-a2c2-f3d2a2cd1a22']
    )]

    product_name: Annotated[str, Field(
        min_length=1,
        description='Display name of the product',
        examples=['Notebook']
    )]

    code: Annotated[str, Field(
        min_length=1,
        description='Product code, used as the product key in the event log',
        examples=['COD4']
    )]

    price: Annotated[Money, Field(
        ge=0,
        description='Unit price',
        examples=[40.5]
    )]

    model: Optional[str] = None

    product_url: Optional[str] = None

    @classmethod
    def create(cls, **attributes) -> 'Product':
        """Create a product with a freshly generated identity."""
        return cls(id=str(uuid4()), **attributes)

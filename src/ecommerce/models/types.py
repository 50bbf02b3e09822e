"""Shared field types for the domain models."""

from decimal import Decimal
from typing import Annotated, Union

from pydantic import PlainSerializer


def _decimal_to_number(value: Decimal) -> Union[int, float]:
    # DynamoDB hands numbers back as Decimal; JSON clients expect plain numbers
    if value == value.to_integral_value():
        return int(value)
    return float(value)


# Kept as Decimal in Python so DynamoDB accepts it, rendered as a number in JSON
Money = Annotated[Decimal, PlainSerializer(_decimal_to_number, return_type=Union[int, float], when_used='json')]

"""
app/validators package marker.
"""

from app.validators.sales_value_parser import (
    SalesRowNormalizer,
    parse_quantity,
    parse_sale_date,
    parse_text,
)

__all__ = [
    "SalesRowNormalizer",
    "parse_quantity",
    "parse_sale_date",
    "parse_text",
]

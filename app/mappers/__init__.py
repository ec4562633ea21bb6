"""
app/mappers package marker.
"""

from app.mappers.sales_field_mapper import (
    CANONICAL_FIELDS,
    DEFAULT_FIELD_SYNONYMS,
    FieldMapping,
    SalesFieldMapper,
    normalize_header,
)

__all__ = [
    "CANONICAL_FIELDS",
    "DEFAULT_FIELD_SYNONYMS",
    "FieldMapping",
    "SalesFieldMapper",
    "normalize_header",
]

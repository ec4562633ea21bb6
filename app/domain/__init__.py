"""
app/domain package marker.
"""

from app.domain.sales import (
    CANONICAL_HEADERS,
    CanonicalSalesRecord,
    IngestionSummary,
    SalesRecordInput,
)

__all__ = [
    "CANONICAL_HEADERS",
    "CanonicalSalesRecord",
    "IngestionSummary",
    "SalesRecordInput",
]

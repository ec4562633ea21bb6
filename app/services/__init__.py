"""
app/services package marker.
"""

from app.services.auth_service import AuthenticationError, AuthService, AuthStoreError, RegistrationError
from app.services.export_service import NoDataToExportError, SalesExportService
from app.services.geo_service import GeoBucketingService
from app.services.record_query_service import RecordQueryService
from app.services.sales_aggregation_service import SalesAggregationService
from app.services.sales_ingestion_service import (
    SalesIngestionService,
    SalesPersistenceError,
    WorkbookDecodeError,
)

__all__ = [
    "AuthenticationError",
    "AuthService",
    "AuthStoreError",
    "GeoBucketingService",
    "NoDataToExportError",
    "RecordQueryService",
    "RegistrationError",
    "SalesAggregationService",
    "SalesExportService",
    "SalesIngestionService",
    "SalesPersistenceError",
    "WorkbookDecodeError",
]

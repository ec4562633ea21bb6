"""
app/schemas package marker.
"""

from app.schemas.auth import AuthSessionResponse, AuthUserResponse, SignInRequest, SignUpRequest
from app.schemas.sales import (
    AnalyticsSummaryResponse,
    DeleteResponse,
    FilterOptionsResponse,
    HeatmapBucketResponse,
    IngestionSummaryResponse,
    RecordPageResponse,
    SalesRecordResponse,
    SourceFileResponse,
)

__all__ = [
    "AnalyticsSummaryResponse",
    "AuthSessionResponse",
    "AuthUserResponse",
    "DeleteResponse",
    "FilterOptionsResponse",
    "HeatmapBucketResponse",
    "IngestionSummaryResponse",
    "RecordPageResponse",
    "SalesRecordResponse",
    "SignInRequest",
    "SignUpRequest",
    "SourceFileResponse",
]

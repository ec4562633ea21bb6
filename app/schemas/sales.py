"""
app/schemas/sales.py

Response schemas for records, ingestion, and analytics endpoints.
"""

from __future__ import annotations

import datetime as dt
import uuid

from pydantic import BaseModel, ConfigDict, Field


class SalesRecordResponse(BaseModel):
    """
    API response model for one stored sales record.
    """

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID | None = None
    salesperson_name: str
    city: str
    business_type: str
    presentation: str
    quantity: float = Field(..., ge=0)
    date: dt.date
    source_file: str | None = None


class RecordPageResponse(BaseModel):
    items: list[SalesRecordResponse] = Field(default_factory=list)
    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    page_size: int = Field(..., ge=1)
    total_pages: int = Field(..., ge=1)
    sort_field: str
    sort_direction: str


class IngestionSummaryResponse(BaseModel):
    """
    API response model for one workbook upload.
    """

    rows_processed: int = Field(..., ge=0)
    source_file: str


class DeleteResponse(BaseModel):
    deleted: int = Field(..., ge=0)
    skipped_without_id: int = Field(default=0, ge=0)


class SourceFileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    source_file: str
    record_count: int = Field(..., ge=0)
    latest_date: dt.date | None = None


class FilterOptionsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    cities: list[str] = Field(default_factory=list)
    businesses: list[str] = Field(default_factory=list)
    source_files: list[str] = Field(default_factory=list)


class GroupTotalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    label: str
    value: float


class MonthlyPointResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    month: str
    value: float


class KPIResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    record_count: int = Field(..., ge=0)
    total_quantity: float = Field(..., ge=0)
    mean_quantity: int = Field(..., ge=0)
    distinct_cities: int = Field(..., ge=0)
    distinct_businesses: int = Field(..., ge=0)


class AnalyticsSummaryResponse(BaseModel):
    """
    KPIs, grouped totals, monthly series, and top salespeople for one owner.
    """

    model_config = ConfigDict(from_attributes=True)

    kpis: KPIResponse
    by_city: list[GroupTotalResponse] = Field(default_factory=list)
    by_business: list[GroupTotalResponse] = Field(default_factory=list)
    monthly: list[MonthlyPointResponse] = Field(default_factory=list)
    top_salespeople: list[GroupTotalResponse] = Field(default_factory=list)


class HeatmapBucketResponse(BaseModel):
    name: str
    latitude: float
    longitude: float
    count: int = Field(..., ge=0)
    intensity: float = Field(..., ge=0, le=1)

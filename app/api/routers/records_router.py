"""
app/api/routers/records_router.py

Sales record HTTP endpoints: list, upload, delete, provenance, filter options.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, UploadFile, status

from app.api.dependencies import get_dashboard_session, get_workbook_upload
from app.schemas.sales import (
    DeleteResponse,
    FilterOptionsResponse,
    IngestionSummaryResponse,
    RecordPageResponse,
    SalesRecordResponse,
    SourceFileResponse,
)
from app.services.dashboard_session import DashboardSession, RecordDeletionError, RecordLoadError
from app.services.sales_ingestion_service import SalesPersistenceError, WorkbookDecodeError

router = APIRouter(prefix="/records", tags=["records"])


@router.get("", response_model=RecordPageResponse)
def list_records(dashboard: DashboardSession = Depends(get_dashboard_session)) -> RecordPageResponse:
    """
    One page of the caller's records after filtering and sorting.
    """

    result = dashboard.page()
    return RecordPageResponse(
        items=[SalesRecordResponse.model_validate(record) for record in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        total_pages=result.total_pages,
        sort_field=dashboard.view.sort.field,
        sort_direction=dashboard.view.sort.direction,
    )


@router.post("/upload", response_model=IngestionSummaryResponse)
def upload_workbook(
    file: UploadFile = Depends(get_workbook_upload),
    dashboard: DashboardSession = Depends(get_dashboard_session),
) -> IngestionSummaryResponse:
    """
    Ingest the first sheet of one workbook for the caller.
    """

    try:
        content = file.file.read()
        summary = dashboard.upload(content=content, filename=file.filename or "upload.xlsx")
    except WorkbookDecodeError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except SalesPersistenceError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Unable to persist uploaded rows.",
        ) from exc
    except RecordLoadError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Rows were saved but records could not be reloaded.",
        ) from exc
    finally:
        file.file.close()

    return IngestionSummaryResponse(
        rows_processed=summary.rows_processed,
        source_file=summary.source_file,
    )


@router.post("/bulk-delete", response_model=DeleteResponse)
def bulk_delete(dashboard: DashboardSession = Depends(get_dashboard_session)) -> DeleteResponse:
    """
    Delete every record matching the current filters.
    """

    try:
        result = dashboard.bulk_delete()
    except RecordDeletionError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    return DeleteResponse(deleted=result.deleted, skipped_without_id=result.skipped_without_id)


@router.get("/files", response_model=list[SourceFileResponse])
def list_source_files(dashboard: DashboardSession = Depends(get_dashboard_session)) -> list[SourceFileResponse]:
    return [SourceFileResponse.model_validate(item) for item in dashboard.source_files()]


@router.get("/options", response_model=FilterOptionsResponse)
def filter_options(dashboard: DashboardSession = Depends(get_dashboard_session)) -> FilterOptionsResponse:
    return FilterOptionsResponse.model_validate(dashboard.filter_options())


@router.delete("/{record_id}", response_model=DeleteResponse)
def delete_record(
    record_id: uuid.UUID,
    dashboard: DashboardSession = Depends(get_dashboard_session),
) -> DeleteResponse:
    try:
        deleted = dashboard.delete_record(record_id)
    except RecordDeletionError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    if deleted == 0:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Record not found.")
    return DeleteResponse(deleted=deleted)

"""
app/api/routers/export_router.py

File download endpoints.

GET /export/records.csv     filtered records, unescaped CSV (``quote=true`` for RFC 4180)
GET /export/records.xlsx    filtered records, styled workbook
GET /export/report.xlsx     analytics report workbook over all records
GET /export/report.pdf      analytics report PDF with charts over all records
GET /export/template.xlsx   upload template

All encoding lives in SalesExportService; the router only handles HTTP
plumbing (content-type, attachment headers, error mapping).
"""

from __future__ import annotations

import datetime as dt
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from app.api.dependencies import get_app_context, get_current_session, get_dashboard_session
from app.context import AppContext
from app.services.auth_service import AuthSessionInfo
from app.services.dashboard_session import DashboardSession
from app.services.export_service import ExportPayload, NoDataToExportError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/export", tags=["export"])


def _attachment(payload: ExportPayload) -> Response:
    return Response(
        content=payload.content,
        media_type=payload.media_type,
        headers={"Content-Disposition": f'attachment; filename="{payload.filename}"'},
    )


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


@router.get("/records.csv")
def export_records_csv(
    quote: bool = Query(default=False, description="Quote fields per RFC 4180"),
    dashboard: DashboardSession = Depends(get_dashboard_session),
) -> Response:
    return _attachment(dashboard.export_csv(today=_utcnow().date(), quote_fields=quote))


@router.get("/records.xlsx")
def export_records_workbook(dashboard: DashboardSession = Depends(get_dashboard_session)) -> Response:
    return _attachment(dashboard.export_workbook(today=_utcnow().date()))


@router.get("/report.xlsx")
def export_report_workbook(dashboard: DashboardSession = Depends(get_dashboard_session)) -> Response:
    try:
        payload = dashboard.report_workbook(generated_at=_utcnow())
    except NoDataToExportError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return _attachment(payload)


@router.get("/report.pdf")
def export_report_pdf(dashboard: DashboardSession = Depends(get_dashboard_session)) -> Response:
    try:
        payload = dashboard.report_pdf(generated_at=_utcnow())
    except NoDataToExportError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception("PDF report generation failed owner_id=%s", dashboard.owner_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error al generar el PDF.",
        ) from exc
    return _attachment(payload)


@router.get("/template.xlsx")
def export_template(
    _: AuthSessionInfo = Depends(get_current_session),
    context: AppContext = Depends(get_app_context),
) -> Response:
    return _attachment(context.exporter.template_workbook(today=_utcnow().date()))

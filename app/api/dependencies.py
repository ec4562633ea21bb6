"""
app/api/dependencies.py

Shared FastAPI dependencies for request validation and auth.
"""

from __future__ import annotations

from fastapi import Depends, File, HTTPException, Query, Request, UploadFile, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.context import AppContext
from app.services.auth_service import AuthSessionInfo
from app.services.dashboard_session import DashboardSession, RecordLoadError
from app.services.record_query_service import DEFAULT_PAGE_SIZE, FilterSpec, SortSpec, TableViewState
from app.services.sales_ingestion_service import WORKBOOK_EXTENSIONS

WORKBOOK_CONTENT_TYPES = {
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-excel",
}

bearer_scheme = HTTPBearer(auto_error=False)


def get_app_context(request: Request) -> AppContext:
    """
    Return the context built at startup and stored on ``app.state``.
    """

    return request.app.state.context


def get_workbook_upload(file: UploadFile = File(...)) -> UploadFile:
    """
    Validate that the uploaded file is an .xlsx/.xls workbook by extension or MIME type.
    """

    filename = (file.filename or "").strip().lower()
    content_type = (file.content_type or "").strip().lower()

    is_workbook_filename = filename.endswith(WORKBOOK_EXTENSIONS)
    is_workbook_content_type = content_type in WORKBOOK_CONTENT_TYPES

    if not is_workbook_filename and not is_workbook_content_type:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only .xlsx or .xls files are allowed.",
        )

    return file


def get_current_session(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    context: AppContext = Depends(get_app_context),
) -> AuthSessionInfo:
    """
    Resolve the bearer token to a live session or reject with 401.
    """

    token = credentials.credentials if credentials is not None else None
    session = context.auth.get_session(token)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return session


def get_table_view(
    city: str | None = Query(default=None, description="Exact city filter"),
    business: str | None = Query(default=None, description="Exact business type filter"),
    quantity_min: float | None = Query(default=None, ge=0),
    quantity_max: float | None = Query(default=None, ge=0),
    source_file: str | None = Query(default=None, description="Exact upload file name"),
    search: str | None = Query(default=None, description="Case-insensitive text search"),
    sort_field: str = Query(default="date"),
    sort_direction: str = Query(default="desc"),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=500),
) -> TableViewState:
    """
    Build the records table view from query parameters.
    """

    try:
        sort = SortSpec(field=sort_field, direction=sort_direction)  # type: ignore[arg-type]
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return TableViewState(
        filters=FilterSpec(
            city=city,
            business=business,
            quantity_min=quantity_min,
            quantity_max=quantity_max,
            source_file=source_file,
            search_text=search,
        ),
        sort=sort,
        page=page,
        page_size=page_size,
    )


def get_dashboard_session(
    session: AuthSessionInfo = Depends(get_current_session),
    context: AppContext = Depends(get_app_context),
    view: TableViewState = Depends(get_table_view),
) -> DashboardSession:
    """
    Dashboard session for the caller with the owner's records loaded.
    """

    dashboard = DashboardSession(context, owner_id=session.user.id, view=view)
    try:
        dashboard.reload()
    except RecordLoadError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Unable to load sales records.",
        ) from exc
    return dashboard

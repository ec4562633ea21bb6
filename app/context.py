"""
app/context.py

Explicit application context: settings, the session factory and the
services built on top of them. The API keeps one on ``app.state``; the
Streamlit client caches one per process; tests build their own.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import sessionmaker

from app.config import (
    AuthSettings,
    DashboardSettings,
    IngestionSettings,
    get_auth_settings,
    get_dashboard_settings,
    get_ingestion_settings,
)
from app.services.auth_service import AuthService
from app.services.export_service import SalesExportService
from app.services.geo_service import GeoBucketingService
from app.services.record_query_service import RecordQueryService
from app.services.sales_aggregation_service import SalesAggregationService
from app.services.sales_ingestion_service import SalesIngestionService
from db.session import get_session_factory


@dataclass(frozen=True)
class AppContext:
    session_factory: sessionmaker
    settings: DashboardSettings
    auth: AuthService
    ingestion: SalesIngestionService
    aggregator: SalesAggregationService
    query: RecordQueryService
    exporter: SalesExportService
    geo: GeoBucketingService


def build_app_context(
    *,
    session_factory: sessionmaker | None = None,
    auth_settings: AuthSettings | None = None,
    ingestion_settings: IngestionSettings | None = None,
    dashboard_settings: DashboardSettings | None = None,
) -> AppContext:
    """
    Wire every service against one session factory.

    Settings default to the environment-driven values.
    """

    factory = session_factory or get_session_factory()
    auth_settings = auth_settings or get_auth_settings()
    ingestion_settings = ingestion_settings or get_ingestion_settings()
    dashboard_settings = dashboard_settings or get_dashboard_settings()

    if not auth_settings.secret_key:
        raise RuntimeError("AUTH_SECRET_KEY must be set.")

    aggregator = SalesAggregationService()
    return AppContext(
        session_factory=factory,
        settings=dashboard_settings,
        auth=AuthService(
            session_factory=factory,
            secret_key=auth_settings.secret_key,
            algorithm=auth_settings.algorithm,
            token_ttl_minutes=auth_settings.token_ttl_minutes,
            min_password_length=auth_settings.min_password_length,
        ),
        ingestion=SalesIngestionService(
            max_rows=ingestion_settings.max_rows,
            log_rows=ingestion_settings.log_rows,
        ),
        aggregator=aggregator,
        query=RecordQueryService(),
        exporter=SalesExportService(
            brand=dashboard_settings.brand,
            top_n=dashboard_settings.report_top_n,
            aggregator=aggregator,
        ),
        geo=GeoBucketingService(),
    )

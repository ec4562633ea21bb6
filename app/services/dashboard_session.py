"""
app/services/dashboard_session.py

Per-user dashboard state: the owner's loaded records plus the table view.

Every mutation (upload, delete, bulk delete) is followed by a full reload
from the store, so the in-memory list never diverges from what is persisted.
"""

from __future__ import annotations

import datetime as dt
import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError

from app.context import AppContext
from app.domain.sales import CanonicalSalesRecord, IngestionSummary
from app.logging_utils import log_event
from app.repositories.sales_record_repository import SalesRecordRepository
from app.services.export_service import ExportPayload
from app.services.geo_service import LocationBucket
from app.services.record_query_service import PageResult, TableViewState
from app.services.sales_aggregation_service import AnalyticsSnapshot, SourceFileSummary

logger = logging.getLogger(__name__)


class RecordLoadError(RuntimeError):
    """
    Raised when the owner's records cannot be read from the store.
    """


class RecordDeletionError(RuntimeError):
    """
    Raised when a delete cannot be applied to the store.
    """


@dataclass(frozen=True)
class FilterOptions:
    """Sorted distinct values offered by the filter dropdowns."""

    cities: list[str]
    businesses: list[str]
    source_files: list[str]


@dataclass(frozen=True)
class BulkDeleteResult:
    deleted: int
    skipped_without_id: int


class DashboardSession:
    """
    Owns the loaded record list of one authenticated owner.
    """

    def __init__(
        self,
        context: AppContext,
        *,
        owner_id: uuid.UUID,
        view: TableViewState | None = None,
    ) -> None:
        self._context = context
        self.owner_id = owner_id
        self.view = view or TableViewState(page_size=context.settings.default_page_size)
        self._records: list[CanonicalSalesRecord] = []

    @property
    def records(self) -> tuple[CanonicalSalesRecord, ...]:
        return tuple(self._records)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def reload(self) -> list[CanonicalSalesRecord]:
        """
        Replace the in-memory list with the owner's stored records.
        """

        try:
            with self._context.session_factory() as db:
                self._records = SalesRecordRepository(db).list_by_owner(self.owner_id)
        except SQLAlchemyError as exc:
            logger.error("Failed to load records owner_id=%s: %s", self.owner_id, exc)
            raise RecordLoadError("Could not load sales records.") from exc
        logger.debug("Loaded records owner_id=%s count=%s", self.owner_id, len(self._records))
        return list(self._records)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def upload(self, *, content: bytes, filename: str) -> IngestionSummary:
        with self._context.session_factory() as db:
            summary = self._context.ingestion.ingest_workbook(
                content=content,
                filename=filename,
                owner_id=self.owner_id,
                db=db,
            )
        self.reload()
        self.view.reset_page()
        return summary

    def delete_record(self, record_id: uuid.UUID) -> int:
        with self._context.session_factory() as db:
            try:
                deleted = SalesRecordRepository(db).delete_by_id(owner_id=self.owner_id, record_id=record_id)
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                log_event(
                    logger,
                    logging.ERROR,
                    "record_delete_failed",
                    owner_id=self.owner_id,
                    record_id=record_id,
                    error=str(exc),
                )
                raise RecordDeletionError("Could not delete the record.") from exc

        log_event(logger, logging.INFO, "record_deleted", owner_id=self.owner_id, record_id=record_id, deleted=deleted)
        self.reload()
        return deleted

    def bulk_delete(self, records: Sequence[CanonicalSalesRecord] | None = None) -> BulkDeleteResult:
        """
        Delete *records* (default: the currently filtered set) in one statement.

        Records without an id are skipped with a warning.
        """

        targets = self.filtered() if records is None else list(records)
        ids = [record.id for record in targets if record.id is not None]
        skipped = len(targets) - len(ids)
        if skipped:
            logger.warning("Bulk delete skipped records without id count=%s", skipped)
        if not ids:
            return BulkDeleteResult(deleted=0, skipped_without_id=skipped)

        with self._context.session_factory() as db:
            try:
                deleted = SalesRecordRepository(db).delete_by_ids(owner_id=self.owner_id, record_ids=ids)
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                log_event(
                    logger,
                    logging.ERROR,
                    "bulk_delete_failed",
                    owner_id=self.owner_id,
                    requested=len(ids),
                    error=str(exc),
                )
                raise RecordDeletionError("Could not delete the selected records.") from exc

        log_event(logger, logging.INFO, "bulk_deleted", owner_id=self.owner_id, requested=len(ids), deleted=deleted)
        self.reload()
        self.view.reset_page()
        return BulkDeleteResult(deleted=deleted, skipped_without_id=skipped)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def filtered(self) -> list[CanonicalSalesRecord]:
        """Filtered and sorted records, before pagination."""
        query = self._context.query
        matched = query.filter_records(self._records, self.view.filters)
        return query.sort_records(matched, self.view.sort)

    def page(self) -> PageResult:
        result = self._context.query.paginate(self.filtered(), self.view.page_request())
        self.view.page = result.page
        return result

    def analytics(self) -> AnalyticsSnapshot:
        return self._context.aggregator.snapshot(self._records, top_n=self._context.settings.report_top_n)

    def heatmap(self) -> list[LocationBucket]:
        return self._context.geo.bucket(self._records)

    def source_files(self) -> list[SourceFileSummary]:
        return self._context.aggregator.source_files(self._records)

    def filter_options(self) -> FilterOptions:
        aggregator = self._context.aggregator
        return FilterOptions(
            cities=aggregator.distinct_values(self._records, lambda record: record.city),
            businesses=aggregator.distinct_values(self._records, lambda record: record.business_type),
            source_files=aggregator.distinct_values(self._records, lambda record: record.source_file or ""),
        )

    # ------------------------------------------------------------------
    # Exports
    # ------------------------------------------------------------------

    def export_csv(self, *, today: dt.date, quote_fields: bool = False) -> ExportPayload:
        return self._context.exporter.records_csv(self.filtered(), today=today, quote_fields=quote_fields)

    def export_workbook(self, *, today: dt.date) -> ExportPayload:
        return self._context.exporter.records_workbook(self.filtered(), today=today)

    def report_workbook(self, *, generated_at: dt.datetime) -> ExportPayload:
        return self._context.exporter.report_workbook(self._records, generated_at=generated_at)

    def report_pdf(self, *, generated_at: dt.datetime) -> ExportPayload:
        return self._context.exporter.report_pdf(self._records, generated_at=generated_at)

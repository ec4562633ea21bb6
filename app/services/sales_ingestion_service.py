"""
app/services/sales_ingestion_service.py

Service layer for the workbook upload workflow.

One upload is one transaction: the first sheet is decoded, every non-empty
row is normalized in sheet order, and the whole batch is inserted and
committed together. A decode failure persists nothing; a store failure rolls
the batch back. There is no retry.
"""

from __future__ import annotations

import datetime as dt
import io
import logging
import time
import uuid
import zipfile
from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

import pandas as pd
import xlrd
from openpyxl import load_workbook
from openpyxl.utils.datetime import MAC_EPOCH, WINDOWS_EPOCH
from openpyxl.utils.exceptions import InvalidFileException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.sales import IngestionSummary, SalesRecordInput
from app.logging_utils import elapsed_ms, log_event
from app.mappers.sales_field_mapper import SalesFieldMapper
from app.repositories.sales_record_repository import SalesRecordRepository
from app.validators.sales_value_parser import SalesRowNormalizer

logger = logging.getLogger(__name__)

WORKBOOK_EXTENSIONS: tuple[str, ...] = (".xlsx", ".xls")


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class WorkbookDecodeError(ValueError):
    """
    Raised when an upload cannot be read as a spreadsheet workbook.
    """


class SalesPersistenceError(RuntimeError):
    """
    Raised when the normalized batch cannot be persisted.
    """


# ---------------------------------------------------------------------------
# Workbook decoding
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DecodedSheet:
    """
    First sheet of a workbook as header-keyed row mappings.
    """

    headers: tuple[str, ...]
    rows: list[dict[str, Any]] = field(default_factory=list)
    epoch: dt.datetime = WINDOWS_EPOCH


def _header_keys(raw_headers: Sequence[Any]) -> tuple[str, ...]:
    """Blank headers get positional names; repeated headers get a numeric suffix."""
    keys: list[str] = []
    seen: dict[str, int] = {}
    for index, raw in enumerate(raw_headers):
        text = str(raw).strip() if raw is not None else ""
        key = text or f"__column_{index + 1}"
        if key in seen:
            seen[key] += 1
            key = f"{key}_{seen[key]}"
        else:
            seen[key] = 0
        keys.append(key)
    return tuple(keys)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _rows_from_values(
    values: Iterable[Sequence[Any]],
    *,
    max_rows: int,
) -> tuple[tuple[str, ...], list[dict[str, Any]]]:
    iterator = iter(values)
    header_values = next(iterator, None)
    if header_values is None:
        return (), []

    headers = _header_keys(header_values)
    rows: list[dict[str, Any]] = []
    for raw_values in iterator:
        row = {
            header: raw_values[index] if index < len(raw_values) else None
            for index, header in enumerate(headers)
        }
        if all(_is_blank(value) for value in row.values()):
            continue
        rows.append(row)
        if len(rows) > max_rows:
            raise WorkbookDecodeError(f"Workbook exceeds the {max_rows} row limit.")
    return headers, rows


def _decode_xlsx(content: bytes, *, max_rows: int) -> DecodedSheet:
    try:
        workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError) as exc:
        raise WorkbookDecodeError("File is not a readable .xlsx workbook.") from exc

    try:
        if not workbook.worksheets:
            raise WorkbookDecodeError("Workbook has no sheets.")
        sheet = workbook.worksheets[0]
        headers, rows = _rows_from_values(sheet.iter_rows(values_only=True), max_rows=max_rows)
        return DecodedSheet(headers=headers, rows=rows, epoch=workbook.epoch)
    finally:
        workbook.close()


def _decode_xls(content: bytes, *, max_rows: int) -> DecodedSheet:
    try:
        book = xlrd.open_workbook(file_contents=content)
        frame = pd.read_excel(
            book,
            sheet_name=0,
            header=None,
            dtype=object,
            engine="xlrd",
        )
    except (xlrd.XLRDError, ValueError, OSError, IndexError) as exc:
        raise WorkbookDecodeError("File is not a readable .xls workbook.") from exc

    frame = frame.astype(object).where(frame.notna(), None)
    values = [
        [value.to_pydatetime() if isinstance(value, pd.Timestamp) else value for value in record]
        for record in frame.itertuples(index=False, name=None)
    ]
    headers, rows = _rows_from_values(values, max_rows=max_rows)
    epoch = MAC_EPOCH if book.datemode == 1 else WINDOWS_EPOCH
    return DecodedSheet(headers=headers, rows=rows, epoch=epoch)


def decode_workbook(content: bytes, filename: str, *, max_rows: int) -> DecodedSheet:
    """
    Decode the first sheet of an .xlsx or .xls upload.
    """

    if not content:
        raise WorkbookDecodeError("Uploaded file is empty.")
    if filename.strip().lower().endswith(".xls"):
        return _decode_xls(content, max_rows=max_rows)
    return _decode_xlsx(content, max_rows=max_rows)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class SalesIngestionService:
    """
    Coordinates workbook decoding, header mapping, normalization, and persistence.
    """

    def __init__(
        self,
        *,
        max_rows: int,
        log_rows: bool,
        mapper: SalesFieldMapper | None = None,
        normalizer: SalesRowNormalizer | None = None,
    ) -> None:
        self._max_rows = max(1, max_rows)
        self._log_rows = log_rows
        self._mapper = mapper or SalesFieldMapper()
        self._normalizer = normalizer or SalesRowNormalizer()

    def normalize_sheet(self, sheet: DecodedSheet) -> list[SalesRecordInput]:
        """
        Normalize every decoded row in sheet order.
        """

        mapping = self._mapper.resolve_mapping(sheet.headers)
        if mapping.missing_fields:
            logger.info(
                "Workbook headers did not match fields=%s headers=%s; defaults applied",
                list(mapping.missing_fields),
                list(sheet.headers),
            )

        normalized: list[SalesRecordInput] = []
        for row_number, raw_row in enumerate(sheet.rows, start=2):
            mapped_row = self._mapper.map_row(raw_row=raw_row, mapping=mapping)
            record = self._normalizer.normalize_row(mapped_row=mapped_row, epoch=sheet.epoch)
            if self._log_rows:
                logger.debug("Normalized row=%s record=%r", row_number, record)
            normalized.append(record)
        return normalized

    def ingest_workbook(
        self,
        *,
        content: bytes,
        filename: str,
        owner_id: uuid.UUID,
        db: Session,
    ) -> IngestionSummary:
        """
        Decode, normalize, and persist one workbook for *owner_id*.

        Args:
            content:   Raw upload bytes.
            filename:  Original file name; stored as each record's source_file.
            owner_id:  Authenticated account id.
            db:        Active SQLAlchemy session (caller owns lifecycle).
        """
        started = time.perf_counter()
        sheet = decode_workbook(content, filename, max_rows=self._max_rows)
        records = self.normalize_sheet(sheet)

        record_ids: list[uuid.UUID] = []
        if records:
            repository = SalesRecordRepository(db)
            try:
                record_ids = repository.bulk_insert(
                    records,
                    owner_id=owner_id,
                    source_file=filename,
                )
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                log_event(
                    logger,
                    logging.ERROR,
                    "ingestion_failed",
                    owner_id=owner_id,
                    source_file=filename,
                    rows=len(records),
                    error=str(exc),
                )
                raise SalesPersistenceError("Failed to persist uploaded sales rows.") from exc

        log_event(
            logger,
            logging.INFO,
            "ingestion_completed",
            owner_id=owner_id,
            source_file=filename,
            rows=len(records),
            duration_ms=elapsed_ms(started),
        )
        return IngestionSummary(
            rows_processed=len(records),
            source_file=filename,
            record_ids=tuple(record_ids),
        )


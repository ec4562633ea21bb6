"""
app/services/export_service.py

Export encoders for the records table and the analytics report.

Outputs
-------
    records CSV      canonical header order, one line per record
    records XLSX     styled sheet: dark bold header, thin borders, number formats
    report XLSX      title, generation time, KPIs, ranked city/business tables
    report PDF       the report text plus four chart snapshots, paginated
    template XLSX    canonical headers and one example row

CSV fields are written unquoted by default, matching the files the dashboard
has always produced; ``quote_fields=True`` switches to RFC 4180 quoting.

Every encoder is read-only over the records it receives. The caller decides
which records (usually the filtered table) are exported.
"""

from __future__ import annotations

import csv
import datetime as dt
import io
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from app.domain.sales import CANONICAL_HEADERS, CanonicalSalesRecord
from app.logging_utils import log_event
from app.services.chart_renderer import chart_builders, rasterize
from app.services.report_pdf_renderer import BUSINESS_TABLE_RGB, CITY_TABLE_RGB, PdfReportLayout
from app.services.sales_aggregation_service import (
    DEFAULT_TOP_N,
    AnalyticsSnapshot,
    GroupTotal,
    SalesAggregationService,
    ranked,
)

logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
CSV_MEDIA_TYPE = "text/csv; charset=utf-8"
PDF_MEDIA_TYPE = "application/pdf"

RECORDS_SHEET_TITLE = "Plantilla"
REPORT_SHEET_TITLE = "Reporte Analisis"
REPORT_TITLE = "REPORTE DE ANALISIS - FRIJOLITOS COSTEÑOS"

RECORD_COLUMN_WIDTHS: tuple[int, ...] = (22, 18, 18, 18, 14, 14)
TEMPLATE_COLUMN_WIDTH = 18
QUANTITY_FORMAT = "#,##0"
DATE_FORMAT = "yyyy-mm-dd"
TIMESTAMP_FORMAT = "yyyy-mm-dd hh:mm"

_HEADER_FONT = Font(bold=True, color="FFFFFFFF")
_HEADER_FILL = PatternFill(fill_type="solid", start_color="FF1F2937", end_color="FF1F2937")
_HEADER_ALIGNMENT = Alignment(horizontal="center", vertical="center")
_HEADER_SIDE = Side(style="thin", color="FFE5E7EB")
_BODY_SIDE = Side(style="thin", color="FFF3F4F6")
_HEADER_BORDER = Border(left=_HEADER_SIDE, right=_HEADER_SIDE, top=_HEADER_SIDE, bottom=_HEADER_SIDE)
_BODY_BORDER = Border(left=_BODY_SIDE, right=_BODY_SIDE, top=_BODY_SIDE, bottom=_BODY_SIDE)
_SECTION_FONT = Font(bold=True, size=12)
_TITLE_FONT = Font(bold=True, size=14)


class NoDataToExportError(ValueError):
    """
    Raised when a report is requested for an empty record collection.
    """


# ---------------------------------------------------------------------------
# Export payload
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ExportPayload:
    """
    Encoded file ready to stream to the client.
    """

    content: bytes
    filename: str
    media_type: str


def export_filename(brand: str, purpose: str, extension: str, *, on: dt.date) -> str:
    """``<brand>-<purpose>-<YYYY-MM-DD>.<ext>``"""
    return f"{brand}-{purpose}-{on.isoformat()}.{extension}"


def format_units(value: float) -> str:
    """Thousands-grouped number with up to three decimals ("1,234", "12.5")."""
    text = f"{value:,.3f}".rstrip("0").rstrip(".")
    return text or "0"


def _quantity_cell(value: float) -> int | float:
    return int(value) if float(value).is_integer() else value


def _workbook_bytes(workbook: Workbook) -> bytes:
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class SalesExportService:
    """
    Encodes records and analytics into downloadable files.
    """

    def __init__(
        self,
        *,
        brand: str = "frijolitos",
        report_title: str = REPORT_TITLE,
        top_n: int = DEFAULT_TOP_N,
        aggregator: SalesAggregationService | None = None,
    ) -> None:
        self._brand = brand
        self._report_title = report_title
        self._top_n = top_n
        self._aggregator = aggregator or SalesAggregationService()

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def records_csv(
        self,
        records: Sequence[CanonicalSalesRecord],
        *,
        today: dt.date,
        quote_fields: bool = False,
    ) -> ExportPayload:
        """
        Header line plus one line per record, ``\\n`` separated.

        Unquoted mode joins raw values with commas, so a value containing a
        comma shifts the columns of that line.
        """

        if quote_fields:
            buffer = io.StringIO()
            writer = csv.writer(buffer, lineterminator="\n", quoting=csv.QUOTE_MINIMAL)
            writer.writerow(CANONICAL_HEADERS)
            for record in records:
                writer.writerow(self._csv_values(record))
            text = buffer.getvalue().rstrip("\n")
        else:
            lines = [",".join(CANONICAL_HEADERS)]
            lines.extend(",".join(self._csv_values(record)) for record in records)
            text = "\n".join(lines)

        self._log_export("records_csv", len(records))
        return ExportPayload(
            content=text.encode("utf-8"),
            filename=export_filename(self._brand, "datos", "csv", on=today),
            media_type=CSV_MEDIA_TYPE,
        )

    def records_workbook(
        self,
        records: Sequence[CanonicalSalesRecord],
        *,
        today: dt.date,
    ) -> ExportPayload:
        """
        Styled single-sheet workbook in canonical column order.
        """

        workbook = Workbook()
        sheet = workbook.active
        sheet.title = RECORDS_SHEET_TITLE
        sheet.append(list(CANONICAL_HEADERS))

        for index, width in enumerate(RECORD_COLUMN_WIDTHS, start=1):
            sheet.column_dimensions[get_column_letter(index)].width = width
        for cell in sheet[1]:
            cell.font = _HEADER_FONT
            cell.fill = _HEADER_FILL
            cell.alignment = _HEADER_ALIGNMENT
            cell.border = _HEADER_BORDER

        for record in records:
            sheet.append(
                [
                    record.salesperson_name,
                    record.city,
                    record.business_type,
                    record.presentation,
                    _quantity_cell(record.quantity),
                    record.date,
                ]
            )
            row = sheet[sheet.max_row]
            row[4].number_format = QUANTITY_FORMAT
            if record.date is not None:
                row[5].number_format = DATE_FORMAT
            for cell in row:
                cell.border = _BODY_BORDER

        self._log_export("records_xlsx", len(records))
        return ExportPayload(
            content=_workbook_bytes(workbook),
            filename=export_filename(self._brand, "datos", "xlsx", on=today),
            media_type=XLSX_MEDIA_TYPE,
        )

    def template_workbook(self, *, today: dt.date) -> ExportPayload:
        """
        Upload template: canonical headers and one example row.
        """

        workbook = Workbook()
        sheet = workbook.active
        sheet.title = RECORDS_SHEET_TITLE
        sheet.append(list(CANONICAL_HEADERS))
        sheet.append(["Juan Pérez", "La Ceiba", "Tienda", "500g", 1200, today])
        sheet.cell(row=2, column=6).number_format = DATE_FORMAT
        for cell in sheet[1]:
            cell.font = Font(bold=True)
        for index in range(1, len(CANONICAL_HEADERS) + 1):
            sheet.column_dimensions[get_column_letter(index)].width = TEMPLATE_COLUMN_WIDTH

        return ExportPayload(
            content=_workbook_bytes(workbook),
            filename=f"plantilla-{self._brand}.xlsx",
            media_type=XLSX_MEDIA_TYPE,
        )

    # ------------------------------------------------------------------
    # Report
    # ------------------------------------------------------------------

    def report_workbook(
        self,
        records: Sequence[CanonicalSalesRecord],
        *,
        generated_at: dt.datetime,
    ) -> ExportPayload:
        """
        Single-sheet analytics report.

        Rows, in order: title, generation time, blank, summary block, blank,
        city table (descending), blank, business table (descending).
        """

        snapshot = self._snapshot(records)
        workbook = Workbook()
        sheet = workbook.active
        sheet.title = REPORT_SHEET_TITLE

        sheet.append([self._report_title])
        sheet.cell(row=sheet.max_row, column=1).font = _TITLE_FONT
        sheet.append(["Fecha de generación:", _naive_utc(generated_at)])
        sheet.cell(row=sheet.max_row, column=2).number_format = TIMESTAMP_FORMAT
        sheet.append([])

        sheet.append(["RESUMEN GENERAL"])
        sheet.cell(row=sheet.max_row, column=1).font = _SECTION_FONT
        for label, value in self._summary_lines(snapshot):
            sheet.append([label, value])
            sheet.cell(row=sheet.max_row, column=2).number_format = QUANTITY_FORMAT
        sheet.append([])

        self._append_ranked_table(sheet, "UNIDADES POR CIUDAD", "Ciudad", ranked(snapshot.by_city))
        sheet.append([])
        self._append_ranked_table(
            sheet,
            "UNIDADES POR TIPO DE NEGOCIO",
            "Negocio",
            ranked(snapshot.by_business),
        )

        sheet.column_dimensions["A"].width = 34
        sheet.column_dimensions["B"].width = 20

        self._log_export("report_xlsx", len(records))
        return ExportPayload(
            content=_workbook_bytes(workbook),
            filename=export_filename(self._brand, "reporte-analisis", "xlsx", on=generated_at.date()),
            media_type=XLSX_MEDIA_TYPE,
        )

    def report_pdf(
        self,
        records: Sequence[CanonicalSalesRecord],
        *,
        generated_at: dt.datetime,
    ) -> ExportPayload:
        """
        A4 report: title block, summary, two ranked tables, then the charts.

        A chart that fails to render is logged and left out; the rest of the
        document is still produced.
        """

        snapshot = self._snapshot(records)
        layout = PdfReportLayout()

        layout.text(self._report_title, size=16, bold=True, advance=20)
        layout.text(f"Fecha de generación: {generated_at:%Y-%m-%d %H:%M}", size=10, advance=20)
        layout.text("RESUMEN GENERAL", size=12, bold=True, advance=16)
        for label, value in self._summary_lines(snapshot):
            layout.text(f"{label} {format_units(value)}", size=10, advance=14)
        layout.y += 4

        layout.table(
            ("UNIDADES POR CIUDAD", "Total Unidades"),
            [(item.label, format_units(item.value)) for item in ranked(snapshot.by_city)],
            header_rgb=CITY_TABLE_RGB,
        )
        layout.y += 16
        layout.table(
            ("UNIDADES POR TIPO DE NEGOCIO", "Total Unidades"),
            [(item.label, format_units(item.value)) for item in ranked(snapshot.by_business)],
            header_rgb=BUSINESS_TABLE_RGB,
        )
        layout.y += 16

        skipped: list[str] = []
        for title, build in chart_builders(snapshot):
            try:
                chart = rasterize(title, build())
            except Exception as exc:  # noqa: BLE001
                logger.warning("Report chart capture failed chart=%r: %s", title, exc)
                skipped.append(title)
                continue
            layout.image(chart)

        layout.stamp_footers()
        content = layout.to_pdf(title=self._report_title)

        self._log_export("report_pdf", len(records), pages=layout.page_count, skipped_charts=skipped)
        return ExportPayload(
            content=content,
            filename=export_filename(self._brand, "reporte-analisis", "pdf", on=generated_at.date()),
            media_type=PDF_MEDIA_TYPE,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _snapshot(self, records: Sequence[CanonicalSalesRecord]) -> AnalyticsSnapshot:
        if not records:
            raise NoDataToExportError("No hay datos para generar reporte.")
        return self._aggregator.snapshot(records, top_n=self._top_n)

    @staticmethod
    def _summary_lines(snapshot: AnalyticsSnapshot) -> list[tuple[str, float]]:
        kpis = snapshot.kpis
        return [
            ("Total de registros:", kpis.record_count),
            ("Total de unidades:", _quantity_cell(kpis.total_quantity)),
            ("Promedio por registro:", kpis.mean_quantity),
            ("Ciudades activas:", kpis.distinct_cities),
        ]

    @staticmethod
    def _append_ranked_table(
        sheet: Worksheet,
        title: str,
        label_header: str,
        totals: Sequence[GroupTotal],
    ) -> None:
        sheet.append([title])
        sheet.cell(row=sheet.max_row, column=1).font = _SECTION_FONT
        sheet.append([label_header, "Total Unidades"])
        for cell in sheet[sheet.max_row]:
            cell.font = Font(bold=True)
        for item in totals:
            sheet.append([item.label, _quantity_cell(item.value)])
            sheet.cell(row=sheet.max_row, column=2).number_format = QUANTITY_FORMAT

    @staticmethod
    def _csv_values(record: CanonicalSalesRecord) -> list[str]:
        return [
            record.salesperson_name or "",
            record.city or "",
            record.business_type or "",
            record.presentation or "",
            str(_quantity_cell(record.quantity or 0)),
            record.date.isoformat() if record.date is not None else "",
        ]

    @staticmethod
    def _log_export(kind: str, rows: int, **fields: object) -> None:
        log_event(logger, logging.INFO, "export_generated", kind=kind, rows=rows, **fields)


def _naive_utc(moment: dt.datetime) -> dt.datetime:
    if moment.tzinfo is not None:
        moment = moment.astimezone(dt.timezone.utc).replace(tzinfo=None)
    return moment

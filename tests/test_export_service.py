"""
tests/test_export_service.py

Pytest tests for the CSV, workbook, report and PDF encoders.

Workbooks are read back with openpyxl; PDFs are checked structurally only.
"""

from __future__ import annotations

import datetime as dt
import io

import pytest
from matplotlib.figure import Figure
from openpyxl import load_workbook

from app.domain.sales import CANONICAL_HEADERS
from app.services import export_service
from app.services.chart_renderer import ChartImage, rasterize
from app.services.export_service import (
    CSV_MEDIA_TYPE,
    PDF_MEDIA_TYPE,
    XLSX_MEDIA_TYPE,
    NoDataToExportError,
    SalesExportService,
    export_filename,
    format_units,
)
from app.services.report_pdf_renderer import PdfReportLayout

TODAY = dt.date(2024, 5, 1)
GENERATED_AT = dt.datetime(2024, 5, 1, 14, 30, tzinfo=dt.timezone.utc)


def _as_date(value: object) -> object:
    return value.date() if isinstance(value, dt.datetime) else value


@pytest.fixture()
def svc() -> SalesExportService:
    return SalesExportService()


@pytest.fixture()
def records(record_factory):
    return [
        record_factory(salesperson_name="Ana", city="La Ceiba", business_type="Tienda", quantity=1200),
        record_factory(salesperson_name="Luis", city="El Pino", business_type="Pulpería", quantity=300, date=dt.date(2024, 2, 3)),
        record_factory(salesperson_name="Eva", city="La Ceiba", business_type="Pulpería", quantity=12.5, date=dt.date(2024, 2, 9)),
    ]


class TestHelpers:
    def test_export_filename(self) -> None:
        assert export_filename("frijolitos", "datos", "csv", on=TODAY) == "frijolitos-datos-2024-05-01.csv"

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(0, "0"), (1200, "1,200"), (1234.5, "1,234.5"), (12.125, "12.125")],
    )
    def test_format_units(self, value: float, expected: str) -> None:
        assert format_units(value) == expected


class TestRecordsCsv:
    def test_header_and_rows(self, svc, records) -> None:
        payload = svc.records_csv(records, today=TODAY)
        lines = payload.content.decode("utf-8").split("\n")

        assert lines[0] == "Vendedor-usuario,Ciudad,Negocio,Presentacion,Venta,Fecha"
        assert lines[1] == "Ana,La Ceiba,Tienda,500g,1200,2024-01-15"
        assert lines[3] == "Eva,La Ceiba,Pulpería,500g,12.5,2024-02-09"
        assert len(lines) == 4
        assert payload.filename == "frijolitos-datos-2024-05-01.csv"
        assert payload.media_type == CSV_MEDIA_TYPE

    def test_unquoted_mode_writes_commas_verbatim(self, svc, record_factory) -> None:
        payload = svc.records_csv([record_factory(salesperson_name="Pérez, Juan")], today=TODAY)
        line = payload.content.decode("utf-8").split("\n")[1]
        assert line.startswith("Pérez, Juan,")
        assert len(line.split(",")) == len(CANONICAL_HEADERS) + 1

    def test_quoted_mode_escapes(self, svc, record_factory) -> None:
        payload = svc.records_csv([record_factory(salesperson_name="Pérez, Juan")], today=TODAY, quote_fields=True)
        line = payload.content.decode("utf-8").split("\n")[1]
        assert line.startswith('"Pérez, Juan",')

    def test_empty_export_is_header_only(self, svc) -> None:
        payload = svc.records_csv([], today=TODAY)
        assert payload.content.decode("utf-8") == ",".join(CANONICAL_HEADERS)


class TestRecordsWorkbook:
    def test_styled_sheet(self, svc, records) -> None:
        payload = svc.records_workbook(records, today=TODAY)
        sheet = load_workbook(io.BytesIO(payload.content)).active

        assert payload.filename == "frijolitos-datos-2024-05-01.xlsx"
        assert payload.media_type == XLSX_MEDIA_TYPE
        assert sheet.title == "Plantilla"
        assert tuple(cell.value for cell in sheet[1]) == CANONICAL_HEADERS
        assert sheet["A1"].font.bold
        assert sheet["A1"].fill.start_color.rgb == "FF1F2937"
        assert sheet["A1"].border.left.style == "thin"
        assert sheet["E2"].value == 1200
        assert sheet["E2"].number_format == "#,##0"
        assert sheet["F2"].number_format == "yyyy-mm-dd"
        assert _as_date(sheet["F2"].value) == dt.date(2024, 1, 15)
        assert sheet["A4"].border.bottom.style == "thin"
        assert sheet.column_dimensions["A"].width == 22

    def test_template(self, svc) -> None:
        payload = svc.template_workbook(today=TODAY)
        sheet = load_workbook(io.BytesIO(payload.content)).active

        assert payload.filename == "plantilla-frijolitos.xlsx"
        assert tuple(cell.value for cell in sheet[1]) == CANONICAL_HEADERS
        values = [cell.value for cell in sheet[2]]
        assert values[:5] == ["Juan Pérez", "La Ceiba", "Tienda", "500g", 1200]
        assert _as_date(values[5]) == TODAY
        assert sheet.column_dimensions["C"].width == 18


class TestReportWorkbook:
    def test_layout(self, svc, records) -> None:
        payload = svc.report_workbook(records, generated_at=GENERATED_AT)
        sheet = load_workbook(io.BytesIO(payload.content)).active
        rows = [row[:2] for row in sheet.iter_rows(values_only=True)]
        column_a = [row[0] for row in rows]

        assert payload.filename == "frijolitos-reporte-analisis-2024-05-01.xlsx"
        assert sheet.title == "Reporte Analisis"
        assert column_a[0] == "REPORTE DE ANALISIS - FRIJOLITOS COSTEÑOS"
        assert column_a[1] == "Fecha de generación:"
        assert column_a[2] is None
        assert column_a[3] == "RESUMEN GENERAL"
        assert rows[4] == ("Total de registros:", 3)
        assert rows[5][0] == "Total de unidades:"
        assert rows[5][1] == pytest.approx(1512.5)
        assert rows[7] == ("Ciudades activas:", 2)

        city_start = column_a.index("UNIDADES POR CIUDAD")
        assert rows[city_start + 1] == ("Ciudad", "Total Unidades")
        assert rows[city_start + 2][0] == "La Ceiba"
        assert rows[city_start + 3] == ("El Pino", 300)

        business_start = column_a.index("UNIDADES POR TIPO DE NEGOCIO")
        assert rows[business_start + 1] == ("Negocio", "Total Unidades")
        assert rows[business_start + 2] == ("Tienda", 1200)
        assert rows[business_start + 3][0] == "Pulpería"

    def test_empty_records_rejected(self, svc) -> None:
        with pytest.raises(NoDataToExportError, match="No hay datos para generar reporte."):
            svc.report_workbook([], generated_at=GENERATED_AT)


class TestReportPdf:
    def test_produces_pdf(self, svc, records) -> None:
        payload = svc.report_pdf(records, generated_at=GENERATED_AT)

        assert payload.content.startswith(b"%PDF")
        assert payload.media_type == PDF_MEDIA_TYPE
        assert payload.filename == "frijolitos-reporte-analisis-2024-05-01.pdf"

    def test_failing_chart_is_skipped(self, svc, records, monkeypatch, caplog) -> None:
        def broken():
            raise RuntimeError("renderer unavailable")

        monkeypatch.setattr(export_service, "chart_builders", lambda snapshot: [("Roto", broken)])
        payload = svc.report_pdf(records, generated_at=GENERATED_AT)

        assert payload.content.startswith(b"%PDF")
        assert "Report chart capture failed" in caplog.text

    def test_empty_records_rejected(self, svc) -> None:
        with pytest.raises(NoDataToExportError):
            svc.report_pdf([], generated_at=GENERATED_AT)


class TestPdfReportLayout:
    def test_long_table_breaks_pages(self) -> None:
        layout = PdfReportLayout()
        layout.table(("Ciudad", "Total"), [(f"C{i}", str(i)) for i in range(80)], header_rgb=(16, 185, 129))
        assert layout.page_count >= 2

    def test_chart_that_does_not_fit_starts_new_page(self) -> None:
        chart: ChartImage = rasterize("Prueba", Figure(figsize=(8, 4)))
        layout = PdfReportLayout()
        layout.y = layout.bottom_limit - 50
        layout.image(chart)

        assert layout.page_count == 2

    def test_pdf_bytes(self) -> None:
        layout = PdfReportLayout()
        layout.text("Hola $5")
        layout.stamp_footers()
        assert layout.to_pdf(title="Prueba").startswith(b"%PDF")

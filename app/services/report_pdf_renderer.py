"""
app/services/report_pdf_renderer.py

Paginated A4 analytics report rendered through matplotlib's PDF backend.

Each page is one full-bleed matplotlib Figure whose single axes is laid out
in PDF points with the origin at the top-left corner, so the layout code can
advance a ``y`` cursor downwards like a document writer. Page footers are
stamped only after every page exists, so each one knows the final page count.
"""

from __future__ import annotations

import io
import logging
from collections.abc import Sequence

from matplotlib.axes import Axes
from matplotlib.backends.backend_pdf import PdfPages
from matplotlib.figure import Figure
from matplotlib.image import imread
from matplotlib.patches import Rectangle

from app.services.chart_renderer import ChartImage

logger = logging.getLogger(__name__)

A4_WIDTH_PT = 595.28
A4_HEIGHT_PT = 841.89
MARGIN_PT = 40.0
CHART_TITLE_BLOCK_PT = 24.0
CHART_GAP_PT = 16.0
TABLE_ROW_PT = 18.0
FOOTER_OFFSET_PT = 20.0

CITY_TABLE_RGB: tuple[int, int, int] = (16, 185, 129)
BUSINESS_TABLE_RGB: tuple[int, int, int] = (59, 130, 246)
_GRID_COLOR = (0.8, 0.8, 0.8)
_FOOTER_COLOR = (120 / 255, 120 / 255, 120 / 255)


def _plain(value: str) -> str:
    """Escape mathtext markers so user text renders literally."""
    return str(value).replace("$", r"\$")


def _rgb(color: tuple[int, int, int]) -> tuple[float, float, float]:
    return (color[0] / 255, color[1] / 255, color[2] / 255)


class PdfReportLayout:
    """
    Top-down page writer over matplotlib figures.
    """

    def __init__(self) -> None:
        self._pages: list[tuple[Figure, Axes]] = []
        self.y = MARGIN_PT
        self.new_page()

    @property
    def page_count(self) -> int:
        return len(self._pages)

    @property
    def _ax(self) -> Axes:
        return self._pages[-1][1]

    @property
    def content_width(self) -> float:
        return A4_WIDTH_PT - 2 * MARGIN_PT

    @property
    def bottom_limit(self) -> float:
        return A4_HEIGHT_PT - MARGIN_PT

    def new_page(self) -> None:
        figure = Figure(figsize=(A4_WIDTH_PT / 72, A4_HEIGHT_PT / 72))
        ax = figure.add_axes((0.0, 0.0, 1.0, 1.0))
        ax.set_xlim(0, A4_WIDTH_PT)
        ax.set_ylim(A4_HEIGHT_PT, 0)
        ax.set_autoscale_on(False)
        ax.axis("off")
        self._pages.append((figure, ax))
        self.y = MARGIN_PT

    def ensure_space(self, height: float) -> None:
        if self.y + height > self.bottom_limit:
            self.new_page()

    def text(self, value: str, *, size: float = 10, bold: bool = False, advance: float = 14) -> None:
        self.ensure_space(advance)
        self._ax.text(
            MARGIN_PT,
            self.y,
            _plain(value),
            fontsize=size,
            fontweight="bold" if bold else "normal",
            va="top",
            ha="left",
        )
        self.y += advance

    def table(
        self,
        header: Sequence[str],
        rows: Sequence[Sequence[str]],
        *,
        header_rgb: tuple[int, int, int],
        font_size: float = 9,
    ) -> None:
        """
        Grid table; the header row is repeated after a page break.
        """

        widths = (self.content_width * 0.65, self.content_width * 0.35)
        self.ensure_space(TABLE_ROW_PT * 2)
        self._table_row(header, widths, fill=_rgb(header_rgb), bold=True, font_size=font_size)
        for row in rows:
            if self.y + TABLE_ROW_PT > self.bottom_limit:
                self.new_page()
                self._table_row(header, widths, fill=_rgb(header_rgb), bold=True, font_size=font_size)
            self._table_row(row, widths, fill=(1.0, 1.0, 1.0), bold=False, font_size=font_size)

    def _table_row(
        self,
        cells: Sequence[str],
        widths: Sequence[float],
        *,
        fill: tuple[float, float, float],
        bold: bool,
        font_size: float,
    ) -> None:
        x = MARGIN_PT
        for value, width in zip(cells, widths):
            self._ax.add_patch(
                Rectangle((x, self.y), width, TABLE_ROW_PT, facecolor=fill, edgecolor=_GRID_COLOR, linewidth=0.5)
            )
            self._ax.text(
                x + 4,
                self.y + TABLE_ROW_PT / 2,
                _plain(value),
                fontsize=font_size,
                fontweight="bold" if bold else "normal",
                color="white" if bold else "black",
                va="center",
                ha="left",
            )
            x += width
        self.y += TABLE_ROW_PT

    def image(self, chart: ChartImage) -> None:
        """
        Titled chart block, scaled to the content width, on a new page if it does not fit.
        """

        image_w = min(self.content_width, float(chart.width_px))
        image_h = image_w / chart.width_px * chart.height_px
        if self.y + CHART_TITLE_BLOCK_PT + image_h > self.bottom_limit:
            self.new_page()

        self._ax.text(MARGIN_PT, self.y, _plain(chart.title), fontsize=12, fontweight="bold", va="top", ha="left")
        self.y += CHART_TITLE_BLOCK_PT
        pixels = imread(io.BytesIO(chart.png), format="png")
        self._ax.imshow(
            pixels,
            extent=(MARGIN_PT, MARGIN_PT + image_w, self.y + image_h, self.y),
            aspect="auto",
            interpolation="antialiased",
        )
        self.y += image_h + CHART_GAP_PT

    def stamp_footers(self) -> None:
        total = self.page_count
        for index, (_, ax) in enumerate(self._pages, start=1):
            ax.text(
                A4_WIDTH_PT / 2,
                A4_HEIGHT_PT - FOOTER_OFFSET_PT,
                f"Página {index} de {total}",
                fontsize=8,
                color=_FOOTER_COLOR,
                ha="center",
                va="center",
            )

    def to_pdf(self, *, title: str) -> bytes:
        buffer = io.BytesIO()
        with PdfPages(buffer, metadata={"Title": title}) as pdf:
            for figure, _ in self._pages:
                pdf.savefig(figure)
        logger.debug("Rendered PDF report pages=%s bytes=%s", self.page_count, buffer.tell())
        return buffer.getvalue()

"""
app/services/chart_renderer.py

Rasterizes the four analytics charts to PNG for the PDF report.

Figures are built with the object-oriented matplotlib API (no pyplot state),
so rendering is safe inside request handlers.
"""

from __future__ import annotations

import io
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from matplotlib.figure import Figure

from app.services.sales_aggregation_service import AnalyticsSnapshot, GroupTotal, MonthlyPoint, ranked

CHART_DPI = 150
_FIGSIZE = (8.0, 4.0)
_PALETTE: tuple[str, ...] = (
    "#10B981",
    "#3B82F6",
    "#F59E0B",
    "#EF4444",
    "#8B5CF6",
    "#EC4899",
    "#14B8A6",
    "#F97316",
)


@dataclass(frozen=True)
class ChartImage:
    """A titled PNG snapshot with its pixel size."""

    title: str
    png: bytes
    width_px: int
    height_px: int


def _to_png(figure: Figure) -> tuple[bytes, int, int]:
    buffer = io.BytesIO()
    figure.tight_layout()
    figure.savefig(buffer, format="png", dpi=CHART_DPI)
    width_in, height_in = figure.get_size_inches()
    return buffer.getvalue(), int(width_in * CHART_DPI), int(height_in * CHART_DPI)


def render_monthly_trend(points: Sequence[MonthlyPoint]) -> Figure:
    figure = Figure(figsize=_FIGSIZE)
    ax = figure.add_subplot(111)
    months = [point.month for point in points]
    values = [point.value for point in points]
    ax.plot(months, values, marker="o", color=_PALETTE[0], linewidth=2)
    ax.fill_between(months, values, alpha=0.15, color=_PALETTE[0])
    ax.set_ylabel("Unidades")
    ax.grid(axis="y", alpha=0.3)
    ax.tick_params(axis="x", rotation=45)
    return figure


def render_business_pie(totals: Sequence[GroupTotal]) -> Figure:
    figure = Figure(figsize=_FIGSIZE)
    ax = figure.add_subplot(111)
    ax.pie(
        [item.value for item in totals],
        labels=[item.label for item in totals],
        autopct="%1.0f%%",
        colors=[_PALETTE[i % len(_PALETTE)] for i in range(len(totals))],
        startangle=90,
    )
    ax.axis("equal")
    return figure


def render_city_bars(totals: Sequence[GroupTotal]) -> Figure:
    figure = Figure(figsize=_FIGSIZE)
    ax = figure.add_subplot(111)
    ax.bar([item.label for item in totals], [item.value for item in totals], color=_PALETTE[1])
    ax.set_ylabel("Unidades")
    ax.grid(axis="y", alpha=0.3)
    ax.tick_params(axis="x", rotation=30)
    return figure


def render_top_salespeople(totals: Sequence[GroupTotal]) -> Figure:
    figure = Figure(figsize=_FIGSIZE)
    ax = figure.add_subplot(111)
    ordered = list(reversed(totals))
    ax.barh([item.label for item in ordered], [item.value for item in ordered], color=_PALETTE[4])
    ax.set_xlabel("Unidades")
    ax.grid(axis="x", alpha=0.3)
    return figure


def chart_builders(snapshot: AnalyticsSnapshot) -> list[tuple[str, Callable[[], Figure]]]:
    """
    Report charts in page order. Charts with no data are left out.
    """

    builders: list[tuple[str, Callable[[], Figure]]] = []
    if snapshot.monthly:
        builders.append(("Tendencia por Mes", lambda: render_monthly_trend(snapshot.monthly)))
    if snapshot.by_business:
        builders.append(("Unidades por Tipo de Negocio", lambda: render_business_pie(snapshot.by_business)))
    if snapshot.by_city:
        builders.append(("Unidades por Ciudad", lambda: render_city_bars(ranked(snapshot.by_city))))
    if snapshot.top_salespeople:
        builders.append(("Top Vendedores", lambda: render_top_salespeople(snapshot.top_salespeople)))
    return builders


def rasterize(title: str, figure: Figure) -> ChartImage:
    png, width_px, height_px = _to_png(figure)
    return ChartImage(title=title, png=png, width_px=width_px, height_px=height_px)

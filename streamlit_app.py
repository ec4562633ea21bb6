"""Streamlit dashboard for the Frijolitos Costeños sales tracker."""

from __future__ import annotations

import datetime as dt
import logging
import os
from typing import Any

import pandas as pd
import plotly.express as px
import streamlit as st

from app.config import get_dashboard_settings
from app.services.auth_service import AuthenticationError, AuthSessionInfo, AuthStoreError
from app.services.dashboard_session import DashboardSession, RecordDeletionError, RecordLoadError
from app.services.export_service import NoDataToExportError, format_units
from app.services.geo_service import MAP_CENTER, MAP_ZOOM
from app.services.record_query_service import PAGE_SIZES, SORT_FIELDS, FilterSpec, TableViewState
from app.services.sales_ingestion_service import SalesPersistenceError, WorkbookDecodeError
from app.services.section_state import SECTION_LABELS, SECTIONS, resolve_active_section

logger = logging.getLogger("streamlit_app")

_SETTINGS = get_dashboard_settings()
st.set_page_config(page_title=_SETTINGS.title, page_icon="🫘", layout="wide")

_COLUMN_LABELS: dict[str, str] = {
    "salesperson_name": "Vendedor",
    "city": "Ciudad",
    "business_type": "Negocio",
    "presentation": "Presentación",
    "quantity": "Venta",
    "date": "Fecha",
    "source_file": "Archivo",
}
_ALL_OPTION = "Todos"


@st.cache_resource(show_spinner=False)
def _load_context():
    """Build the application context once per Streamlit process."""
    from app.context import build_app_context  # noqa: PLC0415

    logging.basicConfig(
        level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").strip().upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    return build_app_context()


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _option_index(options: list[str], value: str | None) -> int:
    return options.index(value) if value in options else 0


def _set_section(section: str) -> None:
    st.session_state.active_section = section
    st.query_params["section"] = section


def _sign_out(context: Any) -> None:
    context.auth.sign_out(st.session_state.access_token)
    st.session_state.access_token = None
    st.session_state.active_section = None
    st.session_state.view = None
    st.session_state.report_files = {}
    st.query_params.clear()


if "access_token" not in st.session_state:
    st.session_state.access_token = None
if "active_section" not in st.session_state:
    st.session_state.active_section = None
if "view" not in st.session_state:
    st.session_state.view = None
if "report_files" not in st.session_state:
    st.session_state.report_files = {}
if "flash" not in st.session_state:
    st.session_state.flash = None


# ---------------------------------------------------------------------------
# Sign-in gate
# ---------------------------------------------------------------------------


def _render_auth(context: Any) -> None:
    st.title(_SETTINGS.title)
    st.caption("Inicia sesión para ver tus ventas.")
    login_tab, signup_tab = st.tabs(["Iniciar sesión", "Crear cuenta"])

    with login_tab:
        with st.form("sign_in"):
            email = st.text_input("Email")
            password = st.text_input("Contraseña", type="password")
            submitted = st.form_submit_button("Entrar", type="primary")
        if submitted:
            try:
                session = context.auth.sign_in(email=email, password=password)
            except AuthenticationError as exc:
                st.error(f"Error: {exc}")
            except AuthStoreError:
                st.error("No se pudo conectar con la base de datos. Intenta de nuevo.")
            else:
                st.session_state.access_token = session.access_token
                st.rerun()

    with signup_tab:
        with st.form("sign_up"):
            name = st.text_input("Nombre")
            email = st.text_input("Email", key="sign_up_email")
            password = st.text_input("Contraseña", type="password", key="sign_up_password")
            submitted = st.form_submit_button("Crear cuenta", type="primary")
        if submitted:
            try:
                session = context.auth.sign_up(email=email, password=password, display_name=name)
            except AuthenticationError as exc:
                st.error(f"Error: {exc}")
            except AuthStoreError:
                st.error("No se pudo conectar con la base de datos. Intenta de nuevo.")
            else:
                st.session_state.access_token = session.access_token
                st.session_state.flash = "Cuenta creada exitosamente."
                st.rerun()


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


def _render_analytics(dashboard: DashboardSession) -> None:
    snapshot = dashboard.analytics()
    kpis = snapshot.kpis

    col1, col2, col3, col4, col5 = st.columns(5)
    col1.metric("Registros", f"{kpis.record_count:,}")
    col2.metric("Unidades", format_units(kpis.total_quantity))
    col3.metric("Promedio", format_units(kpis.mean_quantity))
    col4.metric("Ciudades", kpis.distinct_cities)
    col5.metric("Negocios", kpis.distinct_businesses)

    if not dashboard.records:
        st.info("Aún no hay datos. Sube un archivo Excel para comenzar.")
        return

    left, right = st.columns(2)
    with left:
        if snapshot.monthly:
            monthly = pd.DataFrame([{"Mes": p.month, "Unidades": p.value} for p in snapshot.monthly])
            st.plotly_chart(
                px.area(monthly, x="Mes", y="Unidades", markers=True, title="Tendencia por Mes"),
                use_container_width=True,
            )
        by_city = pd.DataFrame([{"Ciudad": g.label, "Unidades": g.value} for g in snapshot.by_city])
        st.plotly_chart(
            px.bar(by_city, x="Ciudad", y="Unidades", title="Unidades por Ciudad"),
            use_container_width=True,
        )
    with right:
        by_business = pd.DataFrame([{"Negocio": g.label, "Unidades": g.value} for g in snapshot.by_business])
        st.plotly_chart(
            px.pie(by_business, names="Negocio", values="Unidades", title="Unidades por Tipo de Negocio"),
            use_container_width=True,
        )
        top = pd.DataFrame([{"Vendedor": g.label, "Unidades": g.value} for g in snapshot.top_salespeople])
        st.plotly_chart(
            px.bar(top, x="Unidades", y="Vendedor", orientation="h", title="Top Vendedores").update_yaxes(
                autorange="reversed"
            ),
            use_container_width=True,
        )

    st.subheader("Mapa de calor")
    buckets = [bucket for bucket in dashboard.heatmap() if bucket.count > 0]
    if buckets:
        points = pd.DataFrame(
            [
                {
                    "Lugar": b.location.name,
                    "lat": b.location.latitude,
                    "lon": b.location.longitude,
                    "Registros": b.count,
                    "Intensidad": b.intensity,
                }
                for b in buckets
            ]
        )
        figure = px.scatter_map(
            points,
            lat="lat",
            lon="lon",
            size="Registros",
            color="Intensidad",
            hover_name="Lugar",
            range_color=(0, 1),
            color_continuous_scale="YlOrRd",
            zoom=MAP_ZOOM,
            center={"lat": MAP_CENTER[0], "lon": MAP_CENTER[1]},
            size_max=40,
        )
        st.plotly_chart(figure, use_container_width=True)
    else:
        st.caption("Ninguna ciudad coincide con las ubicaciones del mapa.")

    st.subheader("Archivos subidos")
    st.dataframe(
        pd.DataFrame(
            [
                {
                    "Archivo": item.source_file,
                    "Registros": item.record_count,
                    "Última fecha": item.latest_date.isoformat() if item.latest_date else "",
                }
                for item in dashboard.source_files()
            ]
        ),
        use_container_width=True,
        hide_index=True,
    )

    st.subheader("Reportes")
    report_col1, report_col2 = st.columns(2)
    with report_col1:
        if st.button("Generar reporte Excel", use_container_width=True):
            _build_report(dashboard, "xlsx")
    with report_col2:
        if st.button("Generar reporte PDF", use_container_width=True):
            _build_report(dashboard, "pdf")
    for kind, payload in st.session_state.report_files.items():
        st.download_button(
            label=f"Descargar {payload.filename}",
            data=payload.content,
            file_name=payload.filename,
            mime=payload.media_type,
            key=f"download_report_{kind}",
        )


def _build_report(dashboard: DashboardSession, kind: str) -> None:
    try:
        with st.spinner("Generando reporte..."):
            if kind == "pdf":
                payload = dashboard.report_pdf(generated_at=_utcnow())
            else:
                payload = dashboard.report_workbook(generated_at=_utcnow())
    except NoDataToExportError as exc:
        st.warning(str(exc))
        return
    except Exception as exc:  # noqa: BLE001
        logger.exception("Report generation failed kind=%s", kind)
        st.error(f"Error al generar el reporte: {exc}")
        return
    st.session_state.report_files[kind] = payload


def _render_upload(context: Any, dashboard: DashboardSession) -> None:
    st.subheader("Subir Excel")
    st.caption("Columnas esperadas: Vendedor-usuario, Ciudad, Negocio, Presentacion, Venta, Fecha.")

    template = context.exporter.template_workbook(today=_utcnow().date())
    st.download_button(
        "Descargar plantilla",
        data=template.content,
        file_name=template.filename,
        mime=template.media_type,
    )

    uploaded = st.file_uploader("Archivo Excel", type=["xlsx", "xls"])
    if uploaded is not None and st.button("Procesar archivo", type="primary"):
        try:
            with st.spinner("Procesando archivo..."):
                summary = dashboard.upload(content=uploaded.getvalue(), filename=uploaded.name)
        except WorkbookDecodeError as exc:
            st.error(f"Error al procesar el archivo: {exc}")
        except (SalesPersistenceError, RecordLoadError) as exc:
            st.error(f"Error al guardar los datos: {exc}")
        else:
            st.session_state.report_files = {}
            st.success(f"{summary.rows_processed} registros procesados de {summary.source_file}.")


def _render_filters(dashboard: DashboardSession, view: TableViewState) -> None:
    options = dashboard.filter_options()
    current = view.filters

    col1, col2, col3 = st.columns(3)
    city_options = [_ALL_OPTION, *options.cities]
    city = col1.selectbox("Ciudad", city_options, index=_option_index(city_options, current.city))
    business_options = [_ALL_OPTION, *options.businesses]
    business = col2.selectbox(
        "Negocio",
        business_options,
        index=_option_index(business_options, current.business),
    )
    file_options = [_ALL_OPTION, *options.source_files]
    source_file = col3.selectbox(
        "Archivo",
        file_options,
        index=_option_index(file_options, current.source_file),
    )

    col4, col5, col6 = st.columns(3)
    quantity_min = col4.number_input("Venta mínima", min_value=0.0, value=current.quantity_min, step=1.0)
    quantity_max = col5.number_input("Venta máxima", min_value=0.0, value=current.quantity_max, step=1.0)
    search = col6.text_input("Buscar", value=current.search_text or "")

    view.set_filters(
        FilterSpec(
            city=None if city == _ALL_OPTION else city,
            business=None if business == _ALL_OPTION else business,
            quantity_min=quantity_min,
            quantity_max=quantity_max,
            source_file=None if source_file == _ALL_OPTION else source_file,
            search_text=search or None,
        )
    )


def _render_records(dashboard: DashboardSession) -> None:
    view = dashboard.view
    st.subheader("Datos")
    _render_filters(dashboard, view)

    sort_cols = st.columns(len(SORT_FIELDS) - 1)
    for column, field_name in zip(sort_cols, SORT_FIELDS[:-1]):
        marker = ""
        if view.sort.field == field_name:
            marker = " ▲" if view.sort.direction == "asc" else " ▼"
        if column.button(f"{_COLUMN_LABELS[field_name]}{marker}", key=f"sort_{field_name}", use_container_width=True):
            view.select_sort(field_name)
            st.rerun()

    result = dashboard.page()
    if not result.items:
        st.info("No hay registros que coincidan con los filtros.")
    for record in result.items:
        row_cols = st.columns([3, 2, 2, 2, 1, 2, 1])
        row_cols[0].write(record.salesperson_name or "-")
        row_cols[1].write(record.city or "-")
        row_cols[2].write(record.business_type or "-")
        row_cols[3].write(record.presentation or "-")
        row_cols[4].write(format_units(record.quantity))
        row_cols[5].write(record.date.isoformat() if record.date else "-")
        if record.id is not None and row_cols[6].button("🗑", key=f"delete_{record.id}"):
            try:
                dashboard.delete_record(record.id)
            except RecordDeletionError as exc:
                st.error(f"Error al eliminar: {exc}")
            else:
                st.rerun()

    nav1, nav2, nav3, nav4 = st.columns([1, 2, 1, 2])
    if nav1.button("← Anterior", disabled=result.page <= 1):
        view.go_to_page(result.page - 1)
        st.rerun()
    nav2.caption(
        f"Mostrando {result.start_index}-{result.end_index} de {result.total} · "
        f"Página {result.page} de {result.total_pages}"
    )
    if nav3.button("Siguiente →", disabled=result.page >= result.total_pages):
        view.go_to_page(result.page + 1)
        st.rerun()
    page_size = nav4.selectbox(
        "Filas por página",
        list(PAGE_SIZES),
        index=_option_index(list(PAGE_SIZES), view.page_size),
    )
    if page_size != view.page_size:
        view.set_page_size(page_size)
        st.rerun()

    export_col1, export_col2, delete_col = st.columns(3)
    today = _utcnow().date()
    quote_fields = export_col1.checkbox("CSV con comillas", help="Encierra entre comillas los valores con comas.")
    csv_payload = dashboard.export_csv(today=today, quote_fields=quote_fields)
    export_col1.download_button(
        "Exportar CSV",
        data=csv_payload.content,
        file_name=csv_payload.filename,
        mime=csv_payload.media_type,
        use_container_width=True,
    )
    xlsx_payload = dashboard.export_workbook(today=today)
    export_col2.download_button(
        "Exportar Excel",
        data=xlsx_payload.content,
        file_name=xlsx_payload.filename,
        mime=xlsx_payload.media_type,
        use_container_width=True,
    )
    with delete_col:
        confirm = st.checkbox(f"Confirmar eliminación de {result.total} registros filtrados")
        if st.button("Eliminar filtrados", disabled=not confirm or result.total == 0, use_container_width=True):
            try:
                outcome = dashboard.bulk_delete()
            except RecordDeletionError as exc:
                st.error(f"Error al eliminar: {exc}")
            else:
                if outcome.deleted == 0:
                    st.warning("No hay registros con ID para eliminar.")
                else:
                    st.session_state.flash = f"{outcome.deleted} registros eliminados."
                    st.rerun()


# ---------------------------------------------------------------------------
# Page
# ---------------------------------------------------------------------------


context = _load_context()
session: AuthSessionInfo | None = context.auth.get_session(st.session_state.access_token)

if session is None:
    st.session_state.access_token = None
    _render_auth(context)
    st.stop()

if st.session_state.view is None:
    st.session_state.view = TableViewState(page_size=_SETTINGS.default_page_size)

active_section = resolve_active_section(
    st.query_params.get("section"),
    st.session_state.active_section,
)
if st.session_state.active_section != active_section or st.query_params.get("section") != active_section:
    _set_section(active_section)

with st.sidebar:
    st.header(_SETTINGS.title)
    st.caption(session.user.display_name or session.user.email)
    for section in SECTIONS:
        if st.button(
            SECTION_LABELS[section],
            key=f"nav_{section}",
            type="primary" if section == active_section else "secondary",
            use_container_width=True,
        ):
            _set_section(section)
            st.rerun()
    st.divider()
    if st.button("Cerrar sesión", use_container_width=True):
        _sign_out(context)
        st.rerun()

if st.session_state.flash:
    st.success(st.session_state.flash)
    st.session_state.flash = None

dashboard = DashboardSession(context, owner_id=session.user.id, view=st.session_state.view)
try:
    dashboard.reload()
except RecordLoadError as exc:
    st.error(f"Error al cargar los datos: {exc}")
    st.stop()

st.title(SECTION_LABELS[active_section])
if active_section == "upload":
    _render_upload(context, dashboard)
elif active_section == "datos":
    _render_records(dashboard)
else:
    _render_analytics(dashboard)

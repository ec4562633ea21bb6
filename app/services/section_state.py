"""
app/services/section_state.py

Active dashboard section resolution.

The section is persisted in two places: the location (``?section=`` query
value or ``#/section`` fragment) and a per-client stored value. The location
wins so shared links restore the same view.
"""

from __future__ import annotations

SECTIONS: tuple[str, ...] = ("analytics", "upload", "datos")
DEFAULT_SECTION = "analytics"
LEGACY_SECTIONS: dict[str, str] = {"dashboard": "analytics"}

SECTION_LABELS: dict[str, str] = {
    "analytics": "Análisis",
    "upload": "Subir Excel",
    "datos": "Datos",
}


def normalize_section(value: str | None) -> str | None:
    """
    Canonical section name for a raw location or stored value, or None.

    Leading ``#`` and ``/`` are stripped, so ``#/upload`` and ``upload`` agree.
    """

    if not value:
        return None
    candidate = value.strip().lstrip("#").lstrip("/").strip().lower()
    if not candidate:
        return None
    candidate = LEGACY_SECTIONS.get(candidate, candidate)
    return candidate if candidate in SECTIONS else None


def resolve_active_section(location_value: str | None, stored_value: str | None) -> str:
    """Location value, then stored value, then the default section."""
    return normalize_section(location_value) or normalize_section(stored_value) or DEFAULT_SECTION


def location_fragment(section: str) -> str:
    return f"#/{section}"

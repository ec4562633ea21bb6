"""
app/mappers/sales_field_mapper.py

Header resolution for uploaded sales workbooks.

Spreadsheet headers arrive with accents, mixed case, and arbitrary
punctuation ("Vendedor-usuario", "Fecha de Venta", "Presentación"). Each
canonical field owns an ordered list of synonym tiers; a header matches when
its normalized form equals any normalized synonym in a tier. Tiers are probed
in order and, inside a tier, headers are probed left to right.
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

CANONICAL_FIELDS: tuple[str, ...] = (
    "salesperson_name",
    "city",
    "business_type",
    "presentation",
    "quantity",
    "date",
)

DEFAULT_FIELD_SYNONYMS: dict[str, tuple[tuple[str, ...], ...]] = {
    "salesperson_name": (
        ("Vendedor-usuario", "Vendedor Usuario", "Vendedor_usuario", "Vendedor", "vendedor"),
        ("Cliente-usuario", "Cliente Usuario", "Cliente_usuario", "Cliente", "cliente"),
    ),
    "city": (("Ciudad", "Municipio", "City"),),
    "business_type": (("Negocio", "Tipo de Negocio", "Giro", "Negocios"),),
    "presentation": (("Presentacion", "Presentación", "Presentaciones"),),
    "quantity": (("Venta", "Ventas", "Monto", "Monto Venta", "Valor", "Total"),),
    "date": (("Fecha", "Fecha Venta", "Fecha de Venta", "fecha"),),
}

_SEPARATOR_RE = re.compile(r"[^a-z0-9]+")


def strip_diacritics(value: str) -> str:
    """
    Decompose to NFD and drop combining marks ("Presentación" -> "Presentacion").
    """

    decomposed = unicodedata.normalize("NFD", value)
    return "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")


def normalize_header(header: Any) -> str:
    """
    Normalize a column name for synonym matching.

    "Vendedor-usuario", "vendedor usuario" and " VENDEDOR__Usuario " all
    become "vendedor_usuario".
    """

    if header is None:
        return ""
    lowered = strip_diacritics(str(header)).lower()
    return _SEPARATOR_RE.sub("_", lowered).strip("_")


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


@dataclass(frozen=True)
class FieldMapping:
    """
    Matching source headers per canonical field for one sheet.

    ``candidates`` lists every matching header in priority order; a row reads
    the first of them holding a non-blank cell. Canonical fields with no
    matching header are absent.
    """

    candidates: dict[str, tuple[str, ...]]
    source_headers: tuple[str, ...]

    @property
    def canonical_to_source(self) -> dict[str, str]:
        return {canonical: headers[0] for canonical, headers in self.candidates.items()}

    @property
    def missing_fields(self) -> tuple[str, ...]:
        return tuple(f for f in CANONICAL_FIELDS if f not in self.candidates)


class SalesFieldMapper:
    """
    Resolves arbitrary workbook headers into the canonical sales fields.
    """

    def __init__(
        self,
        *,
        synonyms: Mapping[str, Sequence[Sequence[str]]] | None = None,
    ) -> None:
        source = synonyms or DEFAULT_FIELD_SYNONYMS
        self._tiers: dict[str, tuple[frozenset[str], ...]] = {
            canonical: tuple(
                frozenset(normalize_header(variant) for variant in tier)
                for tier in tiers
            )
            for canonical, tiers in source.items()
        }

    def match_headers(self, canonical_field: str, headers: Sequence[Any]) -> tuple[Any, ...]:
        """
        Every header matching *canonical_field*: tier order first, then left to right.
        """

        normalized = [(header, normalize_header(header)) for header in headers]
        matches: list[Any] = []
        for tier in self._tiers.get(canonical_field, ()):
            matches.extend(header for header, key in normalized if key and key in tier)
        return tuple(matches)

    def match_header(self, canonical_field: str, headers: Sequence[Any]) -> str | None:
        """
        Return the first header matching *canonical_field*, or None.
        """

        matches = self.match_headers(canonical_field, headers)
        return matches[0] if matches else None

    def resolve_mapping(self, headers: Sequence[Any]) -> FieldMapping:
        """
        Resolve every canonical field against one header row.
        """

        source_headers = tuple(
            str(header) for header in headers if header is not None and str(header).strip()
        )
        candidates: dict[str, tuple[str, ...]] = {}
        for canonical_field in CANONICAL_FIELDS:
            matched = self.match_headers(canonical_field, source_headers)
            if matched:
                candidates[canonical_field] = matched
        return FieldMapping(candidates=candidates, source_headers=source_headers)

    def get_field(
        self,
        raw_row: Mapping[str, Any],
        canonical_field: str,
        *,
        mapping: FieldMapping | None = None,
    ) -> Any:
        """
        Value of *canonical_field* in one raw row.

        Matching headers are tried in priority order and blank cells are
        skipped, so a row with an empty "Vendedor" cell falls back to its
        "Cliente" cell. Without *mapping* the headers are matched against the
        row's own keys.
        """

        if mapping is not None:
            headers = mapping.candidates.get(canonical_field, ())
        else:
            headers = self.match_headers(canonical_field, list(raw_row.keys()))
        for header in headers:
            value = raw_row.get(header)
            if not _is_blank(value):
                return value
        return raw_row.get(headers[0]) if headers else None

    def map_row(
        self,
        *,
        raw_row: Mapping[str, Any],
        mapping: FieldMapping,
    ) -> dict[str, Any]:
        """
        Project one raw row onto canonical field names. Absent fields map to None.
        """

        return {
            canonical: self.get_field(raw_row, canonical, mapping=mapping)
            for canonical in CANONICAL_FIELDS
        }


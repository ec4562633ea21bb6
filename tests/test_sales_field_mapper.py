from __future__ import annotations

import unittest

from app.mappers.sales_field_mapper import SalesFieldMapper, normalize_header, strip_diacritics


class TestHeaderNormalization(unittest.TestCase):
    def test_strip_diacritics(self) -> None:
        self.assertEqual(strip_diacritics("Presentación"), "Presentacion")
        self.assertEqual(strip_diacritics("Costeños"), "Costenos")

    def test_normalize_header_collapses_separators(self) -> None:
        self.assertEqual(normalize_header("Vendedor-usuario"), "vendedor_usuario")
        self.assertEqual(normalize_header(" VENDEDOR__Usuario "), "vendedor_usuario")
        self.assertEqual(normalize_header("Fecha de Venta"), "fecha_de_venta")
        self.assertEqual(normalize_header(None), "")


class TestSalesFieldMapper(unittest.TestCase):
    def setUp(self) -> None:
        self.mapper = SalesFieldMapper()

    def test_resolves_canonical_headers(self) -> None:
        mapping = self.mapper.resolve_mapping(
            ["Vendedor-usuario", "Ciudad", "Negocio", "Presentacion", "Venta", "Fecha"]
        )

        self.assertEqual(mapping.missing_fields, ())
        self.assertEqual(mapping.canonical_to_source["salesperson_name"], "Vendedor-usuario")
        self.assertEqual(mapping.canonical_to_source["quantity"], "Venta")

    def test_accent_and_case_variants_match(self) -> None:
        mapping = self.mapper.resolve_mapping(["VENDEDOR", "municipio", "Giro", "Presentación", "Monto", "fecha venta"])

        self.assertEqual(mapping.canonical_to_source["city"], "municipio")
        self.assertEqual(mapping.canonical_to_source["business_type"], "Giro")
        self.assertEqual(mapping.canonical_to_source["presentation"], "Presentación")
        self.assertEqual(mapping.canonical_to_source["date"], "fecha venta")

    def test_vendedor_tier_wins_over_cliente_regardless_of_column_order(self) -> None:
        header = self.mapper.match_header("salesperson_name", ["Cliente", "Vendedor"])
        self.assertEqual(header, "Vendedor")

    def test_cliente_used_when_no_vendedor_column(self) -> None:
        header = self.mapper.match_header("salesperson_name", ["Cliente-usuario", "Ciudad"])
        self.assertEqual(header, "Cliente-usuario")

    def test_leftmost_header_wins_within_a_tier(self) -> None:
        header = self.mapper.match_header("quantity", ["Total", "Venta"])
        self.assertEqual(header, "Total")

    def test_unknown_headers_are_reported_missing(self) -> None:
        mapping = self.mapper.resolve_mapping(["Ciudad", "Comentario"])
        self.assertIn("quantity", mapping.missing_fields)
        self.assertIn("date", mapping.missing_fields)
        self.assertNotIn("city", mapping.missing_fields)

    def test_map_row_projects_absent_fields_to_none(self) -> None:
        mapping = self.mapper.resolve_mapping(["Vendedor", "Venta"])
        mapped = self.mapper.map_row(raw_row={"Vendedor": "Ana", "Venta": 3}, mapping=mapping)

        self.assertEqual(mapped["salesperson_name"], "Ana")
        self.assertEqual(mapped["quantity"], 3)
        self.assertIsNone(mapped["city"])
        self.assertIsNone(mapped["date"])

    def test_get_field_reads_raw_row_directly(self) -> None:
        row = {"Presentaciones": "1kg", "Ciudad": "El Pino"}
        self.assertEqual(self.mapper.get_field(row, "presentation"), "1kg")
        self.assertIsNone(self.mapper.get_field(row, "quantity"))

    def test_blank_vendedor_cell_falls_back_to_cliente(self) -> None:
        mapping = self.mapper.resolve_mapping(["Vendedor", "Cliente", "Ciudad", "Venta"])

        blank = self.mapper.map_row(
            raw_row={"Vendedor": None, "Cliente": "Pedro", "Ciudad": "La Ceiba", "Venta": 5},
            mapping=mapping,
        )
        filled = self.mapper.map_row(
            raw_row={"Vendedor": "Ana", "Cliente": "Pedro", "Ciudad": "La Ceiba", "Venta": 5},
            mapping=mapping,
        )

        self.assertEqual(mapping.candidates["salesperson_name"], ("Vendedor", "Cliente"))
        self.assertEqual(blank["salesperson_name"], "Pedro")
        self.assertEqual(filled["salesperson_name"], "Ana")

    def test_whitespace_cell_falls_through_within_a_tier(self) -> None:
        row = {"Total": "  ", "Venta": 7}
        self.assertEqual(self.mapper.get_field(row, "quantity"), 7)

    def test_all_candidates_blank_returns_first_cell(self) -> None:
        row = {"Vendedor": "", "Cliente": None}
        self.assertEqual(self.mapper.get_field(row, "salesperson_name"), "")

    def test_custom_synonyms(self) -> None:
        mapper = SalesFieldMapper(synonyms={"city": (("Town",),)})
        self.assertEqual(mapper.match_header("city", ["town"]), "town")
        self.assertIsNone(mapper.match_header("quantity", ["Venta"]))


if __name__ == "__main__":
    unittest.main()

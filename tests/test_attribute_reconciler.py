# tests/test_attribute_reconciler.py

"""Tests for the attribute priority rules of AttributeReconciler."""

import unittest
from datetime import datetime
from typing import Any

from src.config.settings import Settings
from src.filters.attribute_reconciler import (
    AttributeReconciler,
    crm_slug,
    parse_count,
    parse_price,
    slug_id,
)
from src.models.property import PRICE_UNAVAILABLE, MediaItem


def _raw(**overrides: Any) -> dict[str, Any]:
    """A minimal CMS property record."""
    record: dict[str, Any] = {
        "id": 101,
        "slug": "apartamento-granada",
        "title": {"rendered": "Apartamento &#8220;Granada&#8221;"},
        "excerpt": {"rendered": "<p>Luminoso y c&eacute;ntrico [&hellip;]</p>"},
        "content": {"rendered": "<p style='x'>Hermoso apartamento</p>"},
        "date": "2025-03-01T10:30:00",
    }
    record.update(overrides)
    return record


class TestParsePrice(unittest.TestCase):
    """Loose price parsing."""

    def test_unavailable_values(self) -> None:
        for value in ("0", "", None, "consultar", -5, "-1200", 0, "0.00", float("inf")):
            with self.subTest(value=value):
                self.assertIsNone(parse_price(value))

    def test_numeric_forms(self) -> None:
        cases = {
            "1200000": 1200000.0,
            "$ 1.200.000": 1200000.0,
            "1,200,000.50": 1200000.5,
            "150.5": 150.5,
            2500: 2500.0,
            "COP 3.500": 3500.0,
        }
        for value, expected in cases.items():
            with self.subTest(value=value):
                self.assertEqual(parse_price(value), expected)


class TestParseCount(unittest.TestCase):

    def test_counts(self) -> None:
        cases = {
            "3": 3, "2.0": 2, 4: 4,
            "0": None, "tres": None, "inf": None, "1e400": None,
        }
        for value, expected in cases.items():
            with self.subTest(value=value):
                self.assertEqual(parse_count(value), expected)

    def test_single_item_lists(self) -> None:
        self.assertEqual(parse_count(["5"]), 5)
        self.assertIsNone(parse_count(True))


class TestReconcilePrice(unittest.TestCase):
    """Price priority and the unavailable sentinel."""

    def setUp(self) -> None:
        self.reconciler = AttributeReconciler()

    def test_zero_string_is_unavailable(self) -> None:
        """A "0" custom field with nothing else yields the sentinel."""
        prop = self.reconciler.reconcile(_raw(acf={"price": "0"}))
        self.assertEqual(prop.price, PRICE_UNAVAILABLE)
        self.assertFalse(prop.has_price)

    def test_absent_price_is_unavailable(self) -> None:
        prop = self.reconciler.reconcile(_raw())
        self.assertEqual(prop.price, PRICE_UNAVAILABLE)

    def test_zero_custom_field_falls_through_to_legacy(self) -> None:
        """An unusable custom value does not mask the legacy one."""
        prop = self.reconciler.reconcile(
            _raw(acf={"price": "0"}, property_meta={"fave_property_price": ["950000"]})
        )
        self.assertEqual(prop.price, 950000.0)
        self.assertTrue(prop.has_price)

    def test_custom_field_beats_legacy(self) -> None:
        prop = self.reconciler.reconcile(
            _raw(acf={"price": 800000}, meta={"_price": "999"})
        )
        self.assertEqual(prop.price, 800000.0)


class TestReconcileLocation(unittest.TestCase):
    """Zone, city and region priority."""

    def setUp(self) -> None:
        self.reconciler = AttributeReconciler()

    def _all_sources(self) -> dict[str, Any]:
        return _raw(
            acf={"zone": "Norte"},
            property_meta={"fave_property_zone": ["Sur"]},
            _embedded={"wp:term": [[{"taxonomy": "property_zone", "name": "Oeste"}]]},
            class_list=["zone-centro"],
        )

    def test_custom_field_wins_over_everything(self) -> None:
        prop = self.reconciler.reconcile(self._all_sources())
        self.assertEqual(prop.zone, "Norte")

    def test_legacy_meta_beats_terms(self) -> None:
        raw = self._all_sources()
        raw["acf"] = {}
        self.assertEqual(self.reconciler.reconcile(raw).zone, "Sur")

    def test_terms_beat_class_tokens(self) -> None:
        raw = self._all_sources()
        raw["acf"] = {}
        raw["property_meta"] = {}
        self.assertEqual(self.reconciler.reconcile(raw).zone, "Oeste")

    def test_non_location_terms_are_ignored(self) -> None:
        raw = _raw(
            _embedded={"wp:term": [[{"taxonomy": "category", "name": "Ofertas"}]]},
            class_list=["zona-ciudad-jardin"],
        )
        self.assertEqual(self.reconciler.reconcile(raw).zone, "Ciudad Jardin")

    def test_default_city_when_no_source(self) -> None:
        prop = self.reconciler.reconcile(_raw())
        self.assertEqual(prop.zone, Settings.DEFAULT_CITY)
        self.assertEqual(prop.city, Settings.DEFAULT_CITY)
        self.assertEqual(prop.region, Settings.DEFAULT_REGION)

    def test_legacy_city_and_region(self) -> None:
        prop = self.reconciler.reconcile(
            _raw(meta={"fave_property_city": ["Palmira"], "fave_property_state": "Valle"})
        )
        self.assertEqual(prop.city, "Palmira")
        self.assertEqual(prop.region, "Valle")


class TestReconcileAttributes(unittest.TestCase):
    """Counts, flags, media and text."""

    def setUp(self) -> None:
        self.reconciler = AttributeReconciler()

    def test_counts_follow_priority_and_default_to_zero(self) -> None:
        prop = self.reconciler.reconcile(
            _raw(
                acf={"bedrooms": "3"},
                property_meta={"fave_property_bedrooms": ["5"], "fave_property_bathrooms": ["2"]},
            )
        )
        self.assertEqual(prop.bedrooms, 3)
        self.assertEqual(prop.bathrooms, 2)
        self.assertEqual(prop.guests, 0)

    def test_business_flags(self) -> None:
        self.assertEqual(
            self._flags(acf={"for_sale": True}), (False, True)
        )
        self.assertEqual(
            self._flags(property_meta={"fave_property_status": ["En venta"]}), (False, True)
        )
        self.assertEqual(
            self._flags(class_list=["property_status-arriendo"]), (True, False)
        )
        self.assertEqual(
            self._flags(),
            (Settings.DEFAULT_FOR_RENT, Settings.DEFAULT_FOR_SALE),
        )

    def _flags(self, **overrides: Any) -> tuple[bool, bool]:
        prop = self.reconciler.reconcile(_raw(**overrides))
        return prop.for_rent, prop.for_sale

    def test_media_order_and_dedup(self) -> None:
        """Featured first, then gallery, then custom gallery; no repeats."""
        raw = _raw(
            _embedded={"wp:featuredmedia": [{"id": 1, "source_url": "http://hospelia.co/wp-content/uploads/a.jpg"}]},
            acf={"gallery": [{"id": 3, "url": "https://wp.hospelia.co/wp-content/uploads/c.jpg"}]},
        )
        gallery = [
            MediaItem(id=1, url="https://wp.hospelia.co/wp-content/uploads/a.jpg"),
            MediaItem(id=2, url="https://wp.hospelia.co/wp-content/uploads/b.jpg"),
        ]
        prop = self.reconciler.reconcile(raw, gallery)
        self.assertEqual(
            [m.url.rsplit("/", 1)[1] for m in prop.media], ["a.jpg", "b.jpg", "c.jpg"]
        )
        self.assertTrue(all(m.url.startswith("https://wp.hospelia.co/") for m in prop.media))

    def test_text_cleanup(self) -> None:
        prop = self.reconciler.reconcile(_raw())
        self.assertEqual(prop.title, 'Apartamento "Granada"')
        self.assertEqual(prop.excerpt, "Luminoso y céntrico ...")
        self.assertNotIn("style", prop.description)
        self.assertEqual(prop.published_at, datetime(2025, 3, 1, 10, 30))
        self.assertEqual(prop.source_ids["cms_id"], 101)


class TestReconcileCrm(unittest.TestCase):
    """CRM records map onto the same canonical shape."""

    def test_crm_record(self) -> None:
        raw = {
            "id_property": 4521,
            "title": "Apartamento Amoblado en El Peñón",
            "for_rent": "true",
            "for_sale": "false",
            "rent_price": "2.800.000",
            "sale_price": "0",
            "bedrooms": "2",
            "bathrooms": "1",
            "zone_label": "Oeste",
            "city_label": "Cali",
            "region_label": "Valle del Cauca",
            "main_image": {"id": "1", "url_big": "https://img.crm.test/big/1.jpg"},
            "galleries": [
                {
                    "id": "9",
                    "0": {"id": "3", "url_big": "https://img.crm.test/big/3.jpg", "position": "2"},
                    "1": {"id": "2", "url_big": "https://img.crm.test/big/2.jpg", "position": "1"},
                    "2": {"id": "1", "url_big": "https://img.crm.test/big/1.jpg", "position": "0"},
                }
            ],
            "created_at": "2024-11-02 08:15:00",
        }
        prop = AttributeReconciler().reconcile_crm(raw)

        self.assertEqual(prop.id, 4521)
        self.assertEqual(prop.slug, "apartamento-amoblado-en-el-penon-4521")
        self.assertEqual(prop.price, 2800000.0)
        self.assertTrue(prop.for_rent)
        self.assertFalse(prop.for_sale)
        self.assertEqual(prop.zone, "Oeste")
        self.assertEqual(
            [m.url.rsplit("/", 1)[1] for m in prop.media], ["1.jpg", "2.jpg", "3.jpg"]
        )
        self.assertEqual(prop.source_ids["crm_id"], 4521)

    def test_slug_helpers(self) -> None:
        self.assertEqual(crm_slug("Casa Campestre", 7), "casa-campestre-7")
        self.assertEqual(slug_id("casa-campestre-7"), 7)
        self.assertIsNone(slug_id("casa-campestre"))


if __name__ == "__main__":
    unittest.main()

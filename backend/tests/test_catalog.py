import sys
import unittest
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from firesale.db.models import Base
from firesale.services.analytics_s import period_range, store_analytics
from firesale.services.favorites_s import list_favorites, toggle_favorite
from firesale.services.items_s import (
    create_item,
    distance_miles,
    get_item,
    list_store_items,
    parse_time_left,
    search_items,
)
from firesale.services.reservations_s import buy_now, confirm_purchase, reserve_item

T0 = datetime(2025, 7, 1, 12, 0, 0)
ORIGIN = (40.0, -75.0)


class CatalogTestCase(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.engine = create_engine("sqlite:///:memory:")
        cls.TestSession = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=cls.engine,
        )
        Base.metadata.create_all(bind=cls.engine)

    @classmethod
    def tearDownClass(cls) -> None:
        cls.engine.dispose()

    def setUp(self) -> None:
        Base.metadata.drop_all(bind=self.engine)
        Base.metadata.create_all(bind=self.engine)
        self.db = self.TestSession()

    def tearDown(self) -> None:
        self.db.close()

    def _create(self, store_id: str = "store-1", **overrides) -> dict:
        payload = {
            "name": "Cast iron pan",
            "original_price": "30.00",
            "discount_price": "12.00",
            "quantity": 3,
            "store_name": "Kitchen Outlet",
            "category": "FireKitchen",
            "time_left": "2 days",
        }
        payload.update(overrides)
        item = create_item(payload, store_id, db=self.db, now=T0)
        self.db.commit()
        return item


class ItemTests(CatalogTestCase):
    def test_parse_time_left(self) -> None:
        self.assertEqual(parse_time_left("3 days"), timedelta(days=3))
        self.assertEqual(parse_time_left("1 hour"), timedelta(hours=1))
        self.assertEqual(parse_time_left(" 45 Minutes "), timedelta(minutes=45))
        for bad in ("", "soon", "0 days", "two days", "3 weeks"):
            with self.subTest(value=bad):
                with self.assertRaises(ValueError):
                    parse_time_left(bad)

    def test_create_item_sets_deal_window_and_discount(self) -> None:
        item = self._create()

        self.assertEqual(item["deal_ends_at"], T0 + timedelta(days=2))
        self.assertEqual(item["discount_percentage"], 60.0)
        self.assertEqual(item["quantity_available"], 3)
        self.assertTrue(item["active"])

    def test_create_item_rejects_bad_payloads(self) -> None:
        cases = [
            {"name": "  "},
            {"discount_price": "31.00"},
            {"original_price": "-1"},
            {"quantity": -2},
            {"category": "Garden"},
            {"time_left": "whenever"},
        ]
        for overrides in cases:
            with self.subTest(overrides=overrides):
                with self.assertRaises(ValueError):
                    self._create(**overrides)
        self.assertEqual(list_store_items("store-1", db=self.db, now=T0)["active"], [])

    def test_get_item_unknown_returns_none(self) -> None:
        self.assertIsNone(get_item(12345, self.db, now=T0))

    def test_store_items_split_active_and_closed(self) -> None:
        open_item = self._create(name="Blender", time_left="3 days")
        closed_item = self._create(name="Toaster", time_left="1 hour")
        self._create(store_id="store-2", name="Other store")

        listing = list_store_items("store-1", db=self.db, now=T0 + timedelta(hours=2))

        self.assertEqual([row["id"] for row in listing["active"]], [open_item["id"]])
        self.assertEqual([row["id"] for row in listing["closed"]], [closed_item["id"]])
        self.assertFalse(listing["closed"][0]["active"])

    def test_store_items_sorted_by_price(self) -> None:
        cheap = self._create(name="Mug", discount_price="2.00")
        pricey = self._create(name="Kettle", discount_price="20.00")

        listing = list_store_items("store-1", db=self.db, now=T0, sort_by="price_desc")

        self.assertEqual([row["id"] for row in listing["active"]], [pricey["id"], cheap["id"]])


class SearchTests(CatalogTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.here = self._create(
            name="Wool scarf",
            category="FireClothing",
            original_price="10.00",
            discount_price="4.00",
            latitude=40.0,
            longitude=-75.0,
            time_left="12 hours",
        )
        self.nearby = self._create(
            name="Couch",
            category="FireHouse",
            original_price="200.00",
            discount_price="50.00",
            latitude=40.03,
            longitude=-75.0,
            time_left="2 days",
        )
        self.far = self._create(
            name="Rain jacket",
            category="FireClothing",
            original_price="40.00",
            discount_price="15.00",
            latitude=40.2,
            longitude=-75.0,
            time_left="5 days",
        )
        self.unplaced = self._create(
            name="Spice rack",
            store_name="Bazaar",
            discount_price="6.00",
            time_left="1 day",
        )

    def _ids(self, rows: list[dict]) -> list[int]:
        return [row["id"] for row in rows]

    def test_distance_miles(self) -> None:
        self.assertAlmostEqual(distance_miles(ORIGIN, 40.0, -75.0), 0.0)
        self.assertAlmostEqual(distance_miles(ORIGIN, 41.0, -75.0), 69.09, places=1)
        self.assertIsNone(distance_miles(ORIGIN, None, -75.0))

    def test_text_matches_item_or_store_name(self) -> None:
        self.assertEqual(self._ids(search_items(db=self.db, now=T0, text="SCARF")), [self.here["id"]])
        self.assertEqual(self._ids(search_items(db=self.db, now=T0, text="bazaar")), [self.unplaced["id"]])

    def test_text_wildcards_match_literally(self) -> None:
        percent = self._create(name="50% off mugs", time_left="1 day")

        self.assertEqual(search_items(db=self.db, now=T0, text="_"), [])
        self.assertEqual(self._ids(search_items(db=self.db, now=T0, text="%")), [percent["id"]])
        self.assertEqual(self._ids(search_items(db=self.db, now=T0, text="0% o")), [percent["id"]])

    def test_category_and_price_filters(self) -> None:
        rows = search_items(db=self.db, now=T0, category="FireClothing", price_range="5_to_20")
        self.assertEqual(self._ids(rows), [self.far["id"]])

        rows = search_items(db=self.db, now=T0, price_range="over_20")
        self.assertEqual(self._ids(rows), [self.nearby["id"]])

    def test_distance_filter_and_sort(self) -> None:
        rows = search_items(db=self.db, now=T0, origin=ORIGIN, distance_range="1_to_5")
        self.assertEqual(self._ids(rows), [self.nearby["id"]])
        self.assertAlmostEqual(rows[0]["distance_miles"], 2.07, places=1)

        rows = search_items(db=self.db, now=T0, origin=ORIGIN, sort_by="distance")
        self.assertEqual(
            self._ids(rows),
            [self.here["id"], self.nearby["id"], self.far["id"], self.unplaced["id"]],
        )

    def test_distance_needs_origin(self) -> None:
        with self.assertRaises(ValueError):
            search_items(db=self.db, now=T0, distance_range="under_1")
        with self.assertRaises(ValueError):
            search_items(db=self.db, now=T0, sort_by="distance")

    def test_time_left_filter_and_closed_deals_hidden(self) -> None:
        rows = search_items(db=self.db, now=T0, time_left_range="over_3_days")
        self.assertEqual(self._ids(rows), [self.far["id"]])

        rows = search_items(db=self.db, now=T0 + timedelta(hours=13))
        self.assertNotIn(self.here["id"], self._ids(rows))

    def test_sort_by_discount(self) -> None:
        rows = search_items(db=self.db, now=T0, sort_by="discount")
        self.assertEqual(
            self._ids(rows),
            [self.unplaced["id"], self.nearby["id"], self.far["id"], self.here["id"]],
        )


class FavoriteTests(CatalogTestCase):
    def test_toggle_adds_then_removes(self) -> None:
        item = self._create()

        first = toggle_favorite("buyer-1", item["id"], self.db)
        self.db.commit()
        self.assertEqual(first, {"item_id": item["id"], "favorite": True})
        self.assertEqual([row["item_id"] for row in list_favorites("buyer-1", self.db)], [item["id"]])
        self.assertEqual(list_favorites("buyer-2", self.db), [])

        second = toggle_favorite("buyer-1", item["id"], self.db)
        self.db.commit()
        self.assertFalse(second["favorite"])
        self.assertEqual(list_favorites("buyer-1", self.db), [])

    def test_toggle_unknown_item(self) -> None:
        with self.assertRaises(LookupError):
            toggle_favorite("buyer-1", 999, self.db)


class AnalyticsTests(CatalogTestCase):
    def test_period_range(self) -> None:
        self.assertEqual(period_range("week", T0), (T0 - timedelta(days=7), T0))
        self.assertEqual(period_range("year", T0)[0], T0 - timedelta(days=365))
        with self.assertRaises(ValueError):
            period_range("decade", T0)

    def test_store_analytics_aggregates_purchases(self) -> None:
        pan = self._create(name="Pan", quantity=5, discount_price="10.00")
        coat = self._create(
            name="Coat",
            category="FireClothing",
            original_price="50.00",
            discount_price="25.00",
            quantity=5,
        )
        self._create(store_id="store-2", name="Elsewhere", quantity=5)

        self.assertTrue(buy_now(pan["id"], "buyer-1", 2, db=self.db, now=T0).ok)
        held = reserve_item(coat["id"], "buyer-2", db=self.db, now=T0)
        self.assertTrue(confirm_purchase(
            held.data["id"],
            db=self.db,
            now=T0 + timedelta(hours=23),
        ).ok)
        reserve_item(pan["id"], "buyer-3", db=self.db, now=T0)
        self.db.commit()

        report = store_analytics(
            "store-1",
            start=T0 - timedelta(days=7),
            end=T0 + timedelta(days=2),
            db=self.db,
        )

        self.assertEqual(report["sales_made"], 2)
        self.assertEqual(report["items_sold"], 3)
        self.assertEqual(report["total_revenue"], Decimal("45.00"))
        self.assertEqual(
            report["sales_by_day"],
            [
                {"day": "2025-07-01", "sales": Decimal("20.00")},
                {"day": "2025-07-02", "sales": Decimal("25.00")},
            ],
        )
        self.assertEqual([row["name"] for row in report["top_items"]], ["Coat", "Pan"])
        distribution = {row["category"]: row["percentage"] for row in report["category_distribution"]}
        self.assertAlmostEqual(distribution["FireKitchen"], 2 / 3)
        self.assertAlmostEqual(distribution["FireClothing"], 1 / 3)

    def test_store_analytics_empty_window(self) -> None:
        report = store_analytics("store-1", start=T0, end=T0 + timedelta(days=1), db=self.db)

        self.assertEqual(report["sales_made"], 0)
        self.assertEqual(report["total_revenue"], Decimal("0"))
        self.assertEqual(report["category_distribution"], [])


if __name__ == "__main__":
    unittest.main()

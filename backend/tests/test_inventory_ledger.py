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

from firesale.db.models import Base, Item
from firesale.services.inventory_ledger_s import get_quantity, increment, try_decrement


class InventoryLedgerTests(unittest.TestCase):
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

    def _seed_item(self, quantity: int) -> int:
        now = datetime(2025, 6, 20, 12, 0, 0)
        session = self.TestSession()
        try:
            item = Item(
                name="Sourdough loaf",
                original_price=Decimal("4.00"),
                discount_price=Decimal("1.50"),
                quantity_available=quantity,
                store_id="store-1",
                store_name="Corner Bakery",
                category="FireKitchen",
                time_left="2 days",
                deal_ends_at=now + timedelta(days=2),
                created_at=now,
                updated_at=now,
            )
            session.add(item)
            session.commit()
            return int(item.id)
        finally:
            session.close()

    def test_try_decrement_takes_stock_and_reports_new_quantity(self) -> None:
        item_id = self._seed_item(quantity=3)

        session = self.TestSession()
        try:
            result = try_decrement(item_id, 2, session)
            session.commit()
        finally:
            session.close()

        self.assertTrue(result.ok)
        self.assertEqual(result.data, 1)

        session = self.TestSession()
        try:
            self.assertEqual(get_quantity(item_id, session), 1)
        finally:
            session.close()

    def test_try_decrement_rejects_when_stock_is_short(self) -> None:
        item_id = self._seed_item(quantity=1)

        session = self.TestSession()
        try:
            result = try_decrement(item_id, 2, session)
            quantity = get_quantity(item_id, session)
        finally:
            session.close()

        self.assertFalse(result.ok)
        self.assertEqual(result.error, "insufficient_stock")
        self.assertEqual(quantity, 1)

    def test_try_decrement_on_empty_item_is_insufficient_stock(self) -> None:
        item_id = self._seed_item(quantity=0)

        session = self.TestSession()
        try:
            result = try_decrement(item_id, 1, session)
        finally:
            session.close()

        self.assertEqual(result.error, "insufficient_stock")

    def test_try_decrement_unknown_item(self) -> None:
        session = self.TestSession()
        try:
            result = try_decrement(999, 1, session)
        finally:
            session.close()

        self.assertFalse(result.ok)
        self.assertEqual(result.error, "item_not_found")

    def test_second_decrement_for_last_unit_fails(self) -> None:
        item_id = self._seed_item(quantity=1)

        session = self.TestSession()
        try:
            first = try_decrement(item_id, 1, session)
            second = try_decrement(item_id, 1, session)
            session.commit()
            quantity = get_quantity(item_id, session)
        finally:
            session.close()

        self.assertTrue(first.ok)
        self.assertEqual(second.error, "insufficient_stock")
        self.assertEqual(quantity, 0)

    def test_increment_returns_stock(self) -> None:
        item_id = self._seed_item(quantity=0)

        session = self.TestSession()
        try:
            result = increment(item_id, 2, session)
            session.commit()
        finally:
            session.close()

        self.assertTrue(result.ok)
        self.assertEqual(result.data, 2)

    def test_increment_unknown_item(self) -> None:
        session = self.TestSession()
        try:
            result = increment(404, 1, session)
        finally:
            session.close()

        self.assertEqual(result.error, "item_not_found")

    def test_non_positive_amount_is_a_programming_error(self) -> None:
        item_id = self._seed_item(quantity=5)

        session = self.TestSession()
        try:
            with self.assertRaises(ValueError):
                try_decrement(item_id, 0, session)
            with self.assertRaises(ValueError):
                increment(item_id, -1, session)
        finally:
            session.close()


if __name__ == "__main__":
    unittest.main()

#   Copyright 2026 UCP Authors
#
#   Licensed under the Apache License, Version 2.0 (the "License");
#   you may not use this file except in compliance with the License.
#   You may obtain a copy of the License at
#
#       http://www.apache.org/licenses/LICENSE-2.0
#
#   Unless required by applicable law or agreed to in writing, software
#   distributed under the License is distributed on an "AS IS" BASIS,
#   WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#   See the License for the specific language governing permissions and
#   limitations under the License.

"""Tests for the inventory guard."""

import asyncio

from absl.testing import absltest
from acp_checkout.adapters.base import Availability
from acp_checkout.exceptions import ConflictError
from acp_checkout.models import CheckoutItem
from acp_checkout.services.inventory import InventoryGuard
from acp_checkout.services.inventory import is_short
from acp_checkout.testing import FakeCatalog


def _item(variant_id: str, quantity: int) -> CheckoutItem:
  return CheckoutItem(
      sku=f"SKU-{variant_id}",
      quantity=quantity,
      variant_id=variant_id,
      unit_price=100,
      title="Item",
  )


class IsShortTest(absltest.TestCase):

  def test_unknown_quantity_is_never_short(self):
    self.assertFalse(is_short(Availability(available=False), 1000))

  def test_known_quantity_below_request_is_short(self):
    availability = Availability(available=False, available_quantity=2)

    self.assertTrue(is_short(availability, 3))
    self.assertFalse(is_short(availability, 2))


class InventoryGuardTest(absltest.TestCase):

  def setUp(self):
    super().setUp()
    self.catalog = FakeCatalog()
    self.guard = InventoryGuard(self.catalog)

  def test_accepts_items_in_stock(self):
    asyncio.run(self.guard.ensure_available([_item("1001", 10)]))

  def test_accepts_untracked_items(self):
    asyncio.run(self.guard.ensure_available([_item("1003", 500)]))

  def test_rejects_first_short_item(self):
    with self.assertRaises(ConflictError) as cm:
      asyncio.run(
          self.guard.ensure_available([_item("1001", 1), _item("1002", 4)])
      )

    self.assertEqual(cm.exception.status_code, 409)
    self.assertEqual(
        cm.exception.details,
        {"variantId": "1002", "requested": 4, "available": 3},
    )
    self.assertIn("SKU-1002", cm.exception.message)


if __name__ == "__main__":
  absltest.main()

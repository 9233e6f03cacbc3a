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

"""In-memory adapters for exercising the checkout service without network.

The fakes record every call so tests can assert how often, and with what, the
external systems were reached. Failures are injected by assigning an exception
to the `fail_with` attribute; it is raised on every call until reset to None.
"""

import itertools
from typing import Any, Dict, List, Optional, Sequence

from acp_checkout.adapters.base import Availability
from acp_checkout.adapters.base import CAPTURE_COMPLETED
from acp_checkout.adapters.base import CatalogAdapter
from acp_checkout.adapters.base import CommerceAdapter
from acp_checkout.adapters.base import CommerceOrder
from acp_checkout.adapters.base import PaymentAdapter
from acp_checkout.adapters.base import PaymentCapture
from acp_checkout.adapters.base import ResolvedVariant
from acp_checkout.exceptions import NotFoundError
from acp_checkout.models import Address
from acp_checkout.models import CheckoutItem
from pydantic import BaseModel


class FakeProduct(BaseModel):
  variant_id: str
  unit_price: int
  title: str
  inventory: Optional[int] = None


def default_products() -> Dict[str, FakeProduct]:
  """A small catalog keyed by SKU; one item does not track inventory."""
  return {
      "SKU-1": FakeProduct(
          variant_id="1001", unit_price=1000, title="Mug", inventory=10
      ),
      "SKU-2": FakeProduct(
          variant_id="1002", unit_price=2500, title="Teapot", inventory=3
      ),
      "SKU-UNTRACKED": FakeProduct(
          variant_id="1003", unit_price=499, title="Gift card"
      ),
  }


class FakeCatalog(CatalogAdapter):
  """Catalog keyed by SKU or product id."""

  def __init__(self, products: Optional[Dict[str, FakeProduct]] = None):
    self.products = default_products() if products is None else products
    self.resolve_calls: List[str] = []
    self.availability_calls: List[str] = []
    self.fail_with: Optional[Exception] = None

  def set_inventory(self, variant_id: str, inventory: Optional[int]) -> None:
    for product in self.products.values():
      if product.variant_id == variant_id:
        product.inventory = inventory

  async def resolve_variant(self, reference: str) -> ResolvedVariant:
    self.resolve_calls.append(reference)
    if self.fail_with is not None:
      raise self.fail_with
    product = self.products.get(reference)
    if product is None:
      raise NotFoundError(
          f"SKU {reference} not mapped to Shopify variant. Add to"
          " SHOPIFY_SKU_MAP.",
          details={"reference": reference},
      )
    return ResolvedVariant(
        variant_id=product.variant_id,
        unit_price=product.unit_price,
        title=product.title,
    )

  async def check_availability(
      self, variant_id: str, quantity: int
  ) -> Availability:
    self.availability_calls.append(variant_id)
    if self.fail_with is not None:
      raise self.fail_with
    for product in self.products.values():
      if product.variant_id == variant_id and product.inventory is not None:
        return Availability(
            available=product.inventory >= quantity,
            available_quantity=product.inventory,
        )
    return Availability(available=True)


class FakePayments(PaymentAdapter):
  """Payment processor that reports `status` for every capture."""

  def __init__(self, status: str = CAPTURE_COMPLETED):
    self.status = status
    self.captured_tokens: List[str] = []
    self.fail_with: Optional[Exception] = None

  async def capture_payment(self, token: str) -> PaymentCapture:
    self.captured_tokens.append(token)
    if self.fail_with is not None:
      raise self.fail_with
    return PaymentCapture(
        status=self.status, capture_id=f"CAP-{len(self.captured_tokens)}"
    )


class FakeCommerce(CommerceAdapter):
  """Commerce platform handing out sequential numeric order ids."""

  def __init__(self, first_order_id: int = 5001):
    self._order_ids = itertools.count(first_order_id)
    self.orders: Dict[str, Dict[str, Any]] = {}
    self.create_calls = 0
    self.cancelled: List[str] = []
    self.fail_with: Optional[Exception] = None
    self.fail_cancel_with: Optional[Exception] = None

  async def create_order(
      self,
      items: Sequence[CheckoutItem],
      email: str,
      shipping_address: Optional[Address],
      paid: bool,
  ) -> CommerceOrder:
    self.create_calls += 1
    if self.fail_with is not None:
      raise self.fail_with
    order_id = str(next(self._order_ids))
    self.orders[order_id] = {
        "items": [(item.variant_id, item.quantity) for item in items],
        "email": email,
        "shipping_address": shipping_address,
        "paid": paid,
    }
    return CommerceOrder(order_id=order_id)

  async def cancel_order(self, order_id: str) -> None:
    if self.fail_cancel_with is not None:
      raise self.fail_cancel_with
    self.cancelled.append(order_id)

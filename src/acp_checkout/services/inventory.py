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

"""Inventory validation against the catalog.

Inventory is checked, never reserved. Items whose availability the catalog
does not track are always accepted.
"""

import logging
from typing import Sequence

from acp_checkout.adapters.base import Availability
from acp_checkout.adapters.base import CatalogAdapter
from acp_checkout.exceptions import ConflictError
from acp_checkout.models import CheckoutItem

logger = logging.getLogger(__name__)


def is_short(availability: Availability, quantity: int) -> bool:
  """True only if a known available quantity is below `quantity`."""
  if availability.available_quantity is None:
    return False
  return availability.available_quantity < quantity


class InventoryGuard:
  """Validates requested quantities against catalog availability."""

  def __init__(self, catalog: CatalogAdapter):
    self.catalog = catalog

  async def ensure_available(self, items: Sequence[CheckoutItem]) -> None:
    """Raises `ConflictError` for the first item the catalog cannot supply."""
    for item in items:
      availability = await self.catalog.check_availability(
          item.variant_id, item.quantity
      )
      if is_short(availability, item.quantity):
        logger.info(
            "Insufficient stock for variant %s: requested %d, available %d",
            item.variant_id,
            item.quantity,
            availability.available_quantity,
        )
        raise ConflictError(
            f"Item out of stock: {item.sku or item.variant_id}",
            details={
                "variantId": item.variant_id,
                "requested": item.quantity,
                "available": availability.available_quantity,
            },
        )

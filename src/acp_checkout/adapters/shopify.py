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

"""Shopify Admin REST API adapter.

Serves as both the catalog (variant lookup and inventory) and the commerce
platform (order creation and cancellation). SKUs are mapped to variant ids
through a configured SKU map, since the Admin REST API has no SKU lookup.
"""

import decimal
import logging
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from acp_checkout.adapters.base import Availability
from acp_checkout.adapters.base import CatalogAdapter
from acp_checkout.adapters.base import CommerceAdapter
from acp_checkout.adapters.base import CommerceOrder
from acp_checkout.adapters.base import ResolvedVariant
from acp_checkout.adapters.base import upstream_error
from acp_checkout.exceptions import NotFoundError
from acp_checkout.exceptions import UpstreamError
from acp_checkout.models import Address
from acp_checkout.models import CheckoutItem
import httpx

logger = logging.getLogger(__name__)

_VARIANT_GID_PREFIX = "gid://shopify/ProductVariant/"


def to_minor_units(price: Union[str, int, float]) -> int:
  """Converts a decimal price such as "10.00" to cents."""
  try:
    amount = decimal.Decimal(str(price)) * 100
  except decimal.InvalidOperation as e:
    raise UpstreamError(
        "Malformed variant price from Shopify", {"price": price}
    ) from e
  amount = amount.quantize(decimal.Decimal(1), rounding=decimal.ROUND_HALF_UP)
  return int(amount)


def to_shopify_address(address: Optional[Address]) -> Optional[Dict[str, Any]]:
  if address is None:
    return None
  return {
      "address1": address.line1,
      "address2": address.line2,
      "city": address.city,
      "province": address.state,
      "zip": address.postal_code,
      "country": address.country,
  }


def _shopify_id(variant_id: str) -> Union[int, str]:
  return int(variant_id) if variant_id.isdigit() else variant_id


class ShopifyClient(CatalogAdapter, CommerceAdapter):
  """Catalog and commerce adapter over the Shopify Admin REST API."""

  def __init__(
      self,
      http_client: httpx.AsyncClient,
      shop: str,
      access_token: str,
      api_version: str = "2023-10",
      sku_map: Optional[Mapping[str, Union[int, str]]] = None,
  ):
    self.http_client = http_client
    self.base_url = f"https://{shop}/admin/api/{api_version}"
    self._access_token = access_token
    self.sku_map = {sku: str(vid) for sku, vid in (sku_map or {}).items()}

  def _headers(self) -> Dict[str, str]:
    return {
        "X-Shopify-Access-Token": self._access_token,
        "Content-Type": "application/json",
    }

  async def _request(
      self,
      method: str,
      path: str,
      failure_message: str,
      json: Optional[Dict[str, Any]] = None,
  ) -> Dict[str, Any]:
    try:
      response = await self.http_client.request(
          method, f"{self.base_url}{path}", headers=self._headers(), json=json
      )
      response.raise_for_status()
      body = response.json()
    except httpx.HTTPError as e:
      raise upstream_error(failure_message, e) from e
    except ValueError as e:
      raise UpstreamError(
          failure_message, {"reason": "malformed response"}
      ) from e
    if not isinstance(body, dict):
      raise UpstreamError(failure_message, {"reason": "malformed response"})
    return body

  def variant_id_for(self, reference: str) -> Optional[str]:
    """Maps a SKU or product reference to a variant id, if one is known."""
    if reference in self.sku_map:
      return self.sku_map[reference]
    if reference.startswith(_VARIANT_GID_PREFIX):
      return reference[len(_VARIANT_GID_PREFIX):]
    if reference.isdigit():
      return reference
    return None

  async def get_variant(self, variant_id: str) -> Dict[str, Any]:
    try:
      data = await self._request(
          "GET", f"/variants/{variant_id}.json", "Failed to fetch variant"
      )
    except UpstreamError as e:
      if isinstance(e.details, dict) and e.details.get("status") == 404:
        raise NotFoundError(
            f"Shopify variant {variant_id} not found",
            details={"variantId": variant_id},
        ) from e
      raise
    variant = data.get("variant")
    if not isinstance(variant, dict):
      raise UpstreamError(
          "Failed to fetch variant", {"reason": "missing variant"}
      )
    return variant

  async def resolve_variant(self, reference: str) -> ResolvedVariant:
    variant_id = self.variant_id_for(reference)
    if variant_id is None:
      raise NotFoundError(
          f"SKU {reference} not mapped to Shopify variant. Add to"
          " SHOPIFY_SKU_MAP.",
          details={"reference": reference},
      )
    variant = await self.get_variant(variant_id)
    if variant.get("price") is None:
      raise UpstreamError(
          "Failed to fetch variant", {"reason": "variant has no price"}
      )
    return ResolvedVariant(
        variant_id=variant_id,
        unit_price=to_minor_units(variant["price"]),
        title=variant.get("title") or variant.get("name") or reference,
    )

  async def check_availability(
      self, variant_id: str, quantity: int
  ) -> Availability:
    variant = await self.get_variant(variant_id)
    inventory = variant.get("inventory_quantity")
    if not isinstance(inventory, int) or isinstance(inventory, bool):
      return Availability(available=True)
    return Availability(
        available=inventory >= quantity, available_quantity=inventory
    )

  async def create_order(
      self,
      items: Sequence[CheckoutItem],
      email: str,
      shipping_address: Optional[Address],
      paid: bool,
  ) -> CommerceOrder:
    order: Dict[str, Any] = {
        "email": email,
        "line_items": [
            {
                "variant_id": _shopify_id(item.variant_id),
                "quantity": item.quantity,
            }
            for item in items
        ],
        "financial_status": "paid" if paid else "pending",
    }
    address = to_shopify_address(shipping_address)
    if address:
      order["shipping_address"] = address
    data = await self._request(
        "POST",
        "/orders.json",
        "Failed to create Shopify order",
        {"order": order},
    )
    created = data.get("order") or {}
    if created.get("id") is None:
      raise UpstreamError(
          "Failed to create Shopify order", {"reason": "missing order id"}
      )
    logger.info("Created Shopify order %s (paid=%s)", created["id"], paid)
    return CommerceOrder(order_id=str(created["id"]))

  async def cancel_order(self, order_id: str) -> None:
    await self._request(
        "POST",
        f"/orders/{order_id}/cancel.json",
        "Failed to cancel Shopify order",
        {},
    )
    logger.info("Cancelled Shopify order %s", order_id)

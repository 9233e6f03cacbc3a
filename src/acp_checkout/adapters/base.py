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

"""Contracts for the external systems the checkout service depends on.

The checkout service only talks to the catalog, the payment processor and the
commerce platform through these classes. Implementations raise
`UpstreamError` for any transport or protocol failure and `NotFoundError` when
a catalog reference has no variant.
"""

import abc
import logging
from typing import Any, Dict, Optional, Sequence

from acp_checkout.exceptions import UpstreamError
from acp_checkout.models import Address
from acp_checkout.models import CheckoutItem
import httpx
from pydantic import BaseModel

logger = logging.getLogger(__name__)

CAPTURE_COMPLETED = "COMPLETED"


class ResolvedVariant(BaseModel):
  variant_id: str
  unit_price: int
  title: str


class Availability(BaseModel):
  available: bool
  available_quantity: Optional[int] = None


class PaymentCapture(BaseModel):
  """Outcome reported by the payment processor for a capture."""

  status: str
  capture_id: Optional[str] = None

  @property
  def is_completed(self) -> bool:
    return self.status.upper() == CAPTURE_COMPLETED


class CommerceOrder(BaseModel):
  order_id: str


class CatalogAdapter(abc.ABC):

  @abc.abstractmethod
  async def resolve_variant(self, reference: str) -> ResolvedVariant:
    """Resolves a SKU or product id to a purchasable variant."""

  @abc.abstractmethod
  async def check_availability(
      self, variant_id: str, quantity: int
  ) -> Availability:
    """Reports whether `quantity` units of `variant_id` can be sold."""


class PaymentAdapter(abc.ABC):

  @abc.abstractmethod
  async def capture_payment(self, token: str) -> PaymentCapture:
    """Captures the payment approved under `token`."""


class CommerceAdapter(abc.ABC):

  @abc.abstractmethod
  async def create_order(
      self,
      items: Sequence[CheckoutItem],
      email: str,
      shipping_address: Optional[Address],
      paid: bool,
  ) -> CommerceOrder:
    """Creates an order, flagged as paid or payment pending."""

  @abc.abstractmethod
  async def cancel_order(self, order_id: str) -> None:
    """Cancels a previously created order."""


def _response_body(response: httpx.Response) -> Any:
  try:
    return response.json()
  except ValueError:
    return response.text


def upstream_error(message: str, exc: Exception) -> UpstreamError:
  """Wraps an httpx failure, keeping only redactable diagnostic detail."""
  details: Dict[str, Any]
  if isinstance(exc, httpx.HTTPStatusError):
    details = {
        "status": exc.response.status_code,
        "body": _response_body(exc.response),
    }
  elif isinstance(exc, httpx.TimeoutException):
    details = {"reason": "timeout"}
  elif isinstance(exc, httpx.RequestError):
    details = {"reason": type(exc).__name__}
  else:
    details = {"reason": str(exc)}
  logger.warning(
      "%s: %s", message, details.get("status", details.get("reason"))
  )
  return UpstreamError(message, details)

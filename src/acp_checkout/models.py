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

"""Models for the ACP checkout server.

The wire format is camelCase JSON while Python code uses snake_case; every
model accepts both spellings and dumps camelCase when `by_alias=True`.

Request models are validated at the HTTP boundary, so the checkout service
only ever receives well-formed values. `CheckoutSession` is the stored record
and never leaves the server except through the debug listing.
"""

from typing import Any, List, Literal, Optional

from acp_checkout.enums import CheckoutStatus
from acp_checkout.enums import ShippingOption
from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import model_validator
from pydantic.alias_generators import to_camel

_EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class AcpModel(BaseModel):
  """Base model with camelCase aliases."""

  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Address(AcpModel):
  """Structured shipping address."""

  model_config = ConfigDict(
      alias_generator=to_camel, populate_by_name=True, frozen=True
  )

  line1: str = Field(min_length=1)
  line2: Optional[str] = None
  city: str = Field(min_length=1)
  state: Optional[str] = None
  postal_code: str = Field(min_length=1)
  country: str = Field(min_length=2, max_length=2)


class CheckoutItemRequest(AcpModel):
  """An item reference as supplied by the client."""

  sku: Optional[str] = Field(default=None, min_length=1)
  product_id: Optional[str] = Field(default=None, min_length=1)
  quantity: int = Field(gt=0)

  @model_validator(mode="after")
  def _require_reference(self) -> "CheckoutItemRequest":
    if not self.sku and not self.product_id:
      raise ValueError("Each item must include sku or productId")
    return self

  @property
  def reference(self) -> str:
    return self.sku or self.product_id


class CheckoutItem(AcpModel):
  """An item resolved against the catalog."""

  sku: Optional[str] = None
  product_id: Optional[str] = None
  quantity: int = Field(gt=0)
  variant_id: str
  unit_price: int
  title: str

  def to_request(self) -> CheckoutItemRequest:
    """Returns the client reference this item was resolved from."""
    return CheckoutItemRequest(
        sku=self.sku, product_id=self.product_id, quantity=self.quantity
    )


class CheckoutSession(AcpModel):
  """Stored state of a checkout session."""

  id: str
  items: List[CheckoutItem] = Field(default_factory=list)
  shipping_address: Optional[Address] = None
  shipping_option: Optional[ShippingOption] = None
  email: Optional[str] = None
  currency: str = "USD"
  subtotal: int = 0
  shipping_amount: int = 0
  tax_amount: int = 0
  total: int = 0
  status: CheckoutStatus = CheckoutStatus.DRAFT
  order_id: Optional[str] = None
  payment_status: Optional[str] = None
  paid: Optional[bool] = None
  cancel_reason: Optional[str] = None
  created_at: float = 0.0
  updated_at: float = 0.0


# --- Requests ---


class CreateCheckoutRequest(AcpModel):
  items: List[CheckoutItemRequest] = Field(min_length=1)
  shipping_address: Optional[Address] = None
  shipping_option: Optional[ShippingOption] = None
  email: Optional[str] = Field(default=None, pattern=_EMAIL_PATTERN)


class UpdateCheckoutRequest(AcpModel):
  session_id: str = Field(min_length=1)
  items: Optional[List[CheckoutItemRequest]] = Field(
      default=None, min_length=1
  )
  shipping_address: Optional[Address] = None
  shipping_option: Optional[ShippingOption] = None


class SharedPaymentToken(AcpModel):
  provider: Literal["paypal"]
  token: str = Field(min_length=3)


class CompleteCheckoutRequest(AcpModel):
  session_id: str = Field(min_length=1)
  shared_payment_token: SharedPaymentToken
  email: str = Field(pattern=_EMAIL_PATTERN)


class CancelCheckoutRequest(AcpModel):
  session_id: str = Field(min_length=1)
  reason: Optional[str] = None


# --- Responses ---


class ShippingOptionQuote(AcpModel):
  id: ShippingOption
  label: str
  amount: int


class CheckoutResponse(AcpModel):
  """Totals of a session, returned by update."""

  session_id: str
  currency: str
  subtotal: int
  shipping: int
  tax: int
  total: int
  status: CheckoutStatus


class CreateCheckoutResponse(CheckoutResponse):
  shipping_options: List[ShippingOptionQuote]


class CompleteCheckoutResponse(AcpModel):
  order_id: str
  shopify_order_id: str
  status: CheckoutStatus


class CancelCheckoutResponse(AcpModel):
  session_id: str
  status: CheckoutStatus


class ErrorResponse(AcpModel):
  code: str
  message: str
  details: Optional[Any] = None
  request_id: Optional[str] = None

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

"""Checkout totals.

All amounts are integers in minor currency units (cents). The functions here
are pure: the same items and shipping option always produce the same totals,
so a session's totals can be re-derived from its final state at any time.
"""

import decimal
from typing import List, NamedTuple, Optional, Sequence

from acp_checkout.enums import ShippingOption
from acp_checkout.models import CheckoutItem
from acp_checkout.models import ShippingOptionQuote

TAX_RATE = decimal.Decimal("0.08")

SHIPPING_RATES = {
    ShippingOption.STANDARD: 599,
    ShippingOption.EXPRESS: 1499,
}

_SHIPPING_LABELS = {
    ShippingOption.STANDARD: "Standard (5-7 days)",
    ShippingOption.EXPRESS: "Express (2-3 days)",
}


class Totals(NamedTuple):
  subtotal: int
  shipping_amount: int
  tax_amount: int
  total: int


def shipping_amount(option: Optional[ShippingOption]) -> int:
  """Returns the flat tariff for `option`; anything but express is standard."""
  if option == ShippingOption.EXPRESS:
    return SHIPPING_RATES[ShippingOption.EXPRESS]
  return SHIPPING_RATES[ShippingOption.STANDARD]


def shipping_quotes() -> List[ShippingOptionQuote]:
  return [
      ShippingOptionQuote(
          id=option, label=_SHIPPING_LABELS[option], amount=amount
      )
      for option, amount in SHIPPING_RATES.items()
  ]


def calculate_tax(subtotal: int, rate: decimal.Decimal = TAX_RATE) -> int:
  """Applies `rate` to `subtotal`, rounding half up to a whole minor unit."""
  amount = decimal.Decimal(subtotal) * rate
  amount = amount.quantize(decimal.Decimal(1), rounding=decimal.ROUND_HALF_UP)
  return int(amount)


def calculate_totals(
    items: Sequence[CheckoutItem],
    option: Optional[ShippingOption] = None,
) -> Totals:
  subtotal = sum(item.unit_price * item.quantity for item in items)
  shipping = shipping_amount(option)
  tax = calculate_tax(subtotal)
  return Totals(
      subtotal=subtotal,
      shipping_amount=shipping,
      tax_amount=tax,
      total=subtotal + shipping + tax,
  )

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

"""Enumerations for the ACP checkout server.

This module defines the checkout session states, the directed edges between
them, the shipping tariffs a session can select and the names under which
idempotency keys are scoped.
"""

import enum


class CheckoutStatus(str, enum.Enum):
  DRAFT = "draft"
  AWAITING_PAYMENT = "awaiting_payment"
  COMPLETED = "completed"
  CANCELLED = "cancelled"


class ShippingOption(str, enum.Enum):
  STANDARD = "standard"
  EXPRESS = "express"


class Operation(str, enum.Enum):
  """Operation names used to scope idempotency keys."""

  CREATE_CHECKOUT = "create_checkout"
  UPDATE_CHECKOUT = "update_checkout"
  COMPLETE_CHECKOUT = "complete_checkout"
  CANCEL_CHECKOUT = "cancel_checkout"


# No edge leaves a terminal state.
ALLOWED_TRANSITIONS = {
    CheckoutStatus.DRAFT: frozenset(
        {CheckoutStatus.AWAITING_PAYMENT, CheckoutStatus.CANCELLED}
    ),
    CheckoutStatus.AWAITING_PAYMENT: frozenset(
        {CheckoutStatus.COMPLETED, CheckoutStatus.CANCELLED}
    ),
    CheckoutStatus.COMPLETED: frozenset(),
    CheckoutStatus.CANCELLED: frozenset(),
}

MODIFIABLE_STATUSES = frozenset(
    {CheckoutStatus.DRAFT, CheckoutStatus.AWAITING_PAYMENT}
)


def can_transition(current: CheckoutStatus, target: CheckoutStatus) -> bool:
  """Returns whether `current` may advance to `target`."""
  return target in ALLOWED_TRANSITIONS[current]

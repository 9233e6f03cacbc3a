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

"""Checkout service for managing the lifecycle of checkout sessions.

This module provides the `CheckoutService` class, which orchestrates creating,
updating, completing and cancelling checkout sessions across the catalog, the
payment processor and the commerce platform.

Key responsibilities include:
- Enforcing the session state machine
  (draft -> awaiting_payment -> completed, and -> cancelled).
- Deduplicating retried requests through the idempotency cache.
- Serializing mutating operations per session id.
- Resolving items against the catalog and validating inventory.
- Reconciling payment capture with order creation when the two external
  systems disagree or fail independently.
"""

import hashlib
import json
import logging
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Type
from typing import TypeVar

from acp_checkout.adapters.base import CatalogAdapter
from acp_checkout.adapters.base import CAPTURE_COMPLETED
from acp_checkout.adapters.base import CommerceAdapter
from acp_checkout.adapters.base import PaymentAdapter
from acp_checkout.enums import can_transition
from acp_checkout.enums import CheckoutStatus
from acp_checkout.enums import MODIFIABLE_STATUSES
from acp_checkout.enums import Operation
from acp_checkout.exceptions import BadRequestError
from acp_checkout.exceptions import ConflictError
from acp_checkout.exceptions import IdempotencyConflictError
from acp_checkout.locks import KeyedLock
from acp_checkout.models import AcpModel
from acp_checkout.models import CancelCheckoutRequest
from acp_checkout.models import CancelCheckoutResponse
from acp_checkout.models import CheckoutItem
from acp_checkout.models import CheckoutItemRequest
from acp_checkout.models import CheckoutResponse
from acp_checkout.models import CheckoutSession
from acp_checkout.models import CompleteCheckoutRequest
from acp_checkout.models import CompleteCheckoutResponse
from acp_checkout.models import CreateCheckoutRequest
from acp_checkout.models import CreateCheckoutResponse
from acp_checkout.models import UpdateCheckoutRequest
from acp_checkout.services import pricing
from acp_checkout.services.inventory import InventoryGuard
from acp_checkout.storage import IdempotencyCache
from acp_checkout.storage import SessionStore
from pydantic import BaseModel

logger = logging.getLogger(__name__)

ResponseT = TypeVar("ResponseT", bound=AcpModel)


class CheckoutService:
  """Service for managing checkout sessions and orders."""

  def __init__(
      self,
      sessions: SessionStore,
      idempotency: IdempotencyCache,
      catalog: CatalogAdapter,
      payments: PaymentAdapter,
      commerce: CommerceAdapter,
      currency: str = "USD",
  ):
    self.sessions = sessions
    self.idempotency = idempotency
    self.catalog = catalog
    self.payments = payments
    self.commerce = commerce
    self.currency = currency
    self.inventory = InventoryGuard(catalog)
    self._session_locks = KeyedLock()
    self._key_locks = KeyedLock()

  def _compute_hash(self, data: Any) -> str:
    """Computes SHA256 hash of the JSON-serialized data."""
    if isinstance(data, BaseModel):
      json_str = json.dumps(data.model_dump(mode="json"), sort_keys=True)
    else:
      json_str = json.dumps(data, sort_keys=True)
    return hashlib.sha256(json_str.encode("utf-8")).hexdigest()

  async def _run_idempotent(
      self,
      operation: Operation,
      idempotency_key: Optional[str],
      request: BaseModel,
      response_type: Type[ResponseT],
      execute: Callable[[], Awaitable[ResponseT]],
  ) -> ResponseT:
    """Runs `execute` at most once per (operation, idempotency key).

    Without a key every call executes. With a key, concurrent calls are
    serialized; the first successful response is cached and replayed to every
    later call, which never reaches `execute`. Failures are not cached.
    """
    if not idempotency_key:
      return await execute()

    request_hash = self._compute_hash(request)
    async with self._key_locks.hold((operation.value, idempotency_key)):
      existing_record = await self.idempotency.get(
          operation.value, idempotency_key
      )
      if existing_record:
        if existing_record.request_hash != request_hash:
          raise IdempotencyConflictError(
              "Idempotency key reused with different parameters"
          )
        logger.info(
            "Replaying cached %s response for idempotency key", operation.value
        )
        return response_type.model_validate(existing_record.response_body)

      response = await execute()
      await self.idempotency.set(
          operation.value,
          idempotency_key,
          request_hash,
          response.model_dump(mode="json", by_alias=True),
      )
      return response

  async def create_checkout(
      self,
      checkout_req: CreateCheckoutRequest,
      idempotency_key: Optional[str] = None,
  ) -> CreateCheckoutResponse:
    """Creates a new checkout session."""
    return await self._run_idempotent(
        Operation.CREATE_CHECKOUT,
        idempotency_key,
        checkout_req,
        CreateCheckoutResponse,
        lambda: self._create_checkout(checkout_req),
    )

  async def update_checkout(
      self,
      checkout_req: UpdateCheckoutRequest,
      idempotency_key: Optional[str] = None,
  ) -> CheckoutResponse:
    """Updates a checkout session."""
    return await self._run_idempotent(
        Operation.UPDATE_CHECKOUT,
        idempotency_key,
        checkout_req,
        CheckoutResponse,
        lambda: self._update_checkout(checkout_req),
    )

  async def complete_checkout(
      self,
      checkout_req: CompleteCheckoutRequest,
      idempotency_key: Optional[str] = None,
  ) -> CompleteCheckoutResponse:
    """Completes a checkout session."""
    return await self._run_idempotent(
        Operation.COMPLETE_CHECKOUT,
        idempotency_key,
        checkout_req,
        CompleteCheckoutResponse,
        lambda: self._complete_checkout(checkout_req),
    )

  async def cancel_checkout(
      self,
      checkout_req: CancelCheckoutRequest,
      idempotency_key: Optional[str] = None,
  ) -> CancelCheckoutResponse:
    """Cancels a checkout session."""
    return await self._run_idempotent(
        Operation.CANCEL_CHECKOUT,
        idempotency_key,
        checkout_req,
        CancelCheckoutResponse,
        lambda: self._cancel_checkout(checkout_req),
    )

  async def list_sessions(self) -> List[CheckoutSession]:
    """Returns a snapshot of all live sessions, for diagnostics only."""
    return await self.sessions.list_all()

  async def _create_checkout(
      self, checkout_req: CreateCheckoutRequest
  ) -> CreateCheckoutResponse:
    logger.info("Creating checkout session")

    # Nothing is persisted until every item resolves and is in stock.
    items = await self._resolve_items(checkout_req.items)
    await self.inventory.ensure_available(items)
    totals = pricing.calculate_totals(items, checkout_req.shipping_option)

    checkout = await self.sessions.create(
        items=items,
        shipping_address=checkout_req.shipping_address,
        shipping_option=checkout_req.shipping_option,
        email=checkout_req.email,
        currency=self.currency,
    )
    self._apply_totals(checkout, totals)
    self._transition(checkout, CheckoutStatus.AWAITING_PAYMENT)
    await self.sessions.set(checkout)

    logger.info(
        "Created checkout session %s with %d item(s)",
        checkout.id,
        len(items),
    )
    return CreateCheckoutResponse(
        **self._totals_response(checkout).model_dump(),
        shipping_options=pricing.shipping_quotes(),
    )

  async def _update_checkout(
      self, checkout_req: UpdateCheckoutRequest
  ) -> CheckoutResponse:
    checkout_id = checkout_req.session_id
    logger.info("Updating checkout session %s", checkout_id)

    async with self._session_locks.hold(checkout_id):
      existing = await self._get_and_validate_checkout(checkout_id)
      self._ensure_modifiable(existing)

      # Work on a copy so a failed validation leaves the stored session as is.
      updated = existing.model_copy(deep=True)
      if checkout_req.items is not None:
        item_refs = checkout_req.items
      else:
        item_refs = [item.to_request() for item in existing.items]
      if checkout_req.shipping_address is not None:
        updated.shipping_address = checkout_req.shipping_address
      if checkout_req.shipping_option is not None:
        updated.shipping_option = checkout_req.shipping_option

      updated.items = await self._resolve_items(item_refs)
      await self.inventory.ensure_available(updated.items)
      self._apply_totals(
          updated,
          pricing.calculate_totals(updated.items, updated.shipping_option),
      )
      await self.sessions.set(updated)

    return self._totals_response(updated)

  async def _complete_checkout(
      self, checkout_req: CompleteCheckoutRequest
  ) -> CompleteCheckoutResponse:
    checkout_id = checkout_req.session_id
    logger.info("Completing checkout session %s", checkout_id)

    async with self._session_locks.hold(checkout_id):
      checkout = await self._get_and_validate_checkout(checkout_id)
      if checkout.status == CheckoutStatus.COMPLETED:
        logger.info("Checkout session %s already completed", checkout_id)
        return self._completed_response(checkout)
      if checkout.status == CheckoutStatus.CANCELLED:
        raise ConflictError("Cannot complete a cancelled session")
      self._ensure_transition(checkout, CheckoutStatus.COMPLETED)

      # Best effort only: stock can still change before the order is created.
      await self.inventory.ensure_available(checkout.items)

      if checkout.payment_status is not None:
        # A previous attempt captured the payment but failed to create the
        # order. The token must not be captured twice.
        logger.info(
            "Reusing recorded capture (%s) for checkout session %s",
            checkout.payment_status,
            checkout_id,
        )
        paid = bool(checkout.paid)
      else:
        capture = await self.payments.capture_payment(
            checkout_req.shared_payment_token.token
        )
        paid = capture.is_completed
        checkout.payment_status = capture.status
        checkout.paid = paid
        await self.sessions.set(checkout)
        if not paid:
          logger.warning(
              "Capture for checkout session %s returned %s (expected %s),"
              " creating order with payment pending",
              checkout_id,
              capture.status,
              CAPTURE_COMPLETED,
          )

      order = await self.commerce.create_order(
          checkout.items,
          checkout_req.email,
          checkout.shipping_address,
          paid,
      )
      checkout.order_id = order.order_id
      checkout.email = checkout_req.email
      self._transition(checkout, CheckoutStatus.COMPLETED)
      await self.sessions.set(checkout)

    logger.info(
        "Completed checkout session %s with order %s",
        checkout_id,
        order.order_id,
    )
    return self._completed_response(checkout)

  async def _cancel_checkout(
      self, checkout_req: CancelCheckoutRequest
  ) -> CancelCheckoutResponse:
    checkout_id = checkout_req.session_id
    logger.info("Cancelling checkout session %s", checkout_id)

    async with self._session_locks.hold(checkout_id):
      checkout = await self._get_and_validate_checkout(checkout_id)
      if checkout.status == CheckoutStatus.COMPLETED:
        raise ConflictError("Cannot cancel a completed session")
      if checkout.status == CheckoutStatus.CANCELLED:
        return CancelCheckoutResponse(
            session_id=checkout.id, status=CheckoutStatus.CANCELLED
        )

      if checkout.order_id:
        logger.info(
            "Cancelling order %s for checkout session %s",
            checkout.order_id,
            checkout_id,
        )
        await self.commerce.cancel_order(checkout.order_id)
      elif checkout.paid:
        logger.warning(
            "Cancelling checkout session %s with a completed capture and no"
            " order; the payment must be refunded manually",
            checkout_id,
        )

      checkout.cancel_reason = checkout_req.reason
      self._transition(checkout, CheckoutStatus.CANCELLED)
      await self.sessions.set(checkout)

    return CancelCheckoutResponse(
        session_id=checkout.id, status=CheckoutStatus.CANCELLED
    )

  async def _resolve_items(
      self, item_refs: Sequence[CheckoutItemRequest]
  ) -> List[CheckoutItem]:
    """Resolves client item references to catalog variants, in order."""
    items = []
    for item_ref in item_refs:
      if not item_ref.reference:
        raise BadRequestError("Each item must include sku or productId")
      variant = await self.catalog.resolve_variant(item_ref.reference)
      items.append(
          CheckoutItem(
              sku=item_ref.sku,
              product_id=item_ref.product_id,
              quantity=item_ref.quantity,
              variant_id=variant.variant_id,
              unit_price=variant.unit_price,
              title=variant.title,
          )
      )
    return items

  async def _get_and_validate_checkout(
      self, checkout_id: str
  ) -> CheckoutSession:
    """Retrieves a checkout session and validates its existence."""
    checkout = await self.sessions.get(checkout_id)
    if not checkout:
      raise BadRequestError("Invalid sessionId")
    return checkout

  def _ensure_modifiable(self, checkout: CheckoutSession) -> None:
    if checkout.status not in MODIFIABLE_STATUSES:
      raise ConflictError(
          f"Session cannot be updated in state '{checkout.status.value}'"
      )

  def _ensure_transition(
      self, checkout: CheckoutSession, target: CheckoutStatus
  ) -> None:
    if not can_transition(checkout.status, target):
      raise ConflictError(
          f"Cannot move session from '{checkout.status.value}' to"
          f" '{target.value}'"
      )

  def _transition(
      self, checkout: CheckoutSession, target: CheckoutStatus
  ) -> None:
    self._ensure_transition(checkout, target)
    logger.info(
        "Checkout session %s: %s -> %s",
        checkout.id,
        checkout.status.value,
        target.value,
    )
    checkout.status = target

  def _apply_totals(
      self, checkout: CheckoutSession, totals: pricing.Totals
  ) -> None:
    checkout.subtotal = totals.subtotal
    checkout.shipping_amount = totals.shipping_amount
    checkout.tax_amount = totals.tax_amount
    checkout.total = totals.total

  def _totals_response(self, checkout: CheckoutSession) -> CheckoutResponse:
    return CheckoutResponse(
        session_id=checkout.id,
        currency=checkout.currency,
        subtotal=checkout.subtotal,
        shipping=checkout.shipping_amount,
        tax=checkout.tax_amount,
        total=checkout.total,
        status=checkout.status,
    )

  def _completed_response(
      self, checkout: CheckoutSession
  ) -> CompleteCheckoutResponse:
    return CompleteCheckoutResponse(
        order_id=checkout.order_id,
        shopify_order_id=checkout.order_id,
        status=CheckoutStatus.COMPLETED,
    )

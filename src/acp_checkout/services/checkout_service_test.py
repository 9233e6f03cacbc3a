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

"""Tests for the checkout session lifecycle."""

import asyncio
from typing import Any, Dict, Optional

from absl.testing import absltest
from acp_checkout.enums import CheckoutStatus
from acp_checkout.enums import ShippingOption
from acp_checkout.exceptions import BadRequestError
from acp_checkout.exceptions import ConflictError
from acp_checkout.exceptions import IdempotencyConflictError
from acp_checkout.exceptions import NotFoundError
from acp_checkout.exceptions import UpstreamError
from acp_checkout.models import CancelCheckoutRequest
from acp_checkout.models import CompleteCheckoutRequest
from acp_checkout.models import CreateCheckoutRequest
from acp_checkout.models import UpdateCheckoutRequest
from acp_checkout.services import pricing
from acp_checkout.services.checkout_service import CheckoutService
from acp_checkout.storage import InMemoryIdempotencyCache
from acp_checkout.storage import InMemorySessionStore
from acp_checkout.testing import default_products
from acp_checkout.testing import FakeCatalog
from acp_checkout.testing import FakeCommerce
from acp_checkout.testing import FakePayments
from acp_checkout.testing import FakeProduct

_ADDRESS = {
    "line1": "1 Main St",
    "city": "Springfield",
    "state": "IL",
    "postalCode": "62701",
    "country": "US",
}


class CheckoutServiceTest(absltest.TestCase):
  """Lifecycle tests against in-memory adapters."""

  def setUp(self):
    super().setUp()
    products = default_products()
    products["ABC"] = FakeProduct(
        variant_id="2001", unit_price=1000, title="Widget", inventory=10
    )
    self.catalog = FakeCatalog(products)
    self.payments = FakePayments()
    self.commerce = FakeCommerce()
    self.sessions = InMemorySessionStore()
    self.service = CheckoutService(
        sessions=self.sessions,
        idempotency=InMemoryIdempotencyCache(),
        catalog=self.catalog,
        payments=self.payments,
        commerce=self.commerce,
    )

  def _create(
      self, body: Optional[Dict[str, Any]] = None, key: Optional[str] = None
  ):
    body = body or {"items": [{"sku": "ABC", "quantity": 2}]}
    return asyncio.run(
        self.service.create_checkout(
            CreateCheckoutRequest.model_validate(body), key
        )
    )

  def _update(self, body: Dict[str, Any], key: Optional[str] = None):
    return asyncio.run(
        self.service.update_checkout(
            UpdateCheckoutRequest.model_validate(body), key
        )
    )

  def _complete(
      self, session_id: str, token: str = "TOK-1", key: Optional[str] = None
  ):
    request = CompleteCheckoutRequest.model_validate({
        "sessionId": session_id,
        "sharedPaymentToken": {"provider": "paypal", "token": token},
        "email": "buyer@example.com",
    })
    return asyncio.run(self.service.complete_checkout(request, key))

  def _cancel(
      self,
      session_id: str,
      reason: Optional[str] = None,
      key: Optional[str] = None,
  ):
    request = CancelCheckoutRequest(session_id=session_id, reason=reason)
    return asyncio.run(self.service.cancel_checkout(request, key))

  def _stored(self, session_id: str):
    return asyncio.run(self.sessions.get(session_id))

  # --- Create ---

  def test_create_computes_totals(self):
    response = self._create()

    self.assertEqual(response.subtotal, 2000)
    self.assertEqual(response.shipping, 599)
    self.assertEqual(response.tax, 160)
    self.assertEqual(response.total, 2759)
    self.assertEqual(response.currency, "USD")
    self.assertEqual(response.status, CheckoutStatus.AWAITING_PAYMENT)
    self.assertEqual(
        [(q.id, q.amount) for q in response.shipping_options],
        [(ShippingOption.STANDARD, 599), (ShippingOption.EXPRESS, 1499)],
    )

  def test_create_persists_resolved_items(self):
    response = self._create({
        "items": [{"sku": "ABC", "quantity": 2}],
        "shippingAddress": _ADDRESS,
        "email": "buyer@example.com",
    })

    stored = self._stored(response.session_id)
    self.assertEqual(stored.status, CheckoutStatus.AWAITING_PAYMENT)
    self.assertEqual(stored.items[0].variant_id, "2001")
    self.assertEqual(stored.items[0].unit_price, 1000)
    self.assertEqual(stored.shipping_address.postal_code, "62701")
    self.assertEqual(stored.email, "buyer@example.com")
    self.assertEqual(stored.total, response.total)

  def test_create_with_express_shipping(self):
    response = self._create({
        "items": [{"sku": "ABC", "quantity": 1}],
        "shippingOption": "express",
    })

    self.assertEqual(response.shipping, 1499)
    self.assertEqual(response.total, 1000 + 1499 + 80)

  def test_create_resolves_product_id(self):
    self.catalog.products["gid://shopify/ProductVariant/2001"] = (
        self.catalog.products["ABC"]
    )

    response = self._create({
        "items": [
            {"productId": "gid://shopify/ProductVariant/2001", "quantity": 1}
        ]
    })

    self.assertEqual(response.subtotal, 1000)

  def test_create_total_is_sum_of_parts(self):
    response = self._create({
        "items": [
            {"sku": "SKU-1", "quantity": 3},
            {"sku": "SKU-2", "quantity": 1},
            {"sku": "SKU-UNTRACKED", "quantity": 7},
        ]
    })

    self.assertEqual(
        response.total, response.subtotal + response.shipping + response.tax
    )
    self.assertEqual(response.subtotal, 3000 + 2500 + 7 * 499)

  def test_create_unknown_sku_persists_nothing(self):
    with self.assertRaises(NotFoundError):
      self._create({"items": [{"sku": "NOPE", "quantity": 1}]})

    self.assertEmpty(asyncio.run(self.service.list_sessions()))

  def test_create_out_of_stock_persists_nothing(self):
    with self.assertRaises(ConflictError) as cm:
      self._create({"items": [{"sku": "SKU-2", "quantity": 4}]})

    self.assertEqual(cm.exception.code, "conflict")
    self.assertEmpty(asyncio.run(self.service.list_sessions()))

  def test_create_accepts_untracked_inventory(self):
    response = self._create(
        {"items": [{"sku": "SKU-UNTRACKED", "quantity": 1000}]}
    )

    self.assertEqual(response.status, CheckoutStatus.AWAITING_PAYMENT)

  # --- Update ---

  def test_update_shipping_option_changes_total(self):
    created = self._create({
        "items": [{"sku": "ABC", "quantity": 2}],
        "shippingOption": "standard",
    })

    updated = self._update(
        {"sessionId": created.session_id, "shippingOption": "express"}
    )

    self.assertEqual(created.shipping, 599)
    self.assertEqual(updated.shipping, 1499)
    self.assertEqual(updated.total - created.total, 900)
    self.assertEqual(updated.status, CheckoutStatus.AWAITING_PAYMENT)

  def test_update_replaces_items(self):
    created = self._create()

    updated = self._update({
        "sessionId": created.session_id,
        "items": [{"sku": "SKU-1", "quantity": 1}],
    })

    self.assertEqual(updated.subtotal, 1000)
    stored = self._stored(created.session_id)
    self.assertEqual([i.sku for i in stored.items], ["SKU-1"])

  def test_update_address_keeps_items(self):
    created = self._create()

    updated = self._update(
        {"sessionId": created.session_id, "shippingAddress": _ADDRESS}
    )

    self.assertEqual(updated.subtotal, created.subtotal)
    stored = self._stored(created.session_id)
    self.assertEqual(stored.shipping_address.city, "Springfield")

  def test_update_unknown_session(self):
    with self.assertRaises(BadRequestError):
      self._update({"sessionId": "missing", "shippingOption": "express"})

  def test_update_out_of_stock_leaves_session_unchanged(self):
    created = self._create({"items": [{"sku": "SKU-2", "quantity": 1}]})
    before = self._stored(created.session_id)

    with self.assertRaises(ConflictError):
      self._update({
          "sessionId": created.session_id,
          "items": [{"sku": "SKU-2", "quantity": 5}],
          "shippingOption": "express",
      })

    after = self._stored(created.session_id)
    self.assertEqual(after.items, before.items)
    self.assertEqual(after.total, before.total)
    self.assertEqual(after.shipping_option, before.shipping_option)

  def test_update_unknown_sku_leaves_session_unchanged(self):
    created = self._create()

    with self.assertRaises(NotFoundError):
      self._update({
          "sessionId": created.session_id,
          "items": [{"sku": "NOPE", "quantity": 1}],
      })

    self.assertEqual(self._stored(created.session_id).subtotal, 2000)

  def test_totals_do_not_drift_across_updates(self):
    created = self._create()
    session_id = created.session_id
    self._update({"sessionId": session_id, "shippingOption": "express"})
    self._update({
        "sessionId": session_id,
        "items": [
            {"sku": "SKU-1", "quantity": 3},
            {"sku": "ABC", "quantity": 1},
        ],
    })
    self._update({"sessionId": session_id, "shippingOption": "standard"})
    final = self._update(
        {"sessionId": session_id, "shippingAddress": _ADDRESS}
    )

    stored = self._stored(session_id)
    fresh = pricing.calculate_totals(stored.items, stored.shipping_option)
    self.assertEqual(final.subtotal, fresh.subtotal)
    self.assertEqual(final.shipping, fresh.shipping_amount)
    self.assertEqual(final.tax, fresh.tax_amount)
    self.assertEqual(final.total, fresh.total)

  # --- Complete ---

  def test_complete_captures_and_creates_order(self):
    created = self._create({
        "items": [{"sku": "ABC", "quantity": 2}],
        "shippingAddress": _ADDRESS,
    })

    response = self._complete(created.session_id)

    self.assertEqual(response.status, CheckoutStatus.COMPLETED)
    self.assertEqual(response.order_id, "5001")
    self.assertEqual(response.shopify_order_id, "5001")
    self.assertEqual(self.payments.captured_tokens, ["TOK-1"])
    order = self.commerce.orders["5001"]
    self.assertTrue(order["paid"])
    self.assertEqual(order["items"], [("2001", 2)])
    self.assertEqual(order["email"], "buyer@example.com")

    stored = self._stored(created.session_id)
    self.assertEqual(stored.status, CheckoutStatus.COMPLETED)
    self.assertEqual(stored.order_id, "5001")
    self.assertEqual(stored.payment_status, "COMPLETED")
    self.assertTrue(stored.paid)

  def test_complete_twice_captures_once(self):
    created = self._create()

    first = self._complete(created.session_id)
    second = self._complete(created.session_id)

    self.assertEqual(
        first.model_dump_json(by_alias=True),
        second.model_dump_json(by_alias=True),
    )
    self.assertLen(self.payments.captured_tokens, 1)
    self.assertEqual(self.commerce.create_calls, 1)

  def test_concurrent_completes_capture_once(self):
    created = self._create()
    request = CompleteCheckoutRequest.model_validate({
        "sessionId": created.session_id,
        "sharedPaymentToken": {"provider": "paypal", "token": "TOK-1"},
        "email": "buyer@example.com",
    })

    async def run():
      return await asyncio.gather(
          self.service.complete_checkout(request),
          self.service.complete_checkout(request),
      )

    first, second = asyncio.run(run())

    self.assertEqual(first.order_id, second.order_id)
    self.assertLen(self.payments.captured_tokens, 1)
    self.assertEqual(self.commerce.create_calls, 1)

  def test_complete_with_pending_capture_creates_unpaid_order(self):
    self.payments.status = "PENDING"
    created = self._create()

    response = self._complete(created.session_id)

    self.assertEqual(response.status, CheckoutStatus.COMPLETED)
    self.assertFalse(self.commerce.orders[response.order_id]["paid"])
    stored = self._stored(created.session_id)
    self.assertEqual(stored.payment_status, "PENDING")
    self.assertFalse(stored.paid)

  def test_complete_capture_failure_creates_no_order(self):
    created = self._create()
    self.payments.fail_with = UpstreamError(
        "PayPal capture failed", {"status": 422}
    )

    with self.assertRaises(UpstreamError):
      self._complete(created.session_id)

    self.assertEqual(self.commerce.create_calls, 0)
    stored = self._stored(created.session_id)
    self.assertEqual(stored.status, CheckoutStatus.AWAITING_PAYMENT)
    self.assertIsNone(stored.paid)

  def test_complete_retry_after_order_failure_does_not_recapture(self):
    created = self._create()
    self.commerce.fail_with = UpstreamError("Failed to create Shopify order")

    with self.assertRaises(UpstreamError):
      self._complete(created.session_id)

    stored = self._stored(created.session_id)
    self.assertEqual(stored.status, CheckoutStatus.AWAITING_PAYMENT)
    self.assertTrue(stored.paid)
    self.assertIsNone(stored.order_id)

    self.commerce.fail_with = None
    response = self._complete(created.session_id)

    self.assertEqual(response.status, CheckoutStatus.COMPLETED)
    self.assertLen(self.payments.captured_tokens, 1)
    self.assertTrue(self.commerce.orders[response.order_id]["paid"])

  def test_complete_retry_after_pending_capture_does_not_recapture(self):
    self.payments.status = "PENDING"
    created = self._create()
    self.commerce.fail_with = UpstreamError("Failed to create Shopify order")

    with self.assertRaises(UpstreamError):
      self._complete(created.session_id)

    stored = self._stored(created.session_id)
    self.assertEqual(stored.payment_status, "PENDING")
    self.assertFalse(stored.paid)

    self.commerce.fail_with = None
    response = self._complete(created.session_id)

    self.assertEqual(response.status, CheckoutStatus.COMPLETED)
    self.assertLen(self.payments.captured_tokens, 1)
    self.assertFalse(self.commerce.orders[response.order_id]["paid"])

  def test_complete_unknown_session(self):
    with self.assertRaises(BadRequestError):
      self._complete("missing")

    self.assertEmpty(self.payments.captured_tokens)

  def test_complete_out_of_stock_does_not_capture(self):
    created = self._create({"items": [{"sku": "SKU-2", "quantity": 3}]})
    self.catalog.set_inventory("1002", 1)

    with self.assertRaises(ConflictError):
      self._complete(created.session_id)

    self.assertEmpty(self.payments.captured_tokens)

  def test_complete_draft_session_is_rejected(self):
    draft = asyncio.run(self.sessions.create())

    with self.assertRaises(ConflictError):
      self._complete(draft.id)

    self.assertEmpty(self.payments.captured_tokens)

  # --- Cancel ---

  def test_cancel_without_order(self):
    created = self._create()

    response = self._cancel(created.session_id, reason="changed mind")

    self.assertEqual(response.status, CheckoutStatus.CANCELLED)
    self.assertEqual(response.session_id, created.session_id)
    self.assertEmpty(self.commerce.cancelled)
    stored = self._stored(created.session_id)
    self.assertEqual(stored.cancel_reason, "changed mind")

  def test_cancel_after_capture_without_order_warns(self):
    created = self._create()
    self.commerce.fail_with = UpstreamError("Failed to create Shopify order")
    with self.assertRaises(UpstreamError):
      self._complete(created.session_id)

    with self.assertLogs(
        "acp_checkout.services.checkout_service", level="WARNING"
    ) as logs:
      response = self._cancel(created.session_id)

    self.assertEqual(response.status, CheckoutStatus.CANCELLED)
    self.assertEmpty(self.commerce.cancelled)
    self.assertLen(self.payments.captured_tokens, 1)
    self.assertTrue(
        any(created.session_id in line for line in logs.output), logs.output
    )

  def test_cancel_twice_returns_same_payload(self):
    created = self._create()
    stored = self._stored(created.session_id)
    stored.order_id = "9001"
    asyncio.run(self.sessions.set(stored))

    first = self._cancel(created.session_id)
    second = self._cancel(created.session_id)

    self.assertEqual(first, second)
    self.assertEqual(self.commerce.cancelled, ["9001"])

  def test_cancel_failure_leaves_session_open(self):
    created = self._create()
    stored = self._stored(created.session_id)
    stored.order_id = "9001"
    asyncio.run(self.sessions.set(stored))
    self.commerce.fail_cancel_with = UpstreamError(
        "Failed to cancel Shopify order"
    )

    with self.assertRaises(UpstreamError):
      self._cancel(created.session_id)

    self.assertEqual(
        self._stored(created.session_id).status,
        CheckoutStatus.AWAITING_PAYMENT,
    )

  def test_cancel_draft_session(self):
    draft = asyncio.run(self.sessions.create())

    response = self._cancel(draft.id)

    self.assertEqual(response.status, CheckoutStatus.CANCELLED)

  def test_cancel_unknown_session(self):
    with self.assertRaises(BadRequestError):
      self._cancel("missing")

  # --- State machine ---

  def test_completed_session_cannot_be_cancelled_or_updated(self):
    created = self._create()
    self._complete(created.session_id)

    with self.assertRaises(ConflictError):
      self._cancel(created.session_id)
    with self.assertRaises(ConflictError):
      self._update(
          {"sessionId": created.session_id, "shippingOption": "express"}
      )
    self.assertEmpty(self.commerce.cancelled)

  def test_cancelled_session_cannot_be_updated_or_completed(self):
    created = self._create()
    self._cancel(created.session_id)

    with self.assertRaises(ConflictError):
      self._update(
          {"sessionId": created.session_id, "shippingOption": "express"}
      )
    with self.assertRaises(ConflictError):
      self._complete(created.session_id)
    self.assertEmpty(self.payments.captured_tokens)

  # --- Idempotency ---

  def test_create_with_same_key_replays_response(self):
    first = self._create(key="key-1")
    second = self._create(key="key-1")

    self.assertEqual(first, second)
    self.assertEqual(self.catalog.resolve_calls, ["ABC"])
    self.assertLen(asyncio.run(self.service.list_sessions()), 1)

  def test_create_without_key_creates_new_sessions(self):
    first = self._create()
    second = self._create()

    self.assertNotEqual(first.session_id, second.session_id)

  def test_key_reuse_with_different_body_conflicts(self):
    self._create(key="key-1")

    with self.assertRaises(IdempotencyConflictError) as cm:
      self._create(
          {"items": [{"sku": "ABC", "quantity": 3}]}, key="key-1"
      )

    self.assertEqual(cm.exception.code, "idempotency_conflict")
    self.assertEqual(cm.exception.status_code, 409)

  def test_keys_are_scoped_per_operation(self):
    created = self._create(key="shared")

    response = self._cancel(created.session_id, key="shared")

    self.assertEqual(response.status, CheckoutStatus.CANCELLED)

  def test_failures_are_not_cached(self):
    body = {"items": [{"sku": "SKU-2", "quantity": 5}]}
    with self.assertRaises(ConflictError):
      self._create(body, key="key-1")

    self.catalog.set_inventory("1002", 10)
    response = self._create(body, key="key-1")

    self.assertEqual(response.subtotal, 12500)

  def test_complete_with_key_replays_without_capture(self):
    created = self._create()

    first = self._complete(created.session_id, key="pay-1")
    second = self._complete(created.session_id, key="pay-1")

    self.assertEqual(first, second)
    self.assertLen(self.payments.captured_tokens, 1)

  def test_update_replay_does_not_reapply(self):
    created = self._create()
    body = {"sessionId": created.session_id, "shippingOption": "express"}
    first = self._update(body, key="upd-1")
    self._update(
        {"sessionId": created.session_id, "shippingOption": "standard"}
    )

    replayed = self._update(body, key="upd-1")

    self.assertEqual(replayed, first)
    self.assertEqual(
        self._stored(created.session_id).shipping_option,
        ShippingOption.STANDARD,
    )

  def test_list_sessions(self):
    self._create()
    self._create({"items": [{"sku": "SKU-1", "quantity": 1}]})

    sessions = asyncio.run(self.service.list_sessions())

    self.assertLen(sessions, 2)
    self.assertEqual(
        {s.status for s in sessions}, {CheckoutStatus.AWAITING_PAYMENT}
    )


if __name__ == "__main__":
  absltest.main()

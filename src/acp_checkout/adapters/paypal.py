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

"""PayPal Orders v2 payment adapter.

The shared payment token handed over by the agent is a PayPal order id that
the buyer has already approved; completing checkout captures it.
"""

import logging
from typing import Any, Dict, Optional

from acp_checkout.adapters.base import PaymentAdapter
from acp_checkout.adapters.base import PaymentCapture
from acp_checkout.adapters.base import upstream_error
from acp_checkout.exceptions import UpstreamError
import httpx

logger = logging.getLogger(__name__)

SANDBOX_BASE_URL = "https://api-m.sandbox.paypal.com"


def _first_capture_id(order: Dict[str, Any]) -> Optional[str]:
  for unit in order.get("purchase_units") or []:
    captures = (unit.get("payments") or {}).get("captures") or []
    if captures and captures[0].get("id"):
      return str(captures[0]["id"])
  return None


class PayPalClient(PaymentAdapter):
  """Captures approved PayPal orders."""

  def __init__(
      self,
      http_client: httpx.AsyncClient,
      client_id: str,
      client_secret: str,
      base_url: str = SANDBOX_BASE_URL,
  ):
    self.http_client = http_client
    self.base_url = base_url.rstrip("/")
    self._client_id = client_id
    self._client_secret = client_secret

  async def get_access_token(self) -> str:
    """Exchanges the client credentials for an OAuth2 access token."""
    try:
      response = await self.http_client.post(
          f"{self.base_url}/v1/oauth2/token",
          data={"grant_type": "client_credentials"},
          auth=(self._client_id, self._client_secret),
      )
      response.raise_for_status()
      token = response.json().get("access_token")
    except httpx.HTTPError as e:
      raise upstream_error("Failed to get PayPal access token", e) from e
    except ValueError as e:
      raise UpstreamError(
          "Failed to get PayPal access token", {"reason": "malformed response"}
      ) from e
    if not token:
      raise UpstreamError(
          "Failed to get PayPal access token", {"reason": "missing token"}
      )
    return token

  async def capture_payment(self, token: str) -> PaymentCapture:
    access_token = await self.get_access_token()
    try:
      response = await self.http_client.post(
          f"{self.base_url}/v2/checkout/orders/{token}/capture",
          json={},
          headers={"Authorization": f"Bearer {access_token}"},
      )
      response.raise_for_status()
      order = response.json()
    except httpx.HTTPError as e:
      raise upstream_error("PayPal capture failed", e) from e
    except ValueError as e:
      raise UpstreamError(
          "PayPal capture failed", {"reason": "malformed response"}
      ) from e
    if not isinstance(order, dict) or not order.get("status"):
      raise UpstreamError("PayPal capture failed", {"reason": "missing status"})
    capture = PaymentCapture(
        status=str(order["status"]), capture_id=_first_capture_id(order)
    )
    logger.info("PayPal capture finished with status %s", capture.status)
    return capture

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

"""FastAPI dependencies for the ACP checkout server.

This module contains dependency injection logic for FastAPI endpoints,
including:
- Header extraction (Idempotency-Key, Debug-Secret).
- Access to the `CheckoutService` and `Settings` built at startup.
"""

import hmac
from typing import Optional

from acp_checkout.config import Settings
from acp_checkout.exceptions import ForbiddenError
from acp_checkout.services.checkout_service import CheckoutService
from fastapi import Depends
from fastapi import Header
from fastapi import Request


async def idempotency_header(
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
) -> Optional[str]:
  """Extracts the optional Idempotency-Key header."""
  if idempotency_key is not None and not idempotency_key.strip():
    return None
  return idempotency_key


def get_settings(request: Request) -> Settings:
  """Dependency provider for the settings the app was created with."""
  return request.app.state.settings


def get_checkout_service(request: Request) -> CheckoutService:
  """Dependency provider for CheckoutService."""
  return request.app.state.checkout_service


async def verify_debug_secret(
    debug_secret: Optional[str] = Header(None, alias="Debug-Secret"),
    settings: Settings = Depends(get_settings),
) -> None:
  """Verifies the secret for debug endpoints."""
  expected_secret = settings.debug_secret
  if not expected_secret:
    raise ForbiddenError("Debug secret not configured")

  if not debug_secret or not hmac.compare_digest(
      debug_secret.encode("utf-8"), expected_secret.encode("utf-8")
  ):
    raise ForbiddenError("Invalid Debug-Secret")

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

"""Agentic Commerce Protocol checkout routes."""

from typing import Any, Optional

from acp_checkout import dependencies
from acp_checkout.models import CancelCheckoutRequest
from acp_checkout.models import CompleteCheckoutRequest
from acp_checkout.models import CreateCheckoutRequest
from acp_checkout.models import UpdateCheckoutRequest
from acp_checkout.services.checkout_service import CheckoutService
from fastapi import APIRouter
from fastapi import Body
from fastapi import Depends

router = APIRouter()


@router.get("/health", operation_id="health")
async def health() -> dict[str, Any]:
  """Liveness probe."""
  return {"status": "ok"}


@router.post(
    "/create_checkout",
    response_model=dict[str, Any],
    operation_id="create_checkout",
)
async def create_checkout(
    checkout_req: CreateCheckoutRequest = Body(...),
    idempotency_key: Optional[str] = Depends(dependencies.idempotency_header),
    checkout_service: CheckoutService = Depends(
        dependencies.get_checkout_service
    ),
) -> dict[str, Any]:
  """Create a checkout session and quote its totals."""
  response = await checkout_service.create_checkout(
      checkout_req, idempotency_key
  )
  return response.model_dump(mode="json", by_alias=True)


@router.post(
    "/update_checkout",
    response_model=dict[str, Any],
    operation_id="update_checkout",
)
async def update_checkout(
    checkout_req: UpdateCheckoutRequest = Body(...),
    idempotency_key: Optional[str] = Depends(dependencies.idempotency_header),
    checkout_service: CheckoutService = Depends(
        dependencies.get_checkout_service
    ),
) -> dict[str, Any]:
  """Replace items, address or shipping option and re-quote totals."""
  response = await checkout_service.update_checkout(
      checkout_req, idempotency_key
  )
  return response.model_dump(mode="json", by_alias=True)


@router.post(
    "/complete_checkout",
    response_model=dict[str, Any],
    operation_id="complete_checkout",
)
async def complete_checkout(
    checkout_req: CompleteCheckoutRequest = Body(...),
    idempotency_key: Optional[str] = Depends(dependencies.idempotency_header),
    checkout_service: CheckoutService = Depends(
        dependencies.get_checkout_service
    ),
) -> dict[str, Any]:
  """Capture payment and place the order."""
  response = await checkout_service.complete_checkout(
      checkout_req, idempotency_key
  )
  return response.model_dump(mode="json", by_alias=True)


@router.post(
    "/cancel_checkout",
    response_model=dict[str, Any],
    operation_id="cancel_checkout",
)
async def cancel_checkout(
    checkout_req: CancelCheckoutRequest = Body(...),
    idempotency_key: Optional[str] = Depends(dependencies.idempotency_header),
    checkout_service: CheckoutService = Depends(
        dependencies.get_checkout_service
    ),
) -> dict[str, Any]:
  """Cancel a session that has not completed."""
  response = await checkout_service.cancel_checkout(
      checkout_req, idempotency_key
  )
  return response.model_dump(mode="json", by_alias=True)

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

"""Diagnostic routes, mounted only when --enable_debug_routes is set."""

from typing import Any

from acp_checkout import dependencies
from acp_checkout.services.checkout_service import CheckoutService
from fastapi import APIRouter
from fastapi import Depends

router = APIRouter(
    prefix="/debug",
    dependencies=[Depends(dependencies.verify_debug_secret)],
)


@router.get(
    "/sessions",
    response_model=dict[str, Any],
    operation_id="list_sessions",
)
async def list_sessions(
    checkout_service: CheckoutService = Depends(
        dependencies.get_checkout_service
    ),
) -> dict[str, Any]:
  """List every live session."""
  sessions = await checkout_service.list_sessions()
  return {
      "count": len(sessions),
      "sessions": [
          session.model_dump(mode="json", by_alias=True)
          for session in sessions
      ],
  }

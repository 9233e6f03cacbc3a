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

"""ACP Checkout Server (Python/FastAPI)."""

import contextlib
import logging
from typing import Any, Optional, Sequence
import uuid

from absl import app as absl_app
from acp_checkout import config
from acp_checkout.adapters.paypal import PayPalClient
from acp_checkout.adapters.shopify import ShopifyClient
from acp_checkout.exceptions import CheckoutError
from acp_checkout.models import ErrorResponse
from acp_checkout.routes.acp import router as acp_router
from acp_checkout.routes.debug import router as debug_router
from acp_checkout.services.checkout_service import CheckoutService
from acp_checkout.storage import InMemoryIdempotencyCache
from acp_checkout.storage import InMemorySessionStore
from fastapi import FastAPI
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import httpx
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

_HTTP_ERROR_CODES = {
    400: "bad_request",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
}


def build_checkout_service(
    settings: config.Settings, http_client: httpx.AsyncClient
) -> CheckoutService:
  """Wires the Shopify and PayPal adapters into a `CheckoutService`."""
  shopify = ShopifyClient(
      http_client,
      shop=settings.shopify_shop,
      access_token=settings.shopify_admin_api_access_token,
      api_version=settings.shopify_api_version,
      sku_map=settings.shopify_sku_map,
  )
  paypal = PayPalClient(
      http_client,
      client_id=settings.paypal_client_id,
      client_secret=settings.paypal_client_secret,
      base_url=settings.paypal_base_url,
  )
  return CheckoutService(
      sessions=InMemorySessionStore(
          max_sessions=settings.max_sessions,
          ttl_seconds=settings.session_ttl_seconds,
      ),
      idempotency=InMemoryIdempotencyCache(
          max_entries=settings.max_idempotency_keys,
          ttl_seconds=settings.idempotency_ttl_seconds,
      ),
      catalog=shopify,
      payments=paypal,
      commerce=shopify,
      currency=settings.default_currency,
  )


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
  """Creates the upstream HTTP client and service unless one was injected."""
  if app.state.checkout_service is not None:
    yield
    return

  settings = app.state.settings
  async with httpx.AsyncClient(
      timeout=settings.upstream_timeout_seconds
  ) as http_client:
    app.state.checkout_service = build_checkout_service(settings, http_client)
    logger.info("Checkout service ready")
    try:
      yield
    finally:
      app.state.checkout_service = None


def _request_id(request: Request) -> Optional[str]:
  return getattr(request.state, "request_id", None)


def _error_response(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    details: Optional[Any] = None,
) -> JSONResponse:
  body = ErrorResponse(
      code=code,
      message=message,
      details=details,
      request_id=_request_id(request),
  )
  return JSONResponse(
      status_code=status_code, content=body.model_dump(by_alias=True)
  )


async def checkout_exception_handler(request: Request, exc: CheckoutError):
  """Converts checkout exceptions to the JSON error envelope."""
  if exc.status_code >= 500:
    logger.warning("%s: %s", exc.code, exc.message)
  return _error_response(
      request, exc.status_code, exc.code, exc.message, exc.details
  )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
):
  """Reports schema violations by location only, never echoing input."""
  errors = [
      {
          "loc": [str(part) for part in error.get("loc", ())],
          "msg": error.get("msg"),
          "type": error.get("type"),
      }
      for error in exc.errors()
  ]
  return _error_response(
      request, 400, "bad_request", "Validation failed", {"errors": errors}
  )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
):
  code = _HTTP_ERROR_CODES.get(exc.status_code, "internal_error")
  return _error_response(request, exc.status_code, code, str(exc.detail))


def create_app(
    settings: Optional[config.Settings] = None,
    checkout_service: Optional[CheckoutService] = None,
) -> FastAPI:
  """Creates the FastAPI app.

  Args:
    settings: Configuration to use; read from flags when omitted.
    checkout_service: Service to serve requests with. When omitted, one backed
      by Shopify and PayPal is built during startup.

  Returns:
    The configured application.
  """
  settings = settings or config.get_settings()

  app = FastAPI(
      title="ACP Checkout Service",
      description="Agentic Commerce Protocol checkout over Shopify and PayPal",
      lifespan=lifespan,
  )
  app.state.settings = settings
  app.state.checkout_service = checkout_service

  @app.middleware("http")
  async def request_id_middleware(request: Request, call_next):
    request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
    request.state.request_id = request_id
    try:
      response = await call_next(request)
    except Exception:  # pylint: disable=broad-exception-caught
      logger.exception(
          "Unhandled error on %s %s (request %s)",
          request.method,
          request.url.path,
          request_id,
      )
      response = _error_response(
          request, 500, "internal_error", "Internal server error"
      )
    response.headers[REQUEST_ID_HEADER] = request_id
    return response

  app.add_middleware(
      CORSMiddleware,
      allow_origins=list(settings.allowed_origins),
      allow_methods=["GET", "POST", "OPTIONS"],
      allow_headers=["*"],
      expose_headers=[REQUEST_ID_HEADER],
  )

  app.add_exception_handler(CheckoutError, checkout_exception_handler)
  app.add_exception_handler(
      RequestValidationError, validation_exception_handler
  )
  app.add_exception_handler(StarletteHTTPException, http_exception_handler)

  app.include_router(acp_router)
  if settings.enable_debug_routes:
    logger.warning("Debug routes are enabled")
    app.include_router(debug_router)
  return app


def main(argv: Sequence[str]) -> None:
  """Main entry point for the ACP Checkout Server."""
  del argv  # Unused.

  settings = config.get_settings()
  logging.basicConfig(level=settings.log_level.upper())
  config.warn_missing_credentials(settings)

  uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


def run() -> None:
  absl_app.run(main)


if __name__ == "__main__":
  run()

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

"""Shared configuration for the ACP checkout server.

Every setting is an absl flag whose default comes from the environment, after
loading a `.env` file if one is present. `get_settings()` snapshots the flags
into a `Settings` model; when flags have not been parsed (tests, imports from
other tools) the defaults are used.
"""

import json
import logging
import os
from typing import Callable, Dict, List, Optional, Union

from absl import flags
from dotenv import load_dotenv
from pydantic import BaseModel
from pydantic import ConfigDict

logger = logging.getLogger(__name__)

load_dotenv()

FLAGS = flags.FLAGS

DEFAULT_ALLOWED_ORIGINS = (
    "https://chat.openai.com,https://chatgpt.com,http://localhost:3000"
)

_OPTIONAL_STRINGS = (
    "shopify_shop",
    "shopify_admin_api_access_token",
    "paypal_client_id",
    "paypal_client_secret",
    "debug_secret",
)


def _env(name: str, default: str = "") -> str:
  return os.environ.get(name, default)


def _env_number(
    name: str, default: str, parse: Callable[[str], Union[int, float]]
) -> Union[int, float]:
  """Parses a numeric environment value, falling back to `default`."""
  raw = _env(name, default)
  try:
    return parse(raw)
  except ValueError:
    logger.warning(
        "Ignoring %s=%r: not a valid number, using %s", name, raw, default
    )
    return parse(default)


# Define flags only if they haven't been defined yet (to avoid duplicates
# during tests or re-imports)
try:
  flags.DEFINE_string("host", _env("HOST", "0.0.0.0"), "Interface to bind")
  flags.DEFINE_integer(
      "port", _env_number("PORT", "8080", int), "Port to listen on"
  )
  flags.DEFINE_string("log_level", _env("LOG_LEVEL", "INFO"), "Log level")
  flags.DEFINE_string(
      "default_currency",
      _env("DEFAULT_CURRENCY", "USD"),
      "Currency assigned to new sessions",
  )
  flags.DEFINE_string(
      "shopify_shop", _env("SHOPIFY_SHOP"), "Shop domain, e.g. x.myshopify.com"
  )
  flags.DEFINE_string(
      "shopify_admin_api_access_token",
      _env("SHOPIFY_ADMIN_API_ACCESS_TOKEN"),
      "Shopify Admin API access token",
  )
  flags.DEFINE_string(
      "shopify_api_version",
      _env("SHOPIFY_API_VERSION", "2023-10"),
      "Shopify Admin API version",
  )
  flags.DEFINE_string(
      "shopify_sku_map",
      _env("SHOPIFY_SKU_MAP", "{}"),
      "JSON object mapping SKUs to Shopify variant ids",
  )
  flags.DEFINE_string(
      "paypal_base_url",
      _env("PAYPAL_BASE_URL", "https://api-m.sandbox.paypal.com"),
      "PayPal REST API base URL",
  )
  flags.DEFINE_string(
      "paypal_client_id", _env("PAYPAL_CLIENT_ID"), "PayPal client id"
  )
  flags.DEFINE_string(
      "paypal_client_secret",
      _env("PAYPAL_CLIENT_SECRET"),
      "PayPal client secret",
  )
  flags.DEFINE_float(
      "upstream_timeout_seconds",
      _env_number("UPSTREAM_TIMEOUT_SECONDS", "10", float),
      "Timeout for each call to Shopify or PayPal",
  )
  flags.DEFINE_integer(
      "session_ttl_seconds",
      _env_number("SESSION_TTL_SECONDS", "86400", int),
      "Seconds a session is kept after its last update",
  )
  flags.DEFINE_integer(
      "max_sessions",
      _env_number("MAX_SESSIONS", "10000", int),
      "Maximum number of sessions kept in memory",
  )
  flags.DEFINE_integer(
      "idempotency_ttl_seconds",
      _env_number("IDEMPOTENCY_TTL_SECONDS", "86400", int),
      "Seconds an idempotency key is remembered",
  )
  flags.DEFINE_integer(
      "max_idempotency_keys",
      _env_number("MAX_IDEMPOTENCY_KEYS", "50000", int),
      "Maximum number of idempotency keys kept in memory",
  )
  flags.DEFINE_list(
      "allowed_origins",
      _env("ALLOWED_ORIGINS", DEFAULT_ALLOWED_ORIGINS),
      "Origins allowed by CORS",
  )
  flags.DEFINE_boolean(
      "enable_debug_routes",
      _env("ENABLE_DEBUG_ROUTES", "false").lower() in ("1", "true", "yes"),
      "Expose /debug/sessions. Never enable in production.",
  )
  flags.DEFINE_string(
      "debug_secret",
      _env("DEBUG_SECRET"),
      "Secret expected in the Debug-Secret header of debug routes",
  )
except flags.DuplicateFlagError:
  pass


class Settings(BaseModel):
  """Immutable snapshot of the server configuration."""

  host: str = "0.0.0.0"
  port: int = 8080
  log_level: str = "INFO"
  default_currency: str = "USD"
  shopify_shop: str = ""
  shopify_admin_api_access_token: str = ""
  shopify_api_version: str = "2023-10"
  shopify_sku_map: Dict[str, Union[int, str]] = {}
  paypal_base_url: str = "https://api-m.sandbox.paypal.com"
  paypal_client_id: str = ""
  paypal_client_secret: str = ""
  upstream_timeout_seconds: float = 10.0
  session_ttl_seconds: int = 86400
  max_sessions: int = 10000
  idempotency_ttl_seconds: int = 86400
  max_idempotency_keys: int = 50000
  allowed_origins: List[str] = DEFAULT_ALLOWED_ORIGINS.split(",")
  enable_debug_routes: bool = False
  debug_secret: str = ""

  model_config = ConfigDict(frozen=True)


def parse_sku_map(raw: Optional[str]) -> Dict[str, Union[int, str]]:
  """Parses the SKU map JSON, tolerating newlines and returning {} if bad."""
  if not raw:
    return {}
  cleaned = " ".join(raw.split())
  if not cleaned:
    return {}
  try:
    parsed = json.loads(cleaned)
  except ValueError:
    logger.warning("SHOPIFY_SKU_MAP is not valid JSON, ignoring it")
    return {}
  if not isinstance(parsed, dict):
    logger.warning("SHOPIFY_SKU_MAP is not a JSON object, ignoring it")
    return {}
  return {str(sku): variant for sku, variant in parsed.items()}


def _flag_value(name: str):
  if FLAGS.is_parsed():
    return FLAGS[name].value
  return FLAGS[name].default


def get_settings() -> Settings:
  """Builds `Settings` from the current flag values."""
  values = {name: _flag_value(name) for name in Settings.model_fields}
  values["shopify_sku_map"] = parse_sku_map(values["shopify_sku_map"])
  values["allowed_origins"] = [o for o in values["allowed_origins"] or [] if o]
  for name in _OPTIONAL_STRINGS:
    values[name] = values[name] or ""
  return Settings(**values)


def warn_missing_credentials(settings: Settings) -> None:
  """Logs a warning for every unset credential; never fatal."""
  required = {
      "SHOPIFY_SHOP": settings.shopify_shop,
      "SHOPIFY_ADMIN_API_ACCESS_TOKEN": settings.shopify_admin_api_access_token,
      "PAYPAL_CLIENT_ID": settings.paypal_client_id,
      "PAYPAL_CLIENT_SECRET": settings.paypal_client_secret,
  }
  for name, value in required.items():
    if not value:
      logger.warning(
          "Missing %s. The service may not function until provided.", name
      )

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

"""Utility script to validate the configured SKU map.

This script checks that every variant id in SHOPIFY_SKU_MAP still exists in
Shopify, prints the map without the missing entries to standard output as
JSON, and lists the missing entries on standard error.

Usage:
  python -m acp_checkout.validate_sku_map --shopify_shop=... \
      --shopify_admin_api_access_token=...
"""

import asyncio
import json
import logging
import sys
from typing import Dict, List, Tuple

from absl import app as absl_app
from acp_checkout import config
from acp_checkout.adapters.shopify import ShopifyClient
from acp_checkout.exceptions import NotFoundError
from acp_checkout.exceptions import UpstreamError
import httpx

logger = logging.getLogger(__name__)


async def validate_sku_map(
    shopify: ShopifyClient,
) -> Tuple[Dict[str, str], List[Tuple[str, str]]]:
  """Splits the client's SKU map into found and missing entries.

  Entries that cannot be checked because Shopify failed are kept.

  Args:
    shopify: Client holding the SKU map to validate.

  Returns:
    The map restricted to existing variants, and the (sku, variant id) pairs
    Shopify reported as missing.
  """
  valid = {}
  invalid = []
  for sku, variant_id in shopify.sku_map.items():
    try:
      await shopify.get_variant(variant_id)
    except NotFoundError:
      invalid.append((sku, variant_id))
      continue
    except UpstreamError as e:
      logger.warning("Could not check %s (variant %s): %s", sku, variant_id, e)
    valid[sku] = variant_id
  return valid, invalid


async def run_validation(settings: config.Settings) -> int:
  """Validates the configured map and prints the result; returns exit code."""
  if not settings.shopify_shop or not settings.shopify_admin_api_access_token:
    print(
        "Error: --shopify_shop and --shopify_admin_api_access_token are"
        " required.",
        file=sys.stderr,
    )
    return 1
  if not settings.shopify_sku_map:
    print("SHOPIFY_SKU_MAP is empty, nothing to validate", file=sys.stderr)
    return 0

  async with httpx.AsyncClient(
      timeout=settings.upstream_timeout_seconds
  ) as http_client:
    shopify = ShopifyClient(
        http_client,
        shop=settings.shopify_shop,
        access_token=settings.shopify_admin_api_access_token,
        api_version=settings.shopify_api_version,
        sku_map=settings.shopify_sku_map,
    )
    valid, invalid = await validate_sku_map(shopify)

  print(json.dumps(valid, indent=2, sort_keys=True))
  for sku, variant_id in invalid:
    print(f"{sku}: variant {variant_id} not found in Shopify", file=sys.stderr)
  return 1 if invalid else 0


def main(argv):
  """Main entry point for the SKU map validation script."""
  del argv
  settings = config.get_settings()
  logging.basicConfig(level=settings.log_level.upper())
  sys.exit(asyncio.run(run_validation(settings)))


def run() -> None:
  absl_app.run(main)


if __name__ == "__main__":
  run()

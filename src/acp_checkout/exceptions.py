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

"""Custom exceptions for the ACP checkout server."""

import re
from typing import Any, Optional

REDACTED = "***"

_SECRET_KEY_PATTERN = re.compile(
    r"token|secret|password|authorization|api[_-]?key|credential",
    re.IGNORECASE,
)
_MAX_STRING_LENGTH = 500
_MAX_COLLECTION_ITEMS = 20
_MAX_DEPTH = 6


def redact_details(value: Any, depth: int = 0) -> Any:
  """Masks secret-looking keys and bounds the size of an error payload.

  Upstream error bodies are forwarded to clients for diagnostics, so they are
  reduced to plain JSON values: keys that look like credentials are masked,
  long strings are truncated and collections are capped.

  Args:
    value: Any JSON-like value.
    depth: Current nesting depth, used to stop descending.

  Returns:
    A JSON-serializable copy of `value` safe to include in a response.
  """
  if depth >= _MAX_DEPTH:
    return "..."
  if isinstance(value, dict):
    redacted = {}
    for index, (key, item) in enumerate(value.items()):
      if index >= _MAX_COLLECTION_ITEMS:
        redacted["..."] = f"{len(value) - index} more keys"
        break
      key = str(key)
      if _SECRET_KEY_PATTERN.search(key):
        redacted[key] = REDACTED
      else:
        redacted[key] = redact_details(item, depth + 1)
    return redacted
  if isinstance(value, (list, tuple)):
    items = [
        redact_details(item, depth + 1)
        for item in value[:_MAX_COLLECTION_ITEMS]
    ]
    if len(value) > _MAX_COLLECTION_ITEMS:
      items.append(f"... {len(value) - _MAX_COLLECTION_ITEMS} more items")
    return items
  if value is None or isinstance(value, (bool, int, float)):
    return value
  text = str(value)
  if len(text) > _MAX_STRING_LENGTH:
    return text[:_MAX_STRING_LENGTH] + "..."
  return text


class CheckoutError(Exception):
  """Base class for all checkout exceptions."""

  def __init__(
      self,
      message: str,
      code: str = "internal_error",
      status_code: int = 500,
      details: Optional[Any] = None,
  ):
    self.message = message
    self.code = code
    self.status_code = status_code
    self.details = details
    super().__init__(self.message)


class BadRequestError(CheckoutError):
  """Raised for malformed requests and unknown session ids."""

  def __init__(self, message: str, details: Optional[Any] = None):
    super().__init__(
        message, code="bad_request", status_code=400, details=details
    )


class ForbiddenError(CheckoutError):
  """Raised when a gated endpoint is called without valid credentials."""

  def __init__(self, message: str):
    super().__init__(message, code="forbidden", status_code=403)


class NotFoundError(CheckoutError):
  """Raised when a catalog reference cannot be resolved to a variant."""

  def __init__(self, message: str, details: Optional[Any] = None):
    super().__init__(
        message, code="not_found", status_code=404, details=details
    )


class ConflictError(CheckoutError):
  """Raised on state machine violations and inventory shortfalls."""

  def __init__(
      self,
      message: str,
      details: Optional[Any] = None,
      code: str = "conflict",
  ):
    super().__init__(message, code=code, status_code=409, details=details)


class IdempotencyConflictError(ConflictError):
  """Raised when an idempotency key is reused with different parameters."""

  def __init__(self, message: str):
    super().__init__(message, code="idempotency_conflict")


class UpstreamError(CheckoutError):
  """Raised when the payment processor or commerce platform fails.

  The details are redacted on construction so that nothing raised from an
  adapter can carry credentials into a client-visible payload.
  """

  def __init__(self, message: str, details: Optional[Any] = None):
    super().__init__(
        message,
        code="upstream_error",
        status_code=502,
        details=redact_details(details) if details is not None else None,
    )

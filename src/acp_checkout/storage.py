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

"""Session and idempotency storage for the ACP checkout server.

Both stores are process-lifetime only. They are explicitly constructed and
injected into `CheckoutService`, and each exposes the minimal contract the
service relies on:

- `SessionStore`: `create`, `get`, `set` (plus `list_all` for diagnostics).
- `IdempotencyCache`: `get`, `set`, keyed by (operation name, client key).

A durable backend implements the same abstract class. The in-memory
implementations bound their size with a capacity and a time-to-live; expiry is
evaluated lazily on access, there is no background sweeper.
"""

import abc
import collections
import logging
import time
from typing import Any, Callable, Dict, Generic, List, Optional, Tuple, TypeVar
import uuid

from acp_checkout.enums import CheckoutStatus
from acp_checkout.models import CheckoutSession
from pydantic import BaseModel

logger = logging.getLogger(__name__)

K = TypeVar("K")
V = TypeVar("V")

Clock = Callable[[], float]


class IdempotencyRecord(BaseModel):
  operation: str
  key: str
  request_hash: str
  response_body: Dict[str, Any]
  created_at: float


class BoundedTTLMap(Generic[K, V]):
  """Insertion-ordered map with a capacity and a per-entry time-to-live.

  Writing an entry refreshes its expiry and moves it to the end; when the
  capacity is exceeded the least recently written entries are dropped.
  """

  def __init__(
      self,
      max_entries: int,
      ttl_seconds: Optional[float],
      clock: Clock = time.monotonic,
  ) -> None:
    if max_entries <= 0:
      raise ValueError("max_entries must be positive")
    self._max_entries = max_entries
    self._ttl_seconds = ttl_seconds
    self._clock = clock
    self._entries: "collections.OrderedDict[K, Tuple[Optional[float], V]]" = (
        collections.OrderedDict()
    )

  def get(self, key: K) -> Optional[V]:
    entry = self._entries.get(key)
    if entry is None:
      return None
    expires_at, value = entry
    if expires_at is not None and self._clock() >= expires_at:
      del self._entries[key]
      return None
    return value

  def put(self, key: K, value: V) -> List[K]:
    """Stores `value` and returns the keys evicted to stay within capacity."""
    expires_at = None
    if self._ttl_seconds is not None:
      expires_at = self._clock() + self._ttl_seconds
    self._entries[key] = (expires_at, value)
    self._entries.move_to_end(key)
    evicted = []
    while len(self._entries) > self._max_entries:
      evicted_key, _ = self._entries.popitem(last=False)
      evicted.append(evicted_key)
    return evicted

  def values(self) -> List[V]:
    self.purge_expired()
    return [value for _, value in self._entries.values()]

  def purge_expired(self) -> int:
    now = self._clock()
    expired = [
        key
        for key, (expires_at, _) in self._entries.items()
        if expires_at is not None and now >= expires_at
    ]
    for key in expired:
      del self._entries[key]
    return len(expired)

  def __len__(self) -> int:
    return len(self._entries)


class SessionStore(abc.ABC):
  """Keyed registry of checkout sessions."""

  def __init__(self, clock: Clock = time.time) -> None:
    self._wall_clock = clock

  async def create(self, **initial: Any) -> CheckoutSession:
    """Persists a new draft session built from `initial` fields."""
    now = self._wall_clock()
    session = CheckoutSession(
        **initial,
        id=str(uuid.uuid4()),
        status=CheckoutStatus.DRAFT,
        created_at=now,
        updated_at=now,
    )
    await self.set(session)
    return session

  @abc.abstractmethod
  async def get(self, session_id: str) -> Optional[CheckoutSession]:
    """Returns the session or None if it is unknown or expired."""

  @abc.abstractmethod
  async def set(self, session: CheckoutSession) -> None:
    """Upserts `session`, replacing any stored version in full."""

  @abc.abstractmethod
  async def list_all(self) -> List[CheckoutSession]:
    """Returns every live session."""


class InMemorySessionStore(SessionStore):
  """Session store backed by a bounded in-process map.

  Sessions are copied on the way in and on the way out, so a caller mutating
  the object it read does not change the stored state until it calls `set`.
  """

  def __init__(
      self,
      max_sessions: int = 10000,
      ttl_seconds: Optional[float] = 86400,
      clock: Clock = time.monotonic,
      wall_clock: Clock = time.time,
  ) -> None:
    super().__init__(clock=wall_clock)
    self._sessions: BoundedTTLMap[str, CheckoutSession] = BoundedTTLMap(
        max_sessions, ttl_seconds, clock
    )

  async def get(self, session_id: str) -> Optional[CheckoutSession]:
    session = self._sessions.get(session_id)
    if session is None:
      return None
    return session.model_copy(deep=True)

  async def set(self, session: CheckoutSession) -> None:
    stored = session.model_copy(deep=True)
    stored.updated_at = self._wall_clock()
    evicted = self._sessions.put(stored.id, stored)
    if evicted:
      logger.warning(
          "Session store at capacity, evicted %d session(s)", len(evicted)
      )

  async def list_all(self) -> List[CheckoutSession]:
    return [s.model_copy(deep=True) for s in self._sessions.values()]


class IdempotencyCache(abc.ABC):
  """Maps (operation name, client key) to a previously produced response."""

  @abc.abstractmethod
  async def get(self, operation: str, key: str) -> Optional[IdempotencyRecord]:
    """Returns the stored record, or None on a miss."""

  @abc.abstractmethod
  async def set(
      self,
      operation: str,
      key: str,
      request_hash: str,
      response_body: Dict[str, Any],
  ) -> None:
    """Stores the response produced for the first execution of a key."""


class InMemoryIdempotencyCache(IdempotencyCache):
  """Idempotency cache backed by a bounded in-process map."""

  def __init__(
      self,
      max_entries: int = 50000,
      ttl_seconds: Optional[float] = 86400,
      clock: Clock = time.monotonic,
  ) -> None:
    self._clock = clock
    self._records: BoundedTTLMap[Tuple[str, str], IdempotencyRecord] = (
        BoundedTTLMap(max_entries, ttl_seconds, clock)
    )

  async def get(self, operation: str, key: str) -> Optional[IdempotencyRecord]:
    record = self._records.get((operation, key))
    if record is None:
      return None
    return record.model_copy(deep=True)

  async def set(
      self,
      operation: str,
      key: str,
      request_hash: str,
      response_body: Dict[str, Any],
  ) -> None:
    if self._records.get((operation, key)) is not None:
      # The first stored response wins.
      return
    self._records.put(
        (operation, key),
        IdempotencyRecord(
            operation=operation,
            key=key,
            request_hash=request_hash,
            response_body=response_body,
            created_at=self._clock(),
        ),
    )

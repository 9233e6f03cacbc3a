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

"""Per-key mutual exclusion for coroutines."""

import asyncio
import contextlib
from typing import AsyncIterator, Dict, Hashable


class KeyedLock:
  """Hands out one `asyncio.Lock` per key.

  Locks are created on first use and dropped once no coroutine holds or waits
  for them, so the registry only grows with the number of keys currently in
  flight.
  """

  def __init__(self) -> None:
    self._locks: Dict[Hashable, asyncio.Lock] = {}
    self._waiters: Dict[Hashable, int] = {}

  @contextlib.asynccontextmanager
  async def hold(self, key: Hashable) -> AsyncIterator[None]:
    lock = self._locks.get(key)
    if lock is None:
      lock = self._locks[key] = asyncio.Lock()
    self._waiters[key] = self._waiters.get(key, 0) + 1
    try:
      async with lock:
        yield
    finally:
      self._waiters[key] -= 1
      if not self._waiters[key]:
        del self._waiters[key]
        del self._locks[key]

  def __len__(self) -> int:
    return len(self._locks)

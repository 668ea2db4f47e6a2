"""Content-addressed cache of resolved responses."""

from __future__ import annotations

import copy
from collections import OrderedDict
from typing import Any


class ResponseCache:
    """Stores responses keyed by the canonical serialization of their request.

    Entries are evicted least-recently-used once ``max_entries`` is reached.
    Callers invalidate explicitly; the transport clears everything whenever a
    state-changing command is sent.
    """

    def __init__(self, max_entries: int = 128, *, enabled: bool = True) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._entries: OrderedDict[str, Any] = OrderedDict()
        self._max_entries = max_entries
        self.enabled = enabled

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> tuple[bool, Any]:
        """Return ``(hit, response)`` for a canonical request key."""

        if not self.enabled or key not in self._entries:
            return False, None
        self._entries.move_to_end(key)
        return True, copy.deepcopy(self._entries[key])

    def put(self, key: str, response: Any) -> None:
        if not self.enabled:
            return
        self._entries[key] = copy.deepcopy(response)
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)

    def invalidate(self, key: str) -> bool:
        """Drop one entry. Returns whether it was present."""

        if key not in self._entries:
            return False
        del self._entries[key]
        return True

    def clear(self) -> None:
        self._entries.clear()

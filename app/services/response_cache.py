"""
Response Cache
Short-lived memo of (user, normalized message) -> prior result
"""
import time
from typing import Callable, Optional, Tuple

from cachetools import TTLCache

from app.config import settings
from app.models.conversation import ChatResult

CacheKey = Tuple[str, str]


class ResponseCache:
    """Entries expire `ttl_seconds` after they are stored"""

    def __init__(
        self,
        ttl_seconds: float = None,
        max_entries: int = None,
        timer: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.CACHE_TTL_SECONDS
        self._entries = TTLCache(
            maxsize=max_entries or settings.CACHE_MAX_ENTRIES,
            ttl=self.ttl_seconds,
            timer=timer,
        )

    @staticmethod
    def key(user_id: str, message: str) -> CacheKey:
        return (user_id, (message or "").strip().lower())

    def get(self, user_id: str, message: str) -> Optional[ChatResult]:
        return self._entries.get(self.key(user_id, message))

    def put(self, user_id: str, message: str, result: ChatResult) -> None:
        self._entries[self.key(user_id, message)] = result

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

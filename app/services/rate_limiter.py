"""
Rate Limiter
Per-user sliding-window request counter (soft throttle, in-process only)
"""
import time
from typing import Callable, Dict, List, Optional

from app.config import settings


class RateLimiter:
    """Allows `max_requests` per user within any trailing `window_seconds`"""

    def __init__(
        self,
        max_requests: int = None,
        window_seconds: float = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests if max_requests is not None else settings.RATE_LIMIT_REQUESTS
        self.window_seconds = window_seconds if window_seconds is not None else settings.RATE_LIMIT_PERIOD
        self._clock = clock
        self._requests: Dict[str, List[float]] = {}

    def check_and_record(self, user_id: str) -> bool:
        now = self._clock()
        cutoff = now - self.window_seconds
        if user_id not in self._requests:
            self.prune(now)
        recent = [stamp for stamp in self._requests.get(user_id, []) if stamp > cutoff]

        if len(recent) >= self.max_requests:
            self._requests[user_id] = recent
            return False

        recent.append(now)
        self._requests[user_id] = recent
        return True

    def prune(self, now: Optional[float] = None) -> int:
        """Forget users with no requests left in the window; returns how many were dropped"""
        cutoff = (self._clock() if now is None else now) - self.window_seconds
        stale = [key for key, stamps in self._requests.items() if not stamps or stamps[-1] <= cutoff]
        for key in stale:
            del self._requests[key]
        return len(stale)

    def remaining(self, user_id: str) -> int:
        cutoff = self._clock() - self.window_seconds
        used = sum(1 for stamp in self._requests.get(user_id, []) if stamp > cutoff)
        if not used:
            self._requests.pop(user_id, None)
        return max(0, self.max_requests - used)

    def __len__(self) -> int:
        return len(self._requests)

    def reset(self, user_id: Optional[str] = None) -> None:
        if user_id is None:
            self._requests.clear()
        else:
            self._requests.pop(user_id, None)

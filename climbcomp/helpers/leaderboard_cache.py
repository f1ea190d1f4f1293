import time

# --- Leaderboard cache ---

DEFAULT_LEADERBOARD_CACHE_TTL = 10.0  # seconds


class LeaderboardCache:
    """
    Small TTL cache for computed leaderboards.

    Keys are plain strings such as "boulder:3" or "speed-qualification:7",
    so a whole competition can be dropped with invalidate_prefix().
    The clock is injectable so tests don't have to sleep.
    """

    def __init__(self, ttl: float = DEFAULT_LEADERBOARD_CACHE_TTL, clock=time.monotonic):
        self.ttl = ttl
        self._clock = clock
        # key -> (value, timestamp)
        self._entries: dict = {}

    def get(self, key):
        """
        Return cached value if still valid, else None.
        """
        entry = self._entries.get(key)
        if not entry:
            return None

        value, timestamp = entry
        if (self._clock() - timestamp) > self.ttl:
            self._entries.pop(key, None)
            return None

        return value

    def set(self, key, value) -> None:
        self._entries[key] = (value, self._clock())

    def invalidate(self, key) -> None:
        self._entries.pop(key, None)

    def invalidate_prefix(self, prefix: str) -> None:
        for key in [k for k in self._entries if str(k).startswith(prefix)]:
            self._entries.pop(key, None)

    def clear(self) -> None:
        """Clear all cached leaderboard entries."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

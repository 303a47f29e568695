"""Per-connection flood limiter for inbound WebSocket frames."""

import time


class TokenBucket:
    """Token bucket: ``rate`` tokens per second, holding at most ``burst``.

    This guards the server against message floods. It is deliberately looser
    than the 20 taps/second race rule, which the MatchEngine enforces by
    silently dropping taps.
    """

    def __init__(self, rate: float, burst: int) -> None:
        self._rate = rate
        self._burst = burst
        self._tokens = float(burst)
        self._updated_at = time.monotonic()

    def consume(self) -> bool:
        """Take one token. Return False when the caller should be throttled."""
        now = time.monotonic()
        self._tokens = min(self._burst, self._tokens + (now - self._updated_at) * self._rate)
        self._updated_at = now
        if self._tokens < 1.0:
            return False
        self._tokens -= 1.0
        return True

"""
Tiered request throttling.

Douban bans guest IPs that exceed roughly 10 requests a minute and asks
logged-in sessions for a CAPTCHA above roughly 20, so every outbound request
waits for admission under one of three policies.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from enum import Enum
from typing import Awaitable, Callable, Deque, Dict, List, Optional

from doubanscout.config import Settings

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]

# Remaining waits below this are clock rounding, not a real shortfall
MIN_WAIT_S = 1e-6


class WindowConstraint:
    """
    At most ``max_count`` admissions in any rolling ``interval_s`` window.
    """

    def __init__(self, max_count: int, interval_s: float):
        if max_count < 1:
            raise ValueError("max_count must be >= 1")
        self.max_count = max_count
        self.interval_s = interval_s
        self._admitted: Deque[float] = deque()

    def _prune(self, now: float) -> None:
        while self._admitted and now - self._admitted[0] >= self.interval_s:
            self._admitted.popleft()

    def wait_time(self, now: float) -> float:
        """Seconds until this window has a free slot (0 if free now)."""
        self._prune(now)
        if len(self._admitted) < self.max_count:
            return 0.0
        oldest = self._admitted[0]
        return max(0.0, self.interval_s - (now - oldest))

    def record(self, now: float) -> None:
        self._admitted.append(now)

    def __repr__(self) -> str:
        return f"WindowConstraint({self.max_count}/{self.interval_s}s)"


class TimeLimiter:
    """
    Composite limiter: admission requires every constraint to have a slot.

    Waiters are served in arrival order; the lock is held while sleeping so a
    later caller cannot overtake an earlier one.
    """

    def __init__(
        self,
        constraints: List[WindowConstraint],
        clock: Optional[Clock] = None,
        sleep: Optional[Sleeper] = None,
        name: str = "",
    ):
        self.constraints = constraints
        self.name = name
        self._clock = clock or time.monotonic
        self._sleep = sleep or asyncio.sleep
        # Created on first acquire so the limiter can be built outside a running loop
        self._lock: Optional[asyncio.Lock] = None

    def wait_time(self) -> float:
        now = self._clock()
        return max(c.wait_time(now) for c in self.constraints)

    async def acquire(self) -> float:
        """Wait for admission. Returns the seconds spent waiting."""
        waited = 0.0
        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            while True:
                delay = self.wait_time()
                if delay <= MIN_WAIT_S:
                    break
                logger.debug("Throttle %s: waiting %.2fs", self.name, delay)
                await self._sleep(delay)
                waited += delay

            now = self._clock()
            for c in self.constraints:
                c.record(now)
        return waited


class RatePolicy(str, Enum):
    """Throttling tiers."""
    DEFAULT = "default"
    GUEST = "guest"
    LOGGED_IN = "logged_in"

    @classmethod
    def select(cls, settings: Settings) -> "RatePolicy":
        """Pick the policy for the current configuration."""
        if not settings.avoid_risk_control:
            return cls.DEFAULT
        if settings.has_cookies:
            return cls.LOGGED_IN
        return cls.GUEST


def build_limiters(
    clock: Optional[Clock] = None,
    sleep: Optional[Sleeper] = None,
) -> Dict[RatePolicy, TimeLimiter]:
    """Create one shared limiter per policy."""
    return {
        # 1 request per 200ms
        RatePolicy.DEFAULT: TimeLimiter(
            [WindowConstraint(1, 0.2)],
            clock=clock, sleep=sleep, name=RatePolicy.DEFAULT.value,
        ),
        # 10 per minute and 1 per 5s
        RatePolicy.GUEST: TimeLimiter(
            [WindowConstraint(10, 60.0), WindowConstraint(1, 5.0)],
            clock=clock, sleep=sleep, name=RatePolicy.GUEST.value,
        ),
        # 20 per minute and 1 per 3s
        RatePolicy.LOGGED_IN: TimeLimiter(
            [WindowConstraint(20, 60.0), WindowConstraint(1, 3.0)],
            clock=clock, sleep=sleep, name=RatePolicy.LOGGED_IN.value,
        ),
    }


class RequestThrottler:
    """
    Gate for every outbound request.

    The policy is chosen per call from the live configuration, so toggling
    risk avoidance or adding a cookie takes effect on the next request.
    """

    def __init__(
        self,
        settings_fn: Callable[[], Settings],
        clock: Optional[Clock] = None,
        sleep: Optional[Sleeper] = None,
    ):
        self._settings_fn = settings_fn
        self.limiters = build_limiters(clock=clock, sleep=sleep)
        self.admitted: Dict[RatePolicy, int] = {p: 0 for p in RatePolicy}

    def current_policy(self) -> RatePolicy:
        return RatePolicy.select(self._settings_fn())

    async def admit(self) -> RatePolicy:
        """Suspend until the active policy admits one request."""
        policy = self.current_policy()
        waited = await self.limiters[policy].acquire()
        self.admitted[policy] += 1
        if waited > 1:
            logger.debug("Admitted under %s policy after %.1fs", policy.value, waited)
        return policy

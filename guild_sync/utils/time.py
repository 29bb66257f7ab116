import math
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def delay_until_next_second(now: float, buffer: float = 0.0) -> float:
    """
    Seconds from `now` (epoch seconds) to the start of the next whole second,
    plus `buffer`.

    Upstream per-second quotas reset on whole-second boundaries, so waiting
    for the boundary is the shortest wait that can succeed.
    """
    return (math.floor(now) + 1 - now) + buffer

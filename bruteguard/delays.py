"""Delay schedule: bounded Fibonacci-style growth from min_wait to max_wait (milliseconds)."""
import math


def compute_delays(free_retries: int, min_wait: int, max_wait: int) -> tuple[int, ...]:
    """
    Waits applied once free retries are exhausted.

    Each step adds the two previous waits (the first step adds nothing), clamped
    to max_wait; generation stops once max_wait is reached.
    free_retries does not change the shape; it only shifts where the schedule starts applying.
    """
    delays = [min_wait]
    while delays[-1] < max_wait:
        previous = delays[-2] if len(delays) > 1 else 0
        delays.append(min(delays[-1] + previous, max_wait))
    return tuple(delays)


def default_lifetime(free_retries: int, delays: tuple[int, ...], max_wait: int) -> int:
    """Seconds an idle record is kept when no lifetime is configured."""
    return math.ceil(max_wait / 1000 * (len(delays) + free_retries))


def clamped_index(count: int, free_retries: int, schedule_length: int) -> int:
    return max(0, min(count - free_retries - 1, schedule_length - 1))

"""Wall clock in epoch milliseconds.

Services take a `Clock` callable so tests can pin or advance time.
"""
import time
from typing import Callable

Clock = Callable[[], int]

MS_PER_DAY = 24 * 60 * 60 * 1000


def now_ms() -> int:
    return int(time.time() * 1000)

import time
from typing import Callable

# Returns the current time in epoch milliseconds
Clock = Callable[[], int]

MINUTE_MS = 60 * 1000


def now_ms() -> int:
    return int(time.time() * 1000)

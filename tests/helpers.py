import threading
import time
from typing import Callable, TypeVar

T = TypeVar("T")


def wait_for(
        condition: Callable[[], T],
        timeout: float = 5.0,
        interval: float = 0.02,
) -> T:
    """
    Wait until condition() returns something truthy and return it.

    Raises AssertionError on timeout.
    """
    deadline = time.monotonic() + timeout

    while time.monotonic() < deadline:
        result = condition()
        if result:
            return result
        time.sleep(interval)

    raise AssertionError("Condition not met before timeout")


def keep_emitting(emit: Callable[[], None], interval: float = 0.02) -> threading.Event:
    """
    Call emit() every `interval` seconds on a daemon thread until the returned
    event is set. Lets a subscriber that starts waiting late still see a frame.
    """
    stop = threading.Event()

    def loop():
        while not stop.is_set():
            emit()
            stop.wait(interval)

    threading.Thread(target=loop, daemon=True).start()
    return stop

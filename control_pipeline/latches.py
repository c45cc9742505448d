"""One-shot synchronization latches for the staged control loop.

Two latches order the loop: the calibration barrier (the control stage may
not read telemetry before calibration is finalized) and the gain-ready
barrier (no actuator command before the LQR gain exists).
"""

import threading
from typing import Optional

from robot_dynamics.errors import ResourceError


class OneShotLatch:
    """A latch that is set at most once.

    ``release`` wakes every waiter without setting the latch, so a
    shutdown never leaves a thread blocked on a gain that will not
    arrive. Used as a context manager the latch is released on exit.
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._is_set = False
        self._released = False

    def set(self) -> None:
        """Set the latch and wake all waiters.

        Raises:
            ResourceError: If the latch was already set or released
        """
        with self._lock:
            if self._is_set:
                raise ResourceError(f"Latch '{self._name}' was already set")
            if self._released:
                raise ResourceError(f"Latch '{self._name}' was released before set")
            self._is_set = True
            self._event.set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the latch is set or released.

        Returns:
            True if the latch is set; False on timeout or release
        """
        self._event.wait(timeout)
        return self._is_set

    def release(self) -> None:
        """Wake all waiters. Idempotent; a set latch stays set."""
        with self._lock:
            self._released = True
            self._event.set()

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_set(self) -> bool:
        return self._is_set

    @property
    def is_released(self) -> bool:
        return self._released

    def __enter__(self) -> 'OneShotLatch':
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.release()

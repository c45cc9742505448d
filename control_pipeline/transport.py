"""Sensor/actuator channel interface.

The serial port driver and the plant simulator both implement it, so the
loop never knows which one it is talking to.
"""

import threading
from typing import Iterator, Protocol

from state_estimation.measurements import TelemetryRecord


class TelemetryTransport(Protocol):
    """Bidirectional channel: telemetry records in, motor commands out."""

    def records(self, stop_event: threading.Event) -> Iterator[TelemetryRecord]:
        """Yield records in arrival order until closure or stop request.

        Implementations must re-check ``stop_event`` at least once per read
        timeout so a stop request unblocks a pending read.
        """
        ...

    def send_command(self, command: int) -> None:
        """Write one signed motor command in [-limit, limit]."""
        ...

    def close(self) -> None:
        """Release the channel. Idempotent."""
        ...

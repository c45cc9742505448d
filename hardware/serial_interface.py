"""Serial communication interface for the robot board.

The board streams one ASCII telemetry record per line:

    acc_x acc_y acc_z gyro_x gyro_y gyro_z encoder_delta motor_feedback

and accepts one signed integer motor command per line.
"""

import logging
import threading
from typing import Iterator, Optional

import serial

from robot_dynamics.errors import ConfigurationError, TransportError
from state_estimation.measurements import TelemetryRecord

logger = logging.getLogger(__name__)


class SerialTelemetryTransport:
    """Line-based serial transport to the robot board.

    Example:
        >>> with SerialTelemetryTransport('/dev/ttyACM0') as transport:
        ...     for record in transport.records(stop_event):
        ...         transport.send_command(0)
    """

    def __init__(
        self,
        port: str = '/dev/ttyACM0',
        baudrate: int = 57600,
        timeout: float = 0.1,
        connection: Optional[serial.Serial] = None,
    ) -> None:
        """Open the serial connection.

        Args:
            port: Serial port device (e.g., /dev/ttyACM0 on Linux, COM3 on Windows)
            baudrate: Communication baud rate
            timeout: Read timeout in seconds; bounds the stop-request latency
            connection: Already-open serial object (tests, serial_for_url)

        Raises:
            TransportError: If the port cannot be opened
            ConfigurationError: If the port settings are invalid
        """
        self._port = port
        self._malformed_lines = 0
        self._closed = False

        if connection is not None:
            self._serial = connection
            return

        try:
            self._serial = serial.Serial(port, baudrate, timeout=timeout)
        except ValueError as error:
            raise ConfigurationError(
                f"Invalid serial settings for {port}: {error}"
            ) from error
        except serial.SerialException as error:
            raise TransportError(f"Cannot open serial port {port}: {error}") from error

        self._serial.reset_input_buffer()
        self._serial.reset_output_buffer()
        logger.info("Opened %s at %d baud", port, baudrate)

    def records(self, stop_event: threading.Event) -> Iterator[TelemetryRecord]:
        """Yield parsed telemetry records until closure or stop request.

        Malformed lines are skipped with a warning. A read timeout yields
        nothing and re-checks the stop request.

        Raises:
            TransportError: On a serial read failure
        """
        while not stop_event.is_set() and not self._closed:
            try:
                raw_line = self._serial.readline()
            except serial.SerialException as error:
                raise TransportError(f"Serial read failed on {self._port}: {error}") from error

            if not raw_line:
                continue

            line = raw_line.decode('ascii', errors='replace').strip()
            if not line:
                continue
            try:
                record = TelemetryRecord.from_line(line)
            except TransportError as error:
                self._malformed_lines += 1
                logger.warning("Skipping malformed telemetry line: %s", error)
                continue
            yield record

    def send_command(self, command: int) -> None:
        """Write one motor command line.

        Raises:
            TransportError: On a serial write failure
        """
        try:
            self._serial.write(f"{int(command)}\n".encode('ascii'))
            self._serial.flush()
        except serial.SerialException as error:
            raise TransportError(f"Serial write failed on {self._port}: {error}") from error

    def close(self) -> None:
        """Close the port without writing. Idempotent.

        Stopping the motors is left to the actuator sink.
        """
        if self._closed:
            return
        self._closed = True
        self._serial.close()
        logger.info("Closed %s", self._port)

    @property
    def malformed_lines(self) -> int:
        """Lines skipped because they did not parse."""
        return self._malformed_lines

    def __enter__(self) -> 'SerialTelemetryTransport':
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()

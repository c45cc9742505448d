"""Tests for voltage to command conversion and the gated actuator sink."""

import numpy as np
import pytest

from robot_dynamics import ConfigurationError, ResourceError, TransportError
from control_pipeline import (
    ActuatorLimits,
    GatedActuatorSink,
    OneShotLatch,
    apply_friction_offset,
    quantize_voltage,
)

from conftest import ListTransport

LIMITS = ActuatorLimits(command_limit=255, full_scale_voltage_v=5.0, friction_offset_v=0.17)


class TestFrictionOffset:
    """Tests for apply_friction_offset."""

    def test_positive_voltage_shifted_up(self):
        assert apply_friction_offset(1.0, 0.17) == pytest.approx(1.17)

    def test_negative_voltage_shifted_down(self):
        assert apply_friction_offset(-1.0, 0.17) == pytest.approx(-1.17)

    def test_zero_unchanged(self):
        assert apply_friction_offset(0.0, 0.17) == 0.0


class TestQuantizeVoltage:
    """Tests for quantize_voltage."""

    def test_counts_per_volt(self):
        """255/5 counts per volt after the offset."""
        assert quantize_voltage(1.0, LIMITS).command == int(1.17 * 51.0)

    def test_truncates_toward_zero(self):
        """Fractional counts are truncated, not rounded."""
        limits = ActuatorLimits(friction_offset_v=0.0)
        assert quantize_voltage(0.099, limits).command == 5
        assert quantize_voltage(-0.099, limits).command == -5

    def test_zero_voltage_gives_zero_command(self):
        result = quantize_voltage(0.0, LIMITS)
        assert result.command == 0
        assert not result.saturated

    @pytest.mark.parametrize('voltage', [5.0, 12.0, 1e9])
    def test_clipped_to_limit(self, voltage):
        """Large voltages clip to ±255 and are flagged."""
        high = quantize_voltage(voltage, LIMITS)
        low = quantize_voltage(-voltage, LIMITS)
        assert high.command == 255 and high.saturated
        assert low.command == -255 and low.saturated

    def test_commands_always_in_range(self):
        """Any finite voltage maps into [-255, 255]."""
        for voltage in np.linspace(-20.0, 20.0, 401):
            assert -255 <= quantize_voltage(voltage, LIMITS).command <= 255

    def test_non_finite_voltage_gives_zero(self):
        assert quantize_voltage(float('nan'), LIMITS).command == 0

    def test_invalid_limits_rejected(self):
        with pytest.raises(ConfigurationError):
            ActuatorLimits(command_limit=0)


class TestGatedActuatorSink:
    """Tests for GatedActuatorSink."""

    def test_refuses_before_gain_ready(self):
        """No command reaches the transport before the gain latch is set."""
        transport = ListTransport([])
        sink = GatedActuatorSink(transport, OneShotLatch('gain_ready'), LIMITS)

        with pytest.raises(ResourceError):
            sink.send(10)
        assert transport.commands == []

    def test_sends_after_gain_ready(self):
        transport = ListTransport([])
        gain_ready = OneShotLatch('gain_ready')
        gain_ready.set()
        sink = GatedActuatorSink(transport, gain_ready, LIMITS)

        sink.send(10)
        sink.send(-20)

        assert transport.commands == [10, -20]
        assert sink.commands_sent == 2

    def test_out_of_range_refused(self):
        gain_ready = OneShotLatch('gain_ready')
        gain_ready.set()
        sink = GatedActuatorSink(ListTransport([]), gain_ready, LIMITS)
        with pytest.raises(ResourceError):
            sink.send(256)

    def test_stop_sends_zero_once(self):
        transport = ListTransport([])
        gain_ready = OneShotLatch('gain_ready')
        gain_ready.set()
        sink = GatedActuatorSink(transport, gain_ready, LIMITS)

        sink.stop()
        sink.stop()

        assert transport.commands == [0]
        assert sink.is_stopped

    def test_stop_before_gain_writes_nothing(self):
        """Without a gain the motors were never driven, so nothing is sent."""
        transport = ListTransport([])
        gain_ready = OneShotLatch('gain_ready')
        sink = GatedActuatorSink(transport, gain_ready, LIMITS)

        sink.stop()
        gain_ready.release()
        sink.stop()

        assert transport.commands == []
        assert sink.is_stopped

    def test_refuses_after_stop(self):
        gain_ready = OneShotLatch('gain_ready')
        gain_ready.set()
        sink = GatedActuatorSink(ListTransport([]), gain_ready, LIMITS)
        sink.stop()
        with pytest.raises(ResourceError):
            sink.send(1)

    def test_stop_survives_transport_failure(self):
        """A failed zero command is logged, not raised from cleanup."""
        def fail(command):
            raise TransportError('port gone')

        gain_ready = OneShotLatch('gain_ready')
        gain_ready.set()
        sink = GatedActuatorSink(ListTransport([], on_command=fail), gain_ready, LIMITS)
        sink.stop()
        assert sink.is_stopped

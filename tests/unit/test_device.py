"""
Unit Tests: Maze controller (sampler, tilt, run state machine, polling loop)
"""

import random
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from labyrinth.device import (
    DeviceLoop,
    DistanceSampler,
    RunState,
    RunStateMachine,
    TiltController,
    echo_to_distance_cm,
    map_range,
)
from labyrinth.device.sampler import HALF_SPEED_OF_SOUND_CM_S
from labyrinth.device.simulator import SimulatedSensor, build_simulated_machine
from tests.fakes import FakeClock


def echo_for(distance_cm: float) -> float:
    return distance_cm / HALF_SPEED_OF_SOUND_CM_S


class ScriptedSensor:
    def __init__(self, readings):
        self.readings = list(readings)
        self.pings = 0

    def ping(self):
        self.pings += 1
        if self.readings:
            return self.readings.pop(0)
        return echo_for(12.0)


class FixedJoystick:
    def __init__(self, x=512, y=512):
        self.x = x
        self.y = y

    def read_x(self):
        return self.x

    def read_y(self):
        return self.y


class RecordingServo:
    def __init__(self):
        self.angles = []

    def write(self, angle):
        self.angles.append(angle)


class ScriptedLink:
    def __init__(self, chunks):
        self.chunks = list(chunks)
        self.written = []

    def read(self, size=1):
        return self.chunks.pop(0) if self.chunks else b""

    def write(self, data):
        self.written.append(data)
        return len(data)


def make_machine(readings=()):
    x_servo, y_servo = RecordingServo(), RecordingServo()
    tilt = TiltController(FixedJoystick(1023, 0), x_servo, y_servo)
    sampler = DistanceSampler(ScriptedSensor(readings), fall_threshold_cm=5.0)
    return RunStateMachine(tilt, sampler), x_servo, y_servo


# ----------------------------------------------------------------------------
# Distance sampler
# ----------------------------------------------------------------------------


def test_echo_to_distance_uses_half_speed_of_sound():
    assert echo_to_distance_cm(0.001) == pytest.approx(17.15)
    assert echo_to_distance_cm(None) is None
    assert echo_to_distance_cm(0) is None


def test_single_short_sample_counts_as_fall():
    sampler = DistanceSampler(ScriptedSensor([echo_for(12.0), echo_for(2.0)]))

    assert sampler.fallen() is False
    assert sampler.fallen() is True
    assert sampler.last_distance_cm == pytest.approx(2.0)


def test_missing_or_out_of_range_echo_is_not_a_fall():
    sampler = DistanceSampler(
        ScriptedSensor([None, echo_for(900.0)]), max_range_cm=400.0
    )

    assert sampler.fallen() is False
    assert sampler.fallen() is False
    assert sampler.last_distance_cm is None


# ----------------------------------------------------------------------------
# Tilt controller
# ----------------------------------------------------------------------------


def test_map_range_is_linear_and_clamped():
    assert map_range(0, 0, 1023, 60, 120) == 60
    assert map_range(1023, 0, 1023, 60, 120) == 120
    assert map_range(511.5, 0, 1023, 60, 120) == pytest.approx(90)
    assert map_range(-50, 0, 1023, 60, 120) == 60
    assert map_range(5000, 0, 1023, 60, 120) == 120
    assert map_range(7, 5, 5, 60, 120) == 60


def test_tilt_controller_maps_both_axes():
    x_servo, y_servo = RecordingServo(), RecordingServo()
    tilt = TiltController(
        FixedJoystick(1023, 0), x_servo, y_servo, x_range=(45, 135), y_range=(70, 110)
    )

    assert tilt.center() == (90, 90)
    assert tilt.update() == (135, 70)
    assert x_servo.angles == [90, 135]
    assert y_servo.angles == [90, 70]


# ----------------------------------------------------------------------------
# Run state machine
# ----------------------------------------------------------------------------


def test_servos_centred_at_startup_and_idle_holds_position():
    machine, x_servo, y_servo = make_machine()

    assert machine.state == RunState.IDLE
    assert x_servo.angles == [90]
    assert machine.tick() is None
    assert x_servo.angles == [90]


def test_start_activates_and_duplicate_start_is_noop():
    machine, _, _ = make_machine()

    assert machine.receive("START") == RunState.ACTIVE
    assert machine.receive("START") == RunState.ACTIVE


def test_unrecognised_input_is_discarded():
    machine, _, _ = make_machine()

    assert machine.receive("HELLO") == RunState.IDLE
    assert machine.receive("FINISH") == RunState.IDLE
    assert machine.receive("start") == RunState.IDLE


def test_fall_emits_exactly_one_finish():
    machine, x_servo, _ = make_machine([echo_for(12.0), echo_for(3.0)])
    machine.receive("START")

    assert machine.tick() is None
    assert machine.tick() == "FINISH"
    assert machine.state == RunState.IDLE
    assert machine.tick() is None
    # centre plus one write per active tick
    assert x_servo.angles == [90, 120, 120]


# ----------------------------------------------------------------------------
# Polling loop
# ----------------------------------------------------------------------------


def test_device_loop_reassembles_start_and_writes_finish():
    machine, _, _ = make_machine([echo_for(12.0), echo_for(1.0)])
    link = ScriptedLink([b"STA", b"RT\n"])
    loop = DeviceLoop(link, machine)

    assert loop.step() is None
    assert loop.state == RunState.IDLE
    assert loop.step() is None
    assert loop.state == RunState.ACTIVE
    assert loop.step() == "FINISH"
    assert link.written == [b"FINISH\n"]
    assert loop.state == RunState.IDLE


def test_device_loop_run_stops_after_max_steps():
    machine, _, _ = make_machine()
    sleeps = []
    loop = DeviceLoop(ScriptedLink([]), machine, tick_interval_seconds=0.5, sleep=sleeps.append)

    assert loop.run(max_steps=3) == 3
    assert sleeps == [0.5, 0.5, 0.5]


def test_simulated_sensor_falls_after_delay_and_rearms():
    clock = FakeClock(start=0.0)
    sensor = SimulatedSensor(fall_after_seconds=(1.0, 1.0), clock=clock)
    sampler = DistanceSampler(sensor)

    assert sampler.fallen() is False
    clock.advance(0.5)
    assert sampler.fallen() is False
    clock.advance(0.5)
    assert sampler.fallen() is True
    # next run starts a fresh delay
    assert sampler.fallen() is False


def test_simulated_machine_finishes_a_run():
    clock = FakeClock(start=0.0)
    sensor = SimulatedSensor(fall_after_seconds=(0.2, 0.2), clock=clock)
    machine = build_simulated_machine(sensor=sensor, rng=random.Random(3))
    machine.receive("START")

    emitted = []
    for _ in range(10):
        emitted.append(machine.tick())
        clock.advance(0.05)

    assert emitted.count("FINISH") == 1
    assert machine.state == RunState.IDLE

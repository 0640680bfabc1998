"""
Integration Tests: Host and simulated maze controller on a null-modem link

Covers the whole path: begin -> START over serial -> device activates ->
fall detected -> FINISH back -> outcome reduced into the leaderboard file.
"""

import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from labyrinth.device import DeviceLoop, DistanceSampler, RunState, RunStateMachine, TiltController
from labyrinth.device.sampler import HALF_SPEED_OF_SOUND_CM_S
from labyrinth.device.simulator import SimulatedJoystick, SimulatedServo
from labyrinth.leaderboard.reducer import LeaderboardReducer
from labyrinth.config import SessionConfig
from labyrinth.services.serial import SerialConfig, SerialTransport
from labyrinth.session import RunFinished, SessionRelay
from labyrinth.storage import load_records
from tests.fakes import ARDUINO_PORT, DeviceLink, FakePortLister, FakeSerialFactory


class FallAfter:
    """Board distance for a number of pings, then one short echo."""

    def __init__(self, pings: int):
        self.remaining = pings

    def ping(self):
        self.remaining -= 1
        distance = 12.0 if self.remaining >= 0 else 1.0
        return distance / HALF_SPEED_OF_SOUND_CM_S


def build_device(link, pings_before_fall):
    tilt = TiltController(SimulatedJoystick(), SimulatedServo("x"), SimulatedServo("y"))
    machine = RunStateMachine(tilt, DistanceSampler(FallAfter(pings_before_fall)))
    return DeviceLoop(link, machine)


def test_run_completes_over_serial(tmp_path):
    path = tmp_path / "leaderboard.yaml"

    async def run():
        factory = FakeSerialFactory(ARDUINO_PORT.device)
        transport = SerialTransport(
            SerialConfig(), serial_factory=factory, port_lister=FakePortLister([ARDUINO_PORT])
        )
        reducer = LeaderboardReducer(path)
        relay = SessionRelay(transport, reducer, SessionConfig(tick_interval_seconds=60))

        finished = asyncio.get_running_loop().create_future()

        async def on_event(event):
            if isinstance(event, RunFinished) and not finished.done():
                finished.set_result(event)

        relay.add_listener(on_event)

        assert await transport.connect() is True
        device = build_device(DeviceLink(factory.handles[ARDUINO_PORT.device]), 5)
        pump = asyncio.create_task(relay.pump(transport))

        assert await relay.begin("p1", "Amy") is True

        states = []
        for _ in range(50):
            device.step()
            states.append(device.state)
            if finished.done():
                break
            await asyncio.sleep(0.01)

        event = await asyncio.wait_for(finished, 2.0)
        pump.cancel()
        await transport.close()
        return event, states

    event, states = asyncio.run(run())

    assert RunState.ACTIVE in states
    assert states[-1] == RunState.IDLE
    assert event.persisted is True
    assert event.is_new_best is True

    records = load_records(path)
    assert len(records) == 1
    assert records[0].success_count == 1
    assert records[0].best_time_millis == event.outcome.elapsed_millis

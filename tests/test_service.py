import pytest

from control.config import parse_config
from control.host.link import Transport, TransportError
from dashboard_pkg.backend.service import ConsoleService
from kinematics.delta_arm import Geometry, JointAngles

from conftest import FakeClock


class RecordingTransport(Transport):
    name = "recording"

    def __init__(self):
        super().__init__()
        self.address = "192.168.4.1"
        self.sent = []
        self.inbox = None
        self.fail = False
        self.opened = 0

    def _connect(self):
        self.opened += 1

    def _disconnect(self):
        pass

    def _write(self, message):
        if self.fail:
            raise TransportError("link dropped")
        self.sent.append(message)

    def _read(self):
        message, self.inbox = self.inbox, None
        return message


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def service(transport, clock):
    svc = ConsoleService(parse_config({}), transport=transport, clock=clock)
    transport.open()
    return svc


def test_first_frame_sends_home_pose_once(service, transport, clock):
    message = service.step(clock())
    assert message is not None
    assert transport.sent == [message]
    assert service.step(clock.advance(0.02)) is None
    assert transport.sent == [message]
    assert service.status()["last_message"] == message


def test_joystick_drives_position_at_sampler_rate(service, transport, clock):
    service.step(clock())
    service.joystick_start()
    service.joystick_move(1.0, 0.0)
    service.joystick_move(0.5, 0.0)
    service.step(clock.advance(0.05))
    assert service.status()["position"]["x"] == 0.0
    service.step(clock.advance(0.05))
    assert service.status()["position"]["x"] == 5.0
    service.step(clock.advance(0.1))
    assert service.status()["position"]["x"] == 10.0
    assert len(transport.sent) == 3

    service.joystick_stop()
    service.step(clock.advance(0.5))
    assert service.status()["position"]["x"] == 10.0
    assert service.status()["joystick_active"] is False


def test_unreachable_pose_is_not_transmitted(service, transport, clock):
    service.step(clock())
    service.set_geometry(Geometry(base_arm_length=100))
    assert service.step(clock.advance(0.02)) is None
    assert len(transport.sent) == 1
    status = service.status()
    assert status["angles"] == {"theta1": None, "theta2": None, "theta3": None}


def test_telemetry_updates_actual_angles(service, transport, clock):
    transport.inbox = "1.5,2.5,3.5"
    service.step(clock())
    assert service.status()["actual_angles"] == {"theta1": 1.5, "theta2": 2.5, "theta3": 3.5}
    transport.inbox = "not,angles"
    service.step(clock.advance(0.02))
    assert service.status()["actual_angles"] == {"theta1": 1.5, "theta2": 2.5, "theta3": 3.5}


def test_send_failure_is_logged_and_survived(service, transport, clock):
    transport.fail = True
    assert service.step(clock()) is None
    status = service.status()
    assert status["connection"] == "Closed"
    assert service.events()[-1]["message"] == "send_failed"
    assert service.step(clock.advance(0.02)) is None


def test_reset_homes_the_arm(service, clock):
    service.set_position((3.0, 0.0, 432.0))
    service.reset()
    assert service.status()["animation"] == "homing"
    now = clock()
    for _ in range(10):
        service.step(now)
        now += 0.1
    status = service.status()
    assert status["position"] == {"x": 0.0, "y": 0.0, "z": 432.0}
    assert status["animation"] is None


def test_trajectory_and_cancel(service, clock):
    token = service.start_trajectory(["x"], speed=5)
    assert token == 1
    service.step(clock())
    assert service.status()["position"]["x"] == 1.0
    assert service.cancel() is True
    service.step(clock.advance(1.0))
    assert service.status()["position"]["x"] == 1.0
    assert service.cancel() is False


def test_device_address_reconnects(service, transport):
    service.set_device_address(" 10.0.0.7 ")
    assert transport.address == "10.0.0.7"
    assert transport.opened == 2
    assert service.status()["device_address"] == "10.0.0.7"
    with pytest.raises(ValueError):
        service.set_device_address("   ")


def test_events_are_returned_oldest_first(service):
    service.set_z(440)
    service.set_z(450)
    events = service.events()
    assert [e["value"] for e in events] == [440, 450]
    assert service.events(limit=1)[0]["value"] == 450

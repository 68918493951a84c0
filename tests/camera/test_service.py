from camera.config import StreamerConfig
from camera.lease import LeaseState
from camera.service import CameraService
from tests.fakes.fake_commands import FakeCommands


def make_service(tmp_path, commands=None):
    config = StreamerConfig(photo_dir=tmp_path / "photos", grace_delay=0)
    return CameraService(config, commands=commands or FakeCommands())


def test_start_begins_preview(tmp_path):
    service = make_service(tmp_path)
    service.start()

    status = service.status()
    assert status["lease"] == "PREVIEW"
    assert status["previewing"] is True
    assert status["preview_pid"] == service.commands.current.pid
    assert status["tools_available"] is True

    service.stop()


def test_start_survives_missing_camera_tools(tmp_path, caplog):
    commands = FakeCommands()
    commands.fail_launch = True
    service = make_service(tmp_path, commands)

    service.start()

    assert service.lease.state == LeaseState.FREE
    assert "Preview not started" in caplog.text


def test_stop_releases_camera_and_closes_hub(tmp_path):
    service = make_service(tmp_path)
    service.start()
    process = service.commands.current

    service.stop()

    assert process.killed
    assert service.lease.state == LeaseState.FREE
    assert service.hub.closed


def test_capture_goes_to_configured_photo_dir(tmp_path):
    service = make_service(tmp_path)
    service.start()

    path = service.capture()

    assert path.parent == (tmp_path / "photos").resolve()
    assert service.status()["capture"] == "IDLE"
    assert service.status()["previewing"] is True
    service.stop()


def test_preview_controls_delegate_to_supervisor(tmp_path):
    service = make_service(tmp_path)
    assert service.start_preview() is True
    assert service.start_preview() is False
    assert service.start_preview(restart=True) is True
    assert service.stop_preview() is True
    assert service.stop_preview() is False

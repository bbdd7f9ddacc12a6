from pathlib import Path

import pytest

from patchpipe.core import session as session_module
from patchpipe.core.session import DeviceSession
from patchpipe.exceptions import (
    ADBError,
    DeviceNotFoundError,
    LogMonitorError,
    PackageNotFoundError,
    ProcessError,
    RootAccessError,
    SessionStateError,
)
from patchpipe.models.artifact import Artifact, ArtifactKind
from patchpipe.models.device import DeviceAuthority, SessionState

BASE = Artifact(file=Path("/in/app.apk"), package_name="com.example.app")
SPLIT = Artifact(
    file=Path("/in/app_lang.apk"),
    package_name="com.example.app",
    kind=ArtifactKind.LANGUAGE,
)
STOCK = "/data/app/~~abc/com.example.app-1/base.apk"


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr(session_module.time, "sleep", lambda seconds: None)


def _session(fake_adb, logger, authority=DeviceAuthority.USER, **kwargs) -> DeviceSession:
    return DeviceSession("device123", authority, logger, adb=fake_adb, **kwargs)


def test_open_resolves_device(fake_adb, logger):
    session = _session(fake_adb, logger).open()

    assert session.state == SessionState.READY
    assert session.device.id == "device123"


def test_open_fails_when_device_missing(fake_adb, logger):
    fake_adb.devices = []
    session = _session(fake_adb, logger)

    with pytest.raises(DeviceNotFoundError, match="device123"):
        session.open()
    assert session.state == SessionState.CLOSED


def test_root_session_requires_su(fake_adb, logger):
    fake_adb.responses["su id"] = (1, "")

    with pytest.raises(RootAccessError, match="Root required on device123"):
        _session(fake_adb, logger, DeviceAuthority.ROOT).open()


def test_user_session_skips_root_probe(fake_adb, logger):
    fake_adb.responses["su id"] = (1, "")

    _session(fake_adb, logger).open()

    assert fake_adb.commands("su") == []


def test_session_cannot_be_opened_twice(fake_adb, logger):
    session = _session(fake_adb, logger).open()

    with pytest.raises(SessionStateError):
        session.open()


def test_install_requires_open_session(fake_adb, logger):
    with pytest.raises(SessionStateError, match="disconnected"):
        _session(fake_adb, logger).install(BASE, Path("/out/app.apk"))


def test_close_is_idempotent(fake_adb, logger):
    with _session(fake_adb, logger) as session:
        assert session.state == SessionState.READY
    session.close()

    assert session.state == SessionState.CLOSED
    with pytest.raises(SessionStateError):
        session.uninstall("com.example.app")


def test_user_install_base_and_split(fake_adb, logger):
    session = _session(fake_adb, logger).open()

    assert session.install(BASE, Path("/out/app.apk"))
    assert session.install(SPLIT, Path("/out/app_lang.apk"))

    assert ("push", "/out/app.apk", "/data/local/tmp/app.apk") in fake_adb.calls
    shell = fake_adb.commands("shell")
    assert "pm install -r -d /data/local/tmp/app.apk" in shell
    assert "pm install -r -p com.example.app /data/local/tmp/app_lang.apk" in shell
    assert "rm -f /data/local/tmp/app_lang.apk" in shell


def test_user_install_reports_package_manager_failure(fake_adb, logger):
    fake_adb.responses["pm install"] = (0, "Failure [INSTALL_FAILED_UPDATE_INCOMPATIBLE]")
    session = _session(fake_adb, logger).open()

    with pytest.raises(ADBError, match="INSTALL_FAILED_UPDATE_INCOMPATIBLE"):
        session.install(BASE, Path("/out/app.apk"))
    assert "rm -f /data/local/tmp/app.apk" in fake_adb.commands("shell")


def test_root_install_mounts_base_over_stock_apk(fake_adb, logger):
    fake_adb.responses["pm path com.example.app"] = (0, f"package:{STOCK}\n")
    session = _session(fake_adb, logger, DeviceAuthority.ROOT).open()

    assert session.install(BASE, Path("/cache/aligned/app.apk"))

    su = fake_adb.commands("su")
    assert "mv /data/local/tmp/app.apk /data/adb/patchpipe/com.example.app.apk" in su
    assert f"mount -o bind /data/adb/patchpipe/com.example.app.apk {STOCK}" in su
    assert fake_adb.spawned == []


def test_root_install_skips_splits(fake_adb, logger):
    session = _session(fake_adb, logger, DeviceAuthority.ROOT).open()

    assert session.install(SPLIT, Path("/cache/aligned/app_lang.apk")) is False
    assert not any(call[0] == "push" for call in fake_adb.calls)


def test_root_install_needs_stock_package(fake_adb, logger):
    session = _session(fake_adb, logger, DeviceAuthority.ROOT).open()

    with pytest.raises(PackageNotFoundError, match="com.example.app"):
        session.install(BASE, Path("/cache/aligned/app.apk"))


def test_user_uninstall(fake_adb, logger):
    session = _session(fake_adb, logger).open()

    session.uninstall("com.example.app")

    assert ("run", "uninstall", "com.example.app") in fake_adb.calls


def test_user_uninstall_failure(fake_adb, logger):
    fake_adb.responses["uninstall"] = (1, "Failure [DELETE_FAILED_INTERNAL_ERROR]")
    session = _session(fake_adb, logger).open()

    with pytest.raises(ADBError, match="Failed to uninstall"):
        session.uninstall("com.example.app")


def test_root_uninstall_unmounts(fake_adb, logger):
    fake_adb.responses["pm path com.example.app"] = (0, f"package:{STOCK}\n")
    session = _session(fake_adb, logger, DeviceAuthority.ROOT).open()

    session.uninstall("com.example.app")

    su = fake_adb.commands("su")
    assert f"umount -l {STOCK}" in su
    assert "rm -f /data/adb/patchpipe/com.example.app.apk" in su


def test_log_polls_until_app_exits(fake_adb, logger, monkeypatch):
    states = iter([True, True, False])
    session = _session(fake_adb, logger).open()
    monkeypatch.setattr(session, "is_running", lambda package: next(states))

    session.log("com.example.app")

    assert fake_adb.commands("spawn") == [
        "logcat -c && logcat | grep -F com.example.app"
    ]
    assert fake_adb.spawned[0].terminated


def test_log_polling_error_is_fatal(fake_adb, logger, monkeypatch):
    session = _session(fake_adb, logger).open()

    def broken(package):
        raise ProcessError(["adb"], -1, "device offline")

    monkeypatch.setattr(session, "is_running", broken)

    with pytest.raises(LogMonitorError, match="com.example.app"):
        session.log("com.example.app")
    assert fake_adb.spawned[0].terminated



def test_install_never_tails_logs(fake_adb, logger):
    session = _session(fake_adb, logger, log=True).open()

    session.install(BASE, Path("/out/app.apk"))
    session.install(SPLIT, Path("/out/app_lang.apk"))

    assert fake_adb.spawned == []
    assert not any("monkey" in command for command in fake_adb.commands("shell"))


def test_root_start_relaunches_mounted_app(fake_adb, logger):
    session = _session(fake_adb, logger, DeviceAuthority.ROOT).open()

    session.start("com.example.app")

    assert fake_adb.commands("shell") == [
        "am force-stop com.example.app",
        "monkey -p com.example.app -c android.intent.category.LAUNCHER 1",
    ]
    assert fake_adb.spawned == []


def test_user_start_without_log_leaves_app_alone(fake_adb, logger):
    session = _session(fake_adb, logger).open()

    session.start("com.example.app")

    assert fake_adb.calls == []


def test_user_start_launches_app_before_tailing_logs(fake_adb, logger):
    fake_adb.responses["pidof -s com.example.app"] = (1, "")
    session = _session(fake_adb, logger, log=True).open()

    session.start("com.example.app")

    order = [call[1] if call[0] != "spawn" else "spawn" for call in fake_adb.calls]
    launched = order.index("monkey -p com.example.app -c android.intent.category.LAUNCHER 1")
    assert launched < order.index("spawn") < order.index("pidof -s com.example.app")
    assert fake_adb.spawned[0].terminated


def test_launch_requires_open_session(fake_adb, logger):
    with pytest.raises(SessionStateError):
        _session(fake_adb, logger).launch("com.example.app")

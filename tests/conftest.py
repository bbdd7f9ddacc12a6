import logging
import shutil
import zipfile
from pathlib import Path

import pytest

from patchpipe.core import aligner as aligner_module
from patchpipe.core import signer as signer_module
from patchpipe.models.device import Device, DeviceState
from patchpipe.utils.process import ProcessResult


@pytest.fixture
def logger() -> logging.Logger:
    return logging.getLogger("tests.patchpipe")


@pytest.fixture
def make_apk(tmp_path):
    """Create a small zip-based APK with the given entries."""

    def _make(name: str, entries: dict[str, bytes] | None = None, directory: Path | None = None) -> Path:
        directory = directory or tmp_path / "input"
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        entries = entries or {
            "AndroidManifest.xml": b"<manifest/>",
            "classes.dex": b"dex\n035\x00original",
            "res/values/strings.xml": b"<resources/>",
        }
        with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for entry, data in entries.items():
                zf.writestr(entry, data)
        return path

    return _make


class FakeBuildTools:
    """Stands in for zipalign, apksigner and keytool by copying files around."""

    def __init__(self) -> None:
        self.calls: list[list[str]] = []

    @property
    def tools(self) -> list[str]:
        return [Path(cmd[0]).name for cmd in self.calls]

    def run_tool(self, command: list[str], *, check: bool = True) -> ProcessResult:
        self.calls.append(command)
        tool = Path(command[0]).name
        if tool == "zipalign":
            src, dst = command[-2], command[-1]
            shutil.copyfile(src, dst)
        elif tool == "apksigner":
            dst = command[command.index("--out") + 1]
            shutil.copyfile(command[-1], dst)
        elif tool == "keytool":
            keystore = Path(command[command.index("-keystore") + 1])
            keystore.write_bytes(b"keystore")
        return ProcessResult(command=command, returncode=0, stdout="", stderr="")


@pytest.fixture
def build_tools(monkeypatch) -> FakeBuildTools:
    fake = FakeBuildTools()
    monkeypatch.setattr(aligner_module, "get_zipalign", lambda: Path("/sdk/zipalign"))
    monkeypatch.setattr(aligner_module, "run_tool", fake.run_tool)
    monkeypatch.setattr(signer_module, "get_apksigner", lambda: Path("/sdk/apksigner"))
    monkeypatch.setattr(signer_module, "get_tool_path", lambda tool: f"/jdk/{tool}")
    monkeypatch.setattr(signer_module, "run_tool", fake.run_tool)
    return fake


class FakeADB:
    """Records ADB calls and answers shell commands from a prefix table."""

    def __init__(self, serial: str = "device123", devices: list[Device] | None = None):
        self.device_id = serial
        self.devices = (
            devices
            if devices is not None
            else [Device(id=serial, state=DeviceState.DEVICE, model="Pixel")]
        )
        self.calls: list[tuple] = []
        # command prefix -> (returncode, stdout)
        self.responses: dict[str, tuple[int, str]] = {}
        self.spawned: list[FakeProcess] = []

    def ensure_device(self) -> Device:
        from patchpipe.exceptions import DeviceNotFoundError

        for device in self.devices:
            if device.id == self.device_id and device.is_available:
                return device
        raise DeviceNotFoundError(
            f"The device with the serial {self.device_id} can not be found"
        )

    def _respond(self, command: list[str], text: str, check: bool) -> ProcessResult:
        from patchpipe.exceptions import ProcessError

        returncode, stdout = 0, ""
        for prefix, response in self.responses.items():
            if text.startswith(prefix):
                returncode, stdout = response
                break
        if check and returncode != 0:
            raise ProcessError(command, returncode, "")
        return ProcessResult(command=command, returncode=returncode, stdout=stdout, stderr="")

    def run(self, *args: str, check: bool = True) -> ProcessResult:
        self.calls.append(("run", *args))
        return self._respond(list(args), " ".join(args), check)

    def shell(self, command: str, *, check: bool = True, root: bool = False) -> ProcessResult:
        self.calls.append(("su" if root else "shell", command))
        key = f"su {command}" if root else command
        return self._respond(["shell", command], key, check)

    def push(self, local: Path, remote: str) -> ProcessResult:
        self.calls.append(("push", str(local), remote))
        return ProcessResult(command=["push"], returncode=0, stdout="", stderr="")

    def spawn(self, command: str, *, inherit_output: bool = False):
        self.calls.append(("spawn", command))
        process = FakeProcess()
        self.spawned.append(process)
        return process

    def commands(self, kind: str) -> list[str]:
        return [call[1] for call in self.calls if call[0] == kind]


class FakeProcess:
    def __init__(self) -> None:
        self.terminated = False

    def poll(self):
        return 0 if self.terminated else None

    def terminate(self) -> None:
        self.terminated = True

    def wait(self, timeout=None) -> int:
        return 0

    def kill(self) -> None:
        self.terminated = True


@pytest.fixture
def fake_adb() -> FakeADB:
    return FakeADB()

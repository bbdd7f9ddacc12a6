"""ADB transport: device discovery and command primitives."""

import shlex
import subprocess
from pathlib import Path

from patchpipe.exceptions import DeviceNotFoundError
from patchpipe.models.device import Device, DeviceList, DeviceState
from patchpipe.utils.process import ProcessResult, run_tool, spawn_tool


class ADBWrapper:
    """Wrapper for ADB commands."""

    def __init__(self, device_id: str | None = None):
        """Initialize ADB wrapper.

        Args:
            device_id: Optional device serial to target. If None, uses default device.
        """
        self.device_id = device_id

    def _command(self, *args: str) -> list[str]:
        cmd = ["adb"]
        if self.device_id:
            cmd.extend(["-s", self.device_id])
        cmd.extend(args)
        return cmd

    def run(self, *args: str, check: bool = True) -> ProcessResult:
        """Run an ADB command against the target device.

        Args:
            *args: ADB command arguments.
            check: If True, raise on non-zero exit.
        """
        return run_tool(self._command(*args), check=check)

    def shell(self, command: str, *, check: bool = True, root: bool = False) -> ProcessResult:
        """Run a shell command on the device, optionally through ``su``."""
        if root:
            return self.run("shell", "su", "-c", shlex.quote(command), check=check)
        return self.run("shell", command, check=check)

    def push(self, local: Path, remote: str) -> ProcessResult:
        """Copy a local file to the device."""
        return self.run("push", str(local), remote)

    def spawn(self, command: str, *, inherit_output: bool = False) -> subprocess.Popen:
        """Start a long-running shell command with redirected output."""
        return spawn_tool(self._command("shell", command), inherit_output=inherit_output)

    def list_devices(self) -> DeviceList:
        """List all connected ADB devices.

        Returns:
            DeviceList containing all connected devices.
        """
        # Run without device selector
        result = run_tool(["adb", "devices", "-l"])
        devices = []

        for line in result.lines[1:]:  # Skip header line
            parts = line.split()
            if len(parts) < 2:
                continue

            try:
                state = DeviceState(parts[1])
            except ValueError:
                state = DeviceState.UNKNOWN

            props = dict(
                part.split(":", 1) for part in parts[2:] if ":" in part
            )
            devices.append(
                Device(
                    id=parts[0],
                    state=state,
                    model=props.get("model"),
                    product=props.get("product"),
                    transport_id=props.get("transport_id"),
                )
            )

        return DeviceList(devices=devices)

    def ensure_device(self) -> Device:
        """Ensure a device is available and return it.

        Raises:
            DeviceNotFoundError: If no device is connected or device not found.
        """
        devices = self.list_devices()

        if self.device_id:
            device = devices.get_by_id(self.device_id)
            if not device:
                raise DeviceNotFoundError(
                    f"The device with the serial {self.device_id} can not be found"
                )
            if not device.is_available:
                raise DeviceNotFoundError(
                    f"Device {self.device_id} is {device.state.value}"
                )
            return device

        available = devices.available
        if not available:
            raise DeviceNotFoundError("No devices connected")

        if len(available) > 1:
            ids = [d.id for d in available]
            raise DeviceNotFoundError(
                f"Multiple devices connected: {', '.join(ids)}. "
                "Use --device to specify which one."
            )

        return available[0]

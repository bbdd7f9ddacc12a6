"""Typed exception hierarchy for patchpipe."""


class PatchPipeError(Exception):
    """Base exception for all patchpipe errors."""

    pass


class ToolNotFoundError(PatchPipeError):
    """Raised when a required external tool is not installed."""

    def __init__(self, tool: str, install_hint: str | None = None):
        self.tool = tool
        self.install_hint = install_hint
        message = f"Required tool not found: {tool}"
        if install_hint:
            message += f"\nInstall: {install_hint}"
        super().__init__(message)


class ProcessError(PatchPipeError):
    """Raised when a subprocess command fails."""

    def __init__(self, command: list[str], returncode: int, stderr: str):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        cmd_str = " ".join(command)
        super().__init__(f"Command failed (exit {returncode}): {cmd_str}\n{stderr}")


class ArtifactError(PatchPipeError):
    """Raised when an artifact or artifact set is malformed."""

    pass


class CacheError(PatchPipeError):
    """Raised when the cache directory cannot be prepared."""

    pass


class ArtifactWriteError(PatchPipeError):
    """Raised when writing a raw artifact fails."""

    pass


class APKAlignError(PatchPipeError):
    """Raised when APK alignment with zipalign fails."""

    pass


class APKSignError(PatchPipeError):
    """Raised when APK signing fails."""

    pass


class PublishError(PatchPipeError):
    """Raised when copying an artifact to the output directory fails."""

    pass


class ADBError(PatchPipeError):
    """Raised when an ADB command fails."""

    pass


class DeviceNotFoundError(ADBError):
    """Raised when the requested device is not connected."""

    pass


class RootAccessError(ADBError):
    """Raised when root access is required but unavailable on the device."""

    def __init__(self, serial: str):
        self.serial = serial
        super().__init__(f"Root required on {serial}. Task failed")


class PackageNotFoundError(ADBError):
    """Raised when a package is not installed on the device."""

    def __init__(self, package_name: str):
        self.package_name = package_name
        super().__init__(f"Package not installed on device: {package_name}")


class SessionStateError(ADBError):
    """Raised when a device session is used in the wrong state."""

    pass


class LogMonitorError(ADBError):
    """Raised when monitoring an app's process for log tailing fails."""

    pass

"""Device session: install, mount, uninstall and log tailing on one device."""

import logging
import shlex
import time
from pathlib import Path
from types import TracebackType

from patchpipe.core.adb import ADBWrapper
from patchpipe.exceptions import (
    ADBError,
    LogMonitorError,
    PackageNotFoundError,
    PatchPipeError,
    RootAccessError,
    SessionStateError,
)
from patchpipe.models.artifact import Artifact
from patchpipe.models.device import Device, DeviceAuthority, SessionState
from patchpipe.utils.process import ProcessResult, terminate


class DeviceSession:
    """A session bound to one device with a root or user install authority.

    Root sessions mount the patched base APK over the stock install; user
    sessions go through the package manager. The authority is checked once,
    when the session opens.
    """

    REMOTE_TMP_DIR = "/data/local/tmp"
    MOUNT_DIR = "/data/adb/patchpipe"
    APK_SELINUX_CONTEXT = "u:object_r:apk_data_file:s0"

    LOG_GRACE_SECONDS = 0.5
    POLL_INTERVAL_SECONDS = 1.0

    def __init__(
        self,
        serial: str,
        authority: DeviceAuthority,
        logger: logging.Logger,
        *,
        log: bool = False,
        echo_logs: bool = True,
        adb: ADBWrapper | None = None,
    ):
        """Initialize a session; nothing touches the device until ``open``.

        Args:
            serial: Serial of the target device.
            authority: Root (mount) or user (package manager) installs.
            logger: Logger for progress messages.
            log: Tail the app's logs from ``start`` until it exits.
            echo_logs: Show tailed logs on this terminal instead of discarding them.
            adb: Transport override.
        """
        self.serial = serial
        self.authority = authority
        self.logger = logger
        self.log_enabled = log
        self.echo_logs = echo_logs
        self.adb = adb or ADBWrapper(serial)
        self.state = SessionState.DISCONNECTED
        self.device: Device | None = None

    def open(self) -> "DeviceSession":
        """Resolve the device and, for root sessions, probe for su.

        Raises:
            DeviceNotFoundError: If the device is not connected.
            RootAccessError: If a root session cannot get a root shell.
            SessionStateError: If the session was already opened.
        """
        if self.state != SessionState.DISCONNECTED:
            raise SessionStateError(f"Session for {self.serial} is {self.state.value}")

        self.state = SessionState.OPENING
        try:
            self.device = self.adb.ensure_device()
            if self.authority == DeviceAuthority.ROOT:
                self._probe_root()
        except BaseException:
            self.state = SessionState.CLOSED
            raise

        self.state = SessionState.READY
        self.logger.debug(
            "Opened %s session on %s", self.authority.value, self.device.display_name
        )
        return self

    def close(self) -> None:
        """Release the session. Safe to call more than once."""
        if self.state == SessionState.CLOSED:
            return
        self.state = SessionState.CLOSED
        self.logger.debug("Closed session on %s", self.serial)

    def __enter__(self) -> "DeviceSession":
        if self.state == SessionState.DISCONNECTED:
            self.open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _require_ready(self) -> None:
        if self.state != SessionState.READY:
            raise SessionStateError(
                f"Session for {self.serial} is {self.state.value}, expected ready"
            )

    def _probe_root(self) -> None:
        if not self.adb.shell("id", root=True, check=False).success:
            raise RootAccessError(self.serial)

    def _shell(self, command: str, *, root: bool = False) -> ProcessResult:
        result = self.adb.shell(command, root=root)
        # Older package managers report failures with exit status 0
        if "Failure" in result.stdout:
            raise ADBError(f"{command} failed on {self.serial}: {result.output}")
        return result

    def install(self, artifact: Artifact, apk: Path) -> bool:
        """Install ``apk`` as the payload of ``artifact``.

        Args:
            artifact: The APK's originating artifact (package, kind).
            apk: Local file to install.

        Returns:
            True if the APK was installed or mounted, False if skipped.
        """
        self._require_ready()

        if self.authority == DeviceAuthority.ROOT:
            return self._mount(artifact, apk)
        return self._install(artifact, apk)

    def uninstall(self, package_name: str) -> None:
        """Remove ``package_name`` (root: remove the mounted APK)."""
        self._require_ready()

        if self.authority == DeviceAuthority.ROOT:
            self._unmount(package_name)
            return

        self.logger.info("Uninstalling %s", package_name)
        result = self.adb.run("uninstall", package_name, check=False)
        if not result.success or "Failure" in result.stdout:
            raise ADBError(
                f"Failed to uninstall {package_name}: "
                f"{result.output or result.stderr.strip()}"
            )

    def _install(self, artifact: Artifact, apk: Path) -> bool:
        self.logger.info("Installing %s", apk.name)
        remote = f"{self.REMOTE_TMP_DIR}/{apk.name}"
        self.adb.push(apk, remote)

        try:
            if artifact.is_base:
                self._shell(f"pm install -r -d {shlex.quote(remote)}")
            else:
                self._shell(
                    f"pm install -r -p {artifact.package_name} {shlex.quote(remote)}"
                )
        finally:
            self.adb.shell(f"rm -f {shlex.quote(remote)}", check=False)
        return True

    def _stock_apk_path(self, package_name: str) -> str:
        result = self.adb.shell(f"pm path {package_name}", check=False)
        for line in result.lines:
            if line.startswith("package:") and line.endswith("base.apk"):
                return line.split(":", 1)[1]
        raise PackageNotFoundError(package_name)

    def _mount(self, artifact: Artifact, apk: Path) -> bool:
        if not artifact.is_base:
            self.logger.warning("Skipping %s: only the base APK can be mounted", apk.name)
            return False

        package = artifact.package_name
        stock = self._stock_apk_path(package)
        target = f"{self.MOUNT_DIR}/{package}.apk"
        remote = f"{self.REMOTE_TMP_DIR}/{apk.name}"

        self.logger.info("Mounting %s over %s", apk.name, stock)
        self.adb.push(apk, remote)
        for command in (
            f"mkdir -p {self.MOUNT_DIR}",
            f"mv {shlex.quote(remote)} {target}",
            f"chmod 644 {target}",
            f"chcon {self.APK_SELINUX_CONTEXT} {target}",
        ):
            self.adb.shell(command, root=True)

        # A previous mount may still be active
        self.adb.shell(f"umount -l {stock}", root=True, check=False)
        self.adb.shell(f"mount -o bind {target} {stock}", root=True)
        return True

    def _unmount(self, package_name: str) -> None:
        self.logger.info("Unmounting %s", package_name)
        try:
            stock = self._stock_apk_path(package_name)
        except PackageNotFoundError:
            self.logger.warning("%s is not installed, removing mounted file only", package_name)
        else:
            self.adb.shell(f"umount -l {stock}", root=True, check=False)

        self.adb.shell(f"rm -f {self.MOUNT_DIR}/{package_name}.apk", root=True)
        self.adb.shell(f"am force-stop {package_name}")

    def launch(self, package_name: str) -> None:
        """Restart the app from its launcher activity."""
        self._require_ready()
        self.logger.info("Launching %s", package_name)
        self.adb.shell(f"am force-stop {package_name}")
        self.adb.shell(
            f"monkey -p {package_name} -c android.intent.category.LAUNCHER 1", check=False
        )

    def start(self, package_name: str) -> None:
        """Bring the app up once all of its APKs are installed.

        Root sessions always relaunch so the mounted APK gets loaded. User
        sessions launch only when tailing logs. With log tailing enabled
        this blocks until the app exits.
        """
        if self.authority == DeviceAuthority.ROOT or self.log_enabled:
            self.launch(package_name)
        if self.log_enabled:
            self.log(package_name)

    def is_running(self, package_name: str) -> bool:
        """Check whether the app's process is alive."""
        return self.adb.shell(f"pidof -s {package_name}", check=False).success

    def log(self, package_name: str) -> None:
        """Tail the app's logs until its process exits.

        Blocks with no timeout. The logcat process is terminated on every
        exit path.

        Raises:
            LogMonitorError: If checking the app's process fails.
        """
        self._require_ready()
        command = f"logcat -c && logcat | grep -F {shlex.quote(package_name)}"
        process = self.adb.spawn(command, inherit_output=self.echo_logs)

        try:
            time.sleep(self.LOG_GRACE_SECONDS)  # let the app start
            while self.is_running(package_name):
                time.sleep(self.POLL_INTERVAL_SECONDS)
        except (PatchPipeError, OSError) as e:
            raise LogMonitorError(
                f"An error occurred while monitoring the state of {package_name}: {e}"
            ) from e
        finally:
            terminate(process)

        self.logger.info("Stopped logging because the app was closed")

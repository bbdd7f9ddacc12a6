"""APK signing stage backed by apksigner and keytool."""

import logging
from pathlib import Path

from patchpipe.exceptions import APKSignError, PatchPipeError
from patchpipe.models.pipeline import SigningOptions
from patchpipe.utils.android_sdk import get_apksigner
from patchpipe.utils.deps import get_tool_path
from patchpipe.utils.process import run_tool


class APKSigner:
    """Signs aligned APKs with one keystore shared by the whole run."""

    KEY_ALGORITHM = "RSA"
    KEY_SIZE = "2048"
    VALIDITY_DAYS = "10000"

    def __init__(self, signed_dir: Path, signing: SigningOptions, logger: logging.Logger):
        """Initialize the signer.

        Args:
            signed_dir: Directory receiving signed APKs.
            signing: Resolved signing options; ``keystore`` must be set.
            logger: Logger for progress messages.
        """
        if signing.keystore is None:
            raise APKSignError("Signing options must be resolved before signing")
        self.signed_dir = signed_dir
        self.signing = signing
        self.keystore: Path = signing.keystore
        self.logger = logger

    def ensure_keystore(self) -> bool:
        """Create the keystore if it does not exist yet.

        Returns:
            True if a keystore was generated.

        Raises:
            APKSignError: If keystore generation fails.
        """
        if self.keystore.is_file():
            return False

        self.logger.info("Creating keystore %s", self.keystore)
        self.keystore.parent.mkdir(parents=True, exist_ok=True)

        try:
            keytool = get_tool_path("keytool")
            cmd = [
                keytool,
                "-genkeypair",
                "-keystore",
                str(self.keystore),
                "-alias",
                self.signing.cn,
                "-keyalg",
                self.KEY_ALGORITHM,
                "-keysize",
                self.KEY_SIZE,
                "-validity",
                self.VALIDITY_DAYS,
                "-storepass",
                self.signing.password,
                "-keypass",
                self.signing.password,
                "-dname",
                f"CN={self.signing.cn}",
            ]
            run_tool(cmd, check=True)
        except PatchPipeError as e:
            raise APKSignError(f"Failed to generate keystore: {e}") from e

        if not self.keystore.is_file():
            raise APKSignError(
                f"Keystore generation completed but file not found: {self.keystore}"
            )
        return True

    def sign(self, aligned_apk: Path) -> Path:
        """Sign ``aligned_apk`` into ``signed_dir`` under the same name.

        Raises:
            APKSignError: If signing fails.
        """
        self.logger.info("Signing %s", aligned_apk.name)
        self.ensure_keystore()
        output = self.signed_dir / aligned_apk.name

        try:
            apksigner = get_apksigner()
            cmd = [
                str(apksigner),
                "sign",
                "--ks",
                str(self.keystore),
                "--ks-key-alias",
                self.signing.cn,
                "--ks-pass",
                f"pass:{self.signing.password}",
                "--key-pass",
                f"pass:{self.signing.password}",
                "--out",
                str(output),
                str(aligned_apk),
            ]
            run_tool(cmd, check=True)
        except PatchPipeError as e:
            raise APKSignError(f"Failed to sign {aligned_apk.name}: {e}") from e

        if not output.is_file():
            raise APKSignError(f"Signing completed but APK not found: {output}")

        return output

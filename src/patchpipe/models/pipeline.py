"""Pydantic models for build options and pipeline results."""

from pathlib import Path

from pydantic import BaseModel, Field

DEFAULT_CN = "patchpipe"
DEFAULT_PASSWORD = "patchpipe"
DEFAULT_CACHE_DIR = Path("patchpipe-cache")


class SigningOptions(BaseModel):
    """Identity used to sign every APK of a run."""

    cn: str = DEFAULT_CN
    """Common name of the signing certificate; also used as key alias."""

    password: str = DEFAULT_PASSWORD
    """Keystore and key password."""

    keystore: Path | None = None
    """Explicit keystore path. None derives one from the base APK name."""

    def resolve(self, output_dir: Path, base_apk: Path) -> "SigningOptions":
        """Return a copy whose keystore is always set.

        The default keystore is ``<output_dir>/<base stem>.keystore`` so a
        later run for the same app reuses the same signer.
        """
        if self.keystore is not None:
            return self.model_copy(update={"keystore": self.keystore.resolve()})
        keystore = output_dir.resolve() / f"{base_apk.stem}.keystore"
        return self.model_copy(update={"keystore": keystore})


class BuildOptions(BaseModel):
    """Configuration threaded through every pipeline stage."""

    output_dir: Path
    """Directory receiving the finished APKs."""

    cache_dir: Path = DEFAULT_CACHE_DIR
    """Root of the raw/aligned/signed staging directories."""

    signing: SigningOptions = Field(default_factory=SigningOptions)

    mount: bool = False
    """Mount the aligned base APK with root instead of signing and installing."""

    low_storage: bool = False
    """Delete each staging directory as soon as every APK has left it."""

    clean: bool = False
    """Delete the cache (and deployed outputs) once the run ends."""

    deploy: str | None = None
    """Serial of the device to deploy to."""

    log: bool = False
    """Tail the app's logs after installing until the app exits."""


class ArtifactRecord(BaseModel):
    """Where one APK ended up in each stage."""

    name: str
    kind: str
    raw: Path | None = None
    aligned: Path | None = None
    signed: Path | None = None
    published: Path | None = None
    installed: bool = False


class PipelineResult(BaseModel):
    """Outcome of a full pipeline run."""

    package_name: str
    artifacts: list[ArtifactRecord]
    signed: bool
    keystore: Path | None = None
    deployed_to: str | None = None
    cleaned: bool = False

    @property
    def published(self) -> list[Path]:
        return [a.published for a in self.artifacts if a.published is not None]

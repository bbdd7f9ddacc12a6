"""Pydantic models for patched APK artifacts."""

from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, model_validator

from patchpipe.exceptions import ArtifactError


class ArtifactKind(StrEnum):
    """Variant of an APK within one app."""

    BASE = "base"
    LANGUAGE = "language"
    LIBRARY = "library"
    ASSET = "asset"


class DexFile(BaseModel):
    """A patched executable code blob destined for the base APK."""

    name: str
    """Archive entry name (e.g., classes.dex)."""

    data: bytes
    """Raw dex bytes."""


class Artifact(BaseModel):
    """One APK variant produced by the patcher."""

    model_config = ConfigDict(frozen=True)

    file: Path
    """Original APK file. The pipeline never modifies it in place."""

    package_name: str
    """Package name shared by every APK of the app."""

    kind: ArtifactKind = ArtifactKind.BASE
    """Base or split variant."""

    resources: Path | None = None
    """Directory of patched resources overlaid onto the archive root."""

    do_not_compress: list[str] = Field(default_factory=list)
    """Archive paths that must be stored uncompressed."""

    dex_files: list[DexFile] = Field(default_factory=list)
    """Patched dex blobs (base only)."""

    @model_validator(mode="after")
    def _dex_only_on_base(self) -> "Artifact":
        if self.dex_files and self.kind != ArtifactKind.BASE:
            raise ArtifactError(f"Split APK {self.file.name} cannot carry dex files")
        return self

    @property
    def name(self) -> str:
        """File name used for every staged copy of this artifact."""
        return self.file.name

    @property
    def is_base(self) -> bool:
        return self.kind == ArtifactKind.BASE


class ArtifactSet(BaseModel):
    """The base APK and its splits for one run."""

    base: Artifact
    splits: list[Artifact] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_members(self) -> "ArtifactSet":
        if not self.base.is_base:
            raise ArtifactError(f"{self.base.name} is not a base APK")

        names = {self.base.name}
        for split in self.splits:
            if split.is_base:
                raise ArtifactError(f"Only one base APK allowed, got {split.name}")
            if split.package_name != self.base.package_name:
                raise ArtifactError(
                    f"Split {split.name} belongs to {split.package_name}, "
                    f"expected {self.base.package_name}"
                )
            if split.name in names:
                raise ArtifactError(f"Duplicate APK file name: {split.name}")
            names.add(split.name)
        return self

    @property
    def package_name(self) -> str:
        return self.base.package_name

    def ordered(self) -> list[Artifact]:
        """Splits first, then the base."""
        return [*self.splits, self.base]

    def __len__(self) -> int:
        return len(self.splits) + 1

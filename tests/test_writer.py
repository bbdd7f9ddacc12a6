import zipfile

import pytest

from patchpipe.core.writer import ArtifactWriter
from patchpipe.exceptions import ArtifactWriteError
from patchpipe.models.artifact import Artifact, ArtifactKind, DexFile


def _entries(path):
    with zipfile.ZipFile(path) as zf:
        return {info.filename: (zf.read(info), info.compress_type) for info in zf.infolist()}


def test_unpatched_artifact_is_copied_byte_for_byte(tmp_path, logger, make_apk):
    apk = make_apk("app.apk")
    artifact = Artifact(file=apk, package_name="com.example.app")

    raw = ArtifactWriter(tmp_path / "raw", logger).write(artifact)

    assert raw == tmp_path / "raw" / "app.apk"
    assert raw.read_bytes() == apk.read_bytes()


def test_resources_are_overlaid_and_do_not_compress_is_stored(tmp_path, logger, make_apk):
    apk = make_apk("app_lang.apk")
    resources = tmp_path / "resources"
    (resources / "res" / "values").mkdir(parents=True)
    (resources / "res" / "values" / "strings.xml").write_bytes(b"<resources>patched</resources>")
    (resources / "resources.arsc").write_bytes(b"arsc")

    artifact = Artifact(
        file=apk,
        package_name="com.example.app",
        kind=ArtifactKind.LANGUAGE,
        resources=resources,
        do_not_compress=["resources.arsc", "AndroidManifest.xml"],
    )

    raw = ArtifactWriter(tmp_path / "raw", logger).write(artifact)
    entries = _entries(raw)

    assert entries["res/values/strings.xml"][0] == b"<resources>patched</resources>"
    assert entries["resources.arsc"] == (b"arsc", zipfile.ZIP_STORED)
    assert entries["AndroidManifest.xml"] == (b"<manifest/>", zipfile.ZIP_STORED)
    assert entries["classes.dex"][1] == zipfile.ZIP_DEFLATED
    # original input untouched
    assert _entries(apk)["res/values/strings.xml"][0] == b"<resources/>"


def test_base_dex_files_replace_archive_entries(tmp_path, logger, make_apk):
    apk = make_apk("app.apk")
    artifact = Artifact(
        file=apk,
        package_name="com.example.app",
        dex_files=[
            DexFile(name="classes.dex", data=b"patched"),
            DexFile(name="classes2.dex", data=b"integrations"),
        ],
    )

    raw = ArtifactWriter(tmp_path / "raw", logger).write(artifact)
    entries = _entries(raw)

    assert entries["classes.dex"][0] == b"patched"
    assert entries["classes2.dex"][0] == b"integrations"
    assert list(entries).count("classes.dex") == 1


def test_do_not_compress_needs_resources(tmp_path, logger, make_apk):
    apk = make_apk("app.apk")
    artifact = Artifact(file=apk, package_name="com.example.app", do_not_compress=["classes.dex"])

    raw = ArtifactWriter(tmp_path / "raw", logger).write(artifact)

    assert _entries(raw)["classes.dex"][1] == zipfile.ZIP_DEFLATED


def test_corrupt_archive_aborts(tmp_path, logger):
    bogus = tmp_path / "app.apk"
    bogus.write_bytes(b"not a zip")
    artifact = Artifact(
        file=bogus,
        package_name="com.example.app",
        dex_files=[DexFile(name="classes.dex", data=b"dex")],
    )

    with pytest.raises(ArtifactWriteError, match="app.apk"):
        ArtifactWriter(tmp_path / "raw", logger).write(artifact)

    assert not (tmp_path / "raw" / "app.apk.tmp").exists()


def test_missing_resource_directory_aborts(tmp_path, logger, make_apk):
    artifact = Artifact(
        file=make_apk("app.apk"),
        package_name="com.example.app",
        resources=tmp_path / "nowhere",
    )

    with pytest.raises(ArtifactWriteError, match="Resource directory not found"):
        ArtifactWriter(tmp_path / "raw", logger).write(artifact)

"""CLI commands for building, deploying and uninstalling patched APKs."""

import json
from contextlib import nullcontext
from pathlib import Path

import typer
from rich.table import Table

from patchpipe.core.patch import PatchedTreeLoader
from patchpipe.core.pipeline import Pipeline
from patchpipe.core.session import DeviceSession
from patchpipe.exceptions import PatchPipeError
from patchpipe.models.artifact import ArtifactKind
from patchpipe.models.device import DeviceAuthority
from patchpipe.models.pipeline import (
    DEFAULT_CACHE_DIR,
    DEFAULT_CN,
    DEFAULT_PASSWORD,
    BuildOptions,
    PipelineResult,
    SigningOptions,
)
from patchpipe.utils import config
from patchpipe.utils.deps import require
from patchpipe.utils.output import configure_logging, console


def _authority(mount: bool) -> DeviceAuthority:
    return DeviceAuthority.ROOT if mount else DeviceAuthority.USER


def _signing_options(cn: str | None, password: str | None, keystore: Path | None) -> SigningOptions:
    """CLI flags win over ~/.patchpipe/config.json, which wins over defaults."""
    if keystore is None and (configured := config.get_config_str(config.KEYSTORE_KEY)):
        keystore = Path(configured).expanduser()
    return SigningOptions(
        cn=cn or config.get_config_str(config.CN_KEY, DEFAULT_CN),
        password=password or config.get_config_str(config.PASSWORD_KEY, DEFAULT_PASSWORD),
        keystore=keystore,
    )


def _cache_dir(cache_dir: Path | None) -> Path:
    if cache_dir is not None:
        return cache_dir
    configured = config.get_config_str(config.CACHE_DIR_KEY)
    return Path(configured).expanduser() if configured else DEFAULT_CACHE_DIR


def _print_result(result: PipelineResult) -> None:
    table = Table(title=f"{result.package_name}")
    table.add_column("APK", style="cyan")
    table.add_column("Kind")
    table.add_column("Output", style="green")
    if result.deployed_to:
        table.add_column("Installed")

    for record in result.artifacts:
        row = [record.name, record.kind, str(record.published or "-")]
        if result.deployed_to:
            row.append("[green]yes[/green]" if record.installed else "[yellow]no[/yellow]")
        table.add_row(*row)

    console.print(table)

    details = ["aligned", "signed" if result.signed else "mounted (unsigned)"]
    if result.cleaned:
        details.append("cache cleaned")
    console.print_info(f"  Steps: {', '.join(details)}")
    if result.keystore:
        console.print_info(f"  Keystore: {result.keystore}")


def build(
    apk: Path = typer.Option(
        ...,
        "--apk",
        "-a",
        help="The base APK file that is to be patched.",
        exists=True,
        dir_okay=False,
    ),
    language_apk: Path = typer.Option(
        None,
        "--language-apk",
        help="Split APK containing language files.",
        exists=True,
        dir_okay=False,
    ),
    library_apk: Path = typer.Option(
        None,
        "--library-apk",
        help="Split APK containing native libraries.",
        exists=True,
        dir_okay=False,
    ),
    asset_apk: Path = typer.Option(
        None,
        "--asset-apk",
        help="Split APK containing assets.",
        exists=True,
        dir_okay=False,
    ),
    patched: Path = typer.Option(
        None,
        "--patched",
        help="Patcher output tree (<apk stem>/resources, dex, do_not_compress.txt).",
        exists=True,
        file_okay=False,
    ),
    output: Path = typer.Option(
        ...,
        "--out",
        "-o",
        help="Output folder path.",
        file_okay=False,
    ),
    deploy: str = typer.Option(
        None,
        "--deploy-on",
        "-d",
        help="Deploy to the ADB device with this serial.",
    ),
    mount: bool = typer.Option(
        False,
        "--mount",
        help="Mount the base APK with root instead of signing and installing.",
    ),
    cn: str = typer.Option(
        None,
        "--cn",
        help=f"Common name of the signing certificate (default: {DEFAULT_CN}).",
    ),
    password: str = typer.Option(
        None,
        "--password",
        "-p",
        help="Keystore password.",
    ),
    keystore: Path = typer.Option(
        None,
        "--keystore",
        help="Keystore file (default: <out>/<base apk name>.keystore).",
        dir_okay=False,
    ),
    cache_dir: Path = typer.Option(
        None,
        "--temp-dir",
        "-t",
        help=f"Temporary cache directory (default: {DEFAULT_CACHE_DIR}).",
        file_okay=False,
    ),
    clean: bool = typer.Option(
        False,
        "--clean",
        "-c",
        help="Delete the cache directory after the run.",
    ),
    low_storage: bool = typer.Option(
        False,
        "--low-storage",
        help="Minimize storage usage by caching as little as possible.",
    ),
    log: bool = typer.Option(
        False,
        "--log",
        help="After deploying, show the app's logs until it exits.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        help="Show debug logging.",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON.",
    ),
) -> None:
    """Write, align, sign and publish patched APKs, optionally deploying them.

    Workflow: write -> zipalign -> apksigner -> copy to output -> install

    Examples:

        # Sign the patched base APK into ./out
        patchpipe build -a app.apk --patched ./patched -o ./out

        # Base plus language split, installed on a device
        patchpipe build -a app.apk --language-apk app_lang.apk -o ./out -d emulator-5554

        # Mount on a rooted device instead of installing
        patchpipe build -a app.apk -o ./out -d emulator-5554 --mount --clean
    """
    if log and not deploy:
        console.print_error("--log requires --deploy-on")
        raise typer.Exit(1)

    console.set_json_mode(json_output)
    logger = configure_logging(verbose=verbose, quiet=json_output)

    try:
        if deploy:
            require("adb")

        options = BuildOptions(
            output_dir=output,
            cache_dir=_cache_dir(cache_dir),
            signing=_signing_options(cn, password, keystore),
            mount=mount,
            low_storage=low_storage,
            clean=clean,
            deploy=deploy,
            log=log,
        )

        # Open the device session before any staging work
        session = None
        if deploy:
            session = DeviceSession(
                deploy,
                _authority(mount),
                logger,
                log=log,
                echo_logs=not json_output,
            ).open()

        try:
            splits = {
                kind: path
                for kind, path in (
                    (ArtifactKind.LANGUAGE, language_apk),
                    (ArtifactKind.LIBRARY, library_apk),
                    (ArtifactKind.ASSET, asset_apk),
                )
                if path is not None
            }
            artifacts = PatchedTreeLoader(patched, logger).load(apk, splits)

            show_status = not json_output and not log
            with console.status("Building APKs...") if show_status else nullcontext():
                result = Pipeline(options, logger).run(artifacts, session)
        finally:
            if session is not None:
                session.close()

        if json_output:
            typer.echo(result.model_dump_json(indent=2))
            return

        console.print_success(f"Built {len(result.artifacts)} APK(s) for {result.package_name}")
        _print_result(result)

    except PatchPipeError as e:
        console.print_error(str(e))
        raise typer.Exit(1) from None


def uninstall(
    package_name: str = typer.Argument(
        ...,
        help="Package name of the app to uninstall.",
    ),
    device: str = typer.Option(
        None,
        "--deploy-on",
        "-d",
        help="Serial of the ADB device to uninstall from.",
    ),
    mount: bool = typer.Option(
        True,
        "--mount/--no-mount",
        help="Remove a mounted APK (root) instead of uninstalling the package.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        help="Show debug logging.",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON.",
    ),
) -> None:
    """Uninstall a deployed app from a device."""
    console.set_json_mode(json_output)

    if device is None:
        console.print_error("You must specify a device to uninstall from")
        if json_output:
            typer.echo(json.dumps({"package_name": package_name, "uninstalled": False}))
        return

    logger = configure_logging(verbose=verbose, quiet=json_output)

    try:
        require("adb")
        with DeviceSession(device, _authority(mount), logger) as session:
            session.uninstall(package_name)

        if json_output:
            typer.echo(json.dumps({"package_name": package_name, "uninstalled": True}))
            return

        console.print_success(f"Uninstalled {package_name} from {device}")

    except PatchPipeError as e:
        console.print_error(str(e))
        raise typer.Exit(1) from None

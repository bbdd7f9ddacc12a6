"""Root CLI application for patchpipe."""

import typer

from patchpipe import __version__
from patchpipe.cli import build, device

app = typer.Typer(
    name="patchpipe",
    help="Turn patched APKs into aligned, signed APKs and deploy them to a device.",
    no_args_is_help=True,
)

app.command("build")(build.build)
app.command("uninstall")(build.uninstall)
app.add_typer(device.app, name="device", help="Find connected Android devices")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"patchpipe {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """patchpipe - build and deploy patched Android apps."""
    pass


if __name__ == "__main__":
    app()

"""CLI commands for finding deploy targets."""

import json

import typer
from rich.table import Table

from patchpipe.core.adb import ADBWrapper
from patchpipe.exceptions import PatchPipeError
from patchpipe.utils.deps import require
from patchpipe.utils.output import console

app = typer.Typer(no_args_is_help=True)


@app.command("list")
def list_devices(
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON.",
    ),
) -> None:
    """List connected devices usable with --deploy-on."""
    console.set_json_mode(json_output)

    try:
        require("adb")
        devices = ADBWrapper().list_devices()

        if json_output:
            output = [
                {**d.model_dump(exclude_none=True), "available": d.is_available}
                for d in devices
            ]
            typer.echo(json.dumps(output, indent=2))
            return

        if not devices.devices:
            console.print_warning("No devices connected")
            raise typer.Exit(1)

        table = Table(title="Connected Devices")
        table.add_column("Serial", style="cyan")
        table.add_column("State")
        table.add_column("Model")

        for device in devices:
            state_style = "green" if device.is_available else "red"
            table.add_row(
                device.id,
                f"[{state_style}]{device.state.value}[/{state_style}]",
                device.model or "-",
            )

        console.print(table)
        console.print_info(f"{len(devices.available)} device(s) available")

    except PatchPipeError as e:
        console.print_error(str(e))
        raise typer.Exit(1) from None

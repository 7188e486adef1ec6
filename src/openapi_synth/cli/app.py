import logging
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from openapi_synth.cli.db import db_app
from openapi_synth.cli.generate import generate
from openapi_synth.cli.scan import scan
from openapi_synth.cli.sync import sync

app = typer.Typer(
    name="openapi-synth",
    help="openapi-synth CLI: document Laravel routes as OpenAPI.",
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)


@app.callback()
def configure(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log analysis details.")] = False,
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


app.add_typer(db_app, name="db")
app.command("scan")(scan)
app.command("generate")(generate)
app.command("sync")(sync)


def main() -> None:
    app()

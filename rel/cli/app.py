from __future__ import annotations

import typer

from rel import __version__
from rel.cli.commands.check_name import check_name
from rel.cli.commands.publish_cmd import publish


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
    help="Build and publish crate releases from CI tag pushes.",
)

app.command()(publish)
app.command("check-name")(check_name)


def _show_version(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit(code=0)


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(
        False,
        "--version",
        help="Show version and exit.",
        callback=_show_version,
        is_eager=True,
    ),
) -> None:
    pass


def main() -> None:
    app()

"""
transbuild CLI package.

- project.py: build, clean, rebuild and status commands
- utils.py: version and logging helpers
"""

import sys

import typer

from transbuild.cli.project import build_command, clean_command, rebuild_command, status_command
from transbuild.cli.utils import configure_logging, version_callback

app = typer.Typer(
    help="""transbuild - incremental builds for source-to-source compilers

Commands operate on the project whose transbuild.toml is given with
--manifest (default: ./transbuild.toml).
""",
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    version: bool | None = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and environment information",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log build progress to stderr"),
) -> None:
    """transbuild CLI main callback for global options."""
    configure_logging(verbose)


app.command(name="build")(build_command)
app.command(name="clean")(clean_command)
app.command(name="rebuild")(rebuild_command)
app.command(name="status")(status_command)


def main(argv: list[str] | None = None) -> None:
    app(args=argv if argv is not None else sys.argv[1:], standalone_mode=True)


__all__ = ["app", "main"]

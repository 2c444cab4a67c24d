"""CLI entrypoint for deno-scripts."""

from __future__ import annotations

from pathlib import Path

import rich_click as click

from deno_scripts import __version__
from deno_scripts.controllers import InitCommand, RunScriptCommand, ScriptsCliController
from deno_scripts.errors import ScriptsError

click.rich_click.USE_MARKDOWN = True
SCRIPTS_CONTROLLER = ScriptsCliController()


@click.command(
    context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False},
)
@click.version_option(version=__version__, prog_name="deno-scripts")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Declaration file. Defaults to DENO_SCRIPTS_CONFIG or scripts.toml.",
)
@click.option(
    "--init",
    "init",
    is_flag=True,
    default=False,
    help="Create a starter declaration file and exit.",
)
@click.argument("script", required=False, default="")
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def deno_scripts(
    ctx: click.Context,
    config_path: Path | None,
    init: bool,
    script: str,
    args: tuple[str, ...],
) -> None:
    """Run SCRIPT from the declaration file, passing ARGS through verbatim."""

    if init:
        _emit_lines(SCRIPTS_CONTROLLER.init(InitCommand(config_path=config_path)))
        return

    try:
        exit_code = SCRIPTS_CONTROLLER.run_script(
            RunScriptCommand(config_path=config_path, script_name=script, rest_args=args),
        )
    except ScriptsError as error:
        click.echo(str(error), err=True)
        ctx.exit(error.exit_code)
    ctx.exit(exit_code)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    deno_scripts()

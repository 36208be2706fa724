"""Root CLI group for coachctl with global flags and command registration."""

from __future__ import annotations

import click

from coachctl import __version__
from coachctl.commands import register_commands
from coachctl.commands._base import CoachGroup
from coachctl.commands._context import AppContext
from coachctl.config.settings import CoachSettings


@click.group(
    cls=CoachGroup,
    invoke_without_command=True,
    examples="""\
  coachctl ask "I want to run a marathon by June"
  coachctl chat --contact c1
  coachctl --json audit --limit 5""",
)
@click.version_option(version=__version__, prog_name="coachctl")
@click.option("--json", "json_output", is_flag=True, help="Structured JSON output.")
@click.option("-q", "--quiet", is_flag=True, help="Minimal output.")
@click.option("-v", "--verbose", is_flag=True, help="Detailed output with debug info.")
@click.option("--log-json", is_flag=True, help="Structured JSON log output to stderr.")
@click.option("-c", "--config", "config_path", default=None, help="Override config file path.")
@click.pass_context
def cli(
    ctx: click.Context,
    json_output: bool,
    quiet: bool,
    verbose: bool,
    log_json: bool,
    config_path: str | None,
) -> None:
    """coachctl: doctrine-grounded coaching agent."""
    ctx.ensure_object(dict)
    settings = CoachSettings.from_cli(
        config_path=config_path,
        json_output=json_output,
        quiet=quiet,
        verbose=verbose,
        log_json=log_json,
    )
    ctx.obj = AppContext(settings)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


register_commands(cli)

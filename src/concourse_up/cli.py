"""Command-line entry point for concourse-up."""

import sys

import click
from rich.console import Console

from concourse_up import __version__
from concourse_up.commands.deploy import deploy
from concourse_up.commands.info import info
from concourse_up.config import load_config
from concourse_up.core.context import ConcourseUpContext
from concourse_up.core.exceptions import ConcourseUpError, ConfigError
from concourse_up.core.output import OutputFormat

CONTEXT_SETTINGS = {
    "help_option_names": ["-h", "--help"],
    "max_content_width": 120,
}


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(
    __version__, "--version", prog_name="concourse-up", message="%(prog)s version %(version)s"
)
@click.option("-p", "--profile", metavar="NAME", envvar="CONCOURSE_UP_PROFILE",
              help="Configuration profile to use")
@click.option(
    "-o",
    "--output",
    "output_format",
    type=click.Choice([f.value for f in OutputFormat], case_sensitive=False),
    help="Output format for the info command",
)
@click.option("-v", "--verbose", count=True, help="Increase log verbosity (-v info, -vv debug)")
@click.option("-q", "--quiet", is_flag=True, help="Only print errors and command results")
@click.option("--no-color", is_flag=True, help="Disable colored output")
@click.option(
    "-c",
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False),
    metavar="FILE",
    envvar="CONCOURSE_UP_CONFIG",
    help="Path to a concourse-up config file",
)
@click.pass_context
def cli(
    ctx: click.Context,
    profile: str | None,
    output_format: str | None,
    verbose: int,
    quiet: bool,
    no_color: bool,
    config_file: str | None,
) -> None:
    """concourse-up - deploy and upgrade Concourse CI on AWS.

    Provisions the infrastructure with terraform, deploys a BOSH director
    and Concourse, and keeps enough state to make repeated deploys safe.

    \b
    Examples:
        concourse-up deploy ci
        concourse-up deploy ci --domain ci.example.com --workers 2
        concourse-up info ci

    \b
    Configuration:
        ~/.concourse-up/config.yaml    User configuration
        ./concourse-up.yaml            Project configuration
        CONCOURSE_UP_*                 Environment variables
    """
    try:
        config = load_config(config_file)
        config.get_profile(profile)
    except ConfigError as e:
        Console(stderr=True).print(f"[red]Configuration error:[/red] {e}")
        sys.exit(1)

    ctx.obj = ConcourseUpContext(
        config=config,
        profile=profile,
        output_format=OutputFormat(output_format.lower()) if output_format else None,
        verbose=verbose,
        quiet=quiet,
        color=not no_color,
    )


cli.add_command(deploy)
cli.add_command(info)


def main() -> None:
    """Console script entry point."""
    try:
        cli()
    except ConcourseUpError as e:
        Console(stderr=True).print(f"[red]Error:[/red] {e}", highlight=False)
        sys.exit(1)
    except KeyboardInterrupt:
        Console(stderr=True).print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)


if __name__ == "__main__":
    main()

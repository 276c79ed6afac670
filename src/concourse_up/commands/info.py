"""Info command."""

import click

from concourse_up.core.context import pass_context, ConcourseUpContext
from concourse_up.core.exceptions import ConfigError
from concourse_up.deploy.messages import env_exports
from concourse_up.deploy.models import CONFIG_FILENAME


@click.command()
@click.argument("name")
@click.option("--region", envvar="AWS_REGION", default="eu-west-1", show_default=True, help="AWS region")
@click.option("--env", "as_env", is_flag=True, help="Print shell exports for BOSH and credhub")
@click.option("--show-secrets", is_flag=True, help="Include passwords and private keys")
@pass_context
def info(ctx: ConcourseUpContext, name: str, region: str, as_env: bool, show_secrets: bool) -> None:
    """Show information about a deployment.

    \b
    Examples:
        concourse-up info ci
        concourse-up -o json info ci --show-secrets
        eval "$(concourse-up info --env ci)"
    """
    store = ctx.store(name, region)
    if not store.has_asset(CONFIG_FILENAME):
        raise ConfigError(f"No deployment named {name} found in {region}")

    config = store.load()

    if as_env:
        ctx.output.write(env_exports(config))
        return

    ctx.output.print_data(config.to_dict(redact=not show_secrets), title=f"Deployment: {name}")

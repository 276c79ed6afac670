"""Deploy command."""

import click
from pydantic import ValidationError as PydanticValidationError

from concourse_up.core.context import pass_context, ConcourseUpContext
from concourse_up.deploy.models import DB_SIZES, WEB_SIZES, WORKER_SIZES, DeployArgs


@click.command()
@click.argument("name")
@click.option("--region", envvar="AWS_REGION", default="eu-west-1", show_default=True, help="AWS region")
@click.option("--domain", envvar="DOMAIN", default="", help="Domain to use as endpoint for Concourse web interface")
@click.option("--tls-cert", envvar="TLS_CERT", default="", help="TLS cert to use with Concourse endpoint")
@click.option("--tls-key", envvar="TLS_KEY", default="", help="TLS private key to use with Concourse endpoint")
@click.option("--workers", envvar="WORKERS", type=int, default=1, show_default=True, help="Number of Concourse worker instances")
@click.option(
    "--worker-size",
    envvar="WORKER_SIZE",
    type=click.Choice(list(WORKER_SIZES)),
    default="xlarge",
    show_default=True,
    help="Size of Concourse workers",
)
@click.option(
    "--web-size",
    envvar="WEB_SIZE",
    type=click.Choice(list(WEB_SIZES)),
    default="small",
    show_default=True,
    help="Size of Concourse web node",
)
@click.option(
    "--db-size",
    envvar="DB_SIZE",
    type=click.Choice(list(DB_SIZES)),
    default=None,
    help="Size of Concourse RDS instance [default: small]",
)
@click.option("--self-update", envvar="SELF_UPDATE", is_flag=True, help="Upgrade a running deployment in place (used by the self-update pipeline)")
@pass_context
def deploy(
    ctx: ConcourseUpContext,
    name: str,
    region: str,
    domain: str,
    tls_cert: str,
    tls_key: str,
    workers: int,
    worker_size: str,
    web_size: str,
    db_size: str | None,
    self_update: bool,
) -> None:
    """Deploy or upgrade a Concourse.

    \b
    Examples:
        concourse-up deploy ci
        concourse-up deploy ci --domain ci.example.com --workers 3
        concourse-up deploy ci --domain ci.example.com --tls-cert "$(cat cert.pem)" --tls-key "$(cat key.pem)"
    """
    try:
        args = DeployArgs(
            deployment=name,
            aws_region=region,
            domain=domain,
            tls_cert=tls_cert,
            tls_key=tls_key,
            worker_count=workers,
            worker_size=worker_size,
            web_size=web_size,
            db_size=db_size or "small",
            db_size_is_set=db_size is not None,
            self_update=self_update,
        )
    except PydanticValidationError as e:
        messages = "; ".join(err["msg"] for err in e.errors())
        raise click.UsageError(messages)

    ctx.logger.debug("Starting deploy", project=name, region=region, self_update=self_update)
    ctx.build_orchestrator(args).deploy()

"""Click context object for sharing state across commands."""

from __future__ import annotations

import functools
from typing import TYPE_CHECKING, Any

import click

from concourse_up.config import ConcourseUpConfig, ProfileConfig, get_default_config
from concourse_up.core.output import OutputFormat, OutputFormatter
from concourse_up.core.logging import LogLevel, setup_logging, StructuredLogger

if TYPE_CHECKING:
    from concourse_up.clients.aws import AWSClientFactory
    from concourse_up.deploy.models import Configuration, DeployArgs, FlyCredentials, Metadata
    from concourse_up.deploy.orchestrator import DeployOrchestrator
    from concourse_up.storage import ConfigStore


def log_level_for(verbose: int, quiet: bool, default: LogLevel) -> LogLevel:
    """Map -v/-q flags onto a log level, falling back to the configured one."""
    if verbose >= 2:
        return LogLevel.DEBUG
    if verbose == 1:
        return LogLevel.INFO
    if quiet:
        return LogLevel.ERROR
    return default


class ConcourseUpContext:
    """State shared by concourse-up commands through click's context.

    Holds the selected profile and the output formatter, and builds the
    per-deployment store and deploy orchestrator on demand.
    """

    def __init__(
        self,
        config: ConcourseUpConfig | None = None,
        profile: str | None = None,
        output_format: OutputFormat | None = None,
        verbose: int = 0,
        quiet: bool = False,
        color: bool = True,
    ):
        self._config = config or get_default_config()
        self._profile_name = profile or "default"
        settings = self._config.global_settings

        setup_logging(log_level_for(verbose, quiet, settings.verbosity), rich_output=color)
        self.logger = StructuredLogger("context")

        self.output = OutputFormatter(
            format=output_format or settings.output_format,
            color=color,
            quiet=quiet,
        )
        self._aws_factories: dict[str, AWSClientFactory] = {}

    @property
    def profile(self) -> ProfileConfig:
        """The selected profile's settings."""
        return self._config.get_profile(self._profile_name)

    def aws(self, region: str) -> "AWSClientFactory":
        """Get or create the AWS client factory for a region."""
        if region not in self._aws_factories:
            from concourse_up.clients.aws import AWSClientFactory

            self._aws_factories[region] = AWSClientFactory(self.profile.aws, region=region)
        return self._aws_factories[region]

    def store(self, project: str, region: str) -> "ConfigStore":
        """Get the configuration store for a deployment."""
        from concourse_up.storage import LocalConfigStore, S3ConfigStore

        settings = self.profile.store
        if settings.backend == "local":
            return LocalConfigStore(settings.get_local_dir(), project)
        return S3ConfigStore(self.aws(region).s3, project, region)

    def build_orchestrator(self, args: "DeployArgs") -> "DeployOrchestrator":
        """Wire a deploy orchestrator to the real AWS, terraform, BOSH and fly clients."""
        from concourse_up.clients.aws import AWSClient
        from concourse_up.clients.bosh import BoshClient
        from concourse_up.clients.fly import FlyClient
        from concourse_up.clients.terraform import TerraformClient
        from concourse_up.core.net import find_user_ip
        from concourse_up.deploy.orchestrator import DeployOrchestrator

        profile = self.profile
        factory = self.aws(args.aws_region)
        store = self.store(args.deployment, args.aws_region)

        def terraform_client(iaas: str, config: "Configuration", output: OutputFormatter) -> Any:
            return TerraformClient(
                iaas, config, output, profile.terraform, store, env=factory.credentials_env()
            )

        def bosh_client(config: "Configuration", metadata: "Metadata", output: OutputFormatter) -> Any:
            return BoshClient(config, metadata, output, profile.bosh, env=factory.credentials_env())

        def fly_client(credentials: "FlyCredentials", output: OutputFormatter) -> Any:
            return FlyClient(credentials, output, profile.fly, pipeline_env=factory.credentials_env())

        return DeployOrchestrator(
            args,
            store=store,
            iaas=AWSClient(factory),
            terraform_client_factory=terraform_client,
            bosh_client_factory=bosh_client,
            fly_client_factory=fly_client,
            output=self.output,
            ip_resolver=functools.partial(find_user_ip, profile.ip_lookup_url),
        )


# Click decorator for passing context
pass_context = click.make_pass_decorator(ConcourseUpContext, ensure=True)

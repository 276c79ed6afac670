"""Deploy orchestration: terraform, certificates, BOSH and the default pipeline."""

import time
from enum import Enum
from typing import Any, Callable

from concourse_up.certs import generate_certs
from concourse_up.core.exceptions import ConfigConflictError
from concourse_up.core.logging import StructuredLogger
from concourse_up.core.net import find_user_ip
from concourse_up.core.output import OutputFormatter, format_duration
from concourse_up.deploy.certs import CertGenerator, CertificateManager
from concourse_up.deploy.director import BoshClientFactory, DirectorDeployer
from concourse_up.deploy.messages import CONFIG_LOADED, UPGRADE_RUNNING, deploy_success_message
from concourse_up.deploy.models import Configuration, DeployArgs, FlyCredentials, Metadata
from concourse_up.deploy.provision import TerraformClientFactory, apply_terraform
from concourse_up.deploy.requirements import ConfigRequirementResolver, domain_changed
from concourse_up.storage import ConfigStore

logger = StructuredLogger(__name__)

FlyClientFactory = Callable[[FlyCredentials, OutputFormatter], Any]


class DeployMode(str, Enum):
    """Whether this is a fresh deploy or an in-place upgrade of a running one."""

    FRESH = "fresh"
    SELF_UPDATE = "self-update"

    @classmethod
    def from_args(cls, args: DeployArgs) -> "DeployMode":
        return cls.SELF_UPDATE if args.self_update else cls.FRESH


class DeployOrchestrator:
    """Runs one deploy of a Concourse deployment.

    Collaborators are injected so each external system can be replaced:

    - store: configuration and director asset storage
    - iaas: IaaS handle with `iaas` and `find_longest_matching_hosted_zone`
    - terraform_client_factory(iaas, config, output) -> terraform client
    - bosh_client_factory(config, metadata, output) -> BOSH client
    - fly_client_factory(credentials, output) -> Concourse client

    Every client is used as a context manager so its cleanup runs on all
    exit paths.
    """

    def __init__(
        self,
        args: DeployArgs,
        store: ConfigStore,
        iaas: Any,
        terraform_client_factory: TerraformClientFactory,
        bosh_client_factory: BoshClientFactory,
        fly_client_factory: FlyClientFactory,
        output: OutputFormatter,
        cert_generator: CertGenerator = generate_certs,
        ip_resolver: Callable[[], str] = find_user_ip,
    ):
        self._args = args
        self._store = store
        self._iaas = iaas
        self._terraform_client_factory = terraform_client_factory
        self._fly_client_factory = fly_client_factory
        self._output = output
        self._mode = DeployMode.from_args(args)
        self._logger = logger.bind(project=args.deployment, mode=self._mode.value)

        self._resolver = ConfigRequirementResolver(
            args,
            store,
            iaas,
            ip_resolver,
            CertificateManager(cert_generator, output),
            output,
        )
        self._director = DirectorDeployer(store, bosh_client_factory, output)
        self._sequences: dict[DeployMode, Callable[[Configuration, Metadata, Any], None]] = {
            DeployMode.FRESH: self._deploy_bosh_and_pipeline,
            DeployMode.SELF_UPDATE: self._update_bosh_and_pipeline,
        }

    @property
    def mode(self) -> DeployMode:
        return self._mode

    def deploy(self) -> Configuration:
        """Deploy or upgrade Concourse.

        Returns:
            The persisted configuration
        """
        started = time.monotonic()

        config = self._load_config()
        previous_domain = config.domain

        config = self._resolver.pre_infrastructure(config)
        metadata = apply_terraform(
            self._terraform_client_factory, self._iaas.iaas, config, self._output
        )

        domain_updated = domain_changed(previous_domain, self._args, metadata)
        config = self._resolver.post_infrastructure(domain_updated, config, metadata)

        credentials = FlyCredentials(
            target=config.deployment,
            api=f"https://{config.domain}",
            username=config.concourse_username,
            password=config.concourse_password,
            ca_cert="" if config.concourse_user_provided_cert else config.concourse_ca_cert,
        )
        with self._fly_client_factory(credentials, self._output) as fly:
            self._sequences[self._mode](config, metadata, fly)

        self._store.update(config)
        self._logger.info(
            "Deploy finished", duration=format_duration(time.monotonic() - started)
        )
        return config

    def _load_config(self) -> Configuration:
        config, created = self._store.load_or_create(self._args)
        if not created:
            self._output.write(CONFIG_LOADED)
        return config

    def _deploy_bosh_and_pipeline(self, config: Configuration, metadata: Metadata, fly: Any) -> None:
        # Nothing is running yet, so the pipeline can only be set once
        # Concourse has been deployed.
        self._director.deploy(config, metadata, detach=False)
        fly.set_default_pipeline(self._args, config, False)
        self._output.write(deploy_success_message(config))

    def _update_bosh_and_pipeline(self, config: Configuration, metadata: Metadata, fly: Any) -> None:
        # Concourse keeps serving while it is upgraded in place. The BOSH
        # deploy goes last and detached so the calling job can exit.
        if not fly.can_connect():
            raise ConfigConflictError(
                "In detach mode but it seems that concourse is not currently running",
                details={"url": f"https://{config.domain}"},
            )

        # The running Concourse may be older than our fly
        fly.set_default_pipeline(self._args, config, True)
        self._director.deploy(config, metadata, detach=True)
        self._output.write(UPGRADE_RUNNING)

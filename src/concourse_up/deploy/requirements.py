"""Configuration checks and updates around terraform."""

from typing import Any, Callable

from concourse_up.core.exceptions import ConfigConflictError
from concourse_up.core.logging import StructuredLogger
from concourse_up.core.output import OutputFormatter
from concourse_up.deploy.certs import CertificateManager
from concourse_up.deploy.models import DB_SIZES, Configuration, DeployArgs, Metadata
from concourse_up.storage import ConfigStore

logger = StructuredLogger(__name__)


def record_prefix(domain: str, zone_name: str) -> str:
    """DNS record name for `domain` inside `zone_name` ("" at the zone apex)."""
    domain = domain.rstrip(".")
    zone_name = zone_name.rstrip(".").lower()
    if domain.lower() == zone_name:
        return ""
    suffix = f".{zone_name}"
    if domain.lower().endswith(suffix):
        return domain[: -len(suffix)]
    return domain


def domain_changed(previous_domain: str, args: DeployArgs, metadata: Metadata) -> bool:
    """Whether this deploy serves Concourse from a different address than last time.

    Without --domain, Concourse is addressed by the ATC's public IP.
    """
    return (args.domain or metadata.atc_public_ip) != previous_domain


class ConfigRequirementResolver:
    """Validates and fills in the configuration before and after terraform.

    Every change here is either safe to repeat or guarded, so a failed
    deploy can simply be run again.
    """

    def __init__(
        self,
        args: DeployArgs,
        store: ConfigStore,
        iaas: Any,
        find_user_ip: Callable[[], str],
        certs: CertificateManager,
        output: OutputFormatter,
    ):
        self._args = args
        self._store = store
        self._iaas = iaas
        self._find_user_ip = find_user_ip
        self._certs = certs
        self._output = output

    def pre_infrastructure(self, config: Configuration) -> Configuration:
        """Checks and updates that terraform depends on."""
        region = self._args.aws_region

        if config.region and config.region != region:
            raise ConfigConflictError(
                f"found previous deployment in {config.region}. Refusing to deploy to "
                f"{region} as changing regions for existing deployments is not supported",
                details={"existing_region": config.region, "requested_region": region},
            )
        config.region = region

        if self._args.db_size_is_set:
            config.rds_instance_class = DB_SIZES[self._args.db_size]

        # In self-update mode the deploy runs on a worker that already has access
        if not self._args.self_update:
            self._set_user_ip(config)

        self._set_hosted_zone(config)
        return config

    def post_infrastructure(
        self,
        domain_updated: bool,
        config: Configuration,
        metadata: Metadata,
    ) -> Configuration:
        """Updates from terraform outputs; checkpoints before the BOSH deploy."""
        if not self._args.domain:
            config.domain = metadata.atc_public_ip

        config = self._certs.ensure_director_certs(config, metadata)
        config = self._certs.ensure_concourse_certs(domain_updated, config, self._args)

        config.concourse_worker_count = self._args.worker_count
        config.concourse_worker_size = self._args.worker_size
        config.concourse_web_size = self._args.web_size
        config.director_public_ip = metadata.director_public_ip

        self._store.update(config)
        return config

    def _set_user_ip(self, config: Configuration) -> None:
        user_ip = self._find_user_ip()
        if config.source_access_ip == user_ip:
            return

        config.source_access_ip = user_ip
        self._output.print_warning(f"allowing access from local machine (address: {user_ip})")
        self._store.update(config)

    def _set_hosted_zone(self, config: Configuration) -> None:
        domain = self._args.domain
        if not domain:
            return

        zone_name, zone_id = self._iaas.find_longest_matching_hosted_zone(domain)
        config.hosted_zone_id = zone_id
        config.hosted_zone_record_prefix = record_prefix(domain, zone_name)
        config.domain = domain

        self._output.print_warning(
            f"adding record {domain} to Route53 hosted zone {zone_name} ID: {zone_id}"
        )
        logger.info("Bound hosted zone", domain=domain, zone=zone_name, zone_id=zone_id)
        self._store.update(config)

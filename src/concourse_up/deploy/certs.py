"""Certificate lifecycle for the BOSH director and Concourse."""

from datetime import datetime, timedelta, timezone
from typing import Callable

from cryptography import x509

from concourse_up.core.logging import StructuredLogger
from concourse_up.core.output import OutputFormatter, format_duration
from concourse_up.deploy.models import (
    DIRECTOR_PRIVATE_IP,
    CertificateBundle,
    Configuration,
    DeployArgs,
    Metadata,
)

logger = StructuredLogger(__name__)

RENEWAL_THRESHOLD = timedelta(days=28)

CertGenerator = Callable[..., CertificateBundle]


def time_till_expiry(cert: str, now: datetime | None = None) -> timedelta:
    """Time left before a PEM certificate expires.

    Anything that cannot be decoded counts as already expired.
    """
    try:
        parsed = x509.load_pem_x509_certificate(cert.encode())
    except (ValueError, TypeError, AttributeError):
        return timedelta(0)

    now = now or datetime.now(timezone.utc)
    return parsed.not_valid_after_utc - now


class CertificateManager:
    """Decides when director and Concourse certificates are (re)generated."""

    def __init__(self, generate: CertGenerator, output: OutputFormatter):
        """Initialize the manager.

        Args:
            generate: Called as generate(ca_name, *subjects) to issue a bundle
            output: Where progress messages are printed
        """
        self._generate = generate
        self._output = output

    def ensure_director_certs(self, config: Configuration, metadata: Metadata) -> Configuration:
        """Issue the director certificate once.

        Changing the director certificate forces a director redeploy even
        when nothing else changed, so an existing one is always kept.
        """
        if config.director_ca_cert:
            return config

        ip = metadata.director_public_ip
        self._output.print(f"\nGENERATING BOSH DIRECTOR CERTIFICATE ({ip}, {DIRECTOR_PRIVATE_IP})\n")

        bundle = self._generate(config.deployment, ip, DIRECTOR_PRIVATE_IP)
        config.director_ca_cert = bundle.ca_cert
        config.director_cert = bundle.cert
        config.director_key = bundle.key
        return config

    def ensure_concourse_certs(
        self,
        domain_updated: bool,
        config: Configuration,
        args: DeployArgs,
    ) -> Configuration:
        """Adopt, keep or regenerate the Concourse certificate.

        config.domain must already hold the domain or, without one, the ATC IP.
        """
        if args.tls_cert:
            config.concourse_cert = args.tls_cert
            config.concourse_key = args.tls_key
            config.concourse_ca_cert = ""
            config.concourse_user_provided_cert = True
            return config

        if config.concourse_user_provided_cert and config.concourse_cert:
            if domain_updated:
                logger.warning(
                    "Domain changed but keeping user provided certificate", domain=config.domain
                )
            return config

        if config.concourse_cert and not domain_updated:
            remaining = time_till_expiry(config.concourse_cert)
            if remaining > RENEWAL_THRESHOLD:
                logger.debug(
                    "Keeping Concourse certificate",
                    domain=config.domain,
                    expires_in=format_duration(remaining.total_seconds()),
                )
                return config

        logger.info("Generating Concourse certificate", domain=config.domain)
        bundle = self._generate(config.deployment, config.domain)
        config.concourse_ca_cert = bundle.ca_cert
        config.concourse_cert = bundle.cert
        config.concourse_key = bundle.key
        return config

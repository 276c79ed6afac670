"""Infrastructure provisioning step."""

from typing import Any, Callable

from concourse_up.core.logging import StructuredLogger
from concourse_up.core.output import OutputFormatter
from concourse_up.deploy.models import Configuration, Metadata

logger = StructuredLogger(__name__)

TerraformClientFactory = Callable[[str, Configuration, OutputFormatter], Any]


def apply_terraform(
    factory: TerraformClientFactory,
    iaas: str,
    config: Configuration,
    output: OutputFormatter,
) -> Metadata:
    """Create or update the deployment's infrastructure and return its outputs.

    Never destroys anything. Incomplete outputs raise MetadataError.
    """
    with factory(iaas, config, output) as terraform:
        terraform.apply(False)
        metadata = terraform.output()

    metadata.assert_valid()
    logger.info(
        "Infrastructure ready",
        atc=metadata.atc_public_ip,
        director=metadata.director_public_ip,
    )
    return metadata

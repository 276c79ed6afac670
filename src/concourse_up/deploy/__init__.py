"""Deployment orchestration module."""

from concourse_up.deploy.models import (
    CertificateBundle,
    Configuration,
    DeployArgs,
    FlyCredentials,
    Metadata,
)

__all__ = [
    "CertificateBundle",
    "Configuration",
    "DeployArgs",
    "FlyCredentials",
    "Metadata",
]

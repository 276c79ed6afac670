"""Clients for the external systems a deploy drives."""

from concourse_up.clients.aws import AWSClient, AWSClientFactory
from concourse_up.clients.bosh import BoshClient
from concourse_up.clients.fly import FlyClient
from concourse_up.clients.terraform import TerraformClient

__all__ = ["AWSClient", "AWSClientFactory", "BoshClient", "FlyClient", "TerraformClient"]

"""AWS client factory using boto3."""

from functools import wraps
from typing import Any, Callable, TypeVar

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from concourse_up.config import AWSConfig
from concourse_up.core.exceptions import AWSError, AuthenticationError, ConfigConflictError
from concourse_up.core.logging import StructuredLogger

logger = StructuredLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class AWSClientFactory:
    """Factory for creating boto3 clients with consistent configuration."""

    def __init__(self, config: AWSConfig, region: str | None = None):
        self._config = config
        self._region = region
        self._session: boto3.Session | None = None

    def _session_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "profile_name": self._config.get_profile(),
            "region_name": self._region or self._config.get_region(),
        }
        # Static keys in config win over the profile's credential chain
        if self._config.access_key_id and self._config.secret_access_key:
            kwargs.update(
                aws_access_key_id=self._config.access_key_id,
                aws_secret_access_key=self._config.secret_access_key,
                aws_session_token=self._config.session_token,
            )
        return {key: value for key, value in kwargs.items() if value}

    @property
    def session(self) -> boto3.Session:
        """The boto3 session, created on first use."""
        if self._session is None:
            kwargs = self._session_kwargs()
            try:
                self._session = boto3.Session(**kwargs)
            except BotoCoreError as e:
                raise AuthenticationError(f"Failed to create AWS session: {e}") from e
            logger.debug(
                "Created AWS session",
                profile=kwargs.get("profile_name"),
                region=kwargs.get("region_name"),
            )
        return self._session

    @property
    def region(self) -> str:
        """Get the configured region."""
        return self.session.region_name or "us-east-1"

    def client(self, service_name: str, **kwargs: Any) -> Any:
        """Create a boto3 client for a service.

        Args:
            service_name: AWS service name (e.g., 's3', 'route53')
            **kwargs: Additional client configuration

        Returns:
            boto3 client instance
        """
        config = BotoConfig(
            retries={"max_attempts": 3, "mode": "adaptive"},
            connect_timeout=10,
            read_timeout=30,
        )

        client_kwargs: dict[str, Any] = {"config": config, **kwargs}

        if self._config.endpoint_url:
            client_kwargs["endpoint_url"] = self._config.endpoint_url

        try:
            return self.session.client(service_name, **client_kwargs)
        except BotoCoreError as e:
            raise AWSError(
                f"Failed to create {service_name} client: {e}",
                service=service_name,
            )

    def credentials_env(self) -> dict[str, str]:
        """Session credentials as environment variables for child processes."""
        credentials = self.session.get_credentials()
        if credentials is None:
            raise AuthenticationError("No AWS credentials found")

        frozen = credentials.get_frozen_credentials()
        env = {
            "AWS_ACCESS_KEY_ID": frozen.access_key,
            "AWS_SECRET_ACCESS_KEY": frozen.secret_key,
            "AWS_DEFAULT_REGION": self.region,
        }
        if frozen.token:
            env["AWS_SESSION_TOKEN"] = frozen.token
        return env

    @property
    def s3(self) -> Any:
        """Get S3 client."""
        return self.client("s3")

    @property
    def route53(self) -> Any:
        """Get Route53 client."""
        return self.client("route53")


def handle_aws_error(service: str) -> Callable[[F], F]:
    """Translate botocore failures inside the wrapped call into AWSError.

    Args:
        service: AWS service name recorded on the raised error
    """

    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return func(*args, **kwargs)
            except ClientError as e:
                error = e.response.get("Error", {})
                raise AWSError(
                    f"{error.get('Code', 'Unknown')}: {error.get('Message', str(e))}",
                    service=service,
                    operation=e.operation_name,
                ) from e
            except BotoCoreError as e:
                raise AWSError(f"{service}: {e}", service=service) from e

        return wrapper  # type: ignore[return-value]

    return decorator


def paginate(client: Any, method: str, key: str, **kwargs: Any) -> list[Any]:
    """Helper to paginate through AWS API results.

    Args:
        client: boto3 client
        method: Method name to call
        key: Key in response containing items
        **kwargs: Arguments to pass to the method

    Returns:
        List of all items across all pages
    """
    paginator = client.get_paginator(method)
    items = []

    for page in paginator.paginate(**kwargs):
        items.extend(page.get(key, []))

    return items


def longest_matching_zone(domain: str, zones: list[dict[str, Any]]) -> tuple[str, str] | None:
    """Pick the hosted zone whose name is the longest suffix of `domain`.

    Args:
        domain: Fully qualified domain, e.g. ci.sub.example.com
        zones: Route53 HostedZone dicts with "Name" and "Id"

    Returns:
        (zone name without trailing dot, zone id without /hostedzone/ prefix), or None
    """
    domain = domain.rstrip(".").lower()
    best: tuple[str, str] | None = None

    for zone in zones:
        name = zone["Name"].rstrip(".").lower()
        if domain != name and not domain.endswith(f".{name}"):
            continue
        if best is None or len(name) > len(best[0]):
            best = (name, zone["Id"].rsplit("/", 1)[-1])

    return best


class AWSClient:
    """IaaS handle for a deployment's AWS account and region."""

    iaas = "AWS"

    def __init__(self, factory: AWSClientFactory):
        self._factory = factory

    @property
    def factory(self) -> AWSClientFactory:
        return self._factory

    @property
    def region(self) -> str:
        return self._factory.region

    @handle_aws_error("route53")
    def find_longest_matching_hosted_zone(self, domain: str) -> tuple[str, str]:
        """Find the account's hosted zone that best matches `domain`.

        Returns:
            (zone name, zone id)
        """
        zones = paginate(self._factory.route53, "list_hosted_zones", "HostedZones")
        match = longest_matching_zone(domain, zones)
        if match is None:
            raise ConfigConflictError(f"No matching hosted zone found for domain {domain}")

        logger.debug("Matched hosted zone", domain=domain, zone=match[0], id=match[1])
        return match

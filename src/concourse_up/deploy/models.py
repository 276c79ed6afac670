"""Deployment data models."""

from dataclasses import dataclass, field, fields
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from concourse_up.core.exceptions import MetadataError

DIRECTOR_PRIVATE_IP = "10.0.0.6"
CREDHUB_PORT = 8844
CREDHUB_USERNAME = "credhub-cli"

# Asset names in the configuration store
STATE_FILENAME = "director-state.json"
CREDS_FILENAME = "director-creds.yml"
CONFIG_FILENAME = "config.json"

DB_SIZES = {
    "small": "db.t2.small",
    "medium": "db.t2.medium",
    "large": "db.m4.large",
    "xlarge": "db.m4.xlarge",
    "2xlarge": "db.m4.2xlarge",
    "4xlarge": "db.m4.4xlarge",
}

WORKER_SIZES = {
    "medium": "t2.medium",
    "large": "m4.large",
    "xlarge": "m4.xlarge",
    "2xlarge": "m4.2xlarge",
    "4xlarge": "m4.4xlarge",
    "10xlarge": "m4.10xlarge",
    "16xlarge": "m4.16xlarge",
}

WEB_SIZES = {
    "small": "t2.small",
    "medium": "t2.medium",
    "large": "t2.large",
    "xlarge": "t2.xlarge",
    "2xlarge": "t2.2xlarge",
}


class DeployArgs(BaseModel):
    """Arguments for a single deploy invocation."""

    deployment: str
    aws_region: str = "eu-west-1"
    domain: str = ""
    tls_cert: str = ""
    tls_key: str = ""
    worker_count: int = Field(default=1, ge=1)
    worker_size: str = "xlarge"
    web_size: str = "small"
    db_size: str = "small"
    db_size_is_set: bool = False
    self_update: bool = False

    @field_validator("deployment")
    @classmethod
    def validate_deployment(cls, v: str) -> str:
        if not v:
            raise ValueError("deployment name must not be empty")
        return v

    @field_validator("worker_size")
    @classmethod
    def validate_worker_size(cls, v: str) -> str:
        if v not in WORKER_SIZES:
            raise ValueError(f"unknown worker size {v!r}, choose from {', '.join(WORKER_SIZES)}")
        return v

    @field_validator("web_size")
    @classmethod
    def validate_web_size(cls, v: str) -> str:
        if v not in WEB_SIZES:
            raise ValueError(f"unknown web size {v!r}, choose from {', '.join(WEB_SIZES)}")
        return v

    @field_validator("db_size")
    @classmethod
    def validate_db_size(cls, v: str) -> str:
        if v not in DB_SIZES:
            raise ValueError(f"unknown db size {v!r}, choose from {', '.join(DB_SIZES)}")
        return v

    @model_validator(mode="after")
    def validate_tls(self) -> "DeployArgs":
        if bool(self.tls_cert) != bool(self.tls_key):
            raise ValueError("--tls-cert and --tls-key must be provided together")
        if self.tls_cert and not self.domain:
            raise ValueError("custom certificates require --domain to be provided")
        return self


@dataclass
class CertificateBundle:
    """PEM encoded CA certificate, certificate and private key."""

    ca_cert: str
    cert: str
    key: str


@dataclass
class Configuration:
    """Persisted record describing one named deployment."""

    # Identity
    project: str = ""
    deployment: str = ""
    region: str = ""
    availability_zone: str = ""

    # Network
    domain: str = ""
    source_access_ip: str = ""
    hosted_zone_id: str = ""
    hosted_zone_record_prefix: str = ""
    director_public_ip: str = ""

    # Sizing
    concourse_worker_count: int = 1
    concourse_worker_size: str = "xlarge"
    concourse_web_size: str = "small"
    rds_instance_class: str = DB_SIZES["small"]

    # Credentials
    concourse_username: str = ""
    concourse_password: str = ""
    director_username: str = "admin"
    director_password: str = ""
    rds_username: str = ""
    rds_password: str = ""
    rds_default_database_name: str = "bosh"
    encryption_key: str = ""
    public_key: str = ""
    private_key: str = ""

    # Director certificates
    director_ca_cert: str = ""
    director_cert: str = ""
    director_key: str = ""

    # Concourse certificates
    concourse_ca_cert: str = ""
    concourse_cert: str = ""
    concourse_key: str = ""
    concourse_user_provided_cert: bool = False

    # Credhub, derived from the director credentials after deploy
    credhub_url: str = ""
    credhub_username: str = ""
    credhub_password: str = ""
    credhub_ca_cert: str = ""

    SECRET_FIELDS = (
        "concourse_password",
        "director_password",
        "rds_password",
        "encryption_key",
        "private_key",
        "director_key",
        "concourse_key",
        "credhub_password",
    )

    @property
    def director_certs(self) -> CertificateBundle:
        return CertificateBundle(self.director_ca_cert, self.director_cert, self.director_key)

    @property
    def concourse_certs(self) -> CertificateBundle:
        return CertificateBundle(self.concourse_ca_cert, self.concourse_cert, self.concourse_key)

    def to_dict(self, redact: bool = False) -> dict[str, Any]:
        """Convert to dictionary."""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        if redact:
            for name in self.SECRET_FIELDS:
                if data.get(name):
                    data[name] = "<redacted>"
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Configuration":
        """Create from dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class Metadata:
    """Terraform outputs for a deployment."""

    atc_public_ip: str = ""
    director_public_ip: str = ""
    director_security_group_id: str = ""
    vms_security_group_id: str = ""
    atc_security_group_id: str = ""
    vpc_id: str = ""
    public_subnet_id: str = ""
    private_subnet_id: str = ""
    blobstore_bucket: str = ""
    bosh_db_address: str = ""
    bosh_db_port: str = ""
    nat_gateway_ip: str = ""
    extra: dict[str, Any] = field(default_factory=dict)

    REQUIRED = (
        "atc_public_ip",
        "director_public_ip",
        "director_security_group_id",
        "vms_security_group_id",
        "atc_security_group_id",
        "vpc_id",
        "public_subnet_id",
        "private_subnet_id",
        "blobstore_bucket",
        "bosh_db_address",
        "bosh_db_port",
        "nat_gateway_ip",
    )

    def missing(self) -> list[str]:
        """Names of required outputs that are absent or empty."""
        return [name for name in self.REQUIRED if not getattr(self, name)]

    def assert_valid(self) -> None:
        """Raise MetadataError unless every required output has a value."""
        missing = self.missing()
        if missing:
            raise MetadataError(
                f"terraform output missing required values: {', '.join(missing)}",
                missing=missing,
            )

    @classmethod
    def from_terraform_output(cls, outputs: dict[str, Any]) -> "Metadata":
        """Build from `terraform output -json`, where each value is {"value": ...}."""
        known = set(cls.REQUIRED)
        values: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for name, output in outputs.items():
            value = output.get("value") if isinstance(output, dict) else output
            if name in known:
                values[name] = "" if value is None else str(value)
            else:
                extra[name] = value
        return cls(extra=extra, **values)


@dataclass
class FlyCredentials:
    """Credentials for the Concourse administrative client."""

    target: str
    api: str
    username: str
    password: str
    ca_cert: str = ""

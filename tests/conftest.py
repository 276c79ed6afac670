"""Pytest fixtures for concourse-up tests."""

import io
import os
from typing import Any, Generator

import pytest
from click.testing import CliRunner
from rich.console import Console

from concourse_up.core.exceptions import BoshError, StorageError
from concourse_up.core.output import OutputFormat, OutputFormatter
from concourse_up.deploy.models import CertificateBundle, DeployArgs, Metadata
from concourse_up.storage import ConfigStore


class MemoryConfigStore(ConfigStore):
    """In-memory ConfigStore that can be told to fail on chosen assets."""

    def __init__(self, events: list[str] | None = None):
        self.assets: dict[str, bytes] = {}
        self.events = events if events is not None else []
        self.fail_on: dict[str, Exception] = {}
        self.writes: list[str] = []

    def has_asset(self, name: str) -> bool:
        return name in self.assets

    def load_asset(self, name: str) -> bytes:
        if name not in self.assets:
            raise StorageError(f"{name} not found", key=name)
        return self.assets[name]

    def store_asset(self, name: str, contents: bytes) -> None:
        if name in self.fail_on:
            raise self.fail_on[name]
        self.events.append(f"store:{name}")
        self.writes.append(name)
        self.assets[name] = contents


class FakeIaaS:
    iaas = "AWS"

    def __init__(self, zones: dict[str, str] | None = None):
        self.zones = zones or {}
        self.lookups: list[str] = []

    def find_longest_matching_hosted_zone(self, domain: str) -> tuple[str, str]:
        self.lookups.append(domain)
        for name in sorted(self.zones, key=len, reverse=True):
            if domain == name or domain.endswith(f".{name}"):
                return name, self.zones[name]
        raise LookupError(domain)


class FakeTerraform:
    def __init__(self, events: list[str], metadata: Metadata):
        self.events = events
        self.metadata = metadata
        self.applied: list[bool] = []

    def apply(self, destroy: bool = False) -> None:
        self.events.append("terraform:apply")
        self.applied.append(destroy)

    def output(self) -> Metadata:
        self.events.append("terraform:output")
        return self.metadata

    def __enter__(self) -> "FakeTerraform":
        return self

    def __exit__(self, *args: Any) -> None:
        self.events.append("terraform:cleanup")


class FakeBosh:
    def __init__(self, events: list[str], error: BoshError | None = None):
        self.events = events
        self.error = error
        self.calls: list[tuple[bytes, bytes, bool]] = []
        self.creds = (
            b"credhub_cli_password: credhub-secret\n"
            b"credhub-tls:\n"
            b"  ca: CREDHUB-CA\n"
        )

    def deploy(self, state: bytes, creds: bytes, detach: bool) -> tuple[bytes, bytes]:
        self.events.append(f"bosh:deploy:detach={detach}")
        self.calls.append((state, creds, detach))
        if self.error is not None:
            raise self.error
        return b'{"state": "new"}', self.creds

    def __enter__(self) -> "FakeBosh":
        return self

    def __exit__(self, *args: Any) -> None:
        self.events.append("bosh:cleanup")


class FakeFly:
    def __init__(self, events: list[str], reachable: bool = True):
        self.events = events
        self.reachable = reachable
        self.credentials: Any = None
        self.pipelines: list[bool] = []

    def can_connect(self) -> bool:
        self.events.append("fly:can_connect")
        return self.reachable

    def set_default_pipeline(self, args: DeployArgs, config: Any, allow: bool) -> None:
        self.events.append(f"fly:set_pipeline:allow={allow}")
        self.pipelines.append(allow)

    def __enter__(self) -> "FakeFly":
        return self

    def __exit__(self, *args: Any) -> None:
        self.events.append("fly:cleanup")


class CountingCertGenerator:
    """Stand-in for generate_certs that records its subjects."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, ...]] = []

    def __call__(self, ca_name: str, *subjects: str) -> CertificateBundle:
        self.calls.append((ca_name, *subjects))
        n = len(self.calls)
        return CertificateBundle(ca_cert=f"CA-{n}", cert=f"CERT-{n}", key=f"KEY-{n}")


def make_metadata(**overrides: str) -> Metadata:
    values = {
        "atc_public_ip": "77.77.77.77",
        "director_public_ip": "99.99.99.99",
        "director_security_group_id": "sg-director",
        "vms_security_group_id": "sg-vms",
        "atc_security_group_id": "sg-atc",
        "vpc_id": "vpc-1",
        "public_subnet_id": "subnet-public",
        "private_subnet_id": "subnet-private",
        "blobstore_bucket": "blobs",
        "bosh_db_address": "db.example.internal",
        "bosh_db_port": "5432",
        "nat_gateway_ip": "88.88.88.88",
    }
    values.update(overrides)
    return Metadata(**values)


@pytest.fixture
def cli_runner() -> CliRunner:
    """Create a Click CLI runner."""
    return CliRunner()


@pytest.fixture
def stdout() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def stderr() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def output(stdout: io.StringIO, stderr: io.StringIO) -> OutputFormatter:
    """Output formatter writing plain text to in-memory buffers."""
    return OutputFormatter(
        format=OutputFormat.TABLE,
        color=False,
        console=Console(file=stdout, width=200, color_system=None),
        error_console=Console(file=stderr, width=200, color_system=None),
    )


@pytest.fixture
def events() -> list[str]:
    return []


@pytest.fixture
def store(events: list[str]) -> MemoryConfigStore:
    return MemoryConfigStore(events)


@pytest.fixture
def metadata() -> Metadata:
    return make_metadata()


@pytest.fixture
def cert_generator() -> CountingCertGenerator:
    return CountingCertGenerator()


@pytest.fixture(autouse=True)
def clean_env(tmp_path, monkeypatch) -> Generator[None, None, None]:
    """Clean environment variables before each test.

    HOME and the working directory point at an empty temp dir so no user
    or project config file is picked up.
    """
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)

    env_vars = [
        "CONCOURSE_UP_AWS_PROFILE",
        "CONCOURSE_UP_AWS_REGION",
        "CONCOURSE_UP_PROFILE",
        "CONCOURSE_UP_CONFIG",
        "CONCOURSE_UP_STORE_DIR",
        "CONCOURSE_UP_TERRAFORM_DIR",
        "CONCOURSE_UP_MANIFEST_DIR",
        "AWS_PROFILE",
        "AWS_REGION",
        "DOMAIN",
        "TLS_CERT",
        "TLS_KEY",
        "WORKERS",
        "WORKER_SIZE",
        "WEB_SIZE",
        "DB_SIZE",
        "SELF_UPDATE",
    ]

    original = {k: os.environ.get(k) for k in env_vars}

    for k in env_vars:
        os.environ.pop(k, None)

    yield

    for k, v in original.items():
        if v is not None:
            os.environ[k] = v
        else:
            os.environ.pop(k, None)


@pytest.fixture
def temp_config_file(tmp_path) -> str:
    """Create a temporary config file using the local store."""
    config_content = f"""
version: "1"
global:
  output_format: table
profiles:
  default:
    aws:
      region: eu-west-1
    store:
      backend: local
      local_dir: {tmp_path / "deployments"}
"""
    config_file = tmp_path / "config.yaml"
    config_file.write_text(config_content)
    return str(config_file)

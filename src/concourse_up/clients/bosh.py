"""BOSH client for deploying the director and the Concourse deployment."""

import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Any

import yaml

from concourse_up.config import BoshConfig
from concourse_up.core.exceptions import BoshError, ConfigError
from concourse_up.core.logging import StructuredLogger
from concourse_up.core.output import OutputFormatter
from concourse_up.core.process import find_binary, run_command
from concourse_up.core.utils import tail_lines
from concourse_up.deploy.models import (
    DIRECTOR_PRIVATE_IP,
    WEB_SIZES,
    WORKER_SIZES,
    Configuration,
    Metadata,
)

logger = StructuredLogger(__name__)

DIRECTOR_MANIFEST = "director.yml"
CONCOURSE_MANIFEST = "concourse.yml"


class BoshClient:
    """Drives `bosh create-env` and `bosh deploy` for one deployment.

    Director state and the generated credentials (vars store) are opaque to
    the rest of concourse-up and are passed in and returned as bytes.
    """

    def __init__(
        self,
        config: Configuration,
        metadata: Metadata,
        output: OutputFormatter,
        settings: BoshConfig,
        env: dict[str, str] | None = None,
    ):
        manifest_dir = settings.get_manifest_dir()
        if not manifest_dir or not Path(manifest_dir).is_dir():
            raise ConfigError(f"BOSH manifest directory not configured or missing: {manifest_dir}")

        self._binary = settings.binary
        self._manifest_dir = Path(manifest_dir)
        self._config = config
        self._metadata = metadata
        self._output = output
        self._env = env or {}
        self._logger = logger.bind(deployment=config.deployment)
        self._workdir = Path(tempfile.mkdtemp(prefix="concourse-up-bosh-"))

    @property
    def workdir(self) -> Path:
        return self._workdir

    @property
    def state_path(self) -> Path:
        return self._workdir / "state.json"

    @property
    def creds_path(self) -> Path:
        return self._workdir / "creds.yml"

    def _write_file(self, name: str, contents: str) -> Path:
        path = self._workdir / name
        path.write_text(contents)
        path.chmod(0o600)
        return path

    def _read(self, path: Path) -> bytes:
        return path.read_bytes() if path.exists() else b""

    def _director_vars(self) -> dict[str, Any]:
        config, metadata = self._config, self._metadata
        return {
            "director_name": config.deployment,
            "internal_cidr": "10.0.0.0/24",
            "internal_gw": "10.0.0.1",
            "internal_ip": DIRECTOR_PRIVATE_IP,
            "external_ip": metadata.director_public_ip,
            "region": config.region,
            "az": config.availability_zone,
            "subnet_id": metadata.public_subnet_id,
            "default_security_groups": [metadata.director_security_group_id],
            "default_key_name": metadata.extra.get("director_key_pair", config.deployment),
            "db_host": metadata.bosh_db_address,
            "db_port": metadata.bosh_db_port,
            "db_name": config.rds_default_database_name,
            "db_username": config.rds_username,
            "db_password": config.rds_password,
            "blobstore_bucket": metadata.blobstore_bucket,
            "director_ssl_ca": config.director_ca_cert,
            "director_ssl_certificate": config.director_cert,
            "director_ssl_private_key": config.director_key,
        }

    def _concourse_vars(self) -> dict[str, Any]:
        config, metadata = self._config, self._metadata
        return {
            "deployment_name": config.deployment,
            "domain": config.domain,
            "external_url": f"https://{config.domain}",
            "atc_public_ip": metadata.atc_public_ip,
            "atc_security_group": metadata.atc_security_group_id,
            "vms_security_group": metadata.vms_security_group_id,
            "private_subnet_id": metadata.private_subnet_id,
            "web_vm_type": WEB_SIZES.get(config.concourse_web_size, ""),
            "worker_vm_type": WORKER_SIZES.get(config.concourse_worker_size, ""),
            "worker_count": config.concourse_worker_count,
            "atc_username": config.concourse_username,
            "atc_password": config.concourse_password,
            "atc_encryption_key": config.encryption_key,
            "tls_cert": config.concourse_cert,
            "tls_key": config.concourse_key,
        }

    def _bosh(self, args: list[str], env: dict[str, str] | None = None) -> None:
        cmd = [find_binary(self._binary, BoshError), *args]
        result = run_command(
            cmd, BoshError, cwd=str(self._workdir), env={**self._env, **(env or {})}, capture=False
        )
        if result.returncode != 0:
            raise BoshError(f"bosh {args[0]} failed:\n{tail_lines(result.stderr or '')}")

    def _create_env(self) -> None:
        vars_file = self._write_file("director-vars.yml", yaml.safe_dump(self._director_vars()))
        key_file = self._write_file("director.pem", self._config.private_key)
        self._output.print("\nDEPLOYING BOSH DIRECTOR\n")
        self._bosh(
            [
                "create-env",
                str(self._manifest_dir / DIRECTOR_MANIFEST),
                "--state",
                str(self.state_path),
                "--vars-store",
                str(self.creds_path),
                "--vars-file",
                str(vars_file),
                "--var-file",
                f"private_key={key_file}",
            ]
        )

    def _director_env(self) -> dict[str, str]:
        creds = yaml.safe_load(self._read(self.creds_path) or b"{}") or {}
        ca_file = self._write_file("director-ca.pem", self._config.director_ca_cert)
        return {
            "BOSH_ENVIRONMENT": f"https://{self._metadata.director_public_ip}:25555",
            "BOSH_CA_CERT": str(ca_file),
            "BOSH_CLIENT": "admin",
            "BOSH_CLIENT_SECRET": str(creds.get("admin_password", "")),
            "BOSH_DEPLOYMENT": self._config.deployment,
        }

    def _deploy_concourse(self, detach: bool) -> None:
        vars_file = self._write_file("concourse-vars.yml", yaml.safe_dump(self._concourse_vars()))
        director_env = self._director_env()
        manifest = str(self._manifest_dir / CONCOURSE_MANIFEST)

        self._output.print("\nDEPLOYING CONCOURSE\n")
        if not detach:
            self._bosh(
                ["deploy", manifest, "--vars-file", str(vars_file), "--non-interactive"],
                env=director_env,
            )
            return

        # The detached deploy outlives this client, so it gets its own copy
        # of the files it reads.
        detached_dir = Path(tempfile.mkdtemp(prefix="concourse-up-detached-"))
        for path in self._workdir.iterdir():
            shutil.copy2(path, detached_dir / path.name)

        cmd = [
            find_binary(self._binary, BoshError),
            "deploy",
            manifest,
            "--vars-file",
            str(detached_dir / vars_file.name),
            "--non-interactive",
        ]
        env = {
            **os.environ,
            **self._env,
            **director_env,
            "BOSH_CA_CERT": str(detached_dir / "director-ca.pem"),
        }
        try:
            process = subprocess.Popen(
                cmd,
                cwd=str(detached_dir),
                env=env,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            raise BoshError(f"Failed to start detached bosh deploy: {e}")
        self._logger.info("Started detached deploy", pid=process.pid)

    def deploy(self, state: bytes | None, creds: bytes | None, detach: bool) -> tuple[bytes, bytes]:
        """Deploy the director and Concourse.

        Args:
            state: Director state from the previous run, empty on first deploy
            creds: Director vars store from the previous run, empty on first deploy
            detach: Return once the Concourse deploy has started

        Returns:
            (new state, new creds)

        Raises:
            BoshError: carrying the state and creds present when it failed
        """
        try:
            if state:
                self.state_path.write_bytes(state)
            if creds:
                self.creds_path.write_bytes(creds)
            self._create_env()
            self._deploy_concourse(detach)
        except BoshError as e:
            e.state = self._read(self.state_path)
            e.creds = self._read(self.creds_path)
            raise
        except OSError as e:
            # The previous blobs go back to the caller untouched
            raise BoshError(
                f"Failed to prepare bosh working files: {e}",
                state=state or b"",
                creds=creds or b"",
            ) from e

        return self._read(self.state_path), self._read(self.creds_path)

    def cleanup(self) -> None:
        """Remove the scratch directory."""
        shutil.rmtree(self._workdir, ignore_errors=True)

    def __enter__(self) -> "BoshClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.cleanup()

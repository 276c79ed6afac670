"""Terraform client for provisioning deployment infrastructure."""

import json
import shutil
import tempfile
from pathlib import Path
from typing import Any

from concourse_up.config import TerraformConfig
from concourse_up.core.exceptions import ConfigError, TerraformError
from concourse_up.core.logging import StructuredLogger
from concourse_up.core.output import OutputFormatter
from concourse_up.core.process import find_binary, run_command
from concourse_up.core.utils import tail_lines
from concourse_up.deploy.models import WEB_SIZES, WORKER_SIZES, Configuration, Metadata
from concourse_up.storage import ConfigStore

logger = StructuredLogger(__name__)

STATE_ASSET = "terraform.tfstate"


def terraform_vars(config: Configuration) -> dict[str, Any]:
    """Terraform input variables for a deployment."""
    return {
        "region": config.region,
        "availability_zone": config.availability_zone,
        "deployment": config.deployment,
        "project": config.project,
        "source_access_ip": config.source_access_ip,
        "hosted_zone_id": config.hosted_zone_id,
        "hosted_zone_record_prefix": config.hosted_zone_record_prefix,
        "public_key": config.public_key,
        "rds_instance_class": config.rds_instance_class,
        "rds_username": config.rds_username,
        "rds_password": config.rds_password,
        "rds_default_database_name": config.rds_default_database_name,
        "worker_instance_type": WORKER_SIZES.get(config.concourse_worker_size, ""),
        "web_instance_type": WEB_SIZES.get(config.concourse_web_size, ""),
    }


class TerraformClient:
    """Runs the deployment's terraform stack in a scratch directory.

    The terraform state file is kept in the configuration store between runs.
    """

    def __init__(
        self,
        iaas: str,
        config: Configuration,
        output: OutputFormatter,
        settings: TerraformConfig,
        store: ConfigStore,
        env: dict[str, str] | None = None,
    ):
        source_dir = settings.get_source_dir()
        if not source_dir or not Path(source_dir).is_dir():
            raise ConfigError(
                f"Terraform source directory for {iaas} not configured or missing: {source_dir}"
            )

        self._binary = settings.binary
        self._config = config
        self._output = output
        self._store = store
        self._env = env or {}
        self._logger = logger.bind(deployment=config.deployment, iaas=iaas)

        self._workdir = Path(tempfile.mkdtemp(prefix="concourse-up-terraform-"))
        shutil.copytree(source_dir, self._workdir, dirs_exist_ok=True)
        (self._workdir / "terraform.tfvars.json").write_text(
            json.dumps(terraform_vars(config), indent=2)
        )

    @property
    def workdir(self) -> Path:
        return self._workdir

    def _run(self, args: list[str], capture: bool = True) -> str:
        cmd = [find_binary(self._binary, TerraformError), *args]
        result = run_command(
            cmd,
            TerraformError,
            cwd=str(self._workdir),
            env={"TF_IN_AUTOMATION": "1", **self._env},
            capture=capture,
        )
        if result.returncode != 0:
            raise TerraformError(
                f"terraform {args[0]} failed:\n{tail_lines(result.stderr or '')}",
                command=args[0],
            )
        return result.stdout or ""

    def _restore_state(self) -> None:
        if self._store.has_asset(STATE_ASSET):
            (self._workdir / STATE_ASSET).write_bytes(self._store.load_asset(STATE_ASSET))

    def _save_state(self) -> None:
        state_file = self._workdir / STATE_ASSET
        if state_file.exists():
            self._store.store_asset(STATE_ASSET, state_file.read_bytes())

    def apply(self, destroy: bool = False) -> None:
        """Run terraform apply (or destroy) against the stack."""
        self._restore_state()
        self._run(["init", "-input=false", "-no-color"])

        args = ["apply", "-input=false", "-auto-approve", "-no-color"]
        if destroy:
            args.append("-destroy")

        self._logger.info("Applying terraform", destroy=destroy)
        try:
            self._run(args, capture=False)
        finally:
            self._save_state()

    def output(self) -> Metadata:
        """Read the stack outputs."""
        raw = self._run(["output", "-json", "-no-color"])
        try:
            outputs = json.loads(raw or "{}")
        except ValueError as e:
            raise TerraformError(f"Invalid terraform output: {e}", command="output")
        return Metadata.from_terraform_output(outputs)

    def cleanup(self) -> None:
        """Remove the scratch directory."""
        shutil.rmtree(self._workdir, ignore_errors=True)

    def __enter__(self) -> "TerraformClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.cleanup()

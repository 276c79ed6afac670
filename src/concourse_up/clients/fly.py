"""Concourse administrative client using httpx and the fly CLI."""

import shutil
import tempfile
from pathlib import Path
from typing import Any

import httpx
from jinja2 import Environment, BaseLoader

from concourse_up.config import FlyConfig
from concourse_up.core.exceptions import FlyError
from concourse_up.core.logging import StructuredLogger
from concourse_up.core.output import OutputFormatter
from concourse_up.core.process import find_binary, run_command
from concourse_up.core.utils import tail_lines
from concourse_up.deploy.models import Configuration, DeployArgs, FlyCredentials

logger = StructuredLogger(__name__)

SELF_UPDATE_PIPELINE = """\
---
resources:
- name: concourse-up-release
  type: github-release
  source:
    owner: engineerbetter
    repository: concourse-up
    pre_release: true

jobs:
- name: self-update
  serial_groups: [self-update]
  serial: true
  plan:
  - get: concourse-up-release
    trigger: true
  - task: update
    params:
      DEPLOYMENT: {{ args.deployment | tojson }}
      AWS_REGION: {{ config.region | tojson }}
      DOMAIN: {{ args.domain | tojson }}
      WORKERS: {{ args.worker_count | string | tojson }}
      WORKER_SIZE: {{ args.worker_size | tojson }}
      WEB_SIZE: {{ args.web_size | tojson }}
      SELF_UPDATE: "true"
{%- for name, value in env | dictsort %}
      {{ name }}: {{ value | tojson }}
{%- endfor %}
    config:
      platform: linux
      image_resource:
        type: registry-image
        source:
          repository: engineerbetter/pcf-ops
      inputs:
      - name: concourse-up-release
      run:
        path: bash
        args:
        - -c
        - |
          set -eux
          cd concourse-up-release
          chmod +x concourse-up-linux-amd64
          ./concourse-up-linux-amd64 deploy "$DEPLOYMENT"
"""

_jinja_env = Environment(loader=BaseLoader())


def render_pipeline(args: DeployArgs, config: Configuration, env: dict[str, str]) -> str:
    """Render the self-update pipeline for a deployment."""
    template = _jinja_env.from_string(SELF_UPDATE_PIPELINE)
    return template.render(args=args, config=config, env=env)


class FlyClient:
    """Client for a deployed Concourse.

    Probes the API over HTTP and shells out to fly for pipeline management.
    Fly's target file lives in a scratch HOME that `cleanup()` removes.
    """

    def __init__(
        self,
        credentials: FlyCredentials,
        output: OutputFormatter,
        settings: FlyConfig,
        pipeline_env: dict[str, str] | None = None,
    ):
        self._credentials = credentials
        self._output = output
        self._settings = settings
        self._pipeline_env = pipeline_env or {}
        self._client: httpx.Client | None = None
        self._home = Path(tempfile.mkdtemp(prefix="concourse-up-fly-"))
        self._ca_file: Path | None = None

        if credentials.ca_cert:
            self._ca_file = self._home / "ca.pem"
            self._ca_file.write_text(credentials.ca_cert)

    @property
    def client(self) -> httpx.Client:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.Client(
                base_url=self._credentials.api.rstrip("/"),
                verify=str(self._ca_file) if self._ca_file else True,
                timeout=self._settings.timeout,
            )
            logger.debug("Created Concourse client", url=self._credentials.api)
        return self._client

    def can_connect(self) -> bool:
        """Check whether the Concourse API is up and answering."""
        try:
            response = self.client.get("/api/v1/info")
        except httpx.RequestError as e:
            logger.debug("Concourse not reachable", url=self._credentials.api, error=str(e))
            return False
        return response.status_code == 200

    def server_version(self) -> str:
        """Get the version reported by the Concourse API."""
        try:
            response = self.client.get("/api/v1/info")
            response.raise_for_status()
            return str(response.json().get("version", ""))
        except httpx.HTTPStatusError as e:
            raise FlyError(
                f"Failed to get Concourse version: {e}",
                status_code=e.response.status_code,
            )
        except (httpx.RequestError, ValueError) as e:
            raise FlyError(f"Failed to get Concourse version: {e}")

    def _fly(self, args: list[str]) -> str:
        cmd = [find_binary(self._settings.binary, FlyError), *args]
        result = run_command(cmd, FlyError, cwd=str(self._home), env={"HOME": str(self._home)})
        if result.returncode != 0:
            raise FlyError(f"fly {args[0]} failed:\n{tail_lines(result.stderr or '')}")
        return result.stdout or ""

    def fly_version(self) -> str:
        """Get the version of the local fly CLI."""
        return self._fly(["--version"]).strip()

    def _check_versions(self, allow_discrepancy: bool) -> None:
        local, remote = self.fly_version(), self.server_version()
        if local == remote:
            return
        message = f"fly version {local} does not match Concourse version {remote}"
        if not allow_discrepancy:
            raise FlyError(message)
        logger.warning(message)

    def _login(self) -> None:
        creds = self._credentials
        args = [
            "--target",
            creds.target,
            "login",
            "--concourse-url",
            creds.api,
            "--username",
            creds.username,
            "--password",
            creds.password,
        ]
        if self._ca_file:
            args.extend(["--ca-cert", str(self._ca_file)])
        self._fly(args)

    def set_default_pipeline(
        self,
        args: DeployArgs,
        config: Configuration,
        allow_fly_version_discrepancy: bool,
    ) -> None:
        """Install and unpause the self-update pipeline.

        Args:
            args: Arguments of the current deploy, replayed by the pipeline
            config: Deployment configuration
            allow_fly_version_discrepancy: Only warn when fly and Concourse versions differ
        """
        self._check_versions(allow_fly_version_discrepancy)
        self._login()

        pipeline_file = self._home / "pipeline.yml"
        pipeline_file.write_text(render_pipeline(args, config, self._pipeline_env))
        pipeline_file.chmod(0o600)

        target, name = self._credentials.target, self._settings.pipeline_name
        self._fly(
            [
                "--target",
                target,
                "set-pipeline",
                "--non-interactive",
                "--pipeline",
                name,
                "--config",
                str(pipeline_file),
            ]
        )
        self._fly(["--target", target, "unpause-pipeline", "--pipeline", name])
        logger.info("Set default pipeline", target=target, pipeline=name)

    def cleanup(self) -> None:
        """Close the HTTP client and remove fly's scratch HOME."""
        if self._client:
            self._client.close()
            self._client = None
        shutil.rmtree(self._home, ignore_errors=True)

    def __enter__(self) -> "FlyClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.cleanup()

"""BOSH deploy step: director state handling and credhub credentials."""

from contextlib import contextmanager
from typing import Any, Callable, Iterator

import yaml

from concourse_up.core.exceptions import BoshError, ConcourseUpError
from concourse_up.core.logging import StructuredLogger
from concourse_up.core.output import OutputFormatter
from concourse_up.deploy.models import (
    CREDHUB_PORT,
    CREDHUB_USERNAME,
    CREDS_FILENAME,
    STATE_FILENAME,
    Configuration,
    Metadata,
)
from concourse_up.storage import ConfigStore

logger = StructuredLogger(__name__)

BoshClientFactory = Callable[[Configuration, Metadata, OutputFormatter], Any]


class FirstErrorCollector:
    """Runs independent side effects, remembering only the first failure."""

    def __init__(self) -> None:
        self.error: ConcourseUpError | None = None

    def record(self, error: ConcourseUpError) -> None:
        if self.error is None:
            self.error = error
        else:
            logger.warning("Suppressed follow-up error", error=str(error))

    @contextmanager
    def attempt(self) -> Iterator[None]:
        """Run a block, recording a ConcourseUpError instead of raising it."""
        try:
            yield
        except ConcourseUpError as e:
            self.record(e)

    def raise_first(self) -> None:
        if self.error is not None:
            raise self.error


def load_asset_if_present(store: ConfigStore, name: str) -> bytes:
    """Load an asset, returning empty bytes when it has never been stored."""
    if not store.has_asset(name):
        return b""
    return store.load_asset(name)


def parse_credhub_creds(creds: bytes) -> tuple[str, str]:
    """Extract the credhub CLI password and CA certificate from the vars store.

    Returns:
        (password, ca certificate)
    """
    try:
        data = yaml.safe_load(creds or b"") or {}
    except yaml.YAMLError as e:
        raise BoshError(f"Failed to parse director credentials: {e}")
    if not isinstance(data, dict):
        raise BoshError("Failed to parse director credentials: not a mapping")

    tls = data.get("credhub-tls") or {}
    ca = tls.get("ca", "") if isinstance(tls, dict) else ""
    return str(data.get("credhub_cli_password") or ""), str(ca or "")


class DirectorDeployer:
    """Deploys via BOSH, carrying the director state and creds between runs."""

    def __init__(
        self,
        store: ConfigStore,
        bosh_client_factory: BoshClientFactory,
        output: OutputFormatter,
    ):
        self._store = store
        self._factory = bosh_client_factory
        self._output = output

    def deploy(self, config: Configuration, metadata: Metadata, detach: bool) -> Configuration:
        """Run the BOSH deploy and record the credhub details on `config`.

        The returned state and creds are stored even when the deploy fails;
        the first error of {deploy, store state, store creds} is raised.
        """
        with self._factory(config, metadata, self._output) as bosh:
            state = load_asset_if_present(self._store, STATE_FILENAME)
            creds = load_asset_if_present(self._store, CREDS_FILENAME)

            errors = FirstErrorCollector()
            try:
                state, creds = bosh.deploy(state, creds, detach)
            except BoshError as e:
                errors.record(e)
                state = e.state if e.state is not None else state
                creds = e.creds if e.creds is not None else creds

            with errors.attempt():
                self._store.store_asset(STATE_FILENAME, state)
            with errors.attempt():
                self._store.store_asset(CREDS_FILENAME, creds)
            errors.raise_first()

        password, ca_cert = parse_credhub_creds(creds)
        config.credhub_password = password
        config.credhub_ca_cert = ca_cert
        config.credhub_url = f"https://{metadata.atc_public_ip}:{CREDHUB_PORT}/"
        config.credhub_username = CREDHUB_USERNAME

        logger.info("BOSH deploy finished", deployment=config.deployment, detached=detach)
        return config

"""Persistent storage for deployment configuration and director assets."""

import json
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from concourse_up.certs import generate_ssh_key_pair
from concourse_up.core.exceptions import StorageError
from concourse_up.core.logging import StructuredLogger
from concourse_up.core.utils import generate_password, sanitize_name
from concourse_up.deploy.models import (
    CONFIG_FILENAME,
    DB_SIZES,
    Configuration,
    DeployArgs,
)

logger = StructuredLogger(__name__)

AWS_REGION_PATTERN = r"[a-z]{2}(?:-gov)?-(?:north|south|east|west|central|northeast|southeast|northwest|southwest)-\d"


def deployment_name(project: str) -> str:
    """BOSH deployment / resource name for a project."""
    return f"concourse-up-{project}"


def new_configuration(args: DeployArgs) -> Configuration:
    """Build the initial configuration for a project that has never been deployed."""
    public_key, private_key = generate_ssh_key_pair()

    return Configuration(
        project=args.deployment,
        deployment=deployment_name(args.deployment),
        region=args.aws_region,
        availability_zone=f"{args.aws_region}a",
        concourse_worker_count=args.worker_count,
        concourse_worker_size=args.worker_size,
        concourse_web_size=args.web_size,
        rds_instance_class=DB_SIZES[args.db_size],
        concourse_username="admin",
        concourse_password=generate_password(),
        director_username="admin",
        director_password=generate_password(),
        rds_username=f"admin{generate_password(7)}",
        rds_password=generate_password(),
        encryption_key=generate_password(32),
        public_key=public_key,
        private_key=private_key,
    )


class ConfigStore(ABC):
    """Stores one deployment's configuration and opaque director assets."""

    @abstractmethod
    def has_asset(self, name: str) -> bool:
        """Check whether an asset exists."""
        pass

    @abstractmethod
    def load_asset(self, name: str) -> bytes:
        """Load an asset's contents."""
        pass

    @abstractmethod
    def store_asset(self, name: str, contents: bytes) -> None:
        """Write an asset, replacing any previous contents."""
        pass

    def load(self) -> Configuration:
        """Load the stored configuration."""
        raw = self.load_asset(CONFIG_FILENAME)
        try:
            return Configuration.from_dict(json.loads(raw))
        except (ValueError, TypeError) as e:
            raise StorageError(f"Stored configuration is corrupt: {e}", key=CONFIG_FILENAME)

    def update(self, config: Configuration) -> None:
        """Persist the configuration."""
        self.store_asset(CONFIG_FILENAME, json.dumps(config.to_dict(), indent=2).encode())
        logger.debug("Saved configuration", deployment=config.deployment)

    def load_or_create(self, args: DeployArgs) -> tuple[Configuration, bool]:
        """Load the configuration, creating it on first deploy.

        Returns:
            (configuration, created) where created is True for a new deployment
        """
        if self.has_asset(CONFIG_FILENAME):
            return self.load(), False

        config = new_configuration(args)
        self.update(config)
        logger.info("Created new configuration", deployment=config.deployment)
        return config, True


class LocalConfigStore(ConfigStore):
    """Keep deployment state in a directory on the local machine."""

    def __init__(self, root: str | Path, project: str):
        """Initialize the store.

        Args:
            root: Directory holding all deployments
            project: Deployment (project) name
        """
        self._dir = Path(root) / sanitize_name(project)
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create state directory {self._dir}: {e}")

    @property
    def path(self) -> Path:
        return self._dir

    def has_asset(self, name: str) -> bool:
        return (self._dir / name).exists()

    def load_asset(self, name: str) -> bytes:
        try:
            return (self._dir / name).read_bytes()
        except OSError as e:
            raise StorageError(f"Failed to load {name}: {e}", key=name)

    def store_asset(self, name: str, contents: bytes) -> None:
        path = self._dir / name
        tmp = path.with_suffix(path.suffix + ".tmp")
        try:
            tmp.write_bytes(contents or b"")
            tmp.replace(path)
        except OSError as e:
            raise StorageError(f"Failed to store {name}: {e}", key=name)


class S3ConfigStore(ConfigStore):
    """Keep deployment state in a per-deployment S3 bucket."""

    def __init__(self, s3_client: Any, project: str, region: str):
        """Initialize the store.

        Args:
            s3_client: boto3 S3 client for the deployment's region
            project: Deployment (project) name
            region: AWS region the deployment lives in
        """
        self._s3 = s3_client
        self._region = region
        self._prefix = deployment_name(sanitize_name(project))
        self._bucket = f"{self._prefix}-{region}-config"
        self._bucket_ready = False

    @property
    def bucket(self) -> str:
        return self._bucket

    def _ensure_bucket(self) -> None:
        if self._bucket_ready:
            return
        try:
            self._s3.head_bucket(Bucket=self._bucket)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code not in ("404", "NoSuchBucket", "NotFound"):
                raise StorageError(f"Cannot access bucket {self._bucket}: {e}")
            existing = self._find_existing_bucket()
            if existing is None:
                self._create_bucket()
            else:
                # A project keeps its first bucket when deployed to another region
                logger.info("Found config bucket in another region", bucket=existing)
                self._bucket = existing
        except BotoCoreError as e:
            raise StorageError(f"Cannot access bucket {self._bucket}: {e}")
        self._bucket_ready = True

    def _find_existing_bucket(self) -> str | None:
        """Find this project's config bucket created for any region."""
        pattern = re.compile(rf"^{re.escape(self._prefix)}-{AWS_REGION_PATTERN}-config$")
        try:
            buckets = self._s3.list_buckets().get("Buckets", [])
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to list buckets: {e}")
        matches = sorted(b["Name"] for b in buckets if pattern.match(b["Name"]))
        return matches[0] if matches else None

    def _create_bucket(self) -> None:
        kwargs: dict[str, Any] = {"Bucket": self._bucket}
        if self._region != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self._region}
        try:
            self._s3.create_bucket(**kwargs)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to create bucket {self._bucket}: {e}")
        logger.info("Created config bucket", bucket=self._bucket)

    def has_asset(self, name: str) -> bool:
        self._ensure_bucket()
        try:
            self._s3.head_object(Bucket=self._bucket, Key=name)
            return True
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in ("404", "NoSuchKey", "NotFound"):
                return False
            raise StorageError(f"Failed to check {name}: {e}", key=name)
        except BotoCoreError as e:
            raise StorageError(f"Failed to check {name}: {e}", key=name)

    def load_asset(self, name: str) -> bytes:
        self._ensure_bucket()
        try:
            response = self._s3.get_object(Bucket=self._bucket, Key=name)
            return response["Body"].read()
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to load {name}: {e}", key=name)

    def store_asset(self, name: str, contents: bytes) -> None:
        self._ensure_bucket()
        try:
            self._s3.put_object(Bucket=self._bucket, Key=name, Body=contents or b"")
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to store {name}: {e}", key=name)

"""Persistence for the subscription collection.

The whole collection lives in one JSON document that is read in full and
overwritten in full. There is no version token on the document, so two
invocations that load, mutate and save concurrently race and the last save
wins.
"""
import asyncio
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Union

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError

from config import Settings
from schemas.subscriptions import SubscriptionState, utcnow
from services.errors import StateDecodeError, StorageConfigurationError, StorageError

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def decode_state(raw: Union[bytes, str]) -> SubscriptionState:
    """Parse a persisted document, tolerating a null subscriptions map."""
    try:
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("state document must be a JSON object")
        if data.get("subscriptions") is None:
            data["subscriptions"] = {}
        return SubscriptionState.model_validate(data)
    except (ValueError, ValidationError) as e:
        raise StateDecodeError(f"failed to unmarshal state: {e}") from e


class SubscriptionStore(ABC):
    """Loads and saves the subscription collection as a single document."""

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or utcnow

    @abstractmethod
    async def _read(self) -> Optional[bytes]:
        """Return the raw document, or None if it does not exist."""

    @abstractmethod
    async def _write(self, data: bytes) -> None:
        """Overwrite the raw document."""

    async def load(self) -> SubscriptionState:
        raw = await self._read()
        if raw is None:
            return SubscriptionState.empty(self.clock())
        return decode_state(raw)

    async def save(self, state: SubscriptionState) -> None:
        state.metadata.last_updated = self.clock()
        if not state.metadata.version:
            state.metadata.version = "1.0"
        await self._write(state.to_document().encode("utf-8"))

    def close(self) -> None:
        pass


class S3SubscriptionStore(SubscriptionStore):
    """Subscription document stored as one S3 object."""

    def __init__(
        self,
        bucket_name: Optional[str],
        object_key: str = "subscriptions/state.json",
        region: str = "us-east-1",
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        s3_client=None,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize S3-backed store.

        Args:
            bucket_name: S3 bucket holding the state document
            object_key: Key of the state document within the bucket
            region: AWS region
            access_key: AWS access key (optional, uses boto3 defaults if not provided)
            secret_key: AWS secret key (optional, uses boto3 defaults if not provided)
            s3_client: Pre-built client, mainly for tests

        The bucket is checked on first use, so a missing bucket surfaces as
        StorageConfigurationError from load() or save().
        """
        super().__init__(clock)
        self.bucket_name = bucket_name
        self.object_key = object_key
        self.region = region
        self._access_key = access_key
        self._secret_key = secret_key
        self._s3_client = s3_client

    @property
    def s3_client(self):
        if not self.bucket_name:
            raise StorageConfigurationError("SUBSCRIPTION_BUCKET environment variable not set")
        if self._s3_client is None:
            config = Config(
                region_name=self.region,
                retries={'max_attempts': 3, 'mode': 'standard'}
            )
            try:
                if self._access_key and self._secret_key:
                    self._s3_client = boto3.client(
                        's3',
                        aws_access_key_id=self._access_key,
                        aws_secret_access_key=self._secret_key,
                        config=config
                    )
                else:
                    # Default credential chain (env, ~/.aws/credentials or IAM role)
                    self._s3_client = boto3.client('s3', config=config)
            except BotoCoreError as e:
                raise StorageError(f"failed to create storage client: {e}") from e
            logger.info(f"S3SubscriptionStore initialized with s3://{self.bucket_name}/{self.object_key}")
        return self._s3_client

    def _get_object(self) -> Optional[bytes]:
        s3_client = self.s3_client
        try:
            response = s3_client.get_object(Bucket=self.bucket_name, Key=self.object_key)
            return response['Body'].read()
        except ClientError as e:
            code = e.response.get('Error', {}).get('Code')
            if code in ('NoSuchKey', '404', 'NotFound'):
                return None
            logger.error(f"Failed to read subscription state from S3: {e}")
            raise StorageError(f"failed to get storage object: {e}") from e
        except BotoCoreError as e:
            logger.error(f"Failed to read subscription state from S3: {e}")
            raise StorageError(f"failed to get storage object: {e}") from e

    def _put_object(self, data: bytes) -> None:
        s3_client = self.s3_client
        try:
            s3_client.put_object(
                Bucket=self.bucket_name,
                Key=self.object_key,
                Body=data,
                ContentType='application/json',
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to write subscription state to S3: {e}")
            raise StorageError(f"failed to put storage object: {e}") from e

    async def _read(self) -> Optional[bytes]:
        return await asyncio.to_thread(self._get_object)

    async def _write(self, data: bytes) -> None:
        await asyncio.to_thread(self._put_object, data)

    def close(self) -> None:
        if self._s3_client is not None:
            self._s3_client.close()


class LocalSubscriptionStore(SubscriptionStore):
    """Subscription document stored as a JSON file on local disk."""

    def __init__(self, path: Optional[str], clock: Optional[Clock] = None):
        super().__init__(clock)
        self.path = Path(path) if path else None

    def _require_path(self) -> Path:
        if self.path is None:
            raise StorageConfigurationError("LOCAL_STATE_PATH environment variable not set")
        return self.path

    def _read_file(self) -> Optional[bytes]:
        self._require_path()
        try:
            return self.path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"failed to read state file {self.path}: {e}") from e

    def _write_file(self, data: bytes) -> None:
        self._require_path()
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".state-", suffix=".json")
            try:
                with os.fdopen(fd, 'wb') as f:
                    f.write(data)
                os.replace(tmp_path, self.path)
            except BaseException:
                os.unlink(tmp_path)
                raise
        except OSError as e:
            raise StorageError(f"failed to write state file {self.path}: {e}") from e

    async def _read(self) -> Optional[bytes]:
        return await asyncio.to_thread(self._read_file)

    async def _write(self, data: bytes) -> None:
        await asyncio.to_thread(self._write_file, data)


class InMemorySubscriptionStore(SubscriptionStore):
    """Process-local store holding the serialized document.

    Counts loads and saves, and can be told to fail either call.
    """

    def __init__(self, initial: Optional[SubscriptionState] = None, clock: Optional[Clock] = None):
        super().__init__(clock)
        self.document: Optional[bytes] = initial.to_document().encode("utf-8") if initial else None
        self.load_calls = 0
        self.save_calls = 0
        self.load_error: Optional[Exception] = None
        self.save_error: Optional[Exception] = None

    async def _read(self) -> Optional[bytes]:
        self.load_calls += 1
        if self.load_error is not None:
            raise self.load_error
        return self.document

    async def _write(self, data: bytes) -> None:
        self.save_calls += 1
        if self.save_error is not None:
            raise self.save_error
        self.document = data

    def reset(self) -> None:
        self.document = None
        self.load_calls = 0
        self.save_calls = 0
        self.load_error = None
        self.save_error = None


STORAGE_TYPES = ('s3', 'local', 'memory')


def check_storage_type(storage_type: Optional[str]) -> str:
    """Normalize STORAGE_TYPE, rejecting unknown values."""
    normalized = (storage_type or 's3').lower()
    if normalized not in STORAGE_TYPES:
        raise StorageConfigurationError(f"Unknown storage type: {storage_type}")
    return normalized


def get_subscription_store(settings: Settings, clock: Optional[Clock] = None) -> SubscriptionStore:
    """
    Build the subscription store selected by configuration.

    Returns:
        SubscriptionStore for the configured STORAGE_TYPE

    Raises:
        StorageConfigurationError: If the storage type is unknown
    """
    storage_type = check_storage_type(settings.storage_type)

    if storage_type == 's3':
        logger.info("Using S3 subscription store")
        return S3SubscriptionStore(
            bucket_name=settings.subscription_bucket,
            object_key=settings.subscription_object_key,
            region=settings.aws_region,
            access_key=settings.aws_access_key_id,
            secret_key=settings.aws_secret_access_key,
            clock=clock,
        )
    if storage_type == 'local':
        logger.info("Using local subscription store")
        return LocalSubscriptionStore(settings.local_state_path, clock=clock)
    logger.info("Using in-memory subscription store")
    return InMemorySubscriptionStore(clock=clock)


from __future__ import annotations

import logging

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from starlette.concurrency import run_in_threadpool

from saaskit.core.settings import Settings
from saaskit.services.status import ProviderNotConfiguredError, ServiceConfigStatus, missing_settings
from saaskit.services.storage.base import StorageService

logger = logging.getLogger(__name__)

SERVICE_NAME = "Storage (DigitalOcean Spaces)"


class SpacesStorageService(StorageService):
    def __init__(self, settings: Settings):
        self.bucket = settings.spaces_bucket_name
        self.region = settings.spaces_region
        self._missing = missing_settings(
            {
                "SPACES_KEY_ID": settings.spaces_key_id,
                "SPACES_KEY_SECRET": settings.spaces_key_secret,
                "SPACES_BUCKET_NAME": settings.spaces_bucket_name,
                "SPACES_REGION": settings.spaces_region,
            }
        )
        self.client = None
        if not self._missing:
            self.client = boto3.client(
                "s3",
                region_name=self.region,
                endpoint_url=f"https://{self.region}.digitaloceanspaces.com",
                aws_access_key_id=settings.spaces_key_id,
                aws_secret_access_key=settings.spaces_key_secret,
            )

    def _require_client(self):
        if self.client is None:
            raise ProviderNotConfiguredError(SERVICE_NAME, self._missing)
        return self.client

    @staticmethod
    def _key(user_id: str, file_name: str) -> str:
        return f"uploads/{user_id}/{file_name}"

    async def upload_file(
        self, user_id: str, file_name: str, data: bytes, content_type: str | None = None, acl: str = "private"
    ) -> str:
        client = self._require_client()
        extra = {"ACL": acl}
        if content_type:
            extra["ContentType"] = content_type
        await run_in_threadpool(
            client.put_object, Bucket=self.bucket, Key=self._key(user_id, file_name), Body=data, **extra
        )
        logger.info("storage.uploaded user_id=%s file=%s bytes=%s", user_id, file_name, len(data))
        return file_name

    async def get_file_url(self, user_id: str, file_name: str, expires_in: int = 3600) -> str:
        client = self._require_client()
        return await run_in_threadpool(
            client.generate_presigned_url,
            "get_object",
            Params={"Bucket": self.bucket, "Key": self._key(user_id, file_name)},
            ExpiresIn=expires_in,
        )

    async def delete_file(self, user_id: str, file_name: str) -> None:
        client = self._require_client()
        await run_in_threadpool(client.delete_object, Bucket=self.bucket, Key=self._key(user_id, file_name))

    async def check_configuration(self) -> ServiceConfigStatus:
        if self._missing:
            return ServiceConfigStatus(
                name=SERVICE_NAME,
                configured=False,
                connected=False,
                required=self.required,
                config_to_review=list(self._missing),
                error=f"Missing required configuration: {', '.join(self._missing)}",
            )
        return ServiceConfigStatus(name=SERVICE_NAME, configured=True, required=self.required)

    async def check_connection(self) -> ServiceConfigStatus:
        client = self._require_client()
        try:
            await run_in_threadpool(client.head_bucket, Bucket=self.bucket)
        except (BotoCoreError, ClientError) as exc:
            logger.warning("storage.ping_failed bucket=%s error=%s", self.bucket, exc)
            return ServiceConfigStatus(
                name=SERVICE_NAME,
                configured=True,
                connected=False,
                required=self.required,
                config_to_review=["SPACES_KEY_ID", "SPACES_KEY_SECRET", "SPACES_BUCKET_NAME", "SPACES_REGION"],
                error="Connection error: failed to reach the bucket",
            )
        return ServiceConfigStatus(name=SERVICE_NAME, configured=True, connected=True, required=self.required)

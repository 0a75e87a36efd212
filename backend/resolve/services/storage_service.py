# resolve/services/storage_service.py

import os
from pathlib import Path
from typing import Optional

import boto3
from botocore.exceptions import ClientError

from resolve.core.config import settings
from resolve.core.logger import logger
from resolve.utils.exceptions import NotFoundError, UpstreamError


class StorageService:
    """
    File/document store. STORAGE_PROVIDER=local writes under LOCAL_STORAGE_DIR;
    STORAGE_PROVIDER=s3 uses the configured bucket.
    """

    def __init__(self):
        self.provider = (settings.STORAGE_PROVIDER or "local").strip().lower()
        self.bucket = settings.S3_BUCKET_NAME
        self.root = Path(settings.LOCAL_STORAGE_DIR)
        self._s3_client = None

    @property
    def s3_client(self):
        if self._s3_client is None:
            self._s3_client = boto3.client(
                's3',
                region_name=settings.AWS_REGION,
                aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
                aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None,
            )
        return self._s3_client

    def _local_path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise ValueError(f"Invalid storage key: {key}")
        return path

    def store(self, data: bytes, key: str, content_type: str = "application/octet-stream") -> str:
        """Persist bytes under key and return a URL/path for it."""
        if self.provider == "s3":
            try:
                self.s3_client.put_object(
                    Bucket=self.bucket,
                    Key=key,
                    Body=data,
                    ContentType=content_type,
                )
            except ClientError as e:
                logger.error("S3 upload failed for %s: %s", key, e)
                raise UpstreamError("File storage", str(e)) from e
            logger.info("Stored %s bytes at s3://%s/%s", len(data), self.bucket, key)
            return f"s3://{self.bucket}/{key}"

        path = self._local_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        logger.info("Stored %s bytes at %s", len(data), path)
        return str(path)

    def fetch(self, key: str) -> bytes:
        if self.provider == "s3":
            try:
                obj = self.s3_client.get_object(Bucket=self.bucket, Key=key)
            except ClientError as e:
                code = e.response.get("Error", {}).get("Code")
                if code in ("NoSuchKey", "404"):
                    raise NotFoundError("File", key) from e
                logger.error("S3 download failed for %s: %s", key, e)
                raise UpstreamError("File storage", str(e)) from e
            return obj["Body"].read()

        path = self._local_path(key)
        if not path.exists():
            raise NotFoundError("File", key)
        return path.read_bytes()

    def delete(self, key: str) -> None:
        if self.provider == "s3":
            try:
                self.s3_client.delete_object(Bucket=self.bucket, Key=key)
            except ClientError as e:
                logger.warning("S3 delete failed for %s: %s", key, e)
            return

        path = self._local_path(key)
        if path.exists():
            os.remove(path)

    def download_url(self, key: str, expires_in: int = 3600) -> Optional[str]:
        """Pre-signed GET URL for S3; None for local storage (served by the API)."""
        if self.provider != "s3":
            return None
        try:
            return self.s3_client.generate_presigned_url(
                'get_object',
                Params={'Bucket': self.bucket, 'Key': key},
                ExpiresIn=expires_in,
            )
        except ClientError as e:
            logger.error("Failed to generate download URL for %s: %s", key, e)
            return None


storage_service = StorageService()

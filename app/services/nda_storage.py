import logging
import re
import uuid

import boto3
from botocore.config import Config

from app.config import settings

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^\w.\-]")


class StorageService:
    @staticmethod
    def is_configured() -> bool:
        return bool(
            settings.s3_endpoint_url
            and settings.s3_access_key
            and settings.s3_secret_key
        )

    @staticmethod
    def _get_client():  # type: ignore[return]
        if not StorageService.is_configured():
            raise RuntimeError(
                "S3 storage is not configured. "
                "Set S3_ENDPOINT_URL, S3_ACCESS_KEY, and S3_SECRET_KEY."
            )
        return boto3.client(
            "s3",
            endpoint_url=settings.s3_endpoint_url,
            aws_access_key_id=settings.s3_access_key,
            aws_secret_access_key=settings.s3_secret_key,
            region_name=settings.s3_region,
            config=Config(
                signature_version="s3v4",
                connect_timeout=settings.s3_connect_timeout,
                read_timeout=settings.s3_read_timeout,
                retries={"max_attempts": 2},
            ),
        )

    @staticmethod
    def safe_file_name(file_name: str | None) -> str:
        name = (file_name or "").strip() or "signed-nda.pdf"
        return _UNSAFE_FILENAME_CHARS.sub("_", name)

    @staticmethod
    def generate_storage_key(request_id: str, file_name: str | None) -> str:
        unique = uuid.uuid4().hex[:12]
        safe_name = StorageService.safe_file_name(file_name)
        return f"signed/{request_id}/{unique}/{safe_name}"

    @staticmethod
    def put_object(storage_key: str, content: bytes, mime_type: str) -> None:
        client = StorageService._get_client()
        client.put_object(
            Bucket=settings.s3_bucket_name,
            Key=storage_key,
            Body=content,
            ContentType=mime_type,
        )
        logger.info("Stored object %s (%d bytes)", storage_key, len(content))

    @staticmethod
    def delete_object(storage_key: str) -> None:
        client = StorageService._get_client()
        client.delete_object(Bucket=settings.s3_bucket_name, Key=storage_key)
        logger.info("Deleted object %s", storage_key)

    @staticmethod
    def generate_download_url(
        storage_key: str, expires_in: int, bucket: str | None = None
    ) -> str:
        client = StorageService._get_client()
        url: str = client.generate_presigned_url(
            "get_object",
            Params={
                "Bucket": bucket or settings.s3_bucket_name,
                "Key": storage_key,
            },
            ExpiresIn=expires_in,
        )
        return url

    @staticmethod
    def generate_template_url(expires_in: int) -> str:
        return StorageService.generate_download_url(
            settings.nda_template_key,
            expires_in,
            bucket=settings.s3_template_bucket_name,
        )


storage = StorageService()

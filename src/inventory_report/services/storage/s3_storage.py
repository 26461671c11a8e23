"""S3-compatible storage backend using boto3."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from inventory_report.utils.exceptions import (
    ConfigurationError,
    ErrorCode,
    StorageError,
)
from inventory_report.utils.logging import get_logger

if TYPE_CHECKING:
    from inventory_report.config import Settings

logger = get_logger(__name__)

# S3 error codes (ClientError.response["Error"]["Code"]) -> reason, hint
_CLIENT_ERRORS: dict[str, tuple[ErrorCode, str]] = {
    "InvalidAccessKeyId": (
        ErrorCode.STORAGE_AUTH_FAILED,
        "Access key id is not recognised by the endpoint. Check the credentials "
        "and that the endpoint URL does not include the bucket name.",
    ),
    "SignatureDoesNotMatch": (
        ErrorCode.STORAGE_AUTH_FAILED,
        "Secret access key does not match the access key id.",
    ),
    "NoSuchBucket": (
        ErrorCode.STORAGE_BUCKET_NOT_FOUND,
        "Bucket does not exist. Check the S3 bucket name.",
    ),
    "AccessDenied": (
        ErrorCode.STORAGE_ACCESS_DENIED,
        "Credentials lack permission to write to the bucket.",
    ),
    "NotImplemented": (
        ErrorCode.STORAGE_UNSUPPORTED_FEATURE,
        "The endpoint rejected a request feature. S3-compatible stores may not "
        "support every header the SDK sends.",
    ),
}


class S3Storage:
    """Upload reports to an S3-compatible bucket and return a presigned URL.

    Uses virtual-hosted-style addressing against a custom endpoint. No
    server-side encryption or storage class headers are sent, since many
    S3-compatible stores reject them.
    """

    name = "s3"

    def __init__(
        self,
        endpoint_url: str,
        bucket_name: str,
        access_key_id: str,
        secret_access_key: str,
        region: str = "auto",
        presign_expiry_seconds: int = 3600,
        client: Any | None = None,
    ) -> None:
        self.endpoint_url = endpoint_url.rstrip("/")
        self.bucket_name = bucket_name
        self.region = region
        self.presign_expiry_seconds = presign_expiry_seconds
        self._access_key_id = access_key_id
        self._secret_access_key = secret_access_key
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> S3Storage:
        return cls(
            endpoint_url=settings.s3_endpoint_url,
            bucket_name=settings.s3_bucket_name,
            access_key_id=settings.s3_access_key_id.get_secret_value(),
            secret_access_key=settings.s3_secret_access_key.get_secret_value(),
            region=settings.s3_region,
            presign_expiry_seconds=settings.s3_presign_expiry_seconds,
        )

    def _get_client(self) -> Any:
        if self._client is not None:
            return self._client

        required = {
            "s3_endpoint_url": self.endpoint_url,
            "s3_access_key_id": self._access_key_id,
            "s3_secret_access_key": self._secret_access_key,
            "s3_bucket_name": self.bucket_name,
        }
        for setting, value in required.items():
            if not value.strip():
                raise ConfigurationError(f"S3 {setting} is not configured", setting=setting)

        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint_url,
            region_name=self.region,
            aws_access_key_id=self._access_key_id,
            aws_secret_access_key=self._secret_access_key,
            config=Config(
                signature_version="s3v4",
                s3={"addressing_style": "virtual"},
            ),
        )
        logger.info(
            "S3 client configured",
            endpoint=self.endpoint_url,
            bucket=self.bucket_name,
        )
        return self._client

    def upload(self, content: bytes, file_name: str, content_type: str) -> str:
        """Put the object and return a presigned GET URL.

        Raises:
            ConfigurationError: If endpoint, bucket or credentials are missing.
            StorageError: If the upload or URL signing fails.
        """
        client = self._get_client()
        logger.info(
            "Uploading file to S3",
            file_name=file_name,
            bucket=self.bucket_name,
            size_bytes=len(content),
        )

        start = time.perf_counter()
        try:
            client.put_object(
                Bucket=self.bucket_name,
                Key=file_name,
                Body=content,
                ContentType=content_type,
            )
            url: str = client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket_name, "Key": file_name},
                ExpiresIn=self.presign_expiry_seconds,
            )
        except ClientError as e:
            error = self._translate_client_error(e, file_name)
            self._log_failure(start, error)
            raise error from e
        except BotoCoreError as e:
            error = StorageError(
                f"Failed to reach S3 endpoint {self.endpoint_url}: {e}",
                reason=ErrorCode.STORAGE_UNAVAILABLE,
                file_name=file_name,
                bucket=self.bucket_name,
                hint="Check the endpoint URL and network connectivity.",
            )
            self._log_failure(start, error)
            raise error from e

        logger.log_call(
            "s3",
            "put_object",
            time.perf_counter() - start,
            file_name=file_name,
            expires_in=self.presign_expiry_seconds,
        )
        return url

    def _translate_client_error(self, error: ClientError, file_name: str) -> StorageError:
        code = error.response.get("Error", {}).get("Code", "")
        reason, hint = _CLIENT_ERRORS.get(
            code, (ErrorCode.STORAGE_ERROR, "Unexpected S3 error.")
        )
        return StorageError(
            f"Failed to upload {file_name} to S3 bucket '{self.bucket_name}' "
            f"at {self.endpoint_url}",
            reason=reason,
            file_name=file_name,
            bucket=self.bucket_name,
            provider_code=code or None,
            hint=hint,
        )

    @staticmethod
    def _log_failure(start: float, error: StorageError) -> None:
        logger.log_call(
            "s3",
            "put_object",
            time.perf_counter() - start,
            success=False,
            error_message=error.message,
            error_code=error.error_code.value,
        )

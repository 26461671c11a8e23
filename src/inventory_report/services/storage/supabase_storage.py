"""Supabase Storage backend over its REST API using httpx."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING
from urllib.parse import quote

import httpx

from inventory_report.utils.exceptions import (
    ConfigurationError,
    ErrorCode,
    StorageError,
)
from inventory_report.utils.logging import get_logger

if TYPE_CHECKING:
    from inventory_report.config import Settings

logger = get_logger(__name__)

# Supabase storage reports its own statusCode in the JSON error body
_STATUS_ERRORS: dict[str, tuple[ErrorCode, str]] = {
    "401": (
        ErrorCode.STORAGE_AUTH_FAILED,
        "API key rejected. The service role key must be a JWT "
        "(three dot-separated parts), not an S3 secret key.",
    ),
    "403": (
        ErrorCode.STORAGE_ACCESS_DENIED,
        "Row-level security rejected the upload. Use the service role key or "
        "add a bucket policy that allows inserts.",
    ),
    "404": (
        ErrorCode.STORAGE_BUCKET_NOT_FOUND,
        "Bucket does not exist. Check the Supabase bucket name.",
    ),
}

_AUTH_ERROR_NAMES = {"InvalidJWT", "Unauthorized"}


class SupabaseStorage:
    """Upload reports to a Supabase Storage bucket and return the public URL."""

    name = "supabase"

    def __init__(
        self,
        url: str,
        api_key: str,
        bucket_name: str,
        client: httpx.Client | None = None,
        timeout_seconds: float = 60.0,
    ) -> None:
        self.url = url.rstrip("/")
        self.bucket_name = bucket_name
        self.timeout_seconds = timeout_seconds
        self._api_key = api_key
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> SupabaseStorage:
        return cls(
            url=settings.supabase_url,
            api_key=settings.get_supabase_key(),
            bucket_name=settings.supabase_bucket_name,
        )

    def object_url(self, file_name: str) -> str:
        return f"{self.url}/storage/v1/object/{self.bucket_name}/{quote(file_name)}"

    def public_url(self, file_name: str) -> str:
        return (
            f"{self.url}/storage/v1/object/public/{self.bucket_name}/{quote(file_name)}"
        )

    def _validate(self) -> None:
        if not self.url.strip():
            raise ConfigurationError(
                "Supabase URL is not configured", setting="supabase_url"
            )
        if not self._api_key.strip():
            raise ConfigurationError(
                "Either Supabase anon key or service role key must be configured",
                setting="supabase_service_role_key",
            )
        if not self.bucket_name.strip():
            raise ConfigurationError(
                "Supabase bucket name is not configured",
                setting="supabase_bucket_name",
            )

    def upload(self, content: bytes, file_name: str, content_type: str) -> str:
        """Upload (upserting) the object and return its public URL.

        Raises:
            ConfigurationError: If URL, key or bucket are missing.
            StorageError: If the request fails or Supabase rejects it.
        """
        self._validate()
        logger.info(
            "Uploading file to Supabase",
            file_name=file_name,
            bucket=self.bucket_name,
            size_bytes=len(content),
        )

        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "apikey": self._api_key,
            "Content-Type": content_type,
            "x-upsert": "true",
        }

        start = time.perf_counter()
        try:
            if self._client is not None:
                response = self._client.post(
                    self.object_url(file_name), content=content, headers=headers
                )
            else:
                with httpx.Client(timeout=self.timeout_seconds) as client:
                    response = client.post(
                        self.object_url(file_name), content=content, headers=headers
                    )
        except httpx.HTTPError as e:
            error = StorageError(
                f"Failed to reach Supabase at {self.url}: {e}",
                reason=ErrorCode.STORAGE_UNAVAILABLE,
                file_name=file_name,
                bucket=self.bucket_name,
                hint="Check the Supabase URL and network connectivity.",
            )
            self._log_failure(start, error)
            raise error from e

        if response.is_error:
            error = self._translate_response(response, file_name)
            self._log_failure(start, error)
            raise error

        public_url = self.public_url(file_name)
        logger.log_call(
            "supabase",
            "upload",
            time.perf_counter() - start,
            file_name=file_name,
            url=public_url,
        )
        return public_url

    def _translate_response(
        self, response: httpx.Response, file_name: str
    ) -> StorageError:
        message = (
            f"Failed to upload {file_name} to Supabase bucket '{self.bucket_name}' "
            f"(HTTP {response.status_code})"
        )
        try:
            payload = response.json()
        except ValueError:
            payload = None

        if not isinstance(payload, dict):
            return StorageError(
                message,
                reason=ErrorCode.STORAGE_BAD_RESPONSE,
                file_name=file_name,
                bucket=self.bucket_name,
                provider_code=str(response.status_code),
                hint="Supabase returned a non-JSON response. Check the project "
                "URL, the API key and that the bucket exists.",
            )

        status_code = str(payload.get("statusCode") or response.status_code)
        error_name = str(payload.get("error") or "")
        if error_name in _AUTH_ERROR_NAMES:
            status_code = "401" if status_code not in _STATUS_ERRORS else status_code

        reason, hint = _STATUS_ERRORS.get(
            status_code, (ErrorCode.STORAGE_ERROR, "Unexpected Supabase storage error.")
        )
        details = {"provider_message": payload["message"]} if payload.get("message") else None
        return StorageError(
            message,
            reason=reason,
            file_name=file_name,
            bucket=self.bucket_name,
            provider_code=error_name or status_code,
            hint=hint,
            details=details,
        )

    @staticmethod
    def _log_failure(start: float, error: StorageError) -> None:
        logger.log_call(
            "supabase",
            "upload",
            time.perf_counter() - start,
            success=False,
            error_message=error.message,
            error_code=error.error_code.value,
        )

"""Tests for the S3 and Supabase storage backends."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any
from unittest.mock import MagicMock

import httpx
import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from inventory_report.config import Settings
from inventory_report.services.storage import (
    S3Storage,
    SupabaseStorage,
    build_storage_backend,
)
from inventory_report.services.workbook_adapter import XLSX_CONTENT_TYPE
from inventory_report.utils.exceptions import (
    ConfigurationError,
    ErrorCode,
    StorageError,
)

FILE_NAME = "InventoryReport_20240102_030405.xlsx"


def _client_error(code: str, operation: str = "PutObject") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


def _s3(client: Any = None, **overrides: Any) -> S3Storage:
    values: dict[str, Any] = {
        "endpoint_url": "https://s3.example.com/",
        "bucket_name": "reports",
        "access_key_id": "AKIAEXAMPLE",
        "secret_access_key": "wJalrXUtnFEMIK7MDENG",
        "client": client,
    }
    values.update(overrides)
    return S3Storage(**values)


class TestS3Storage:
    def test_upload_returns_presigned_url(self) -> None:
        client = MagicMock()
        client.generate_presigned_url.return_value = "https://signed.example/url"

        url = _s3(client).upload(b"xlsx", FILE_NAME, XLSX_CONTENT_TYPE)

        assert url == "https://signed.example/url"
        client.put_object.assert_called_once_with(
            Bucket="reports",
            Key=FILE_NAME,
            Body=b"xlsx",
            ContentType=XLSX_CONTENT_TYPE,
        )
        client.generate_presigned_url.assert_called_once_with(
            "get_object",
            Params={"Bucket": "reports", "Key": FILE_NAME},
            ExpiresIn=3600,
        )

    def test_put_object_sends_no_encryption_headers(self) -> None:
        client = MagicMock()
        _s3(client).upload(b"xlsx", FILE_NAME, XLSX_CONTENT_TYPE)

        kwargs = client.put_object.call_args.kwargs
        assert "ServerSideEncryption" not in kwargs
        assert "StorageClass" not in kwargs

    @pytest.mark.parametrize(
        ("code", "reason"),
        [
            ("InvalidAccessKeyId", ErrorCode.STORAGE_AUTH_FAILED),
            ("SignatureDoesNotMatch", ErrorCode.STORAGE_AUTH_FAILED),
            ("NoSuchBucket", ErrorCode.STORAGE_BUCKET_NOT_FOUND),
            ("AccessDenied", ErrorCode.STORAGE_ACCESS_DENIED),
            ("NotImplemented", ErrorCode.STORAGE_UNSUPPORTED_FEATURE),
            ("SlowDown", ErrorCode.STORAGE_ERROR),
        ],
    )
    def test_client_errors_mapped_by_code(self, code: str, reason: ErrorCode) -> None:
        client = MagicMock()
        client.put_object.side_effect = _client_error(code)

        with pytest.raises(StorageError) as exc_info:
            _s3(client).upload(b"xlsx", FILE_NAME, XLSX_CONTENT_TYPE)

        error = exc_info.value
        assert error.error_code == reason
        assert error.provider_code == code
        assert error.bucket == "reports"
        assert error.http_status == 502
        assert error.hint

    def test_endpoint_unreachable(self) -> None:
        client = MagicMock()
        client.put_object.side_effect = EndpointConnectionError(
            endpoint_url="https://s3.example.com"
        )

        with pytest.raises(StorageError) as exc_info:
            _s3(client).upload(b"xlsx", FILE_NAME, XLSX_CONTENT_TYPE)

        assert exc_info.value.error_code == ErrorCode.STORAGE_UNAVAILABLE

    def test_missing_credentials_fail_before_upload(self) -> None:
        storage = _s3(access_key_id="")

        with pytest.raises(ConfigurationError) as exc_info:
            storage.upload(b"xlsx", FILE_NAME, XLSX_CONTENT_TYPE)

        assert exc_info.value.setting == "s3_access_key_id"

    def test_secret_not_in_error(self) -> None:
        client = MagicMock()
        client.put_object.side_effect = _client_error("SignatureDoesNotMatch")

        with pytest.raises(StorageError) as exc_info:
            _s3(client).upload(b"xlsx", FILE_NAME, XLSX_CONTENT_TYPE)

        assert "wJalrXUtnFEMIK7MDENG" not in json.dumps(exc_info.value.to_dict())


def _supabase(handler: Callable[[httpx.Request], httpx.Response], **overrides: Any) -> SupabaseStorage:
    values: dict[str, Any] = {
        "url": "https://project.supabase.co/",
        "api_key": "service.role.jwt",
        "bucket_name": "reports",
        "client": httpx.Client(transport=httpx.MockTransport(handler)),
    }
    values.update(overrides)
    return SupabaseStorage(**values)


class TestSupabaseStorage:
    def test_upload_posts_object_and_returns_public_url(self) -> None:
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, json={"Key": f"reports/{FILE_NAME}"})

        url = _supabase(handler).upload(b"xlsx", FILE_NAME, XLSX_CONTENT_TYPE)

        assert url == (
            f"https://project.supabase.co/storage/v1/object/public/reports/{FILE_NAME}"
        )
        request = captured[0]
        assert request.method == "POST"
        assert str(request.url) == (
            f"https://project.supabase.co/storage/v1/object/reports/{FILE_NAME}"
        )
        assert request.headers["Authorization"] == "Bearer service.role.jwt"
        assert request.headers["apikey"] == "service.role.jwt"
        assert request.headers["x-upsert"] == "true"
        assert request.headers["Content-Type"] == XLSX_CONTENT_TYPE
        assert request.content == b"xlsx"

    @pytest.mark.parametrize(
        ("status", "payload", "reason"),
        [
            (404, {"statusCode": "404", "error": "Bucket not found"}, ErrorCode.STORAGE_BUCKET_NOT_FOUND),
            (400, {"statusCode": "403", "error": "Unauthorized"}, ErrorCode.STORAGE_ACCESS_DENIED),
            (400, {"statusCode": "400", "error": "InvalidJWT"}, ErrorCode.STORAGE_AUTH_FAILED),
            (401, {"message": "Invalid API key"}, ErrorCode.STORAGE_AUTH_FAILED),
            (500, {"statusCode": "500", "error": "internal"}, ErrorCode.STORAGE_ERROR),
        ],
    )
    def test_error_responses_mapped_by_status(
        self, status: int, payload: dict[str, Any], reason: ErrorCode
    ) -> None:
        storage = _supabase(lambda _: httpx.Response(status, json=payload))

        with pytest.raises(StorageError) as exc_info:
            storage.upload(b"xlsx", FILE_NAME, XLSX_CONTENT_TYPE)

        assert exc_info.value.error_code == reason
        assert exc_info.value.file_name == FILE_NAME

    def test_non_json_error_body(self) -> None:
        storage = _supabase(
            lambda _: httpx.Response(502, text="<html>Bad Gateway</html>")
        )

        with pytest.raises(StorageError) as exc_info:
            storage.upload(b"xlsx", FILE_NAME, XLSX_CONTENT_TYPE)

        assert exc_info.value.error_code == ErrorCode.STORAGE_BAD_RESPONSE
        assert exc_info.value.provider_code == "502"

    def test_connection_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(StorageError) as exc_info:
            _supabase(handler).upload(b"xlsx", FILE_NAME, XLSX_CONTENT_TYPE)

        assert exc_info.value.error_code == ErrorCode.STORAGE_UNAVAILABLE

    def test_missing_key(self) -> None:
        storage = _supabase(lambda _: httpx.Response(200), api_key="")

        with pytest.raises(ConfigurationError):
            storage.upload(b"xlsx", FILE_NAME, XLSX_CONTENT_TYPE)

    def test_file_name_is_url_encoded(self) -> None:
        storage = _supabase(lambda _: httpx.Response(200, json={}))

        url = storage.upload(b"xlsx", "Inventory Report.xlsx", XLSX_CONTENT_TYPE)

        assert url.endswith("/reports/Inventory%20Report.xlsx")


class TestBuildStorageBackend:
    def test_default_is_supabase(self, make_settings: Callable[..., Settings]) -> None:
        settings = make_settings(
            supabase_url="https://project.supabase.co",
            supabase_anon_key="anon",
            supabase_service_role_key="service",
            supabase_bucket_name="reports",
        )

        backend = build_storage_backend(settings)

        assert isinstance(backend, SupabaseStorage)
        assert backend.bucket_name == "reports"
        assert backend._api_key == "service"

    def test_s3_backend(self, make_settings: Callable[..., Settings]) -> None:
        settings = make_settings(
            storage_backend="s3",
            s3_endpoint_url="https://s3.example.com",
            s3_bucket_name="reports",
            s3_presign_expiry_seconds=600,
        )

        backend = build_storage_backend(settings)

        assert isinstance(backend, S3Storage)
        assert backend.presign_expiry_seconds == 600
        assert backend.region == "auto"

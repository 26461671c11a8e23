"""Object storage backends for publishing generated reports."""

from typing import Protocol

from inventory_report.config import Settings
from inventory_report.services.storage.s3_storage import S3Storage
from inventory_report.services.storage.supabase_storage import SupabaseStorage


class StorageBackend(Protocol):
    """Uploads bytes and returns a URL the caller can be redirected to."""

    name: str
    bucket_name: str

    def upload(self, content: bytes, file_name: str, content_type: str) -> str: ...


def build_storage_backend(settings: Settings) -> StorageBackend:
    """Create the backend selected by ``settings.storage_backend``.

    Credentials are not checked here; each backend validates its settings on
    first upload.
    """
    if settings.storage_backend == "s3":
        return S3Storage.from_settings(settings)
    return SupabaseStorage.from_settings(settings)


__all__ = [
    "S3Storage",
    "StorageBackend",
    "SupabaseStorage",
    "build_storage_backend",
]

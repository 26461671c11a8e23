"""Inventory Report Service - template-preserving Excel reports from PostgreSQL."""

__version__ = "0.1.0"

from inventory_report.api import app, create_app  # noqa: E402

__all__ = ["app", "create_app"]


def main() -> None:
    """Run the FastAPI server using uvicorn."""
    import uvicorn

    from inventory_report.config import settings

    uvicorn.run(
        "inventory_report.api:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.debug,
    )

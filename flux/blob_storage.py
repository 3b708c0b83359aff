import mimetypes
import time
import logging
from typing import Optional

from azure.storage.blob import BlobServiceClient, ContentSettings

from flux.config import Config

logger = logging.getLogger("flux.blob_storage")


class BlobStorageService:
    def __init__(self, connection_string: Optional[str] = None, container_name: Optional[str] = None):
        conn_str = connection_string or Config.azure_storage_connection_string
        container = container_name or Config.azure_storage_container
        if not conn_str or not container:
            raise ValueError("Azure storage connection string and container name are required.")

        self._client = BlobServiceClient.from_connection_string(conn_str)
        self._container = self._client.get_container_client(container)

    @staticmethod
    def is_configured() -> bool:
        return bool(Config.azure_storage_connection_string and Config.azure_storage_container)

    def upload_bytes(self, blob_name: str, data: bytes, content_type: Optional[str] = None) -> str:
        content_type = content_type or mimetypes.guess_type(blob_name)[0]
        settings = ContentSettings(content_type=content_type) if content_type else None

        blob_client = self._container.get_blob_client(blob_name)

        start = time.perf_counter()
        try:
            blob_client.upload_blob(
                data=data,
                overwrite=True,
                content_settings=settings,
            )
        finally:
            ms = (time.perf_counter() - start) * 1000.0
            logger.info(
                "[timing] step=azure_blob.upload ms=%.2f blob=%s bytes=%d content_type=%s",
                ms,
                blob_name,
                len(data),
                content_type,
            )

        return f"{self._container.url}/{blob_name}"

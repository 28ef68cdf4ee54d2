from __future__ import annotations

from functools import lru_cache
from typing import Optional

from google.cloud import storage

from config.settings import settings


@lru_cache(maxsize=1)
def get_gcs_client() -> storage.Client:
    if settings.FIRESTORE_PROJECT_ID:
        return storage.Client(project=settings.FIRESTORE_PROJECT_ID)
    return storage.Client()


def upload_text(
    bucket_name: str,
    blob_name: str,
    content: str,
    content_type: str = "application/json",
    client: Optional[storage.Client] = None,
) -> str:
    client = client or get_gcs_client()
    blob = client.bucket(bucket_name).blob(blob_name)
    blob.upload_from_string(content.encode("utf-8"), content_type=content_type)
    return f"gs://{bucket_name}/{blob_name}"


def download_text(bucket_name: str, blob_name: str, client: Optional[storage.Client] = None) -> str:
    client = client or get_gcs_client()
    return client.bucket(bucket_name).blob(blob_name).download_as_text(encoding="utf-8")

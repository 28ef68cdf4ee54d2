from __future__ import annotations

from functools import lru_cache

from google.cloud import firestore
from config.settings import settings


@lru_cache(maxsize=1)
def get_firestore_client() -> firestore.Client:
    # One client per process; gRPC channels are expensive to open.
    # If FIRESTORE_PROJECT_ID is empty, the library will use ADC default project.
    if settings.FIRESTORE_PROJECT_ID:
        return firestore.Client(project=settings.FIRESTORE_PROJECT_ID)
    return firestore.Client()


# Firestore rejects batches with more than 500 writes.
BATCH_WRITE_LIMIT = 500


def delete_snapshots(db: firestore.Client, snaps, limit: int = BATCH_WRITE_LIMIT) -> int:
    """Delete the given snapshots' documents, one batch per `limit` writes."""
    snaps = list(snaps)
    for i in range(0, len(snaps), limit):
        batch = db.batch()
        for snap in snaps[i:i + limit]:
            batch.delete(snap.reference)
        batch.commit()
    return len(snaps)


def update_snapshots(db: firestore.Client, snaps, data, limit: int = BATCH_WRITE_LIMIT) -> int:
    """Apply the same field update to every snapshot, one batch per `limit` writes."""
    snaps = list(snaps)
    for i in range(0, len(snaps), limit):
        batch = db.batch()
        for snap in snaps[i:i + limit]:
            batch.update(snap.reference, data)
        batch.commit()
    return len(snaps)

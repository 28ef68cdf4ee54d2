from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from google.cloud.firestore import Client

from audit.audit_log import AuditLogWriter
from backup.backup_service import BackupService
from inventory.reconciliation import InventoryService
from notifications.deriver import NotificationService
from notifications.history import NotificationHistoryRepository
from ops.retention import RetentionJob
from repos.document_repo import DocumentRepository
from repos.user_repo import UserProfileRepository
from security.firebase_auth import IdentityProvider
from storage.firestore_client import get_firestore_client
from storage.local_cache import LocalCache
from storage.local_store import LocalStore


@dataclass
class Services:
    """One instance per process; handed to routers through app.state."""

    docs: DocumentRepository
    audit: AuditLogWriter
    inventory: InventoryService
    notifications: NotificationService
    history: NotificationHistoryRepository
    backups: BackupService
    retention: RetentionJob
    identity: IdentityProvider


def build_services(
    db: Optional[Client] = None,
    store: Optional[LocalStore] = None,
    cache: Optional[LocalCache] = None,
    identity: Optional[IdentityProvider] = None,
) -> Services:
    db = db or get_firestore_client()
    audit = AuditLogWriter(db=db)
    docs = DocumentRepository(db=db, cache=cache or LocalCache(store=store), audit=audit)
    history = NotificationHistoryRepository(db=db)
    return Services(
        docs=docs,
        audit=audit,
        inventory=InventoryService(docs),
        notifications=NotificationService(docs),
        history=history,
        backups=BackupService(docs, audit=audit),
        retention=RetentionJob(audit, history),
        identity=identity or IdentityProvider(UserProfileRepository(db=db)),
    )

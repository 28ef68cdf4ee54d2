from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from google.cloud import storage as gcs_storage
from google.cloud.firestore import Client
from pydantic import BaseModel, Field

from audit.audit_log import AuditLogWriter
from config.settings import settings
from models.schema import BACKUP_COLLECTIONS, COL_BACKUPS
from ops.metrics import Timer
from repos.document_repo import DocumentRepository, snapshot_to_document
from storage import gcs_client
from storage.firestore_client import BATCH_WRITE_LIMIT
from utils import jsoncodec

log = logging.getLogger("firework.backup")

BACKUP_ONLY_FIELDS = ("id", "_backup_timestamp")


class BackupError(RuntimeError):
    pass


class CollectionReport(BaseModel):
    exists: bool = True
    documentCount: int = 0
    hasValidDocuments: bool = True
    errors: List[str] = Field(default_factory=list)


class ValidationReport(BaseModel):
    isValid: bool = True
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    collections: Dict[str, CollectionReport] = Field(default_factory=dict)
    metadata: Optional[Dict[str, Any]] = None


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class BackupService:
    """
    Full snapshots of the tracked collections and batched restores.

    Snapshot shape: {"metadata": {...}, "data": {collection: [documents]}}.
    Only the metadata is persisted in Firestore (backups/backup_<millis>);
    the data travels as an exported JSON file (local or gs://).
    """

    def __init__(
        self,
        docs: DocumentRepository,
        audit: Optional[AuditLogWriter] = None,
        collections: Iterable[str] = BACKUP_COLLECTIONS,
        gcs: Optional[gcs_storage.Client] = None,
    ):
        self.docs = docs
        self.db: Client = docs.db
        self.audit = audit or docs.audit
        self.collections = tuple(collections)
        self.gcs = gcs

    # -------- Snapshot --------
    def backup_collection(self, collection: str) -> List[Dict[str, Any]]:
        stamp = _utcnow_iso()
        out = []
        for snap in self.db.collection(collection).stream():
            d = snapshot_to_document(snap)
            d["_backup_timestamp"] = stamp
            out.append(d)
        return out

    def create_full_backup(self, created_by: Optional[str] = None) -> Dict[str, Any]:
        t = Timer()
        backup: Dict[str, Any] = {
            "metadata": {
                "version": settings.BACKUP_FORMAT_VERSION,
                "createdAt": _utcnow_iso(),
                "createdBy": created_by or settings.APP_NAME,
                "type": "full_backup",
                "collections": list(self.collections),
            },
            "data": {},
        }
        try:
            for name in self.collections:
                backup["data"][name] = self.backup_collection(name)
            backup_id = self.store_backup_metadata(backup["metadata"])
        except Exception as e:
            log.error(
                "backup_failed",
                extra={"extra": {"event": "backup_failed", "error_type": type(e).__name__, "message": str(e)}},
                exc_info=True,
            )
            raise BackupError(f"Backup failed: {e}") from e

        backup["metadata"]["backupId"] = backup_id
        log.info(
            "backup_created",
            extra={
                "extra": {
                    "event": "backup_created",
                    "backup_id": backup_id,
                    "documents": sum(len(v) for v in backup["data"].values()),
                    "duration_ms": t.ms(),
                }
            },
        )
        return backup

    def store_backup_metadata(self, metadata: Mapping[str, Any]) -> str:
        backup_id = f"backup_{int(time.time() * 1000)}"
        self.db.collection(COL_BACKUPS).document(backup_id).set(dict(metadata))
        self.docs.invalidate(COL_BACKUPS)
        self.audit.log_create(
            COL_BACKUPS,
            backup_id,
            dict(metadata),
            {
                "action": "backup_created",
                "description": f"Full backup created with {len(metadata.get('collections') or [])} collections",
                "collectionsBackedUp": list(metadata.get("collections") or []),
                "timestamp": metadata.get("createdAt"),
            },
        )
        return backup_id

    def get_backup_history(self) -> List[Dict[str, Any]]:
        backups = [snapshot_to_document(s) for s in self.db.collection(COL_BACKUPS).stream()]
        backups.sort(key=lambda b: str(b.get("createdAt") or ""), reverse=True)
        return backups

    def delete_backup(self, backup_id: str) -> None:
        self.db.collection(COL_BACKUPS).document(backup_id).delete()
        self.docs.invalidate(COL_BACKUPS)
        self.audit.log_delete(
            COL_BACKUPS,
            backup_id,
            None,
            {"action": "backup_deleted", "description": f"Backup {backup_id} was deleted", "timestamp": _utcnow_iso()},
        )

    # -------- Files --------
    def export_backup_as_file(self, backup: Mapping[str, Any], path: Optional[str] = None) -> str:
        if path is None:
            day = datetime.now(timezone.utc).date().isoformat()
            path = str(Path(settings.BACKUP_EXPORT_DIR) / f"firework-factory-backup-{day}.json")
        Path(path).write_text(jsoncodec.export_dumps(dict(backup)), encoding="utf-8")
        log.info("backup_exported", extra={"extra": {"event": "backup_exported", "path": path}})
        return path

    def load_backup_file(self, path: str) -> Any:
        return jsoncodec.loads(Path(path).read_text(encoding="utf-8"))

    def export_backup_to_gcs(self, backup: Mapping[str, Any], bucket: Optional[str] = None) -> str:
        bucket = bucket or settings.BACKUP_GCS_BUCKET
        if not bucket:
            raise BackupError("No backup bucket configured")
        created = str((backup.get("metadata") or {}).get("backupId") or int(time.time() * 1000))
        uri = gcs_client.upload_text(
            bucket, f"backups/{created}.json", jsoncodec.export_dumps(dict(backup)), client=self.gcs
        )
        log.info("backup_exported", extra={"extra": {"event": "backup_exported", "uri": uri}})
        return uri

    def load_backup_from_gcs(self, uri: str) -> Any:
        if not uri.startswith("gs://") or "/" not in uri[5:]:
            raise BackupError(f"Not a gs:// object uri: {uri}")
        bucket, _, blob_name = uri[5:].partition("/")
        return jsoncodec.loads(gcs_client.download_text(bucket, blob_name, client=self.gcs))

    def export_backup(self, backup: Mapping[str, Any]) -> str:
        """Ship to the configured bucket, else write a local file."""
        if settings.BACKUP_GCS_BUCKET:
            return self.export_backup_to_gcs(backup)
        return self.export_backup_as_file(backup)

    # -------- Restore --------
    def validate_backup_data(self, backup: Any) -> ValidationReport:
        report = ValidationReport()
        if not backup:
            report.isValid = False
            report.errors.append("Backup data is null or undefined")
            return report
        if not isinstance(backup, Mapping):
            report.isValid = False
            report.errors.append("Backup must be an object with metadata and data")
            return report

        metadata = backup.get("metadata")
        if not metadata:
            report.isValid = False
            report.errors.append("Backup metadata is missing")
        else:
            report.metadata = dict(metadata) if isinstance(metadata, Mapping) else None

        data = backup.get("data")
        if not data:
            report.isValid = False
            report.errors.append("Backup data section is missing")
            return report
        if not isinstance(data, Mapping):
            report.isValid = False
            report.errors.append("Backup data section is not an object")
            return report

        for name, documents in data.items():
            col = CollectionReport()
            if not isinstance(documents, list):
                col.hasValidDocuments = False
                col.errors.append("Collection data is not an array")
                report.isValid = False
                report.errors.append(f"{name}: collection data is not an array")
            else:
                col.documentCount = len(documents)
                for i, doc in enumerate(documents):
                    if not isinstance(doc, Mapping) or not doc.get("id"):
                        col.errors.append(f"Document at index {i} missing id")
                        report.warnings.append(f"{name}: Document at index {i} missing id")
            report.collections[name] = col
        return report

    def restore_from_backup(
        self,
        backup: Mapping[str, Any],
        collections: Optional[Iterable[str]] = None,
        replace_existing: bool = False,
    ) -> List[Dict[str, Any]]:
        """
        Write the snapshot's documents back under their original ids.

        With replace_existing, live documents absent from the snapshot are
        deleted; the rest are overwritten by the restore itself. When all
        writes fit in one batch the restore lands entirely or not at all.
        Larger restores go out in consecutive batches with every restored
        document written before any delete, so a failure part way leaves
        live data in place and the restore can simply be run again. Run
        validate_backup_data first: documents without an id are skipped here.
        """
        if not isinstance(backup, Mapping) or not isinstance(backup.get("data"), Mapping):
            raise BackupError("Invalid backup data format")

        data = backup["data"]
        source_created_at = (backup.get("metadata") or {}).get("createdAt") or "unknown"
        selected = list(collections) if collections is not None else list(data.keys())
        restored_at = _utcnow_iso()

        writes: List[Any] = []
        restored: List[Dict[str, Any]] = []
        kept_ids: Dict[str, set] = {}
        for name in selected:
            documents = data.get(name)
            if not isinstance(documents, list):
                log.warning("restore_collection_missing", extra={"extra": {"event": "restore_collection_missing", "collection": name}})
                continue

            ids = kept_ids.setdefault(name, set())
            for doc in documents:
                doc_id = doc.get("id") if isinstance(doc, Mapping) else None
                if not doc_id:
                    continue
                clean = {k: v for k, v in doc.items() if k not in BACKUP_ONLY_FIELDS}
                clean["_restored_at"] = restored_at
                clean["_restored_from_backup"] = source_created_at
                writes.append((self.db.collection(name).document(str(doc_id)), clean))
                ids.add(str(doc_id))
            restored.append({"collection": name, "documentsRestored": len(ids)})

        stale: List[Any] = []
        if replace_existing:
            for name, ids in kept_ids.items():
                stale.extend(s.reference for s in self.db.collection(name).stream() if s.id not in ids)

        try:
            self._commit_restore(writes, stale)
        except Exception as e:
            log.error(
                "restore_failed",
                extra={"extra": {"event": "restore_failed", "error_type": type(e).__name__, "message": str(e)}},
                exc_info=True,
            )
            raise
        finally:
            for name in kept_ids:
                self.docs.invalidate(name)

        self._log_restoration(backup.get("metadata"), restored)
        return restored

    def _commit_restore(self, writes: List[Any], stale: List[Any]) -> None:
        ops = [("set", ref, doc) for ref, doc in writes] + [("delete", ref, None) for ref in stale]
        if len(ops) > BATCH_WRITE_LIMIT:
            log.warning(
                "restore_chunked",
                extra={"extra": {"event": "restore_chunked", "writes": len(writes), "deletes": len(stale), "batch_limit": BATCH_WRITE_LIMIT}},
            )
        for i in range(0, len(ops), BATCH_WRITE_LIMIT):
            batch = self.db.batch()
            for kind, ref, doc in ops[i:i + BATCH_WRITE_LIMIT]:
                if kind == "set":
                    batch.set(ref, doc)
                else:
                    batch.delete(ref)
            batch.commit()

    def _log_restoration(self, source_metadata: Any, restored: List[Dict[str, Any]]) -> None:
        total = sum(r["documentsRestored"] for r in restored)
        source_created_at = (source_metadata or {}).get("createdAt") if isinstance(source_metadata, Mapping) else None
        self.audit.log_restore(
            {"sourceBackup": source_metadata, "restoredCollections": restored, "totalDocuments": total},
            {
                "action": "backup_restored",
                "description": f"Data restored from backup: {total} documents across {len(restored)} collections",
                "restorationDetails": restored,
                "sourceBackupCreatedAt": source_created_at,
                "timestamp": _utcnow_iso(),
            },
        )
        log.info("backup_restored", extra={"extra": {"event": "backup_restored", "documents": total, "collections": len(restored)}})

    # -------- Stats --------
    def calculate_total_data_size(self) -> Dict[str, Any]:
        sizes: Dict[str, int] = {}
        try:
            for name in self.collections:
                sizes[name] = sum(1 for _ in self.db.collection(name).stream())
        except Exception as e:
            log.warning("data_size_failed", extra={"extra": {"event": "data_size_failed", "message": str(e)}})
            return {"totalDocuments": 0, "collections": {}, "estimatedSizeKB": 0}
        total = sum(sizes.values())
        # Rough estimate: 2KB per document.
        return {"totalDocuments": total, "collections": sizes, "estimatedSizeKB": total * 2}

    def get_backup_statistics(self) -> Dict[str, Any]:
        backups = self.get_backup_history()
        return {
            "totalBackups": len(backups),
            "latestBackup": backups[0] if backups else None,
            "oldestBackup": backups[-1] if backups else None,
            "estimatedDataSize": self.calculate_total_data_size(),
            "collectionsTracked": len(self.collections),
        }

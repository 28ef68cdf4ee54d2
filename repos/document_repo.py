from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from google.cloud import firestore
from google.cloud.firestore import Client
from google.cloud.firestore_v1.base_query import FieldFilter

from audit.audit_log import AuditLogWriter
from models.documents import prepare_for_write
from models.schema import COL_INVENTORY
from storage.firestore_client import get_firestore_client
from storage.local_cache import LocalCache, collection_cache_key
from utils.request_context import get_user_id

log = logging.getLogger("firework.repos.documents")

Document = Dict[str, Any]


def snapshot_to_document(snap) -> Document:
    d = snap.to_dict() or {}
    d["id"] = snap.id
    return d


class DocumentRepository:
    """
    Generic CRUD over named Firestore collections.

    Every mutation invalidates the collection's cache entry and appends an
    audit entry. Store errors are logged and re-raised; cache and audit
    failures are absorbed by LocalCache / AuditLogWriter.
    """

    def __init__(
        self,
        db: Optional[Client] = None,
        cache: Optional[LocalCache] = None,
        audit: Optional[AuditLogWriter] = None,
    ):
        self.db = db or get_firestore_client()
        self.cache = cache or LocalCache()
        self.audit = audit or AuditLogWriter(db=self.db)

    def _fail(self, op: str, collection: str, e: Exception, document_id: Optional[str] = None) -> None:
        log.error(
            "document_store_error",
            extra={
                "extra": {
                    "event": "document_store_error",
                    "op": op,
                    "collection": collection,
                    "document_id": document_id,
                    "error_type": type(e).__name__,
                    "message": str(e),
                }
            },
        )

    def invalidate(self, collection: str) -> None:
        self.cache.clear(collection_cache_key(collection))

    # -------- Reads --------
    def list(self, collection: str, use_cache: bool = True) -> List[Document]:
        key = collection_cache_key(collection)
        stale = None
        if use_cache:
            cached, fresh = self.cache.lookup(key)
            if cached is not None and fresh:
                return cached
            stale = cached

        try:
            docs = [snapshot_to_document(s) for s in self.db.collection(collection).stream()]
        except Exception as e:
            self._fail("list", collection, e)
            fallback = stale if stale is not None else self.cache.lookup(key)[0]
            if fallback is not None:
                log.warning(
                    "serving_cached_after_error",
                    extra={"extra": {"event": "serving_cached_after_error", "collection": collection, "count": len(fallback)}},
                )
                return fallback
            raise

        if use_cache:
            self.cache.set(key, docs)
        return docs

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        try:
            snap = self.db.collection(collection).document(doc_id).get()
        except Exception as e:
            self._fail("get", collection, e, doc_id)
            raise
        if not snap.exists:
            return None
        return snapshot_to_document(snap)

    def query(
        self,
        collection: str,
        filters: Optional[Sequence[Tuple[str, str, Any]]] = None,
        order_by: Optional[str] = None,
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> List[Document]:
        q = self.db.collection(collection)
        for field, op, value in filters or ():
            q = q.where(filter=FieldFilter(field, op, value))
        if order_by:
            direction = firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
            q = q.order_by(order_by, direction=direction)
        if limit:
            q = q.limit(limit)
        try:
            return [snapshot_to_document(s) for s in q.stream()]
        except Exception as e:
            self._fail("query", collection, e)
            raise

    # -------- Writes --------
    def _audit_metadata(self, collection: str, operation: str, metadata: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        return {
            "userId": get_user_id(),
            "source": "document_repository",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **(metadata or {}),
            "documentType": collection,
            "operation": operation,
        }

    def create(self, collection: str, data: Dict[str, Any], metadata: Optional[Dict[str, Any]] = None) -> Document:
        payload = prepare_for_write(collection, data)
        ref = None
        try:
            _, ref = self.db.collection(collection).add(
                {**payload, "createdAt": firestore.SERVER_TIMESTAMP, "updatedAt": firestore.SERVER_TIMESTAMP}
            )
            self.invalidate(collection)

            meta = self._audit_metadata(collection, "create", metadata)
            if collection == COL_INVENTORY and payload.get("productId"):
                meta["productId"] = payload["productId"]
            self.audit.log_create(collection, ref.id, payload, meta)

            # Re-read so callers get resolved timestamps, not sentinels.
            snap = ref.get()
        except Exception as e:
            self._fail("create", collection, e, ref.id if ref is not None else None)
            raise
        return snapshot_to_document(snap)

    def update(
        self,
        collection: str,
        doc_id: str,
        data: Dict[str, Any],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Document:
        payload = prepare_for_write(collection, data, partial=True)
        ref = self.db.collection(collection).document(doc_id)

        previous = None
        if not (metadata or {}).get("previousData"):
            try:
                snap = ref.get()
                if snap.exists:
                    previous = snap.to_dict()
            except Exception as e:
                # Audit completeness only; the update still goes ahead.
                log.warning(
                    "previous_data_unavailable",
                    extra={"extra": {"event": "previous_data_unavailable", "collection": collection, "document_id": doc_id, "message": str(e)}},
                )

        try:
            ref.update({**payload, "updatedAt": firestore.SERVER_TIMESTAMP})
        except Exception as e:
            self._fail("update", collection, e, doc_id)
            raise
        self.invalidate(collection)

        meta = self._audit_metadata(collection, "update", metadata)
        if previous is not None and not meta.get("previousData"):
            meta["previousData"] = previous
        if collection == COL_INVENTORY:
            product_id = (previous or {}).get("productId") or payload.get("productId")
            if product_id:
                meta["productId"] = product_id
        self.audit.log_update(collection, doc_id, payload, meta)

        # Sentinels resolve server-side; never hand them back to callers.
        return {"id": doc_id, **{k: v for k, v in payload.items() if v is not firestore.SERVER_TIMESTAMP}}

    def delete(self, collection: str, doc_id: str) -> bool:
        try:
            self.db.collection(collection).document(doc_id).delete()
        except Exception as e:
            self._fail("delete", collection, e, doc_id)
            raise
        self.invalidate(collection)
        self.audit.log_delete(collection, doc_id, None, self._audit_metadata(collection, "delete", None))
        return True

    # -------- Live feed --------
    def subscribe(self, collection: str, callback: Callable[[List[Document]], None]):
        """
        Deliver the full collection, newest first, on every upstream change.

        Returns the watch handle; call `.unsubscribe()` to stop. Errors raised
        while delivering are logged and the feed keeps running; transport
        retries belong to the Firestore client.
        """
        q = self.db.collection(collection).order_by("createdAt", direction=firestore.Query.DESCENDING)

        def _on_snapshot(snaps, changes, read_time) -> None:
            try:
                callback([snapshot_to_document(s) for s in snaps])
            except Exception as e:
                log.error(
                    "subscription_error",
                    extra={"extra": {"event": "subscription_error", "collection": collection, "error_type": type(e).__name__, "message": str(e)}},
                    exc_info=True,
                )

        return q.on_snapshot(_on_snapshot)

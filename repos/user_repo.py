from __future__ import annotations

from typing import Any, Dict, Optional

from google.cloud import firestore
from google.cloud.firestore import Client

from models.schema import COL_USERS
from storage.firestore_client import get_firestore_client


class UserProfileRepository:
    """Role profiles in users/{uid}; credentials live with the identity provider."""

    def __init__(self, db: Optional[Client] = None):
        self.db = db or get_firestore_client()

    def get(self, uid: str) -> Optional[Dict[str, Any]]:
        snap = self.db.collection(COL_USERS).document(uid).get()
        if not snap.exists:
            return None
        d = snap.to_dict() or {}
        d["uid"] = uid
        return d

    def create_if_absent(self, uid: str, data: Dict[str, Any]) -> Dict[str, Any]:
        ref = self.db.collection(COL_USERS).document(uid)
        snap = ref.get()
        if snap.exists:
            return {**(snap.to_dict() or {}), "uid": uid}
        ref.set({**data, "createdAt": firestore.SERVER_TIMESTAMP}, merge=False)
        return {**data, "uid": uid}

    def update(self, uid: str, data: Dict[str, Any]) -> None:
        self.db.collection(COL_USERS).document(uid).set(
            {**data, "updatedAt": firestore.SERVER_TIMESTAMP}, merge=True
        )

    def touch_last_login(self, uid: str) -> None:
        self.db.collection(COL_USERS).document(uid).set({"lastLoginAt": firestore.SERVER_TIMESTAMP}, merge=True)

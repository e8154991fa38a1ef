from dataclasses import dataclass

from firebase_admin import firestore


class FirestoreCollection:
    """Read-only access to one Firestore collection.

    Documents come back as plain dicts with the document id under ``"id"``.
    """

    def __init__(self, db, name: str, order_field: str = "timestamp"):
        self.db = db
        self.name = name
        self.order_field = order_field

    def get_by_id(self, doc_id: str) -> dict | None:
        snapshot = self.db.collection(self.name).document(doc_id).get()
        if not snapshot.exists:
            return None
        payload = snapshot.to_dict() or {}
        payload["id"] = snapshot.id
        return payload

    def query_recent(self, filters: dict | None, limit: int) -> list[dict]:
        query = self.db.collection(self.name)
        for field_name, value in (filters or {}).items():
            query = query.where(field_name, "==", value)
        docs = query.order_by(self.order_field, direction=firestore.Query.DESCENDING).limit(limit).stream()
        rows: list[dict] = []
        for doc in docs:
            payload = doc.to_dict() or {}
            payload["id"] = doc.id
            rows.append(payload)
        return rows

    def list_all(self) -> dict[str, dict]:
        return {doc.id: doc.to_dict() or {} for doc in self.db.collection(self.name).stream()}


@dataclass
class Repositories:
    profiles: FirestoreCollection
    devices: FirestoreCollection
    readings: FirestoreCollection
    events: FirestoreCollection


def firestore_repositories(db) -> Repositories:
    return Repositories(
        profiles=FirestoreCollection(db, "userProfiles"),
        devices=FirestoreCollection(db, "devices"),
        readings=FirestoreCollection(db, "readings"),
        events=FirestoreCollection(db, "events"),
    )

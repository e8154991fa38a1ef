from firebase_admin import firestore

from config import Settings, load_settings
from firebase_client import credential_source, firebase_ready
from repositories import firestore_repositories


class _Doc:
    def __init__(self, doc_id, data, exists=True):
        self.id = doc_id
        self._data = data
        self.exists = exists

    def to_dict(self):
        return dict(self._data) if self._data is not None else None


class _Ref:
    def __init__(self, doc):
        self.doc = doc

    def get(self):
        return self.doc


class _Query:
    def __init__(self, docs, log):
        self.docs = docs
        self.log = log

    def where(self, field_name, op, value):
        self.log.append(("where", field_name, op, value))
        return self

    def order_by(self, field_name, direction=None):
        self.log.append(("order_by", field_name, direction))
        return self

    def limit(self, count):
        self.log.append(("limit", count))
        return self

    def stream(self):
        return iter(self.docs)

    def document(self, doc_id):
        doc = next((d for d in self.docs if d.id == doc_id), _Doc(doc_id, None, exists=False))
        return _Ref(doc)


class _Db:
    def __init__(self, collections):
        self.collections = collections
        self.log = []

    def collection(self, name):
        self.log.append(("collection", name))
        return _Query(self.collections.get(name, []), self.log)


def test_query_recent_builds_filtered_descending_query():
    db = _Db({"readings": [_Doc("r1", {"deviceId": "esp32-a", "timestamp": "2025-06-10T11:55:00Z"})]})
    repos = firestore_repositories(db)

    rows = repos.readings.query_recent({"deviceId": "esp32-a"}, 10)

    assert rows == [{"id": "r1", "deviceId": "esp32-a", "timestamp": "2025-06-10T11:55:00Z"}]
    assert db.log == [
        ("collection", "readings"),
        ("where", "deviceId", "==", "esp32-a"),
        ("order_by", "timestamp", firestore.Query.DESCENDING),
        ("limit", 10),
    ]


def test_query_recent_without_filter():
    db = _Db({"events": []})
    assert firestore_repositories(db).events.query_recent(None, 15) == []
    assert not any(entry[0] == "where" for entry in db.log)


def test_get_by_id():
    db = _Db({"userProfiles": [_Doc("admin-1", {"role": "admin"})]})
    profiles = firestore_repositories(db).profiles
    assert profiles.get_by_id("admin-1") == {"id": "admin-1", "role": "admin"}
    assert profiles.get_by_id("nobody") is None


def test_list_all_devices():
    db = _Db({"devices": [_Doc("esp32-a", {"name": "Greenhouse A"}), _Doc("esp32-b", None)]})
    assert firestore_repositories(db).devices.list_all() == {"esp32-a": {"name": "Greenhouse A"}, "esp32-b": {}}


def test_load_settings_from_environment(monkeypatch):
    monkeypatch.setenv("OPENAI_KEY", " sk-live ")
    monkeypatch.setenv("ENCRYPTION_ADMIN_KEY", "s3cret")
    monkeypatch.setenv("OPENAI_MAX_TOKENS", "not-a-number")
    monkeypatch.setenv("ALLOWED_ORIGINS", "https://myplant.example, https://admin.myplant.example")
    monkeypatch.setenv("FLASK_DEBUG", "yes")

    settings = load_settings()

    assert settings.openai_api_key == "sk-live"
    assert settings.encryption_admin_key == "s3cret"
    assert settings.openai_max_tokens == 600
    assert settings.allowed_origins == ["https://myplant.example", "https://admin.myplant.example"]
    assert settings.debug is True
    assert settings.notify_topic == "admins"


def test_bad_service_account_json_is_reported():
    settings = Settings(firebase_service_account_json="{not json")
    ok, reason = firebase_ready(settings)
    assert ok is False
    assert "Unable to parse FIREBASE_SERVICE_ACCOUNT_JSON" in reason
    assert credential_source(settings) == "service_account_json"

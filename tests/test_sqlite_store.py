"""Tests for the SQLite transcript store."""

from datetime import datetime, timedelta, timezone

import pytest

from webhook_chat.backends.sqlite import SQLiteTranscriptStore
from webhook_chat.core import Attachment
from webhook_chat.errors import DuplicateName, NotFound, ValidationError


def _attachment(name: str = "a.png") -> Attachment:
    return Attachment(
        mime_type="image/png",
        file_type="image",
        file_extension="png",
        data="QQ==",
        file_name=name,
        file_size="0.0 KB",
    )


class TestEndpoints:
    def test_create_then_list_hides_credential(self, store):
        endpoint_id = store.create_endpoint("demo", "https://example.test/hook", "tok")
        endpoints = store.list_endpoints()
        assert [e.id for e in endpoints] == [endpoint_id]
        assert endpoints[0].name == "demo"
        assert endpoints[0].url == "https://example.test/hook"
        assert endpoints[0].credential == ""
        assert endpoints[0].created is not None

    def test_get_includes_credential(self, store, demo_endpoint_id):
        endpoint = store.get_endpoint(demo_endpoint_id)
        assert endpoint.credential == "tok"

    def test_get_missing(self, store):
        assert store.get_endpoint(999) is None

    def test_duplicate_name_rejected(self, store, demo_endpoint_id):
        with pytest.raises(DuplicateName):
            store.create_endpoint("demo", "https://other.test/hook", "tok2")
        assert len(store.list_endpoints()) == 1
        assert store.get_endpoint(demo_endpoint_id).url == "https://example.test/hook"

    def test_duplicate_is_validation_error(self, store, demo_endpoint_id):
        with pytest.raises(ValidationError):
            store.create_endpoint("demo", "https://other.test/hook", "tok2")

    @pytest.mark.parametrize("name,url,credential", [
        ("", "https://example.test", "tok"),
        ("   ", "https://example.test", "tok"),
        ("x", "", "tok"),
        ("x", "not a url", "tok"),
        ("x", "ftp://example.test/file", "tok"),
        ("x", "https://", "tok"),
        ("x", "https://example.test", ""),
    ])
    def test_invalid_fields(self, store, name, url, credential):
        with pytest.raises(ValidationError):
            store.create_endpoint(name, url, credential)
        assert store.list_endpoints() == []

    def test_delete_cascades(self, store, demo_endpoint_id):
        other_id = store.create_endpoint("other", "https://other.test/hook", "tok")
        doomed = store.create_conversation(demo_endpoint_id)
        kept = store.create_conversation(other_id)
        msg_id = store.append_message(doomed, "hi", True)

        store.delete_endpoint(demo_endpoint_id)

        assert [c.id for c in store.list_conversations()] == [kept]
        assert store.get_conversation(doomed) is None
        assert store.get_message(msg_id) is None
        assert store.list_messages(doomed) == []

    def test_delete_missing(self, store):
        with pytest.raises(NotFound):
            store.delete_endpoint(42)


class TestConversations:
    def test_create_snapshots_endpoint_name(self, store, demo_endpoint_id):
        conversation_id = store.create_conversation(demo_endpoint_id)
        conversation = store.get_conversation(conversation_id)
        assert conversation.endpoint_id == demo_endpoint_id
        assert conversation.endpoint_name == "demo"
        assert conversation.name == "demo"

    def test_create_for_missing_endpoint(self, store):
        with pytest.raises(NotFound):
            store.create_conversation(123)

    def test_list_newest_first(self, store, demo_endpoint_id):
        first = store.create_conversation(demo_endpoint_id)
        second = store.create_conversation(demo_endpoint_id)
        assert [c.id for c in store.list_conversations()] == [second, first]

    def test_rename_keeps_endpoint_snapshot(self, store, conversation_id):
        store.rename_conversation(conversation_id, "Hello")
        conversation = store.get_conversation(conversation_id)
        assert conversation.name == "Hello"
        assert conversation.endpoint_name == "demo"

    def test_rename_missing(self, store):
        with pytest.raises(NotFound):
            store.rename_conversation(5, "x")

    def test_delete_cascades_messages(self, store, conversation_id):
        msg_id = store.append_message(conversation_id, "hi", True)
        store.delete_conversation(conversation_id)
        assert store.get_conversation(conversation_id) is None
        assert store.get_message(msg_id) is None

    def test_delete_missing(self, store):
        with pytest.raises(NotFound):
            store.delete_conversation(5)


class TestMessages:
    def test_ordered_by_timestamp(self, store, conversation_id):
        base = datetime(2025, 1, 15, 10, 0, 0, tzinfo=timezone.utc)
        store.append_message(conversation_id, "third", False, base + timedelta(seconds=2))
        store.append_message(conversation_id, "first", True, base)
        store.append_message(conversation_id, "second", True, base + timedelta(microseconds=500))
        assert [m.content for m in store.list_messages(conversation_id)] == ["first", "second", "third"]

    def test_round_trips_fields(self, store, conversation_id):
        ts = datetime(2025, 1, 15, 10, 0, 0, tzinfo=timezone.utc)
        msg_id = store.append_message(conversation_id, "look", True, ts, {"data0": _attachment()})
        msg = store.get_message(msg_id)
        assert msg.id == msg_id
        assert msg.conversation_id == conversation_id
        assert msg.content == "look"
        assert msg.is_user is True
        assert msg.timestamp == ts
        assert msg.attachments == {"data0": _attachment()}

    def test_text_only_has_no_attachments(self, store, conversation_id):
        msg_id = store.append_message(conversation_id, "plain", False)
        msg = store.get_message(msg_id)
        assert msg.attachments is None
        assert msg.is_user is False

    def test_default_timestamp_is_utc_now(self, store, conversation_id):
        before = datetime.now(timezone.utc)
        msg = store.get_message(store.append_message(conversation_id, "now", True))
        assert msg.timestamp >= before - timedelta(seconds=1)
        assert msg.timestamp.tzinfo is not None

    def test_append_to_missing_conversation(self, store):
        with pytest.raises(NotFound):
            store.append_message(99, "lost", True)

    def test_has_no_messages(self, store, conversation_id):
        assert store.has_no_messages(conversation_id) is True
        store.append_message(conversation_id, "hi", True)
        assert store.has_no_messages(conversation_id) is False


def test_data_persists_across_connections(tmp_path):
    path = tmp_path / "nested" / "store.db"
    first = SQLiteTranscriptStore(path)
    endpoint_id = first.create_endpoint("demo", "https://example.test/hook", "tok")
    first.close()

    second = SQLiteTranscriptStore(path)
    assert second.get_endpoint(endpoint_id).name == "demo"
    second.close()


def test_default_path_from_env(tmp_path, monkeypatch):
    monkeypatch.setenv("WEBHOOK_CHAT_DB", str(tmp_path / "env.db"))
    assert SQLiteTranscriptStore().db_path == tmp_path / "env.db"

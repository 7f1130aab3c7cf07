"""
Comprehensive tests for ObjectsService.

Tests cover:
- Materializing nested documents into objects and fields
- Pattern queries: scalar, nested, array and empty patterns
- Arity of matches and ordering of results
- Atomicity of object creation under store failures
- Error typing and event emission
"""

from datetime import timedelta
from unittest import mock

import pytest
from freezegun import freeze_time
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from docgraph.errors import (
    InvalidFieldValue,
    QueryCompileError,
    RecursionLimitExceeded,
    StoreUnavailable,
    StoreWriteFailed,
)
from docgraph.objects import GraphObject, ObjectsService
from docgraph.storage.models import FieldRow, ObjectRow


def _ids(objects):
    return [obj.object_id for obj in objects]


# ========== Creation Tests ==========

def test_create_object_with_scalar_fields(service):
    obj = service.create_object({"type": "Note", "content": "hello"})

    assert isinstance(obj, GraphObject)
    assert obj.get("type") == "Note"
    assert obj.get("content") == "hello"
    assert [field.name for field in obj.fields] == ["type", "content"]
    assert service.count_objects() == 1


def test_create_object_materializes_nested_objects(service, note_document):
    note = service.create_object(note_document)

    actor = note.get("attributedTo")
    assert isinstance(actor, GraphObject)
    assert actor.get("name") == "alice"
    assert actor.object_id != note.object_id
    # The note and its actor are separate objects.
    assert service.count_objects() == 2


def test_arrays_become_repeated_fields(service):
    obj = service.create_object({"tag": ["x", "y"], "type": "Note"})

    assert obj.values("tag") == ["x", "y"]
    assert [field.name for field in obj.fields] == ["tag", "tag", "type"]


def test_array_of_objects_creates_child_per_element(service):
    obj = service.create_object({"to": [{"name": "a"}, {"name": "b"}]})

    recipients = obj.values("to")
    assert [recipient.get("name") for recipient in recipients] == ["a", "b"]
    assert service.count_objects() == 3


def test_persisted_fields_hold_value_or_target(service, store, note_document):
    service.create_object(note_document)

    with store.read_session() as session:
        rows = session.execute(select(FieldRow)).scalars().all()
    assert rows
    for row in rows:
        assert (row.value is None) != (row.target_object_id is None)


def test_to_dict_rebuilds_document(service, note_document):
    obj = service.create_object(note_document)
    assert obj.to_dict() == note_document


def test_identical_documents_are_not_deduplicated(service):
    first = service.create_object({"id": "https://example.com/1", "type": "Note"})
    second = service.create_object({"id": "https://example.com/1", "type": "Note"})

    assert first.object_id != second.object_id
    assert len(service.query({"id": "https://example.com/1"})) == 2


def test_get_object(service, note_document):
    created = service.create_object(note_document)

    loaded = service.get_object(created.object_id)
    assert loaded == created
    assert loaded.to_dict() == note_document
    assert service.get_object(9999) is None


def test_referencing_fields_are_navigable(service, note_document):
    note = service.create_object(note_document)
    actor = note.get("attributedTo")

    [back_reference] = actor.referencing_fields
    assert back_reference.name == "attributedTo"
    assert back_reference.subject == note

    # Loaded on its own, the actor still knows who points at it.
    standalone = service.get_object(actor.object_id)
    [reference] = standalone.referencing_fields
    assert reference.subject_id == note.object_id
    assert reference.subject is None


# ========== Query Tests ==========

def test_round_trip_returns_only_created_object(service):
    service.create_object({"type": "Note", "content": "other"})
    service.create_object({"type": "Article", "content": "hello"})
    service.create_object({"summary": "unrelated"})
    target = service.create_object({"type": "Note", "content": "hello"})
    service.create_object({"type": "Note"})

    results = service.query({"type": "Note", "content": "hello"})
    assert _ids(results) == [target.object_id]


def test_missing_key_never_matches(service):
    service.create_object({"a": "1", "b": "2", "c": "3"})
    assert service.query({"a": "1", "b": "2", "x": "9"}) == []


def test_subset_pattern_matches(service):
    obj = service.create_object({"a": "1", "b": "2", "c": "3"})
    assert _ids(service.query({"a": "1", "b": "2"})) == [obj.object_id]


def test_value_must_match_exactly(service):
    service.create_object({"name": "alice"})
    assert service.query({"name": "ali%"}) == []
    assert service.query({"name": "Alice"}) == []


def test_nested_match(service):
    o1 = service.create_object({"type": "Create", "actor": {"name": "alice"}})

    assert _ids(service.query({"actor": {"name": "alice"}})) == [o1.object_id]
    assert service.query({"actor": {"name": "bob"}}) == []


def test_nested_pattern_does_not_match_scalar_field(service):
    service.create_object({"actor": "alice"})
    assert service.query({"actor": {"name": "alice"}}) == []
    assert service.query({"actor": {}}) == []


def test_deeply_nested_match(service):
    activity = service.create_object(
        {
            "type": "Create",
            "object": {
                "type": "Note",
                "inReplyTo": {"id": "https://example.com/notes/1"},
            },
        }
    )
    service.create_object(
        {
            "type": "Create",
            "object": {
                "type": "Note",
                "inReplyTo": {"id": "https://example.com/notes/2"},
            },
        }
    )

    results = service.query(
        {"object": {"inReplyTo": {"id": "https://example.com/notes/1"}}}
    )
    assert _ids(results) == [activity.object_id]


def test_array_field_matches_single_value(service):
    o2 = service.create_object({"tag": ["x", "y"]})

    assert _ids(service.query({"tag": "x"})) == [o2.object_id]
    assert _ids(service.query({"tag": "y"})) == [o2.object_id]
    assert service.query({"tag": "z"}) == []


def test_list_pattern_requires_every_value(service):
    obj = service.create_object({"tag": ["x", "y", "z"]})
    service.create_object({"tag": ["x"]})

    assert _ids(service.query({"tag": ["x", "y"]})) == [obj.object_id]
    assert service.query({"tag": ["x", "w"]}) == []


def test_duplicate_fields_do_not_break_arity(service):
    obj = service.create_object({"tag": ["x", "x"], "type": "Note"})

    assert _ids(service.query({"tag": "x"})) == [obj.object_id]
    assert _ids(service.query({"tag": "x", "type": "Note"})) == [obj.object_id]


def test_list_pattern_with_nested_elements(service):
    obj = service.create_object({"to": [{"name": "a"}, {"name": "b"}]})

    assert _ids(service.query({"to": {"name": "b"}})) == [obj.object_id]
    assert _ids(service.query({"to": [{"name": "a"}, {"name": "b"}]})) == [obj.object_id]
    assert service.query({"to": [{"name": "a"}, {"name": "c"}]}) == []


def test_empty_pattern_matches_every_object(service, note_document):
    note = service.create_object(note_document)
    other = service.create_object({"type": "Person"})

    results = service.query({})
    assert len(results) == service.count_objects() == 3
    assert other.object_id in _ids(results)
    assert note.object_id in _ids(results)


def test_empty_nested_pattern_matches_any_object_field(service, note_document):
    note = service.create_object(note_document)
    service.create_object({"attributedTo": "alice"})

    assert _ids(service.query({"attributedTo": {}})) == [note.object_id]


def test_results_are_newest_first(service):
    with freeze_time("2024-01-15 10:30:00") as frozen:
        t1 = service.create_object({"type": "Note", "n": "1"})
        frozen.tick(timedelta(seconds=1))
        t2 = service.create_object({"type": "Note", "n": "2"})
        frozen.tick(timedelta(seconds=1))
        t3 = service.create_object({"type": "Note", "n": "3"})

    results = service.query({"type": "Note"})
    assert _ids(results) == [t3.object_id, t2.object_id, t1.object_id]
    assert results[0].created > results[1].created > results[2].created


def test_simultaneous_objects_return_latest_insert_first(service):
    with freeze_time("2024-01-15 10:30:00"):
        first = service.create_object({"type": "Note"})
        second = service.create_object({"type": "Note"})

    assert _ids(service.query({"type": "Note"})) == [second.object_id, first.object_id]


def test_query_results_are_navigable_after_session_closes(service, note_document):
    service.create_object(note_document)

    [note] = service.query({"tag": "intro"})
    assert note.get("attributedTo").get("name") == "alice"
    assert note.values("tag") == ["intro", "greeting"]


# ========== Error Handling Tests ==========

def test_invalid_value_aborts_creation(service):
    with pytest.raises(InvalidFieldValue) as excinfo:
        service.create_object({"a": "1", "b": {"c": {"d": 5}}})

    assert excinfo.value.path == "b.c.d"
    assert service.count_objects() == 0


def test_recursion_limit_on_create(store, recorder):
    service = ObjectsService(store, max_depth=2, recorder=recorder)

    with pytest.raises(RecursionLimitExceeded):
        service.create_object({"a": {"b": {"c": {"d": "x"}}}})
    assert service.count_objects() == 0


def test_cyclic_document_is_rejected(service):
    document = {"type": "Loop"}
    document["self"] = document

    with pytest.raises(RecursionLimitExceeded):
        service.create_object(document)


def test_query_compile_error_skips_store(service, store):
    with mock.patch.object(store, "read_session", wraps=store.read_session) as spy:
        with pytest.raises(QueryCompileError):
            service.query({"followers": 10})
    spy.assert_not_called()


def test_store_unavailable_during_flush_leaves_nothing(service, note_document):
    failure = OperationalError("INSERT INTO objects", {}, Exception("database is locked"))
    with mock.patch.object(Session, "flush", side_effect=failure):
        with pytest.raises(StoreUnavailable) as excinfo:
            service.create_object(note_document)

    assert isinstance(excinfo.value.__cause__, OperationalError)
    assert service.count_objects() == 0


def test_commit_failure_rolls_back_nested_rows(service, store, note_document):
    failure = IntegrityError("COMMIT", {}, Exception("constraint failed"))
    with mock.patch.object(Session, "commit", side_effect=failure):
        with pytest.raises(StoreWriteFailed):
            service.create_object(note_document)

    assert service.count_objects() == 0
    with store.read_session() as session:
        assert session.execute(select(FieldRow)).scalars().all() == []
        assert session.execute(select(ObjectRow)).scalars().all() == []


# ========== Event Tests ==========

def test_create_and_query_emit_events(service, events, note_document):
    note = service.create_object(note_document)
    service.query({"type": "Note"})

    names = [event.name for event in events]
    assert names == ["object.created", "query.executed"]
    created, executed = events
    assert created.service == "objects"
    assert created.payload["object_id"] == note.object_id
    assert created.payload["object_count"] == 2
    assert created.payload["field_count"] == 7
    assert executed.payload["result_count"] == 1
    assert executed.payload["term_count"] == 1


def test_failed_write_emits_failure_event(service, events):
    failure = OperationalError("INSERT", {}, Exception("disk I/O error"))
    with mock.patch.object(Session, "flush", side_effect=failure):
        with pytest.raises(StoreUnavailable):
            service.create_object({"type": "Note"})

    assert [event.name for event in events] == ["object.create.failed"]


def test_events_can_be_disabled(store, recorder, events):
    service = ObjectsService(store, recorder=recorder, emit_events=False)
    service.create_object({"type": "Note"})
    assert events == []

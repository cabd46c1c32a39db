"""
Tests for the record codec.
"""

import json

import pytest

from notex.errors import MalformedRecordError
from notex.schemas.records import PlainText, Record, StructuredSnapshot
from notex.services import codec


SNAPSHOT = {"store": {"shape:1": {"type": "geo", "props": {"w": 10, "text": "a \"quoted\" label"}}}, "schema": {"v": 2}}


class TestDecode:
    """Tests for decode"""

    def test_note_string(self):
        """Note content is the plain string as-is"""
        assert codec.decode("buy milk", "note") == PlainText(text="buy milk")

    def test_note_string_that_looks_like_json(self):
        """Note text is never parsed, even if it is valid JSON"""
        content = codec.decode('{"a": 1}', "note")
        assert content == PlainText(text='{"a": 1}')

    def test_canvas_mapping(self):
        """Canvas mapping becomes a snapshot verbatim"""
        content = codec.decode(SNAPSHOT, "canvas")
        assert isinstance(content, StructuredSnapshot)
        assert content.data == SNAPSHOT

    def test_canvas_encoded_string_decoded_once(self):
        """A canvas stored as a JSON string is decoded exactly once"""
        content = codec.decode(json.dumps(SNAPSHOT), "canvas")
        assert content == StructuredSnapshot(data=SNAPSHOT)

    def test_canvas_double_encoded_string_not_decoded_twice(self):
        """Decoding stops after one pass"""
        twice = json.dumps(json.dumps(SNAPSHOT))
        content = codec.decode(twice, "canvas")
        assert content == PlainText(text=twice)

    def test_canvas_empty_string_is_empty_snapshot(self):
        """Fresh canvases may hold an empty string"""
        assert codec.decode("", "canvas") == StructuredSnapshot()

    def test_canvas_non_json_text_kept(self):
        """Legacy text on a canvas surfaces as plain text"""
        assert codec.decode("scribbles", "canvas") == PlainText(text="scribbles")

    def test_none_is_default(self):
        """Missing content yields the type's empty value"""
        assert codec.decode(None, "note") == PlainText()
        assert codec.decode(None, "canvas") == StructuredSnapshot()

    def test_unsupported_shape_raises(self):
        """Numbers and lists are not content"""
        with pytest.raises(MalformedRecordError):
            codec.decode(42, "note")
        with pytest.raises(MalformedRecordError):
            codec.decode([1, 2], "canvas")


class TestEncode:
    """Tests for encode and to_content"""

    def test_encode_values(self):
        """Encode yields the raw field value, not a JSON string"""
        assert codec.encode(PlainText(text="x"), "note") == "x"
        assert codec.encode(StructuredSnapshot(data=SNAPSHOT), "canvas") == SNAPSHOT

    def test_to_content_passes_resolved_values_through(self):
        """Already-resolved content is returned untouched"""
        content = StructuredSnapshot(data=SNAPSHOT)
        assert codec.to_content(content, "canvas") is content
        assert codec.to_content(codec.to_content(content, "canvas"), "canvas") is content

    def test_repeated_cycles_do_not_add_encoding(self):
        """Many decode/encode cycles leave the value unchanged"""
        value = SNAPSHOT
        for _ in range(5):
            value = codec.encode(codec.decode(value, "canvas"), "canvas")
        assert value == SNAPSHOT

    def test_embedded_created_at(self):
        """Snapshots may carry their own creation time"""
        content = StructuredSnapshot(data={"createdAt": "2024-01-01T00:00:00+00:00"})
        assert codec.embedded_created_at(content) == "2024-01-01T00:00:00+00:00"
        assert codec.embedded_created_at(PlainText(text="x")) is None


class TestRecordFiles:
    """Tests for loads_record / dumps_record"""

    def test_round_trip(self):
        """A record survives one dump and one load"""
        record = Record(id="abc", title="Todo", type="canvas", content=SNAPSHOT, created_at="t0")
        loaded = codec.loads_record(codec.dumps_record(record))

        assert loaded.id == "abc"
        assert loaded.content == SNAPSHOT
        assert loaded.created_at == "t0"

    def test_dump_uses_camel_case_and_skips_missing(self):
        """Timestamps are written as createdAt/updatedAt when present"""
        record = Record(id="abc", title="Todo", type="note", content="", created_at="t0")
        data = json.loads(codec.dumps_record(record))

        assert data["createdAt"] == "t0"
        assert "updatedAt" not in data

    def test_content_serialized_once(self):
        """Canvas content is a nested object in the file, not an escaped string"""
        record = Record(id="abc", title="Todo", type="canvas", content=SNAPSHOT)
        data = json.loads(codec.dumps_record(record))

        assert isinstance(data["content"], dict)

    def test_unknown_fields_preserved(self):
        """Fields written by other versions are kept on rewrite"""
        text = json.dumps({"id": "a", "title": "t", "type": "note", "content": "", "pinned": True})
        data = json.loads(codec.dumps_record(codec.loads_record(text)))
        assert data["pinned"] is True

    def test_invalid_json(self):
        with pytest.raises(MalformedRecordError):
            codec.loads_record("{not json")

    def test_not_an_object(self):
        with pytest.raises(MalformedRecordError):
            codec.loads_record("[]")

    def test_missing_fields(self):
        with pytest.raises(MalformedRecordError):
            codec.loads_record(json.dumps({"title": "no id", "type": "note"}))

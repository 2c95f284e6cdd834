import pytest

from quillchain.core.models import NoteDraft, NoteOperation
from quillchain.transactions.metadata import (
    APP_TAG,
    MESSAGE_LABEL,
    NOTE_LABEL,
    build_chunked_value,
    build_note_metadata,
    chunk_by_bytes,
    decode_structured_metadata,
    restore_note,
)


def _structured(metadata):
    return {entry["k"]["string"]: entry["v"] for entry in metadata[NOTE_LABEL]["map"]}


class TestChunking:
    def test_ascii_splits_at_64(self):
        content = "a" * 64 + "b" * 64 + "c" * 10
        assert chunk_by_bytes(content) == ["a" * 64, "b" * 64, "c" * 10]

    def test_empty_content(self):
        assert chunk_by_bytes("") == [""]
        assert chunk_by_bytes(None) == [""]
        assert build_chunked_value("") == {"string": ""}

    def test_multibyte_characters_are_never_split(self):
        content = "é" * 40  # 2 bytes each
        chunks = chunk_by_bytes(content)
        assert chunks == ["é" * 32, "é" * 8]
        assert all(len(c.encode("utf-8")) <= 64 for c in chunks)
        assert "".join(chunks) == content

    def test_chunks_are_consecutive(self):
        content = "".join(chr(ord("a") + i % 26) for i in range(300)) + "日本語" * 20
        chunks = chunk_by_bytes(content)
        assert "".join(chunks) == content
        assert all(0 < len(c.encode("utf-8")) <= 64 for c in chunks)

    def test_short_value_is_a_plain_string(self):
        assert build_chunked_value("hello") == {"string": "hello"}
        assert build_chunked_value("x" * 65) == {"list": [{"string": "x" * 64}, {"string": "x"}]}


class TestNoteMetadata:
    def test_both_labels_present(self):
        draft = NoteDraft(title="Groceries", content="milk", category="Food", is_pinned=True)
        metadata = build_note_metadata(NoteOperation.NOTE_CREATE, draft, "tmp-abc",
                                       operation_timestamp="2026-01-01T00:00:00Z")
        messages = metadata[MESSAGE_LABEL]["msg"]
        fields = _structured(metadata)

        assert messages[0] == "Operation: create"
        assert "Note ID: tmp-abc" in messages
        assert "Pinned: true" in messages
        assert messages[-1] == "milk"
        assert fields["app"] == {"string": APP_TAG}
        assert fields["noteId"] == {"string": "tmp-abc"}
        assert fields["operationTimestamp"] == {"string": "2026-01-01T00:00:00Z"}
        assert fields["isPinned"] == {"string": "true"}
        assert fields["isDeleted"] == {"string": "false"}

    def test_title_and_category_are_sanitized(self):
        draft = NoteDraft(title="Ünïcode title " + "x" * 60, category="C" * 40)
        fields = _structured(build_note_metadata(NoteOperation.NOTE_UPDATE, draft, "1"))
        title = fields["noteTitle"]["string"]
        assert len(title) <= 50
        assert all(32 <= ord(ch) <= 126 for ch in title)
        assert fields["category"]["string"] == "C" * 32

    def test_empty_title_defaults(self):
        fields = _structured(build_note_metadata(NoteOperation.NOTE_DELETE, NoteDraft(), "5"))
        assert fields["noteTitle"]["string"] == "Untitled Note"
        assert fields["category"]["string"] == "Uncategorized"
        assert fields["operation"]["string"] == "delete"


class TestDecoding:
    def test_roundtrip_of_structured_map(self):
        draft = NoteDraft(title="Long", content="z" * 150, note_id="9", is_starred=True)
        metadata = build_note_metadata(NoteOperation.NOTE_CREATE, draft, "9")
        wire = {str(label): value for label, value in metadata.items()}

        note = restore_note({"tx_hash": "h1", "metadata": wire})
        assert note.note_id == "9"
        assert note.title == "Long"
        assert note.content == "z" * 150
        assert note.is_starred is True
        assert note.tx_hash == "h1"

    def test_plain_json_form(self):
        decoded = decode_structured_metadata({"1337": {
            "noteId": "3", "noteTitle": "Plain", "noteContent": ["abc", "def"], "isPinned": "true",
        }})
        assert decoded == {"noteId": "3", "noteTitle": "Plain", "noteContent": "abcdef", "isPinned": "true"}

    @pytest.mark.parametrize("metadata", [None, {}, {"674": {"msg": ["hi"]}}, {"1337": {"map": []}}])
    def test_non_note_transactions(self, metadata):
        assert restore_note({"tx_hash": "h", "metadata": metadata}) is None

"""
Tests for the document value model.
"""

import pytest

from docsync.exceptions import DocumentValidationError, MalformedRecordError
from docsync.replication.documents import Document, ValueKind, kind_of, parse_record


# ---------------------------------------------------------------------------
# parse_record
# ---------------------------------------------------------------------------

class TestParseRecord:
    def test_parses_object(self):
        assert parse_record('{"DOCUMENT_ID": "A", "N": 1}') == {"DOCUMENT_ID": "A", "N": 1}

    def test_invalid_json_raises(self):
        with pytest.raises(MalformedRecordError, match="Error parsing JSON"):
            parse_record('{"DOCUMENT_ID": ')

    def test_non_object_raises(self):
        with pytest.raises(MalformedRecordError, match="Expected a JSON object, got list"):
            parse_record("[1, 2, 3]")

    def test_bytes_accepted(self):
        assert parse_record(b'{"A": true}') == {"A": True}


# ---------------------------------------------------------------------------
# kind_of
# ---------------------------------------------------------------------------

class TestKindOf:
    @pytest.mark.parametrize(
        "value,kind",
        [
            (None, ValueKind.NULL),
            (True, ValueKind.BOOLEAN),
            (0, ValueKind.NUMBER),
            (1.5, ValueKind.NUMBER),
            ("x", ValueKind.STRING),
            ([1], ValueKind.LIST),
            ({"a": 1}, ValueKind.MAPPING),
        ],
    )
    def test_classifies_json_values(self, value, kind):
        assert kind_of(value) == kind

    def test_unsupported_type_raises(self):
        with pytest.raises(TypeError):
            kind_of(object())


# ---------------------------------------------------------------------------
# Document.from_record
# ---------------------------------------------------------------------------

class TestDocumentFromRecord:
    def test_builds_document(self, make_record):
        doc = Document.from_record(make_record(doc_id="D1", version=3, NAME="Well 1"))

        assert doc.type == "WELL"
        assert doc.id == "D1"
        assert doc.version == 3
        assert doc.author == "user-1"
        assert doc.deleted is False
        assert doc.key == ("WELL", "D1", 3)
        assert doc.get("NAME") == "Well 1"

    def test_data_keeps_envelope_fields(self, make_record):
        doc = Document.from_record(make_record())
        assert doc.data["$TYPE"] == "WELL"
        assert doc.data["DOCUMENT_ID"] == "DOC-1"

    def test_integral_float_version_accepted(self, make_record):
        doc = Document.from_record(make_record(version=2.0))
        assert doc.version == 2
        assert isinstance(doc.version, int)

    @pytest.mark.parametrize(
        "field", ["$TYPE", "DOCUMENT_ID", "$VERSION", "$AUTHOR_ID", "$DATE", "$DELETED"]
    )
    def test_missing_envelope_field_rejected(self, make_record, field):
        record = make_record()
        del record[field]
        with pytest.raises(DocumentValidationError, match="is missing"):
            Document.from_record(record)

    def test_null_envelope_field_rejected(self, make_record):
        with pytest.raises(DocumentValidationError, match="is null"):
            Document.from_record(make_record(**{"$AUTHOR_ID": None}))

    def test_string_version_rejected(self, make_record):
        with pytest.raises(DocumentValidationError, match=r"\$VERSION"):
            Document.from_record(make_record(version="1"))

    def test_boolean_version_rejected(self, make_record):
        with pytest.raises(DocumentValidationError, match="must be a number, got boolean"):
            Document.from_record(make_record(version=True))

    def test_fractional_version_rejected(self, make_record):
        with pytest.raises(DocumentValidationError, match="must be an integer"):
            Document.from_record(make_record(version=1.5))

    def test_string_deleted_flag_rejected(self, make_record):
        with pytest.raises(DocumentValidationError, match=r"\$DELETED"):
            Document.from_record(make_record(**{"$DELETED": "false"}))

    def test_numeric_id_rejected(self, make_record):
        with pytest.raises(DocumentValidationError, match="DOCUMENT_ID"):
            Document.from_record(make_record(doc_id=42))

    def test_caller_record_not_shared(self, make_record):
        record = make_record(ITEMS=[1, 2])
        doc = Document.from_record(record)
        record["NAME"] = "changed"
        assert "NAME" not in doc.data

    def test_data_is_read_only(self, make_record):
        doc = Document.from_record(make_record())
        with pytest.raises(TypeError):
            doc.data["NAME"] = "x"


# ---------------------------------------------------------------------------
# Typed accessors
# ---------------------------------------------------------------------------

class TestAccessors:
    @pytest.fixture
    def doc(self, make_record):
        return Document.from_record(
            make_record(NAME="Pad A", DEPTH=1200.5, ACTIVE=True, TAGS=["a"], LOCATION={"LAT": 1.0})
        )

    def test_matching_kinds(self, doc):
        assert doc.get_text("NAME") == "Pad A"
        assert doc.get_number("DEPTH") == 1200.5
        assert doc.get_bool("ACTIVE") is True
        assert doc.get_list("TAGS") == ["a"]
        assert doc.get_mapping("LOCATION") == {"LAT": 1.0}

    def test_mismatched_kinds_return_none(self, doc):
        assert doc.get_text("DEPTH") is None
        assert doc.get_number("ACTIVE") is None
        assert doc.get_bool("NAME") is None
        assert doc.get_list("LOCATION") is None
        assert doc.get_mapping("TAGS") is None

    def test_missing_field_returns_none(self, doc):
        assert doc.get_text("NOPE") is None
        assert doc.get("NOPE") is None

"""
Tests for schema models.
"""

import pytest

from docsync.exceptions import SchemaError
from docsync.views.schema import FieldMetadata, FieldType, filter_inactive, parse_root_schema


class TestFieldType:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("TEXT", FieldType.TEXT),
            ("guid", FieldType.GUID),
            ("RECORD LIST", FieldType.RECORD_LIST),
            ("record  list", FieldType.RECORD_LIST),
            ("DOCUMENT", FieldType.DOCUMENT),
            ("GEOMETRY", FieldType.UNKNOWN),
        ],
    )
    def test_parse(self, name, expected):
        assert FieldType.parse(name) == expected


class TestFieldMetadata:
    def test_parses_upstream_keys(self):
        meta = FieldMetadata.model_validate(
            {
                "NAME": "WELL_REF",
                "TYPE": "DOCUMENT",
                "DOCUMENT_TYPE": "WELL",
                "NULLABLE": False,
                "SIZE": 36,
            }
        )
        assert meta.name == "WELL_REF"
        assert meta.field_type == FieldType.DOCUMENT
        assert meta.document_type == "WELL"
        assert meta.nullable is False
        assert meta.active is True

    def test_unknown_type_keeps_raw_name(self):
        meta = FieldMetadata.model_validate({"NAME": "SHAPE", "TYPE": "GEOMETRY"})
        assert meta.field_type == FieldType.UNKNOWN
        assert meta.type_name == "GEOMETRY"

    def test_nested_record_type(self):
        meta = FieldMetadata.model_validate(
            {
                "TYPE": "RECORD",
                "RECORD_TYPE": {"CITY": {"NAME": "CITY", "TYPE": "TEXT"}},
            }
        )
        assert meta.record_type["CITY"].field_type == FieldType.TEXT


class TestParseRootSchema:
    PAYLOAD = {
        "WELL": {
            "NAME": {"NAME": "NAME", "TYPE": "TEXT"},
            "LEGACY": {"NAME": "LEGACY", "TYPE": "TEXT", "ACTIVE": False},
            "ADDRESS": {
                "NAME": "ADDRESS",
                "TYPE": "RECORD",
                "RECORD_TYPE": {
                    "CITY": {"NAME": "CITY", "TYPE": "TEXT"},
                    "OLD_ZIP": {"NAME": "OLD_ZIP", "TYPE": "TEXT", "ACTIVE": False},
                },
            },
        }
    }

    def test_keeps_declaration_order(self):
        root = parse_root_schema(self.PAYLOAD)
        assert list(root["WELL"]) == ["NAME", "LEGACY", "ADDRESS"]

    def test_active_only_filters_recursively(self):
        root = parse_root_schema(self.PAYLOAD, active_only=True)
        assert list(root["WELL"]) == ["NAME", "ADDRESS"]
        assert list(root["WELL"]["ADDRESS"].record_type) == ["CITY"]

    def test_filter_does_not_modify_input(self):
        root = parse_root_schema(self.PAYLOAD)
        filter_inactive(root)
        assert "LEGACY" in root["WELL"]
        assert "OLD_ZIP" in root["WELL"]["ADDRESS"].record_type

    @pytest.mark.parametrize("odd", [{"NAME": "ODD"}, {"NAME": "ODD", "TYPE": None}])
    def test_field_without_type_is_unknown(self, odd):
        root = parse_root_schema({"WELL": {"NAME": {"NAME": "NAME", "TYPE": "TEXT"}, "ODD": odd}})

        assert root["WELL"]["NAME"].field_type == FieldType.TEXT
        assert root["WELL"]["ODD"].field_type == FieldType.UNKNOWN
        assert root["WELL"]["ODD"].type_name == ""

    def test_not_a_mapping_raises(self):
        with pytest.raises(SchemaError):
            parse_root_schema(["WELL"])

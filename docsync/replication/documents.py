"""
Document value model for records fetched from the upstream document API.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

from docsync.exceptions import DocumentValidationError, MalformedRecordError

# Envelope fields every upstream record must carry
TYPE_FIELD = "$TYPE"
ID_FIELD = "DOCUMENT_ID"
VERSION_FIELD = "$VERSION"
AUTHOR_FIELD = "$AUTHOR_ID"
DATE_FIELD = "$DATE"
DELETED_FIELD = "$DELETED"

REQUIRED_FIELDS = (TYPE_FIELD, ID_FIELD, VERSION_FIELD, AUTHOR_FIELD, DATE_FIELD, DELETED_FIELD)


class ValueKind(str, Enum):
    """Kinds of value a document payload may hold."""

    NULL = "null"
    BOOLEAN = "boolean"
    NUMBER = "number"
    STRING = "string"
    LIST = "list"
    MAPPING = "mapping"


def kind_of(value: Any) -> ValueKind:
    """Classify a decoded JSON value.

    Raises:
        TypeError: value is not something JSON decoding produces
    """
    if value is None:
        return ValueKind.NULL
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, (int, float)):
        return ValueKind.NUMBER
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, (list, tuple)):
        return ValueKind.LIST
    if isinstance(value, Mapping):
        return ValueKind.MAPPING
    raise TypeError(f"Unsupported document value of type {type(value).__name__}")


def parse_record(line: str | bytes) -> dict[str, Any]:
    """Parse one newline-delimited JSON record.

    Raises:
        MalformedRecordError: line is not a JSON object
    """
    try:
        record = json.loads(line)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedRecordError(f"Error parsing JSON: {e}") from e
    if not isinstance(record, dict):
        raise MalformedRecordError(
            f"Expected a JSON object, got {kind_of(record).value}"
        )
    return record


@dataclass(frozen=True)
class Document:
    """An immutable, validated upstream document."""

    type: str
    id: str
    version: int
    author: str
    date: str
    deleted: bool
    data: Mapping[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Document":
        """Validate the envelope fields of a record and build a Document.

        Raises:
            DocumentValidationError: an envelope field is missing, null or mistyped
        """
        for name in REQUIRED_FIELDS:
            if name not in record:
                raise DocumentValidationError(
                    f"required field '{name}' is missing from document"
                )
            if record[name] is None:
                raise DocumentValidationError(f"required field '{name}' is null in document")

        expected = {
            TYPE_FIELD: ValueKind.STRING,
            ID_FIELD: ValueKind.STRING,
            VERSION_FIELD: ValueKind.NUMBER,
            AUTHOR_FIELD: ValueKind.STRING,
            DATE_FIELD: ValueKind.STRING,
            DELETED_FIELD: ValueKind.BOOLEAN,
        }
        for name, kind in expected.items():
            actual = kind_of(record[name])
            if actual != kind:
                raise DocumentValidationError(
                    f"required field '{name}' must be a {kind.value}, got {actual.value}"
                )

        version = record[VERSION_FIELD]
        if isinstance(version, float) and not version.is_integer():
            raise DocumentValidationError(
                f"required field '{VERSION_FIELD}' must be an integer, got {version}"
            )

        return cls(
            type=record[TYPE_FIELD],
            id=record[ID_FIELD],
            version=int(version),
            author=record[AUTHOR_FIELD],
            date=record[DATE_FIELD],
            deleted=record[DELETED_FIELD],
            data=MappingProxyType(dict(record)),
        )

    @property
    def key(self) -> tuple[str, str, int]:
        """Identity of this document version."""
        return (self.type, self.id, self.version)

    def get(self, name: str) -> Any:
        return self.data.get(name)

    def get_text(self, name: str) -> Optional[str]:
        value = self.data.get(name)
        return value if kind_of(value) == ValueKind.STRING else None

    def get_number(self, name: str) -> Optional[float]:
        value = self.data.get(name)
        return value if kind_of(value) == ValueKind.NUMBER else None

    def get_bool(self, name: str) -> Optional[bool]:
        value = self.data.get(name)
        return value if kind_of(value) == ValueKind.BOOLEAN else None

    def get_list(self, name: str) -> Optional[list[Any]]:
        value = self.data.get(name)
        return list(value) if kind_of(value) == ValueKind.LIST else None

    def get_mapping(self, name: str) -> Optional[Mapping[str, Any]]:
        value = self.data.get(name)
        return value if kind_of(value) == ValueKind.MAPPING else None

"""
Pydantic models for the upstream's self-describing document schema.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from docsync.exceptions import SchemaError


class FieldType(str, Enum):
    """Declared type of a document field."""

    TEXT = "TEXT"
    GUID = "GUID"
    UWI = "UWI"
    INTEGER = "INTEGER"
    DECIMAL = "DECIMAL"
    BOOLEAN = "BOOLEAN"
    DATETIME = "DATETIME"
    DOCUMENT = "DOCUMENT"  # reference to another document
    RECORD = "RECORD"  # nested record
    RECORD_LIST = "RECORD LIST"  # list of nested records
    UNKNOWN = "UNKNOWN"  # anything the upstream adds later

    @classmethod
    def parse(cls, name: str) -> "FieldType":
        """Map an upstream type name, falling back to UNKNOWN."""
        try:
            return cls(" ".join(name.upper().split()))
        except ValueError:
            return cls.UNKNOWN


SCALAR_TYPES = frozenset(
    {
        FieldType.TEXT,
        FieldType.GUID,
        FieldType.UWI,
        FieldType.INTEGER,
        FieldType.DECIMAL,
        FieldType.BOOLEAN,
        FieldType.DATETIME,
    }
)


class FieldMetadata(BaseModel):
    """Metadata for a single field of a document type."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str = Field(default="", alias="NAME")
    active: bool = Field(default=True, alias="ACTIVE")
    type_name: str = Field(default="", alias="TYPE")
    nullable: bool = Field(default=True, alias="NULLABLE")
    size: Optional[int] = Field(default=None, alias="SIZE")
    record_type: Optional[dict[str, "FieldMetadata"]] = Field(default=None, alias="RECORD_TYPE")
    formula: Optional[str] = Field(default=None, alias="FORMULA")
    document_type: Optional[str] = Field(default=None, alias="DOCUMENT_TYPE")
    date_unzoned: Optional[bool] = Field(default=None, alias="DATE_UNZONED")

    @field_validator("type_name", mode="before")
    @classmethod
    def _missing_type(cls, value: Any) -> Any:
        return "" if value is None else value

    @property
    def field_type(self) -> FieldType:
        return FieldType.parse(self.type_name)


FieldMetadata.model_rebuild()

# Field name -> metadata, for one document type
DocumentSchema = dict[str, FieldMetadata]

# Document type name -> schema
RootSchema = dict[str, DocumentSchema]

_ROOT_SCHEMA_ADAPTER = TypeAdapter(RootSchema)


def parse_root_schema(payload: Any, active_only: bool = False) -> RootSchema:
    """Validate a decoded schema document.

    Args:
        payload: Decoded JSON of the schema endpoint
        active_only: Drop inactive fields at every nesting level

    Raises:
        SchemaError: payload does not describe a root schema
    """
    try:
        root = _ROOT_SCHEMA_ADAPTER.validate_python(payload)
    except ValidationError as e:
        raise SchemaError(f"Error parsing schema: {e}") from e
    return filter_inactive(root) if active_only else root


def filter_inactive(root: RootSchema) -> RootSchema:
    """Copy of a root schema without inactive fields."""
    return {doc_type: filter_document_schema(schema) for doc_type, schema in root.items()}


def filter_document_schema(schema: DocumentSchema) -> DocumentSchema:
    """Copy of a document schema without inactive fields, recursively."""
    result: DocumentSchema = {}
    for name, metadata in schema.items():
        if not metadata.active:
            continue
        if metadata.record_type is not None:
            metadata = metadata.model_copy(
                update={"record_type": filter_document_schema(metadata.record_type)}
            )
        result[name] = metadata
    return result

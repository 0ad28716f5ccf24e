"""
Dialect-agnostic description of the relational views derived from a schema.

Warehouses render a ViewPlan into their own DDL; nothing here knows about SQL
syntax or identifier quoting.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, Optional

from docsync.views.schema import FieldType

DOCUMENT_ID_COLUMN = "DOCUMENT_ID"
LISTITEM_ID_COLUMN = "LISTITEM_ID"


class ColumnSource(str, Enum):
    """Where a projected column reads its value from."""

    ENVELOPE = "envelope"  # document row columns (id, deleted, author, ...)
    PAYLOAD = "payload"  # path into the document's JSON data
    ITEM = "item"  # path into the current list item


class Coercion(str, Enum):
    """Target type a projected value is converted to."""

    TEXT = "TEXT"
    INTEGER = "INTEGER"
    DECIMAL = "DECIMAL"
    BOOLEAN = "BOOLEAN"
    DATETIME = "DATETIME"

    @classmethod
    def for_field_type(cls, field_type: FieldType) -> "Coercion":
        """Coercion of a scalar field type (identifier types read as text)."""
        if field_type in (FieldType.TEXT, FieldType.GUID, FieldType.UWI):
            return cls.TEXT
        return cls(field_type.value)


class EnvelopeField(str, Enum):
    """Row-level columns of the documents table exposed by views."""

    ID = "ID"
    DELETED = "DELETED"
    AUTHOR = "AUTHOR"
    VERSION = "VERSION"
    DATE = "DATE"


@dataclass(frozen=True)
class ProjectionColumn:
    """One output column of a view."""

    name: str
    source: ColumnSource
    path: tuple[str, ...]
    coercion: Coercion = Coercion.TEXT
    references: Optional[str] = None  # referenced document type (foreign-key hint)

    @property
    def is_foreign_key(self) -> bool:
        return self.references is not None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "name": self.name,
            "source": self.source.value,
            "path": list(self.path),
            "coercion": self.coercion.value,
        }
        if self.references:
            result["references"] = self.references
        return result


@dataclass(frozen=True)
class ListExpansion:
    """An array in the document payload flattened to one row per item."""

    path: tuple[str, ...]
    item_id_column: str = LISTITEM_ID_COLUMN

    def to_dict(self) -> dict[str, Any]:
        return {"path": list(self.path), "item_id_column": self.item_id_column}


@dataclass
class ViewPlanNode:
    """A relational view over one document type."""

    name: str
    document_type: str
    columns: list[ProjectionColumn] = field(default_factory=list)
    parent: Optional[str] = None
    list_expansion: Optional[ListExpansion] = None
    children: list["ViewPlanNode"] = field(default_factory=list)

    @property
    def is_root(self) -> bool:
        return self.parent is None

    @property
    def base_chunk_only(self) -> bool:
        """Whether the view reads chunk 0 only.

        List expansions read every chunk so that array slices moved out of
        chunk 0 are still expanded.
        """
        return self.list_expansion is None

    @property
    def column_names(self) -> list[str]:
        return [column.name for column in self.columns]

    def column(self, name: str) -> Optional[ProjectionColumn]:
        for column in self.columns:
            if column.name == name:
                return column
        return None

    def child(self, name: str) -> Optional["ViewPlanNode"]:
        for node in self.children:
            if node.name == name:
                return node
        return None

    def walk(self) -> Iterator["ViewPlanNode"]:
        """This node and its descendants, parents first."""
        yield self
        for node in self.children:
            yield from node.walk()

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "name": self.name,
            "document_type": self.document_type,
            "parent": self.parent,
            "base_chunk_only": self.base_chunk_only,
            "columns": [column.to_dict() for column in self.columns],
        }
        if self.list_expansion:
            result["list_expansion"] = self.list_expansion.to_dict()
        if self.children:
            result["children"] = [node.to_dict() for node in self.children]
        return result


@dataclass(frozen=True)
class CompileDiagnostic:
    """A field left out of the plan, and why."""

    view: str
    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.view}.{self.field}: {self.message}"


@dataclass
class ViewPlan:
    """Compiled views for every document type."""

    roots: dict[str, ViewPlanNode] = field(default_factory=dict)
    diagnostics: list[CompileDiagnostic] = field(default_factory=list)

    def walk(self) -> Iterator[ViewPlanNode]:
        """Every view, each root followed by its descendants."""
        for root in self.roots.values():
            yield from root.walk()

    def find(self, name: str) -> Optional[ViewPlanNode]:
        for node in self.walk():
            if node.name == name:
                return node
        return None

    @property
    def view_names(self) -> list[str]:
        return [node.name for node in self.walk()]

    def to_dict(self) -> dict[str, Any]:
        return {
            "views": [root.to_dict() for root in self.roots.values()],
            "diagnostics": [str(d) for d in self.diagnostics],
        }

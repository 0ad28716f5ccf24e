"""
Compilation of a document schema into a tree of relational view plans.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from docsync.logging_config import get_logger
from docsync.views.plan import (
    DOCUMENT_ID_COLUMN,
    LISTITEM_ID_COLUMN,
    ColumnSource,
    Coercion,
    CompileDiagnostic,
    EnvelopeField,
    ListExpansion,
    ProjectionColumn,
    ViewPlan,
    ViewPlanNode,
)
from docsync.views.schema import SCALAR_TYPES, DocumentSchema, FieldMetadata, FieldType, RootSchema

# Columns every root view exposes from the document row
ENVELOPE_COLUMNS = (
    ProjectionColumn("_DELETED", ColumnSource.ENVELOPE, (EnvelopeField.DELETED.value,), Coercion.BOOLEAN),
    ProjectionColumn("_AUTHOR", ColumnSource.ENVELOPE, (EnvelopeField.AUTHOR.value,), Coercion.TEXT),
    ProjectionColumn("_VERSION", ColumnSource.ENVELOPE, (EnvelopeField.VERSION.value,), Coercion.INTEGER),
    ProjectionColumn("_DATE", ColumnSource.ENVELOPE, (EnvelopeField.DATE.value,), Coercion.DATETIME),
)

# Schema fields already covered by the base columns
RESERVED_FIELDS = frozenset({DOCUMENT_ID_COLUMN, LISTITEM_ID_COLUMN})


@dataclass(frozen=True)
class _Context:
    """Where in the document the fields being compiled live."""

    document_type: str
    view_name: str
    parent: Optional[str]
    source: ColumnSource  # PAYLOAD outside lists, ITEM inside a list item
    path: tuple[str, ...] = ()
    expansion: Optional[ListExpansion] = None

    @property
    def in_list(self) -> bool:
        return self.expansion is not None


@dataclass
class _Compilation:
    diagnostics: list[CompileDiagnostic] = field(default_factory=list)


class ViewCompiler:
    """Turn a RootSchema into a ViewPlan."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._logger = logger or get_logger(__name__)

    def compile(self, root: RootSchema) -> ViewPlan:
        """Compile every document type of a schema.

        Types are compiled in name order; fields keep their declaration order.
        """
        state = _Compilation()
        plan = ViewPlan()

        for doc_type in sorted(root):
            context = _Context(
                document_type=doc_type,
                view_name=doc_type,
                parent=None,
                source=ColumnSource.PAYLOAD,
            )
            plan.roots[doc_type] = self._compile_node(root[doc_type], context, state)

        plan.diagnostics = state.diagnostics
        self._logger.info(
            f"Compiled {len(plan.view_names)} views for {len(plan.roots)} document types"
            + (f" ({len(plan.diagnostics)} fields skipped)" if plan.diagnostics else "")
        )
        return plan

    def compile_document(self, doc_type: str, schema: DocumentSchema) -> ViewPlan:
        """Compile a single document type."""
        return self.compile({doc_type: schema})

    def _compile_node(
        self,
        schema: DocumentSchema,
        context: _Context,
        state: _Compilation,
    ) -> ViewPlanNode:
        node = ViewPlanNode(
            name=context.view_name,
            document_type=context.document_type,
            parent=context.parent,
            list_expansion=context.expansion,
        )

        node.columns.append(
            ProjectionColumn(DOCUMENT_ID_COLUMN, ColumnSource.ENVELOPE, (EnvelopeField.ID.value,))
        )
        if context.in_list:
            # Identifier of the list item, not of a record nested inside it
            node.columns.append(
                ProjectionColumn(LISTITEM_ID_COLUMN, ColumnSource.ITEM, (LISTITEM_ID_COLUMN,))
            )
        if context.parent is None:
            node.columns.extend(ENVELOPE_COLUMNS)

        for name, metadata in schema.items():
            if not metadata.active or name in RESERVED_FIELDS:
                continue
            self._compile_field(node, name, metadata, context, state)

        return node

    def _compile_field(
        self,
        node: ViewPlanNode,
        name: str,
        metadata: FieldMetadata,
        context: _Context,
        state: _Compilation,
    ) -> None:
        field_type = metadata.field_type
        path = context.path + (name,)

        if field_type in SCALAR_TYPES:
            node.columns.append(
                ProjectionColumn(name, context.source, path, Coercion.for_field_type(field_type))
            )

        elif field_type == FieldType.DOCUMENT:
            node.columns.append(
                ProjectionColumn(
                    name,
                    context.source,
                    path + (DOCUMENT_ID_COLUMN,),
                    Coercion.TEXT,
                    references=metadata.document_type or "",
                )
            )

        elif field_type == FieldType.RECORD:
            if metadata.record_type is None:
                self._skip(state, node, name, "RECORD field has no RECORD_TYPE")
                return
            child = _Context(
                document_type=context.document_type,
                view_name=f"{context.view_name}_{name}",
                parent=context.view_name,
                source=context.source,
                path=path,
                expansion=context.expansion,
            )
            node.children.append(self._compile_node(metadata.record_type, child, state))

        elif field_type == FieldType.RECORD_LIST:
            if context.in_list:
                self._skip(state, node, name, "RECORD LIST inside a RECORD LIST is not supported")
                return
            if metadata.record_type is None:
                self._skip(state, node, name, "RECORD LIST field has no RECORD_TYPE")
                return
            child = _Context(
                document_type=context.document_type,
                view_name=f"{context.view_name}_{name}",
                parent=context.view_name,
                source=ColumnSource.ITEM,
                path=(),
                expansion=ListExpansion(path=path),
            )
            node.children.append(self._compile_node(metadata.record_type, child, state))

        elif metadata.type_name:
            self._skip(state, node, name, f"unknown type {metadata.type_name}")

        else:
            self._skip(state, node, name, "field has no TYPE")

    def _skip(self, state: _Compilation, node: ViewPlanNode, name: str, message: str) -> None:
        self._logger.info(f"Skipping {node.name}:{name} ({message})")
        state.diagnostics.append(CompileDiagnostic(view=node.name, field=name, message=message))

"""
Schema View Module

Compile the upstream schema into a dialect-agnostic plan of relational views.
"""

from docsync.views.schema import (
    DocumentSchema,
    FieldMetadata,
    FieldType,
    RootSchema,
    parse_root_schema,
)
from docsync.views.plan import (
    ColumnSource,
    Coercion,
    CompileDiagnostic,
    ListExpansion,
    ProjectionColumn,
    ViewPlan,
    ViewPlanNode,
)
from docsync.views.compiler import ViewCompiler

__all__ = [
    "DocumentSchema",
    "FieldMetadata",
    "FieldType",
    "RootSchema",
    "parse_root_schema",
    "ColumnSource",
    "Coercion",
    "CompileDiagnostic",
    "ListExpansion",
    "ProjectionColumn",
    "ViewPlan",
    "ViewPlanNode",
    "ViewCompiler",
]

"""
Warehouse adapters.
"""

from docsync.warehouses.base import (
    DOCUMENTS_TABLE,
    LATEST_ALL_VERSIONS_VIEW,
    LATEST_VIEW,
    UploadResult,
    Warehouse,
    create_warehouse,
)

__all__ = [
    "DOCUMENTS_TABLE",
    "LATEST_ALL_VERSIONS_VIEW",
    "LATEST_VIEW",
    "UploadResult",
    "Warehouse",
    "create_warehouse",
]

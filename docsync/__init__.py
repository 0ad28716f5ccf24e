"""
docsync: incremental document replication into a relational warehouse.

Package Structure:
- replication/ - Upstream client, chunking, cursor and the sync loop
- views/       - Schema models and the schema-to-view compiler
- warehouses/  - Warehouse adapters (SQLite, PostgreSQL)
"""

__version__ = "0.1.0"

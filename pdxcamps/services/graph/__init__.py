"""Graph-backed document store.

Services import this package as their default ``store``; tests substitute any
object exposing the same five document functions.
"""
from .documents import (
    new_id,
    insert_doc,
    get_doc,
    patch_doc,
    delete_doc,
    find_docs,
)
from .schema import LABELS, ensure_schema
from .admin import clear_database, count_by_label

__all__ = [
    # documents
    'new_id', 'insert_doc', 'get_doc', 'patch_doc', 'delete_doc', 'find_docs',
    # schema
    'LABELS', 'ensure_schema',
    # admin
    'clear_database', 'count_by_label',
]

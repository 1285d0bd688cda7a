"""Firestore query helpers shared by the repositories.

Filters are passed as ``FieldFilter`` keywords. Simple test doubles that only
accept positional arguments still work through the ``TypeError`` fallback.
"""

from google.cloud.firestore_v1.base_query import FieldFilter
from google.cloud.firestore_v1.query import Query


def apply_where(query, field_path, op_string, value):
    try:
        return query.where(filter=FieldFilter(field_path, op_string, value))
    except TypeError:
        return query.where(field_path, op_string, value)


def apply_order_desc(query, field_path):
    return query.order_by(field_path, direction=Query.DESCENDING)

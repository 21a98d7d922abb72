"""Query filters shared by every storage backend.

A filter is a mapping of field name to either a plain value (equality, ``None``
meaning "is null") or an operator document such as ``{"$in": [...]}``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from applyr.core import errors

DELETED_FIELD = "is_deleted"
DELETED_AT_FIELD = "deleted_at"

FILTER_OPERATORS = {"$eq", "$ne", "$in", "$nin", "$gt", "$gte", "$lt", "$lte"}

Filter = dict[str, Any]


def exclude_deleted() -> Filter:
    return {DELETED_FIELD: {"$ne": True}}


def build_filter(user_filter: Mapping[str, Any] | None = None) -> Filter:
    """Combine caller constraints with the mandatory soft-delete exclusion.

    Deleted records can only be reached through an explicit ``include_deleted``
    argument on the query functions, so a caller clause on ``is_deleted`` is
    rejected instead of silently overriding the exclusion.
    """
    combined = exclude_deleted()
    for field, clause in (user_filter or {}).items():
        if field == DELETED_FIELD:
            raise errors.bad_request(
                "is_deleted cannot be used as a filter; pass include_deleted instead",
                details={"field": field},
            )
        validate_clause(field, clause)
        combined[field] = clause
    return combined


def owner_scope(user_id: str, user_filter: Mapping[str, Any] | None = None) -> Filter:
    scoped = dict(user_filter or {})
    scoped["owner_user_id"] = user_id
    return scoped


def validate_clause(field: str, clause: Any) -> None:
    if not isinstance(clause, Mapping):
        return
    for operator, operand in clause.items():
        if operator not in FILTER_OPERATORS:
            raise errors.bad_request(
                f"unsupported filter operator {operator!r}",
                details={"field": field, "operator": operator},
            )
        if operator in {"$in", "$nin"} and not isinstance(operand, (list, tuple, set, frozenset)):
            raise errors.bad_request(
                f"{operator} expects a list of values",
                details={"field": field, "operator": operator},
            )


def iter_conditions(query: Mapping[str, Any]) -> list[tuple[str, str, Any]]:
    """Flatten a filter into ``(field, operator, operand)`` triples."""
    conditions: list[tuple[str, str, Any]] = []
    for field, clause in query.items():
        if isinstance(clause, Mapping):
            validate_clause(field, clause)
            conditions.extend((field, operator, operand) for operator, operand in clause.items())
        else:
            conditions.append((field, "$eq", clause))
    return conditions

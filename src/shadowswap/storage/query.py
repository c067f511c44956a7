"""
Query evaluation for the in-memory document store.

Implements the subset of MongoDB query, sort and aggregation semantics the
migration relies on:

- Filters: implicit equality (with array membership), $eq, $ne, $gt, $gte,
  $lt, $lte, $in, $nin, $exists, $not, $and, $or, $nor, $text
- Sorting: ascending/descending on dotted paths, {"$meta": "textScore"}
- Aggregation stages: $match, $group, $project, $sort, $limit, $skip, $count
- Expressions: field paths, $lt, $lte, $gt, $gte, $eq, $ne, $cmp, $and,
  $or, $not, $cond, $ifNull, $isNumber, $literal

Values are compared using BSON type ordering: null < numbers < strings <
objects < arrays < binary < ObjectId < booleans < dates.
"""

from __future__ import annotations

import functools
import re
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime
from typing import Any

from bson import ObjectId

from shadowswap.exceptions import StorageError


class _Missing:
    """Sentinel for a field that is absent from a document."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()

_TOKEN = re.compile(r"\w+", re.UNICODE)


# =============================================================================
# Paths and ordering
# =============================================================================


def get_path(document: Any, path: str) -> Any:
    """Resolve a dotted path, returning MISSING when any segment is absent."""
    current = document
    for part in path.split("."):
        if isinstance(current, Mapping):
            if part not in current:
                return MISSING
            current = current[part]
        elif isinstance(current, list) and part.isdigit():
            index = int(part)
            if index >= len(current):
                return MISSING
            current = current[index]
        else:
            return MISSING
    return current


def set_path(document: dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    current = document
    for part in parts[:-1]:
        current = current.setdefault(part, {})
    current[parts[-1]] = value


def _type_bracket(value: Any) -> int:
    if value is None or value is MISSING:
        return 1
    if isinstance(value, bool):
        return 8
    if isinstance(value, (int, float)):
        return 2
    if isinstance(value, str):
        return 3
    if isinstance(value, Mapping):
        return 4
    if isinstance(value, (list, tuple)):
        return 5
    if isinstance(value, (bytes, bytearray)):
        return 6
    if isinstance(value, ObjectId):
        return 7
    if isinstance(value, datetime):
        return 9
    return 10


def compare_values(a: Any, b: Any) -> int:
    """Three-way comparison using BSON type ordering."""
    bracket_a, bracket_b = _type_bracket(a), _type_bracket(b)
    if bracket_a != bracket_b:
        return -1 if bracket_a < bracket_b else 1
    if bracket_a == 1:
        return 0
    if bracket_a in (4, 5, 10):
        a, b = repr(a), repr(b)
    if a == b:
        return 0
    return -1 if a < b else 1


def values_equal(a: Any, b: Any) -> bool:
    if a is MISSING:
        a = None
    if b is MISSING:
        b = None
    if isinstance(a, bool) != isinstance(b, bool):
        return False
    return bool(a == b)


def is_truthy(value: Any) -> bool:
    """Aggregation truthiness: false, null, missing and 0 are false."""
    if value is None or value is MISSING or value is False:
        return False
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value != 0
    return True


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


# =============================================================================
# Filters
# =============================================================================


def matches(
    document: Mapping[str, Any],
    filter: Mapping[str, Any] | None,
    text_fields: Sequence[str] | None = None,
) -> bool:
    """
    Check whether a document satisfies a query filter.

    Args:
        document: The document to test
        filter: MongoDB-style filter; None or {} matches everything
        text_fields: Fields covered by the collection's text index

    Raises:
        StorageError: For unsupported operators, or $text without a text index
    """
    if not filter:
        return True
    for key, condition in filter.items():
        if key == "$and":
            if not all(matches(document, sub, text_fields) for sub in condition):
                return False
        elif key == "$or":
            if not any(matches(document, sub, text_fields) for sub in condition):
                return False
        elif key == "$nor":
            if any(matches(document, sub, text_fields) for sub in condition):
                return False
        elif key == "$text":
            if text_score(document, condition, text_fields) <= 0:
                return False
        elif key.startswith("$"):
            raise StorageError(f"Unsupported top-level operator: {key}", code=2)
        elif not _match_field(get_path(document, key), condition):
            return False
    return True


def _is_operator_document(condition: Any) -> bool:
    return (
        isinstance(condition, Mapping)
        and bool(condition)
        and all(isinstance(k, str) and k.startswith("$") for k in condition)
    )


def _match_field(value: Any, condition: Any) -> bool:
    if _is_operator_document(condition):
        return all(_apply_operator(value, op, arg) for op, arg in condition.items())
    return _equals_or_contains(value, condition)


def _equals_or_contains(value: Any, expected: Any) -> bool:
    if values_equal(value, expected):
        return True
    if isinstance(value, list) and not isinstance(expected, list):
        return any(values_equal(item, expected) for item in value)
    return False


def _candidates(value: Any) -> list[Any]:
    if isinstance(value, list):
        return list(value)
    return [value]


def _range_match(value: Any, arg: Any, accept: Callable[[int], bool]) -> bool:
    for candidate in _candidates(value):
        if candidate is MISSING:
            continue
        # Query comparisons only match within the same BSON type bracket
        if _type_bracket(candidate) != _type_bracket(arg):
            continue
        if accept(compare_values(candidate, arg)):
            return True
    return False


def _apply_operator(value: Any, op: str, arg: Any) -> bool:
    if op == "$eq":
        return _equals_or_contains(value, arg)
    if op == "$ne":
        return not _equals_or_contains(value, arg)
    if op == "$gt":
        return _range_match(value, arg, lambda c: c > 0)
    if op == "$gte":
        return _range_match(value, arg, lambda c: c >= 0)
    if op == "$lt":
        return _range_match(value, arg, lambda c: c < 0)
    if op == "$lte":
        return _range_match(value, arg, lambda c: c <= 0)
    if op == "$in":
        return any(_equals_or_contains(value, item) for item in arg)
    if op == "$nin":
        return not any(_equals_or_contains(value, item) for item in arg)
    if op == "$exists":
        return (value is not MISSING) == bool(arg)
    if op == "$not":
        return not _match_field(value, arg)
    raise StorageError(f"Unsupported query operator: {op}", code=2)


# =============================================================================
# Text search
# =============================================================================


def _tokens(text: str) -> list[str]:
    return [_stem(token) for token in _TOKEN.findall(text.lower())]


def _stem(token: str) -> str:
    if len(token) > 3 and token.endswith("s") and not token.endswith("ss"):
        return token[:-1]
    return token


def text_score(
    document: Mapping[str, Any],
    condition: Mapping[str, Any],
    text_fields: Sequence[str] | None,
) -> float:
    """
    Score a document against a $text condition.

    Every search term is OR-ed; the score is the number of matching term
    occurrences across the indexed fields.
    """
    if not text_fields:
        raise StorageError("text index required for $text query", code=27)
    terms = set(_tokens(str(condition.get("$search", ""))))
    if not terms:
        return 0.0
    score = 0.0
    for field_path in text_fields:
        value = get_path(document, field_path)
        texts = value if isinstance(value, list) else [value]
        for text in texts:
            if isinstance(text, str):
                score += sum(1 for token in _tokens(text) if token in terms)
    return score


# =============================================================================
# Sorting
# =============================================================================


def sort_documents(
    documents: list[dict[str, Any]],
    sort: Sequence[tuple[str, Any]] | Mapping[str, Any],
    scores: Mapping[int, float] | None = None,
) -> list[dict[str, Any]]:
    """
    Sort documents by a multi-key sort specification.

    Args:
        documents: Documents to sort
        sort: (field, direction) pairs or a mapping
        scores: Text scores keyed by ``id()`` of each document

    Returns:
        A new sorted list
    """
    items = list(sort.items()) if isinstance(sort, Mapping) else list(sort)
    result = list(documents)
    # Stable sorts applied from the least significant key
    for field_path, direction in reversed(items):
        if isinstance(direction, Mapping) and direction.get("$meta") == "textScore":
            lookup = scores or {}
            result.sort(key=lambda d: lookup.get(id(d), 0.0), reverse=True)
            continue
        if direction not in (1, -1):
            raise StorageError(f"Invalid sort direction for {field_path}: {direction!r}", code=2)
        result.sort(
            key=functools.cmp_to_key(
                lambda a, b, p=field_path: compare_values(get_path(a, p), get_path(b, p))
            ),
            reverse=direction == -1,
        )
    return result


# =============================================================================
# Aggregation
# =============================================================================


def evaluate(expression: Any, document: Mapping[str, Any]) -> Any:
    """Evaluate an aggregation expression against a document."""
    if isinstance(expression, str) and expression.startswith("$"):
        return get_path(document, expression[1:])
    if isinstance(expression, list):
        return [evaluate(item, document) for item in expression]
    if isinstance(expression, Mapping):
        if len(expression) == 1:
            op, arg = next(iter(expression.items()))
            if isinstance(op, str) and op.startswith("$"):
                return _evaluate_operator(op, arg, document)
        return {key: evaluate(value, document) for key, value in expression.items()}
    return expression


def _args(arg: Any, document: Mapping[str, Any]) -> list[Any]:
    if not isinstance(arg, list):
        arg = [arg]
    return [evaluate(item, document) for item in arg]


_COMPARISONS: dict[str, Callable[[int], bool]] = {
    "$lt": lambda c: c < 0,
    "$lte": lambda c: c <= 0,
    "$gt": lambda c: c > 0,
    "$gte": lambda c: c >= 0,
    "$eq": lambda c: c == 0,
    "$ne": lambda c: c != 0,
}


def _evaluate_operator(op: str, arg: Any, document: Mapping[str, Any]) -> Any:
    if op == "$literal":
        return arg
    if op in _COMPARISONS:
        left, right = _args(arg, document)
        return _COMPARISONS[op](compare_values(left, right))
    if op == "$cmp":
        left, right = _args(arg, document)
        return compare_values(left, right)
    if op == "$and":
        return all(is_truthy(value) for value in _args(arg, document))
    if op == "$or":
        return any(is_truthy(value) for value in _args(arg, document))
    if op == "$not":
        return not is_truthy(_args(arg, document)[0])
    if op == "$isNumber":
        return is_number(_args(arg, document)[0])
    if op == "$ifNull":
        values = _args(arg, document)
        for value in values[:-1]:
            if value is not None and value is not MISSING:
                return value
        return values[-1]
    if op == "$cond":
        if isinstance(arg, Mapping):
            condition, then, otherwise = arg["if"], arg["then"], arg["else"]
        else:
            condition, then, otherwise = arg
        if is_truthy(evaluate(condition, document)):
            return evaluate(then, document)
        return evaluate(otherwise, document)
    raise StorageError(f"Unsupported expression operator: {op}", code=168)


def _group_key(value: Any) -> str:
    return repr(None if value is MISSING else value)


def _accumulate(
    op: str,
    values: list[Any],
) -> Any:
    numbers = [v for v in values if is_number(v)]
    present = [v for v in values if v is not MISSING and v is not None]
    if op == "$sum":
        return sum(numbers)
    if op == "$avg":
        return sum(numbers) / len(numbers) if numbers else None
    if op == "$min":
        return min(present, key=functools.cmp_to_key(compare_values)) if present else None
    if op == "$max":
        return max(present, key=functools.cmp_to_key(compare_values)) if present else None
    if op == "$first":
        return None if not values or values[0] is MISSING else values[0]
    if op == "$push":
        return [v for v in values if v is not MISSING]
    raise StorageError(f"Unsupported accumulator: {op}", code=15952)


def _group(documents: list[dict[str, Any]], spec: Mapping[str, Any]) -> list[dict[str, Any]]:
    if "_id" not in spec:
        raise StorageError("a group specification must include an _id", code=15955)
    groups: dict[str, tuple[Any, list[dict[str, Any]]]] = {}
    for document in documents:
        key_value = evaluate(spec["_id"], document)
        if key_value is MISSING:
            key_value = None
        groups.setdefault(_group_key(key_value), (key_value, []))[1].append(document)

    results = []
    for key_value, members in groups.values():
        output: dict[str, Any] = {"_id": key_value}
        for field_name, accumulator in spec.items():
            if field_name == "_id":
                continue
            op, expression = next(iter(accumulator.items()))
            output[field_name] = _accumulate(op, [evaluate(expression, m) for m in members])
        results.append(output)
    return results


def _project(documents: list[dict[str, Any]], spec: Mapping[str, Any]) -> list[dict[str, Any]]:
    exclusions = [k for k, v in spec.items() if v in (0, False) and not isinstance(v, Mapping)]
    if exclusions and len(exclusions) == len(spec):
        return [{k: v for k, v in doc.items() if k not in exclusions} for doc in documents]

    results = []
    for document in documents:
        output: dict[str, Any] = {}
        if spec.get("_id", 1) not in (0, False) and "_id" in document:
            output["_id"] = document["_id"]
        for field_name, value in spec.items():
            if field_name == "_id" and value in (0, False, 1, True):
                continue
            if value is True or (is_number(value) and value == 1):
                resolved = get_path(document, field_name)
                if resolved is not MISSING:
                    set_path(output, field_name, resolved)
            elif value in (0, False):
                continue
            else:
                resolved = evaluate(value, document)
                if resolved is not MISSING:
                    output[field_name] = resolved
        results.append(output)
    return results


def run_pipeline(
    documents: list[dict[str, Any]],
    pipeline: Sequence[Mapping[str, Any]],
    text_fields: Sequence[str] | None = None,
) -> list[dict[str, Any]]:
    """
    Run an aggregation pipeline over a list of documents.

    Raises:
        StorageError: For unsupported stages, operators or accumulators
    """
    current = list(documents)
    for stage in pipeline:
        if len(stage) != 1:
            raise StorageError("a pipeline stage must have exactly one field", code=40323)
        name, spec = next(iter(stage.items()))
        if name == "$match":
            current = [d for d in current if matches(d, spec, text_fields)]
        elif name == "$group":
            current = _group(current, spec)
        elif name == "$project":
            current = _project(current, spec)
        elif name == "$sort":
            current = sort_documents(current, spec)
        elif name == "$limit":
            current = current[: int(spec)]
        elif name == "$skip":
            current = current[int(spec) :]
        elif name == "$count":
            current = [{spec: len(current)}] if current else []
        else:
            raise StorageError(f"Unrecognized pipeline stage name: {name}", code=40324)
    return current


__all__ = [
    "MISSING",
    "get_path",
    "set_path",
    "compare_values",
    "values_equal",
    "is_truthy",
    "is_number",
    "matches",
    "text_score",
    "sort_documents",
    "evaluate",
    "run_pipeline",
]

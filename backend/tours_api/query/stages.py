"""The four stages that turn client parameters into slices of a QueryPlan.

Each stage is a pure function of its own parameters. None of them touch the
collection, and none of them raise on bad client input: anything that cannot
be understood falls back to the stage default.
"""
import logging
import re
from typing import Any, Iterator, List, Mapping, Optional, Tuple

from .params import ParameterMap, last_value, split_nested_key
from .plan import (
    DEFAULT_PROJECTION,
    DEFAULT_SORT,
    OPERATOR_TOKENS,
    Condition,
    Direction,
    Operator,
    PaginationSpec,
    Predicate,
    ProjectionSpec,
    SortKey,
    SortSpec,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 100

# skip and limit travel as BSON int64
BSON_INT64_MAX = 2 ** 63 - 1

_DIGITS = re.compile(r"^[0-9]+$")


def _entries(residual: ParameterMap) -> Iterator[Tuple[str, Optional[str], Any]]:
    for key, value in residual.items():
        if isinstance(value, Mapping):
            # already nested, e.g. {"price": {"gte": "200"}}
            for token, inner in value.items():
                yield key, str(token), inner
            continue
        name, token = split_nested_key(key)
        yield name, token, value


def filter_stage(residual: ParameterMap) -> Predicate:
    conditions: List[Condition] = []
    for name, token, raw in _entries(residual):
        if isinstance(raw, list) and len(raw) > 1:
            logger.debug("parameter %s given %d times, keeping the last", name, len(raw))
        value = last_value(raw)
        if token is None:
            conditions.append(Condition(name, Operator.EQ, value))
        elif token in OPERATOR_TOKENS:
            conditions.append(Condition(name, OPERATOR_TOKENS[token], value))
        else:
            # unsupported operator: keep the key literally so it just matches nothing
            literal = f"{name}[{token}]"
            logger.debug("unsupported operator token %r, filtering on literal field %r", token, literal)
            conditions.append(Condition(literal, Operator.EQ, value))
    return Predicate.of(conditions)


def sort_stage(raw: Any) -> SortSpec:
    value = last_value(raw)
    if not isinstance(value, str):
        return DEFAULT_SORT
    keys: List[SortKey] = []
    for token in value.split(","):
        token = token.strip()
        if token.startswith("-"):
            name, direction = token[1:].strip(), Direction.DESC
        else:
            name, direction = token, Direction.ASC
        if name:
            keys.append(SortKey(name, direction))
    if not keys:
        return DEFAULT_SORT
    return SortSpec(tuple(keys))


def projection_stage(raw: Any) -> ProjectionSpec:
    value = last_value(raw)
    if not isinstance(value, str):
        return DEFAULT_PROJECTION
    tokens = [t.strip() for t in value.split(",") if t.strip()]
    included = [t for t in tokens if not t.startswith("-")]
    excluded = [t[1:].strip() for t in tokens if t.startswith("-") and t[1:].strip()]
    if included:
        hide_id = "_id" in excluded
        dropped = [name for name in excluded if name != "_id"]
        if dropped:
            logger.debug("dropping excluded fields %s from an inclusion projection", dropped)
        return ProjectionSpec.including(included, hide_id=hide_id)
    if excluded:
        return ProjectionSpec.excluding(excluded)
    return DEFAULT_PROJECTION


def _positive_int(raw: Any) -> Optional[int]:
    value = last_value(raw)
    if value is None:
        return None
    text = str(value).strip()
    if not _DIGITS.match(text):
        return None
    number = int(text)
    return number if 1 <= number <= BSON_INT64_MAX else None


def pagination_stage(
    page: Any = None,
    limit: Any = None,
    default_limit: int = DEFAULT_LIMIT,
    max_limit: Optional[int] = None,
) -> PaginationSpec:
    page_n = _positive_int(page)
    limit_n = _positive_int(limit)
    if page is not None and page_n is None:
        logger.debug("page=%r is not a positive integer, using %d", page, DEFAULT_PAGE)
    if limit is not None and limit_n is None:
        logger.debug("limit=%r is not a positive integer, using %d", limit, default_limit)
    page_n = page_n or DEFAULT_PAGE
    limit_n = limit_n or default_limit
    if max_limit is not None and limit_n > max_limit:
        logger.debug("limit=%d above cap, clamped to %d", limit_n, max_limit)
        limit_n = max_limit
    if (page_n - 1) * limit_n > BSON_INT64_MAX:
        logger.debug("page=%d with limit=%d skips past int64, using %d", page_n, limit_n, DEFAULT_PAGE)
        page_n = DEFAULT_PAGE
    return PaginationSpec(page=page_n, limit=limit_n)

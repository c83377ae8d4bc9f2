import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

# value as it arrives from the query string; repeated keys collapse to a list
ParamValue = Union[str, List[str], Mapping[str, Any]]
ParameterMap = Mapping[str, ParamValue]

RESERVED_KEYS = frozenset({"page", "sort", "limit", "fields"})

# field[token], a single bracket level; the token must be the whole bracket content
_NESTED_KEY = re.compile(r"^(?P<field>[^\[\]]+)\[(?P<token>[^\[\]]+)\]$")


def params_from_pairs(pairs: Iterable[Tuple[str, str]]) -> Dict[str, ParamValue]:
    """Fold ``(key, value)`` pairs into a ParameterMap.

    A key seen once maps to its string; a repeated key maps to the list of its
    values in arrival order.
    """
    out: Dict[str, ParamValue] = {}
    for key, value in pairs:
        if key not in out:
            out[key] = value
        elif isinstance(out[key], list):
            out[key].append(value)
        else:
            out[key] = [out[key], value]
    return out


def normalize(params: ParameterMap) -> Dict[str, ParamValue]:
    """Return the filter candidates: every key except the reserved ones.

    The caller's map is left as it was.
    """
    return {k: v for k, v in params.items() if k not in RESERVED_KEYS}


def split_nested_key(key: str) -> Tuple[str, Optional[str]]:
    m = _NESTED_KEY.match(key)
    if not m:
        return key, None
    return m.group("field"), m.group("token")


def last_value(value: Any) -> Any:
    """Repeated parameters resolve to the last occurrence."""
    if isinstance(value, list):
        return value[-1] if value else None
    return value

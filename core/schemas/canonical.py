"""
Schemas & Canonicalization
File: canonical.py

Purpose: Deterministic serialization utilities for attribute hashing,
attribute encryption, and signing digests.

Three serializations are used by the protocol and must not be mixed up:
- dumps_attributes: top-level keys sorted, compact. Input to hash_attributes.
- dumps_compact: insertion order, compact. Plaintext of encrypted attributes.
- dumps_canonical: every level sorted, compact. Input to signing digests.

All three produce the exact bytes JavaScript's JSON.stringify produces for
the same object: numbers use Number.prototype.toString formatting, keys
that are array indices ("0", "2", "10") come first in numeric order, and
sorted keys compare by UTF-16 code unit. Digests therefore agree with the
JavaScript issuer and verifier.

CRITICAL: All outputs from this module MUST be deterministic across runs.
"""

import json
import math
import re
from enum import Enum
from typing import Any

from pydantic import BaseModel, JsonValue, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .errors import CanonicalizationException

# JSON.stringify switches to exponent notation at 1e21
_JS_INTEGRAL_LIMIT = 1e21

# Integers beyond this lose precision as JavaScript numbers
_MAX_SAFE_INTEGER = 2**53

_ARRAY_INDEX_RE = re.compile(r"0|[1-9][0-9]*")
_MAX_ARRAY_INDEX = 2**32 - 1

AttributeSet = dict[str, JsonValue]

_attribute_adapter: TypeAdapter[AttributeSet] = TypeAdapter(AttributeSet)


def _validate_float(value: float, path: str = "") -> None:
    """
    Validate that a float is finite (not NaN or Infinity).

    Raises:
        CanonicalizationException: If the float is NaN or Infinity.
    """
    if not math.isfinite(value):
        raise CanonicalizationException(
            message=f"Non-finite float value encountered: {value}",
            details={"path": path, "value": str(value)},
        )


def canonicalize_value(value: Any, path: str = "") -> Any:
    """
    Recursively convert a value to its JSON-compatible canonical form.

    Dict insertion order is preserved here; key sorting is a property of the
    dump function that serializes the result.

    Raises:
        CanonicalizationException: If the value cannot be canonicalized
            (e.g., contains NaN/Infinity floats or unsupported types).
    """
    if value is None:
        return None

    if isinstance(value, bool):
        # Must check bool before int since bool is subclass of int
        return value

    if isinstance(value, int):
        return value

    if isinstance(value, float):
        _validate_float(value, path)
        if value.is_integer() and abs(value) < _JS_INTEGRAL_LIMIT:
            return int(value)
        return value

    if isinstance(value, str):
        return value

    if isinstance(value, Enum):
        return value.value

    if isinstance(value, BaseModel):
        dumped = value.model_dump(mode="json", by_alias=True)
        return canonicalize_value(dumped, path)

    if isinstance(value, dict):
        result = {}
        for k, v in value.items():
            if not isinstance(k, str):
                raise CanonicalizationException(
                    message=f"Object keys must be strings, got {type(k).__name__}",
                    details={"path": path, "key": repr(k)},
                )
            result[k] = canonicalize_value(v, f"{path}.{k}" if path else k)
        return result

    if isinstance(value, (list, tuple)):
        return [
            canonicalize_value(item, f"{path}[{i}]")
            for i, item in enumerate(value)
        ]

    raise CanonicalizationException(
        message=f"Cannot canonicalize value of type {type(value).__name__}",
        details={"path": path, "type": type(value).__name__},
    )


def validate_attributes(attributes: Any) -> AttributeSet:
    """
    Validate an attribute set against the closed JSON value union.

    Returns the attribute set unchanged (same key order) when valid.

    Raises:
        CanonicalizationException: If attributes is not a mapping of string
            keys to JSON values.
    """
    if not isinstance(attributes, dict):
        raise CanonicalizationException(
            message="Attributes must be a JSON object",
            details={"type": type(attributes).__name__},
        )
    try:
        _attribute_adapter.validate_python(attributes)
    except PydanticValidationError as e:
        raise CanonicalizationException(
            message="Attributes contain values outside the JSON value set",
            details={"errors": [err["msg"] for err in e.errors()]},
        ) from e
    canonicalize_value(attributes)
    return attributes


def _utf16_order(key: str) -> bytes:
    return key.encode("utf-16-be", "surrogatepass")


def _is_array_index(key: str) -> bool:
    return bool(_ARRAY_INDEX_RE.fullmatch(key)) and int(key) < _MAX_ARRAY_INDEX


def _object_keys(obj: dict[str, Any], sort_keys: bool) -> list[str]:
    """Property order of a JavaScript object built from obj's keys."""
    keys = sorted(obj, key=_utf16_order) if sort_keys else list(obj)
    indices = sorted((k for k in keys if _is_array_index(k)), key=int)
    return indices + [k for k in keys if not _is_array_index(k)]


def format_js_number(value: float) -> str:
    """
    Render a finite float as JavaScript's Number.prototype.toString does.

    Example:
        >>> format_js_number(1e-7)
        '1e-7'
        >>> format_js_number(0.000001)
        '0.000001'
    """
    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    mantissa, _, exponent = repr(abs(value)).partition("e")
    whole, _, fraction = mantissa.partition(".")
    digits = whole + fraction
    # value == 0.<digits> * 10**point
    point = len(whole) + (int(exponent) if exponent else 0)
    significant = digits.lstrip("0")
    point -= len(digits) - len(significant)
    digits = significant.rstrip("0")
    k = len(digits)

    if k <= point <= 21:
        return sign + digits + "0" * (point - k)
    if 0 < point <= 21:
        return sign + digits[:point] + "." + digits[point:]
    if -6 < point <= 0:
        return sign + "0." + "0" * -point + digits
    e = point - 1
    exp = f"e{'+' if e > 0 else '-'}{abs(e)}"
    if k == 1:
        return sign + digits + exp
    return sign + digits[0] + "." + digits[1:] + exp


def _stringify(value: Any, sort_keys: bool, nested_sort: bool) -> str:
    if value is None:
        return "null"
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, int):
        if abs(value) < _MAX_SAFE_INTEGER:
            return str(value)
        return format_js_number(float(value))
    if isinstance(value, float):
        return format_js_number(value)
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, list):
        return "[" + ",".join(_stringify(v, nested_sort, nested_sort) for v in value) + "]"
    return "{" + ",".join(
        json.dumps(k, ensure_ascii=False) + ":" + _stringify(value[k], nested_sort, nested_sort)
        for k in _object_keys(value, sort_keys)
    ) + "}"


def _dumps(value: Any, sort_keys: bool, nested_sort: bool) -> str:
    return _stringify(canonicalize_value(value), sort_keys, nested_sort)


def dumps_canonical(obj: Any) -> str:
    """
    Serialize an object to canonical JSON string.

    Keys are sorted at every level and there is no extra whitespace.

    Example:
        >>> dumps_canonical({"b": 2, "a": {"d": 1.0, "c": None}})
        '{"a":{"c":null,"d":1},"b":2}'
    """
    try:
        return _dumps(obj, sort_keys=True, nested_sort=True)
    except CanonicalizationException:
        raise
    except (TypeError, ValueError, OverflowError) as e:
        raise CanonicalizationException(
            message=f"Failed to serialize to canonical JSON: {e}",
            details={"type": type(obj).__name__, "error": str(e)},
        ) from e


def dumps_compact(obj: Any) -> str:
    """Serialize compactly, preserving insertion order (JSON.stringify)."""
    return _dumps(obj, sort_keys=False, nested_sort=False)


def dumps_attributes(attributes: AttributeSet) -> str:
    """
    Serialize an attribute set with its top-level keys sorted.

    Nested objects keep their insertion order; only the top level is sorted.

    Example:
        >>> dumps_attributes({"name": "Alice", "degree": "CS"})
        '{"degree":"CS","name":"Alice"}'
    """
    validate_attributes(attributes)
    return _dumps(attributes, sort_keys=True, nested_sort=False)


def loads_canonical(json_str: str) -> Any:
    """Parse a JSON string produced by any of the dump functions."""
    return json.loads(json_str)


def canonical_equals(obj1: Any, obj2: Any) -> bool:
    """Check if two objects have identical canonical JSON representations."""
    try:
        return dumps_canonical(obj1) == dumps_canonical(obj2)
    except CanonicalizationException:
        return False

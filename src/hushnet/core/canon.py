# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Hushnet Contributors

"""Canonical JSON serialization used as signing input.

The canonical form is never returned to clients. It only has to be
reproduced bit-for-bit by every signer and verifier:

- object keys sorted by their UTF-8 bytes, at every level
- array order preserved
- numbers in the ECMAScript shortest round-trip form (the RFC 8785
  number policy), so ``1.0`` and ``1`` both render as ``1`` and ``10**21``
  renders as ``1e+21``. Integers no double can hold exactly keep their
  full decimal digits
- strings with only the mandatory JSON escapes, everything else raw UTF-8
- no whitespace between tokens
"""

from __future__ import annotations

import json
import math
from typing import TypeAlias

from .exceptions import CanonicalizationError

JSONValue: TypeAlias = "None | bool | int | float | str | list[JSONValue] | tuple[JSONValue, ...] | dict[str, JSONValue]"

# ECMAScript switches to exponent notation outside [1e-6, 1e21)
_MAX_PLAIN_EXPONENT = 21
_MIN_PLAIN_EXPONENT = -6


def canonicalize(value: JSONValue) -> bytes:
    """Serialize a JSON value into its canonical byte form.

    Raises:
        CanonicalizationError: for NaN/Infinity, non-string object keys,
            cyclic structures, unsupported types or unencodable strings.
    """
    parts: list[str] = []
    try:
        _encode(value, parts, set())
        return "".join(parts).encode("utf-8")
    except UnicodeEncodeError as e:
        raise CanonicalizationError("String is not valid Unicode", value=e.object[e.start : e.end]) from e
    except RecursionError as e:
        raise CanonicalizationError("Value is nested too deeply") from e


def _encode(value: JSONValue, parts: list[str], active: set[int]) -> None:
    # bool before int: bool is an int subclass
    if value is None:
        parts.append("null")
    elif value is True:
        parts.append("true")
    elif value is False:
        parts.append("false")
    elif isinstance(value, int):
        parts.append(_format_int(value))
    elif isinstance(value, float):
        parts.append(format_number(value))
    elif isinstance(value, str):
        parts.append(_encode_string(value))
    elif isinstance(value, (list, tuple)):
        _enter(value, active)
        parts.append("[")
        for i, item in enumerate(value):
            if i:
                parts.append(",")
            _encode(item, parts, active)
        parts.append("]")
        active.discard(id(value))
    elif isinstance(value, dict):
        _enter(value, active)
        for key in value:
            if not isinstance(key, str):
                raise CanonicalizationError("Object keys must be strings", value=repr(key))
        parts.append("{")
        for i, key in enumerate(sorted(value, key=lambda k: k.encode("utf-8"))):
            if i:
                parts.append(",")
            parts.append(_encode_string(key))
            parts.append(":")
            _encode(value[key], parts, active)
        parts.append("}")
        active.discard(id(value))
    else:
        raise CanonicalizationError(f"Unsupported type: {type(value).__name__}")


def _format_int(value: int) -> str:
    # An int a double holds exactly renders like the equal float; wider ints stay exact
    try:
        as_float = float(value)
    except OverflowError:
        return str(int(value))
    if as_float == value:
        return format_number(as_float)
    return str(int(value))


def _enter(container: object, active: set[int]) -> None:
    marker = id(container)
    if marker in active:
        raise CanonicalizationError("Cyclic structure cannot be canonicalized")
    active.add(marker)


def _encode_string(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


def format_number(value: float) -> str:
    """Render a float the way ECMAScript's Number.prototype.toString does."""
    if math.isnan(value) or math.isinf(value):
        raise CanonicalizationError("NaN and Infinity have no JSON form", value=value)
    if value == 0:
        return "0"

    sign = "-" if value < 0 else ""
    digits, n = _shortest_digits(abs(value))
    k = len(digits)

    # value == 0.<digits> * 10**n
    if k <= n <= _MAX_PLAIN_EXPONENT:
        body = digits + "0" * (n - k)
    elif 0 < n <= _MAX_PLAIN_EXPONENT:
        body = f"{digits[:n]}.{digits[n:]}"
    elif _MIN_PLAIN_EXPONENT < n <= 0:
        body = "0." + "0" * (-n) + digits
    else:
        exponent = n - 1
        mantissa = digits[0] + (f".{digits[1:]}" if k > 1 else "")
        body = f"{mantissa}e{'+' if exponent > 0 else '-'}{abs(exponent)}"
    return sign + body


def _shortest_digits(value: float) -> tuple[str, int]:
    """Split a positive float into significant digits and decimal exponent.

    repr() already yields the shortest round-tripping digit string; only
    its layout differs from ECMAScript.
    """
    text = repr(value)
    mantissa, _, exp_text = text.partition("e")
    int_part, _, frac_part = mantissa.partition(".")

    all_digits = int_part + frac_part
    n = len(int_part) + (int(exp_text) if exp_text else 0)
    significant = all_digits.lstrip("0")
    n -= len(all_digits) - len(significant)
    return significant.rstrip("0"), n

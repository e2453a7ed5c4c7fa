"""Tests for hushnet.core.canon - canonical JSON signing input.

Tests cover:
- Key ordering and order-independence
- Number formatting (ECMAScript shortest form)
- String escaping
- Rejection of values with no canonical form
"""

from __future__ import annotations

import pytest

from hushnet.core.canon import canonicalize, format_number
from hushnet.core.exceptions import CanonicalizationError, MalformedInput


class TestStructure:
    def test_keys_sorted_at_every_level(self):
        value = {"b": 1, "a": {"z": True, "m": None}, "c": [3, 1, 2]}
        assert canonicalize(value) == b'{"a":{"m":null,"z":true},"b":1,"c":[3,1,2]}'

    def test_insertion_order_does_not_matter(self):
        first = {"name": "node", "host": "h.example", "features": {"x": 1, "a": [1, 2]}}
        second = {"features": {"a": [1, 2], "x": 1}, "host": "h.example", "name": "node"}
        assert canonicalize(first) == canonicalize(second)

    def test_array_order_preserved(self):
        assert canonicalize([3, 1, 2]) != canonicalize([1, 2, 3])

    def test_tuple_is_array(self):
        assert canonicalize((1, "a")) == b'[1,"a"]'

    def test_empty_containers(self):
        assert canonicalize({}) == b"{}"
        assert canonicalize([]) == b"[]"

    def test_literals(self):
        assert canonicalize([True, False, None]) == b"[true,false,null]"

    def test_keys_sorted_by_utf8_bytes(self):
        # U+00E9 (0xC3 0xA9) sorts after "z" (0x7A) by bytes
        value = {"é": 1, "z": 2, "A": 3}
        assert canonicalize(value) == '{"A":3,"z":2,"é":1}'.encode()

    def test_astral_key_sorts_after_bmp_private_use(self):
        # By UTF-16 code units U+1F600 would sort before U+E000; by bytes it sorts after
        value = {"\U0001f600": 1, "\ue000": 2}
        assert canonicalize(value) == '{"\ue000":2,"\U0001f600":1}'.encode()

    def test_shared_subobject_is_not_a_cycle(self):
        shared = {"k": 1}
        assert canonicalize([shared, shared]) == b'[{"k":1},{"k":1}]'


class TestNumbers:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (1.0, "1"),
            (-0.0, "0"),
            (0.5, "0.5"),
            (-2.5, "-2.5"),
            (123.456, "123.456"),
            (1e20, "100000000000000000000"),
            (1e21, "1e+21"),
            (1e-6, "0.000001"),
            (1e-7, "1e-7"),
            (1.5e300, "1.5e+300"),
            (0.1 + 0.2, "0.30000000000000004"),
        ],
    )
    def test_float_formatting(self, value, expected):
        assert format_number(value) == expected

    def test_integral_float_equals_int(self):
        assert canonicalize({"n": 1.0}) == canonicalize({"n": 1})

    @pytest.mark.parametrize("value", [10**21, 2**60, 2**64, -(10**22)])
    def test_large_int_matches_equal_float(self, value):
        assert canonicalize({"n": value}) == canonicalize({"n": float(value)})

    def test_large_int_renders_like_float(self):
        assert canonicalize({"n": 10**21}) == b'{"n":1e+21}'
        assert canonicalize(2**60) == b"1152921504606847000"

    def test_int_beyond_double_precision_kept_exact(self):
        assert canonicalize(2**64 + 1) == b"18446744073709551617"
        assert canonicalize(10**400) == b"1" + b"0" * 400

    def test_bool_is_not_a_number(self):
        assert canonicalize(True) == b"true"

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_rejected(self, value):
        with pytest.raises(CanonicalizationError):
            canonicalize({"n": value})


class TestStrings:
    def test_mandatory_escapes_only(self):
        assert canonicalize('a"b\\c') == b'"a\\"b\\\\c"'

    def test_control_characters(self):
        assert canonicalize("\n\t\x01") == b'"\\n\\t\\u0001"'

    def test_non_ascii_emitted_raw(self):
        assert canonicalize("café ✓") == '"café ✓"'.encode()

    def test_lone_surrogate_rejected(self):
        with pytest.raises(CanonicalizationError):
            canonicalize("bad \ud800")


class TestRejections:
    def test_non_string_key(self):
        with pytest.raises(CanonicalizationError):
            canonicalize({1: "x"})

    def test_cycle(self):
        value: dict = {}
        value["self"] = value
        with pytest.raises(CanonicalizationError):
            canonicalize(value)

    def test_unsupported_type(self):
        with pytest.raises(CanonicalizationError):
            canonicalize({"when": object()})

    def test_is_malformed_input(self):
        with pytest.raises(MalformedInput) as exc_info:
            canonicalize(float("nan"))
        assert exc_info.value.status_code == 400
        assert exc_info.value.code == "VALIDATION_NOT_CANONICAL"

"""
==============================================================================
Expression Evaluator Tests
==============================================================================

Tests for FUNCTION/IF expressions and {{ }} interpolation.

==============================================================================
"""

import pytest

from scanflow.core import EvaluationError
from scanflow.engine.expressions import evaluate, interpolate, to_text, truthy


VARIABLES = {
    "barcode": "9780201633610",
    "barcodes": ["9780201633610", "123"],
    "quantity": "3",
    "timestamp": 1700000000000000,
    "device_name": "dock-1",
    "scan_session_name": "Inventory",
}


class TestEvaluate:
    """Tests for expression evaluation."""

    @pytest.mark.parametrize("expression, expected", [
        ("1 + 2 * 3", 7),
        ("(1 + 2) * 3", 9),
        ("7 % 4", 3),
        ("10 / 4", 2.5),
        ("10 / 5", 2),
        ("-quantity + 1", -2),
        ("'a' + 1", "a1"),
        ("quantity + 1", "31"),
        ("number(quantity) + 1", 4),
        ("quantity == 3", True),
        ("quantity === 3", False),
        ("quantity === '3'", True),
        ("null == undefined", True),
        ("barcode != '123' && quantity > 2", True),
        ("barcode == '123' || device_name", "dock-1"),
        ("not true or false", False),
        ("quantity > 2 ? 'many' : 'few'", "many"),
        ("[1, 2, 3].length", 3),
        ("barcodes[1]", "123"),
        ("barcodes[5]", None),
        ("barcodes.includes('123')", True),
        ("barcodes.join('|')", "9780201633610|123"),
    ])
    def test_operators(self, expression, expected):
        assert evaluate(expression, VARIABLES) == expected

    @pytest.mark.parametrize("expression, expected", [
        ("barcode.substr(0, 3)", "978"),
        ("barcode.substring(3, 6)", "020"),
        ("barcode.slice(-4)", "3610"),
        ("barcode.startsWith('978')", True),
        ("barcode.endsWith('0')", True),
        ("barcode.charAt(1)", "7"),
        ("barcode.length", 13),
        ("device_name.toUpperCase()", "DOCK-1"),
        ("device_name.replace('-', '_')", "dock_1"),
        ("device_name.split('-')", ["dock", "1"]),
        ("'7'.padStart(3, '0')", "007"),
        ("upper(scan_session_name)", "INVENTORY"),
        ("len(barcode)", 13),
        ("parseInt('42abc')", 42),
        ("string(12.0)", "12"),
        ("' x '.trim()", "x"),
        ("\"a\\tb\"", "a\tb"),
    ])
    def test_string_helpers(self, expression, expected):
        assert evaluate(expression, VARIABLES) == expected

    def test_only_bindings_are_visible(self):
        with pytest.raises(EvaluationError) as exc_info:
            evaluate("__import__", VARIABLES)
        assert "Unknown identifier" in exc_info.value.message
        assert exc_info.value.expression == "__import__"

    def test_no_host_attribute_access(self):
        assert evaluate("barcode.__class__", VARIABLES) is None
        with pytest.raises(EvaluationError):
            evaluate("barcode.__class__()", VARIABLES)

    @pytest.mark.parametrize("expression", [
        "",
        "1 +",
        "barcode ==",
        "(1",
        "a # b",
        "quantity / 0",
        "unknown_fn(1)",
        "null.length",
        "barcode.substr()()",
        "(" * 1500 + "1" + ")" * 1500,
    ])
    def test_errors(self, expression):
        with pytest.raises(EvaluationError) as exc_info:
            evaluate(expression, VARIABLES)
        assert exc_info.value.code == "EVALUATION_ERROR"


class TestValueHelpers:
    """Tests for truthiness and text rendering."""

    @pytest.mark.parametrize("value, expected", [
        (None, False),
        ("", False),
        ("0", True),
        (0, False),
        (0.5, True),
        ([], True),
        (False, False),
    ])
    def test_truthy(self, value, expected):
        assert truthy(value) is expected

    @pytest.mark.parametrize("value, expected", [
        (None, ""),
        (True, "true"),
        (4.0, "4"),
        (4.5, "4.5"),
        (["a", 1], "a,1"),
        (float("nan"), "NaN"),
        (float("-inf"), "-Infinity"),
    ])
    def test_to_text(self, value, expected):
        assert to_text(value) == expected


class TestInterpolate:
    """Tests for {{ }} placeholder replacement."""

    def test_replaces_placeholders(self):
        text = interpolate("{{barcode}},{{ device_name }}", VARIABLES)
        assert text == "9780201633610,dock-1"

    def test_dotted_paths(self):
        assert interpolate("{{ barcodes.1 }}/{{ barcodes.length }}", VARIABLES) == "123/2"

    def test_unresolved_placeholders_untouched(self):
        assert interpolate("{{ missing }}-{{ barcodes.9 }}", VARIABLES) == "{{ missing }}-{{ barcodes.9 }}"

    def test_plain_text_unchanged(self):
        assert interpolate("A,B,C", VARIABLES) == "A,B,C"
        assert interpolate("", VARIABLES) == ""

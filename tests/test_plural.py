"""Tests for the plural-forms compiler and evaluator."""

from __future__ import annotations

import logging

import pytest

from mocatalog.exceptions import InvalidPluralExpressionError
from mocatalog.plural import (
    DEFAULT_PLURAL_FORMS,
    BinaryOp,
    Conditional,
    Group,
    Literal,
    PluralEvaluator,
    TokenType,
    Variable,
    _known_formula,
    c_div,
    c_mod,
    compile_plural_forms,
    parse_expression,
    sanitize_declaration,
    tokenize,
)


SLAVIC = (
    "nplurals=3; plural=(n%10==1 && n%100!=11 ? 0 : "
    "n%10>=2 && n%10<=4 && (n%100<10 || n%100>=20) ? 1 : 2);"
)


def evaluate(expression: str, n: int) -> int:
    return parse_expression(expression).evaluate(n)


# =============================================================================
# Tokenizer
# =============================================================================


class TestTokenize:
    def test_token_stream(self):
        tokens = tokenize("n%10 >= 2 ? 1 : 0")
        assert [t.value for t in tokens] == ["n", "%", "10", ">=", "2", "?", "1", ":", "0", ""]
        assert tokens[0].type is TokenType.VARIABLE
        assert tokens[2].type is TokenType.NUMBER
        assert tokens[-1].type is TokenType.END

    def test_positions(self):
        tokens = tokenize("n != 1")
        assert [t.position for t in tokens] == [0, 2, 5, 6]

    def test_two_char_operators_win(self):
        tokens = tokenize("n<=1&&n||!n")
        assert [t.value for t in tokens if t.type is TokenType.OPERATOR] == [
            "<=",
            "&&",
            "||",
            "!",
        ]

    def test_unknown_identifier(self):
        with pytest.raises(InvalidPluralExpressionError) as exc_info:
            tokenize("n + exit")
        assert exc_info.value.position == 4

    @pytest.mark.parametrize("expression", ["n = 1", "n & 1", "n | 1", "n $ 1", "n ; 1"])
    def test_unexpected_characters(self, expression: str):
        with pytest.raises(InvalidPluralExpressionError):
            tokenize(expression)


# =============================================================================
# Parser and evaluation
# =============================================================================


class TestParseExpression:
    def test_tree_shape(self):
        tree = parse_expression("n == 1 ? 0 : (1)")
        assert isinstance(tree, Conditional)
        assert tree.condition == BinaryOp("==", Variable(), Literal(1))
        assert tree.if_false == Group(Literal(1))

    @pytest.mark.parametrize(
        "expression, expected",
        [
            ("1 + 2 * 3", 7),
            ("(1 + 2) * 3", 9),
            ("10 - 4 - 3", 3),
            ("100 / 10 / 5", 2),
            ("2 + 3 == 5", 1),
            ("1 < 2 == 1", 1),
            ("0 || 1 && 0", 0),
            ("1 || 0 && 0", 1),
            ("!0", 1),
            ("!5", 0),
            ("!!7", 1),
            ("1 ? 2 : 3", 2),
            ("0 ? 2 : 0 ? 3 : 4", 4),
            ("0 ? 2 : 1 ? 3 : 4", 3),
            ("1 ? 0 ? 5 : 6 : 7", 6),
        ],
    )
    def test_precedence_and_associativity(self, expression: str, expected: int):
        assert evaluate(expression, 0) == expected

    def test_comparisons_yield_integers(self):
        assert evaluate("(n > 1) + (n > 2)", 5) == 2

    def test_division_truncates_toward_zero(self):
        assert evaluate("n / 2", -7) == -3
        assert evaluate("n % 3", -7) == -1
        assert c_div(7, -2) == -3
        assert c_mod(7, -2) == 1

    def test_division_by_zero_is_zero(self):
        assert evaluate("n / 0", 5) == 0
        assert evaluate("n % (n - n)", 5) == 0

    def test_logical_short_circuit(self):
        # Right side would divide by zero; it must not matter either way.
        assert evaluate("n == 0 || 1 / n", 0) == 1
        assert evaluate("n != 0 && 10 / n", 0) == 0

    @pytest.mark.parametrize(
        "expression",
        [
            "",
            "   ",
            "(n != 1",
            "n != 1)",
            "n ==",
            "n ? 1",
            "n ? 1 : ",
            "1 2",
            "n n",
            "()",
            "* n",
        ],
    )
    def test_malformed(self, expression: str):
        with pytest.raises(InvalidPluralExpressionError):
            parse_expression(expression)

    def test_nesting_limit(self):
        with pytest.raises(InvalidPluralExpressionError, match="nested too deeply"):
            parse_expression("(" * 40 + "n" + ")" * 40)

    def test_unary_nesting_limit(self):
        with pytest.raises(InvalidPluralExpressionError, match="nested too deeply"):
            parse_expression("!" * 40 + "n")

    def test_tree_depth_limit(self):
        with pytest.raises(InvalidPluralExpressionError, match="nested too deeply"):
            parse_expression("n" + " + n" * 150)

    def test_length_limit(self):
        with pytest.raises(InvalidPluralExpressionError, match="longer than"):
            parse_expression("n+" * 600 + "n")

    def test_moderate_nesting_is_fine(self):
        assert evaluate("(" * 10 + "n" + ")" * 10, 3) == 3


# =============================================================================
# Declarations
# =============================================================================


class TestCompilePluralForms:
    def test_fields(self):
        rule = compile_plural_forms("nplurals=3; plural=n%3;")
        assert rule.nplurals == 3
        assert rule.formula == "n%3"

    def test_spacing_and_missing_semicolon(self):
        rule = compile_plural_forms("  nplurals = 2 ;plural = n > 1")
        assert rule.nplurals == 2
        assert rule.formula == "n > 1"

    def test_sanitize_strips_disallowed_characters(self):
        assert sanitize_declaration("plural=n$!=1;\"'`") == "plural=n!=1;"
        rule = compile_plural_forms("nplurals=2; plural=n $!= 1;")
        assert rule.expression.evaluate(1) == 0

    @pytest.mark.parametrize(
        "declaration",
        [
            "plural=n != 1;",
            "nplurals=; plural=n != 1;",
            "nplurals=0; plural=0;",
            "nplurals=two; plural=n != 1;",
            "nplurals=2;",
            "nplurals=2; plural=;",
            "nplurals=2; plural=(n != 1;",
            "nplurals=2; plural=system(n);",
        ],
    )
    def test_invalid(self, declaration: str):
        with pytest.raises(InvalidPluralExpressionError):
            compile_plural_forms(declaration)


class TestPluralEvaluator:
    def test_two_forms(self):
        evaluator = PluralEvaluator.from_declaration("nplurals=2; plural=(n != 1);")
        assert evaluator.select(0) == 1
        assert evaluator.select(1) == 0
        assert evaluator.select(2) == 1

    def test_default_rule(self):
        evaluator = PluralEvaluator.default()
        assert evaluator.is_default
        assert evaluator.rule == compile_plural_forms(DEFAULT_PLURAL_FORMS)
        assert [evaluator.select(n) for n in (0, 1, 2, 100)] == [1, 0, 1, 1]

    def test_missing_declaration_uses_default(self):
        assert PluralEvaluator.from_declaration(None).is_default

    @pytest.mark.parametrize(
        "n, expected",
        [(1, 0), (2, 1), (4, 1), (5, 2), (11, 2), (12, 2), (21, 0), (22, 1), (25, 2), (111, 2)],
    )
    def test_slavic(self, n: int, expected: int):
        assert PluralEvaluator.from_declaration(SLAVIC).select(n) == expected

    def test_clamps_high_index(self):
        evaluator = PluralEvaluator.from_declaration("nplurals=2; plural=5;")
        assert evaluator.select(0) == 1
        assert evaluator.select(1) == 1

    def test_clamps_negative_index(self):
        evaluator = PluralEvaluator.from_declaration("nplurals=3; plural=n - 10;")
        assert evaluator.select(0) == 0
        assert evaluator.select(12) == 2

    def test_single_form(self):
        evaluator = PluralEvaluator.from_declaration("nplurals=1; plural=0;")
        assert {evaluator.select(n) for n in range(50)} == {0}

    @pytest.mark.parametrize(
        "declaration",
        [
            "nplurals=2; plural=(n != 1;",
            "nplurals=2; plural=__import__(os);",
            "nplurals=-1; plural=n;",
            "garbage",
            "",
        ],
    )
    def test_invalid_falls_back_without_raising(self, declaration: str, caplog):
        with caplog.at_level(logging.WARNING, logger="mocatalog.plural"):
            evaluator = PluralEvaluator.from_declaration(declaration)

        assert evaluator.is_default
        assert evaluator.select(1) == 0
        assert evaluator.select(3) == 1
        assert "Invalid plural forms" in caplog.text


class TestKnownFormulas:
    """Short-cut formulas must agree with the general evaluator."""

    @pytest.mark.parametrize(
        "declaration",
        [
            "nplurals=2; plural=n != 1;",
            "nplurals=2; plural=(n != 1);",
            "nplurals=2; plural=n>1;",
            "nplurals=2; plural=(n > 1);",
            "nplurals=2; plural=n == 1 ? 0 : 1;",
            "nplurals=1; plural=0;",
            SLAVIC,
        ],
    )
    def test_agrees_with_general_evaluator(self, declaration: str):
        rule = compile_plural_forms(declaration)
        assert _known_formula(rule.formula) is not None

        evaluator = PluralEvaluator(rule)
        for n in range(-250, 1250):
            general = min(max(rule.expression.evaluate(n), 0), rule.nplurals - 1)
            assert evaluator.select(n) == general, n

    def test_unknown_formula_is_not_short_cut(self):
        assert _known_formula("n % 7") is None
        assert _known_formula("(n==1)?0:(1)") is None

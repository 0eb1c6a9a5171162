"""End-to-end tests for evaluate() and compile_block()."""

import decimal
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

import pytest
from structlog.testing import capture_logs

from decimalenv import (
    ContextRecord,
    EvaluateOptions,
    InvalidNumberError,
    InvalidProgramError,
    OutputConversionError,
    UnboundVariableError,
    compile_block,
    evaluate,
)
from decimalenv.nodes import BinaryOp, Block, Call, Literal, Variable


class TestScenarios:
    """The reference examples, from source text and from node trees."""

    def test_mixed_float_and_string(self, default_context):
        result = evaluate('21.0 + "21.0"')
        assert result == Decimal("42.0")
        assert str(result) == "42.0"

    def test_mixed_float_and_string_tree(self, default_context):
        result = evaluate(BinaryOp("+", Literal(21.0), Literal("21.0")))
        assert str(result) == "42.0"

    def test_precision(self, default_context):
        assert evaluate("1 / 3", context={"precision": 2}) == Decimal("0.33")

    def test_precision_rounding_and_integer_output(self, default_context):
        result = evaluate("21.1 + 20", context={"precision": 2, "rounding": "ceiling"}, as_="integer")
        assert result == 42
        assert isinstance(result, int)

    def test_options_mapping(self, default_context):
        options = {"context": {"precision": 2, "rounding": "ceiling"}, "as": "integer"}
        assert evaluate("21.1 + 20", options) == 42

    def test_scientific_output(self, default_context):
        assert evaluate('"0.0000000002" + 0.000000004', as_="scientific") == "4.2E-9"

    def test_conditional(self, default_context):
        result = evaluate("42.0 if 42.0 > 10 else 10")
        assert str(result) == "42.0"

    def test_bind(self, default_context):
        assert evaluate("a * (4 + 1 + a*a)", bind=[("a", 3)]) == Decimal("42")

    def test_bind_mapping(self, default_context):
        assert evaluate("a * (4 + 1 + a*a)", bind={"a": 3}) == Decimal("42")

    def test_variables_of_every_numeric_shape(self, default_context):
        source = '("1" - a / b) * 100 + "-8"'
        assert evaluate(source, variables={"a": 1, "b": 2}) == Decimal("42")
        assert evaluate(source, variables={"a": "1", "b": 2.0}) == Decimal("42")
        assert evaluate(source, variables={"a": Decimal("0.5"), "b": "1"}) == Decimal("42")


class TestPassThrough:
    def test_non_numeric_string_result(self):
        assert evaluate('"abc"') == "abc"

    def test_non_numeric_variable(self):
        assert evaluate("a", variables={"a": "abc"}) == "abc"

    def test_non_numeric_string_in_arithmetic_raises(self):
        with pytest.raises(InvalidNumberError, match="'abc' is not a valid numeric value"):
            evaluate("'abc' + 1")

    def test_atoms(self):
        assert evaluate("None") is None
        assert evaluate("a > 1", variables={"a": 2}) is True

    def test_tuple_result(self):
        assert evaluate('("1", 2.5)') == (Decimal("1"), Decimal("2.5"))

    def test_tuple_output_conversion(self):
        assert evaluate("(1, 2, 3)", as_="integer") == (1, 2, 3)

    def test_nan_is_a_value(self):
        assert evaluate('"NaN"').is_nan()
        assert evaluate('"NaN" > 1') is False
        assert evaluate('"NaN" != "NaN"') is True


class TestOutputs:
    @pytest.mark.parametrize(
        "source,tag,expected",
        [
            ("4.2E-9", "string", "0.0000000042"),
            ("4.2E-9", "raw", "42E-10"),
            ("42.00", "xsd", "42.0"),
            ("42", "float", 42.0),
            ("42.5", "decimal", Decimal("42.5")),
            ("42.5", "hex", Decimal("42.5")),
        ],
    )
    def test_output_tags(self, source, tag, expected):
        assert evaluate(source, as_=tag) == expected

    def test_non_integral_integer_output(self):
        with pytest.raises(OutputConversionError):
            evaluate("1 / 4", as_="integer")

    def test_float_overflow(self):
        with pytest.raises(OutputConversionError):
            evaluate('"1E+400"', as_="float")


class TestFunctions:
    def test_round(self, default_context):
        assert evaluate("round(2.5)") == Decimal("3")
        assert evaluate("round(2.5, 0, half_even)") == Decimal("2")
        assert evaluate('round("3.14159", 2)') == Decimal("3.14")
        assert evaluate("round(x, strategy=floor)", variables={"x": "2.9"}) == Decimal("2")

    def test_min_max_abs(self, default_context):
        assert evaluate("max(a, 41)", variables={"a": "42"}) == Decimal("42")
        assert evaluate("min(abs(a), 43)", variables={"a": -42}) == Decimal("42")

    def test_predicates(self, default_context):
        assert evaluate("is_inf(inf())") is True
        assert evaluate("is_integer(a)", variables={"a": "42.0"}) is True

    def test_native_operators_mix_with_decimal(self, default_context):
        assert evaluate("a ** 2 + 0.5", variables={"a": 3}) == Decimal("9.5")

    def test_opaque_expression(self, default_context):
        assert evaluate("len(items) * 2", variables={"items": [1, 2, 3]}) == Decimal("6")

    def test_namespace(self, default_context):
        result = evaluate("double(a) + 0.5", variables={"a": 2}, namespace={"double": lambda v: v * 2})
        assert result == Decimal("4.5")


class TestStatements:
    def test_assignments(self, default_context):
        source = """
        total = price * quantity
        total += "0.50"
        total
        """
        assert evaluate(source, variables={"price": "1.25", "quantity": 4}) == Decimal("5.50")

    def test_if_statement(self):
        source = """
        if a > 1:
            size = "big"
        else:
            size = "small"
        size
        """
        assert evaluate(source, variables={"a": 2}) == "big"
        assert evaluate(source, variables={"a": 1}) == "small"

    def test_caller_variables_not_modified(self):
        variables = {"a": "1"}
        assert evaluate("a = 2\na", variables=variables) == Decimal("2")
        assert variables == {"a": "1"}

    def test_unbound_variable(self):
        with pytest.raises(UnboundVariableError, match="'missing'"):
            evaluate("missing + 1")


class TestStaticErrors:
    """Invalid programs are rejected before anything runs."""

    def test_tuple_assignment(self):
        with pytest.raises(InvalidProgramError):
            evaluate("a, b = 1, 2")

    def test_unknown_strategy(self):
        with pytest.raises(InvalidProgramError, match="Unknown rounding strategy"):
            evaluate("round(1, 0, sideways)")

    def test_unsupported_statement(self):
        with pytest.raises(InvalidProgramError):
            evaluate("import os")

    def test_nothing_runs_before_rejection(self, counter):
        with pytest.raises(InvalidProgramError):
            evaluate(Block((counter.node(), Call("foo"))))
        assert counter.calls == 0


class TestContextScoping:
    def test_context_restored(self, default_context):
        evaluate("1 / 3", context={"precision": 2})
        assert decimal.getcontext().prec == 28

    def test_context_restored_when_block_raises(self, default_context):
        with pytest.raises(decimal.DivisionByZero):
            evaluate("1 / 0", context={"precision": 2})
        assert decimal.getcontext().prec == 28
        assert not decimal.getcontext().flags[decimal.DivisionByZero]

    def test_untrapped_division_by_zero(self, default_context):
        assert evaluate("1 / 0", context={"traps": []}) == Decimal("Infinity")
        assert decimal.getcontext().traps[decimal.DivisionByZero]

    def test_flags_do_not_leak(self, default_context):
        evaluate("1 / 3")
        assert not decimal.getcontext().flags[decimal.Inexact]

    def test_ambient_context_is_used(self, default_context):
        default_context.prec = 3
        assert evaluate("1 / 3") == Decimal("0.333")

    def test_overrides_merge_onto_ambient(self, default_context):
        default_context.prec = 3
        assert evaluate("2 / 3", context={"rounding": "down"}) == Decimal("0.666")

    def test_full_record(self, default_context):
        default_context.prec = 3
        record = ContextRecord(precision=5)
        assert evaluate("1 / 3", context=record) == Decimal("0.33333")

    def test_ambient_limits_apply_without_options(self, default_context):
        default_context.Emax = 10
        with pytest.raises(decimal.Overflow):
            evaluate('"1E+20" * 1')

    def test_ambient_limits_apply_with_partial_overrides(self, default_context):
        default_context.Emax = 10
        with pytest.raises(decimal.Overflow):
            evaluate('"1E+20" * 1', context={"precision": 5})

    def test_decimal_context_keeps_limits(self, default_context):
        with pytest.raises(decimal.Overflow):
            evaluate('"1E+20" * 1', context=decimal.Context(prec=5, Emax=10))

    @pytest.mark.parametrize("context", [None, {"precision": 5}])
    def test_ambient_capitals_apply_to_output(self, default_context, context):
        default_context.capitals = 0
        assert evaluate('"1E+20" * 1', context=context, as_="scientific") == "1e+20"

    def test_ambient_05up_rounding(self, default_context):
        default_context.rounding = decimal.ROUND_05UP
        assert evaluate("1 + 1") == Decimal("2")
        assert evaluate("1 / 3", context={"precision": 2}) == Decimal("0.33")

    def test_threads_are_isolated(self):
        def work(precision):
            return evaluate("1 / 3", context={"precision": precision})

        precisions = list(range(1, 17))
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(work, precisions))
        assert results == [Decimal("0." + "3" * p) for p in precisions]

    def test_signals_are_logged(self, default_context):
        with capture_logs() as logs:
            evaluate("1 / 3", context={"precision": 2})
        summary = [entry for entry in logs if entry["event"] == "decimal_block_evaluated"]
        assert summary[0]["precision"] == 2
        assert summary[0]["flags"] == ["inexact", "rounded"]


class TestBindOnce:
    def test_side_effect_fires_once(self, counter):
        tree = Block((BinaryOp("+", Variable("a"), Variable("a")),))
        assert evaluate(tree, bind=[("a", counter.node())]) == Decimal("6")
        assert counter.calls == 1

    def test_bind_shadows_variables(self):
        assert evaluate("a", bind={"a": 1}, variables={"a": 2}) == Decimal("1")

    def test_bind_sees_variables(self):
        assert evaluate("a + 1", bind={"a": Variable("b")}, variables={"b": "41"}) == Decimal("42")

    def test_comparison_operand_runs_once_per_check(self, counter):
        """>= checks "greater", then "equal", each with its own operand."""
        assert evaluate(BinaryOp(">=", counter.node(), 3)) is True
        assert counter.calls == 2

    def test_comparison_stops_after_greater(self, counter):
        assert evaluate(BinaryOp(">=", counter.node(), 1)) is True
        assert counter.calls == 1


class TestChainedComparisons:
    @pytest.fixture
    def calls(self):
        return []

    @pytest.fixture
    def namespace(self, calls):
        def middle():
            calls.append("middle")
            return 3

        def last():
            calls.append("last")
            return 10

        return {"middle": middle, "last": last}

    @pytest.mark.parametrize("source", ["1 < middle() < 5", "1 <= middle() < 5", "5 > middle() >= 3"])
    def test_middle_operand_runs_once(self, namespace, calls, source):
        assert evaluate(source, namespace=namespace) is True
        assert calls == ["middle"]

    def test_stops_at_first_false_pair(self, namespace, calls):
        assert evaluate("5 < middle() < last()", namespace=namespace) is False
        assert calls == ["middle"]

    def test_long_chain(self, namespace, calls):
        assert evaluate("1 < middle() < 4 < last() <= 10", namespace=namespace) is True
        assert calls == ["middle", "last"]

    def test_mixed_numeric_shapes(self):
        assert evaluate('"0.1" < a < 0.3', variables={"a": "0.2"}) is True

    def test_inside_native_operator(self, namespace, calls):
        assert evaluate("not (1 < middle() < 5)", namespace=namespace) is False
        assert calls == ["middle"]

    def test_temporaries_do_not_clash_with_variables(self):
        assert evaluate("b = 2\n1 < b < 3 and b", variables={"b": 0}) == Decimal("2")


class TestTruthiness:
    """Conditions use Python truthiness: a zero decimal is false."""

    @pytest.mark.parametrize("source", ["1 if 0 else 2", '1 if "0.0" else 2', "1 if a else 2"])
    def test_zero_condition_is_false(self, source):
        assert evaluate(source, variables={"a": "0"}) == Decimal("2")

    def test_non_zero_condition_is_true(self):
        assert evaluate("1 if a else 2", variables={"a": "-0.5"}) == Decimal("1")

    def test_or_skips_zero(self):
        assert evaluate('"0.0" or 5') == Decimal("5")

    def test_and_stops_at_zero(self):
        assert evaluate("0 and 5") == Decimal("0")

    def test_if_statement_on_zero(self):
        source = """
        if total:
            label = "some"
        else:
            label = "none"
        label
        """
        assert evaluate(source, variables={"total": "0.00"}) == "none"


class TestCompiledBlock:
    def test_run_many_times(self):
        block = compile_block("a * 2")
        assert block.run({"a": 1}) == Decimal("2")
        assert block.run({"a": "21"}) == Decimal("42")

    def test_context_resolved_per_run(self, default_context):
        block = compile_block("1 / 3")
        default_context.prec = 3
        assert block.run() == Decimal("0.333")
        default_context.prec = 4
        assert block.run() == Decimal("0.3333")

    def test_explicit_ambient(self):
        block = compile_block("1 / 3", context={"rounding": "up"})
        assert block.run(ambient=ContextRecord(precision=4)) == Decimal("0.3334")

    def test_options_model(self, default_context):
        block = compile_block("1 / 3", EvaluateOptions(context={"precision": 2}, as_="string"))
        assert block.run() == "0.33"

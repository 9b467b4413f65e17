from __future__ import annotations

import pytest

from blocks import Block, Workspace
from generator import (
    ORDER_ADDITIVE,
    ORDER_ATOMIC,
    ORDER_FUNCTION_CALL,
    ORDER_LOGICAL_AND,
    ORDER_MEMBER,
    ORDER_MULTIPLICATIVE,
    ORDER_NONE,
    CodegenError,
    HandlerTable,
    PythonGenerator,
    format_number,
)
from helpers import block, field, generate, next_block, ready_generator, statement, value


def _expression_handlers(code: str, order: float) -> HandlerTable:
    handlers = HandlerTable()

    @handlers.register("inner")
    def inner(gen, inner_block):
        return code, order

    @handlers.register("holder")
    def holder(gen, holder_block):
        return gen.value_to_code(holder_block, "X", float(holder_block.fields["OUTER"])), ORDER_ATOMIC

    return handlers


def _parenthesised(inner_order: float, outer_order: float) -> str:
    gen = PythonGenerator(_expression_handlers("e", inner_order))
    gen.init(Workspace())
    holder = Block(type="holder", id="h", fields={"OUTER": str(outer_order)}, values={"X": Block(type="inner", id="i")})
    return gen.block_to_code(holder)[0]


class TestFormatNumber:
    def test_integers(self):
        assert format_number(5.0) == "5"
        assert format_number(-12.0) == "-12"
        assert format_number(-0.0) == "0"
        assert format_number(1e20) == "100000000000000000000"
        assert format_number(2.0**60) == "1152921504606847000"
        assert format_number(-(2.0**60)) == "-1152921504606847000"

    def test_fractions(self):
        assert format_number(0.5) == "0.5"
        assert format_number(-2.5) == "-2.5"
        assert format_number(123.25) == "123.25"
        assert format_number(0.00001) == "0.00001"

    def test_exponents(self):
        assert format_number(1e21) == "1e+21"
        assert format_number(1e-7) == "1e-7"
        assert format_number(1.5e-7) == "1.5e-7"


class TestParentheses:
    def test_tighter_inner_needs_none(self):
        assert _parenthesised(ORDER_MULTIPLICATIVE, ORDER_ADDITIVE) == "e"

    def test_looser_inner_is_wrapped(self):
        assert _parenthesised(ORDER_ADDITIVE, ORDER_MULTIPLICATIVE) == "(e)"

    def test_same_class_is_wrapped(self):
        assert _parenthesised(ORDER_ADDITIVE, ORDER_ADDITIVE) == "(e)"

    def test_atomic_and_none_pairs_are_not_wrapped(self):
        assert _parenthesised(ORDER_ATOMIC, ORDER_ATOMIC) == "e"
        assert _parenthesised(ORDER_NONE, ORDER_NONE) == "e"

    def test_overrides(self):
        assert _parenthesised(ORDER_MEMBER, ORDER_FUNCTION_CALL) == "e"
        assert _parenthesised(ORDER_FUNCTION_CALL, ORDER_FUNCTION_CALL) == "e"
        assert _parenthesised(ORDER_LOGICAL_AND, ORDER_LOGICAL_AND) == "e"

    def test_atomic_outer_wraps_everything_else(self):
        assert _parenthesised(ORDER_FUNCTION_CALL, ORDER_ATOMIC) == "(e)"


class TestHelpers:
    def test_prefix_lines(self):
        gen = ready_generator()
        assert gen.prefix_lines("a\nb\n", "  ") == "  a\n  b\n"
        assert gen.prefix_lines("a\n\nb", "# ") == "# a\n# \n# b"

    def test_quote(self):
        gen = ready_generator()
        assert gen.quote("plain") == "'plain'"
        assert gen.quote("it's") == '"it\'s"'
        assert gen.quote("say \"hi\" it's") == "'say \"hi\" it\\'s'"
        assert gen.quote("a\nb") == "'a\\nb'"
        assert gen.quote("back\\slash") == "'back\\\\slash'"

    def test_pass_statement_follows_indent(self):
        assert PythonGenerator({}, indent="\t").pass_statement == "\tpass\n"

    def test_distinct_names_never_repeat(self):
        gen = ready_generator(variables=("count",))
        assert gen.distinct_variable_name("count") == "count2"
        assert gen.distinct_variable_name("count") == "count3"

    def test_handler_table_rejects_duplicates(self):
        handlers = HandlerTable()
        handlers.register("a")(lambda gen, b: None)
        with pytest.raises(ValueError, match="already registered"):
            handlers.register("a")(lambda gen, b: None)


class TestWorkspaceToCode:
    def test_empty_workspace(self):
        assert generate() == ""

    def test_variables_without_code(self):
        assert generate(variables=("a", "b")) == "a = None\nb = None\n"

    def test_naked_value_becomes_its_own_line(self):
        assert generate(block("math_number", field("NUM", "7"))) == "7\n"

    def test_unknown_block_type(self):
        with pytest.raises(CodegenError, match="No Python generator for block type 'mystery'"):
            generate(block("mystery", id="m1"))

    def test_disabled_block_is_skipped(self):
        code = generate(
            block(
                "cozmo_stop",
                next_block(block("cozmo_goto_origin", next_block(block("cozmo_stop")), disabled="true")),
            )
        )
        assert code == "bot.stop()\nbot.stop()\n"

    def test_disabled_value_is_treated_as_empty(self):
        disabled_number = f'<block type="math_number" disabled="true">{field("NUM", "3")}</block>'
        assert generate(block("cozmo_lift", value("LIFT", disabled_number))) == "bot.lift(0)\n"

    def test_statement_in_value_input(self):
        with pytest.raises(CodegenError, match="plugged into value input 'LIFT'"):
            generate(block("cozmo_lift", value("LIFT", block("cozmo_stop"))))

    def test_value_in_statement_input(self):
        condition = block("cozmo_cube_seen_number_boolean", field("CUBE_NUM", "1"))
        with pytest.raises(CodegenError, match="plugged into statement input 'BODY'"):
            generate(block("cozmo_on_start", statement("BODY", condition)))

    def test_block_comment(self):
        stop = '<block type="cozmo_stop"><comment>Halt before turning</comment></block>'
        code = generate(block("cozmo_on_start", statement("BODY", stop)))
        assert code == "def on_start():\n  # Halt before turning\n  bot.stop()\n"

    def test_nested_value_comments_are_collected(self):
        half = '<block type="math_number"><field name="NUM">0.5</field><comment>half way</comment></block>'
        assert generate(block("cozmo_lift", value("LIFT", half))) == "# half way\nbot.lift(0.5)\n"

    def test_long_comments_are_wrapped(self):
        words = " ".join(["word"] * 20)
        code = generate(f'<block type="cozmo_stop"><comment>{words}</comment></block>')
        comment_lines = [line for line in code.splitlines() if line.startswith("#")]
        assert len(comment_lines) == 2
        assert all(len(line) <= 59 for line in comment_lines)

    def test_imports_come_before_variables(self):
        code = generate(block("cozmo_cube_pickup", field("CUBE_NUM", "1")), variables=("x",))
        assert code == "import cozmo\n\nx = None\n\n\nbot.pickupCube(cozmo.objects.LightCube1Id)\n"

    def test_generator_is_reusable(self):
        gen = ready_generator()
        workspace = Workspace(top_blocks=[Block(type="math_number", id="n", fields={"NUM": "1"})])
        assert gen.workspace_to_code(workspace) == gen.workspace_to_code(workspace) == "1\n"

from __future__ import annotations

import math
import re

from blocks import Block
from generator import (
    ORDER_ADDITIVE,
    ORDER_ATOMIC,
    ORDER_EXPONENTIATION,
    ORDER_FUNCTION_CALL,
    ORDER_LOGICAL_AND,
    ORDER_LOGICAL_NOT,
    ORDER_LOGICAL_OR,
    ORDER_MULTIPLICATIVE,
    ORDER_NONE,
    ORDER_RELATIONAL,
    ORDER_UNARY_SIGN,
    CodegenError,
    HandlerTable,
    PythonGenerator,
    format_number,
)

HANDLERS = HandlerTable()

_NUMBER_TEXT = re.compile(r"^\s*-?\d+(\.\d+)?\s*$")

_ARITHMETIC = {
    "ADD": (" + ", ORDER_ADDITIVE),
    "MINUS": (" - ", ORDER_ADDITIVE),
    "MULTIPLY": (" * ", ORDER_MULTIPLICATIVE),
    "DIVIDE": (" / ", ORDER_MULTIPLICATIVE),
    "POWER": (" ** ", ORDER_EXPONENTIATION),
}

_COMPARISONS = {
    "EQ": "==",
    "NEQ": "!=",
    "LT": "<",
    "LTE": "<=",
    "GT": ">",
    "GTE": ">=",
}


def number_literal(text: str | None) -> tuple[str, float]:
    """Turn the text of a number field into ``(code, order)``."""
    if text is None:
        raise CodegenError("Number field is empty.")
    try:
        value = float(text)
    except ValueError as exc:
        raise CodegenError(f"Invalid number {text!r}.") from exc
    if math.isnan(value):
        raise CodegenError(f"Invalid number {text!r}.")
    if value == math.inf:
        return 'float("inf")', ORDER_FUNCTION_CALL
    if value == -math.inf:
        return '-float("inf")', ORDER_UNARY_SIGN
    return format_number(value), ORDER_UNARY_SIGN if value < 0 else ORDER_ATOMIC


def required_field(block: Block, name: str) -> str:
    value = block.get_field_value(name)
    if value is None:
        raise CodegenError(f"Block '{block.type}' ({block.id}) is missing field '{name}'.")
    return value


def _variable(gen: PythonGenerator, block: Block) -> str:
    return gen.variable_name(required_field(block, "VAR"))


@HANDLERS.register("math_number")
def math_number(gen: PythonGenerator, block: Block) -> tuple[str, float]:
    return number_literal(block.get_field_value("NUM"))


@HANDLERS.register("math_arithmetic")
def math_arithmetic(gen: PythonGenerator, block: Block) -> tuple[str, float]:
    op = block.get_field_value("OP")
    if op not in _ARITHMETIC:
        raise CodegenError(f"Unknown arithmetic operator {op!r} in block '{block.id}'.")
    operator, order = _ARITHMETIC[op]
    left = gen.value_to_code(block, "A", order) or "0"
    right = gen.value_to_code(block, "B", order) or "0"
    return left + operator + right, order


@HANDLERS.register("math_change")
def math_change(gen: PythonGenerator, block: Block) -> str:
    gen.provide_definition("from_numbers_import_Number", "from numbers import Number")
    delta = gen.value_to_code(block, "DELTA", ORDER_ADDITIVE) or "0"
    name = _variable(gen, block)
    return f"{name} = ({name} if isinstance({name}, Number) else 0) + {delta}\n"


@HANDLERS.register("text")
def text(gen: PythonGenerator, block: Block) -> tuple[str, float]:
    return gen.quote(block.get_field_value("TEXT") or ""), ORDER_ATOMIC


@HANDLERS.register("text_print")
def text_print(gen: PythonGenerator, block: Block) -> str:
    message = gen.value_to_code(block, "TEXT", ORDER_NONE) or "''"
    return f"print({message})\n"


@HANDLERS.register("logic_boolean")
def logic_boolean(gen: PythonGenerator, block: Block) -> tuple[str, float]:
    code = "True" if block.get_field_value("BOOL") == "TRUE" else "False"
    return code, ORDER_ATOMIC


@HANDLERS.register("logic_compare")
def logic_compare(gen: PythonGenerator, block: Block) -> tuple[str, float]:
    op = block.get_field_value("OP")
    if op not in _COMPARISONS:
        raise CodegenError(f"Unknown comparison operator {op!r} in block '{block.id}'.")
    left = gen.value_to_code(block, "A", ORDER_RELATIONAL) or "0"
    right = gen.value_to_code(block, "B", ORDER_RELATIONAL) or "0"
    return f"{left} {_COMPARISONS[op]} {right}", ORDER_RELATIONAL


@HANDLERS.register("logic_operation")
def logic_operation(gen: PythonGenerator, block: Block) -> tuple[str, float]:
    operator = "and" if block.get_field_value("OP") == "AND" else "or"
    order = ORDER_LOGICAL_AND if operator == "and" else ORDER_LOGICAL_OR
    left = gen.value_to_code(block, "A", order)
    right = gen.value_to_code(block, "B", order)
    if not left and not right:
        left = right = "False"
    else:
        default = "True" if operator == "and" else "False"
        left = left or default
        right = right or default
    return f"{left} {operator} {right}", order


@HANDLERS.register("logic_negate")
def logic_negate(gen: PythonGenerator, block: Block) -> tuple[str, float]:
    operand = gen.value_to_code(block, "BOOL", ORDER_LOGICAL_NOT) or "True"
    return f"not {operand}", ORDER_LOGICAL_NOT


@HANDLERS.register("controls_if")
def controls_if(gen: PythonGenerator, block: Block) -> str:
    code = ""
    for n in range(_if_clause_count(block)):
        condition = gen.value_to_code(block, f"IF{n}", ORDER_NONE) or "False"
        branch = gen.statement_to_code(block, f"DO{n}") or gen.pass_statement
        code += ("if " if n == 0 else "elif ") + condition + ":\n" + branch
    if block.mutation.get("else") == "1" or block.has_input("ELSE"):
        branch = gen.statement_to_code(block, "ELSE") or gen.pass_statement
        code += "else:\n" + branch
    return code


def _if_clause_count(block: Block) -> int:
    raw = block.mutation.get("elseif", "0")
    try:
        count = int(raw) + 1
    except ValueError as exc:
        raise CodegenError(f"Invalid elseif count {raw!r} in block '{block.id}'.") from exc
    while block.has_input(f"IF{count}") or block.has_input(f"DO{count}"):
        count += 1
    return count


@HANDLERS.register("controls_repeat", "controls_repeat_ext")
def controls_repeat(gen: PythonGenerator, block: Block) -> str:
    if block.type == "controls_repeat":
        repeats = required_field(block, "TIMES")
    else:
        repeats = gen.value_to_code(block, "TIMES", ORDER_NONE) or "0"
    if _NUMBER_TEXT.match(repeats):
        repeats = str(int(float(repeats)))
    else:
        repeats = f"int({repeats})"
    branch = gen.statement_to_code(block, "DO")
    branch = gen.add_loop_trap(branch, block.id) or gen.pass_statement
    loop_var = gen.distinct_variable_name("count")
    return f"for {loop_var} in range({repeats}):\n{branch}"


@HANDLERS.register("controls_whileUntil")
def controls_while_until(gen: PythonGenerator, block: Block) -> str:
    until = block.get_field_value("MODE") == "UNTIL"
    condition = gen.value_to_code(block, "BOOL", ORDER_LOGICAL_NOT if until else ORDER_NONE) or "False"
    branch = gen.statement_to_code(block, "DO")
    branch = gen.add_loop_trap(branch, block.id) or gen.pass_statement
    if until:
        condition = "not " + condition
    return f"while {condition}:\n{branch}"


@HANDLERS.register("variables_get")
def variables_get(gen: PythonGenerator, block: Block) -> tuple[str, float]:
    return _variable(gen, block), ORDER_ATOMIC


@HANDLERS.register("variables_set")
def variables_set(gen: PythonGenerator, block: Block) -> str:
    value = gen.value_to_code(block, "VALUE", ORDER_NONE) or "0"
    return f"{_variable(gen, block)} = {value}\n"

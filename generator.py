from __future__ import annotations

import logging
import math
import re
import textwrap
from collections.abc import Callable, Iterable
from decimal import Decimal
from typing import Union

from blocks import Block, Workspace
from names import VARIABLE_NAME_TYPE, Names

logger = logging.getLogger(__name__)


class CodegenError(ValueError):
    """Raised when Python generation fails."""


# Precedence classes of Python operators, tightest first.
ORDER_ATOMIC = 0
ORDER_COLLECTION = 1
ORDER_STRING_CONVERSION = 1
ORDER_MEMBER = 2.1
ORDER_FUNCTION_CALL = 2.2
ORDER_EXPONENTIATION = 3
ORDER_UNARY_SIGN = 4
ORDER_BITWISE_NOT = 4
ORDER_MULTIPLICATIVE = 5
ORDER_ADDITIVE = 6
ORDER_BITWISE_SHIFT = 7
ORDER_BITWISE_AND = 8
ORDER_BITWISE_XOR = 9
ORDER_BITWISE_OR = 10
ORDER_RELATIONAL = 11
ORDER_LOGICAL_NOT = 12
ORDER_LOGICAL_AND = 13
ORDER_LOGICAL_OR = 14
ORDER_CONDITIONAL = 15
ORDER_LAMBDA = 16
ORDER_NONE = 99

# (outer, inner) pairs that read correctly without parentheses.
ORDER_OVERRIDES = {
    (ORDER_FUNCTION_CALL, ORDER_MEMBER),  # a.b()
    (ORDER_FUNCTION_CALL, ORDER_FUNCTION_CALL),  # a()()
    (ORDER_MEMBER, ORDER_MEMBER),  # a.b.c
    (ORDER_MEMBER, ORDER_FUNCTION_CALL),  # a().b
    (ORDER_LOGICAL_NOT, ORDER_LOGICAL_NOT),  # not not a
    (ORDER_LOGICAL_AND, ORDER_LOGICAL_AND),  # a and b and c
    (ORDER_LOGICAL_OR, ORDER_LOGICAL_OR),  # a or b or c
}

COMMENT_WRAP = 60

Code = Union[str, tuple[str, float], None]
Handler = Callable[["PythonGenerator", Block], Code]

_IMPORT_PATTERN = re.compile(r"^(from\s+\S+\s+)?import\s+\S+")


class HandlerTable(dict):
    """Block type -> handler mapping, filled with the ``register`` decorator."""

    def register(self, *block_types: str) -> Callable[[Handler], Handler]:
        def decorator(func: Handler) -> Handler:
            for block_type in block_types:
                if block_type in self:
                    raise ValueError(f"A handler for block type '{block_type}' is already registered.")
                self[block_type] = func
            return func

        return decorator


class PythonGenerator:
    def __init__(
        self,
        handlers: dict[str, Handler],
        indent: str = "  ",
        infinite_loop_trap: str | None = None,
        reserved_words: Iterable[str] = (),
    ) -> None:
        if infinite_loop_trap and not infinite_loop_trap.endswith("\n"):
            infinite_loop_trap += "\n"
        self.handlers = handlers
        self.indent = indent
        self.infinite_loop_trap = infinite_loop_trap
        self.names = Names(reserved_words)
        self.definitions: dict[str, str] = {}
        self.workspace = Workspace()

    @property
    def pass_statement(self) -> str:
        return self.indent + "pass\n"

    def workspace_to_code(self, workspace: Workspace) -> str:
        self.init(workspace)
        chunks: list[str] = []
        for block in workspace.top_blocks:
            code = self.block_to_code(block)
            if isinstance(code, tuple):
                # A loose value block still becomes a line of its own.
                code = code[0] + "\n"
            if code:
                chunks.append(code)
        logger.debug("Generated %d top-level chunk(s) from %d block stack(s)", len(chunks), len(workspace.top_blocks))
        code = self.finish("\n".join(chunks))
        code = re.sub(r"^\s+\n", "", code, count=1)
        code = re.sub(r"\n\s+\Z", "\n", code, count=1)
        return re.sub(r"[ \t]+\n", "\n", code)

    def init(self, workspace: Workspace) -> None:
        self.workspace = workspace
        self.definitions = {}
        self.names.reset()
        declarations = [f"{self.variable_name(name)} = None" for name in workspace.variable_names()]
        self.definitions["variables"] = "\n".join(declarations)

    def finish(self, code: str) -> str:
        imports: list[str] = []
        definitions: list[str] = []
        for definition in self.definitions.values():
            if _IMPORT_PATTERN.match(definition):
                imports.append(definition)
            else:
                definitions.append(definition)
        self.definitions = {}
        self.names.reset()
        all_defs = "\n".join(imports) + "\n\n" + "\n\n".join(definitions)
        all_defs = re.sub(r"\n\n+", "\n\n", all_defs)
        all_defs = re.sub(r"\n*\Z", "\n\n\n", all_defs, count=1)
        return all_defs + code

    def block_to_code(self, block: Block | None) -> str | tuple[str, float]:
        return self._block_to_code(block, plugged=False)

    def value_to_code(self, block: Block, name: str, outer_order: float) -> str:
        target = block.get_input_target_block(name)
        if target is None:
            return ""
        result = self._block_to_code(target, plugged=True)
        if result == "":
            return ""
        if not isinstance(result, tuple):
            raise CodegenError(
                f"Statement block '{target.type}' ({target.id}) is plugged into value input '{name}' "
                f"of block '{block.type}' ({block.id})."
            )
        code, inner_order = result
        if not code:
            return ""
        if _needs_parentheses(outer_order, inner_order):
            code = f"({code})"
        return code

    def statement_to_code(self, block: Block, name: str) -> str:
        target = block.get_input_target_block(name)
        code = self._block_to_code(target, plugged=False)
        if isinstance(code, tuple):
            raise CodegenError(
                f"Value block '{target.type}' ({target.id}) is plugged into statement input '{name}' "
                f"of block '{block.type}' ({block.id})."
            )
        if code:
            code = self.prefix_lines(code, self.indent)
        return code

    def add_loop_trap(self, branch: str, block_id: str) -> str:
        if self.infinite_loop_trap:
            trap = self.infinite_loop_trap.replace("%1", self.quote(block_id))
            branch = self.prefix_lines(trap, self.indent) + branch
        return branch

    def prefix_lines(self, text: str, prefix: str) -> str:
        return prefix + re.sub(r"\n(?!\Z)", lambda _: "\n" + prefix, text)

    def quote(self, text: str) -> str:
        text = text.replace("\\", "\\\\").replace("\n", "\\n").replace("\r", "\\r")
        quote = "'"
        if "'" in text:
            if '"' not in text:
                quote = '"'
            else:
                text = text.replace("'", "\\'")
        return quote + text + quote

    def provide_definition(self, key: str, code: str) -> None:
        self.definitions[key] = code

    def variable_name(self, name: str) -> str:
        return self.names.get_name(name, VARIABLE_NAME_TYPE)

    def distinct_variable_name(self, name: str) -> str:
        return self.names.get_distinct_name(name, VARIABLE_NAME_TYPE)

    def _block_to_code(self, block: Block | None, plugged: bool) -> str | tuple[str, float]:
        if block is None:
            return ""
        if not block.enabled:
            return "" if plugged else self._block_to_code(block.next, plugged=False)
        handler = self.handlers.get(block.type)
        if handler is None:
            raise CodegenError(f"No Python generator for block type '{block.type}' (block '{block.id}').")
        code = handler(self, block)
        if isinstance(code, tuple):
            return self._scrub(block, code[0], plugged), code[1]
        if code is None:
            return ""
        return self._scrub(block, code, plugged)

    def _scrub(self, block: Block, code: str, plugged: bool) -> str:
        comment_code = ""
        if not plugged:
            if block.comment:
                comment_code += self.prefix_lines(_wrap(block.comment) + "\n", "# ")
            for child in block.values.values():
                nested = "".join(_wrap(b.comment) + "\n" for b in child.walk() if b.comment)
                if nested:
                    comment_code += self.prefix_lines(nested, "# ")
        next_code = self._block_to_code(block.next, plugged=False)
        if isinstance(next_code, tuple):
            raise CodegenError(f"Value block '{block.next.type}' ({block.next.id}) cannot follow a statement.")
        return comment_code + code + next_code


def format_number(value: float) -> str:
    """Render a finite float the way the block editor prints numbers."""
    if value == 0:
        return "0"
    text = repr(value)
    if 1e-6 <= abs(value) < 1e21:
        number = Decimal(text)
        if value.is_integer():
            number = number.to_integral_value()
        return format(number, "f")
    mantissa, _, exponent = text.partition("e")
    power = int(exponent)
    return f"{mantissa}e{'+' if power > 0 else '-'}{abs(power)}"


def _needs_parentheses(outer_order: float, inner_order: float) -> bool:
    outer_class = math.floor(outer_order)
    inner_class = math.floor(inner_order)
    if outer_class > inner_class:
        return False
    if outer_class == inner_class and outer_class in (ORDER_ATOMIC, ORDER_NONE):
        return False
    return (outer_order, inner_order) not in ORDER_OVERRIDES


def _wrap(comment: str) -> str:
    lines = []
    for paragraph in comment.split("\n"):
        lines.append(textwrap.fill(paragraph, COMMENT_WRAP - 3) if paragraph else "")
    return "\n".join(lines)

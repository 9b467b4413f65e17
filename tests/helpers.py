from __future__ import annotations

from blocks import Block, Workspace, parse_xml
from compiler import build_generator
from generator import PythonGenerator

XML_NAMESPACE = "https://developers.google.com/blockly/xml"


def wrap(*blocks: str, variables: tuple[str, ...] = ()) -> str:
    parts = [f'<xml xmlns="{XML_NAMESPACE}">']
    if variables:
        parts.append("<variables>")
        parts.extend(f'<variable id="v_{name}">{name}</variable>' for name in variables)
        parts.append("</variables>")
    parts.extend(blocks)
    parts.append("</xml>")
    return "".join(parts)


def generate(*blocks: str, variables: tuple[str, ...] = (), **options) -> str:
    workspace = parse_xml(wrap(*blocks, variables=variables))
    return build_generator(**options).workspace_to_code(workspace)


def block(block_type: str, *children: str, **attributes: str) -> str:
    attrs = "".join(f' {name}="{value}"' for name, value in attributes.items())
    return f'<block type="{block_type}"{attrs}>{"".join(children)}</block>'


def field(name: str, text: str) -> str:
    return f'<field name="{name}">{text}</field>'


def value(name: str, inner: str) -> str:
    return f'<value name="{name}">{inner}</value>'


def statement(name: str, inner: str) -> str:
    return f'<statement name="{name}">{inner}</statement>'


def next_block(inner: str) -> str:
    return f"<next>{inner}</next>"


def number(num: object, block_type: str = "math_number") -> str:
    return f'<shadow type="{block_type}">{field("NUM", str(num))}</shadow>'


def text(content: str) -> str:
    return f'<shadow type="text">{field("TEXT", content)}</shadow>'


def variable(name: str) -> str:
    return block("variables_get", field("VAR", name))


def ready_generator(variables: tuple[str, ...] = ()) -> PythonGenerator:
    """A generator initialised for a workspace, for calling handlers directly."""
    gen = build_generator()
    gen.init(Workspace(variables=[], top_blocks=[]) if not variables else parse_xml(wrap(variables=variables)))
    return gen


def make_block(block_type: str, block_id: str = "b", **fields: str) -> Block:
    return Block(type=block_type, id=block_id, fields=dict(fields))

from __future__ import annotations

import json
from collections.abc import Iterator
from dataclasses import dataclass, field
from xml.etree import ElementTree as ET


class WorkspaceError(ValueError):
    """Raised when a workspace document cannot be loaded."""


VARIABLE_FIELDS = {"VAR"}


@dataclass
class Variable:
    id: str
    name: str
    type: str = ""


@dataclass
class Block:
    type: str
    id: str
    fields: dict[str, str] = field(default_factory=dict)
    values: dict[str, Block] = field(default_factory=dict)
    statements: dict[str, Block] = field(default_factory=dict)
    next: Block | None = None
    mutation: dict[str, str] = field(default_factory=dict)
    data: str | None = None
    comment: str | None = None
    enabled: bool = True
    x: float | None = None
    y: float | None = None

    def get_field_value(self, name: str) -> str | None:
        return self.fields.get(name)

    def get_input_target_block(self, name: str) -> Block | None:
        if name in self.values:
            return self.values[name]
        return self.statements.get(name)

    def has_input(self, name: str) -> bool:
        return name in self.values or name in self.statements

    def walk(self) -> Iterator[Block]:
        """Yield this block, everything plugged into it and the rest of its stack."""
        block: Block | None = self
        while block is not None:
            yield block
            for child in block.values.values():
                yield from child.walk()
            for child in block.statements.values():
                yield from child.walk()
            block = block.next


@dataclass
class Workspace:
    variables: list[Variable] = field(default_factory=list)
    top_blocks: list[Block] = field(default_factory=list)

    def variable_names(self) -> list[str]:
        return [variable.name for variable in self.variables]

    def all_blocks(self) -> Iterator[Block]:
        for block in self.top_blocks:
            yield from block.walk()


def load_workspace(text: str, fmt: str = "auto") -> Workspace:
    if fmt == "auto":
        fmt = "json" if text.lstrip("\ufeff \t\r\n").startswith("{") else "xml"
    if fmt == "xml":
        return parse_xml(text)
    if fmt == "json":
        return parse_json(text)
    raise WorkspaceError(f"Unknown workspace format '{fmt}'. Expected 'xml', 'json' or 'auto'.")


def parse_xml(text: str) -> Workspace:
    try:
        root = ET.fromstring(text.lstrip("\ufeff"))
    except ET.ParseError as exc:
        raise WorkspaceError(f"Invalid workspace XML: {exc}") from exc
    return _XmlReader().read(root)


def parse_json(text: str) -> Workspace:
    try:
        document = json.loads(text)
    except json.JSONDecodeError as exc:
        raise WorkspaceError(f"Invalid workspace JSON: {exc}") from exc
    if not isinstance(document, dict):
        raise WorkspaceError("Workspace JSON must be an object.")
    return _JsonReader().read(document)


class _Reader:
    def __init__(self) -> None:
        self.variables: list[Variable] = []
        self._by_id: dict[str, Variable] = {}
        self._seen_ids: set[str] = set()
        self._auto_ids = 0

    def _declare_variable(self, var_id: str | None, name: str, var_type: str = "") -> Variable:
        if not name:
            raise WorkspaceError("Variable name cannot be empty.")
        if var_id is None:
            existing = self._variable_named(name)
            if existing is not None:
                return existing
            self._auto_ids += 1
            var_id = f"var_{self._auto_ids}"
        if var_id in self._by_id:
            raise WorkspaceError(f"Duplicate variable id '{var_id}'.")
        variable = Variable(id=var_id, name=name, type=var_type)
        self.variables.append(variable)
        self._by_id[var_id] = variable
        return variable

    def _variable_named(self, name: str) -> Variable | None:
        lowered = name.lower()
        return next((v for v in self.variables if v.name.lower() == lowered), None)

    def _resolve_variable(self, block_id: str, var_id: str | None, name: str | None) -> str:
        if var_id is not None and var_id in self._by_id:
            return self._by_id[var_id].name
        if name:
            return self._declare_variable(None, name).name
        raise WorkspaceError(f"Block '{block_id}' references unknown variable id '{var_id}'.")

    def _block_id(self, raw_id: str | None, block_type: str) -> str:
        if raw_id is None:
            self._auto_ids += 1
            raw_id = f"{block_type}_{self._auto_ids}"
        if raw_id in self._seen_ids:
            raise WorkspaceError(f"Duplicate block id '{raw_id}'.")
        self._seen_ids.add(raw_id)
        return raw_id


class _XmlReader(_Reader):
    def read(self, root: ET.Element) -> Workspace:
        if _local_name(root.tag) != "xml":
            raise WorkspaceError(f"Expected <xml> root element, found <{_local_name(root.tag)}>.")
        for child in root:
            if _local_name(child.tag) == "variables":
                for var in child:
                    if _local_name(var.tag) == "variable":
                        self._declare_variable(var.get("id"), (var.text or "").strip(), var.get("type", ""))
        top_blocks = [self._read_block(child) for child in root if _local_name(child.tag) in {"block", "shadow"}]
        return Workspace(variables=self.variables, top_blocks=top_blocks)

    def _read_block(self, element: ET.Element) -> Block:
        block_type = element.get("type")
        if not block_type:
            raise WorkspaceError("Block element is missing its 'type' attribute.")
        block = Block(
            type=block_type,
            id=self._block_id(element.get("id"), block_type),
            enabled=element.get("disabled", "false").lower() != "true",
            x=_optional_float(element.get("x")),
            y=_optional_float(element.get("y")),
        )
        for child in element:
            tag = _local_name(child.tag)
            if tag == "field":
                self._read_field(block, child)
            elif tag in {"value", "statement"}:
                target = self._read_input(block, child)
                if target is not None:
                    inputs = block.values if tag == "value" else block.statements
                    inputs[_required_name(block, child)] = target
            elif tag == "next":
                block.next = self._read_input(block, child)
            elif tag == "mutation":
                block.mutation = dict(child.attrib)
            elif tag == "data":
                block.data = child.text or ""
            elif tag == "comment":
                block.comment = child.text or ""
        return block

    def _read_field(self, block: Block, element: ET.Element) -> None:
        name = _required_name(block, element)
        text = element.text or ""
        if name in VARIABLE_FIELDS:
            text = self._resolve_variable(block.id, element.get("id"), text)
        block.fields[name] = text

    def _read_input(self, block: Block, element: ET.Element) -> Block | None:
        real = None
        shadow = None
        for child in element:
            tag = _local_name(child.tag)
            if tag == "block":
                real = child
            elif tag == "shadow":
                shadow = child
        chosen = real if real is not None else shadow
        if chosen is None:
            return None
        return self._read_block(chosen)


class _JsonReader(_Reader):
    def read(self, document: dict) -> Workspace:
        variables = document.get("variables", [])
        if not isinstance(variables, list):
            raise WorkspaceError(f"Workspace 'variables' must be a list, got {variables!r}.")
        for raw in variables:
            raw = _json_object(raw, "Variable entry")
            self._declare_variable(
                _json_text(raw.get("id"), "Variable id"),
                _json_text(raw.get("name", ""), "Variable name") or "",
                _json_text(raw.get("type", ""), "Variable type") or "",
            )
        blocks_section = document.get("blocks", {})
        raw_blocks = blocks_section.get("blocks", []) if isinstance(blocks_section, dict) else blocks_section
        if not isinstance(raw_blocks, list):
            raise WorkspaceError(f"Workspace 'blocks' must be a list of blocks, got {raw_blocks!r}.")
        top_blocks = [self._read_block(raw) for raw in raw_blocks]
        return Workspace(variables=self.variables, top_blocks=top_blocks)

    def _read_block(self, raw: dict) -> Block:
        if not isinstance(raw, dict) or not raw.get("type"):
            raise WorkspaceError(f"Block entry is missing its 'type': {raw!r}")
        block_type = _json_text(raw["type"], "Block type")
        enabled = raw.get("enabled", not raw.get("disabled", False))
        block = Block(
            type=block_type,
            id=self._block_id(_json_text(raw.get("id"), f"Id of block '{block_type}'"), block_type),
            enabled=bool(enabled),
            x=_optional_float(raw.get("x")),
            y=_optional_float(raw.get("y")),
            data=_json_text(raw.get("data"), f"'data' of block '{block_type}'"),
            mutation=_extra_state_to_mutation(raw.get("extraState")),
        )
        icons = _json_object(raw.get("icons", {}), f"'icons' of block '{block.id}'")
        comment_icon = _json_object(icons.get("comment", {}), f"Comment icon of block '{block.id}'")
        comment = comment_icon.get("text")
        if comment is not None:
            block.comment = str(comment)
        for name, value in _json_object(raw.get("fields", {}), f"'fields' of block '{block.id}'").items():
            if name in VARIABLE_FIELDS:
                if isinstance(value, dict):
                    block.fields[name] = self._resolve_variable(
                        block.id,
                        _json_text(value.get("id"), f"Variable id in block '{block.id}'"),
                        _json_text(value.get("name"), f"Variable name in block '{block.id}'"),
                    )
                else:
                    block.fields[name] = self._resolve_variable(block.id, None, str(value))
            else:
                block.fields[name] = _json_field_text(value)
        for name, connection in _json_object(raw.get("inputs", {}), f"'inputs' of block '{block.id}'").items():
            target = self._read_connection(connection, f"Input '{name}' of block '{block.id}'")
            if target is None:
                continue
            # JSON inputs carry no kind; statement inputs follow the editor's naming.
            if _is_statement_input(name):
                block.statements[name] = target
            else:
                block.values[name] = target
        if "next" in raw:
            block.next = self._read_connection(raw["next"], f"'next' of block '{block.id}'")
        return block

    def _read_connection(self, connection: object, where: str) -> Block | None:
        if connection is None:
            return None
        connection = _json_object(connection, where)
        raw = connection.get("block") or connection.get("shadow")
        if raw is None:
            return None
        return self._read_block(raw)


STATEMENT_INPUT_PREFIXES = ("DO", "ELSE", "BODY", "STACK", "SUBSTACK")


def _is_statement_input(name: str) -> bool:
    return name.startswith(STATEMENT_INPUT_PREFIXES)


def _extra_state_to_mutation(extra_state: object) -> dict[str, str]:
    if not isinstance(extra_state, dict):
        return {}
    mutation: dict[str, str] = {}
    for key, value in extra_state.items():
        if key == "elseIfCount":
            mutation["elseif"] = str(value)
        elif key == "hasElse":
            mutation["else"] = "1" if value else "0"
        else:
            mutation[key] = _json_field_text(value)
    return mutation


def _json_field_text(value: object) -> str:
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _required_name(block: Block, element: ET.Element) -> str:
    name = element.get("name")
    if not name:
        raise WorkspaceError(f"<{_local_name(element.tag)}> in block '{block.id}' is missing its 'name' attribute.")
    return name


def _local_name(tag: str) -> str:
    if tag.startswith("{") and "}" in tag:
        return tag[tag.index("}") + 1 :]
    return tag


def _optional_float(value: object) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise WorkspaceError(f"Invalid block coordinate {value!r}.") from exc


def _json_object(value: object, where: str) -> dict:
    if not isinstance(value, dict):
        raise WorkspaceError(f"{where} must be an object, got {value!r}.")
    return value


def _json_text(value: object, where: str) -> str | None:
    if value is not None and not isinstance(value, str):
        raise WorkspaceError(f"{where} must be a string, got {value!r}.")
    return value

from __future__ import annotations

from collections.abc import Mapping

from blocks import Block, Workspace
from cozmo_blocks import CUBE_NUMBER_FIELDS, CUBE_NUMBERS, EVENT_BLOCKS, UNSUPPORTED_BLOCKS, maze_walls
from generator import CodegenError


class SemanticError(ValueError):
    """Raised when workspace validation fails."""


def analyze(workspace: Workspace, handlers: Mapping[str, object]) -> None:
    top_level_ids = {block.id for block in workspace.top_blocks}
    events: dict[str, Block] = {}
    for block in workspace.all_blocks():
        if block.type not in handlers:
            raise SemanticError(f"Unknown block type '{block.type}' (block '{block.id}').")
        if block.type in UNSUPPORTED_BLOCKS:
            raise SemanticError(f"Block '{block.type}' (block '{block.id}') is not supported by the Python generator yet.")
        if block.type in EVENT_BLOCKS:
            _analyze_event(block, top_level_ids, events)
        _analyze_cube_fields(block)
        if block.type == "cozmo_maze":
            try:
                maze_walls(block)
            except CodegenError as exc:
                raise SemanticError(str(exc)) from exc


def _analyze_event(block: Block, top_level_ids: set[str], events: dict[str, Block]) -> None:
    if block.id not in top_level_ids:
        raise SemanticError(f"Event block '{block.type}' (block '{block.id}') must be at the top level of the workspace.")
    if not block.enabled:
        return
    previous = events.get(block.type)
    if previous is not None:
        raise SemanticError(
            f"Event block '{block.type}' is defined more than once (blocks '{previous.id}' and '{block.id}')."
        )
    events[block.type] = block


def _analyze_cube_fields(block: Block) -> None:
    for field_name in CUBE_NUMBER_FIELDS:
        value = block.get_field_value(field_name)
        if value is not None and value not in CUBE_NUMBERS:
            raise SemanticError(
                f"Cube number must be one of {', '.join(CUBE_NUMBERS)}, got {value!r} "
                f"in field '{field_name}' of block '{block.type}' ({block.id})."
            )

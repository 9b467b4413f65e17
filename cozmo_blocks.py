"""Python generators for the Cozmo blocks.

Generated programs talk to the robot through a ``bot`` object supplied by the
runner, and refer to light cubes through ``cozmo.objects``. Statement blocks
become ``bot.<method>(...)`` calls; sensing blocks become atomic expressions.
The two event blocks become module-level functions that the runner calls:
``on_start()`` once, and ``on_cube_tapped(...)`` as the SDK's tap event handler.
"""

from __future__ import annotations

import json
import math
import re

from blocks import Block
from generator import ORDER_ATOMIC, ORDER_NONE, CodegenError, HandlerTable, PythonGenerator, format_number
from standard_blocks import number_literal, required_field

HANDLERS = HandlerTable()

# Names the runner defines or the event functions bind; user variables must not shadow them.
RUNTIME_NAMES = frozenset(
    {
        "bot",
        "cozmo",
        "tapped_cube",
        "on_start",
        "on_cube_tapped",
        "evt",
        "obj",
        "tap_count",
        "tap_duration",
        "tap_intensity",
        "kwargs",
    }
)

EVENT_BLOCKS = ("cozmo_on_start", "cozmo_on_cube_tapped")
CUBE_NUMBERS = ("1", "2", "3")
CUBE_NUMBER_FIELDS = ("CUBE_NUM", "CUBE1_NUM", "CUBE2_NUM")

ON_CUBE_TAPPED_SIGNATURE = "on_cube_tapped(evt, *, obj, tap_count, tap_duration, tap_intensity, **kwargs)"

# block type -> (bot method, value input)
_SINGLE_VALUE_COMMANDS = {
    "cozmo_lift": ("lift", "LIFT"),
    "cozmo_head": ("head", "HEAD"),
    "cozmo_delay": ("delay", "DELAY"),
    "cozmo_turn": ("turn", "ANGLE"),
}

# block type -> (bot method, first value input, second value input)
_DOUBLE_VALUE_COMMANDS = {
    "cozmo_drive_distance_speed": ("driveDistanceWithSpeed", "DISTANCE", "SPEED"),
    "cozmo_drive_wheels_speed": ("driveWheelsWithSpeed", "L_SPEED", "R_SPEED"),
}

_NO_ARGUMENT_COMMANDS = {
    "cozmo_stop": "stop",
    "cozmo_goto_origin": "gotoOrigin",
}

_CUBE_COMMANDS = {
    "cozmo_cube_pickup": "pickupCube",
    "cozmo_cube_place_on_ground": "placeCubeOnGround",
    "cozmo_cube_place_on_cube": "placeCubeOnCube",
    "cozmo_cube_turn_toward": "turnTowardCube",
}

_CUBE_QUERIES = {
    "cozmo_cube_seen_number_boolean": "getCubeSeen",
    "cozmo_cube_visible_number_boolean": "getCubeIsVisible",
    "cozmo_cube_distance_to": "getDistanceToCube",
}

UNSUPPORTED_BLOCKS = (
    "cozmo_marker_seen_number_boolean",
    "cozmo_marker_distance_to",
    "cozmo_marker_angle",
    "cozmo_park_on_marker_number",
)

_NUMERIC_CODE = re.compile(r"^[-+]?(\d+(\.\d*)?|\.\d+)([eE][-+]?\d+)?$")

_FREE_WILL_VALUES = {"TRUE": "True", "True": "True", "FALSE": "False", "False": "False"}

_WALL_KEYS = ("x1", "y1", "x2", "y2")


def float_or_variable(gen: PythonGenerator, block: Block, name: str) -> str:
    """Code for a coordinate input: a plain number is normalised, anything else is kept as is."""
    code = gen.value_to_code(block, name, ORDER_NONE)
    if _NUMERIC_CODE.match(code):
        return format_number(float(code))
    return code or "0"


def cube_id(gen: PythonGenerator, block: Block, field_name: str = "CUBE_NUM") -> str:
    gen.provide_definition("import_cozmo", "import cozmo")
    return f"cozmo.objects.LightCube{required_field(block, field_name)}Id"


def maze_walls(block: Block) -> list[dict[str, float]]:
    try:
        walls = json.loads(block.data or "[]")
    except json.JSONDecodeError as exc:
        raise CodegenError(f"Maze block '{block.id}' has invalid wall data: {exc}") from exc
    if not isinstance(walls, list):
        raise CodegenError(f"Maze block '{block.id}' data must be a list of walls.")
    checked = []
    for index, wall in enumerate(walls):
        if not isinstance(wall, dict) or any(key not in wall for key in _WALL_KEYS):
            raise CodegenError(f"Wall {index} of maze block '{block.id}' needs x1, y1, x2 and y2.")
        checked.append({key: _wall_coordinate(block, index, key, wall[key]) for key in _WALL_KEYS})
    return checked


def _wall_coordinate(block: Block, index: int, key: str, value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise CodegenError(f"Wall {index} of maze block '{block.id}' has a non-numeric {key}: {value!r}.")
    try:
        number = float(value)
    except (ValueError, OverflowError) as exc:
        raise CodegenError(f"Wall {index} of maze block '{block.id}' has a non-numeric {key}: {value!r}.") from exc
    if not math.isfinite(number):
        raise CodegenError(f"Wall {index} of maze block '{block.id}' has a non-finite {key}: {value!r}.")
    return number


def _event_function(gen: PythonGenerator, block: Block, signature: str, preamble: str = "") -> str:
    names = [gen.variable_name(name) for name in gen.workspace.variable_names()]
    globals_line = f"{gen.indent}global {', '.join(names)}\n" if names else ""
    branch = gen.statement_to_code(block, "BODY")
    branch = gen.add_loop_trap(branch, block.id) or gen.pass_statement
    return f"def {signature}:\n{globals_line}{preamble}{branch}"


@HANDLERS.register("math_angle")
def math_angle(gen: PythonGenerator, block: Block) -> tuple[str, float]:
    return number_literal(block.get_field_value("NUM"))


@HANDLERS.register("cozmo_on_start")
def on_start(gen: PythonGenerator, block: Block) -> str:
    return _event_function(gen, block, "on_start()") + "\n"


@HANDLERS.register("cozmo_on_cube_tapped")
def on_cube_tapped(gen: PythonGenerator, block: Block) -> str:
    return _event_function(gen, block, ON_CUBE_TAPPED_SIGNATURE, preamble=f"{gen.indent}tapped_cube = obj\n")


@HANDLERS.register("cozmo_set_cube_model")
def set_cube_model(gen: PythonGenerator, block: Block) -> str:
    model = required_field(block, "MODEL")
    num = required_field(block, "CUBE_NUM")
    return f'bot.setCubeModel("{model}",{num})\n'


@HANDLERS.register("cozmo_add_static_model")
def add_static_model(gen: PythonGenerator, block: Block) -> str:
    model = required_field(block, "MODEL")
    args = [float_or_variable(gen, block, name) for name in ("X1", "Y1", "X2", "Y2", "DEPTH", "HEIGHT")]
    return f'bot.addStaticObject("{model}",{",".join(args)})\n'


@HANDLERS.register("cozmo_maze")
def maze(gen: PythonGenerator, block: Block) -> str:
    lines = []
    for wall in maze_walls(block):
        x1, y1, x2, y2 = (format_number(wall[key]) for key in _WALL_KEYS)
        lines.append(f'bot.addStaticObject("WALL_WOOD",{x1},{y1},{x2},{y2}, 1, 3)')
    if not lines:
        return ""
    return "\n".join(lines) + "\n"


@HANDLERS.register("cozmo_play_animation")
def play_animation(gen: PythonGenerator, block: Block) -> str:
    return f'bot.playAnimation("{required_field(block, "ANIMATION")}")\n'


@HANDLERS.register("cozmo_play_emotion")
def play_emotion(gen: PythonGenerator, block: Block) -> str:
    return f'bot.playEmotion("{required_field(block, "EMOTION")}")\n'


@HANDLERS.register(*_SINGLE_VALUE_COMMANDS)
def single_value_command(gen: PythonGenerator, block: Block) -> str:
    method, input_name = _SINGLE_VALUE_COMMANDS[block.type]
    value = gen.value_to_code(block, input_name, ORDER_ATOMIC) or "0"
    return f"bot.{method}({value})\n"


@HANDLERS.register(*_DOUBLE_VALUE_COMMANDS)
def double_value_command(gen: PythonGenerator, block: Block) -> str:
    method, first_input, second_input = _DOUBLE_VALUE_COMMANDS[block.type]
    first = gen.value_to_code(block, first_input, ORDER_ATOMIC) or "0"
    second = gen.value_to_code(block, second_input, ORDER_ATOMIC) or "0"
    return f"bot.{method}({first}, {second})\n"


@HANDLERS.register(*_NO_ARGUMENT_COMMANDS)
def no_argument_command(gen: PythonGenerator, block: Block) -> str:
    return f"bot.{_NO_ARGUMENT_COMMANDS[block.type]}()\n"


@HANDLERS.register("cozmo_wait_for_tap")
def wait_for_tap(gen: PythonGenerator, block: Block) -> str:
    return "tapped_cube = bot.waitForTap()\n"


@HANDLERS.register("cozmo_drive_to")
def drive_to(gen: PythonGenerator, block: Block) -> str:
    x = float_or_variable(gen, block, "X")
    y = float_or_variable(gen, block, "Y")
    return f"bot.driveTo({x}, {y})\n"


@HANDLERS.register(*_CUBE_QUERIES)
def cube_query(gen: PythonGenerator, block: Block) -> tuple[str, float]:
    return f"bot.{_CUBE_QUERIES[block.type]}({cube_id(gen, block)})", ORDER_ATOMIC


@HANDLERS.register("cozmo_cube_distance_between")
def cube_distance_between(gen: PythonGenerator, block: Block) -> tuple[str, float]:
    first = cube_id(gen, block, "CUBE1_NUM")
    second = cube_id(gen, block, "CUBE2_NUM")
    return f"bot.getDistanceBetweenCubes({first}, {second})", ORDER_ATOMIC


@HANDLERS.register(*_CUBE_COMMANDS)
def cube_command(gen: PythonGenerator, block: Block) -> str:
    return f"bot.{_CUBE_COMMANDS[block.type]}({cube_id(gen, block)})\n"


@HANDLERS.register("cozmo_tapped_cube_number_boolean")
def tapped_cube_number(gen: PythonGenerator, block: Block) -> tuple[str, float]:
    return f"({cube_id(gen, block)} == bot.getCubeNumber(tapped_cube))", ORDER_ATOMIC


@HANDLERS.register("cozmo_say")
def say(gen: PythonGenerator, block: Block) -> str:
    text = gen.value_to_code(block, "TEXT", ORDER_ATOMIC) or "''"
    return f"bot.say({text})\n"


@HANDLERS.register("cozmo_free_will")
def free_will(gen: PythonGenerator, block: Block) -> str:
    raw = required_field(block, "FREE_WILL")
    if raw not in _FREE_WILL_VALUES:
        raise CodegenError(f"Free will block '{block.id}' has invalid value {raw!r}.")
    return f"bot.enableFreeWill({_FREE_WILL_VALUES[raw]})\n"


@HANDLERS.register(*UNSUPPORTED_BLOCKS)
def unsupported(gen: PythonGenerator, block: Block) -> str:
    raise CodegenError(
        f"Block '{block.type}' ({block.id}) has no Python translation yet: the bot wrapper does not track custom markers."
    )

from __future__ import annotations

"""
Minimal workspace example (Blockly XML):

<xml xmlns="https://developers.google.com/blockly/xml">
  <block type="cozmo_on_start">
    <statement name="BODY">
      <block type="cozmo_say">
        <value name="TEXT"><shadow type="text"><field name="TEXT">hello</field></shadow></value>
      </block>
    </statement>
  </block>
</xml>

Usage:
python compiler.py workspace.xml program.py
python compiler.py workspace.json - --format json --loop-trap "bot.checkStopped()"
"""

import argparse
import builtins
import keyword
import logging
import sys
from pathlib import Path

import cozmo_blocks
import standard_blocks
from blocks import load_workspace
from generator import PythonGenerator
from semantic import analyze

logger = logging.getLogger(__name__)

PYTHON_RESERVED_WORDS = frozenset(keyword.kwlist) | frozenset(keyword.softkwlist) | frozenset(dir(builtins))
GENERATOR_RESERVED_WORDS = frozenset({"Number"})


def build_generator(indent: str = "  ", infinite_loop_trap: str | None = None) -> PythonGenerator:
    handlers = {**standard_blocks.HANDLERS, **cozmo_blocks.HANDLERS}
    reserved = PYTHON_RESERVED_WORDS | GENERATOR_RESERVED_WORDS | cozmo_blocks.RUNTIME_NAMES
    return PythonGenerator(
        handlers=handlers,
        indent=indent,
        infinite_loop_trap=infinite_loop_trap,
        reserved_words=reserved,
    )


def compile_source(
    source_text: str,
    fmt: str = "auto",
    validate: bool = True,
    indent: str = "  ",
    infinite_loop_trap: str | None = None,
) -> str:
    workspace = load_workspace(source_text, fmt=fmt)
    generator = build_generator(indent=indent, infinite_loop_trap=infinite_loop_trap)
    if validate:
        analyze(workspace, generator.handlers)
    code = generator.workspace_to_code(workspace)
    logger.debug(
        "Compiled %d top-level block(s) and %d variable(s) into %d line(s)",
        len(workspace.top_blocks),
        len(workspace.variables),
        code.count("\n"),
    )
    return code


def compile_file(
    input_path: Path,
    output_path: Path | None,
    fmt: str = "auto",
    validate: bool = True,
    indent: str = "  ",
    infinite_loop_trap: str | None = None,
) -> None:
    if fmt == "auto" and input_path.suffix.lower() in {".xml", ".json"}:
        fmt = input_path.suffix.lower()[1:]
    source = input_path.read_text(encoding="utf-8")
    code = compile_source(
        source,
        fmt=fmt,
        validate=validate,
        indent=indent,
        infinite_loop_trap=infinite_loop_trap,
    )
    if output_path is None or str(output_path) == "-":
        sys.stdout.write(code)
        return
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(code, encoding="utf-8")
    logger.info("Wrote %s", output_path)


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Generate a Python program from a Cozmo block workspace")
    parser.add_argument("input", type=Path, help="Path to a Blockly workspace (.xml or .json)")
    parser.add_argument("output", type=Path, nargs="?", help="Path to the output .py file, or '-' for stdout")
    parser.add_argument(
        "--format",
        choices=("auto", "xml", "json"),
        default="auto",
        help="Workspace format. 'auto' uses the file extension, then the first character.",
    )
    parser.add_argument("--indent", type=int, default=2, help="Spaces per indentation level (default: 2).")
    parser.add_argument(
        "--loop-trap",
        default=None,
        help="Statement placed at the top of every loop and event body; '%%1' is replaced by the block id.",
    )
    parser.add_argument(
        "--no-validate",
        action="store_true",
        help="Skip workspace validation and go straight to code generation.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    input_path: Path = args.input

    if not input_path.exists() or not input_path.is_file():
        raise FileNotFoundError(f"Input file not found: '{input_path}'")
    if args.indent < 1:
        parser.error("--indent must be at least 1")

    compile_file(
        input_path=input_path,
        output_path=args.output,
        fmt=args.format,
        validate=not args.no_validate,
        indent=" " * args.indent,
        infinite_loop_trap=args.loop_trap,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

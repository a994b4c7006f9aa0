import argparse
import json
import logging
import sys
import traceback
from typing import Any, Dict, List, Optional, Sequence, Tuple

from . import generate_diagram_from_sources, generate_sequence_diagram
from .compile import compile_sources
from .errors import MalformedDocumentError
from .theme import DiagramConfig

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sol2seq",
        description="Generate Mermaid sequence diagrams from Solidity smart contracts.",
    )
    parser.add_argument("ast_file", nargs="?", default="", help="AST JSON file path.")
    parser.add_argument(
        "output_file",
        nargs="?",
        default="",
        help="Output file path (optional, prints to stdout if not provided). A .md file gets a mermaid fence.",
    )
    parser.add_argument(
        "-s",
        "--source-files",
        nargs="+",
        default=[],
        metavar="FILE",
        help="Solidity source files to process directly (the positional argument then names the output file).",
    )
    parser.add_argument(
        "--compile",
        action="store_true",
        help="With --source-files: compile the files with the Solidity toolchain and use the resulting AST.",
    )
    parser.add_argument("--solc", default="", help="Optional solc binary path (with --compile).")
    parser.add_argument("--solc-args", default="", help="Optional solc args string (with --compile).")
    parser.add_argument("-l", "--light-colors", action="store_true", help="Use lighter colors for the diagram.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    return parser


def _read_text(path: str) -> str:
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        return f.read()


def _load_json(path: str) -> Any:
    try:
        return json.loads(_read_text(path))
    except json.JSONDecodeError as e:
        raise MalformedDocumentError(f"{path} is not valid JSON: {e}") from e


def _compile_all(paths: Sequence[str], solc: str, solc_args: str) -> Dict[str, Any]:
    sources: Dict[str, Any] = {}
    for path in paths:
        for source_path, unit in compile_sources(path, solc=solc, solc_args=solc_args)["sources"].items():
            sources.setdefault(source_path, unit)
    return {"sources": sources}


def _write_output(path: str, diagram: str) -> None:
    if path.lower().endswith(".md"):
        diagram = f"```mermaid\n{diagram}```\n"
    with open(path, "w", encoding="utf-8") as f:
        f.write(diagram)


def _resolve_paths(parser: argparse.ArgumentParser, args: argparse.Namespace) -> Tuple[str, str]:
    """Return (ast_file, output_file) once the positional arguments are interpreted."""
    if args.source_files:
        if args.output_file:
            parser.error("argument ast_file: not allowed with argument -s/--source-files")
        # The single positional names the output file.
        return "", args.ast_file
    if args.compile:
        parser.error("--compile requires -s/--source-files")
    if not args.ast_file:
        parser.error("either ast_file or -s/--source-files is required")
    return args.ast_file, args.output_file


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    ast_file, output_file = _resolve_paths(parser, args)

    logging.basicConfig(
        stream=sys.stderr,
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    config = DiagramConfig(use_light_theme=args.light_colors)
    try:
        if args.source_files and args.compile:
            document = _compile_all(args.source_files, args.solc, args.solc_args)
            diagram = generate_sequence_diagram(document, config)
        elif args.source_files:
            buffers = [(path, _read_text(path)) for path in args.source_files]
            diagram = generate_diagram_from_sources(buffers, config)
        else:
            logger.debug(f"Loading AST from {ast_file}")
            diagram = generate_sequence_diagram(_load_json(ast_file), config)

        if output_file:
            _write_output(output_file, diagram)
            print("Sequence diagram generated successfully!")
        else:
            sys.stdout.write(diagram)
        return 0

    except Exception as e:
        print(f"error: {e}", file=sys.stderr)
        if args.verbose:
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    raise SystemExit(main())

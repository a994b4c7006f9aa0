import contextlib
import logging
import sys
from typing import Any, Dict

from .errors import CompilationError

logger = logging.getLogger(__name__)


def compile_sources(target: str, solc: str = "", solc_args: str = "") -> Dict[str, Any]:
    """
    Compile `target` (a file or a project folder) with the Solidity toolchain
    and return one combined AST document: {"sources": {path: {"AST": ast}}}.
    """
    try:
        from crytic_compile import CryticCompile  # type: ignore
    except Exception as e:
        raise CompilationError(f"Failed to import crytic-compile. Install it to use --compile. Details: {e}") from e

    compile_kwargs: Dict[str, Any] = {}
    if solc:
        compile_kwargs["solc"] = solc
    if solc_args:
        compile_kwargs["solc_args"] = solc_args

    try:
        # The toolchain is noisy on stdout; keep stdout clean for the diagram.
        with contextlib.redirect_stdout(sys.stderr):
            cc = CryticCompile(target, **compile_kwargs)
    except Exception as e:
        raise CompilationError(f"Compilation of {target} failed: {e}") from e

    sources: Dict[str, Any] = {}
    for unit in getattr(cc, "compilation_units", {}).values():
        for path, ast in (getattr(unit, "asts", {}) or {}).items():
            # A file shared by several compilation units keeps its first AST.
            sources.setdefault(str(path), {"AST": ast})

    if not sources:
        raise CompilationError(f"Compilation of {target} produced no AST")
    logger.debug(f"Compiled {len(sources)} source unit(s) from {target}")
    return {"sources": sources}

"""
Generate Mermaid sequence diagrams from Solidity sources or solc AST JSON.
"""

from typing import Any, Iterable, List, Mapping, Optional, Tuple, Union

from .builder import ContractModelBuilder, build_from_ast, build_from_sources
from .errors import CompilationError, MalformedDocumentError, Sol2SeqError
from .model import (
    ContractModel,
    ContractUnit,
    EmitEvent,
    EventUnit,
    ExternalCall,
    FunctionUnit,
    Parameter,
    StateVariable,
    StorageWrite,
)
from .renderer import render
from .theme import DEFAULT_THEME, LIGHT_THEME, DiagramConfig, Theme

__version__ = "0.2.0"

Buffers = Union[Mapping[str, str], Iterable[Tuple[str, str]]]


def generate_sequence_diagram(document: Any, config: Optional[DiagramConfig] = None) -> str:
    """Render the diagram for a parsed AST document (as loaded by `json`)."""
    config = config or DiagramConfig()
    return render(build_from_ast(document), config.theme)


def generate_diagram_from_sources(buffers: Buffers, config: Optional[DiagramConfig] = None) -> str:
    """Render the diagram for `(source_id, text)` buffers, or a mapping of them."""
    config = config or DiagramConfig()
    return render(build_from_sources(_buffer_pairs(buffers)), config.theme)


def _buffer_pairs(buffers: Buffers) -> List[Tuple[str, str]]:
    if isinstance(buffers, Mapping):
        return list(buffers.items())
    return list(buffers)


__all__ = [
    "CompilationError",
    "ContractModel",
    "ContractModelBuilder",
    "ContractUnit",
    "DEFAULT_THEME",
    "DiagramConfig",
    "EmitEvent",
    "EventUnit",
    "ExternalCall",
    "FunctionUnit",
    "LIGHT_THEME",
    "MalformedDocumentError",
    "Parameter",
    "Sol2SeqError",
    "StateVariable",
    "StorageWrite",
    "Theme",
    "build_from_ast",
    "build_from_sources",
    "generate_diagram_from_sources",
    "generate_sequence_diagram",
    "render",
]

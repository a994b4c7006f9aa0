import logging
from collections import deque
from dataclasses import replace
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set, Tuple

from .accessor import Node, NodeAccessor
from .correlator import classify_ast_body, classify_fragments, describe
from .draft import ContractDraft, FunctionDraft
from .extractor import SourceExtractor
from .model import ContractModel, ContractUnit, EventUnit, FunctionUnit, Parameter, StateVariable, function_labels

logger = logging.getLogger(__name__)

_TYPE_PREFIXES = ("contract ", "struct ", "enum ", "type(")


class ContractModelBuilder:
    """
    Turn one input (an AST document or a set of source buffers) into the
    immutable ContractModel. Declarations keep first-seen order; a repeated
    contract name re-opens the first declaration and appends to it.
    """

    def __init__(self, accessor: Optional[NodeAccessor] = None, extractor: Optional[SourceExtractor] = None):
        self.accessor = accessor or NodeAccessor()
        self.extractor = extractor or SourceExtractor()

    def build_from_ast(self, document: Any) -> ContractModel:
        # Resolve source units first so a malformed document fails before any work.
        units = self.accessor.source_units(document)
        drafts = list(self._drafts_from_ast(units))
        return self._freeze(self._merge(drafts), from_ast=True)

    def build_from_sources(self, buffers: Iterable[Tuple[str, str]]) -> ContractModel:
        drafts = self.extractor.extract(buffers)
        return self._freeze(self._merge(drafts), from_ast=False)

    # ------------------------------------------------------------------
    # AST extraction
    # ------------------------------------------------------------------

    def _drafts_from_ast(self, units: List[Tuple[str, Node]]) -> Iterator[ContractDraft]:
        acc = self.accessor
        for path, root in units:
            for node in acc.find_all(root, lambda n: acc.node_kind(n) == "ContractDefinition"):
                draft = self._contract_draft(node, path)
                if draft is not None:
                    yield draft

    def _contract_draft(self, node: Node, path: str) -> Optional[ContractDraft]:
        acc = self.accessor
        name = acc.string_property(node, "name")
        if not name:
            logger.debug(f"Skipping unnamed ContractDefinition in {path or '<root>'}")
            return None

        draft = ContractDraft(
            name=name,
            kind=acc.string_property(node, "contractKind") or "contract",
            origin=path or f"#{acc.string_property(node, 'id')}",
            abstract=acc.bool_property(node, "abstract"),
        )
        logger.debug(f"Found {draft.kind}: {name} in {draft.origin}")

        for child in acc.children_of(node):
            kind = acc.node_kind(child)
            if kind == "InheritanceSpecifier":
                draft.add_base(self._reference_name(acc.child(child, "baseName")))
            elif kind == "VariableDeclaration":
                draft.add_state_variable(self._state_variable(child))
            elif kind == "FunctionDefinition":
                function = self._function_draft(child, name)
                if not draft.add_function(function):
                    logger.debug(f"Duplicate function {function.name} in {name}")
            elif kind == "EventDefinition":
                event = EventUnit(
                    name=acc.string_property(child, "name"),
                    parameters=tuple(self._parameters(acc.child(child, "parameters"))),
                )
                if not draft.add_event(event):
                    logger.debug(f"Duplicate event {event.describe()} in {name}")
        return draft

    def _state_variable(self, node: Node) -> StateVariable:
        acc = self.accessor
        type_node = acc.child(node, "typeName")
        visibility = acc.string_property(node, "visibility") or "internal"
        return StateVariable(
            name=acc.string_property(node, "name"),
            type_name=self._type_name(type_node, node),
            visibility=visibility if visibility != "default" else "internal",
            is_mapping=acc.node_kind(type_node) == "Mapping",
        )

    def _function_draft(self, node: Node, contract_name: str) -> FunctionDraft:
        acc = self.accessor
        declared_kind = acc.string_property(node, "kind")
        if not declared_kind:
            declared_kind = "constructor" if acc.bool_property(node, "isConstructor") else "function"
        name = acc.string_property(node, "name")

        kind = "function"
        if declared_kind == "constructor" or (name and name == contract_name):
            kind = "constructor"
            name = "constructor"
        elif declared_kind in ("fallback", "receive"):
            name = declared_kind
        elif not name:
            name = "fallback"

        mutability = acc.string_property(node, "stateMutability")
        if not mutability:
            if acc.bool_property(node, "constant"):
                mutability = "view"
            elif acc.bool_property(node, "payable"):
                mutability = "payable"
        if mutability not in ("view", "pure", "payable"):
            mutability = "none"

        return FunctionDraft(
            name=name,
            kind=kind,
            visibility=acc.string_property(node, "visibility") or "public",
            mutability=mutability,
            parameters=self._parameters(acc.child(node, "parameters")),
            returns=self._parameters(acc.child(node, "returnParameters")),
            body=acc.child(node, "body"),
        )

    def _parameters(self, parameter_list: Optional[Node]) -> List[Parameter]:
        acc = self.accessor
        return [
            Parameter(
                name=acc.string_property(p, "name"),
                type_name=self._type_name(acc.child(p, "typeName"), p),
                indexed=acc.bool_property(p, "indexed"),
            )
            for p in acc.children_at(parameter_list, "parameters")
        ]

    def _reference_name(self, node: Optional[Node]) -> str:
        acc = self.accessor
        return (
            acc.string_property(node, "name")
            or acc.string_property(node, "namePath")
            or acc.string_property(node, "pathNode.name")
        )

    def _type_name(self, type_node: Optional[Node], declaration: Optional[Node] = None) -> str:
        acc = self.accessor
        kind = acc.node_kind(type_node)
        if kind == "ElementaryTypeName":
            name = acc.string_property(type_node, "name") or "unknown"
            if name == "address" and acc.string_property(type_node, "stateMutability") == "payable":
                return "address payable"
            return name
        if kind in ("UserDefinedTypeName", "IdentifierPath"):
            name = self._reference_name(type_node)
            if name:
                return name
        elif kind == "ArrayTypeName":
            base = self._type_name(acc.child(type_node, "baseType"))
            length = acc.child(type_node, "length")
            return f"{base}[{describe(acc, length) if length is not None else ''}]"
        elif kind == "Mapping":
            key = self._type_name(acc.child(type_node, "keyType"))
            value = self._type_name(acc.child(type_node, "valueType"))
            return f"mapping({key} => {value})"
        elif kind == "FunctionTypeName":
            return "function"

        for source in (type_node, declaration):
            type_string = acc.string_property(source, "typeDescriptions.typeString")
            if type_string:
                return _strip_type_prefix(type_string)
        return "unknown"

    # ------------------------------------------------------------------
    # Merge and freeze
    # ------------------------------------------------------------------

    @staticmethod
    def _merge(drafts: Iterable[ContractDraft]) -> List[ContractDraft]:
        merged: Dict[str, ContractDraft] = {}
        for draft in drafts:
            existing = merged.get(draft.name)
            if existing is None:
                merged[draft.name] = draft
                continue
            logger.debug(f"Re-opened declaration of {draft.name} from {draft.origin}")
            existing.absorb(draft)
        return list(merged.values())

    def _freeze(self, drafts: List[ContractDraft], from_ast: bool) -> ContractModel:
        by_name = {d.name: d for d in drafts}
        contracts: List[ContractUnit] = []
        for draft in drafts:
            state_names = _visible_state_names(draft, by_name)
            functions = []
            for function in draft.functions:
                if from_ast:
                    effects = classify_ast_body(self.accessor, function.body, state_names)
                else:
                    effects = classify_fragments(function.body, state_names)
                functions.append(
                    FunctionUnit(
                        name=function.name,
                        kind=function.kind,
                        visibility=function.visibility,
                        mutability=function.mutability,
                        parameters=tuple(function.parameters),
                        returns=tuple(function.returns),
                        effects=tuple(effects),
                    )
                )
            labels = function_labels(tuple(functions))
            functions = [replace(f, label=label) for f, label in zip(functions, labels)]

            state_variables = tuple(
                StateVariable(
                    name=v.name,
                    type_name=v.type_name,
                    visibility=v.visibility,
                    is_mapping=v.is_mapping,
                    resolved_contract=v.type_name if v.type_name in by_name else None,
                )
                for v in draft.state_variables
            )
            contracts.append(
                ContractUnit(
                    name=draft.name,
                    kind=draft.kind,
                    bases=tuple(draft.bases),
                    origin=draft.origin,
                    state_variables=state_variables,
                    functions=tuple(functions),
                    events=tuple(draft.events),
                    abstract=draft.abstract,
                )
            )
        return ContractModel(contracts=tuple(contracts))


def _visible_state_names(draft: ContractDraft, by_name: Dict[str, ContractDraft]) -> Set[str]:
    """State variable names declared on `draft` or inherited from known bases."""
    names: Set[str] = set()
    seen: Set[str] = set()
    queue = deque([draft])
    while queue:
        current = queue.popleft()
        if current.name in seen:
            continue
        seen.add(current.name)
        names.update(current.state_names())
        for base in current.bases:
            parent = by_name.get(base)
            if parent is not None:
                queue.append(parent)
    return names


def _strip_type_prefix(type_string: str) -> str:
    for prefix in _TYPE_PREFIXES:
        if type_string.startswith(prefix):
            type_string = type_string[len(prefix):]
            if prefix == "type(":
                type_string = type_string.rstrip(")")
            break
    if type_string.startswith(("mapping", "address payable", "function")):
        return type_string
    # "Vault.Position storage ref" -> "Vault.Position"
    return type_string.split(" ")[0]


def build_from_ast(document: Any) -> ContractModel:
    return ContractModelBuilder().build_from_ast(document)


def build_from_sources(buffers: Iterable[Tuple[str, str]]) -> ContractModel:
    return ContractModelBuilder().build_from_sources(buffers)

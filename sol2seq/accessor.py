"""
Read-only view over solc AST documents.

Two dialects are understood: the compact JSON AST (`nodeType` plus flat
fields, children under named keys) and the legacy AST (`name` as the kind,
properties under `attributes`, positional `children`). Callers only use the
operations below and never look at raw keys.
"""

from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from .errors import MalformedDocumentError

Node = Dict[str, Any]

# Named slots of legacy nodes: (kind, key) -> (child kind filter, position).
# A filter starting with "!" excludes that kind.
_LEGACY_SLOTS: Dict[Tuple[str, str], Tuple[Optional[str], int]] = {
    ("FunctionDefinition", "parameters"): ("ParameterList", 0),
    ("FunctionDefinition", "returnParameters"): ("ParameterList", 1),
    ("FunctionDefinition", "body"): ("Block", 0),
    ("ModifierDefinition", "parameters"): ("ParameterList", 0),
    ("EventDefinition", "parameters"): ("ParameterList", 0),
    ("VariableDeclaration", "typeName"): (None, 0),
    ("Mapping", "keyType"): (None, 0),
    ("Mapping", "valueType"): (None, 1),
    ("ArrayTypeName", "baseType"): (None, 0),
    ("ArrayTypeName", "length"): (None, 1),
    ("InheritanceSpecifier", "baseName"): (None, 0),
    ("ExpressionStatement", "expression"): (None, 0),
    ("EmitStatement", "eventCall"): (None, 0),
    ("Return", "expression"): (None, 0),
    ("FunctionCall", "expression"): (None, 0),
    ("MemberAccess", "expression"): (None, 0),
    ("IndexAccess", "baseExpression"): (None, 0),
    ("IndexAccess", "indexExpression"): (None, 1),
    ("Assignment", "leftHandSide"): (None, 0),
    ("Assignment", "rightHandSide"): (None, 1),
    ("BinaryOperation", "leftExpression"): (None, 0),
    ("BinaryOperation", "rightExpression"): (None, 1),
    ("UnaryOperation", "subExpression"): (None, 0),
    ("Conditional", "condition"): (None, 0),
    ("Conditional", "trueExpression"): (None, 1),
    ("Conditional", "falseExpression"): (None, 2),
    ("NewExpression", "typeName"): (None, 0),
    ("VariableDeclarationStatement", "initialValue"): ("!VariableDeclaration", -1),
}

# Named child lists of legacy nodes: (kind, key) -> (child kind filter, start).
_LEGACY_LISTS: Dict[Tuple[str, str], Tuple[Optional[str], int]] = {
    ("ContractDefinition", "baseContracts"): ("InheritanceSpecifier", 0),
    ("ParameterList", "parameters"): (None, 0),
    ("Block", "statements"): (None, 0),
    ("UncheckedBlock", "statements"): (None, 0),
    ("FunctionCall", "arguments"): (None, 1),
    ("TupleExpression", "components"): (None, 0),
    ("VariableDeclarationStatement", "declarations"): ("VariableDeclaration", 0),
}

# Legacy attribute names that differ from the compact dialect.
_LEGACY_ALIASES: Dict[Tuple[Optional[str], str], str] = {
    ("Identifier", "name"): "value",
    ("MemberAccess", "memberName"): "member_name",
    (None, "typeDescriptions.typeString"): "type",
}

# Keys that legacy nodes keep outside `attributes`.
_STRUCTURAL_KEYS = ("id", "src")

_UNIT_WRAPPERS = ("ast", "AST", "legacyAST")


def _is_compact(value: Any) -> bool:
    return isinstance(value, dict) and isinstance(value.get("nodeType"), str)


def _is_legacy(value: Any) -> bool:
    return (
        isinstance(value, dict)
        and "nodeType" not in value
        and isinstance(value.get("name"), str)
        and any(k in value for k in ("attributes", "children", "src", "id"))
    )


def _src_start(node: Node) -> Optional[int]:
    src = node.get("src")
    if not isinstance(src, str):
        return None
    head = src.split(":", 1)[0]
    try:
        return int(head)
    except ValueError:
        return None


class NodeAccessor:
    def is_node(self, value: Any) -> bool:
        return _is_compact(value) or _is_legacy(value)

    def node_kind(self, node: Any) -> str:
        if _is_compact(node):
            return node["nodeType"]
        if _is_legacy(node):
            return node["name"]
        return ""

    def string_property(self, node: Any, key: str) -> str:
        value = self._property(node, key)
        if isinstance(value, bool):
            return ""
        if isinstance(value, str):
            return value
        if isinstance(value, (int, float)):
            return str(value)
        return ""

    def bool_property(self, node: Any, key: str) -> bool:
        return self._property(node, key) is True

    def children_of(self, node: Any) -> List[Node]:
        """Child nodes in source order."""
        if _is_legacy(node):
            return [c for c in node.get("children") or [] if self.is_node(c)]
        if not _is_compact(node):
            return []

        found: List[Node] = []
        for value in node.values():
            if _is_compact(value):
                found.append(value)
            elif isinstance(value, list):
                found.extend(v for v in value if _is_compact(v))

        # solc sorts keys alphabetically (falseBody before trueBody), so the
        # `src` offset is the only reliable source order.
        offsets = [_src_start(c) for c in found]
        if found and all(o is not None for o in offsets):
            order = sorted(range(len(found)), key=lambda i: offsets[i])
            found = [found[i] for i in order]
        return found

    def find_all(self, node: Any, predicate: Callable[[Node], bool]) -> Iterator[Node]:
        """Depth-first, pre-order walk over `node` and its descendants."""
        if not self.is_node(node):
            return
        stack = [node]
        while stack:
            current = stack.pop()
            if predicate(current):
                yield current
            stack.extend(reversed(self.children_of(current)))

    def child(self, node: Any, key: str) -> Optional[Node]:
        if _is_legacy(node):
            slot = _LEGACY_SLOTS.get((node["name"], key))
            if slot is None:
                return None
            kind_filter, position = slot
            candidates = self._filtered_children(node, kind_filter)
            try:
                return candidates[position]
            except IndexError:
                return None
        if _is_compact(node):
            value = node.get(key)
            return value if _is_compact(value) else None
        return None

    def children_at(self, node: Any, key: str) -> List[Node]:
        if _is_legacy(node):
            slot_list = _LEGACY_LISTS.get((node["name"], key))
            if slot_list is None:
                return []
            kind_filter, start = slot_list
            return self._filtered_children(node, kind_filter)[start:]
        if _is_compact(node):
            value = node.get(key)
            if isinstance(value, list):
                return [v for v in value if _is_compact(v)]
        return []

    def source_units(self, document: Any) -> List[Tuple[str, Node]]:
        """
        Resolve every source unit in `document` to `(path, root node)`.

        Accepts a bare unit, a list of units, or a `sources` map as written by
        `solc --combined-json ast` and standard-json output. Raises
        MalformedDocumentError when the document is not a tree.
        """
        if isinstance(document, list):
            entries = [(f"#{index}", item) for index, item in enumerate(document)]
        elif isinstance(document, dict) and "sources" in document:
            sources = document["sources"]
            if not isinstance(sources, dict):
                raise MalformedDocumentError("'sources' must map file paths to source units")
            entries = list(sources.items())
        elif isinstance(document, dict):
            entries = [("", document)]
        else:
            raise MalformedDocumentError(
                f"AST document must be a JSON object or array, got {type(document).__name__}"
            )
        return [self._unwrap(entry, path) for path, entry in entries]

    def _unwrap(self, entry: Any, path: str) -> Tuple[str, Node]:
        label = path or "<root>"
        if not isinstance(entry, dict):
            raise MalformedDocumentError(f"source unit {label} is not a JSON object")
        for key in _UNIT_WRAPPERS:
            if isinstance(entry.get(key), dict):
                entry = entry[key]
                break
        if not self.is_node(entry):
            raise MalformedDocumentError(
                f"source unit {label} has no AST root (missing 'nodeType' or legacy 'name')"
            )
        return (self.string_property(entry, "absolutePath") or path, entry)

    def _filtered_children(self, node: Node, kind_filter: Optional[str]) -> List[Node]:
        children = self.children_of(node)
        if kind_filter is None:
            return children
        if kind_filter.startswith("!"):
            return [c for c in children if self.node_kind(c) != kind_filter[1:]]
        return [c for c in children if self.node_kind(c) == kind_filter]

    def _property(self, node: Any, key: str) -> Any:
        if _is_legacy(node):
            if key in _STRUCTURAL_KEYS:
                return node.get(key)
            kind = node["name"]
            key = _LEGACY_ALIASES.get((kind, key)) or _LEGACY_ALIASES.get((None, key)) or key
            value: Any = node.get("attributes")
        elif _is_compact(node):
            value = node
        else:
            return None
        for part in key.split("."):
            if not isinstance(value, dict):
                return None
            value = value.get(part)
        return value

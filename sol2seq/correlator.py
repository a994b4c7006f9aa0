import logging
import re
from collections import deque
from dataclasses import dataclass
from typing import Iterator, List, Optional, Set, Tuple, Union

from .accessor import Node, NodeAccessor
from .extractor import ASSIGNMENT_OPERATORS, is_identifier, join_tokens, matching_close, split_top_level
from .model import BodyEffect, ContractModel, ContractUnit, EmitEvent, ExternalCall, FunctionUnit, StateVariable, StorageWrite

logger = logging.getLogger(__name__)

# Statements whose children are other statements (or a loop/branch condition).
_CONTAINER_STATEMENTS = {
    "Block",
    "UncheckedBlock",
    "IfStatement",
    "ForStatement",
    "WhileStatement",
    "DoWhileStatement",
    "TryStatement",
    "TryCatchClause",
}

_OPAQUE_SKIPPED = {"InlineAssembly", "ParameterList", "PlaceholderStatement", "Break", "Continue"}

_CONTROL_KEYWORDS = ("if", "while", "for", "catch")

_ELEMENTARY_RE = re.compile(
    r"(address|bool|string|bytes\d*|byte|u?int\d*|u?fixed(\d+x\d+)?|function|var)\Z"
)
_USER_TYPE_RE = re.compile(r"[A-Za-z_$][\w$]*(\.[A-Za-z_$][\w$]*)*\Z")


@dataclass(frozen=True)
class CallMessage:
    source: str
    target: str
    function: str
    arguments: Tuple[str, ...] = ()
    # Target is a type that is not declared in the input.
    opaque: bool = False


@dataclass(frozen=True)
class EmitMessage:
    source: str
    event: str
    arguments: Tuple[str, ...] = ()


@dataclass(frozen=True)
class StorageNote:
    contract: str
    description: str


Message = Union[CallMessage, EmitMessage, StorageNote]


# ---------------------------------------------------------------------------
# AST bodies
# ---------------------------------------------------------------------------


def classify_ast_body(accessor: NodeAccessor, body: Optional[Node], state_names: Set[str]) -> List[BodyEffect]:
    """Classify the statements of an AST function body, in source order."""
    effects: List[BodyEffect] = []
    if body is None:
        return effects
    for statement in _flatten_statements(accessor, body):
        effects.extend(_statement_effects(accessor, statement, state_names))
    return effects


def _flatten_statements(accessor: NodeAccessor, body: Node) -> Iterator[Node]:
    stack = [body]
    while stack:
        node = stack.pop()
        kind = accessor.node_kind(node)
        if kind in _CONTAINER_STATEMENTS:
            stack.extend(reversed(accessor.children_of(node)))
        elif kind not in _OPAQUE_SKIPPED:
            yield node


def _statement_effects(accessor: NodeAccessor, statement: Node, state_names: Set[str]) -> List[BodyEffect]:
    effects: List[BodyEffect] = []
    for call in accessor.find_all(statement, lambda n: accessor.node_kind(n) == "FunctionCall"):
        external = _external_call(accessor, call, state_names)
        if external is not None:
            effects.append(external)

    kind = accessor.node_kind(statement)
    if kind == "EmitStatement":
        event_call = accessor.child(statement, "eventCall")
        callee = accessor.child(event_call, "expression")
        name = accessor.string_property(callee, "memberName") or accessor.string_property(callee, "name")
        if name:
            arguments = tuple(describe(accessor, a) for a in accessor.children_at(event_call, "arguments"))
            effects.append(EmitEvent(event=name, arguments=arguments))
    elif kind == "ExpressionStatement":
        expression = accessor.child(statement, "expression")
        if accessor.node_kind(expression) == "Assignment":
            target = _root_identifier(accessor, accessor.child(expression, "leftHandSide"))
            if target in state_names:
                effects.append(StorageWrite(target=target, description=describe(accessor, expression)))
    return effects


def _external_call(accessor: NodeAccessor, call: Node, state_names: Set[str]) -> Optional[ExternalCall]:
    callee = accessor.child(call, "expression")
    if accessor.node_kind(callee) == "FunctionCallOptions":
        # token.transfer{value: v}(...)
        callee = accessor.child(callee, "expression")
    if accessor.node_kind(callee) != "MemberAccess":
        return None
    base = accessor.child(callee, "expression")
    if accessor.node_kind(base) != "Identifier":
        return None
    target = accessor.string_property(base, "name")
    if target not in state_names:
        return None
    arguments = tuple(describe(accessor, a) for a in accessor.children_at(call, "arguments"))
    return ExternalCall(target=target, function=accessor.string_property(callee, "memberName"), arguments=arguments)


def _root_identifier(accessor: NodeAccessor, node: Optional[Node]) -> str:
    while node is not None:
        kind = accessor.node_kind(node)
        if kind == "Identifier":
            return accessor.string_property(node, "name")
        if kind == "IndexAccess":
            node = accessor.child(node, "baseExpression")
        elif kind == "MemberAccess":
            node = accessor.child(node, "expression")
        else:
            return ""
    return ""


def describe(accessor: NodeAccessor, node: Optional[Node]) -> str:
    """Symbolic, source-like text for an expression node."""
    if node is None:
        return ""
    kind = accessor.node_kind(node)
    prop = accessor.string_property
    if kind == "Identifier":
        return prop(node, "name")
    if kind == "Literal":
        value = prop(node, "value") or prop(node, "hexValue")
        if prop(node, "kind") == "string" or prop(node, "token") == "string":
            return f'"{value}"'
        return value
    if kind == "MemberAccess":
        return f"{describe(accessor, accessor.child(node, 'expression'))}.{prop(node, 'memberName')}"
    if kind == "IndexAccess":
        base = describe(accessor, accessor.child(node, "baseExpression"))
        return f"{base}[{describe(accessor, accessor.child(node, 'indexExpression'))}]"
    if kind == "FunctionCall":
        callee = describe(accessor, accessor.child(node, "expression"))
        arguments = ", ".join(describe(accessor, a) for a in accessor.children_at(node, "arguments"))
        return f"{callee}({arguments})"
    if kind == "FunctionCallOptions":
        return describe(accessor, accessor.child(node, "expression"))
    if kind == "Assignment":
        left = describe(accessor, accessor.child(node, "leftHandSide"))
        right = describe(accessor, accessor.child(node, "rightHandSide"))
        return f"{left} {prop(node, 'operator')} {right}"
    if kind == "BinaryOperation":
        left = describe(accessor, accessor.child(node, "leftExpression"))
        right = describe(accessor, accessor.child(node, "rightExpression"))
        return f"{left} {prop(node, 'operator')} {right}"
    if kind == "UnaryOperation":
        operand = describe(accessor, accessor.child(node, "subExpression"))
        operator = prop(node, "operator")
        if operator == "delete":
            return f"delete {operand}"
        return f"{operator}{operand}" if accessor.bool_property(node, "prefix") else f"{operand}{operator}"
    if kind == "TupleExpression":
        return "(" + ", ".join(describe(accessor, c) for c in accessor.children_at(node, "components")) + ")"
    if kind == "Conditional":
        condition = describe(accessor, accessor.child(node, "condition"))
        when_true = describe(accessor, accessor.child(node, "trueExpression"))
        when_false = describe(accessor, accessor.child(node, "falseExpression"))
        return f"{condition} ? {when_true} : {when_false}"
    if kind == "ElementaryTypeNameExpression":
        return prop(node, "typeName.name") or prop(node, "typeName") or prop(node, "value")
    if kind == "NewExpression":
        type_node = accessor.child(node, "typeName")
        return f"new {prop(type_node, 'name') or prop(type_node, 'pathNode.name')}".rstrip()
    return prop(node, "name") or "..."


# ---------------------------------------------------------------------------
# Source fragments
# ---------------------------------------------------------------------------


def classify_fragments(fragments: List[List[str]], state_names: Set[str]) -> List[BodyEffect]:
    """Classify statement fragments from the lexical extractor, in source order."""
    effects: List[BodyEffect] = []
    for fragment in fragments or []:
        tokens = _strip_control_header(fragment)
        effects.extend(_fragment_calls(fragment, state_names))
        if not tokens:
            continue
        if tokens[0] == "emit":
            emit = _fragment_emit(tokens)
            if emit is not None:
                effects.append(emit)
            continue
        write = _fragment_write(tokens, state_names)
        if write is not None:
            effects.append(write)
    return effects


def _strip_control_header(fragment: List[str]) -> List[str]:
    tokens = list(fragment)
    while tokens:
        if tokens[0] in ("else", "unchecked", "do", "try"):
            tokens = tokens[1:]
        elif tokens[0] in _CONTROL_KEYWORDS and len(tokens) > 1 and tokens[1] == "(":
            tokens = tokens[matching_close(tokens, 1) + 1:]
        else:
            break
    return tokens


def _fragment_calls(tokens: List[str], state_names: Set[str]) -> List[ExternalCall]:
    calls: List[ExternalCall] = []
    for index in range(len(tokens) - 3):
        target = tokens[index]
        if target not in state_names or (index > 0 and tokens[index - 1] == "."):
            continue
        if tokens[index + 1] != "." or not is_identifier(tokens[index + 2]) or tokens[index + 3] != "(":
            continue
        close = matching_close(tokens, index + 3)
        arguments = tuple(join_tokens(part) for part in split_top_level(tokens[index + 4:close]))
        calls.append(ExternalCall(target=target, function=tokens[index + 2], arguments=arguments))
    return calls


def _fragment_emit(tokens: List[str]) -> Optional[EmitEvent]:
    if "(" not in tokens:
        return None
    open_index = tokens.index("(")
    name_tokens = tokens[1:open_index]
    if not name_tokens or not is_identifier(name_tokens[-1]):
        return None
    close = matching_close(tokens, open_index)
    arguments = tuple(join_tokens(part) for part in split_top_level(tokens[open_index + 1:close]))
    return EmitEvent(event=name_tokens[-1], arguments=arguments)


def _fragment_write(tokens: List[str], state_names: Set[str]) -> Optional[StorageWrite]:
    depth = 0
    for index, tok in enumerate(tokens):
        if tok in ("(", "["):
            depth += 1
        elif tok in (")", "]"):
            depth = max(0, depth - 1)
        elif depth == 0 and tok in ASSIGNMENT_OPERATORS:
            target = _fragment_target(tokens[:index])
            if target in state_names:
                return StorageWrite(target=target, description=join_tokens(tokens))
            return None
    return None


def _fragment_target(lhs: List[str]) -> str:
    # `name`, `name[key]...`, `name.field...`; anything else is not a storage target.
    if not lhs or not is_identifier(lhs[0]):
        return ""
    index = 1
    while index < len(lhs):
        if lhs[index] == "[":
            index = matching_close(lhs, index) + 1
        elif lhs[index] == "." and index + 1 < len(lhs) and is_identifier(lhs[index + 1]):
            index += 2
        else:
            return ""
    return lhs[0]


# ---------------------------------------------------------------------------
# Diagram messages
# ---------------------------------------------------------------------------


def find_state_variable(model: ContractModel, contract: ContractUnit, name: str) -> Optional[StateVariable]:
    """Look up `name` on `contract`, then on its bases breadth-first."""
    queue = deque([contract])
    seen: Set[str] = set()
    while queue:
        current = queue.popleft()
        if current.name in seen:
            continue
        seen.add(current.name)
        var = current.state_variable(name)
        if var is not None:
            return var
        for base in current.bases:
            parent = model.contract(base)
            if parent is not None:
                queue.append(parent)
    return None


def is_user_defined_type(type_name: str) -> bool:
    return bool(_USER_TYPE_RE.match(type_name)) and not _ELEMENTARY_RE.match(type_name)


def declaring_contract(model: ContractModel, type_name: str) -> Optional[ContractUnit]:
    """The declared contract or library that owns a qualified type like `Lib.Struct`."""
    owner, dot, _ = type_name.partition(".")
    if not dot:
        return None
    return model.contract(owner)


def messages_for(model: ContractModel, contract: ContractUnit, function: FunctionUnit) -> List[Message]:
    """Diagram messages produced by one function's body effects, in order."""
    messages: List[Message] = []
    for effect in function.effects:
        if isinstance(effect, ExternalCall):
            var = find_state_variable(model, contract, effect.target)
            if var is None:
                continue
            if var.resolved_contract is not None:
                messages.append(CallMessage(contract.name, var.resolved_contract, effect.function, effect.arguments))
                continue
            owner = declaring_contract(model, var.type_name)
            if owner is not None:
                # Member calls on a library's struct go through `using ... for`.
                if owner.kind == "library":
                    messages.append(CallMessage(contract.name, owner.name, effect.function, effect.arguments))
                else:
                    logger.debug(f"Skipping call {effect.target}.{effect.function}: {var.type_name} is a struct of {owner.name}")
            elif is_user_defined_type(var.type_name):
                messages.append(CallMessage(contract.name, var.type_name, effect.function, effect.arguments, opaque=True))
            else:
                logger.debug(f"Skipping call {effect.target}.{effect.function}: {var.type_name} is not a contract type")
        elif isinstance(effect, EmitEvent):
            messages.append(EmitMessage(contract.name, effect.event, effect.arguments))
        elif isinstance(effect, StorageWrite):
            messages.append(StorageNote(contract.name, effect.description))
    return messages

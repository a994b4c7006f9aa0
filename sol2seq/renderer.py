"""
Mermaid sequence diagram rendering.

`render` is a pure function of the model and the theme: the same inputs
always produce byte-identical text.
"""

import re
from typing import Dict, Iterable, List, Set, Tuple

from .correlator import CallMessage, EmitMessage, Message, StorageNote, messages_for
from .model import ContractModel, ContractUnit, FunctionUnit, function_labels
from .theme import DEFAULT_THEME, Theme

TITLE = "Smart Contract Interaction Sequence Diagram"

USER_INTERACTIONS = "User Interactions"
CONTRACT_INTERACTIONS = "Contract-to-Contract Interactions"
EVENT_DEFINITIONS = "Event Definitions"
CONTRACT_RELATIONSHIPS = "Contract Relationships"
LEGEND = "Diagram Legend"

# Section backgrounds do not depend on the theme.
_SECTION_COLORS = {
    USER_INTERACTIONS: "rgb(245, 245, 245)",
    CONTRACT_INTERACTIONS: "rgb(240, 248, 255)",
    EVENT_DEFINITIONS: "rgb(255, 245, 245)",
    CONTRACT_RELATIONSHIPS: "rgb(245, 255, 245)",
    LEGEND: "rgb(240, 240, 255)",
}

_LEGEND_LINES = (
    "Note left of User: User→Contract: Public/External function calls",
    "Note left of User: User←Contract: Function returns",
    "Note left of User: Contract→Contract: Internal interactions",
    "Note left of User: Contract→Events: Emitted events",
    "Note left of User: Colored sections indicate different interaction types",
)

# Checked in order, first substring match wins.
_FUNCTION_PURPOSES = (
    ("constructor", "Contract initialization"),
    ("transfer", "Transfer tokens or ETH"),
    ("approve", "Approve token spending"),
    ("mint", "Create new tokens"),
    ("burn", "Destroy tokens"),
    ("deposit", "Deposit funds"),
    ("withdraw", "Withdraw funds"),
    ("claim", "Claim rewards or tokens"),
    ("unstake", "Unstake tokens"),
    ("stake", "Stake tokens"),
    ("vote", "Cast vote"),
    ("execute", "Execute operation"),
    ("deploy", "Deploy new contract instance"),
    ("predictaddress", "Calculate deterministic address"),
    ("airdroptoaddresses", "Send ETH to multiple addresses"),
    ("airdroptokeyids", "Send ETH to wallets identified by public keys"),
    ("airdrop", "Distribute tokens to addresses"),
)

_IMPORTANT_VARIABLES = ("owner", "admin", "token", "deployer", "implementation", "registry", "factory")

_ENTITIES = {"#": "#35;", ";": "#59;"}
_ENTITY_RE = re.compile(r"[#;]")

USER = "User"
EVENTS = "Events"


def function_purpose(name: str) -> str:
    lowered = name.lower()
    for key, purpose in _FUNCTION_PURPOSES:
        if key in lowered:
            return purpose
    return ""


def is_important_variable(name: str) -> bool:
    lowered = name.lower()
    return any(hint in lowered for hint in _IMPORTANT_VARIABLES)


def escape(text: str) -> str:
    """Make free text safe inside a Mermaid message or note."""
    text = _ENTITY_RE.sub(lambda m: _ENTITIES[m.group(0)], text)
    return " ".join(text.split())


def participant_id(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9_]", "_", name)


def assign_participant_ids(names: Iterable[str]) -> Dict[str, str]:
    """
    Map each participant name to a unique Mermaid ID, in the order given.

    `User` and `Events` are reserved for the synthetic participants. A name
    whose ID is already taken gets the first free `_<n>` suffix.
    """
    taken = {USER, EVENTS}
    ids: Dict[str, str] = {}
    for name in names:
        if name in ids:
            continue
        base = participant_id(name)
        candidate = base
        suffix = 0
        while candidate in taken:
            suffix += 1
            candidate = f"{base}_{suffix}"
        taken.add(candidate)
        ids[name] = candidate
    return ids


Flow = Tuple[ContractUnit, FunctionUnit, str, List[Message]]


def render(model: ContractModel, theme: Theme = DEFAULT_THEME) -> str:
    flows: List[Flow] = []
    for contract in model:
        labels = function_labels(contract.functions)
        for function, label in zip(contract.functions, labels):
            flows.append((contract, function, label, messages_for(model, contract, function)))

    opaque = _opaque_targets(model, flows)
    ids = assign_participant_ids([contract.name for contract in model] + opaque)

    lines: List[str] = []
    _add_header(lines, theme)
    _add_participants(lines, model, opaque, ids)
    lines.append("")
    _add_user_interactions(lines, model, ids)
    _add_contract_interactions(lines, flows, ids)
    _add_event_definitions(lines, model, ids)
    _add_relationships(lines, model, flows, ids)
    _add_legend(lines)
    return "\n".join(lines) + "\n"


def _add_header(lines: List[str], theme: Theme) -> None:
    variables = theme.variables()
    lines.append("%%{init: {")
    lines.append("  'theme': 'base',")
    lines.append("  'themeVariables': {")
    for index, (key, value) in enumerate(variables):
        comma = "," if index < len(variables) - 1 else ""
        lines.append(f"    '{key}': '{value}'{comma}")
    lines.append("  },")
    lines.append("  'sequence': { 'showSequenceNumbers': true }")
    lines.append("}}%%")
    lines.append("sequenceDiagram")
    lines.append(f"title {TITLE}")
    lines.append("autonumber")
    lines.append("")


def _opaque_targets(model: ContractModel, flows: List[Flow]) -> List[str]:
    """Calls on types that are not declared in the input, first-use order."""
    declared = {contract.name for contract in model}
    opaque: List[str] = []
    for _, _, _, messages in flows:
        for message in messages:
            if isinstance(message, CallMessage) and message.opaque:
                if message.target not in declared and message.target not in opaque:
                    opaque.append(message.target)
    return opaque


def _add_participants(lines: List[str], model: ContractModel, opaque: List[str], ids: Dict[str, str]) -> None:
    lines.append(f'participant {USER} as "External User"')
    for contract in model:
        lines.append(f'participant {ids[contract.name]} as "{_participant_title(contract)}"')
    for name in opaque:
        if ids[name] == name:
            lines.append(f"participant {name}")
        else:
            lines.append(f'participant {ids[name]} as "{escape(name)}"')
    lines.append(f'participant {EVENTS} as "Blockchain Events"')


def _participant_title(contract: ContractUnit) -> str:
    parts = [contract.name]
    if contract.kind != "contract":
        parts[0] = f"{contract.name} ({contract.kind})"
    elif contract.abstract:
        parts[0] = f"{contract.name} (abstract)"

    key_vars = [v for v in contract.state_variables if is_important_variable(v.name)][:2]
    if key_vars:
        parts.append("(" + ", ".join(f"{v.name}: {v.type_name}" for v in key_vars) + ")")
    if contract.origin:
        parts.append(f"from {contract.origin}")
    return escape("<br/>".join(parts)).replace('"', "'")


def _add_section_title(lines: List[str], title: str) -> None:
    lines.append(f"rect {_SECTION_COLORS[title]}")
    lines.append(f"Note over {USER}: {title}")
    lines.append("end")
    lines.append("")


def _add_user_interactions(lines: List[str], model: ContractModel, ids: Dict[str, str]) -> None:
    _add_section_title(lines, USER_INTERACTIONS)
    for contract in model:
        cid = ids[contract.name]
        for function in contract.functions:
            if not function.is_entry_point:
                continue
            purpose = function_purpose(function.name)
            if purpose:
                lines.append(f"Note over {USER},{cid}: {purpose}")
            params = ", ".join(p.describe() for p in function.parameters)
            lines.append(escape(f"{USER}->>+{cid}: {function.name}({params})"))
            lines.append(escape(f"{cid}-->>-{USER}: {_return_text(function)}"))


def _return_text(function: FunctionUnit) -> str:
    if function.returns:
        return "return " + ", ".join(p.describe() for p in function.returns)
    if function.mutability in ("view", "pure"):
        return "return (view function)"
    return "return"


def _add_contract_interactions(lines: List[str], flows: List[Flow], ids: Dict[str, str]) -> None:
    lines.append("")
    _add_section_title(lines, CONTRACT_INTERACTIONS)
    for contract, _, label, messages in flows:
        if not messages:
            continue
        cid = ids[contract.name]
        lines.append(escape(f"Note right of {cid}: Processing {label}"))
        for message in messages:
            lines.extend(escape(line) for line in _message_lines(message, ids))
        lines.append("")


def _message_lines(message: Message, ids: Dict[str, str]) -> List[str]:
    if isinstance(message, CallMessage):
        source = ids[message.source]
        target = ids[message.target]
        arguments = ", ".join(message.arguments)
        return [
            f"{source}->>+{target}: {message.function}({arguments})",
            f"{target}-->>-{source}: return",
        ]
    if isinstance(message, EmitMessage):
        arguments = ", ".join(message.arguments)
        return [f"{ids[message.source]}->>{EVENTS}: emit {message.event}({arguments})"]
    if isinstance(message, StorageNote):
        return [f"Note right of {ids[message.contract]}: Storage update: {message.description}"]
    return []


def _add_event_definitions(lines: List[str], model: ContractModel, ids: Dict[str, str]) -> None:
    lines.append("")
    _add_section_title(lines, EVENT_DEFINITIONS)
    for contract in model:
        cid = ids[contract.name]
        for event in contract.events:
            lines.append(escape(f"Note over {cid}: Event: {event.describe()}"))


def _add_relationships(lines: List[str], model: ContractModel, flows: List[Flow], ids: Dict[str, str]) -> None:
    lines.append("")
    _add_section_title(lines, CONTRACT_RELATIONSHIPS)
    for contract in model:
        labels = ", ".join(function_labels(contract.functions)) or "none"
        lines.append(escape(f"Note over {ids[contract.name]}: Functions: {labels}"))

    details: List[str] = []
    for contract in model:
        cid = ids[contract.name]
        if contract.bases:
            details.append(f"Note right of {cid}: Inherits from: {', '.join(contract.bases)}")
        if contract.kind != "contract":
            details.append(f"Note right of {cid}: Type: {contract.kind}")
        elif contract.abstract:
            details.append(f"Note right of {cid}: Type: abstract contract")
        for var in contract.state_variables:
            if var.resolved_contract is not None:
                details.append(f"Note right of {cid}: Holds {var.resolved_contract} via {var.name}")
        mappings = [v.name for v in contract.state_variables if v.is_mapping]
        if mappings:
            details.append(f"Note right of {cid}: Mappings: {', '.join(mappings)}")

    seen: Set[Tuple[str, str]] = set()
    for _, _, _, messages in flows:
        for message in messages:
            if isinstance(message, CallMessage):
                key = (message.source, message.target)
                if key not in seen:
                    seen.add(key)
                    details.append(f"Note right of {ids[message.source]}: Interacts with {message.target}")

    if details:
        lines.append("")
        lines.extend(escape(line) for line in details)


def _add_legend(lines: List[str]) -> None:
    lines.append("")
    _add_section_title(lines, LEGEND)
    lines.extend(_LEGEND_LINES)

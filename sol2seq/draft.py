from dataclasses import dataclass, field
from typing import Any, List, Set, Tuple

from .model import EventUnit, Parameter, StateVariable


@dataclass
class FunctionDraft:
    name: str
    kind: str = "function"
    visibility: str = "public"
    mutability: str = "none"
    parameters: List[Parameter] = field(default_factory=list)
    returns: List[Parameter] = field(default_factory=list)
    # AST body node, or a list of token fragments from the lexical extractor.
    body: Any = None

    @property
    def signature(self) -> Tuple[str, Tuple[str, ...]]:
        return (self.name, tuple(p.type_name for p in self.parameters))


@dataclass
class ContractDraft:
    name: str
    kind: str = "contract"
    origin: str = ""
    abstract: bool = False
    bases: List[str] = field(default_factory=list)
    state_variables: List[StateVariable] = field(default_factory=list)
    functions: List[FunctionDraft] = field(default_factory=list)
    events: List[EventUnit] = field(default_factory=list)

    def add_base(self, base: str) -> None:
        if base and base != self.name and base not in self.bases:
            self.bases.append(base)

    def add_state_variable(self, var: StateVariable) -> bool:
        if any(v.name == var.name for v in self.state_variables):
            return False
        self.state_variables.append(var)
        return True

    def add_event(self, event: EventUnit) -> bool:
        if any(e.signature == event.signature for e in self.events):
            return False
        self.events.append(event)
        return True

    def add_function(self, function: FunctionDraft) -> bool:
        if any(f.signature == function.signature for f in self.functions):
            return False
        self.functions.append(function)
        return True

    def absorb(self, other: "ContractDraft") -> None:
        """
        Append the members of a re-opened declaration. Identity (kind, origin)
        stays with the first declaration and existing members are never replaced.
        """
        for base in other.bases:
            self.add_base(base)
        for var in other.state_variables:
            self.add_state_variable(var)
        for function in other.functions:
            self.add_function(function)
        for event in other.events:
            self.add_event(event)

    def state_names(self) -> Set[str]:
        return {v.name for v in self.state_variables}

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional, Tuple, Union


@dataclass(frozen=True)
class Parameter:
    name: str
    type_name: str
    indexed: bool = False

    def describe(self) -> str:
        if self.name:
            return f"{self.name}: {self.type_name}"
        return self.type_name


@dataclass(frozen=True)
class StateVariable:
    name: str
    type_name: str
    visibility: str = "internal"
    is_mapping: bool = False
    # Name of the ContractUnit the type refers to, filled in by the builder.
    resolved_contract: Optional[str] = None


@dataclass(frozen=True)
class StorageWrite:
    target: str
    description: str


@dataclass(frozen=True)
class ExternalCall:
    target: str
    function: str
    arguments: Tuple[str, ...] = ()


@dataclass(frozen=True)
class EmitEvent:
    event: str
    arguments: Tuple[str, ...] = ()


BodyEffect = Union[StorageWrite, ExternalCall, EmitEvent]


@dataclass(frozen=True)
class FunctionUnit:
    name: str
    kind: str = "function"
    visibility: str = "public"
    mutability: str = "none"
    parameters: Tuple[Parameter, ...] = ()
    returns: Tuple[Parameter, ...] = ()
    effects: Tuple[BodyEffect, ...] = ()
    # Effective label; differs from `name` only for overloads.
    label: str = ""

    @property
    def is_entry_point(self) -> bool:
        return self.visibility in ("public", "external")

    @property
    def signature(self) -> Tuple[str, Tuple[str, ...]]:
        return (self.name, tuple(p.type_name for p in self.parameters))


@dataclass(frozen=True)
class EventUnit:
    name: str
    parameters: Tuple[Parameter, ...] = ()

    @property
    def signature(self) -> Tuple[str, Tuple[str, ...]]:
        return (self.name, tuple(p.type_name for p in self.parameters))

    def describe(self) -> str:
        parts = []
        for p in self.parameters:
            words = [p.type_name]
            if p.indexed:
                words.append("indexed")
            if p.name:
                words.append(p.name)
            parts.append(" ".join(words))
        return f"{self.name}({', '.join(parts)})"


@dataclass(frozen=True)
class ContractUnit:
    name: str
    kind: str = "contract"
    bases: Tuple[str, ...] = ()
    origin: str = ""
    state_variables: Tuple[StateVariable, ...] = ()
    functions: Tuple[FunctionUnit, ...] = ()
    events: Tuple[EventUnit, ...] = ()
    abstract: bool = False

    def state_variable(self, name: str) -> Optional[StateVariable]:
        for var in self.state_variables:
            if var.name == name:
                return var
        return None


@dataclass(frozen=True)
class ContractModel:
    contracts: Tuple[ContractUnit, ...] = ()
    _by_name: Dict[str, ContractUnit] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_by_name", {c.name: c for c in self.contracts})

    def __iter__(self) -> Iterator[ContractUnit]:
        return iter(self.contracts)

    def __len__(self) -> int:
        return len(self.contracts)

    @property
    def is_empty(self) -> bool:
        return not self.contracts

    def contract(self, name: str) -> Optional[ContractUnit]:
        return self._by_name.get(name)

    def event_count(self) -> int:
        return sum(len(c.events) for c in self.contracts)


def function_labels(functions: Tuple[FunctionUnit, ...]) -> Tuple[str, ...]:
    """Labels for a contract's functions: `name`, or `name/<arity>` when overloaded."""
    counts = Counter(f.name for f in functions)
    return tuple(
        f"{f.name}/{len(f.parameters)}" if counts[f.name] > 1 else f.name for f in functions
    )

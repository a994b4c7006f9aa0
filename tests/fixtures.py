"""
Test Fixtures

Small builders for solc compact-JSON AST nodes, one hand-written legacy AST
document, and Solidity samples for the lexical extractor. Builders omit
`src`, so child order is the order the keys are written in.
"""

from typing import Any, Dict, List

Node = Dict[str, Any]


# =============================================================================
# COMPACT AST BUILDERS
# =============================================================================

def ident(name: str) -> Node:
    return {"nodeType": "Identifier", "name": name}


def literal(value: str, kind: str = "number") -> Node:
    return {"nodeType": "Literal", "kind": kind, "value": value}


def member(expression: Node, name: str) -> Node:
    return {"nodeType": "MemberAccess", "expression": expression, "memberName": name}


def index(base: Node, key: Node) -> Node:
    return {"nodeType": "IndexAccess", "baseExpression": base, "indexExpression": key}


def call(callee: Node, *arguments: Node) -> Node:
    return {"nodeType": "FunctionCall", "expression": callee, "arguments": list(arguments)}


def assign(lhs: Node, rhs: Node, operator: str = "=") -> Node:
    return {
        "nodeType": "ExpressionStatement",
        "expression": {
            "nodeType": "Assignment",
            "operator": operator,
            "leftHandSide": lhs,
            "rightHandSide": rhs,
        },
    }


def expression_statement(expression: Node) -> Node:
    return {"nodeType": "ExpressionStatement", "expression": expression}


def emit(event: str, *arguments: Node) -> Node:
    return {"nodeType": "EmitStatement", "eventCall": call(ident(event), *arguments)}


def block(*statements: Node) -> Node:
    return {"nodeType": "Block", "statements": list(statements)}


def elementary(name: str) -> Node:
    return {"nodeType": "ElementaryTypeName", "name": name}


def user_type(name: str) -> Node:
    return {"nodeType": "UserDefinedTypeName", "pathNode": {"nodeType": "IdentifierPath", "name": name}}


def mapping(key: Node, value: Node) -> Node:
    return {"nodeType": "Mapping", "keyType": key, "valueType": value}


def variable(name: str, type_node: Node, visibility: str = "internal", indexed: bool = False) -> Node:
    return {
        "nodeType": "VariableDeclaration",
        "name": name,
        "visibility": visibility,
        "indexed": indexed,
        "typeName": type_node,
    }


def parameters(*items: Node) -> Node:
    return {"nodeType": "ParameterList", "parameters": list(items)}


def function(
    name: str,
    params: List[Node] = (),
    returns: List[Node] = (),
    statements: List[Node] = (),
    visibility: str = "public",
    mutability: str = "nonpayable",
    kind: str = "function",
) -> Node:
    return {
        "nodeType": "FunctionDefinition",
        "name": name,
        "kind": kind,
        "visibility": visibility,
        "stateMutability": mutability,
        "parameters": parameters(*params),
        "returnParameters": parameters(*returns),
        "body": block(*statements),
    }


def event(name: str, *params: Node) -> Node:
    return {"nodeType": "EventDefinition", "name": name, "parameters": parameters(*params)}


def contract(name: str, *members: Node, kind: str = "contract", bases: List[str] = (), abstract: bool = False) -> Node:
    return {
        "nodeType": "ContractDefinition",
        "name": name,
        "contractKind": kind,
        "abstract": abstract,
        "baseContracts": [
            {"nodeType": "InheritanceSpecifier", "baseName": {"nodeType": "IdentifierPath", "name": base}}
            for base in bases
        ],
        "nodes": list(members),
    }


def source_unit(path: str, *contracts: Node) -> Node:
    return {"nodeType": "SourceUnit", "absolutePath": path, "nodes": list(contracts)}


def combined(*units: Node) -> Dict[str, Any]:
    """`solc --combined-json ast` shaped document."""
    return {"sources": {unit["absolutePath"]: {"AST": unit} for unit in units}}


# =============================================================================
# SAMPLE DOCUMENTS
# =============================================================================

def create_store_ast() -> Dict[str, Any]:
    """One contract: constructor writes `owner`, setValue emits ValueChanged."""
    store = contract(
        "Store",
        variable("owner", elementary("address"), visibility="public"),
        variable("value", elementary("uint256"), visibility="public"),
        event("ValueChanged", variable("newValue", elementary("uint256"), indexed=True)),
        function(
            "",
            kind="constructor",
            statements=[assign(ident("owner"), member(ident("msg"), "sender"))],
        ),
        function(
            "setValue",
            params=[variable("newValue", elementary("uint256"))],
            statements=[emit("ValueChanged", ident("newValue"))],
            visibility="external",
        ),
    )
    return combined(source_unit("contracts/Store.sol", store))


def create_vault_ast() -> Dict[str, Any]:
    """Token and Vault; Vault holds a Token and calls it twice from sweep."""
    token = contract(
        "Token",
        variable("balances", mapping(elementary("address"), elementary("uint256")), visibility="public"),
        event(
            "Transfer",
            variable("from", elementary("address"), indexed=True),
            variable("to", elementary("address"), indexed=True),
            variable("amount", elementary("uint256")),
        ),
        function(
            "transfer",
            params=[variable("to", elementary("address")), variable("amount", elementary("uint256"))],
            returns=[variable("", elementary("bool"))],
            statements=[
                assign(index(ident("balances"), member(ident("msg"), "sender")), ident("amount"), "-="),
                assign(index(ident("balances"), ident("to")), ident("amount"), "+="),
                emit("Transfer", member(ident("msg"), "sender"), ident("to"), ident("amount")),
            ],
            visibility="external",
        ),
    )
    vault = contract(
        "Vault",
        variable("token", user_type("Token"), visibility="public"),
        variable("totalDeposits", elementary("uint256"), visibility="public"),
        function(
            "deposit",
            params=[variable("amount", elementary("uint256"))],
            statements=[
                expression_statement(
                    call(member(ident("token"), "transfer"), member(ident("msg"), "sender"), ident("amount"))
                ),
                assign(ident("totalDeposits"), ident("amount"), "+="),
            ],
            visibility="external",
        ),
        function(
            "sweep",
            params=[variable("to", elementary("address"))],
            statements=[
                expression_statement(call(member(ident("token"), "transfer"), ident("to"), literal("1"))),
                expression_statement(call(member(ident("token"), "transfer"), ident("to"), literal("2"))),
            ],
            visibility="external",
        ),
    )
    return combined(source_unit("contracts/Token.sol", token), source_unit("contracts/Vault.sol", vault))


def _legacy(name: str, attributes: Dict[str, Any] = None, children: List[Node] = ()) -> Node:
    node: Node = {"name": name, "attributes": attributes or {}}
    if children:
        node["children"] = list(children)
    return node


def create_store_legacy_ast() -> Dict[str, Any]:
    """The Store contract of `create_store_ast` in the legacy AST dialect."""
    address_type = _legacy("ElementaryTypeName", {"name": "address"})
    uint_type = _legacy("ElementaryTypeName", {"name": "uint256"})
    owner = _legacy("VariableDeclaration", {"name": "owner", "visibility": "public", "type": "address"}, [address_type])
    value = _legacy("VariableDeclaration", {"name": "value", "visibility": "public", "type": "uint256"}, [uint_type])
    changed = _legacy(
        "EventDefinition",
        {"name": "ValueChanged"},
        [
            _legacy(
                "ParameterList",
                {},
                [_legacy("VariableDeclaration", {"name": "newValue", "indexed": True, "type": "uint256"}, [uint_type])],
            )
        ],
    )
    constructor = _legacy(
        "FunctionDefinition",
        {"name": "", "isConstructor": True, "visibility": "public", "stateMutability": "nonpayable"},
        [
            _legacy("ParameterList"),
            _legacy("ParameterList"),
            _legacy(
                "Block",
                {},
                [
                    _legacy(
                        "ExpressionStatement",
                        {},
                        [
                            _legacy(
                                "Assignment",
                                {"operator": "="},
                                [
                                    _legacy("Identifier", {"value": "owner"}),
                                    _legacy(
                                        "MemberAccess",
                                        {"member_name": "sender"},
                                        [_legacy("Identifier", {"value": "msg"})],
                                    ),
                                ],
                            )
                        ],
                    )
                ],
            ),
        ],
    )
    set_value = _legacy(
        "FunctionDefinition",
        {"name": "setValue", "isConstructor": False, "visibility": "external", "stateMutability": "nonpayable"},
        [
            _legacy(
                "ParameterList",
                {},
                [_legacy("VariableDeclaration", {"name": "newValue", "type": "uint256"}, [uint_type])],
            ),
            _legacy("ParameterList"),
            _legacy(
                "Block",
                {},
                [
                    _legacy(
                        "EmitStatement",
                        {},
                        [
                            _legacy(
                                "FunctionCall",
                                {},
                                [
                                    _legacy("Identifier", {"value": "ValueChanged"}),
                                    _legacy("Identifier", {"value": "newValue"}),
                                ],
                            )
                        ],
                    )
                ],
            ),
        ],
    )
    store = _legacy(
        "ContractDefinition",
        {"name": "Store", "contractKind": "contract"},
        [owner, value, changed, constructor, set_value],
    )
    unit = _legacy("SourceUnit", {"absolutePath": "contracts/Store.sol"}, [store])
    return {"sources": {"contracts/Store.sol": {"legacyAST": unit}}}


# =============================================================================
# SOLIDITY SAMPLES
# =============================================================================

STORE_SOURCE = """
// SPDX-License-Identifier: MIT
pragma solidity ^0.8.0;

contract Store {
    address public owner;
    uint256 public value;

    event ValueChanged(uint256 indexed newValue);

    constructor() {
        owner = msg.sender;
    }

    function setValue(uint256 newValue) external {
        emit ValueChanged(newValue);
    }
}
"""

VAULT_SOURCE = """
pragma solidity ^0.8.0;

interface IToken {
    function transfer(address to, uint256 amount) external returns (bool);
    function balanceOf(address account) external view returns (uint256);
}

contract Token is IToken {
    mapping(address => uint256) public balances;

    event Transfer(address indexed from, address indexed to, uint256 amount);

    function transfer(address to, uint256 amount) external override returns (bool) {
        balances[msg.sender] -= amount;
        balances[to] += amount;
        emit Transfer(msg.sender, to, amount);
        return true;
    }

    function balanceOf(address account) external view override returns (uint256) {
        return balances[account];
    }
}

contract Vault {
    Token public token;
    uint256 public totalDeposits;

    event Deposited(address indexed user, uint256 amount);

    constructor(Token _token) {
        token = _token;
    }

    function deposit(uint256 amount) external {
        token.transfer(address(this), amount);
        totalDeposits += amount;
        emit Deposited(msg.sender, amount);
    }

    function sweep(address to) external {
        token.transfer(to, 1);
        token.transfer(to, 2);
    }
}
"""

ODD_SOURCE = """
contract Odd {
    uint256 public count;

    function bump() public {
        assembly { let x := 1 }
        count = count + 1;
        ~~~ weird @@ stuff;
    }
}
"""

EMPTY_SOURCE = """
// nothing but a pragma
pragma solidity ^0.8.0;
"""

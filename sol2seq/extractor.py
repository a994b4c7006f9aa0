"""
Lightweight Solidity source scanner.

This is not a parser: it walks a flat token stream with a brace/paren depth
counter and a handful of keyword anchors. Anything it does not recognize is
dropped, so malformed input yields fewer results instead of an error.
"""

import logging
import re
from typing import Iterable, Iterator, List, Optional, Tuple

from .draft import ContractDraft, FunctionDraft
from .model import EventUnit, Parameter, StateVariable

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(
    r"""
      (?P<comment>//[^\n]*|/\*.*?\*/)
    | (?P<string>"(?:\\.|[^"\\\n])*"|'(?:\\.|[^'\\\n])*')
    | (?P<word>[A-Za-z_$][A-Za-z0-9_$]*)
    | (?P<number>0[xX][0-9a-fA-F_]+|\d[\d_]*(?:\.\d+)?(?:[eE]-?\d+)?)
    | (?P<op>>>>=|<<=|>>=|\*\*=|\*\*|\+\+|--|=>|==|!=|<=|>=|&&|\|\||\+=|-=|\*=|/=|%=|\|=|&=|\^=
           |<<|>>>|>>|[{}()\[\];,.=+\-*/%<>!&|^~?:])
    """,
    re.S | re.X,
)

_IDENTIFIER_RE = re.compile(r"[A-Za-z_$][A-Za-z0-9_$]*\Z")

CONTRACT_KEYWORDS = ("contract", "interface", "library")
FUNCTION_KEYWORDS = ("function", "constructor", "fallback", "receive")
SKIPPED_MEMBERS = ("modifier", "struct", "enum", "using", "error", "type", "pragma", "import")
VISIBILITIES = ("public", "external", "internal", "private")
MUTABILITIES = ("view", "pure", "payable")
VARIABLE_ATTRIBUTES = ("public", "private", "internal", "constant", "immutable", "override", "transient")
DATA_LOCATIONS = ("memory", "storage", "calldata")

ASSIGNMENT_OPERATORS = ("=", "+=", "-=", "*=", "/=", "%=", "|=", "&=", "^=", "<<=", ">>=", ">>>=", "**=")

_OPERATORS = {
    "=", "+=", "-=", "*=", "/=", "%=", "|=", "&=", "^=", "<<=", ">>=", ">>>=", "**=",
    "+", "-", "*", "/", "%", "**", "<", ">", "<=", ">=", "==", "!=", "&&", "||",
    "&", "|", "^", "<<", ">>", ">>>", "?", ":", "=>", "!", "~",
}


def tokenize(text: str) -> List[str]:
    """Split source text into tokens, dropping comments and unknown characters."""
    tokens: List[str] = []
    for match in _TOKEN_RE.finditer(text):
        if match.lastgroup == "comment":
            continue
        tokens.append(match.group())
    return tokens


def is_identifier(token: str) -> bool:
    return bool(_IDENTIFIER_RE.match(token))


def join_tokens(tokens: Iterable[str]) -> str:
    """Render tokens back into compact, readable source text."""
    out: List[str] = []
    prev = ""
    prev2 = ""
    for tok in tokens:
        if out and _needs_space(prev2, prev, tok):
            out.append(" ")
        out.append(tok)
        prev2, prev = prev, tok
    return "".join(out)


def _needs_space(prev2: str, prev: str, tok: str) -> bool:
    if tok in (".", ",", ")", "]", ";") or prev in (".", "(", "[", "!", "~"):
        return False
    if tok in ("(", "[") and (is_identifier(prev) or prev in (")", "]")):
        return False
    if tok in ("++", "--") and (is_identifier(prev) or prev in (")", "]")):
        return False
    if prev in ("++", "--") and is_identifier(tok) and (prev2 == "" or prev2 in _OPERATORS or prev2 in ("(", ",")):
        return False
    # Unary minus/plus: `x = -1`, `f(-a)`.
    if prev in ("-", "+") and (prev2 == "" or prev2 in _OPERATORS or prev2 in ("(", "[", ",", "return")):
        return False
    return True


def matching_close(tokens: List[str], start: int) -> int:
    """Index of the bracket closing `tokens[start]`, or len(tokens) when unbalanced."""
    opener = tokens[start]
    closer = {"(": ")", "{": "}", "[": "]"}[opener]
    depth = 0
    for index in range(start, len(tokens)):
        tok = tokens[index]
        if tok == opener:
            depth += 1
        elif tok == closer:
            depth -= 1
            if depth == 0:
                return index
    return len(tokens)


def split_top_level(tokens: List[str], separator: str = ",") -> List[List[str]]:
    parts: List[List[str]] = []
    current: List[str] = []
    depth = 0
    for tok in tokens:
        if tok in ("(", "[", "{"):
            depth += 1
        elif tok in (")", "]", "}"):
            depth = max(0, depth - 1)
        if tok == separator and depth == 0:
            parts.append(current)
            current = []
            continue
        current.append(tok)
    if current:
        parts.append(current)
    return parts


class SourceExtractor:
    """Scan Solidity-like text for contract, interface and library declarations."""

    def extract(self, buffers: Iterable[Tuple[str, str]]) -> List[ContractDraft]:
        drafts: List[ContractDraft] = []
        for source_id, text in buffers:
            found = list(self._scan_top_level(tokenize(text or ""), source_id))
            logger.debug(f"Scanned {source_id}: {len(found)} declaration(s)")
            drafts.extend(found)
        return drafts

    def _scan_top_level(self, tokens: List[str], source_id: str) -> Iterator[ContractDraft]:
        index = 0
        while index < len(tokens):
            tok = tokens[index]
            if tok in CONTRACT_KEYWORDS and (index == 0 or tokens[index - 1] != "."):
                draft, index = self._read_contract(tokens, index, source_id)
                if draft is not None:
                    yield draft
                continue
            if tok == "{":
                # File-level functions, structs and similar blocks.
                index = matching_close(tokens, index) + 1
                continue
            index += 1

    def _read_contract(self, tokens: List[str], start: int, source_id: str) -> Tuple[Optional[ContractDraft], int]:
        kind = tokens[start]
        index = start + 1
        if index >= len(tokens) or not is_identifier(tokens[index]):
            return None, start + 1
        name = tokens[index]
        index += 1

        bases: List[str] = []
        if index < len(tokens) and tokens[index] == "is":
            index += 1
            header: List[str] = []
            while index < len(tokens) and tokens[index] not in ("{", ";"):
                header.append(tokens[index])
                index += 1
            for part in split_top_level(header):
                base = self._base_name(part)
                if base:
                    bases.append(base)

        while index < len(tokens) and tokens[index] not in ("{", ";"):
            index += 1
        if index >= len(tokens) or tokens[index] == ";":
            logger.debug(f"Skipping {kind} {name}: no body")
            return None, index + 1

        close = matching_close(tokens, index)
        draft = ContractDraft(
            name=name,
            kind=kind,
            origin=source_id,
            abstract=start > 0 and tokens[start - 1] == "abstract",
        )
        for base in bases:
            draft.add_base(base)
        logger.debug(f"Found {kind}: {name} in {source_id}")

        for member in self._split_members(tokens[index + 1:close]):
            self._read_member(draft, member)
        return draft, close + 1

    @staticmethod
    def _base_name(part: List[str]) -> str:
        # `Base(arg)` or `lib.Base`; constructor arguments are dropped.
        words: List[str] = []
        for tok in part:
            if tok == "(":
                break
            words.append(tok)
        name = "".join(words)
        return name if name and all(is_identifier(w) or w == "." for w in words) else ""

    @staticmethod
    def _split_members(body: List[str]) -> Iterator[List[str]]:
        member: List[str] = []
        depth = 0
        for tok in body:
            member.append(tok)
            if tok == "{":
                depth += 1
            elif tok == "}":
                depth = max(0, depth - 1)
                if depth == 0:
                    yield member
                    member = []
            elif tok == ";" and depth == 0:
                yield member
                member = []
        if member:
            yield member

    def _read_member(self, draft: ContractDraft, member: List[str]) -> None:
        head = member[0]
        if head in FUNCTION_KEYWORDS:
            function = self._read_function(member, draft.name)
            if function is None:
                if head == "function" and member[-1] == ";":
                    # Function-typed state variable: `function(uint) external hook;`
                    self._read_state_variable(draft, member, type_override="function")
                return
            if not draft.add_function(function):
                logger.debug(f"Duplicate function {function.name} in {draft.name}")
            return
        if head == "event":
            event = self._read_event(member)
            if event is not None:
                draft.add_event(event)
            return
        if head in SKIPPED_MEMBERS:
            return
        if member[-1] == ";":
            self._read_state_variable(draft, member)
            return
        logger.debug(f"Ignoring unrecognized member in {draft.name}: {join_tokens(member[:6])}")

    def _read_function(self, member: List[str], contract_name: str) -> Optional[FunctionDraft]:
        head = member[0]
        index = 1
        name = head
        if head == "function":
            name = ""
            if index < len(member) and is_identifier(member[index]):
                name = member[index]
                index += 1
        if index >= len(member) or member[index] != "(":
            return None
        if head == "function" and not name and member[-1] == ";":
            return None

        kind = "function"
        if head == "constructor" or (head == "function" and name == contract_name):
            kind = "constructor"
            name = "constructor"
        elif not name:
            name = "fallback"

        close = matching_close(member, index)
        parameters = self._parse_parameters(member[index + 1:close])
        index = close + 1

        visibility = ""
        mutability = "none"
        returns: List[Parameter] = []
        while index < len(member) and member[index] not in ("{", ";"):
            tok = member[index]
            if tok in VISIBILITIES:
                visibility = tok
            elif tok in MUTABILITIES:
                mutability = tok
            elif tok == "constant":
                mutability = "view"
            elif tok == "returns" and index + 1 < len(member) and member[index + 1] == "(":
                close = matching_close(member, index + 1)
                returns = self._parse_parameters(member[index + 2:close])
                index = close + 1
                continue
            elif tok == "(":
                # Modifier arguments, override(A, B).
                index = matching_close(member, index) + 1
                continue
            index += 1

        if not visibility:
            visibility = "external" if head in ("fallback", "receive") else "public"

        fragments: List[List[str]] = []
        if index < len(member) and member[index] == "{":
            close = matching_close(member, index)
            fragments = self._split_statements(member[index + 1:close])

        logger.debug(f"Found function: {name} ({visibility}) in {contract_name}")
        return FunctionDraft(
            name=name,
            kind=kind,
            visibility=visibility,
            mutability=mutability,
            parameters=parameters,
            returns=returns,
            body=fragments,
        )

    def _read_event(self, member: List[str]) -> Optional[EventUnit]:
        if len(member) < 3 or not is_identifier(member[1]) or member[2] != "(":
            return None
        close = matching_close(member, 2)
        return EventUnit(name=member[1], parameters=tuple(self._parse_parameters(member[3:close])))

    def _read_state_variable(self, draft: ContractDraft, member: List[str], type_override: str = "") -> None:
        tokens = member[:-1]
        for position, tok in enumerate(tokens):
            if tok == "=":
                tokens = tokens[:position]
                break
        if len(tokens) < 2 or not is_identifier(tokens[-1]):
            logger.debug(f"Ignoring fragment in {draft.name}: {join_tokens(member)}")
            return

        name = tokens[-1]
        visibility = "internal"
        type_tokens: List[str] = []
        in_attributes = False
        for tok in tokens[:-1]:
            if tok in VISIBILITIES:
                visibility = tok
            if tok in VARIABLE_ATTRIBUTES:
                in_attributes = True
            if not in_attributes:
                type_tokens.append(tok)
        if not type_tokens:
            return

        type_name = type_override or join_tokens(type_tokens)
        if visibility == "external":
            visibility = "internal"
        var = StateVariable(
            name=name,
            type_name=type_name,
            visibility=visibility,
            is_mapping=type_tokens[0] == "mapping",
        )
        if draft.add_state_variable(var):
            logger.debug(f"Found state variable: {type_name} {name} in {draft.name}")

    @staticmethod
    def _parse_parameters(tokens: List[str]) -> List[Parameter]:
        parameters: List[Parameter] = []
        for part in split_top_level(tokens):
            indexed = "indexed" in part
            words = [t for t in part if t != "indexed" and t not in DATA_LOCATIONS]
            if not words:
                continue
            name = ""
            if len(words) > 1 and is_identifier(words[-1]) and words[-2] != "." and words[-1] != "payable":
                name = words[-1]
                words = words[:-1]
            parameters.append(Parameter(name=name, type_name=join_tokens(words), indexed=indexed))
        return parameters

    @staticmethod
    def _split_statements(body: List[str]) -> List[List[str]]:
        """Cut a function body into statement-like fragments; nested blocks flatten in order."""
        fragments: List[List[str]] = []
        current: List[str] = []
        parens = 0
        for tok in body:
            if tok in ("(", "["):
                parens += 1
            elif tok in (")", "]"):
                parens = max(0, parens - 1)
            if parens == 0 and tok in (";", "{", "}"):
                if current:
                    fragments.append(current)
                    current = []
                continue
            current.append(tok)
        if current:
            fragments.append(current)
        return fragments

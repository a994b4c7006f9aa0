class Sol2SeqError(Exception):
    """Base class for every failure surfaced by sol2seq."""


class MalformedDocumentError(Sol2SeqError):
    """The supplied AST document is not a tree the accessor understands."""


class CompilationError(Sol2SeqError):
    """The Solidity toolchain could not produce an AST for the given target."""

"""
sol2seq test suite.

Shared AST builders and Solidity samples live in `fixtures.py`.
"""

"""
Formula Tree - Expression Nodes of Parsed Formulas

The parser produces these nodes; FormulaCompiler lowers them into process
nodes. ``kind`` names the node type and selects the lowering method.
"""

from dataclasses import dataclass, field
from typing import List, Union


@dataclass(frozen=True)
class Number:
    """Numeric literal; int for integer literals, float otherwise."""
    value: Union[int, float]
    kind = "number"


@dataclass(frozen=True)
class Identifier:
    """Name of a parameter, a node reference (``#id``) or callback element (``$label``)."""
    name: str
    kind = "identifier"


@dataclass(frozen=True)
class Binary:
    """Binary operation; ``op`` is one of ``+ - * / ^``."""
    op: str
    left: "FormulaTree"
    right: "FormulaTree"
    kind = "binary"


@dataclass(frozen=True)
class Unary:
    """Unary sign; ``op`` is ``-`` or ``+``."""
    op: str
    expr: "FormulaTree"
    kind = "unary"


@dataclass(frozen=True)
class FunctionCall:
    """Call of a process by name, e.g. ``sqrt(x)``."""
    name: str
    args: List["FormulaTree"] = field(default_factory=list)
    kind = "function_call"


@dataclass(frozen=True)
class Expression:
    """Parenthesized expression, or the whole formula."""
    inner: "FormulaTree"
    kind = "expression"


FormulaTree = Union[Number, Identifier, Binary, Unary, FunctionCall, Expression]

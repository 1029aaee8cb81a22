"""
Formulas - Mathematical Expressions as Process Graphs

Tokenizer, parser and compiler that turn formulas like
``2.5 * ($B08 - $B04)`` into process nodes of a GraphBuilder.
"""

from .compiler import OPERATOR_MAPPING, Formula, FormulaCompiler, compile_formula
from .lexer import FormulaLexer, FormulaToken, TokenType
from .parser import FormulaParser, parse_formula
from .tree import Binary, Expression, FormulaTree, FunctionCall, Identifier, Number, Unary

__all__ = [
    "Formula",
    "FormulaCompiler",
    "OPERATOR_MAPPING",
    "compile_formula",
    "FormulaLexer",
    "FormulaToken",
    "TokenType",
    "FormulaParser",
    "parse_formula",
    "FormulaTree",
    "Number",
    "Identifier",
    "Binary",
    "Unary",
    "FunctionCall",
    "Expression",
]

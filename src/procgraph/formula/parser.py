"""
Formula Parser - Lark-based parser for mathematical formulas.

This module parses formula text into a FormulaTree (see tree.py). Tokens come
from FormulaLexer, the precedence rules live in formula.lark.
"""

from pathlib import Path
from typing import Dict, List, Optional

from lark import Lark, Token, Tree
from lark.exceptions import UnexpectedInput, UnexpectedToken

from ..exceptions import FormulaSyntaxError
from .lexer import OPERATOR_TERMINALS, SUPERSCRIPT_DIGITS, FormulaLarkLexer
from .tree import Binary, Expression, FormulaTree, FunctionCall, Identifier, Number, Unary


# Readable names of the grammar terminals for error messages
TERMINAL_DISPLAY: Dict[str, str] = {
    **{terminal: operator for operator, terminal in OPERATOR_TERMINALS.items()},
    "NUMBER": "number",
    "IDENTIFIER": "identifier",
    "SUPERSCRIPT": "superscript digit",
}

# Terminals that only start an operand; + and - also follow complete expressions
OPERAND_TERMINALS = ("NUMBER", "IDENTIFIER", "_LPAR")


# ============================================================
# PARSER
# ============================================================

class FormulaParser:
    """
    Parser for formulas.

    Usage:
        parser = FormulaParser()
        tree = parser.parse("2 * ($B08 - $B04)")

    Raises FormulaSyntaxError for malformed formulas.
    """

    _instance: Optional["FormulaParser"] = None
    _parser: Optional[Lark] = None

    def __new__(cls) -> "FormulaParser":
        """Singleton pattern for parser reuse."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        """Initialize the parser with the grammar file."""
        if FormulaParser._parser is not None:
            return

        grammar_path = Path(__file__).parent / "formula.lark"

        if not grammar_path.exists():
            raise FileNotFoundError(
                f"Grammar file not found: {grammar_path}\n"
                "Ensure formula.lark is in the same directory as parser.py"
            )

        with open(grammar_path, "r", encoding="utf-8") as f:
            grammar = f.read()

        FormulaParser._parser = Lark(
            grammar,
            start="start",
            parser="lalr",
            lexer=FormulaLarkLexer,
            maybe_placeholders=False,
        )

    @property
    def parser(self) -> Lark:
        """Get the Lark parser instance."""
        if FormulaParser._parser is None:
            raise RuntimeError("Parser not initialized")
        return FormulaParser._parser

    @classmethod
    def reset(cls) -> None:
        """Reset the parser cache to force grammar reload on next use."""
        cls._parser = None
        cls._instance = None

    def parse(self, source: str) -> Expression:
        """
        Parse a formula.

        Args:
            source: Formula text

        Returns:
            Expression wrapping the tree of the whole formula

        Raises:
            FormulaSyntaxError: If the formula is malformed
        """
        try:
            tree = self.parser.parse(source)
        except UnexpectedToken as e:
            raise self._handle_unexpected_token(e, source) from e
        except UnexpectedInput as e:
            raise FormulaSyntaxError(
                f"Invalid formula: {e}",
                position=getattr(e, "pos_in_stream", None),
                context=source,
            ) from e

        return Expression(FormulaTreeBuilder().transform(tree))

    # ============================================================
    # ERROR HANDLERS
    # ============================================================

    def _handle_unexpected_token(self, e: UnexpectedToken, source: str) -> FormulaSyntaxError:
        """Handle unexpected token errors with helpful messages."""
        expected = sorted(e.expected) if e.expected else []
        suggestion = None
        if expected:
            names = [TERMINAL_DISPLAY.get(name, name) for name in expected]
            suggestion = f"Expected one of: {', '.join(names)}"

        token = e.token
        if token.type == "$END":
            if any(name in OPERAND_TERMINALS for name in expected):
                message = "Unexpected termination of expression"
            elif "_RPAR" in expected:
                message = "Expecting )"
            else:
                message = "Unexpected end of formula"
            return FormulaSyntaxError(message, position=len(source), context=source, suggestion=suggestion)

        return FormulaSyntaxError(
            f"Unexpected token {token.value}",
            position=token.start_pos,
            context=source,
            suggestion=suggestion,
        )


# ============================================================
# TREE BUILDER
# ============================================================

class FormulaTreeBuilder:
    """Transforms the Lark parse tree into FormulaTree nodes."""

    def transform(self, node) -> FormulaTree:
        if isinstance(node, Token):
            raise FormulaSyntaxError(f"Unexpected token {node.value}")
        method = getattr(self, f"_transform_{node.data}", None)
        if method is None:
            raise FormulaSyntaxError(f"Unsupported formula element: {node.data}")
        return method(node)

    def _binary(self, op: str, node: Tree) -> Binary:
        left, right = node.children
        return Binary(op, self.transform(left), self.transform(right))

    def _transform_add(self, node: Tree) -> Binary:
        return self._binary("+", node)

    def _transform_subtract(self, node: Tree) -> Binary:
        return self._binary("-", node)

    def _transform_multiply(self, node: Tree) -> Binary:
        return self._binary("*", node)

    def _transform_divide(self, node: Tree) -> Binary:
        return self._binary("/", node)

    def _transform_pow(self, node: Tree) -> Binary:
        return self._binary("^", node)

    def _transform_superscript(self, node: Tree) -> Binary:
        base, exponent = node.children
        return Binary("^", self.transform(base), Number(SUPERSCRIPT_DIGITS[exponent.value]))

    def _transform_negative(self, node: Tree) -> Unary:
        return Unary("-", self.transform(node.children[0]))

    def _transform_positive(self, node: Tree) -> Unary:
        return Unary("+", self.transform(node.children[0]))

    def _transform_number(self, node: Tree) -> Number:
        value = node.children[0].value
        if value.isdigit():
            return Number(int(value))
        return Number(float(value))

    def _transform_identifier(self, node: Tree) -> Identifier:
        return Identifier(node.children[0].value)

    def _transform_function_call(self, node: Tree) -> FunctionCall:
        name = node.children[0].value
        args: List[FormulaTree] = []
        for child in node.children[1:]:
            if isinstance(child, Tree) and child.data == "arguments":
                args.extend(self.transform(arg) for arg in child.children)
        return FunctionCall(name, args)

    def _transform_expression(self, node: Tree) -> Expression:
        return Expression(self.transform(node.children[0]))


def parse_formula(source: str) -> Expression:
    """
    Convenience function to parse a formula.

    Args:
        source: Formula text

    Returns:
        Expression wrapping the tree of the whole formula
    """
    parser = FormulaParser()
    return parser.parse(source)

"""
Formula Lexer - Tokenizer for Mathematical Formulas

Splits formula text into Number, Operator and Identifier tokens. The lexer
can be driven by hand (``reset``/``peek``/``next``) and is also plugged into
the Lark parser as custom lexer (see FormulaLarkLexer), so that both share
the exact same tokenization rules.

Tokens:
- Number: digits with optional fraction and exponent, e.g. ``1``, ``.5``, ``2.5e-3``
- Operator: ``+ - * / ( ) ^ ,`` and the superscript digits ``⁰¹²³⁴⁵⁶⁷⁸⁹``
- Identifier: starts with a letter, ``_``, ``#`` or a run of ``$``,
  continues with letters, digits and ``_``
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional

from lark.lexer import Lexer, Token

from ..exceptions import FormulaSyntaxError


class TokenType(str, Enum):
    """Kinds of formula tokens."""
    NUMBER = "Number"
    OPERATOR = "Operator"
    IDENTIFIER = "Identifier"


@dataclass(frozen=True)
class FormulaToken:
    """A token with its 0-based start and end (inclusive) offsets in the formula."""
    type: TokenType
    value: str
    start: int
    end: int


SUPERSCRIPT_DIGITS = {
    "⁰": 0, "¹": 1, "²": 2, "³": 3, "⁴": 4,
    "⁵": 5, "⁶": 6, "⁷": 7, "⁸": 8, "⁹": 9,
}

OPERATORS = "+-*/()^," + "".join(SUPERSCRIPT_DIGITS)

WHITESPACE = ("\t", " ", "\u00a0")


def _is_letter(ch: str) -> bool:
    return ("a" <= ch <= "z") or ("A" <= ch <= "Z")


def _is_digit(ch: str) -> bool:
    return "0" <= ch <= "9"


def _is_identifier_start(ch: str) -> bool:
    return ch in ("_", "#", "$") or _is_letter(ch)


def _is_identifier_part(ch: str) -> bool:
    return ch == "_" or _is_letter(ch) or _is_digit(ch)


# ============================================================
# LEXER
# ============================================================

class FormulaLexer:
    """
    Hand-written tokenizer for formulas.

    Usage:
        lexer = FormulaLexer("2 * $B08")
        for token in lexer.tokenize():
            print(token.type, token.value)

    Raises FormulaSyntaxError for malformed numbers and unknown characters.
    """

    def __init__(self, text: str = ""):
        self.reset(text)

    def reset(self, text: str) -> None:
        """Start tokenizing a new formula."""
        self._text = text
        self._length = len(text)
        self._index = 0
        self._marker = 0

    @property
    def text(self) -> str:
        return self._text

    @property
    def position(self) -> int:
        """Offset of the next unread character."""
        return self._index

    # --------------------------------------------------------
    # Character access
    # --------------------------------------------------------

    def _peek_char(self) -> str:
        if self._index < self._length:
            return self._text[self._index]
        return ""

    def _next_char(self) -> str:
        ch = self._peek_char()
        if ch:
            self._index += 1
        return ch

    def _skip_spaces(self) -> None:
        while self._index < self._length and self._peek_char() in WHITESPACE:
            self._index += 1

    def _error(self, message: str, position: Optional[int]) -> FormulaSyntaxError:
        return FormulaSyntaxError(message, position=position, context=self._text)

    def _create_token(self, token_type: TokenType, value: str) -> FormulaToken:
        return FormulaToken(token_type, value, self._marker, self._index - 1)

    # --------------------------------------------------------
    # Scanners
    # --------------------------------------------------------

    def _scan_digits(self) -> str:
        digits = ""
        while _is_digit(self._peek_char()):
            digits += self._next_char()
        return digits

    def _scan_number(self) -> Optional[FormulaToken]:
        ch = self._peek_char()
        if not _is_digit(ch) and ch != ".":
            return None

        number = self._scan_digits()

        if self._peek_char() == ".":
            number += self._next_char()
            number += self._scan_digits()

        if number == ".":
            raise self._error("Expecting decimal digits after the dot sign", self._marker)

        if self._peek_char() in ("e", "E"):
            number += self._next_char()
            ch = self._peek_char()
            if ch in ("+", "-"):
                number += self._next_char()
                ch = self._peek_char()
            if not _is_digit(ch):
                if ch:
                    raise self._error(f"Unexpected character {ch} after the exponent sign", self._index)
                raise self._error("Unexpected <end> after the exponent sign", None)
            number += self._scan_digits()

        return self._create_token(TokenType.NUMBER, number)

    def _scan_operator(self) -> Optional[FormulaToken]:
        ch = self._peek_char()
        if ch and ch in OPERATORS:
            operator = self._next_char()
            return self._create_token(TokenType.OPERATOR, operator)
        return None

    def _scan_identifier(self) -> Optional[FormulaToken]:
        ch = self._peek_char()
        if not ch or not _is_identifier_start(ch):
            return None

        identifier = self._next_char()
        if identifier == "$":
            # $ selects a callback parameter, $$ the second one and so on
            while self._peek_char() == "$":
                identifier += self._next_char()
        while _is_identifier_part(self._peek_char()):
            identifier += self._next_char()

        return self._create_token(TokenType.IDENTIFIER, identifier)

    # --------------------------------------------------------
    # Public API
    # --------------------------------------------------------

    def next(self) -> Optional[FormulaToken]:
        """
        Consume the next token.

        Returns:
            The token, or None at the end of the formula

        Raises:
            FormulaSyntaxError: If no token can be read at the current position
        """
        self._skip_spaces()
        if self._index >= self._length:
            return None

        self._marker = self._index

        token = self._scan_number()
        if token is None:
            token = self._scan_operator()
        if token is None:
            token = self._scan_identifier()
        if token is None:
            raise self._error(f"Unknown token from character {self._peek_char()}", self._index)
        return token

    def peek(self) -> Optional[FormulaToken]:
        """Look at the next token without consuming it."""
        index, marker = self._index, self._marker
        try:
            return self.next()
        finally:
            self._index, self._marker = index, marker

    def tokenize(self) -> List[FormulaToken]:
        """Consume all remaining tokens."""
        tokens = []
        while True:
            token = self.next()
            if token is None:
                return tokens
            tokens.append(token)

    def __iter__(self) -> Iterator[FormulaToken]:
        return iter(self.tokenize())


# ============================================================
# LARK ADAPTER
# ============================================================

# Terminal names of the grammar for the operator tokens
OPERATOR_TERMINALS = {
    "+": "_PLUS",
    "-": "_MINUS",
    "*": "_STAR",
    "/": "_SLASH",
    "^": "_CARET",
    "(": "_LPAR",
    ")": "_RPAR",
    ",": "_COMMA",
}


def terminal_name(token: FormulaToken) -> str:
    """Grammar terminal for a formula token."""
    if token.type is TokenType.NUMBER:
        return "NUMBER"
    if token.type is TokenType.IDENTIFIER:
        return "IDENTIFIER"
    if token.value in SUPERSCRIPT_DIGITS:
        return "SUPERSCRIPT"
    return OPERATOR_TERMINALS[token.value]


class FormulaLarkLexer(Lexer):
    """Custom Lark lexer feeding FormulaLexer tokens into the LALR parser."""

    def __init__(self, lexer_conf):
        pass

    def lex(self, data: str) -> Iterator[Token]:
        lexer = FormulaLexer(data)
        while True:
            token = lexer.next()
            if token is None:
                return
            yield Token(
                terminal_name(token),
                token.value,
                start_pos=token.start,
                line=1,
                column=token.start + 1,
                end_line=1,
                end_column=token.end + 2,
                end_pos=token.end + 1,
            )

"""
procgraph Exception Hierarchy

Contains all exception and warning classes raised while building process
graphs and compiling formulas.
"""

from typing import Optional


class BuilderError(Exception):
    """
    Base exception for all process graph construction errors.

    ::: This is-in-layer Utility-Layer.
    ::: This is a exception.
    ::: This is stateless.
    """
    pass


class InvalidCatalogError(BuilderError):
    """
    Raised when process specifications are missing or malformed.

    ::: This is-in-layer Utility-Layer.
    ::: This is a exception.
    ::: This is stateless.
    """
    pass


class ProcessNotFoundError(BuilderError):
    """
    Raised when a process id (and namespace) can't be resolved in the catalog.

    ::: This is-in-layer Utility-Layer.
    ::: This is a exception.
    ::: This is stateless.
    """

    def __init__(self, process_id: str, namespace: Optional[str] = None):
        self.process_id = process_id
        self.namespace = namespace
        qualified = process_id if namespace is None else f"{process_id}@{namespace}"
        super().__init__(f"Process doesn't exist: {qualified}")


class ArgumentCountError(BuilderError):
    """
    Base exception for argument count mismatches.

    ::: This is-in-layer Utility-Layer.
    ::: This is a exception.
    ::: This is stateless.
    """
    pass


class TooManyArgumentsError(ArgumentCountError):
    """
    Raised when more positional arguments are given than a process declares.

    ::: This is-in-layer Utility-Layer.
    ::: This is a exception.
    ::: This is stateless.
    """
    pass


class OperatorArityError(ArgumentCountError):
    """
    Raised when the process behind a formula operator has fewer than two parameters.

    ::: This is-in-layer Utility-Layer.
    ::: This is a exception.
    ::: This is stateless.
    """
    pass


class InvalidCallbackResultError(BuilderError):
    """
    Raised when a callback function doesn't return a process node.

    ::: This is-in-layer Utility-Layer.
    ::: This is a exception.
    ::: This is stateless.
    """
    pass


class ForeignNodeError(BuilderError):
    """
    Raised when a node is used as argument in a process graph it doesn't belong to.

    ::: This is-in-layer Utility-Layer.
    ::: This is a exception.
    ::: This is stateless.
    """

    def __init__(self, node_id: str, process_id: str):
        self.node_id = node_id
        self.process_id = process_id
        super().__init__(
            f"Node '{node_id}' used as argument of process '{process_id}' belongs to "
            f"another process graph; use callback parameters to pass data into callbacks"
        )


class FormulaError(BuilderError):
    """
    Base exception for formula parsing and lowering errors.

    ::: This is-in-layer Utility-Layer.
    ::: This is a exception.
    ::: This is stateless.
    """
    pass


class InvalidFormulaError(FormulaError):
    """
    Raised when a parsed formula can't be lowered into process nodes.

    ::: This is-in-layer Utility-Layer.
    ::: This is a exception.
    ::: This is stateless.
    """
    pass


class FormulaSyntaxError(FormulaError):
    """
    Raised by the lexer and parser for malformed formula text.

    ::: This is-in-layer Utility-Layer.
    ::: This is a exception.
    ::: This is stateless.

    Carries the 0-based ``position`` of the offending character (or None at
    the end of input) and the formula text as ``context``.
    """

    def __init__(
        self,
        message: str,
        position: Optional[int] = None,
        context: Optional[str] = None,
        suggestion: Optional[str] = None,
    ):
        self.message = message
        self.position = position
        self.context = context
        self.suggestion = suggestion
        super().__init__(str(self))

    @property
    def column(self) -> Optional[int]:
        """1-based column of the error, if known."""
        return None if self.position is None else self.position + 1

    def __str__(self) -> str:
        msg = self.message
        if self.column is not None:
            msg = f"{msg} (column {self.column})"
        if self.context:
            msg += f"\n  Context: {self.context}"
            if self.position is not None:
                msg += "\n           " + " " * self.position + "^"
        if self.suggestion:
            msg += f"\n  Suggestion: {self.suggestion}"
        return msg


class ReadOnlyAccessError(BuilderError):
    """
    Raised on writes to array element accessors when strict access is configured.

    ::: This is-in-layer Utility-Layer.
    ::: This is a exception.
    ::: This is stateless.
    """
    pass


class ReadOnlyAccessWarning(UserWarning):
    """
    Emitted on writes to array element accessors; the write is discarded.

    ::: This is-in-layer Utility-Layer.
    ::: This is a warning.
    ::: This is stateless.
    """
    pass


__all__ = [
    "BuilderError",
    "InvalidCatalogError",
    "ProcessNotFoundError",
    "ArgumentCountError",
    "TooManyArgumentsError",
    "OperatorArityError",
    "InvalidCallbackResultError",
    "ForeignNodeError",
    "FormulaError",
    "InvalidFormulaError",
    "FormulaSyntaxError",
    "ReadOnlyAccessError",
    "ReadOnlyAccessWarning",
]

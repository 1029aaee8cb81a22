"""
procgraph - Process Graph Builder and Formula Compiler

Build process graphs (directed acyclic graphs of process calls) from a
catalog of process specifications, serializable to the openEO process JSON
format. Processes are called as builder methods; callbacks of higher-order
processes are given as Python functions or as mathematical formulas.
"""

__version__ = "0.1.0"

from .builder import (
    ArrayAccessProxy,
    GraphBuilder,
    ParameterRef,
    ProcessNode,
    ProcessRegistry,
    load_processes,
    register_callback_parameters,
)
from .config import BuilderConfig
from .exceptions import (
    BuilderError,
    InvalidCatalogError,
    ProcessNotFoundError,
    ArgumentCountError,
    TooManyArgumentsError,
    OperatorArityError,
    InvalidCallbackResultError,
    ForeignNodeError,
    FormulaError,
    InvalidFormulaError,
    FormulaSyntaxError,
    ReadOnlyAccessError,
    ReadOnlyAccessWarning,
)
from .formula import Formula, FormulaLexer, FormulaParser, parse_formula
from .logging_config import configure_logging

__all__ = [
    "GraphBuilder",
    "ProcessNode",
    "ParameterRef",
    "ArrayAccessProxy",
    "ProcessRegistry",
    "load_processes",
    "register_callback_parameters",
    "BuilderConfig",
    "Formula",
    "FormulaLexer",
    "FormulaParser",
    "parse_formula",
    "configure_logging",
    # Exceptions
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

"""
Formula Compiler - Lower Formulas into Process Graphs

This module converts a mathematical formula into process nodes of a
GraphBuilder:

    formula = Formula("2.5 * (($B08 - $B04) / (1 + $B08 + 6 * $B04 + -7.5 * $B02))")
    builder.reduce_dimension(datacube, formula, "bands")

Operators: ``-`` (subtract), ``+`` (add), ``/`` (divide), ``*`` (multiply),
``^`` and superscript digits (power). Any process of the catalog can be
called as function, e.g. ``sqrt(x)`` or ``max(a, b)``.

Identifiers:
- ``true``, ``false`` and ``null`` are literals
- ``#loadco1`` refers to the result of the existing node ``loadco1``
- ``$B08`` or ``$0`` access the first callback parameter by label or index,
  ``$$offset`` the second one, and so on
- everything else is a parameter of the process
"""

import logging
from typing import Any, Dict, Optional

from ..builder.node import ProcessNode
from ..builder.parameter import ParameterRef
from ..exceptions import InvalidFormulaError, OperatorArityError, ProcessNotFoundError
from .parser import parse_formula
from .tree import Binary, Expression, FormulaTree, FunctionCall, Identifier, Number, Unary

logger = logging.getLogger(__name__)


# All operator processes need at least two parameters, the first two take the operands
OPERATOR_MAPPING: Dict[str, str] = {
    "-": "subtract",
    "+": "add",
    "/": "divide",
    "*": "multiply",
    "^": "power",
}

LITERALS: Dict[str, Any] = {
    "true": True,
    "false": False,
    "null": None,
}


# ============================================================
# FORMULA COMPILER
# ============================================================

class FormulaCompiler:
    """
    Lowers a FormulaTree into process nodes of a builder.

    Each tree node kind has a ``_compile_<kind>`` method; they return
    process nodes, parameters or plain values which are used as arguments
    of the enclosing operator or function.
    """

    def __init__(self, builder: Any):
        self.builder = builder

    def compile(self, tree: FormulaTree) -> Any:
        method = getattr(self, f"_compile_{tree.kind}", None)
        if method is None:
            raise InvalidFormulaError(f"Operation {type(tree).__name__} not supported.")
        return method(tree)

    # --------------------------------------------------------
    # Operands
    # --------------------------------------------------------

    def _compile_number(self, tree: Number) -> Any:
        return tree.value

    def _compile_expression(self, tree: Expression) -> Any:
        return self.compile(tree.inner)

    def _compile_identifier(self, tree: Identifier) -> Any:
        return self.resolve_reference(tree.name)

    def _compile_function_call(self, tree: FunctionCall) -> ProcessNode:
        args = [self.compile(arg) for arg in tree.args]
        return self.builder.invoke(tree.name, args)

    def resolve_reference(self, name: str) -> Any:
        """
        Resolve an identifier of the formula.

        Args:
            name: Identifier as written in the formula

        Returns:
            Literal value, existing node, array element node or parameter

        Raises:
            InvalidFormulaError: If ``#id`` doesn't refer to an existing node
        """
        if name in LITERALS:
            return LITERALS[name]

        # Output of a process
        if name.startswith("#"):
            node_id = name[1:]
            node = self.builder.nodes.get(node_id)
            if node is None:
                raise InvalidFormulaError(f"Formula refers to unknown node '{node_id}'")
            return node

        # Array labels / indices of callback parameters
        if name.startswith("$"):
            depth = len(name) - len(name.lstrip("$"))
            callback_params = self.builder.get_parent_callback_parameters()
            if depth <= len(callback_params):
                key = name[depth:]
                if not key:
                    raise InvalidFormulaError(f"Missing label or index after '{name}'")
                return callback_params[depth - 1].element(key)

        # Everything else is a parameter
        parameter = ParameterRef(name)
        self.builder.add_parameter(parameter)
        return parameter

    # --------------------------------------------------------
    # Operators
    # --------------------------------------------------------

    def _compile_binary(self, tree: Binary) -> ProcessNode:
        return self.add_operator_process(tree.op, self.compile(tree.left), self.compile(tree.right))

    def _compile_unary(self, tree: Unary) -> Any:
        value = self.compile(tree.expr)
        if tree.op != "-":
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return -value
        return self.add_operator_process("*", -1, value)

    def add_operator_process(self, operator: str, left: Any, right: Any) -> ProcessNode:
        """
        Add the process for a binary operator.

        Raises:
            ProcessNotFoundError: If the operator's process isn't in the catalog
            OperatorArityError: If the process has fewer than two parameters
        """
        process_id = OPERATOR_MAPPING.get(operator)
        if process_id is None:
            raise InvalidFormulaError(f"Operator {operator} not supported")
        spec = self.builder.spec(process_id)
        if spec is None:
            raise ProcessNotFoundError(process_id)

        parameters = spec.get("parameters")
        if not isinstance(parameters, list) or len(parameters) < 2:
            raise OperatorArityError(f"Process for operator {operator} must have at least two parameters")

        args = {
            parameters[0].get("name") or "x": left,
            parameters[1].get("name") or "y": right,
        }
        return self.builder.invoke(process_id, args)


# ============================================================
# FORMULA
# ============================================================

class Formula:
    """
    A mathematical formula that is converted into process nodes.

    The formula is parsed on creation; the nodes are generated once a
    builder is set. Formulas can be passed as callback arguments, the
    builder of the callback is set automatically then.

    Args:
        formula: The formula text

    Raises:
        FormulaSyntaxError: If the formula is malformed
    """

    def __init__(self, formula: str):
        self.formula = formula
        self.tree: Expression = parse_formula(formula)
        self.builder: Optional[Any] = None

    def set_builder(self, builder: Any) -> None:
        """The builder to add the formula's nodes to."""
        self.builder = builder

    def generate(self, set_result: bool = True) -> ProcessNode:
        """
        Generates the process nodes for the formula.

        Args:
            set_result: Set the ``result`` flag of the final node

        Returns:
            The node that computes the result of the formula

        Raises:
            InvalidFormulaError: If no builder is set or the formula doesn't
                compute anything (e.g. a plain number or parameter)
        """
        if self.builder is None:
            raise InvalidFormulaError("No builder set for formula, call set_builder() first")

        # Nodes and parameters of a partially lowered formula are discarded
        with self.builder.atomic():
            final_node = FormulaCompiler(self.builder).compile(self.tree)
            if not isinstance(final_node, ProcessNode):
                raise InvalidFormulaError(f"Invalid formula specified: {self.formula}")
        if set_result:
            final_node.result = True
        logger.debug("Generated formula '%s' -> %s", self.formula, final_node.id)
        return final_node

    def __repr__(self) -> str:
        return f"Formula({self.formula!r})"


def compile_formula(formula: str, builder: Any, set_result: bool = True) -> ProcessNode:
    """
    Convenience function to add a formula to a builder.

    Args:
        formula: The formula text
        builder: Builder to add the nodes to
        set_result: Set the ``result`` flag of the final node

    Returns:
        The node that computes the result of the formula
    """
    math = Formula(formula)
    math.set_builder(builder)
    return math.generate(set_result)

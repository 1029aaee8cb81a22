"""
Process Nodes - Process Invocations in a Graph

A ProcessNode is one call of a process in a process graph and, at the same
time, the result of that call: passing a node as argument to another process
links both nodes (``{"from_node": id}``).

Callback arguments (sub-processes of higher-order processes such as
``reduce_dimension``) are given as Python callables or Formula objects and
are only lowered into nested process graphs when the node is serialized.
"""

import inspect
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Set, Tuple, Union

from ..exceptions import (
    ForeignNodeError,
    InvalidCallbackResultError,
    ProcessNotFoundError,
    TooManyArgumentsError,
)
from .parameter import ArrayAccessProxy, ParameterRef

logger = logging.getLogger(__name__)


# ============================================================
# CALLBACK PARAMETERS
# ============================================================

CallbackParameterNames = Union[Tuple[str, ...], Callable[["ProcessNode"], Tuple[str, ...]]]


def _binary_reducer_parameters(node: "ProcessNode") -> Tuple[str, ...]:
    """The reducer of ``reduce`` gets two values at once if flagged binary."""
    if node.arguments.get("binary") is True:
        return ("x", "y")
    return ("data",)


# Parameters passed to callbacks of higher-order processes whose specification
# doesn't declare them (see callback_parameter_names).
CALLBACK_PARAMETERS: Dict[str, CallbackParameterNames] = {
    # Filters
    "filter_labels": ("value",),
    "array_filter": ("value",),

    # Aggregations
    "aggregate_polygon": ("data",),
    "aggregate_spatial": ("data",),
    "aggregate_spatial_window": ("data",),
    "aggregate_temporal": ("data",),
    "aggregate_temporal_period": ("data",),

    # Reducers
    "reduce": _binary_reducer_parameters,
    "reduce_dimension": ("data",),
    "apply_dimension": ("data",),

    # Element-wise
    "apply": ("x",),
}


def register_callback_parameters(process_id: str, names: CallbackParameterNames) -> None:
    """
    Register the callback parameter names of a higher-order process.

    Args:
        process_id: Process id
        names: Tuple of parameter names, or a function computing them from the node
    """
    if not callable(names):
        names = tuple(names)
    CALLBACK_PARAMETERS[process_id] = names


def _declared_callback_parameters(spec: Dict[str, Any], parameter_name: str) -> Optional[List[str]]:
    """Read the callback parameters from a ``process-graph`` schema of the specification."""
    for param in spec.get("parameters") or []:
        if param.get("name") != parameter_name:
            continue
        schemas = param.get("schema")
        if isinstance(schemas, dict):
            schemas = [schemas]
        if not isinstance(schemas, list):
            return None
        for schema in schemas:
            if isinstance(schema, dict) and isinstance(schema.get("parameters"), list):
                return [p["name"] for p in schema["parameters"] if isinstance(p, dict) and "name" in p]
        return None
    return None


def callback_parameter_names(node: "ProcessNode", parameter_name: str) -> List[str]:
    """
    Get the names of the parameters passed to a callback argument.

    The process specification is used if its schema for the argument declares
    the callback parameters. Otherwise CALLBACK_PARAMETERS is consulted;
    processes listed in neither have no callback parameters.

    Args:
        node: Node of the higher-order process
        parameter_name: Name of the callback argument

    Returns:
        List of callback parameter names, in order
    """
    declared = _declared_callback_parameters(node.spec, parameter_name)
    if declared is not None:
        return declared

    names = CALLBACK_PARAMETERS.get(node.process_id, ())
    if callable(names):
        names = names(node)
    return list(names)


# ============================================================
# ARGUMENT HELPERS
# ============================================================

def named_arguments(spec: Dict[str, Any], args: Union[Sequence[Any], Dict[str, Any], None]) -> Dict[str, Any]:
    """
    Convert arguments to an object keyed by parameter name.

    Args:
        spec: Process specification
        args: Positional arguments in the order of the specified parameters,
            or arguments keyed by parameter name

    Returns:
        Arguments keyed by parameter name

    Raises:
        TooManyArgumentsError: If more positional arguments than parameters are given
    """
    if args is None:
        return {}
    if isinstance(args, dict):
        return dict(args)
    if not isinstance(args, (list, tuple)):
        raise TypeError(f"Arguments must be a list or a dict, got {type(args).__name__}")

    names = [param.get("name") for param in spec.get("parameters") or []]
    if len(args) > len(names):
        raise TooManyArgumentsError(
            f"More arguments specified than parameters available for process "
            f"'{spec.get('id')}': {len(args)} given, {len(names)} available."
        )
    return dict(zip(names, args))


def _callback_arguments(func: Callable, builder: Any, params: List[Any]) -> List[Any]:
    """The builder followed by as many callback parameters as the function accepts."""
    args = [builder, *params]
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        return args

    accepted = 0
    for param in signature.parameters.values():
        if param.kind == param.VAR_POSITIONAL:
            return args
        if param.kind in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD):
            accepted += 1
    return args[:accepted]


# ============================================================
# PROCESS NODE
# ============================================================

class ProcessNode:
    """
    A process call in a process graph.

    Nodes are created by GraphBuilder.invoke() (or the process shortcuts of
    the builder) and registered under a unique id in that builder.

    Args:
        builder: The builder owning the node
        process_id: Id of the process to call
        args: Positional arguments (list) or arguments keyed by parameter name (dict)
        description: Optional description of the process call
        namespace: Namespace of the process, None for pre-defined processes

    Raises:
        ProcessNotFoundError: If the process isn't in the catalog of the builder
        TooManyArgumentsError: If more positional arguments than parameters are given
    """

    def __init__(
        self,
        builder: Any,
        process_id: str,
        args: Union[Sequence[Any], Dict[str, Any], None] = None,
        description: Optional[str] = None,
        namespace: Optional[str] = None,
    ):
        spec = builder.spec(process_id, namespace)
        if spec is None:
            raise ProcessNotFoundError(process_id, namespace)

        self.builder = builder
        self.spec = spec
        self.process_id = process_id
        self.namespace = namespace
        self.arguments = named_arguments(spec, args)
        self.result = False
        self._description = description
        self._callback_builders: Dict[str, Any] = {}

        self.id = builder.generate_id(process_id)
        self._declare_parameters(self.arguments)

    def _declare_parameters(self, value: Any, seen: Optional[Set[int]] = None) -> None:
        """Declare all parameters with a schema used in the arguments on the root process."""
        if seen is None:
            seen = set()
        if isinstance(value, ParameterRef):
            if value.is_declarable:
                self.builder.add_parameter(value.to_json())
        elif isinstance(value, ProcessNode):
            # Shared inputs of a DAG are visited once
            if id(value) not in seen:
                seen.add(id(value))
                self._declare_parameters(value.arguments, seen)
        elif isinstance(value, dict):
            for item in value.values():
                self._declare_parameters(item, seen)
        elif isinstance(value, (list, tuple)):
            for item in value:
                self._declare_parameters(item, seen)

    # --------------------------------------------------------
    # Description
    # --------------------------------------------------------

    def get_description(self) -> Optional[str]:
        """Get the description of the process call."""
        return self._description

    def set_description(self, description: Optional[str]) -> "ProcessNode":
        """Set the description of the process call; returns the node for chaining."""
        self._description = description
        return self

    # --------------------------------------------------------
    # References and callbacks
    # --------------------------------------------------------

    def ref(self) -> Dict[str, str]:
        """Reference to the result of this node as used in process arguments."""
        return {"from_node": self.id}

    def callback_parameter_names(self, parameter_name: str) -> List[str]:
        """Names of the parameters passed to the callback given for ``parameter_name``."""
        return callback_parameter_names(self, parameter_name)

    def callback_builder(self, parameter_name: str) -> Optional[Any]:
        """The builder created by the last serialization of a callback argument."""
        return self._callback_builders.get(parameter_name)

    def _create_callback_builder(self, parameter_name: str) -> Any:
        builder = self.builder.create_child(self, parameter_name)
        self._callback_builders[parameter_name] = builder
        return builder

    def _export_formula(self, formula: Any, name: str) -> Dict[str, Any]:
        builder = self._create_callback_builder(name)
        formula.set_builder(builder)
        formula.generate(set_result=True)
        return builder.to_json()

    def _export_callback(self, func: Callable, name: str) -> Dict[str, Any]:
        builder = self._create_callback_builder(name)
        params = builder.get_parent_callback_parameters()
        logger.debug(
            "Lowering callback for %s.%s with parameters %s",
            self.id, name, [p.name for p in params]
        )

        # A failing callback must not leave parameters behind on the root process
        with builder.atomic():
            node = func(*_callback_arguments(func, builder, params))

            array_create = builder.config.array_create_process
            if isinstance(node, (list, tuple)) and builder.supports(array_create):
                node = builder.invoke(array_create, [list(node)])

            if not isinstance(node, ProcessNode):
                raise InvalidCallbackResultError(
                    f"Callback for '{name}' of process '{self.process_id}' must return a "
                    f"process node, got {type(node).__name__}"
                )
            if node.builder is not builder:
                raise InvalidCallbackResultError(
                    f"Callback for '{name}' of process '{self.process_id}' must return a "
                    f"node created with the builder passed to it"
                )
            node.result = True
            return builder.to_json()

    def _export_argument(self, arg: Any, name: str) -> Any:
        """Convert an argument into its serializable form."""
        from ..formula.compiler import Formula

        if isinstance(arg, ProcessNode):
            if arg.builder is not self.builder:
                raise ForeignNodeError(arg.id, self.process_id)
            return arg.ref()
        if isinstance(arg, (ParameterRef, ArrayAccessProxy)):
            return arg.ref()
        if isinstance(arg, Formula):
            return self._export_formula(arg, name)
        if isinstance(arg, dict):
            return {key: self._export_argument(value, name) for key, value in arg.items()}
        if isinstance(arg, (list, tuple)):
            return [self._export_argument(element, name) for element in arg]

        to_json = getattr(arg, "to_json", None)
        if callable(to_json):
            return to_json()
        # Export child process graph
        if callable(arg):
            return self._export_callback(arg, name)
        return arg

    # --------------------------------------------------------
    # Serialization
    # --------------------------------------------------------

    def to_json(self) -> Dict[str, Any]:
        """
        Returns a JSON serializable representation of the node that is API compliant.

        Callback arguments are lowered into nested process graphs on every call.
        """
        obj: Dict[str, Any] = {"process_id": self.process_id}
        if self.namespace is not None:
            obj["namespace"] = self.namespace
        obj["arguments"] = {
            name: self._export_argument(value, name)
            for name, value in self.arguments.items()
        }
        if self._description is not None:
            obj["description"] = self._description
        if self.result:
            obj["result"] = True
        return obj

    def __repr__(self) -> str:
        return f"ProcessNode({self.id!r}, process_id={self.process_id!r})"

"""
Graph Builder - Construct Process Graphs from Process Specifications

Every process of the catalog is available as method of the builder:

    builder = GraphBuilder(processes)

    datacube = builder.load_collection(
        ParameterRef("collection-id", "string", "The ID of the collection to load"),
        {"west": 16.1, "east": 16.6, "north": 48.6, "south": 47.2},
        ["2018-01-01", "2018-02-01"],
        ["B02", "B04", "B08"],
    )

    # Callback "by hand", the builder for the sub-process is passed first
    def evi(builder, data):
        nir, red, blue = data["B08"], data["B04"], data["B02"]
        return builder.multiply(2.5, builder.divide(
            builder.subtract(nir, red),
            builder.sum([1, nir, builder.multiply(6, red), builder.multiply(-7.5, blue)]),
        ))

    # ... or the same as formula
    evi = Formula("2.5 * (($B08 - $B04) / (1 + $B08 + 6 * $B04 + -7.5 * $B02))")

    datacube = builder.reduce_dimension(datacube, evi, "bands").set_description("Compute the EVI")
    datacube = builder.reduce_dimension(datacube, lambda b, data: b.min(data), "t")
    builder.save_result(datacube, "PNG").result = True

    process = builder.to_json()
"""

import copy
import logging
from contextlib import contextmanager
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Union

from ..config import BuilderConfig
from ..exceptions import InvalidCatalogError
from .node import ProcessNode, named_arguments
from .parameter import ArrayAccessProxy, ParameterRef
from .registry import ProcessRegistry, ProcessSpec, split_process_id

logger = logging.getLogger(__name__)

# Process metadata emitted next to the process graph, in this order
PROCESS_META = (
    "id", "summary", "description", "categories", "parameters", "returns",
    "deprecated", "experimental", "exceptions", "examples", "links",
)


class GraphBuilder:
    """
    Builds a process (graph) from process calls.

    Args:
        processes: List of process specifications, an object compatible with
            ``GET /processes`` of the API, or a ProcessRegistry
        parent: The parent builder, only set for builders of callbacks
        id: Identifier of the process
        config: Builder configuration (default: parent's config or environment)

    Raises:
        InvalidCatalogError: If no process specifications are given
    """

    def __init__(
        self,
        processes: Union[ProcessRegistry, List[ProcessSpec], Dict[str, Any]],
        parent: Optional["GraphBuilder"] = None,
        id: Optional[str] = None,
        config: Optional[BuilderConfig] = None,
    ):
        if isinstance(processes, ProcessRegistry):
            registry = processes
        else:
            registry = ProcessRegistry(processes)
        if len(registry) == 0:
            raise InvalidCatalogError("Processes are invalid; at least one process specification is required.")

        self.processes = registry
        self.parent = parent
        self.parent_node: Optional[ProcessNode] = None
        self.parent_parameter: Optional[str] = None
        if config is None:
            config = parent.config if parent is not None else BuilderConfig.from_env()
        self.config = config

        self._nodes: Dict[str, ProcessNode] = {}
        self._id_counter: Dict[str, int] = {}
        self._callback_parameter_cache: Dict[str, ArrayAccessProxy] = {}

        # Process metadata
        self.id = id
        self.summary: Optional[str] = None
        self.description: Optional[str] = None
        self.categories: Optional[List[str]] = None
        self.parameters: Optional[List[Dict[str, Any]]] = None
        self.returns: Optional[Dict[str, Any]] = None
        self.deprecated: Optional[bool] = None
        self.experimental: Optional[bool] = None
        self.exceptions: Optional[Dict[str, Any]] = None
        self.examples: Optional[List[Any]] = None
        self.links: Optional[List[Dict[str, Any]]] = None

    # ============================================================
    # PROCESS SPECIFICATIONS
    # ============================================================

    def __getattr__(self, name: str) -> Callable[..., ProcessNode]:
        # Only called if regular attribute lookup fails: process shortcuts
        if name.startswith("_"):
            raise AttributeError(name)
        processes = self.__dict__.get("processes")
        if processes is None or not processes.has(name):
            raise AttributeError(f"'{type(self).__name__}' object has no attribute '{name}'")
        return self._shortcut(name)

    def __dir__(self) -> List[str]:
        shortcuts = [spec["id"] for spec in self.processes.all()]
        return sorted(set(super().__dir__()) | set(shortcuts))

    def _shortcut(self, process_id: str) -> Callable[..., ProcessNode]:
        spec = self.processes.get(process_id)

        def call_process(*args: Any, **kwargs: Any) -> ProcessNode:
            if not kwargs:
                return self.invoke(process_id, list(args))
            arguments = named_arguments(spec, args)
            arguments.update(kwargs)
            return self.invoke(process_id, arguments)

        call_process.__name__ = process_id
        call_process.__doc__ = spec.get("summary") or spec.get("description")
        return call_process

    def add_process_spec(self, spec: ProcessSpec, namespace: Optional[str] = None) -> None:
        """
        Adds a process specification so that it can be used in the process graph.

        Processes without namespace are also available as builder methods,
        unless the name is taken by an attribute of the builder.

        Args:
            spec: Process specification compliant to the API
            namespace: Namespace of the process, None for pre-defined processes

        Raises:
            InvalidCatalogError: If the specification is malformed
        """
        self.processes.add(spec, namespace)
        process_id = spec["id"]
        if namespace is None and (hasattr(type(self), process_id) or process_id in self.__dict__):
            logger.warning(
                "Process '%s' is shadowed by a builder attribute, use invoke('%s', ...) instead",
                process_id, process_id
            )

    def spec(self, process_id: str, namespace: Optional[str] = None) -> Optional[ProcessSpec]:
        """Returns the process specification for the given id and namespace (or None)."""
        return self.processes.get(process_id, namespace)

    def supports(self, process_id: str, namespace: Optional[str] = None) -> bool:
        """Checks whether a process with the given id and namespace is available."""
        return self.processes.has(process_id, namespace)

    # ============================================================
    # HIERARCHY
    # ============================================================

    @property
    def root(self) -> "GraphBuilder":
        """The outermost builder."""
        builder = self
        while builder.parent is not None:
            builder = builder.parent
        return builder

    def set_parent(self, node: ProcessNode, parameter_name: str) -> None:
        """Sets the node and callback argument this builder creates the sub-process for."""
        self.parent_node = node
        self.parent_parameter = parameter_name

    def create_child(self, node: ProcessNode, parameter_name: str) -> "GraphBuilder":
        """Creates the builder for a callback argument of a node of this builder."""
        child = GraphBuilder(self.processes, parent=self, config=self.config)
        child.set_parent(node, parameter_name)
        return child

    def create_callback_parameter(self, name: str) -> ArrayAccessProxy:
        """Creates (once) the callback parameter with the given name."""
        if name not in self._callback_parameter_cache:
            self._callback_parameter_cache[name] = ArrayAccessProxy(ParameterRef(name, schema=None), self)
        return self._callback_parameter_cache[name]

    def get_parent_callback_parameters(self) -> List[ArrayAccessProxy]:
        """Gets the parameters passed to this sub-process by the parent process."""
        if self.parent_node is None or self.parent_parameter is None:
            return []
        names = self.parent_node.callback_parameter_names(self.parent_parameter)
        return [self.create_callback_parameter(name) for name in names]

    # ============================================================
    # PARAMETERS
    # ============================================================

    def add_parameter(self, parameter: Union[ParameterRef, Dict[str, Any]], root: bool = True) -> None:
        """
        Adds a parameter to the list of process parameters.

        A parameter with the same name as an existing one is merged into it.
        Doesn't add the parameter if it has the same name as a callback parameter.

        Args:
            parameter: The parameter to add, a ParameterRef or a declaration compliant to the API
            root: Adds the parameter to the root process if True, otherwise to
                the process constructed by this builder
        """
        if isinstance(parameter, ParameterRef):
            parameter = parameter.to_json()
        name = parameter.get("name")

        if any(p.name == name for p in self.get_parent_callback_parameters()):
            return  # parameter refers to callback

        builder = self.root if root else self
        if builder.parameters is None:
            builder.parameters = []
        for existing in builder.parameters:
            if existing.get("name") == name:
                existing.update(copy.deepcopy(parameter))  # Merge
                return
        builder.parameters.append(copy.deepcopy(parameter))  # Add
        logger.debug("Declared parameter '%s' on process %s", name, builder.id or "<anonymous>")

    # ============================================================
    # NODES
    # ============================================================

    @property
    def nodes(self) -> Mapping[str, ProcessNode]:
        """The nodes of this builder, keyed by node id in creation order."""
        return MappingProxyType(self._nodes)

    def generate_id(self, prefix: str = "") -> str:
        """
        Generates a unique identifier for a process node.

        The prefix (usually the process id) is shortened to a stem to keep
        the identifiers human-readable; a counter per stem is appended.

        Args:
            prefix: Prefix for the identifier

        Returns:
            Identifier unique within this builder
        """
        stem = prefix.replace("_", "", 1)[:self.config.id_stem_length]
        while True:
            counter = self._id_counter.get(stem, 0) + 1
            self._id_counter[stem] = counter
            node_id = f"{stem}{counter}"
            if node_id not in self._nodes:
                return node_id

    @contextmanager
    def atomic(self) -> Iterator["GraphBuilder"]:
        """
        Context manager that undoes partial changes on errors.

        Usage:
            with builder.atomic():
                builder.sqrt(x)
                builder.invoke("unknown", [1])
            # Neither node was added, parameters of the root process are unchanged

        Nodes and id counters of this builder and the parameters of the root
        process are restored if the block raises; the error is re-raised.
        """
        root = self.root
        nodes = dict(self._nodes)
        counters = dict(self._id_counter)
        parameters = copy.deepcopy(root.parameters)
        try:
            yield self
        except Exception:
            self._nodes.clear()
            self._nodes.update(nodes)
            self._id_counter.clear()
            self._id_counter.update(counters)
            root.parameters = parameters
            for proxy in self._callback_parameter_cache.values():
                proxy.prune(self._nodes)
            logger.debug("Rolled back builder %s to %d node(s)", self.id or "<anonymous>", len(nodes))
            raise

    def invoke(
        self,
        process_id: str,
        args: Union[Sequence[Any], Dict[str, Any], None] = None,
        description: Optional[str] = None,
        namespace: Optional[str] = None,
    ) -> ProcessNode:
        """
        Adds another process call to the process graph.

        Args:
            process_id: The id of the process to call. Use ``process@namespace``
                to call a namespaced process.
            args: The arguments as list (in the order of the process parameters)
                or keyed by parameter name
            description: An optional description for the process call
            namespace: Namespace of the process, alternative to ``process@namespace``

        Returns:
            The new node

        Raises:
            ProcessNotFoundError: If the process isn't in the catalog
            TooManyArgumentsError: If more positional arguments than parameters are given
        """
        if namespace is None:
            process_id, namespace = split_process_id(process_id)

        node = ProcessNode(self, process_id, args, description, namespace)
        self._nodes[node.id] = node
        logger.debug("Added node %s (%s)", node.id, process_id)
        return node

    # Shortcut compatible with the API naming
    process = invoke

    def math(self, formula: str) -> ProcessNode:
        """
        Adds a mathematical formula to the process graph.

        See Formula for the supported syntax. The result flag is not set.
        If lowering fails, no nodes or parameters are left behind.

        Args:
            formula: The formula text

        Returns:
            The node computing the result of the formula

        Raises:
            FormulaError: If the formula is malformed or can't be lowered
            ProcessNotFoundError: If a function or operator process is missing
        """
        from ..formula.compiler import Formula

        math = Formula(formula)
        math.set_builder(self)
        return math.generate(set_result=False)

    # ============================================================
    # SERIALIZATION
    # ============================================================

    def to_json(self) -> Dict[str, Any]:
        """
        Returns a JSON serializable representation of the process that is API compliant.

        Callbacks are lowered first, so parameters declared inside of them
        are part of the ``parameters`` of the root process.
        """
        process: Dict[str, Any] = {
            "process_graph": {
                node_id: node.to_json()
                for node_id, node in list(self._nodes.items())
            }
        }
        for key in PROCESS_META:
            value = getattr(self, key)
            if value is not None:
                process[key] = copy.deepcopy(value)
        return process

    def __repr__(self) -> str:
        return f"GraphBuilder(id={self.id!r}, nodes={list(self._nodes)})"

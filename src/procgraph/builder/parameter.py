"""
Process Parameters - Placeholders for Graph Inputs

This module provides the two kinds of parameter values that can be passed as
process arguments:

- ParameterRef: a named input of the process (``{"from_parameter": name}``).
  Parameters with a schema are declared on the root process when used.
- ArrayAccessProxy: a callback parameter with simplified array access.
  ``data["B08"]`` or ``data.element(0)`` adds an ``array_element`` node to the
  callback's builder, once per label or index.
"""

import copy
import logging
import re
import warnings
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from ..exceptions import ReadOnlyAccessError, ReadOnlyAccessWarning

logger = logging.getLogger(__name__)

_INDEX_PATTERN = re.compile(r"^(0|[1-9]\d*)$")

# Marker for "no default value", None is a valid default
_MISSING = object()


# ============================================================
# PARAMETER REFERENCE
# ============================================================

class ParameterRef:
    """
    A named process parameter.

    Example:
        collection = ParameterRef("collection-id", "string", "The collection to load")
        builder.load_collection(collection, extent, None)

    Args:
        name: Name of the parameter
        schema: JSON Schema of the parameter, or a type name like ``"string"``.
            Defaults to an empty schema (any value). ``None`` for parameters
            that must not be declared, i.e. callback parameters.
        description: Description of the parameter
        default: Default value; makes the parameter optional if given
    """

    def __init__(
        self,
        name: str,
        schema: Optional[Union[Dict[str, Any], str]] = _MISSING,
        description: str = "",
        default: Any = _MISSING,
    ):
        if schema is _MISSING:
            schema_value = {}
        elif schema is None:
            schema_value = None
        elif isinstance(schema, str):
            schema_value = {"type": schema}
        else:
            schema_value = dict(schema)

        spec: Dict[str, Any] = {
            "name": name,
            "schema": schema_value,
            "description": description,
        }
        if default is not _MISSING:
            spec["optional"] = True
            spec["default"] = default

        self._name = name
        self._spec = spec

    @property
    def name(self) -> str:
        return self._name

    @property
    def schema(self) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self._spec["schema"])

    @property
    def description(self) -> str:
        return self._spec["description"]

    @property
    def optional(self) -> bool:
        return self._spec.get("optional", False)

    @property
    def default(self) -> Any:
        """The default value; raises AttributeError for required parameters."""
        if "default" not in self._spec:
            raise AttributeError(f"Parameter '{self._name}' has no default value")
        return copy.deepcopy(self._spec["default"])

    @property
    def is_declarable(self) -> bool:
        """Only parameters with a schema object are added to the process parameters."""
        return isinstance(self._spec["schema"], dict)

    def ref(self) -> Dict[str, str]:
        """Reference to this parameter as used in process arguments."""
        return {"from_parameter": self._name}

    def to_json(self) -> Dict[str, Any]:
        """The parameter declaration as used in the process ``parameters`` list."""
        return copy.deepcopy(self._spec)

    def __repr__(self) -> str:
        return f"ParameterRef({self._name!r})"


# ============================================================
# ARRAY ACCESS
# ============================================================

def _element_key(key: Any) -> Tuple[str, Union[int, str]]:
    """Map a subscript to the array_element argument it addresses."""
    if isinstance(key, bool):
        return ("label", str(key).lower())
    if isinstance(key, int):
        if key < 0:
            raise IndexError(f"Array index must not be negative: {key}")
        return ("index", key)
    key = str(key)
    if _INDEX_PATTERN.match(key):
        return ("index", int(key))
    return ("label", key)


class ArrayAccessProxy:
    """
    Callback parameter with simplified, read-only array access.

    Accessing an element by label or index creates an ``array_element`` node
    in the builder of the callback:

        def evi(builder, data, context):
            nir = data["B08"]   # array_element(data, label="B08")
            first = data[0]     # array_element(data, index=0)
            ...

    Each label/index is resolved once per proxy; repeated access returns the
    same node. Writing to an element is not possible.
    """

    def __init__(self, parameter: ParameterRef, builder: Any):
        self._parameter = parameter
        self._builder = builder
        self._cache: Dict[Tuple[str, Union[int, str]], Any] = {}

    @property
    def name(self) -> str:
        return self._parameter.name

    @property
    def parameter(self) -> ParameterRef:
        return self._parameter

    def ref(self) -> Dict[str, str]:
        return self._parameter.ref()

    def element(self, key: Union[int, str]) -> Any:
        """
        Get the node that accesses an array element.

        Args:
            key: Integer index, integer-shaped string (index) or label

        Returns:
            The ``array_element`` node for the key (cached per proxy)
        """
        cache_key = _element_key(key)
        node = self._cache.get(cache_key)
        if node is None:
            kind, value = cache_key
            process_id = self._builder.config.array_element_process
            node = self._builder.invoke(process_id, {"data": self._parameter, kind: value})
            self._cache[cache_key] = node
            logger.debug("Array access %s=%r on '%s' -> %s", kind, value, self.name, node.id)
        return node

    def prune(self, nodes: Mapping[str, Any]) -> None:
        """Forget cached element nodes that are no longer registered in ``nodes``."""
        self._cache = {
            key: node for key, node in self._cache.items()
            if nodes.get(node.id) is node
        }

    def __getitem__(self, key: Union[int, str]) -> Any:
        return self.element(key)

    def __setitem__(self, key: Union[int, str], value: Any) -> None:
        message = f"Simplified array access is read-only, can't set '{key}' on '{self.name}'"
        if self._builder.config.strict_array_access:
            raise ReadOnlyAccessError(message)
        logger.warning(message)
        warnings.warn(message, ReadOnlyAccessWarning, stacklevel=2)

    def __delitem__(self, key: Union[int, str]) -> None:
        self.__setitem__(key, None)

    def __iter__(self):
        # Without this, Python would iterate via __getitem__ and create nodes forever
        raise TypeError(f"Callback parameter '{self.name}' is not iterable, access elements by label or index")

    def __repr__(self) -> str:
        return f"ArrayAccessProxy({self.name!r})"

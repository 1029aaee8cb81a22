"""
Process Registry - Process Specification Catalog

This module provides the catalog of process specifications a builder works
against:
- Specification registration and lookup by id and namespace
- Loading catalogs from files shaped like a ``GET /processes`` response
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from ..exceptions import InvalidCatalogError

logger = logging.getLogger(__name__)

ProcessSpec = Dict[str, Any]


def _unwrap_processes(processes: Any) -> Any:
    """Accept both a plain list and an API-shaped {"processes": [...]} document."""
    if isinstance(processes, dict) and isinstance(processes.get("processes"), list):
        return processes["processes"]
    return processes


def split_process_id(process_id: str) -> Tuple[str, Optional[str]]:
    """
    Split a qualified ``process@namespace`` id at the first ``@``.

    Returns:
        Tuple of process id and namespace (None if not qualified)
    """
    if "@" in process_id:
        name, namespace = process_id.split("@", 1)
        return name, namespace
    return process_id, None


class ProcessRegistry:
    """
    Catalog of process specifications, keyed by namespace and process id.

    The namespace ``None`` holds the pre-defined processes of a back-end.
    Namespaced processes (e.g. user-defined processes of another provider)
    are addressed with an explicit namespace.

    Example:
        registry = ProcessRegistry(processes)
        registry.add({"id": "ndvi", "parameters": []}, namespace="vito")

        spec = registry.get("ndvi", "vito")
        registry.has("add")
    """

    def __init__(self, processes: Optional[Union[List[ProcessSpec], Dict[str, Any]]] = None):
        self._processes: Dict[Tuple[Optional[str], str], ProcessSpec] = {}

        processes = _unwrap_processes(processes)
        if processes is None:
            return
        if not isinstance(processes, (list, tuple)):
            raise InvalidCatalogError(
                "Processes are invalid; must be a list or an object with a 'processes' list."
            )
        for spec in processes:
            self.add(spec)

    def add(self, spec: ProcessSpec, namespace: Optional[str] = None) -> None:
        """
        Register a process specification, replacing any previous one.

        Args:
            spec: Process specification with at least an ``id``
            namespace: Namespace of the process, None for pre-defined processes

        Raises:
            InvalidCatalogError: If the specification isn't a dict with an id
        """
        if not isinstance(spec, dict):
            raise InvalidCatalogError(f"Process specification must be an object, got {type(spec).__name__}")
        process_id = spec.get("id")
        if not isinstance(process_id, str) or not process_id:
            raise InvalidCatalogError("Process specification must have a non-empty string 'id'")

        key = (namespace, process_id)
        if key in self._processes:
            logger.debug("Replacing process specification %s (namespace=%s)", process_id, namespace)
        self._processes[key] = spec

    def get(self, process_id: str, namespace: Optional[str] = None) -> Optional[ProcessSpec]:
        """
        Get a process specification.

        Args:
            process_id: Process id
            namespace: Namespace of the process

        Returns:
            The specification if found, None otherwise
        """
        return self._processes.get((namespace, process_id))

    def has(self, process_id: str, namespace: Optional[str] = None) -> bool:
        """Check whether a process is registered."""
        return (namespace, process_id) in self._processes

    def all(self, namespace: Optional[str] = None) -> List[ProcessSpec]:
        """Get all specifications of a namespace, in registration order."""
        return [spec for (ns, _), spec in self._processes.items() if ns == namespace]

    def namespaces(self) -> List[Optional[str]]:
        """Get all namespaces that contain at least one process."""
        return list(dict.fromkeys(ns for ns, _ in self._processes))

    def __len__(self) -> int:
        return len(self._processes)

    def __iter__(self) -> Iterator[ProcessSpec]:
        return iter(self._processes.values())

    def __contains__(self, process_id: object) -> bool:
        return (None, process_id) in self._processes


def load_processes(path: Union[str, Path]) -> ProcessRegistry:
    """
    Load a process catalog from a JSON file.

    The file either holds a list of process specifications or an object
    compatible with the ``GET /processes`` endpoint of the API.

    Args:
        path: Path to the JSON file

    Returns:
        ProcessRegistry with all specifications of the file

    Raises:
        InvalidCatalogError: If the file can't be read or has the wrong shape
    """
    path = Path(path)

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise InvalidCatalogError(f"Error reading process catalog {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise InvalidCatalogError(f"Process catalog {path} is not valid JSON: {e}") from e

    registry = ProcessRegistry(data)
    logger.debug("Loaded %d process specifications from %s", len(registry), path)
    return registry

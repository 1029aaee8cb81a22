"""
Process Graph Builder

Construct process graphs programmatically from a catalog of process
specifications.
"""

from .builder import PROCESS_META, GraphBuilder
from .node import CALLBACK_PARAMETERS, ProcessNode, callback_parameter_names, register_callback_parameters
from .parameter import ArrayAccessProxy, ParameterRef
from .registry import ProcessRegistry, ProcessSpec, load_processes, split_process_id

__all__ = [
    "GraphBuilder",
    "PROCESS_META",
    "ProcessNode",
    "CALLBACK_PARAMETERS",
    "callback_parameter_names",
    "register_callback_parameters",
    "ParameterRef",
    "ArrayAccessProxy",
    "ProcessRegistry",
    "ProcessSpec",
    "load_processes",
    "split_process_id",
]

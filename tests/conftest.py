"""
Shared pytest fixtures for procgraph tests.

Provides a small process catalog shaped like the openEO processes, builders
using it, and a catalog file for the command line tests.
"""

import copy
import json

import pytest

from procgraph import BuilderConfig, GraphBuilder
from procgraph.logging_config import reset_logging


def make_process(process_id, *parameters, summary=None):
    """Create a process specification; parameters are names or full declarations."""
    spec = {
        "id": process_id,
        "parameters": [
            p if isinstance(p, dict) else {"name": p, "description": p, "schema": {}}
            for p in parameters
        ],
        "returns": {"schema": {}},
    }
    if summary:
        spec["summary"] = summary
    return spec


def make_callback(name, *callback_parameters):
    """Create the declaration of a callback parameter of a higher-order process."""
    return {
        "name": name,
        "description": name,
        "schema": {
            "type": "object",
            "subtype": "process-graph",
            "parameters": [{"name": p, "schema": {}} for p in callback_parameters],
        },
    }


PROCESSES = [
    # Math
    make_process("add", "x", "y", summary="Addition of two numbers"),
    make_process("subtract", "x", "y"),
    make_process("multiply", "x", "y"),
    make_process("divide", "x", "y"),
    make_process("power", "base", "p"),
    make_process("sqrt", "x"),
    make_process("sum", "data", "ignore_nodata"),
    make_process("min", "data", "ignore_nodata"),
    make_process("mean", "data", "ignore_nodata"),

    # Arrays
    make_process("array_element", "data", "index", "label", "return_nodata"),
    make_process("array_create", "data", "repeat"),

    # Data cubes
    make_process("load_collection", "id", "spatial_extent", "temporal_extent", "bands", "properties"),
    make_process("reduce_dimension", "data", make_callback("reducer", "data", "context"), "dimension", "context"),
    # Callback parameters of apply and filter_labels are not declared in the schema
    make_process("apply", "data", "process", "context"),
    make_process("filter_labels", "data", "condition", "dimension", "context"),
    make_process("save_result", "data", "format", "options"),

    # Misc
    make_process("hello_world"),
]


@pytest.fixture(autouse=True)
def clean_logging():
    """Remove handlers attached by configure_logging() after each test."""
    yield
    reset_logging()


@pytest.fixture
def processes():
    """A fresh copy of the process catalog."""
    return copy.deepcopy(PROCESSES)


@pytest.fixture
def config():
    """Configuration independent of the environment."""
    return BuilderConfig.for_testing()


@pytest.fixture
def builder(processes, config):
    """A builder for the test catalog."""
    return GraphBuilder(processes, config=config)


@pytest.fixture
def datacube(builder):
    """A load_collection node with a declared collection parameter."""
    from procgraph import ParameterRef

    return builder.load_collection(
        ParameterRef("collection-id", "string", "The ID of the collection to load"),
        {"west": 16.1, "east": 16.6, "north": 48.6, "south": 47.2},
        ["2018-01-01", "2018-02-01"],
        ["B02", "B04", "B08"],
    )


@pytest.fixture
def catalog_file(tmp_path, processes):
    """The process catalog as API-shaped JSON file."""
    path = tmp_path / "processes.json"
    path.write_text(json.dumps({"processes": processes, "links": []}), encoding="utf-8")
    return path

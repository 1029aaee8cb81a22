"""
Unit tests for process nodes and callbacks.

Tests cover:
- Argument conversion (named_arguments)
- Callback lowering into nested process graphs
- Callback parameter names from specifications and the fallback table
- Errors for invalid callback results
"""

import pytest

from procgraph import (
    ForeignNodeError,
    Formula,
    GraphBuilder,
    InvalidCallbackResultError,
    ParameterRef,
    ReadOnlyAccessWarning,
    TooManyArgumentsError,
)
from procgraph.builder import node as node_module
from procgraph.builder.node import (
    CALLBACK_PARAMETERS,
    callback_parameter_names,
    named_arguments,
    register_callback_parameters,
)


# =============================================================================
# Argument Helpers
# =============================================================================

class TestNamedArguments:
    """Tests for named_arguments()."""

    SPEC = {"id": "add", "parameters": [{"name": "x"}, {"name": "y"}]}

    def test_list(self):
        assert named_arguments(self.SPEC, [1, 2]) == {"x": 1, "y": 2}

    def test_fewer_arguments(self):
        assert named_arguments(self.SPEC, [1]) == {"x": 1}

    def test_dict_is_copied(self):
        args = {"x": 1}
        result = named_arguments(self.SPEC, args)
        assert result == args
        assert result is not args

    def test_none(self):
        assert named_arguments(self.SPEC, None) == {}

    def test_too_many(self):
        with pytest.raises(TooManyArgumentsError):
            named_arguments(self.SPEC, [1, 2, 3])

    def test_spec_without_parameters(self):
        assert named_arguments({"id": "pi"}, []) == {}
        with pytest.raises(TooManyArgumentsError):
            named_arguments({"id": "pi"}, [1])

    def test_invalid_type(self):
        with pytest.raises(TypeError):
            named_arguments(self.SPEC, "xy")


# =============================================================================
# Callbacks
# =============================================================================

class TestCallbacks:
    """Tests for callback lowering."""

    def test_evi_callback(self, builder, datacube):
        def evi(b, data, context):
            nir = data["B08"]
            red = data["B04"]
            blue = data["B02"]
            blue2 = data["B02"]  # Same node as blue
            assert blue2 is blue
            return b.multiply(
                2.5,
                b.divide(
                    b.subtract(nir, red),
                    b.sum([1, nir, b.multiply(6, red), b.multiply(-7.5, blue)]),
                ),
            )

        reduced = builder.reduce_dimension(datacube, evi, "bands").set_description("Compute the EVI")
        reducer = reduced.to_json()["arguments"]["reducer"]

        def element(label):
            return {"process_id": "array_element", "arguments": {"data": {"from_parameter": "data"}, "label": label}}

        assert reducer == {"process_graph": {
            "arraye1": element("B08"),
            "arraye2": element("B04"),
            "arraye3": element("B02"),
            "subtra1": {"process_id": "subtract", "arguments": {"x": {"from_node": "arraye1"}, "y": {"from_node": "arraye2"}}},
            "multip1": {"process_id": "multiply", "arguments": {"x": 6, "y": {"from_node": "arraye2"}}},
            "multip2": {"process_id": "multiply", "arguments": {"x": -7.5, "y": {"from_node": "arraye3"}}},
            "sum1": {"process_id": "sum", "arguments": {"data": [
                1, {"from_node": "arraye1"}, {"from_node": "multip1"}, {"from_node": "multip2"},
            ]}},
            "divide1": {"process_id": "divide", "arguments": {"x": {"from_node": "subtra1"}, "y": {"from_node": "sum1"}}},
            "multip3": {"process_id": "multiply", "arguments": {"x": 2.5, "y": {"from_node": "divide1"}}, "result": True},
        }}
        assert reduced.to_json()["description"] == "Compute the EVI"

    def test_full_process(self, builder, datacube):
        evi = Formula("2.5 * (($B08 - $B04) / (1 + $B08 + 6 * $B04 + -7.5 * $B02))")
        reduced = builder.reduce_dimension(datacube, evi, "bands")
        min_time = builder.reduce_dimension(reduced, lambda b, data: b.min(data), "t")
        builder.save_result(min_time, "PNG").result = True
        builder.id = "evi"

        process = builder.to_json()
        assert list(process["process_graph"]) == ["loadco1", "reduce1", "reduce2", "savere1"]
        assert process["process_graph"]["reduce2"]["arguments"] == {
            "data": {"from_node": "reduce1"},
            "reducer": {"process_graph": {
                "min1": {"process_id": "min", "arguments": {"data": {"from_parameter": "data"}}, "result": True},
            }},
            "dimension": "t",
        }
        assert process["id"] == "evi"
        assert [p["name"] for p in process["parameters"]] == ["collection-id"]

    def test_callback_with_fewer_parameters(self, builder, datacube):
        node = builder.reduce_dimension(datacube, lambda b: b.hello_world(), "t")
        graph = node.to_json()["arguments"]["reducer"]["process_graph"]
        assert graph == {"hellow1": {"process_id": "hello_world", "arguments": {}, "result": True}}

    def test_callback_with_var_args(self, builder, datacube):
        received = []

        def callback(b, *params):
            received.extend(p.name for p in params)
            return b.hello_world()

        builder.reduce_dimension(datacube, callback, "t").to_json()
        assert received == ["data", "context"]

    def test_callback_parameters_from_table(self, builder, datacube):
        node = builder.apply(datacube, lambda b, x: b.sqrt(x))
        graph = node.to_json()["arguments"]["process"]["process_graph"]
        assert graph["sqrt1"]["arguments"] == {"x": {"from_parameter": "x"}}

    def test_callback_without_known_parameters(self, builder):
        builder.add_process_spec({"id": "run_udf", "parameters": [{"name": "udf", "schema": {}}]})
        received = []

        def callback(*args):
            received.extend(args)
            return args[0].hello_world()

        builder.run_udf(callback).to_json()
        assert len(received) == 1

    def test_list_result_becomes_array_create(self, builder, datacube):
        node = builder.apply(datacube, lambda b, x: [x[0], 1])
        graph = node.to_json()["arguments"]["process"]["process_graph"]
        assert graph == {
            "arraye1": {"process_id": "array_element", "arguments": {"data": {"from_parameter": "x"}, "index": 0}},
            "arrayc1": {"process_id": "array_create", "arguments": {"data": [{"from_node": "arraye1"}, 1]}, "result": True},
        }

    def test_number_result_is_rejected(self, builder, datacube):
        node = builder.reduce_dimension(datacube, lambda b, data: 1, "t")
        with pytest.raises(InvalidCallbackResultError):
            node.to_json()

    def test_none_result_is_rejected(self, builder, datacube):
        node = builder.reduce_dimension(datacube, lambda b, data: None, "t")
        with pytest.raises(InvalidCallbackResultError):
            builder.to_json()

    def test_node_of_other_builder_is_rejected(self, builder, datacube):
        outer = builder.hello_world()
        node = builder.reduce_dimension(datacube, lambda b, data: outer, "t")
        with pytest.raises(InvalidCallbackResultError):
            node.to_json()

    def test_outer_node_as_argument_is_rejected(self, builder, datacube):
        node = builder.reduce_dimension(datacube, lambda b, data: b.add(data["B08"], datacube), "bands")
        with pytest.raises(ForeignNodeError, match="loadco1") as exc_info:
            node.to_json()
        assert exc_info.value.node_id == "loadco1"
        assert exc_info.value.process_id == "add"

    def test_node_of_other_root_is_rejected(self, builder, processes, config):
        other = GraphBuilder(processes, config=config).hello_world()
        node = builder.sqrt(other)
        with pytest.raises(ForeignNodeError):
            builder.to_json()
        with pytest.raises(ForeignNodeError):
            node.to_json()

    def test_failing_callback_declares_no_parameters(self, builder, datacube):
        def callback(b, data):
            b.multiply(data[0], ParameterRef("factor", "number"))
            return None

        node = builder.reduce_dimension(datacube, callback, "bands")
        with pytest.raises(InvalidCallbackResultError):
            node.to_json()
        assert [p["name"] for p in builder.parameters] == ["collection-id"]
        assert len(node.callback_builder("reducer").nodes) == 0

    def test_write_to_element_then_no_result(self, builder, datacube):
        def callback(b, data):
            data["B08"] = 1
            return None

        node = builder.reduce_dimension(datacube, callback, "bands")
        with pytest.warns(ReadOnlyAccessWarning):
            with pytest.raises(InvalidCallbackResultError):
                node.to_json()

    def test_parameter_in_callback_is_declared_on_root(self, builder, datacube):
        factor = ParameterRef("factor", "number", "Scale factor")
        node = builder.reduce_dimension(datacube, lambda b, data: b.multiply(data[0], factor), "bands")
        assert [p["name"] for p in builder.parameters] == ["collection-id"]

        process = builder.to_json()
        assert [p["name"] for p in process["parameters"]] == ["collection-id", "factor"]
        child = node.callback_builder("reducer")
        assert child.parameters is None
        assert child.parent is builder
        assert child.root is builder
        assert child.config is builder.config

    def test_callback_parameter_names_are_not_declared(self, builder, datacube):
        def callback(b, data):
            b.add_parameter({"name": "data", "schema": {}})
            return b.multiply(ParameterRef("context"), 2)

        builder.reduce_dimension(datacube, callback, "bands")
        process = builder.to_json()
        assert [p["name"] for p in process["parameters"]] == ["collection-id"]

    def test_callback_builder_is_fresh_on_every_serialization(self, builder, datacube):
        node = builder.reduce_dimension(datacube, lambda b, data: b.mean(data), "t")
        node.to_json()
        first = node.callback_builder("reducer")
        node.to_json()
        assert node.callback_builder("reducer") is not first
        assert list(node.callback_builder("reducer").nodes) == ["mean1"]

    def test_callback_in_nested_argument(self, builder, datacube):
        node = builder.save_result(datacube, "GTiff", {"postprocess": lambda b: b.hello_world()})
        options = node.to_json()["arguments"]["options"]
        assert options == {"postprocess": {"process_graph": {
            "hellow1": {"process_id": "hello_world", "arguments": {}, "result": True},
        }}}

    def test_nested_callbacks(self, builder, datacube):
        def outer(b, data):
            return b.apply(data, lambda inner, x: inner.sqrt(x))

        node = builder.reduce_dimension(datacube, outer, "t")
        graph = node.to_json()["arguments"]["reducer"]["process_graph"]
        assert graph["apply1"]["arguments"]["process"] == {"process_graph": {
            "sqrt1": {"process_id": "sqrt", "arguments": {"x": {"from_parameter": "x"}}, "result": True},
        }}
        assert node.callback_builder("reducer").root is builder


# =============================================================================
# Formula Callbacks
# =============================================================================

class TestFormulaCallbacks:
    """Tests for formulas as callback arguments."""

    def test_evi_formula(self, builder, datacube):
        evi = Formula("2.5 * (($B08 - $B04) / (1 + $B08 + 6 * $B04 + (-7.5 * $B02)))")
        node = builder.reduce_dimension(datacube, evi, "bands")
        graph = node.to_json()["arguments"]["reducer"]["process_graph"]

        results = [key for key, value in graph.items() if value.get("result")]
        assert results == ["multip3"]
        assert graph["multip3"]["arguments"] == {"x": 2.5, "y": {"from_node": "divide1"}}

        labels = [value["arguments"]["label"] for value in graph.values() if value["process_id"] == "array_element"]
        assert labels == ["B08", "B04", "B02"]

        constants = sorted(
            value["arguments"]["x"] for value in graph.values()
            if not isinstance(value["arguments"].get("x"), dict) and "x" in value["arguments"]
        )
        assert constants == [-7.5, 1, 2.5, 6]

    def test_second_callback_parameter(self, builder, datacube):
        node = builder.reduce_dimension(datacube, Formula("$B08 + $$offset"), "bands", {"offset": 1})
        graph = node.to_json()["arguments"]["reducer"]["process_graph"]
        assert graph["arraye1"]["arguments"] == {"data": {"from_parameter": "data"}, "label": "B08"}
        assert graph["arraye2"]["arguments"] == {"data": {"from_parameter": "context"}, "label": "offset"}
        assert graph["add1"] == {
            "process_id": "add",
            "arguments": {"x": {"from_node": "arraye1"}, "y": {"from_node": "arraye2"}},
            "result": True,
        }

    def test_parameter_in_formula_callback(self, builder, datacube):
        builder.reduce_dimension(datacube, Formula("$B08 * factor"), "bands")
        process = builder.to_json()
        assert process["parameters"][1] == {"name": "factor", "schema": {}, "description": ""}

    def test_formula_result_must_be_node(self, builder, datacube):
        from procgraph import InvalidFormulaError

        node = builder.reduce_dimension(datacube, Formula("$B08"), "bands")
        graph_json = node.to_json()["arguments"]["reducer"]["process_graph"]
        assert graph_json["arraye1"]["result"] is True

        node = builder.reduce_dimension(datacube, Formula("1"), "bands")
        with pytest.raises(InvalidFormulaError):
            node.to_json()


# =============================================================================
# Callback Parameter Names
# =============================================================================

class TestCallbackParameterNames:
    """Tests for resolving callback parameter names."""

    def test_from_spec_schema(self, builder, datacube):
        node = builder.reduce_dimension(datacube, None, "t")
        assert callback_parameter_names(node, "reducer") == ["data", "context"]

    def test_from_table(self, builder):
        node = builder.filter_labels(None, None, "t")
        assert node.callback_parameter_names("condition") == ["value"]

    def test_array_filter(self, builder):
        builder.add_process_spec({"id": "array_filter", "parameters": [
            {"name": "data", "schema": {}}, {"name": "condition", "schema": {}},
        ]})
        node = builder.array_filter(None, None)
        assert node.callback_parameter_names("condition") == ["value"]

    def test_unknown_process(self, builder):
        node = builder.hello_world()
        assert node.callback_parameter_names("process") == []

    def test_binary_reduce(self, builder):
        builder.add_process_spec({"id": "reduce", "parameters": [
            {"name": "data", "schema": {}}, {"name": "reducer", "schema": {}}, {"name": "binary", "schema": {}},
        ]})
        assert builder.reduce(None, None, True).callback_parameter_names("reducer") == ["x", "y"]
        assert builder.reduce(None, None).callback_parameter_names("reducer") == ["data"]

    def test_register(self, builder, monkeypatch):
        monkeypatch.setattr(node_module, "CALLBACK_PARAMETERS", dict(CALLBACK_PARAMETERS))
        builder.add_process_spec({"id": "my_map", "parameters": [{"name": "mapper", "schema": {}}]})
        register_callback_parameters("my_map", ["value"])

        node = builder.my_map(lambda b, value: b.sqrt(value))
        graph = node.to_json()["arguments"]["mapper"]["process_graph"]
        assert graph["sqrt1"]["arguments"] == {"x": {"from_parameter": "value"}}
        assert "my_map" not in CALLBACK_PARAMETERS

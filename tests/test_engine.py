"""Tests for taintscan.dataflow.engine"""

from dataclasses import dataclass

import pytest

from taintscan.dataflow import engine as engine_module
from taintscan.dataflow.engine import MAXIMUM_DEPTH, TaintPropagationEngine
from taintscan.dataflow.record import FlowState
from taintscan.dataflow.strategies import AnnotationIndex, VerificationStrategy
from taintscan.models import VulnerabilityKind
from taintscan.signatures import STRING_TYPE
from taintscan.syntax import (
    EXPRESSION_TYPES, ConditionalExpression, Expression, MethodSignature,
    UnsupportedExpression,
)

SERVICE = "com.example.Service"


def _exit(catalog):
    return catalog.exit_points[0]


def _snapshot(records):
    return [
        [(r.state, r.kind, len(r), [str(n.position) for n in r.nodes]) for r in record.walk()]
        for record in records
    ]


class TestEngineConstruction:
    def test_rejects_non_positive_depth(self, call_graph, catalog):
        with pytest.raises(ValueError):
            TaintPropagationEngine(call_graph, catalog, max_depth=0)

    def test_default_depth(self, call_graph, catalog):
        assert TaintPropagationEngine(call_graph, catalog).max_depth == MAXIMUM_DEPTH == 10

    def test_every_expression_class_has_a_handler(self, call_graph, catalog, monkeypatch):
        @dataclass(eq=False)
        class LambdaExpression(Expression):
            pass

        monkeypatch.setattr(engine_module, "EXPRESSION_TYPES", EXPRESSION_TYPES + (LambdaExpression,))
        with pytest.raises(TypeError, match="LambdaExpression"):
            TaintPropagationEngine(call_graph, catalog)


class TestScenarios:
    def test_literal_argument_is_safe(self, ir, call_graph, catalog):
        sink = ir.exec(ir.string("SELECT * FROM t"))
        records = TaintPropagationEngine(call_graph, catalog).check_call_site(sink, _exit(catalog))

        assert len(records) == 1
        assert records[0].state is FlowState.SAFE
        assert not records[0].is_vulnerable
        assert len(records[0]) == 0

    def test_variable_from_entry_point(self, ir, call_graph, catalog):
        cmd = ir.local("cmd")
        call_graph.add_unit(ir.unit)
        call_graph.add_binding(ir.unit, cmd, ir.get_parameter("x"))
        sink = ir.exec(ir.name(cmd))

        records = TaintPropagationEngine(call_graph, catalog).check_call_site(sink, _exit(catalog))

        assert len(records) == 1
        record = records[0]
        assert record.state is FlowState.VULNERABLE
        assert record.kind is VulnerabilityKind.ENTRY_POINT
        assert "getParameter" in record.message
        assert len(record) == 2

    def test_concatenation_reports_only_tainted_operand(self, ir, call_graph, catalog):
        a = ir.local("a")
        call_graph.add_binding(ir.unit, a, ir.get_parameter())
        sink = ir.exec(ir.concat(ir.name(a), ir.string("b")))

        record = TaintPropagationEngine(call_graph, catalog).check_call_site(sink, _exit(catalog))[0]

        assert record.is_vulnerable
        witnesses = record.vulnerable_paths()
        assert len(witnesses) == 1
        assert [n.text for n in witnesses[0].nodes] == ['a + "b"', 'a', 'getParameter("id")']
        states = sorted(child.state.value for child in record.children)
        assert states == ["safe", "vulnerable"]


class TestTermination:
    def test_binding_cycle_stops_at_depth_limit(self, ir, call_graph, catalog):
        first = ir.field("first", SERVICE)
        second = ir.field("second", SERVICE)
        call_graph.add_binding(ir.unit, first, ir.name(second))
        call_graph.add_binding(ir.unit, second, ir.name(first))

        record = TaintPropagationEngine(call_graph, catalog).check_call_site(
            ir.exec(ir.name(first)), _exit(catalog))[0]

        assert record.state is FlowState.DEPTH_EXCEEDED
        assert not record.is_vulnerable
        assert len(record) == MAXIMUM_DEPTH + 1

    def test_recursive_method_stops_at_depth_limit(self, ir, call_graph, catalog):
        signature = MethodSignature(SERVICE, "loop", (STRING_TYPE,))
        value = ir.parameter("value", signature, 0)
        declaration = ir.method(signature, ir.call("loop", ir.name(value), receiver_type=SERVICE))
        call_graph.add_method(ir.unit, declaration)

        sink = ir.exec(ir.call("loop", ir.string("seed"), receiver_type=SERVICE))
        record = TaintPropagationEngine(call_graph, catalog, max_depth=4).check_call_site(
            sink, _exit(catalog))[0]

        assert not record.is_vulnerable
        assert any(r.state is FlowState.DEPTH_EXCEEDED for r in record.walk())
        assert all(len(r) <= 5 for r in record.walk())

    def test_depth_exceeded_is_not_vulnerable(self, ir, call_graph, catalog):
        cmd = ir.local("cmd")
        call_graph.add_binding(ir.unit, cmd, ir.get_parameter())

        record = TaintPropagationEngine(call_graph, catalog, max_depth=1).check_call_site(
            ir.exec(ir.name(cmd)), _exit(catalog))[0]

        assert record.state is FlowState.DEPTH_EXCEEDED
        assert not record.is_vulnerable
        assert len(record) == 2


class TestInvocations:
    def test_unresolvable_call_is_unknown(self, ir, call_graph, catalog):
        sink = ir.exec(ir.call("lookup", ir.string("key"), receiver_type="com.example.Library"))

        record = TaintPropagationEngine(call_graph, catalog).check_call_site(sink, _exit(catalog))[0]

        assert record.state is FlowState.VULNERABLE
        assert record.kind is VulnerabilityKind.UNKNOWN
        assert record.message == "unresolvable call: lookup"

    def test_sanitizer_stops_taint(self, ir, call_graph, catalog):
        parsed = ir.call("parseInt", ir.get_parameter(), receiver_type="java.lang.Integer")
        record = TaintPropagationEngine(call_graph, catalog).check_call_site(
            ir.exec(parsed), _exit(catalog))[0]

        assert record.state is FlowState.SAFE
        assert len(record) == 1

    def test_resolved_callee_branches_per_return(self, ir, call_graph, catalog):
        signature = MethodSignature(SERVICE, "pick", ())
        declaration = ir.method(signature, ir.string("fixed"), ir.get_parameter("name"))
        call_graph.add_method(ir.unit, declaration)

        record = TaintPropagationEngine(call_graph, catalog).check_call_site(
            ir.exec(ir.call("pick", receiver_type=SERVICE)), _exit(catalog))[0]

        assert len(record.children) == 2
        assert record.is_vulnerable
        assert len(record.vulnerable_paths()) == 1

    def test_declaration_without_returns_is_safe(self, ir, call_graph, catalog):
        signature = MethodSignature(SERVICE, "nothing", ())
        call_graph.add_method(ir.unit, ir.method(signature))

        record = TaintPropagationEngine(call_graph, catalog).check_call_site(
            ir.exec(ir.call("nothing", receiver_type=SERVICE)), _exit(catalog))[0]

        assert record.state is FlowState.SAFE

    def test_parameter_traced_to_every_call_site(self, ir, call_graph, catalog):
        run = MethodSignature(SERVICE, "run", (STRING_TYPE,))
        handle = MethodSignature(SERVICE, "handle", ())
        batch = MethodSignature(SERVICE, "batch", ())
        run_decl = ir.method(run, parameter_names=["input"])
        handle_decl = ir.method(handle)
        batch_decl = ir.method(batch)
        for declaration in (run_decl, handle_decl, batch_decl):
            call_graph.add_method(ir.unit, declaration)
        call_graph.add_invocation(ir.unit, handle_decl,
                                  ir.call("run", ir.get_parameter(), receiver_type=SERVICE))
        call_graph.add_invocation(ir.unit, batch_decl,
                                  ir.call("run", ir.string("ls"), receiver_type=SERVICE))

        argument = ir.name(ir.parameter("input", run, 0))
        record = TaintPropagationEngine(call_graph, catalog).check_call_site(
            ir.exec(argument), _exit(catalog))[0]

        assert len(record.children) == 2
        witnesses = record.vulnerable_paths()
        assert len(witnesses) == 1
        assert [n.text for n in witnesses[0].nodes] == ["input", 'getParameter("id")']

    def test_parameter_without_invokers_is_safe(self, ir, call_graph, catalog):
        run = MethodSignature(SERVICE, "run", (STRING_TYPE,))
        argument = ir.name(ir.parameter("input", run, 0))

        record = TaintPropagationEngine(call_graph, catalog).check_call_site(
            ir.exec(argument), _exit(catalog))[0]

        assert record.state is FlowState.SAFE


class TestExpressions:
    def test_qualified_name_follows_field(self, ir, call_graph, catalog):
        field = ir.field("command", SERVICE)
        call_graph.add_binding(ir.unit, field, ir.call("getenv", ir.string("CMD"),
                                                       receiver_type="java.lang.System"))
        access = ir.qualified(ir.name("config"), ir.name(field))

        record = TaintPropagationEngine(call_graph, catalog).check_call_site(
            ir.exec(access), _exit(catalog))[0]

        assert record.kind is VulnerabilityKind.ENTRY_POINT
        assert "getenv" in record.message

    def test_condition_of_conditional_is_not_traced(self, ir, call_graph, catalog):
        choice = ConditionalExpression(
            "flag ? a : b", ir.position(),
            condition=ir.get_parameter(),
            then_expression=ir.string("a"),
            else_expression=ir.string("b"),
        )
        record = TaintPropagationEngine(call_graph, catalog).check_call_site(
            ir.exec(choice), _exit(catalog))[0]

        # Both branches are literals
        assert [child.state for child in record.children] == [FlowState.SAFE, FlowState.SAFE]
        assert not record.is_vulnerable

    def test_unsupported_expression_is_safe(self, ir, call_graph, catalog):
        lookup = UnsupportedExpression("args[0]", ir.position(), node_type="array_access")
        record = TaintPropagationEngine(call_graph, catalog).check_call_site(
            ir.exec(lookup), _exit(catalog))[0]

        assert record.state is FlowState.SAFE
        assert len(record) == 1

    def test_unbound_name_is_safe(self, ir, call_graph, catalog):
        record = TaintPropagationEngine(call_graph, catalog).check_call_site(
            ir.exec(ir.name("unknown")), _exit(catalog))[0]

        assert record.state is FlowState.SAFE


class TestCallSites:
    def test_ignored_parameter_is_not_traced(self, ir, call_graph, catalog):
        file_exit = catalog.exit_points[1]
        sink = ir.new("java.io.File", ir.get_parameter(), ir.string("report.txt"))

        records = TaintPropagationEngine(call_graph, catalog).check_call_site(sink, file_exit)

        assert [r.parameter_index for r in records] == [1]
        assert not records[0].is_vulnerable

    def test_missing_argument_is_safe(self, ir, call_graph, catalog):
        sink = ir.call("exec", receiver_type="java.lang.Runtime")
        records = TaintPropagationEngine(call_graph, catalog).check_call_site(sink, _exit(catalog))

        assert records[0].state is FlowState.SAFE
        assert len(records[0]) == 0

    def test_trusted_marker_stops_trace(self, ir, call_graph, catalog):
        source = ir.get_parameter()
        annotations = AnnotationIndex()
        annotations.add(ir.unit, source.position.line)
        strategy = VerificationStrategy.for_catalog(catalog, annotations)

        record = TaintPropagationEngine(call_graph, catalog, strategy).check_call_site(
            ir.exec(source), _exit(catalog))[0]

        assert record.state is FlowState.SAFE

    def test_repeated_runs_give_identical_records(self, ir, call_graph, catalog):
        a = ir.local("a")
        call_graph.add_binding(ir.unit, a, ir.get_parameter())
        sink = ir.exec(ir.concat(ir.name(a), ir.call("lookup", receiver_type="com.example.Library")))
        engine = TaintPropagationEngine(call_graph, catalog)

        first = engine.check_call_site(sink, _exit(catalog))
        second = engine.check_call_site(sink, _exit(catalog))

        assert _snapshot(first) == _snapshot(second)
        assert len(first[0].vulnerable_paths()) == 2

"""
Taint Propagation Engine - backward tracing from sink arguments

Starting at an argument of an exit-point call, the engine walks the syntax
model backwards towards the argument's possible origins:

    expression -> operands                   (same record, one branch each)
    variable   -> initializer                (binding hop)
    parameter  -> arguments at call sites    (interprocedural hop)
    call       -> returned expressions       (interprocedural hop)

A path ends safe (literal, sanitizer, trusted marker, accepted category),
vulnerable (entry point reached, or a call with no source available) or
depth-exceeded. Only hops count towards the depth limit; the walk over the
parts of a single expression is bounded by the finite syntax tree.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Dict, List, Optional
import logging

from ..models import VulnerabilityKind
from ..points import ExitPoint, ParameterRule, PointCatalog
from ..syntax import (
    EXPRESSION_TYPES, ArrayInitializer, Assignment, BindingKind,
    CallExpression, CastExpression, ConditionalExpression, Expression,
    InfixExpression, InstanceCreation, Literal, MethodInvocation,
    ParenthesizedExpression, PrefixExpression, QualifiedName, SimpleName,
    UnsupportedExpression, VariableBinding,
)
from .record import DataFlowRecord
from .strategies import VerificationStrategy

if TYPE_CHECKING:
    from ..call_graph import CallGraph

logger = logging.getLogger(__name__)

# Maximum number of hops followed from a sink argument
MAXIMUM_DEPTH = 10

TraceHandler = Callable[[DataFlowRecord, ParameterRule, int, Expression], None]


class TaintPropagationEngine:
    """
    Traces sink arguments back to entry points.

    The engine only reads the call graph and the catalog; it can be re-run
    on an unchanged graph and produces the same records every time.
    """

    def __init__(self, call_graph: CallGraph, catalog: PointCatalog,
                 strategy: Optional[VerificationStrategy] = None,
                 max_depth: int = MAXIMUM_DEPTH):
        """
        Initialize the engine.

        Args:
            call_graph: Call graph of the analysed corpus
            catalog: Entry, exit and sanitization points of one vulnerability class
            strategy: Sanitizer and trusted-marker decisions (catalog defaults)
            max_depth: Maximum number of hops per path
        """
        if max_depth < 1:
            raise ValueError(f"max_depth must be positive, got {max_depth}")

        self.call_graph = call_graph
        self.catalog = catalog
        self.strategy = strategy or VerificationStrategy.for_catalog(catalog)
        self.max_depth = max_depth

        self._handlers: Dict[type, TraceHandler] = {
            Literal: self._trace_literal,
            InfixExpression: self._trace_operands,
            PrefixExpression: self._trace_operands,
            ConditionalExpression: self._trace_operands,
            Assignment: self._trace_operands,
            CastExpression: self._trace_operands,
            InstanceCreation: self._trace_operands,
            ArrayInitializer: self._trace_operands,
            ParenthesizedExpression: self._trace_operands,
            SimpleName: self._trace_simple_name,
            QualifiedName: self._trace_qualified_name,
            MethodInvocation: self._trace_invocation,
            UnsupportedExpression: self._trace_unsupported,
        }
        missing = [t.__name__ for t in EXPRESSION_TYPES if t not in self._handlers]
        if missing:
            raise TypeError(f"No trace handler for: {', '.join(missing)}")

    def check_call_site(self, call: CallExpression, exit_point: ExitPoint) -> List[DataFlowRecord]:
        """Trace every risk-relevant argument of a sink call.

        Returns one record per checked parameter; parameters whose rule is
        "ignore" are skipped.
        """
        records = []
        for index, rule in enumerate(exit_point.rules):
            if rule.ignore:
                continue
            argument = call.arguments[index] if index < len(call.arguments) else None
            record = DataFlowRecord(sink=call, parameter_index=index)
            self.trace(record, rule, 0, argument)
            records.append(record)
        return records

    def trace(self, record: DataFlowRecord, rule: ParameterRule, depth: int,
              expression: Optional[Expression]) -> DataFlowRecord:
        """Continue ``record`` backwards from ``expression``"""
        if expression is None or rule.accepts(expression):
            return record.mark_safe()

        record.append(expression)

        if depth >= self.max_depth:
            logger.debug(f"Depth limit {self.max_depth} reached at {expression.position}: {expression}")
            return record.mark_depth_exceeded()

        if self.strategy.annotation_checker.has_annotation_at_position(expression):
            logger.debug(f"Trusted marker at {expression.position}")
            return record.mark_safe()

        handler = self._handlers[type(expression)]
        handler(record, rule, depth, expression)
        return record

    def _trace_literal(self, record: DataFlowRecord, rule: ParameterRule,
                       depth: int, expression: Expression) -> None:
        record.mark_safe()

    def _trace_operands(self, record: DataFlowRecord, rule: ParameterRule,
                        depth: int, expression: Expression) -> None:
        """Any tainted operand taints the whole expression"""
        operands = expression.operands()
        if not operands:
            record.mark_safe()
            return
        for operand in operands:
            self.trace(record.branch(), rule, depth, operand)

    def _trace_simple_name(self, record: DataFlowRecord, rule: ParameterRule,
                           depth: int, expression: SimpleName) -> None:
        initializer = self.call_graph.binding_of(expression)
        if initializer is not None:
            self.trace(record, rule, depth + 1, initializer)
            return

        binding = expression.binding
        if binding is not None and binding.kind is BindingKind.PARAMETER and binding.owner is not None:
            self._trace_invokers(record, rule, depth, binding)
            return

        logger.debug(f"No value found for '{expression.identifier}' at {expression.position}")
        record.mark_safe()

    def _trace_invokers(self, record: DataFlowRecord, rule: ParameterRule,
                        depth: int, binding: VariableBinding) -> None:
        """Parameter: continue at the matching argument of every call site"""
        invokers = self.call_graph.invokers_of(binding.owner)
        if not invokers:
            logger.debug(f"No invokers of {binding.owner}")
            record.mark_safe()
            return

        for caller, call in invokers:
            argument = call.arguments[binding.index] if binding.index < len(call.arguments) else None
            self.trace(record.branch(), rule, depth + 1, argument)

    def _trace_qualified_name(self, record: DataFlowRecord, rule: ParameterRule,
                              depth: int, expression: QualifiedName) -> None:
        self.trace(record, rule, depth, expression.name)

    def _trace_invocation(self, record: DataFlowRecord, rule: ParameterRule,
                          depth: int, expression: MethodInvocation) -> None:
        # Priority: sanitizer, entry point, source available, unknown
        if self.strategy.sanitization_matcher.is_sanitization_point(expression):
            logger.debug(f"Sanitized by {expression.name} at {expression.position}")
            record.mark_safe()
            return

        entry_point = self.catalog.match_entry_point(expression)
        if entry_point is not None:
            record.mark_vulnerable(VulnerabilityKind.ENTRY_POINT, f"Entry point method: {entry_point}")
            return

        declaration = self.call_graph.resolve_declaration(expression.position.unit, expression)
        if declaration is not None and declaration.body is not None:
            returned = declaration.return_expressions()
            if not returned:
                record.mark_safe()
                return
            for expression_returned in returned:
                self.trace(record.branch(), rule, depth + 1, expression_returned)
            return

        record.mark_vulnerable(VulnerabilityKind.UNKNOWN, f"unresolvable call: {expression.name}")

    def _trace_unsupported(self, record: DataFlowRecord, rule: ParameterRule,
                           depth: int, expression: UnsupportedExpression) -> None:
        logger.debug(f"Unhandled {expression.node_type or 'expression'} at {expression.position}: {expression}")
        record.mark_safe()

"""
Data-flow record - the witness of one backward taint trace

A record holds the ordered path of expressions visited while tracing a sink
argument back towards its origin, and a terminal state once the trace of
that path is decided. Where the trace fans out (several operands, several
call sites of a parameter, several return statements of a callee) each
alternative continues in a child record that starts with a copy of the
parent's path.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional, Tuple

from ..models import VulnerabilityKind
from ..syntax import CallExpression, Expression


class FlowState(Enum):
    PENDING = "pending"
    SAFE = "safe"
    VULNERABLE = "vulnerable"
    DEPTH_EXCEEDED = "depth_exceeded"


@dataclass(eq=False)
class DataFlowRecord:
    """Append-only backward path plus its classification"""
    sink: Optional[CallExpression] = None
    parameter_index: Optional[int] = None
    nodes: List[Expression] = field(default_factory=list)
    state: FlowState = FlowState.PENDING
    kind: Optional[VulnerabilityKind] = None
    message: Optional[str] = None
    children: List[DataFlowRecord] = field(default_factory=list)

    @property
    def path(self) -> Tuple[Expression, ...]:
        return tuple(self.nodes)

    @property
    def is_terminal(self) -> bool:
        return self.state is not FlowState.PENDING

    @property
    def is_vulnerable(self) -> bool:
        """True if this record or any descendant is vulnerable"""
        if self.state is FlowState.VULNERABLE:
            return True
        return any(child.is_vulnerable for child in self.children)

    def append(self, node: Expression) -> DataFlowRecord:
        if self.is_terminal:
            raise ValueError(f"Cannot extend a {self.state.value} data-flow record")
        self.nodes.append(node)
        return self

    def branch(self) -> DataFlowRecord:
        """Start an alternative path continuing from this one"""
        if self.is_terminal:
            raise ValueError(f"Cannot branch a {self.state.value} data-flow record")
        child = DataFlowRecord(
            sink=self.sink,
            parameter_index=self.parameter_index,
            nodes=list(self.nodes),
        )
        self.children.append(child)
        return child

    # Terminal transitions: the first one wins, later calls are no-ops.

    def mark_vulnerable(self, kind: VulnerabilityKind, message: str) -> DataFlowRecord:
        if not self.is_terminal:
            self.state = FlowState.VULNERABLE
            self.kind = kind
            self.message = message
        return self

    def mark_depth_exceeded(self) -> DataFlowRecord:
        if not self.is_terminal:
            self.state = FlowState.DEPTH_EXCEEDED
        return self

    def mark_safe(self) -> DataFlowRecord:
        if not self.is_terminal:
            self.state = FlowState.SAFE
        return self

    def walk(self) -> Iterator[DataFlowRecord]:
        """This record and all descendants, depth first"""
        yield self
        for child in self.children:
            yield from child.walk()

    def vulnerable_paths(self) -> List[DataFlowRecord]:
        """Records that were themselves marked vulnerable"""
        return [r for r in self.walk() if r.state is FlowState.VULNERABLE]

    def __len__(self) -> int:
        return len(self.nodes)

    def __repr__(self) -> str:
        steps = " <- ".join(node.text for node in self.nodes)
        return f"DataFlowRecord({self.state.value}, [{steps}], children={len(self.children)})"

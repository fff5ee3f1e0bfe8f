"""
Verifier - runs the taint engine over every sink call site of one vulnerability class
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from .call_graph import CallGraph
from .cancellation import CancellationToken
from .dataflow.engine import MAXIMUM_DEPTH, TaintPropagationEngine
from .dataflow.strategies import VerificationStrategy
from .models import VulnerabilityClass
from .points import PointCatalog
from .reporters import ProblemReporter

logger = logging.getLogger(__name__)


class Verifier:
    """
    Checks one vulnerability class against the call graph.

    For each invocation matching an exit point of the catalog, every
    risk-relevant argument is traced backwards; vulnerable records are
    handed to the reporter, one problem per sink parameter.
    """

    def __init__(self, vulnerability: VulnerabilityClass, catalog: PointCatalog,
                 call_graph: CallGraph, reporter: ProblemReporter,
                 strategy: Optional[VerificationStrategy] = None,
                 max_depth: int = MAXIMUM_DEPTH):
        self.vulnerability = vulnerability
        self.catalog = catalog
        self.call_graph = call_graph
        self.reporter = reporter
        self.engine = TaintPropagationEngine(call_graph, catalog, strategy, max_depth)

    @property
    def name(self) -> str:
        return self.vulnerability.display_name

    def run(self, units: Optional[Iterable[str]] = None,
            cancellation: Optional[CancellationToken] = None) -> int:
        """Verify ``units`` (all units when omitted); returns the problems reported"""
        units = list(units) if units is not None else self.call_graph.unit_paths
        reported = 0

        for unit in units:
            if cancellation is not None and cancellation.is_cancelled:
                logger.info(f"{self.name}: cancelled")
                break
            try:
                reported += self._verify_unit(unit, cancellation)
            except Exception as e:
                logger.error(f"{self.name}: failed to verify {unit}: {e}")

        logger.debug(f"{self.name}: {reported} problem(s) in {len(units)} unit(s)")
        return reported

    def _verify_unit(self, unit: str, cancellation: Optional[CancellationToken]) -> int:
        reported = 0
        for method in self.call_graph.methods(unit):
            if cancellation is not None and cancellation.is_cancelled:
                break
            for call in self.call_graph.invocations(unit, method.signature):
                exit_point = self.catalog.match_exit_point(call)
                if exit_point is None:
                    continue
                try:
                    records = self.engine.check_call_site(call, exit_point)
                except Exception as e:
                    logger.error(f"{self.name}: failed to check {call} at {call.position}: {e}")
                    continue
                for record in records:
                    if record.is_vulnerable and self.reporter.add_problem(
                            self.vulnerability, unit, record) is not None:
                        reported += 1
        return reported

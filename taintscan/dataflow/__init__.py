"""
Backward taint tracing for taintscan

This package provides:
- DataFlowRecord: the path and classification of one backward trace
- VerificationStrategy: injected sanitizer and trusted-marker decisions
- TaintPropagationEngine: the depth-bounded recursive tracer
"""

from .record import (
    DataFlowRecord,
    FlowState,
)

from .strategies import (
    AnnotationChecker,
    AnnotationIndex,
    CatalogSanitizationMatcher,
    NoAnnotations,
    SanitizationMatcher,
    VerificationStrategy,
)

from .engine import (
    MAXIMUM_DEPTH,
    TaintPropagationEngine,
)

__all__ = [
    # Records
    'DataFlowRecord',
    'FlowState',
    # Strategies
    'AnnotationChecker',
    'AnnotationIndex',
    'CatalogSanitizationMatcher',
    'NoAnnotations',
    'SanitizationMatcher',
    'VerificationStrategy',
    # Engine
    'MAXIMUM_DEPTH',
    'TaintPropagationEngine',
]

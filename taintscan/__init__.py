"""
taintscan - Static taint analysis for Java web applications.

Traces the arguments of dangerous calls (SQL execution, command execution,
response writers, file access, ...) backwards through variables, method
parameters and return values, and reports those that can originate from
untrusted input without passing a sanitizer.

Components:
    1. Java front end - tree-sitter parse trees lowered to a syntax model
    2. Call Graph - declarations, invocations and variable bindings per file
    3. Point Catalog - entry, exit and sanitization points (YAML knowledge base)
    4. Taint Propagation Engine - depth-bounded backward tracing
    5. Verifiers and reporters - console, JSON, CSV and SARIF output

Vulnerability classes:
    SQL injection, command injection, cross-site scripting, path traversal,
    HTTP response splitting, unvalidated redirects, log forging,
    reflection injection, cookie poisoning

Quick Start:
    >>> from taintscan import create_scanner
    >>> scanner = create_scanner()
    >>> result = scanner.scan("/path/to/project")
    >>> print(f"Found {len(result.findings)} vulnerabilities")
"""

__version__ = "0.3.0"
__author__ = "taintscan"

from .models import (
    Confidence, Finding, Location, ScanResult, Severity,
    VulnerabilityClass, VulnerabilityKind,
)
from .call_graph import CallGraph, CallGraphBuilder
from .catalog_loader import CatalogError, CatalogLoader
from .points import EntryPoint, ExitPoint, ParameterRule, PointCatalog, SanitizationPoint
from .dataflow import DataFlowRecord, FlowState, TaintPropagationEngine, VerificationStrategy
from .reporters import ProblemReporter, SARIFReporter, get_reporter
from .verifier import Verifier
from .cancellation import CancellationToken
from .config import ConfigError, ScanConfig
from .scanner import TaintScanner, create_scanner
from .profiling import PerformanceMetrics, profile

__all__ = [
    # Core
    'TaintScanner',
    'create_scanner',
    'ScanConfig',
    'ConfigError',
    'CancellationToken',
    # Models
    'Finding',
    'Location',
    'ScanResult',
    'Severity',
    'Confidence',
    'VulnerabilityClass',
    'VulnerabilityKind',
    # Analysis
    'CallGraph',
    'CallGraphBuilder',
    'CatalogLoader',
    'CatalogError',
    'PointCatalog',
    'EntryPoint',
    'ExitPoint',
    'SanitizationPoint',
    'ParameterRule',
    'DataFlowRecord',
    'FlowState',
    'TaintPropagationEngine',
    'VerificationStrategy',
    'Verifier',
    # Reporting
    'ProblemReporter',
    'SARIFReporter',
    'get_reporter',
    # Profiling
    'PerformanceMetrics',
    'profile',
]

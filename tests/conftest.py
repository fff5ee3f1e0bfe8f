"""Shared test fixtures for the taintscan test suite."""

import sys
import pytest
from pathlib import Path

# Ensure taintscan is importable
sys.path.insert(0, str(Path(__file__).parent.parent))

from taintscan.call_graph import CallGraph
from taintscan.models import (
    Confidence, Finding, Location, ScanResult, Severity,
    VulnerabilityClass, VulnerabilityKind,
)
from taintscan.points import EntryPoint, ExitPoint, ParameterRule, PointCatalog, SanitizationPoint
from taintscan.signatures import STRING_TYPE
from taintscan.syntax import (
    BindingKind, Block, InfixExpression, InstanceCreation, Literal,
    MethodDeclaration, MethodInvocation, MethodSignature, NodeKind,
    Position, QualifiedName, ReturnStatement, SimpleName, SourceUnit,
    VariableBinding,
)

FIXTURES_DIR = Path(__file__).parent / "fixtures"

REQUEST_TYPE = "javax.servlet.ServletRequest"
RUNTIME_TYPE = "java.lang.Runtime"


class SyntaxFactory:
    """Builds syntax model nodes for one unit, one line per node"""

    def __init__(self, unit: str = "/src/Test.java"):
        self.unit = unit
        self.line = 0

    def position(self) -> Position:
        self.line += 1
        return Position(self.unit, self.line, 1)

    def string(self, value: str) -> Literal:
        return Literal(f'"{value}"', self.position(), literal_kind=NodeKind.STRING_LITERAL)

    def number(self, value: int) -> Literal:
        return Literal(str(value), self.position(), literal_kind=NodeKind.NUMBER_LITERAL)

    def null(self) -> Literal:
        return Literal("null", self.position(), literal_kind=NodeKind.NULL_LITERAL)

    def local(self, identifier: str, declared_type: str = STRING_TYPE,
              owner: MethodSignature = None) -> VariableBinding:
        return VariableBinding(self.unit, identifier, BindingKind.LOCAL, declared_type,
                               owner=owner, line=self.line + 1)

    def field(self, identifier: str, declaring_type: str, declared_type: str = STRING_TYPE) -> VariableBinding:
        return VariableBinding(self.unit, identifier, BindingKind.FIELD, declared_type,
                               declaring_type=declaring_type, line=self.line + 1)

    def parameter(self, identifier: str, owner: MethodSignature, index: int,
                  declared_type: str = STRING_TYPE) -> VariableBinding:
        return VariableBinding(self.unit, identifier, BindingKind.PARAMETER, declared_type,
                               owner=owner, index=index, line=self.line + 1)

    def name(self, binding_or_identifier) -> SimpleName:
        if isinstance(binding_or_identifier, VariableBinding):
            binding = binding_or_identifier
            return SimpleName(binding.name, self.position(), identifier=binding.name, binding=binding)
        return SimpleName(binding_or_identifier, self.position(), identifier=binding_or_identifier)

    def qualified(self, qualifier, name: SimpleName) -> QualifiedName:
        return QualifiedName(f"{qualifier.text}.{name.text}", self.position(),
                             qualifier=qualifier, name=name)

    def call(self, name: str, *arguments, receiver_type: str = None,
             return_type: str = None) -> MethodInvocation:
        text = f"{name}({', '.join(a.text for a in arguments)})"
        return MethodInvocation(text, self.position(), name=name, arguments=list(arguments),
                                receiver_type=receiver_type, return_type=return_type)

    def new(self, type_name: str, *arguments) -> InstanceCreation:
        text = f"new {type_name}({', '.join(a.text for a in arguments)})"
        return InstanceCreation(text, self.position(), type_name=type_name, arguments=list(arguments))

    def concat(self, left, right) -> InfixExpression:
        return InfixExpression(f"{left.text} + {right.text}", self.position(),
                               operator="+", left=left, right=right)

    def get_parameter(self, name: str = "id") -> MethodInvocation:
        return self.call("getParameter", self.string(name),
                         receiver_type=REQUEST_TYPE, return_type=STRING_TYPE)

    def exec(self, argument) -> MethodInvocation:
        return self.call("exec", argument, receiver_type=RUNTIME_TYPE)

    def method(self, signature: MethodSignature, *returns, parameter_names=()) -> MethodDeclaration:
        position = self.position()
        body = Block(position, [ReturnStatement(e.position, e) for e in returns])
        return MethodDeclaration(signature, position, list(parameter_names), STRING_TYPE, body)

    def source_unit(self, methods, invocations=None, bindings=None) -> SourceUnit:
        return SourceUnit(
            path=self.unit,
            methods=list(methods),
            invocations=dict(invocations or {}),
            bindings=dict(bindings or {}),
        )


@pytest.fixture
def fixtures_dir():
    """Path to test fixtures directory."""
    return FIXTURES_DIR


@pytest.fixture
def ir():
    """Syntax node factory for a single unit."""
    return SyntaxFactory()


@pytest.fixture
def call_graph():
    return CallGraph()


@pytest.fixture
def catalog():
    """A small command injection catalog."""
    return PointCatalog(
        vulnerability=VulnerabilityClass.COMMAND_INJECTION,
        entry_points=(
            EntryPoint(REQUEST_TYPE, "getParameter", (STRING_TYPE,)),
            EntryPoint("java.lang.System", "getenv", (STRING_TYPE,)),
        ),
        exit_points=(
            ExitPoint(RUNTIME_TYPE, "exec", (STRING_TYPE,), (ParameterRule.literal_only(),)),
            ExitPoint("java.io.File", "File", ("Object", STRING_TYPE),
                      (ParameterRule.ignored(), ParameterRule.literal_only())),
        ),
        sanitization_points=(
            SanitizationPoint("java.lang.Integer", "parseInt", (STRING_TYPE,)),
        ),
    )


@pytest.fixture
def sample_location():
    """A sample code location."""
    return Location(
        file_path="/src/main/java/com/example/UserService.java",
        line_number=42,
        column=10,
        snippet='stmt.executeQuery("SELECT * FROM users WHERE id=" + userId)'
    )


@pytest.fixture
def sample_finding(sample_location):
    """A fully populated SQL injection finding."""
    return Finding(
        vulnerability=VulnerabilityClass.SQL_INJECTION,
        kind=VulnerabilityKind.ENTRY_POINT,
        message="Entry point method: javax.servlet.ServletRequest.getParameter",
        severity=Severity.CRITICAL,
        confidence=Confidence.HIGH,
        location=sample_location,
        parameter_index=0,
        paths=[[
            sample_location,
            Location(sample_location.file_path, 40, 25, 'request.getParameter("id")'),
        ]],
    )


@pytest.fixture
def sample_finding_high():
    """A high severity finding from an unresolvable call."""
    return Finding(
        vulnerability=VulnerabilityClass.PATH_TRAVERSAL,
        kind=VulnerabilityKind.UNKNOWN,
        message="unresolvable call: lookupName",
        severity=Severity.HIGH,
        confidence=Confidence.MEDIUM,
        location=Location(
            file_path="/src/main/java/com/example/ReportService.java",
            line_number=15,
            snippet='new File(base, lookupName(id))'
        ),
        parameter_index=1,
    )


@pytest.fixture
def sample_finding_low():
    """A low severity finding."""
    return Finding(
        vulnerability=VulnerabilityClass.LOG_FORGING,
        kind=VulnerabilityKind.ENTRY_POINT,
        message="Entry point method: javax.servlet.http.HttpServletRequest.getHeader",
        severity=Severity.LOW,
        confidence=Confidence.HIGH,
        location=Location(
            file_path="/src/main/java/com/example/AuthService.java",
            line_number=88,
            snippet='logger.info("User login: " + username)'
        ),
        parameter_index=0,
    )


@pytest.fixture
def sample_scan_result(sample_finding, sample_finding_high, sample_finding_low):
    """A scan result with mixed severity findings."""
    return ScanResult(
        target_path="/src/main/java/com/example",
        findings=[sample_finding, sample_finding_high, sample_finding_low],
        files_scanned=25,
        vulnerabilities_checked=["sql_injection", "path_traversal", "log_forging"],
        scan_duration_seconds=1.5,
    )


@pytest.fixture
def java_project(tmp_path):
    """Copy the Java fixtures into a temporary project directory."""
    project = tmp_path / "project"
    project.mkdir()
    for source in FIXTURES_DIR.glob("*.java"):
        (project / source.name).write_text(source.read_text())
    return project

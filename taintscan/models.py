"""
Data models for taintscan.

This module defines the core data structures shared by the analysis and
reporting layers:

- Severity/Confidence: Enums for finding classification
- VulnerabilityClass: The vulnerability families a verifier checks for
- VulnerabilityKind: How a vulnerable data flow was confirmed
- Finding/Location: Detected vulnerability information
- ScanResult: Complete scan output
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Dict, Any, Iterator


class Severity(Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"

    @property
    def priority(self) -> int:
        priorities = {
            Severity.CRITICAL: 5,
            Severity.HIGH: 4,
            Severity.MEDIUM: 3,
            Severity.LOW: 2,
            Severity.INFO: 1,
        }
        return priorities[self]


class Confidence(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class VulnerabilityKind(Enum):
    """How a data flow was classified as vulnerable"""
    ENTRY_POINT = "entry_point"  # traced back to a registered taint source
    UNKNOWN = "unknown"          # traced into a call with no source available


class VulnerabilityClass(Enum):
    """Vulnerability families; each has its own exit-point catalog"""
    COOKIE_POISONING = "cookie_poisoning"
    CROSS_SITE_SCRIPTING = "cross_site_scripting"
    SQL_INJECTION = "sql_injection"
    UNVALIDATED_REDIRECTING = "unvalidated_redirecting"
    COMMAND_INJECTION = "command_injection"
    HTTP_RESPONSE_SPLITTING = "http_response_splitting"
    LOG_FORGING = "log_forging"
    PATH_TRAVERSAL = "path_traversal"
    REFLECTION_INJECTION = "reflection_injection"

    @property
    def verifier_id(self) -> int:
        ids = {
            VulnerabilityClass.COOKIE_POISONING: 1,
            VulnerabilityClass.CROSS_SITE_SCRIPTING: 2,
            VulnerabilityClass.SQL_INJECTION: 4,
            VulnerabilityClass.UNVALIDATED_REDIRECTING: 5,
            VulnerabilityClass.COMMAND_INJECTION: 6,
            VulnerabilityClass.HTTP_RESPONSE_SPLITTING: 7,
            VulnerabilityClass.LOG_FORGING: 8,
            VulnerabilityClass.PATH_TRAVERSAL: 9,
            VulnerabilityClass.REFLECTION_INJECTION: 10,
        }
        return ids[self]

    @property
    def display_name(self) -> str:
        return self.value.replace('_', ' ').title()

    @property
    def rule_id(self) -> str:
        return f"TAINT-{self.verifier_id:03d}"

    @property
    def cwe(self) -> str:
        cwes = {
            VulnerabilityClass.COOKIE_POISONING: "CWE-472",
            VulnerabilityClass.CROSS_SITE_SCRIPTING: "CWE-79",
            VulnerabilityClass.SQL_INJECTION: "CWE-89",
            VulnerabilityClass.UNVALIDATED_REDIRECTING: "CWE-601",
            VulnerabilityClass.COMMAND_INJECTION: "CWE-78",
            VulnerabilityClass.HTTP_RESPONSE_SPLITTING: "CWE-113",
            VulnerabilityClass.LOG_FORGING: "CWE-117",
            VulnerabilityClass.PATH_TRAVERSAL: "CWE-22",
            VulnerabilityClass.REFLECTION_INJECTION: "CWE-470",
        }
        return cwes[self]

    @property
    def severity(self) -> Severity:
        severities = {
            VulnerabilityClass.COOKIE_POISONING: Severity.MEDIUM,
            VulnerabilityClass.CROSS_SITE_SCRIPTING: Severity.HIGH,
            VulnerabilityClass.SQL_INJECTION: Severity.CRITICAL,
            VulnerabilityClass.UNVALIDATED_REDIRECTING: Severity.MEDIUM,
            VulnerabilityClass.COMMAND_INJECTION: Severity.CRITICAL,
            VulnerabilityClass.HTTP_RESPONSE_SPLITTING: Severity.MEDIUM,
            VulnerabilityClass.LOG_FORGING: Severity.LOW,
            VulnerabilityClass.PATH_TRAVERSAL: Severity.HIGH,
            VulnerabilityClass.REFLECTION_INJECTION: Severity.HIGH,
        }
        return severities[self]

    @classmethod
    def from_name(cls, name: str) -> VulnerabilityClass:
        """Look up a class by value, member name or verifier id"""
        key = name.strip().lower().replace('-', '_')
        for member in cls:
            if key in (member.value, str(member.verifier_id)):
                return member
        raise ValueError(f"Unknown vulnerability class: {name}")


@dataclass
class Location:
    """Location of a finding (or of one step of its data flow)"""
    file_path: str
    line_number: int
    column: Optional[int] = None
    snippet: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.file_path}:{self.line_number}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'file_path': self.file_path,
            'line_number': self.line_number,
            'column': self.column,
            'snippet': self.snippet,
        }


@dataclass
class Finding:
    """A confirmed tainted flow into a sink parameter"""
    vulnerability: VulnerabilityClass
    kind: VulnerabilityKind
    message: str
    severity: Severity
    confidence: Confidence
    location: Location
    parameter_index: Optional[int] = None
    paths: List[List[Location]] = field(default_factory=list)

    @property
    def rule_id(self) -> str:
        return self.vulnerability.rule_id

    @property
    def rule_name(self) -> str:
        return self.vulnerability.display_name

    @property
    def cwe(self) -> str:
        return self.vulnerability.cwe

    @property
    def description(self) -> str:
        argument = "" if self.parameter_index is None else f" (argument {self.parameter_index + 1})"
        return f"{self.rule_name}: tainted data reaches sink{argument}. {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert finding to dictionary"""
        return {
            'rule_id': self.rule_id,
            'rule_name': self.rule_name,
            'vulnerability': self.vulnerability.value,
            'kind': self.kind.value,
            'message': self.message,
            'description': self.description,
            'severity': self.severity.value,
            'confidence': self.confidence.value,
            'file_path': self.location.file_path,
            'line_number': self.location.line_number,
            'snippet': self.location.snippet,
            'parameter_index': self.parameter_index,
            'cwe': self.cwe,
            'paths': [[step.to_dict() for step in path] for path in self.paths],
        }


@dataclass
class ScanResult:
    """Result of a taint scan"""
    target_path: str
    findings: List[Finding] = field(default_factory=list)
    files_scanned: int = 0
    vulnerabilities_checked: List[str] = field(default_factory=list)
    scan_duration_seconds: float = 0.0
    errors: List[str] = field(default_factory=list)
    cancelled: bool = False
    metrics: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @property
    def summary(self) -> Dict[str, int]:
        """Get count by severity"""
        counts = {s.value: 0 for s in Severity}
        for finding in self.findings:
            counts[finding.severity.value] += 1
        return counts

    def get_findings_by_severity(self, severity: Severity) -> List[Finding]:
        """Filter findings by severity"""
        return [f for f in self.findings if f.severity == severity]

    def get_findings_by_vulnerability(self, vulnerability: VulnerabilityClass) -> List[Finding]:
        """Filter findings by vulnerability class"""
        return [f for f in self.findings if f.vulnerability == vulnerability]

    def sort_findings(self) -> None:
        """Sort findings by severity (critical first), then by file."""
        self.findings.sort(
            key=lambda f: (-f.severity.priority, f.location.file_path, f.location.line_number)
        )

    def filter_by_file(self, file_path: str) -> List[Finding]:
        """Get findings for a specific file."""
        return [f for f in self.findings if f.location.file_path == file_path]

    def get_affected_files(self) -> List[str]:
        """Get sorted list of unique files with findings."""
        return sorted(set(f.location.file_path for f in self.findings))

    def has_critical_findings(self) -> bool:
        """Check if scan has any critical findings."""
        return any(f.severity == Severity.CRITICAL for f in self.findings)

    def __iter__(self) -> Iterator[Finding]:
        """Iterate over findings."""
        return iter(self.findings)

    def __len__(self) -> int:
        """Number of findings."""
        return len(self.findings)

    def to_dict(self) -> Dict[str, Any]:
        """Convert scan result to dictionary."""
        return {
            'target_path': self.target_path,
            'findings': [f.to_dict() for f in self.findings],
            'files_scanned': self.files_scanned,
            'vulnerabilities_checked': self.vulnerabilities_checked,
            'scan_duration_seconds': self.scan_duration_seconds,
            'errors': self.errors,
            'cancelled': self.cancelled,
            'summary': self.summary,
        }

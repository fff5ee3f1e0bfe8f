"""
Report generators for taint scan results

ProblemReporter turns vulnerable data-flow records into findings; the
output reporters render a ScanResult as console text, JSON, CSV or SARIF.
"""

import csv
import io
import json
import logging
import sys
from datetime import datetime
from typing import List, Optional

from . import __version__
from .dataflow.record import DataFlowRecord
from .models import (
    Confidence, Finding, Location, ScanResult, Severity,
    VulnerabilityClass, VulnerabilityKind,
)
from .syntax import Expression

logger = logging.getLogger(__name__)


def _location(expression: Expression) -> Location:
    position = expression.position
    return Location(
        file_path=position.unit,
        line_number=position.line,
        column=position.column,
        snippet=expression.text.strip(),
    )


class ProblemReporter:
    """Collects findings for confirmed vulnerable records"""

    def __init__(self):
        self.findings: List[Finding] = []

    def add_problem(self, vulnerability: VulnerabilityClass, unit: str,
                    record: DataFlowRecord) -> Optional[Finding]:
        """Report one sink parameter whose record (or a descendant) is vulnerable"""
        witnesses = record.vulnerable_paths()
        if not witnesses or record.sink is None:
            return None

        entry_witnesses = [w for w in witnesses if w.kind is VulnerabilityKind.ENTRY_POINT]
        if entry_witnesses:
            kind, confidence, message = (
                VulnerabilityKind.ENTRY_POINT, Confidence.HIGH, entry_witnesses[0].message)
        else:
            kind, confidence, message = (
                VulnerabilityKind.UNKNOWN, Confidence.MEDIUM, witnesses[0].message)

        location = _location(record.sink)
        location.file_path = unit

        finding = Finding(
            vulnerability=vulnerability,
            kind=kind,
            message=message or "",
            severity=vulnerability.severity,
            confidence=confidence,
            location=location,
            parameter_index=record.parameter_index,
            paths=[[_location(node) for node in witness.nodes] for witness in witnesses],
        )
        self.findings.append(finding)
        logger.info(f"{vulnerability.display_name} at {location}: {finding.message}")
        return finding

    def clear(self) -> None:
        self.findings.clear()

    def __len__(self) -> int:
        return len(self.findings)


class BaseReporter:
    """Base class for reporters"""

    def report(self, result: ScanResult, output: Optional[str] = None) -> str:
        """Generate report and optionally write to file"""
        raise NotImplementedError

    def _write_output(self, content: str, output: Optional[str]) -> None:
        """Write content to file or stdout"""
        if output:
            with open(output, 'w', encoding='utf-8') as f:
                f.write(content)
        else:
            print(content)


class ConsoleReporter(BaseReporter):
    """Terminal report, one block per finding grouped by severity"""

    SEVERITY_COLORS = {
        Severity.CRITICAL: '\033[91m',
        Severity.HIGH: '\033[93m',
        Severity.MEDIUM: '\033[94m',
        Severity.LOW: '\033[96m',
        Severity.INFO: '\033[90m',
    }
    BOLD = '\033[1m'
    GREEN = '\033[92m'
    RESET = '\033[0m'
    RULE = "=" * 60

    def __init__(self, use_colors: bool = True, verbose: bool = False):
        self.use_colors = use_colors and sys.stdout.isatty()
        self.verbose = verbose

    def _paint(self, text: str, code: str) -> str:
        return f"{code}{text}{self.RESET}" if self.use_colors else text

    def report(self, result: ScanResult, output: Optional[str] = None) -> str:
        lines = ["", self._paint(self.RULE, self.BOLD),
                 self._paint("  TAINT SCAN RESULTS", self.BOLD),
                 self._paint(self.RULE, self.BOLD), ""]
        lines.extend([
            f"Target: {result.target_path}",
            f"Files scanned: {result.files_scanned}",
            f"Vulnerability classes: {len(result.vulnerabilities_checked)}",
            f"Scan duration: {result.scan_duration_seconds:.2f} seconds",
        ])
        if result.cancelled:
            lines.append(self._paint("Scan cancelled, results are partial",
                                     self.SEVERITY_COLORS[Severity.HIGH]))

        lines += ["", self._paint("SUMMARY BY SEVERITY:", self.BOLD)]
        for severity, count in result.summary.items():
            if count:
                label = self._paint(severity.upper(), self.SEVERITY_COLORS[Severity(severity)])
                lines.append(f"  {label}: {count}")
        lines.append("")

        if result.findings:
            lines.append(self._paint(f"FINDINGS ({len(result.findings)} total):", self.BOLD))
            lines.append("-" * 60)
            for severity in Severity:
                findings = result.get_findings_by_severity(severity)
                if findings:
                    lines += ["", self._paint(f"[{severity.value.upper()}]", self.SEVERITY_COLORS[severity])]
                    for finding in findings:
                        lines.extend(self._finding_lines(finding))
        else:
            lines.append(self._paint("No tainted data flows found!", self.GREEN))

        if result.errors:
            lines += ["", self._paint("ERRORS:", self.SEVERITY_COLORS[Severity.CRITICAL])]
            lines.extend(f"  - {error}" for error in result.errors)

        lines += ["", self._paint(self.RULE, self.BOLD)]
        content = "\n".join(lines)
        self._write_output(content, output)
        return content

    def _finding_lines(self, finding: Finding) -> List[str]:
        lines = [
            "",
            f"  {self._paint(finding.rule_id, self.BOLD)}: {finding.rule_name}",
            f"  Location: {finding.location}",
        ]
        if finding.location.snippet:
            lines.append(f"  Sink: {finding.location.snippet[:80]}")
        lines.append(f"  Source: {finding.message}")
        if self.verbose:
            lines.append(f"  Kind: {finding.kind.value} ({finding.confidence.value} confidence)")
            lines.append(f"  CWE: {finding.cwe}")
            for number, path in enumerate(finding.paths, 1):
                steps = " <- ".join(step.snippet or str(step) for step in path)
                lines.append(f"  Path {number}: {steps[:200]}")
        return lines


class CSVReporter(BaseReporter):
    """CSV format reporter"""

    COLUMNS = [
        'finding_id', 'rule_id', 'rule_name', 'severity', 'confidence', 'kind',
        'file_path', 'line_number', 'parameter_index', 'cwe', 'message',
        'snippet', 'path_count',
    ]

    def report(self, result: ScanResult, output: Optional[str] = None) -> str:
        """Generate CSV report"""
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=self.COLUMNS)
        writer.writeheader()

        for idx, finding in enumerate(result.findings, 1):
            writer.writerow({
                'finding_id': f"F{idx:04d}",
                'rule_id': finding.rule_id,
                'rule_name': finding.rule_name,
                'severity': finding.severity.value,
                'confidence': finding.confidence.value,
                'kind': finding.kind.value,
                'file_path': finding.location.file_path,
                'line_number': finding.location.line_number,
                'parameter_index': '' if finding.parameter_index is None else finding.parameter_index,
                'cwe': finding.cwe,
                'message': finding.message,
                'snippet': finding.location.snippet or '',
                'path_count': len(finding.paths),
            })

        content = buffer.getvalue()

        if output:
            with open(output, 'w', encoding='utf-8', newline='') as f:
                f.write(content)

        return content


class JSONReporter(BaseReporter):
    """JSON format reporter"""

    def report(self, result: ScanResult, output: Optional[str] = None) -> str:
        """Generate JSON report"""
        report_data = {
            'scan_info': {
                'target': result.target_path,
                'timestamp': datetime.now().isoformat(),
                'files_scanned': result.files_scanned,
                'vulnerabilities_checked': result.vulnerabilities_checked,
                'duration_seconds': result.scan_duration_seconds,
                'cancelled': result.cancelled,
            },
            'summary': result.summary,
            'total_findings': len(result.findings),
            'findings': [f.to_dict() for f in result.findings],
            'errors': result.errors,
        }

        content = json.dumps(report_data, indent=2)
        self._write_output(content, output)
        return content


class SARIFReporter(BaseReporter):
    """SARIF format reporter (Static Analysis Results Interchange Format)"""

    SARIF_VERSION = "2.1.0"
    SCHEMA_URI = "https://raw.githubusercontent.com/oasis-tcs/sarif-spec/master/Schemata/sarif-schema-2.1.0.json"

    def report(self, result: ScanResult, output: Optional[str] = None) -> str:
        """Generate SARIF report"""
        rules = {}
        for finding in result.findings:
            if finding.rule_id not in rules:
                rules[finding.rule_id] = {
                    'id': finding.rule_id,
                    'name': finding.vulnerability.value,
                    'shortDescription': {'text': finding.rule_name},
                    'fullDescription': {
                        'text': f"Untrusted data reaches a {finding.rule_name.lower()} sink"
                    },
                    'properties': {
                        'tags': ['security', finding.cwe],
                        'security-severity': self._severity_to_score(finding.severity),
                        'cwe': finding.cwe,
                    }
                }

        results = []
        for finding in result.findings:
            sarif_result = {
                'ruleId': finding.rule_id,
                'level': self._severity_to_level(finding.severity),
                'message': {'text': finding.description},
                'locations': [self._physical_location(finding.location)],
                'properties': {
                    'kind': finding.kind.value,
                    'confidence': finding.confidence.value,
                },
            }

            if finding.paths:
                sarif_result['codeFlows'] = [
                    {
                        'threadFlows': [{
                            'locations': [
                                {'location': self._physical_location(step)}
                                for step in reversed(path)
                            ]
                        }]
                    }
                    for path in finding.paths
                ]

            results.append(sarif_result)

        sarif = {
            '$schema': self.SCHEMA_URI,
            'version': self.SARIF_VERSION,
            'runs': [{
                'tool': {
                    'driver': {
                        'name': 'taintscan',
                        'version': __version__,
                        'rules': list(rules.values()),
                    }
                },
                'results': results,
                'invocations': [{
                    'executionSuccessful': len(result.errors) == 0,
                    'toolExecutionNotifications': [
                        {'message': {'text': e}, 'level': 'error'}
                        for e in result.errors
                    ]
                }]
            }]
        }

        content = json.dumps(sarif, indent=2)
        self._write_output(content, output)
        return content

    def _physical_location(self, location: Location) -> dict:
        region = {'startLine': location.line_number}
        if location.column:
            region['startColumn'] = location.column
        if location.snippet:
            region['snippet'] = {'text': location.snippet}
        return {
            'physicalLocation': {
                'artifactLocation': {'uri': location.file_path},
                'region': region,
            }
        }

    def _severity_to_level(self, severity: Severity) -> str:
        """Convert severity to SARIF level"""
        mapping = {
            Severity.CRITICAL: 'error',
            Severity.HIGH: 'error',
            Severity.MEDIUM: 'warning',
            Severity.LOW: 'note',
            Severity.INFO: 'note',
        }
        return mapping.get(severity, 'warning')

    def _severity_to_score(self, severity: Severity) -> str:
        """Convert severity to security-severity score"""
        mapping = {
            Severity.CRITICAL: '9.0',
            Severity.HIGH: '7.0',
            Severity.MEDIUM: '5.0',
            Severity.LOW: '3.0',
            Severity.INFO: '1.0',
        }
        return mapping.get(severity, '5.0')


REPORTERS = {
    'console': ConsoleReporter,
    'csv': CSVReporter,
    'json': JSONReporter,
    'sarif': SARIFReporter,
}


def get_reporter(format: str, **kwargs) -> BaseReporter:
    """Factory function to get reporter by format"""
    reporter_class = REPORTERS.get(format.lower())
    if not reporter_class:
        raise ValueError(f"Unknown report format: {format}. Supported: {sorted(REPORTERS)}")
    return reporter_class(**kwargs)

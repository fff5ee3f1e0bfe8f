"""Tests for taintscan.cli"""

import json

import pytest

from taintscan import __version__
from taintscan.cli import exit_code, main, parse_args
from taintscan.models import ScanResult


class TestParseArgs:
    def test_defaults(self):
        args = parse_args(["src"])
        assert args.target == "src"
        assert args.format == "console"
        assert args.vulnerabilities is None
        assert args.max_depth is None

    def test_repeated_options(self):
        args = parse_args(["src", "-V", "sql_injection", "-V", "6",
                           "--extension", ".java", "--extension", ".jav",
                           "--exclude", "*/test/*", "*/generated/*"])
        assert args.vulnerabilities == ["sql_injection", "6"]
        assert args.extensions == [".java", ".jav"]
        assert args.exclude == ["*/test/*", "*/generated/*"]

    def test_version(self, capsys):
        with pytest.raises(SystemExit):
            parse_args(["--version"])
        assert __version__ in capsys.readouterr().out


class TestMain:
    def test_list_classes(self, capsys):
        assert main(["--list-classes"]) == 0
        out = capsys.readouterr().out
        assert "sql_injection" in out
        assert "CWE-89" in out

    def test_missing_target_argument(self, capsys):
        assert main([]) == 1
        assert "target path is required" in capsys.readouterr().err

    def test_nonexistent_target(self, tmp_path, capsys):
        assert main([str(tmp_path / "missing")]) == 1

    def test_critical_findings_exit_code(self, java_project, tmp_path):
        output = tmp_path / "report.json"
        code = main([str(java_project), "-f", "json", "-o", str(output)])

        assert code == 3
        data = json.loads(output.read_text())
        assert data['total_findings'] == 2

    def test_clean_scan_exit_code(self, java_project, capsys):
        code = main([str(java_project), "-V", "cross_site_scripting", "--no-color"])
        assert code == 0
        assert "No tainted data flows found!" in capsys.readouterr().out

    def test_sarif_output(self, java_project, tmp_path):
        output = tmp_path / "report.sarif"
        main([str(java_project), "-V", "sql_injection", "-f", "sarif", "-o", str(output)])
        sarif = json.loads(output.read_text())
        assert sarif["runs"][0]["results"][0]["ruleId"] == "TAINT-004"

    def test_configuration_error(self, java_project, capsys):
        assert main([str(java_project), "-V", "buffer_overflow"]) == 1
        assert "Configuration error" in capsys.readouterr().err

    def test_invalid_max_depth(self, java_project, capsys):
        assert main([str(java_project), "--max-depth", "0"]) == 1
        assert "max_depth" in capsys.readouterr().err

    def test_trusted_directive_option(self, java_project, tmp_path):
        output = tmp_path / "report.json"
        default = main([str(java_project), "-V", "sql_injection", "-f", "json", "-o", str(output)])
        assert default == 3
        assert json.loads(output.read_text())['total_findings'] == 1

        main([str(java_project), "-V", "sql_injection", "--trusted-directive", "reviewed",
              "-f", "json", "-o", str(output)])
        assert json.loads(output.read_text())['total_findings'] == 2


class TestExitCode:
    def test_clean(self):
        assert exit_code(ScanResult(target_path="/src")) == 0

    def test_errors_without_findings(self):
        assert exit_code(ScanResult(target_path="/src", errors=["Sql Injection: bad catalog"])) == 2

    def test_highest_severity_wins(self, sample_scan_result):
        assert exit_code(sample_scan_result) == 3

    def test_low_findings_only(self, sample_finding_low):
        assert exit_code(ScanResult(target_path="/src", findings=[sample_finding_low])) == 1

"""
Main scanner - orchestrates call graph construction and verification
"""

import fnmatch
import os
import time
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Optional
import logging

from .call_graph import CallGraph, CallGraphBuilder
from .cancellation import CancellationToken
from .catalog_loader import CatalogError, CatalogLoader
from .config import ScanConfig
from .dataflow.strategies import AnnotationIndex, VerificationStrategy
from .java_parser import JavaSourceParser
from .models import ScanResult, VulnerabilityClass
from .profiling import PerformanceMetrics, profile
from .reporters import ProblemReporter
from .verifier import Verifier

logger = logging.getLogger(__name__)


class TaintScanner:
    """
    Scans Java sources for tainted flows into dangerous sinks.

    The call graph is kept between scans: files that changed are re-parsed
    and replace their entry, files that disappeared from a scanned directory
    are removed.
    """

    # Directories to skip
    SKIP_DIRS = {
        '.git', '.svn', '.hg', 'node_modules', '__pycache__',
        '.idea', '.vscode', 'target', 'build', 'dist', 'out',
        'vendor', 'venv', '.venv', '.gradle', '.mvn', 'bin', 'obj',
    }

    def __init__(self, config: Optional[ScanConfig] = None):
        self.config = config or ScanConfig()
        self.catalog_loader = CatalogLoader(self.config.catalog_dir)
        self.annotations = AnnotationIndex()
        self.call_graph = CallGraph()
        self.builder = CallGraphBuilder(
            call_graph=self.call_graph,
            annotations=self.annotations,
            extensions=self.config.extensions,
            parser=JavaSourceParser(self.config.trusted_directive),
        )
        self.metrics = PerformanceMetrics()
        self._content_cache: Dict[str, str] = {}

    def scan(self, target_path: str, exclude_patterns: Optional[List[str]] = None,
             cancellation: Optional[CancellationToken] = None) -> ScanResult:
        """Scan a directory or file for tainted data flows"""
        start_time = time.time()
        target = Path(target_path).resolve()
        result = ScanResult(target_path=str(target))

        if not target.exists():
            result.errors.append(f"Target path does not exist: {target}")
            return result

        self.metrics.reset()
        self._content_cache.clear()
        self.builder.errors.clear()
        patterns = list(self.config.exclude_patterns) + list(exclude_patterns or [])

        files = self._collect_files(target, patterns)
        logger.info(f"Analysing {len(files)} files...")

        with profile("parse", self.metrics):
            self._drop_vanished_units(target, files)
            readable = []
            for filepath in files:
                content = self._read_file(filepath)
                if content is None:
                    result.errors.append(f"Failed to read {filepath}")
                    continue
                self._content_cache[str(filepath)] = content
                readable.append(filepath)
            units = self.builder.build_from_files(readable, self._content_cache, cancellation)

        result.files_scanned = len(units)
        result.errors.extend(self.builder.errors)
        self.metrics.increment("units", len(units))

        reporter = ProblemReporter()
        for vulnerability in self.config.selected_vulnerabilities:
            if cancellation is not None and cancellation.is_cancelled:
                break
            self._run_verifier(vulnerability, units, reporter, result, cancellation)

        result.findings = list(reporter.findings)
        result.sort_findings()
        result.cancelled = cancellation is not None and cancellation.is_cancelled
        result.scan_duration_seconds = time.time() - start_time
        result.metrics = self.metrics.to_dict()

        logger.debug(self.metrics.summary())
        logger.info(f"Scan complete: {len(result.findings)} findings in {result.scan_duration_seconds:.2f}s")
        return result

    def _run_verifier(self, vulnerability: VulnerabilityClass, units: List[str],
                      reporter: ProblemReporter, result: ScanResult,
                      cancellation: Optional[CancellationToken]) -> None:
        try:
            catalog = self.catalog_loader.load(vulnerability)
        except CatalogError as e:
            logger.error(f"Skipping {vulnerability.display_name}: {e}")
            result.errors.append(f"{vulnerability.display_name}: {e}")
            return

        verifier = Verifier(
            vulnerability,
            catalog,
            self.call_graph,
            reporter,
            strategy=VerificationStrategy.for_catalog(catalog, self.annotations),
            max_depth=self.config.max_depth,
        )
        with profile(f"verify.{vulnerability.value}", self.metrics):
            reported = verifier.run(units, cancellation)
        result.vulnerabilities_checked.append(vulnerability.value)
        self.metrics.increment("problems", reported)

    def _drop_vanished_units(self, target: Path, files: List[Path]) -> None:
        """Remove call graph entries of files no longer present under ``target``"""
        current = {str(f) for f in files}
        for unit in self.call_graph.unit_paths:
            unit_path = Path(unit)
            inside = unit_path == target or target in unit_path.parents
            if inside and unit not in current:
                logger.debug(f"Dropping vanished unit {unit}")
                self.builder.remove_unit(unit)

    def _collect_files(self, target: Path, exclude_patterns: Optional[List[str]] = None) -> List[Path]:
        """Collect all files to analyse, in a stable order"""
        files = []
        exclude_patterns = exclude_patterns or []

        if target.is_file():
            if self._should_scan_file(target, exclude_patterns):
                files.append(target)
            return files

        for root, dirs, filenames in os.walk(target):
            dirs[:] = sorted(d for d in dirs if d not in self.SKIP_DIRS)
            root_path = Path(root)

            for filename in sorted(filenames):
                filepath = root_path / filename
                if self._should_scan_file(filepath, exclude_patterns):
                    files.append(filepath)

        return files

    def _should_scan_file(self, filepath: Path, exclude_patterns: List[str]) -> bool:
        """Determine if a file should be analysed"""
        if not self.builder.is_to_perform_detection(filepath):
            return False

        try:
            if filepath.stat().st_size > self.config.max_file_size:
                logger.debug(f"Skipping large file: {filepath}")
                return False
        except OSError:
            return False

        filepath_str = str(filepath)
        for pattern in exclude_patterns:
            if fnmatch.fnmatch(filepath_str, pattern):
                return False

        return True

    def _read_file(self, filepath: Path) -> Optional[str]:
        """Read file content with encoding detection"""
        encodings = ['utf-8', 'latin-1']

        for encoding in encodings:
            try:
                with open(filepath, 'r', encoding=encoding) as f:
                    return f.read()
            except UnicodeDecodeError:
                continue
            except OSError as e:
                logger.debug(f"Error reading {filepath}: {e}")
                return None

        return None


def create_scanner(config_file: Optional[str] = None,
                   vulnerabilities: Optional[List[str]] = None,
                   catalog_dir: Optional[str] = None,
                   max_depth: Optional[int] = None,
                   extensions: Optional[List[str]] = None,
                   trusted_directive: Optional[str] = None) -> TaintScanner:
    """Factory function to create and configure a scanner

    Args:
        config_file: YAML configuration file
        vulnerabilities: Vulnerability class names or verifier ids to check
        catalog_dir: Knowledge base directory overriding the bundled one
        max_depth: Maximum number of hops per traced path
        extensions: File extensions fed to the call graph
        trusted_directive: Comment marker that suppresses a line

    Returns:
        Configured TaintScanner instance

    Raises:
        ConfigError: the config file or an override is invalid
    """
    config = ScanConfig.load(config_file)

    overrides = {}
    if vulnerabilities:
        overrides['vulnerabilities'] = vulnerabilities
    if catalog_dir:
        overrides['catalog_dir'] = catalog_dir
    if max_depth is not None:
        overrides['max_depth'] = max_depth
    if extensions:
        overrides['extensions'] = extensions
    if trusted_directive is not None:
        overrides['trusted_directive'] = trusted_directive

    return TaintScanner(replace(config, **overrides))

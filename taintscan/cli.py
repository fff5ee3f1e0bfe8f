"""
Command Line Interface for taintscan

Exit codes: 3 critical findings, 2 errors or high findings, 1 other findings
or a usage/configuration error, 0 clean, 130 interrupted.
"""

import argparse
import sys
import logging
from pathlib import Path
from typing import List, Optional

from . import __version__
from .catalog_loader import CatalogError, CatalogLoader
from .config import ConfigError
from .models import ScanResult, Severity, VulnerabilityClass
from .reporters import REPORTERS, get_reporter
from .scanner import create_scanner

SEVERITY_MARKERS = {
    Severity.CRITICAL: '!',
    Severity.HIGH: '*',
    Severity.MEDIUM: '+',
    Severity.LOW: '-',
}


def setup_logging(verbose: bool = False, debug: bool = False) -> None:
    """Configure logging"""
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def parse_args(args: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        prog='taintscan',
        description='Trace untrusted input into dangerous Java calls',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s src/main/java
  %(prog)s src/main/java -V sql_injection -V command_injection
  %(prog)s src/main/java -f sarif -o taint.sarif
  %(prog)s --list-classes
        """
    )
    parser.add_argument('target', nargs='?', help='Java source directory or file')

    report = parser.add_argument_group('Report')
    report.add_argument('-f', '--format', choices=sorted(REPORTERS), default='console')
    report.add_argument('-o', '--output', help='write the report here instead of stdout')
    report.add_argument('--no-color', action='store_true')

    scope = parser.add_argument_group('Scope')
    scope.add_argument('-V', '--vulnerability', action='append', dest='vulnerabilities',
                       metavar='CLASS', help='class name or verifier id; repeatable')
    scope.add_argument('--exclude', nargs='+', metavar='GLOB')
    scope.add_argument('--extension', action='append', dest='extensions', metavar='EXT',
                       help='source extension; repeatable (default: .java)')

    tracing = parser.add_argument_group('Tracing')
    tracing.add_argument('-c', '--config', help='YAML configuration file')
    tracing.add_argument('--catalog-dir', help='entry/exit/sanitization point catalogs')
    tracing.add_argument('--max-depth', type=int, metavar='HOPS')
    tracing.add_argument('--trusted-directive', metavar='MARKER',
                         help='comment marker that suppresses a line')
    tracing.add_argument('--list-classes', action='store_true',
                         help='show vulnerability classes and their catalogs')

    parser.add_argument('-v', '--verbose', action='store_true', help='show traced paths')
    parser.add_argument('--debug', action='store_true')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    return parser.parse_args(args)


def list_classes(catalog_dir: Optional[str] = None) -> None:
    """Print every vulnerability class with the size of its catalog"""
    loader = CatalogLoader(catalog_dir)
    available = set(loader.available_classes())

    for vulnerability in sorted(VulnerabilityClass, key=lambda v: v.verifier_id):
        if vulnerability not in available:
            detail = "no catalog"
        else:
            try:
                stats = loader.load(vulnerability).stats
                detail = f"{stats['exit_points']} sinks, {stats['sanitization_points']} sanitizers"
            except CatalogError as e:
                detail = f"invalid catalog: {e}"
        marker = SEVERITY_MARKERS.get(vulnerability.severity, ' ')
        print(f"{marker} {vulnerability.verifier_id:>2} {vulnerability.value:<26} "
              f"{vulnerability.cwe:<8} {vulnerability.severity.value:<9} {detail}")


def exit_code(result: ScanResult) -> int:
    if result.get_findings_by_severity(Severity.CRITICAL):
        return 3
    if result.errors or result.get_findings_by_severity(Severity.HIGH):
        return 2
    return 1 if result.findings else 0


def run_scan(args: argparse.Namespace) -> int:
    scanner = create_scanner(
        config_file=args.config,
        vulnerabilities=args.vulnerabilities,
        catalog_dir=args.catalog_dir,
        max_depth=args.max_depth,
        extensions=args.extensions,
        trusted_directive=args.trusted_directive,
    )
    result = scanner.scan(target_path=args.target, exclude_patterns=args.exclude)

    options = {}
    if args.format == 'console':
        options = {'use_colors': not args.no_color, 'verbose': args.verbose}
    get_reporter(args.format, **options).report(result, args.output)
    return exit_code(result)


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point"""
    parsed_args = parse_args(args)
    setup_logging(verbose=parsed_args.verbose, debug=parsed_args.debug)

    if parsed_args.list_classes:
        list_classes(parsed_args.catalog_dir)
        return 0

    if not parsed_args.target:
        print("Error: a target path is required", file=sys.stderr)
        return 1
    if not Path(parsed_args.target).exists():
        print(f"Error: Target path does not exist: {parsed_args.target}", file=sys.stderr)
        return 1

    try:
        return run_scan(parsed_args)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nScan interrupted by user", file=sys.stderr)
        return 130
    except Exception as e:
        if parsed_args.debug:
            raise
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
